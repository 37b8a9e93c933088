"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'taxi_booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, capacity, error
)

booking_latency = Histogram(
    'taxi_booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_code_retries = Counter(
    'taxi_booking_code_retries_total',
    'Booking inserts retried after a booking code collision'
)

cancellations = Counter(
    'taxi_booking_cancellations_total',
    'Cancelled bookings by refund tier',
    ['refund_percentage']
)

payments = Counter(
    'taxi_booking_payments_total',
    'Payments marked completed',
    ['method']
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


# HTTP metrics, labelled by route template
http_requests = Counter(
    'http_requests_total',
    'HTTP requests',
    ['method', 'route', 'status']
)

http_request_latency = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency',
    ['method', 'route'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, capacity, error"""
    booking_attempts.labels(status=status).inc()


def record_cancellation(refund_percentage: int):
    cancellations.labels(refund_percentage=str(refund_percentage)).inc()


def record_payment(method: str):
    payments.labels(method=method or "unspecified").inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()


def record_http_request(method: str, route: str, status_code: int, seconds: float):
    http_requests.labels(method=method, route=route, status=str(status_code)).inc()
    http_request_latency.labels(method=method, route=route).observe(seconds)
