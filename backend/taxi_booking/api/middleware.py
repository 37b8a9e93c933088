"""
Per-request correlation id, access log line and HTTP metrics.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from taxi_booking.core.logging import get_logger
from taxi_booking.core.metrics import record_http_request

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _route_template(request: Request) -> str:
    """
    '/api/v1/bookings/{booking_code}' rather than one label per booking.

    Built from the request path and the matched path parameters; the
    matched route's own `path` may omit the router prefix.
    """
    if request.scope.get("route") is None:
        return "unmatched"
    placeholders = {str(value): f"{{{name}}}" for name, value in request.scope.get("path_params", {}).items()}
    segments = request.url.path.split("/")
    return "/".join(placeholders.get(segment, segment) for segment in segments)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Reuses the caller's X-Request-ID when present so a client retry can be
    traced across attempts; otherwise mints a short one. The id is bound to
    structlog's contextvars for every log line of the request and echoed back.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - started
            record_http_request(request.method, _route_template(request), 500, elapsed)
            logger.error("request_failed", error=str(e), duration_ms=round(elapsed * 1000, 2))
            raise

        elapsed = time.perf_counter() - started
        duration_ms = round(elapsed * 1000, 2)
        record_http_request(request.method, _route_template(request), response.status_code, elapsed)
        logger.info("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
