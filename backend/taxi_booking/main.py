"""
Taxi Booking API - Main Application Entry Point

A taxi marketplace backend demonstrating:
- Double-booking protection with a partial unique index behind the conflict check
- Tiered cancellation refunds and a stub payment flow
- Post-commit events driving cache invalidation and rating aggregation
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taxi_booking.core.config import get_settings
from taxi_booking.core.events import EventBus
from taxi_booking.core.exceptions import register_exception_handlers
from taxi_booking.core.logging import setup_logging, get_logger
from taxi_booking.core.metrics import metrics_endpoint
from taxi_booking.api.router import api_router
from taxi_booking.api.middleware import RequestLoggingMiddleware
from taxi_booking.db.session import AsyncSessionLocal
from taxi_booking.infrastructure.redis_client import get_redis, close_redis
from taxi_booking.services.cache_service import get_cache_stats, subscribe_cache_invalidation
from taxi_booking.services.rating_aggregator import RatingAggregator

settings = get_settings()


def build_event_bus(session_factory) -> EventBus:
    bus = EventBus()
    subscribe_cache_invalidation(bus)
    RatingAggregator(session_factory).subscribe(bus)
    return bus


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Taxi booking API with double-booking protection and tiered refunds",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.event_bus = build_event_bus(AsyncSessionLocal)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
