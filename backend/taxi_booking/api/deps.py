"""
Request-scoped dependencies: stores, the booking engine and the event bus.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taxi_booking.core.config import get_settings
from taxi_booking.core.events import EventBus
from taxi_booking.db.session import get_db
from taxi_booking.infrastructure.sql_stores import SqlBookingStore, SqlCatalogStore
from taxi_booking.services.booking_engine import BookingEngine

settings = get_settings()


def get_catalog_store(db: AsyncSession = Depends(get_db)) -> SqlCatalogStore:
    return SqlCatalogStore(db)


def get_booking_engine(db: AsyncSession = Depends(get_db)) -> BookingEngine:
    return BookingEngine(
        catalog=SqlCatalogStore(db),
        bookings=SqlBookingStore(db),
        timezone_name=settings.BOOKING_TIMEZONE,
        code_prefix=settings.BOOKING_CODE_PREFIX,
        max_retry_attempts=settings.BOOKING_MAX_RETRY_ATTEMPTS,
        search_match_mode=settings.SEARCH_MATCH_MODE,
    )


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus
