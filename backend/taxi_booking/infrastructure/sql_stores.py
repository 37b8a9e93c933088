"""
SQLAlchemy implementations of the store interfaces.

Each store wraps the request's AsyncSession. Stores flush but never commit;
the route handler owns the transaction boundary.
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taxi_booking.core.logging import get_logger
from taxi_booking.models.booking import Booking
from taxi_booking.models.route import Route
from taxi_booking.models.taxi import Taxi
from taxi_booking.models.user import User
from taxi_booking.services.day_window import DayWindow
from taxi_booking.services.interfaces.stores import (
    BOOKING_CODE_KEY,
    SLOT_KEY,
    BookingStore,
    CatalogStore,
    DuplicateKeyError,
    IdentityStore,
)

logger = get_logger(__name__)

# PostgreSQL reports the index name; SQLite reports the indexed columns.
UNIQUE_KEY_MARKERS = (
    (SLOT_KEY, ("uq_bookings_confirmed_slot", "bookings.taxi_id, bookings.route_id, bookings.ride_day")),
    (BOOKING_CODE_KEY, ("bookings_booking_code_key", "bookings.booking_code")),
)


def violated_unique_key(error: IntegrityError) -> Optional[str]:
    message = str(error.orig)
    for key, markers in UNIQUE_KEY_MARKERS:
        if any(marker in message for marker in markers):
            return key
    return None


class SqlIdentityStore(IdentityStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()


class SqlCatalogStore(CatalogStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_taxi_by_id(self, taxi_id: int) -> Optional[Taxi]:
        return await self.db.get(Taxi, taxi_id)

    async def find_route_by_id(self, route_id: int) -> Optional[Route]:
        return await self.db.get(Route, route_id)

    async def find_active_routes(
        self, source: str, destination: str, match_mode: str = "substring"
    ) -> List[Route]:
        if match_mode == "exact":
            source_clause = func.lower(Route.source) == source.strip().lower()
            destination_clause = func.lower(Route.destination) == destination.strip().lower()
        else:
            source_clause = Route.source.icontains(source.strip(), autoescape=True)
            destination_clause = Route.destination.icontains(destination.strip(), autoescape=True)

        # Uses ix_routes_search for the is_active filter
        result = await self.db.execute(
            select(Route)
            .join(Taxi, Route.taxi_id == Taxi.id)
            .where(
                source_clause,
                destination_clause,
                Route.is_active.is_(True),
                Taxi.is_active.is_(True),
            )
            .order_by(Route.departure_time.asc(), Route.id.asc())
        )
        return list(result.scalars().all())

    async def list_featured_taxis(self, limit: int) -> List[Taxi]:
        result = await self.db.execute(
            select(Taxi)
            .where(Taxi.is_active.is_(True), Taxi.is_approved.is_(True))
            .order_by(Taxi.rating.desc(), Taxi.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_active_routes_for_taxi(self, taxi_id: int) -> List[Route]:
        result = await self.db.execute(
            select(Route)
            .where(Route.taxi_id == taxi_id, Route.is_active.is_(True))
            .order_by(Route.departure_time.asc())
        )
        return list(result.scalars().all())


class SqlBookingStore(BookingStore):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_conflicting(
        self, taxi_id: int, route_id: int, window: DayWindow, status: str = "confirmed"
    ) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.taxi_id == taxi_id,
                Booking.route_id == route_id,
                Booking.ride_day == window.day,
                Booking.booking_status == status,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_confirmed_for_route(self, route_id: int, window: DayWindow) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.route_id == route_id,
                Booking.ride_day == window.day,
                Booking.booking_status == "confirmed",
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def insert(self, booking: Booking) -> Booking:
        self.db.add(booking)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # The failed flush leaves the transaction unusable
            await self.db.rollback()
            key = violated_unique_key(e)
            logger.info(
                "booking_insert_rejected",
                booking_code=booking.booking_code,
                key=key,
                error=str(e.orig),
            )
            if key is None:
                raise
            raise DuplicateKeyError(str(e.orig), key) from e
        await self.db.refresh(booking)
        return booking

    async def find_by_id(self, booking_code: str) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking).where(Booking.booking_code == booking_code)
        )
        return result.scalar_one_or_none()

    async def update(self, booking: Booking) -> Booking:
        await self.db.flush()
        await self.db.refresh(booking)
        return booking

    async def list_for_user(self, user_id: int) -> List[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )
        return list(result.scalars().all())
