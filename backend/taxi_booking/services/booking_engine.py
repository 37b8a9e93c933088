"""
Booking engine: availability, pricing, booking codes, payment and refunds.

CONCURRENCY STRATEGY: Pre-check + Partial Unique Index
======================================================

Problem:
  Two customers book the same taxi, route and day at the same moment.
  Both run the conflict query, both see no confirmed booking, both insert.
  Result: Two confirmed rides for one taxi slot.

Solution:
  The conflict query stays as the fast, friendly path, but the database has
  the final word: a partial unique index on (taxi_id, route_id, ride_day)
  WHERE booking_status = 'confirmed'.

  1. Query for a confirmed booking in the ride's calendar-day window
  2. INSERT the booking with a freshly generated booking code
  3. If a unique index rejects the insert, roll back and look at which one:
     - the slot index     -> ConflictError (the race was lost)
     - the booking code   -> the code collided, retry with a new one
  Both the conflict query and the index key on ride_day, so they agree on
  what "the same day" means down to the last microsecond.

  Cancelled rows fall outside the index, so cancelling frees the slot.

Known, preserved behaviour:
  - Conflicts are scoped to taxi+route, not taxi alone. One taxi can hold a
    confirmed booking on two different routes on the same day.
  - Price is route.price, flat. passenger_count and taxi.price_per_km do not
    change it.
  - search_availability drops booked routes instead of returning them as
    sold out.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional

from taxi_booking.core.events import BookingCancelled, BookingCreated, PaymentCompleted
from taxi_booking.core.exceptions import (
    AlreadyCancelledError,
    AlreadyPaidError,
    AuthorizationError,
    BookingCodeCollisionError,
    CapacityError,
    ConflictError,
    NotFoundError,
    PastBookingError,
    ValidationError,
)
from taxi_booking.core.logging import get_logger
from taxi_booking.core.metrics import (
    booking_code_retries,
    record_booking_attempt,
    record_cancellation,
    record_payment,
)
from taxi_booking.db.base import utcnow
from taxi_booking.models.booking import Booking
from taxi_booking.models.route import Route
from taxi_booking.models.taxi import Taxi
from taxi_booking.models.user import ADMIN_ROLE
from taxi_booking.services import refunds
from taxi_booking.services.booking_codes import generate_booking_code, generate_transaction_id
from taxi_booking.services.day_window import booking_zone, day_window, ensure_aware
from taxi_booking.services.interfaces.stores import SLOT_KEY, BookingStore, CatalogStore, DuplicateKeyError

logger = get_logger(__name__)

MAX_PASSENGERS = 7
DEFAULT_CANCELLATION_REASON = "User cancelled"


@dataclass(frozen=True)
class PassengerContact:
    name: str
    phone: str


@dataclass(frozen=True)
class StopPoint:
    location: Optional[str] = None
    time: Optional[str] = None


@dataclass
class CancellationResult:
    booking: Booking
    refund_amount: Decimal
    refund_percentage: int


@dataclass
class RouteAvailability:
    route: Route
    taxi: Taxi
    is_available: bool
    available_seats: int


@dataclass
class BookingEngine:
    """
    Business rules for the booking lifecycle.

    Stores and the clock are injected; one engine is built per request
    around that request's session. Events produced by successful operations
    accumulate in `pending_events` until the caller commits and publishes them.
    """

    catalog: CatalogStore
    bookings: BookingStore
    clock: Callable[[], datetime] = utcnow
    timezone_name: str = "UTC"
    code_prefix: str = "TAXI"
    max_retry_attempts: int = 3
    search_match_mode: str = "substring"
    code_factory: Callable[[datetime, str], str] = generate_booking_code
    pending_events: list = field(default_factory=list)

    @property
    def zone(self):
        return booking_zone(self.timezone_name)

    def drain_events(self) -> list:
        events, self.pending_events = self.pending_events, []
        return events

    async def create_booking(
        self,
        user_id: int,
        taxi_id: Optional[int],
        route_id: Optional[int],
        ride_date: Optional[datetime],
        passenger_count: Optional[int],
        passenger_contact: Optional[PassengerContact],
        pickup_location: Optional[StopPoint] = None,
        drop_location: Optional[StopPoint] = None,
    ) -> Booking:
        if (
            not taxi_id
            or not route_id
            or ride_date is None
            or not passenger_count
            or passenger_contact is None
            or not passenger_contact.name
            or not passenger_contact.phone
        ):
            raise ValidationError("Please provide all required booking details")

        if not 1 <= passenger_count <= MAX_PASSENGERS:
            raise ValidationError(f"Passenger count must be between 1 and {MAX_PASSENGERS}")

        taxi = await self.catalog.find_taxi_by_id(taxi_id)
        route = await self.catalog.find_route_by_id(route_id)
        if taxi is None or route is None:
            record_booking_attempt("error")
            raise NotFoundError("Taxi or route not found")

        if route.taxi_id != taxi.id:
            raise ValidationError("The selected route is not served by this taxi")

        ride_date = ensure_aware(ride_date)
        window = day_window(ride_date, self.zone)

        existing = await self.bookings.find_conflicting(taxi_id, route_id, window, "confirmed")
        if existing is not None:
            record_booking_attempt("conflict")
            logger.warning(
                "booking_conflict",
                taxi_id=taxi_id,
                route_id=route_id,
                ride_day=window.day,
            )
            raise ConflictError()

        # Read everything needed from the catalog rows now; a rollback on a
        # rejected insert expires them.
        capacity = taxi.capacity
        total_amount = Decimal(route.price)

        if passenger_count > capacity:
            record_booking_attempt("capacity")
            raise CapacityError(f"This taxi can only accommodate {capacity} passengers")

        pickup = pickup_location or StopPoint()
        drop = drop_location or StopPoint()

        for attempt in range(1, self.max_retry_attempts + 1):
            booking = Booking(
                booking_code=self.code_factory(self.clock(), self.code_prefix),
                user_id=user_id,
                taxi_id=taxi_id,
                route_id=route_id,
                ride_date=ride_date,
                ride_day=window.day,
                passenger_count=passenger_count,
                passenger_name=passenger_contact.name,
                passenger_phone=passenger_contact.phone,
                pickup_location=pickup.location,
                pickup_time=pickup.time,
                drop_location=drop.location,
                drop_time=drop.time,
                total_amount=total_amount,
                payment_status="pending",
                booking_status="confirmed",
                refund_amount=Decimal("0"),
            )
            try:
                booking = await self.bookings.insert(booking)
            except DuplicateKeyError as e:
                if e.key == SLOT_KEY:
                    record_booking_attempt("conflict")
                    logger.warning(
                        "booking_conflict_race_lost",
                        taxi_id=taxi_id,
                        route_id=route_id,
                        ride_day=window.day,
                        attempt=attempt,
                    )
                    raise ConflictError()
                booking_code_retries.inc()
                logger.info("booking_code_retry", attempt=attempt, reason="code_collision")
                continue

            record_booking_attempt("success")
            logger.info(
                "booking_created",
                booking_code=booking.booking_code,
                user_id=user_id,
                taxi_id=taxi_id,
                route_id=route_id,
                ride_day=window.day,
                passengers=passenger_count,
                attempt=attempt,
            )
            self.pending_events.append(
                BookingCreated(
                    booking_code=booking.booking_code,
                    user_id=user_id,
                    taxi_id=taxi_id,
                    route_id=route_id,
                    ride_day=window.day,
                )
            )
            return booking

        record_booking_attempt("error")
        raise BookingCodeCollisionError()

    async def get_booking(self, booking_id: str, requester_id: int, requester_role: str) -> Booking:
        booking = await self.bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        if requester_role != ADMIN_ROLE and booking.user_id != requester_id:
            raise AuthorizationError("Not authorized to access this booking")
        return booking

    async def list_user_bookings(
        self, user_id: int, requester_id: int, requester_role: str
    ) -> List[Booking]:
        if requester_role != ADMIN_ROLE and user_id != requester_id:
            raise AuthorizationError("Not authorized to access these bookings")
        return await self.bookings.list_for_user(user_id)

    async def cancel_booking(
        self,
        booking_id: str,
        requester_id: int,
        requester_role: str,
        reason: Optional[str] = None,
    ) -> CancellationResult:
        booking = await self.bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")

        if requester_role != ADMIN_ROLE and booking.user_id != requester_id:
            raise AuthorizationError("Not authorized to cancel this booking")

        if booking.is_cancelled:
            raise AlreadyCancelledError()

        now = self.clock()
        if booking.ride_date < now:
            raise PastBookingError()

        percentage = refunds.refund_percentage(refunds.hours_until(booking.ride_date, now))
        amount = refunds.refund_amount(booking.total_amount, percentage)

        booking.booking_status = "cancelled"
        booking.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
        booking.cancelled_at = now
        booking.refund_amount = amount
        if amount > 0:
            booking.payment_status = "refunded"

        booking = await self.bookings.update(booking)

        record_cancellation(percentage)
        logger.info(
            "booking_cancelled",
            booking_code=booking.booking_code,
            requester_id=requester_id,
            refund_percentage=percentage,
            refund_amount=amount,
        )
        self.pending_events.append(
            BookingCancelled(
                booking_code=booking.booking_code,
                taxi_id=booking.taxi_id,
                route_id=booking.route_id,
                ride_day=booking.ride_day,
                refund_percentage=percentage,
            )
        )
        return CancellationResult(booking=booking, refund_amount=amount, refund_percentage=percentage)

    async def process_payment(
        self,
        booking_id: str,
        requester_id: int,
        payment_method: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> Booking:
        """
        Mark a booking as paid.

        This trusts the caller: there is no payment gateway behind it.
        """
        booking = await self.bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")

        if booking.user_id != requester_id:
            raise AuthorizationError("Not authorized to process this payment")

        if booking.payment_status == "completed":
            raise AlreadyPaidError()

        if booking.is_cancelled:
            raise AlreadyCancelledError("Cannot pay for a cancelled booking")

        booking.payment_status = "completed"
        booking.payment_method = payment_method
        booking.transaction_id = transaction_id or generate_transaction_id(self.clock())

        booking = await self.bookings.update(booking)

        record_payment(payment_method)
        logger.info(
            "payment_completed",
            booking_code=booking.booking_code,
            method=payment_method,
            transaction_id=booking.transaction_id,
        )
        self.pending_events.append(
            PaymentCompleted(
                booking_code=booking.booking_code,
                payment_method=payment_method or "",
                transaction_id=booking.transaction_id,
            )
        )
        return booking

    async def search_availability(
        self, source: Optional[str], destination: Optional[str], ride_date: Optional[date]
    ) -> List[RouteAvailability]:
        if not source or not destination or ride_date is None:
            raise ValidationError("Please provide source, destination, and date")

        window = day_window(ride_date, self.zone)
        routes = await self.catalog.find_active_routes(source, destination, self.search_match_mode)

        available = []
        for route in routes:
            booked = await self.bookings.find_confirmed_for_route(route.id, window)
            if booked is not None:
                continue
            available.append(
                RouteAvailability(
                    route=route,
                    taxi=route.taxi,
                    is_available=True,
                    available_seats=route.taxi.capacity,
                )
            )

        logger.debug(
            "availability_searched",
            source=source,
            destination=destination,
            ride_day=window.day,
            matched=len(routes),
            available=len(available),
        )
        return available
