"""
Tests for the booking engine against a real database: double-booking
protection under races, booking code retries, refunds and search.
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, InvalidRequestError

from taxi_booking.core.events import BookingCancelled, BookingCreated, PaymentCompleted
from taxi_booking.core.exceptions import (
    AlreadyCancelledError,
    AlreadyPaidError,
    AuthorizationError,
    BookingCodeCollisionError,
    CapacityError,
    ConflictError,
    PastBookingError,
    ValidationError,
)
from taxi_booking.infrastructure.sql_stores import SqlBookingStore, violated_unique_key
from taxi_booking.models.booking import Booking
from taxi_booking.models.user import ADMIN_ROLE
from taxi_booking.services.booking_engine import PassengerContact, StopPoint
from taxi_booking.services.interfaces.stores import BOOKING_CODE_KEY, SLOT_KEY

from conftest import FIXED_NOW, TestSessionLocal, create_route, create_taxi, make_engine

CONTACT = PassengerContact(name="Asha Patel", phone="9988776655")


async def _create(engine, user_id, taxi_id, route_id, ride_date, passengers=2):
    return await engine.create_booking(
        user_id=user_id,
        taxi_id=taxi_id,
        route_id=route_id,
        ride_date=ride_date,
        passenger_count=passengers,
        passenger_contact=CONTACT,
        pickup_location=StopPoint(location="Andheri Station", time="07:45"),
    )


async def _confirmed_count(route_id: int) -> int:
    async with TestSessionLocal() as session:
        result = await session.execute(
            select(func.count(Booking.id)).where(
                Booking.route_id == route_id, Booking.booking_status == "confirmed"
            )
        )
        return result.scalar_one()


class SkipFirstCheckStore(SqlBookingStore):
    """Booking store whose first conflict check always sees a free slot,
    as if a concurrent request had not committed yet."""

    def __init__(self, db):
        super().__init__(db)
        self.checks = 0

    async def find_conflicting(self, taxi_id, route_id, window, status="confirmed"):
        self.checks += 1
        if self.checks == 1:
            return None
        return await super().find_conflicting(taxi_id, route_id, window, status)


# ---------------------------------------------------------------------------
# create_booking
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_booking_records_event(db_session, test_user, test_taxi, test_route):
    engine = make_engine(db_session)
    ride = FIXED_NOW + timedelta(days=2)

    booking = await _create(engine, test_user.id, test_taxi.id, test_route.id, ride)
    await db_session.commit()

    assert booking.booking_status == "confirmed"
    assert booking.total_amount == Decimal("1000.00")
    assert booking.ride_day == ride.date()
    assert booking.pickup_time == "07:45"
    assert booking.drop_location is None

    events = engine.drain_events()
    assert events == [
        BookingCreated(
            booking_code=booking.booking_code,
            user_id=test_user.id,
            taxi_id=test_taxi.id,
            route_id=test_route.id,
            ride_day=ride.date(),
        )
    ]
    assert engine.drain_events() == []


@pytest.mark.asyncio
async def test_price_is_flat_per_route(db_session, test_user, test_taxi, test_route):
    """Passenger count does not change the price."""
    engine = make_engine(db_session)
    booking = await _create(
        engine, test_user.id, test_taxi.id, test_route.id, FIXED_NOW + timedelta(days=2), passengers=4
    )
    assert booking.total_amount == Decimal("1000.00")


@pytest.mark.asyncio
async def test_booking_relationships_are_never_lazy_loaded(db_session, test_user, test_taxi, test_route):
    """Related rows are read through the stores, never by attribute access."""
    booking = await _create(
        make_engine(db_session), test_user.id, test_taxi.id, test_route.id, FIXED_NOW + timedelta(days=2)
    )
    with pytest.raises(InvalidRequestError):
        booking.taxi
    with pytest.raises(InvalidRequestError):
        booking.user


@pytest.mark.asyncio
async def test_only_admin_role_reads_other_bookings(db_session, test_user, other_user, test_taxi, test_route):
    engine = make_engine(db_session)
    booking = await _create(engine, test_user.id, test_taxi.id, test_route.id, FIXED_NOW + timedelta(days=2))

    found = await engine.get_booking(booking.booking_code, other_user.id, ADMIN_ROLE)
    assert found.id == booking.id

    with pytest.raises(AuthorizationError):
        await engine.get_booking(booking.booking_code, other_user.id, "driver")
    with pytest.raises(AuthorizationError):
        await engine.list_user_bookings(test_user.id, other_user.id, "driver")


@pytest.mark.asyncio
async def test_missing_details_rejected(db_session, test_user, test_taxi, test_route):
    engine = make_engine(db_session)
    with pytest.raises(ValidationError):
        await engine.create_booking(
            user_id=test_user.id,
            taxi_id=test_taxi.id,
            route_id=test_route.id,
            ride_date=FIXED_NOW + timedelta(days=2),
            passenger_count=2,
            passenger_contact=PassengerContact(name="", phone="9988776655"),
        )
    with pytest.raises(ValidationError):
        await engine.create_booking(
            user_id=test_user.id,
            taxi_id=test_taxi.id,
            route_id=test_route.id,
            ride_date=None,
            passenger_count=2,
            passenger_contact=CONTACT,
        )


@pytest.mark.asyncio
async def test_passenger_count_bounds(db_session, test_user, test_taxi, test_route):
    engine = make_engine(db_session)
    with pytest.raises(ValidationError):
        await _create(engine, test_user.id, test_taxi.id, test_route.id, FIXED_NOW + timedelta(days=2), passengers=8)


@pytest.mark.asyncio
async def test_capacity_exceeded(db_session, test_user, test_taxi, test_route):
    engine = make_engine(db_session)
    with pytest.raises(CapacityError) as exc_info:
        await _create(engine, test_user.id, test_taxi.id, test_route.id, FIXED_NOW + timedelta(days=2), passengers=5)
    assert "4 passengers" in exc_info.value.message


@pytest.mark.asyncio
async def test_conflict_any_time_same_day(db_session, test_user, other_user, test_taxi, test_route):
    """Two rides on the same calendar day conflict regardless of time."""
    engine = make_engine(db_session)
    day = date(2026, 10, 25)
    morning = FIXED_NOW.replace(year=day.year, month=day.month, day=day.day, hour=0, minute=5)
    night = morning.replace(hour=23, minute=59)

    await _create(engine, test_user.id, test_taxi.id, test_route.id, morning)
    await db_session.commit()

    with pytest.raises(ConflictError):
        await _create(engine, other_user.id, test_taxi.id, test_route.id, night)


@pytest.mark.asyncio
async def test_same_taxi_other_route_same_day_allowed(db_session, test_user, test_taxi, test_route):
    """Conflicts are scoped to taxi and route."""
    second_route = await create_route(db_session, test_taxi, source="Pune", destination="Mumbai")
    engine = make_engine(db_session)
    ride = FIXED_NOW + timedelta(days=2)

    await _create(engine, test_user.id, test_taxi.id, test_route.id, ride)
    await _create(engine, test_user.id, test_taxi.id, second_route.id, ride)
    await db_session.commit()


@pytest.mark.asyncio
async def test_race_lost_after_precheck(db_session, test_user, other_user, test_taxi, test_route):
    """A booking that passes the conflict check but loses the insert race is a conflict."""
    user_id, other_id = test_user.id, other_user.id
    taxi_id, route_id = test_taxi.id, test_route.id
    ride = FIXED_NOW + timedelta(days=2)

    async with TestSessionLocal() as first:
        await _create(make_engine(first), user_id, taxi_id, route_id, ride)
        await first.commit()

    async with TestSessionLocal() as second:
        store = SkipFirstCheckStore(second)
        engine = make_engine(second, bookings=store)
        with pytest.raises(ConflictError) as exc_info:
            await _create(engine, other_id, taxi_id, route_id, ride)
        assert exc_info.value.retryable is False
        assert store.checks == 1
        assert engine.drain_events() == []

    assert await _confirmed_count(route_id) == 1


@pytest.mark.asyncio
async def test_last_microsecond_of_day_holds_the_slot(db_session, test_user, other_user, test_taxi, test_route):
    """A ride just before midnight blocks the rest of its day, in booking and in search."""
    engine = make_engine(db_session)
    late = FIXED_NOW.replace(day=21, hour=23, minute=59, second=59, microsecond=999500)

    booked = await _create(engine, test_user.id, test_taxi.id, test_route.id, late)
    await db_session.commit()
    assert booked.ride_day == date(2026, 10, 21)

    results = await engine.search_availability("Mumbai", "Pune", late.date())
    assert results == []

    with pytest.raises(ConflictError) as exc_info:
        await _create(engine, other_user.id, test_taxi.id, test_route.id, late.replace(hour=12, minute=0))
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
async def test_race_lost_on_last_microsecond_is_a_conflict(db_session, test_user, other_user, test_taxi, test_route):
    """The slot index firing maps straight to a conflict, never to a code retry."""
    user_id, other_id = test_user.id, other_user.id
    taxi_id, route_id = test_taxi.id, test_route.id
    late = FIXED_NOW.replace(day=21, hour=23, minute=59, second=59, microsecond=999500)

    async with TestSessionLocal() as first:
        await _create(make_engine(first), user_id, taxi_id, route_id, late)
        await first.commit()

    calls = []

    def counting_codes(moment, prefix):
        calls.append(moment)
        return f"TAXIRACE{len(calls)}"

    async with TestSessionLocal() as second:
        engine = make_engine(second, bookings=SkipFirstCheckStore(second), code_factory=counting_codes)
        with pytest.raises(ConflictError):
            await _create(engine, other_id, taxi_id, route_id, late.replace(hour=6, minute=0, microsecond=0))

    assert len(calls) == 1
    assert await _confirmed_count(route_id) == 1


@pytest.mark.parametrize(
    "message, key",
    [
        ("UNIQUE constraint failed: bookings.taxi_id, bookings.route_id, bookings.ride_day", SLOT_KEY),
        ('duplicate key value violates unique constraint "uq_bookings_confirmed_slot"', SLOT_KEY),
        ("UNIQUE constraint failed: bookings.booking_code", BOOKING_CODE_KEY),
        ('duplicate key value violates unique constraint "bookings_booking_code_key"', BOOKING_CODE_KEY),
        ("FOREIGN KEY constraint failed", None),
        ('insert or update on table "bookings" violates foreign key constraint "bookings_user_id_fkey"', None),
    ],
)
def test_violated_unique_key(message, key):
    error = IntegrityError("INSERT INTO bookings", {}, Exception(message))
    assert violated_unique_key(error) == key


@pytest.mark.asyncio
async def test_concurrent_bookings_single_winner(db_session, test_user, other_user, test_taxi, test_route):
    """Two concurrent requests for one slot: exactly one booking is confirmed."""
    user_ids = [test_user.id, other_user.id]
    taxi_id, route_id = test_taxi.id, test_route.id
    ride = FIXED_NOW + timedelta(days=2)

    async def attempt(user_id):
        async with TestSessionLocal() as session:
            try:
                booking = await _create(make_engine(session), user_id, taxi_id, route_id, ride)
                await session.commit()
                return booking.booking_code
            except ConflictError as e:
                return e

    results = await asyncio.gather(*(attempt(uid) for uid in user_ids))

    winners = [r for r in results if isinstance(r, str)]
    losers = [r for r in results if isinstance(r, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert await _confirmed_count(route_id) == 1


@pytest.mark.asyncio
async def test_booking_code_collision_retries(db_session, test_user, test_taxi, test_route):
    """A duplicate booking code is retried with a fresh one."""
    user_id, taxi_id, route_id = test_user.id, test_taxi.id, test_route.id

    async with TestSessionLocal() as session:
        await _create(
            make_engine(session, code_factory=lambda moment, prefix: "TAXIDUPLICATE"),
            user_id, taxi_id, route_id, FIXED_NOW + timedelta(days=2),
        )
        await session.commit()

    codes = iter(["TAXIDUPLICATE", "TAXIFRESHCODE"])
    async with TestSessionLocal() as session:
        engine = make_engine(session, code_factory=lambda moment, prefix: next(codes))
        booking = await _create(engine, user_id, taxi_id, route_id, FIXED_NOW + timedelta(days=3))
        await session.commit()
        assert booking.booking_code == "TAXIFRESHCODE"


@pytest.mark.asyncio
async def test_booking_code_collision_exhausts_retries(db_session, test_user, test_taxi, test_route):
    user_id, taxi_id, route_id = test_user.id, test_taxi.id, test_route.id

    async with TestSessionLocal() as session:
        await _create(
            make_engine(session, code_factory=lambda moment, prefix: "TAXIDUPLICATE"),
            user_id, taxi_id, route_id, FIXED_NOW + timedelta(days=2),
        )
        await session.commit()

    calls = []

    def always_duplicate(moment, prefix):
        calls.append(moment)
        return "TAXIDUPLICATE"

    async with TestSessionLocal() as session:
        engine = make_engine(session, code_factory=always_duplicate, max_retry_attempts=3)
        with pytest.raises(BookingCodeCollisionError) as exc_info:
            await _create(engine, user_id, taxi_id, route_id, FIXED_NOW + timedelta(days=3))

    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 409
    assert len(calls) == 3


# ---------------------------------------------------------------------------
# cancel_booking
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "hours_ahead, percentage, refund",
    [
        (30, 90, Decimal("900.00")),
        (24, 90, Decimal("900.00")),
        (18, 50, Decimal("500.00")),
        (8, 25, Decimal("250.00")),
        (3, 0, Decimal("0.00")),
    ],
)
@pytest.mark.asyncio
async def test_cancel_refund_tiers(db_session, test_user, test_taxi, test_route, hours_ahead, percentage, refund):
    engine = make_engine(db_session)
    booking = await _create(
        engine, test_user.id, test_taxi.id, test_route.id, FIXED_NOW + timedelta(hours=hours_ahead)
    )
    engine.drain_events()

    result = await engine.cancel_booking(booking.booking_code, test_user.id, "user", "Change of plans")
    await db_session.commit()

    assert result.refund_percentage == percentage
    assert result.refund_amount == refund
    assert result.booking.booking_status == "cancelled"
    assert result.booking.cancellation_reason == "Change of plans"
    assert result.booking.cancelled_at == FIXED_NOW
    assert result.booking.refund_amount == refund
    expected_payment = "refunded" if refund > 0 else "pending"
    assert result.booking.payment_status == expected_payment

    events = engine.drain_events()
    assert len(events) == 1
    assert isinstance(events[0], BookingCancelled)
    assert events[0].refund_percentage == percentage


@pytest.mark.asyncio
async def test_cancel_past_booking(db_session, test_user, test_taxi, test_route):
    engine = make_engine(db_session)
    booking = await _create(engine, test_user.id, test_taxi.id, test_route.id, FIXED_NOW - timedelta(hours=1))

    with pytest.raises(PastBookingError):
        await engine.cancel_booking(booking.booking_code, test_user.id, "user")


@pytest.mark.asyncio
async def test_cancel_twice(db_session, test_user, test_taxi, test_route):
    engine = make_engine(db_session)
    booking = await _create(engine, test_user.id, test_taxi.id, test_route.id, FIXED_NOW + timedelta(days=2))
    await engine.cancel_booking(booking.booking_code, test_user.id, "user")

    with pytest.raises(AlreadyCancelledError):
        await engine.cancel_booking(booking.booking_code, test_user.id, "user")


@pytest.mark.asyncio
async def test_cancelled_slot_can_be_rebooked(db_session, test_user, other_user, test_taxi, test_route):
    engine = make_engine(db_session)
    ride = FIXED_NOW + timedelta(days=2)
    booking = await _create(engine, test_user.id, test_taxi.id, test_route.id, ride)
    await engine.cancel_booking(booking.booking_code, test_user.id, "user")
    await db_session.commit()

    rebooked = await _create(engine, other_user.id, test_taxi.id, test_route.id, ride)
    await db_session.commit()
    assert rebooked.booking_status == "confirmed"


# ---------------------------------------------------------------------------
# process_payment
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_payment_generates_transaction_id(db_session, test_user, test_taxi, test_route):
    engine = make_engine(db_session)
    booking = await _create(engine, test_user.id, test_taxi.id, test_route.id, FIXED_NOW + timedelta(days=2))
    engine.drain_events()

    paid = await engine.process_payment(booking.booking_code, test_user.id, "card")
    expected_txn = f"TXN{int(FIXED_NOW.timestamp() * 1000)}"
    assert paid.payment_status == "completed"
    assert paid.transaction_id == expected_txn
    assert engine.drain_events() == [
        PaymentCompleted(booking_code=booking.booking_code, payment_method="card", transaction_id=expected_txn)
    ]

    with pytest.raises(AlreadyPaidError):
        await engine.process_payment(booking.booking_code, test_user.id, "card")


# ---------------------------------------------------------------------------
# search_availability
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_search_requires_all_params(db_session):
    engine = make_engine(db_session)
    with pytest.raises(ValidationError):
        await engine.search_availability("Mumbai", "", date(2026, 10, 25))
    with pytest.raises(ValidationError):
        await engine.search_availability("Mumbai", "Pune", None)


@pytest.mark.asyncio
async def test_search_excludes_booked_routes(db_session, test_user, test_taxi, test_route):
    suv = await create_taxi(db_session, name="Highway King", vehicle_number="MH01XY9999", taxi_type="SUV", capacity=7)
    suv_route = await create_route(db_session, suv, departure_time="09:00")
    engine = make_engine(db_session)
    ride = FIXED_NOW + timedelta(days=2)

    await _create(engine, test_user.id, test_taxi.id, test_route.id, ride)
    await db_session.commit()

    results = await engine.search_availability("Mumbai", "Pune", ride.date())
    assert [r.route.id for r in results] == [suv_route.id]
    assert results[0].is_available is True
    assert results[0].available_seats == 7

    next_day = await engine.search_availability("Mumbai", "Pune", ride.date() + timedelta(days=1))
    assert {r.route.id for r in next_day} == {test_route.id, suv_route.id}


@pytest.mark.asyncio
async def test_search_case_insensitive_substring(db_session, test_route):
    engine = make_engine(db_session)
    results = await engine.search_availability("mum", "PUN", date(2026, 10, 25))
    assert [r.route.id for r in results] == [test_route.id]


@pytest.mark.asyncio
async def test_search_exact_mode(db_session, test_route):
    engine = make_engine(db_session, search_match_mode="exact")
    assert await engine.search_availability("mum", "pune", date(2026, 10, 25)) == []
    results = await engine.search_availability("MUMBAI", "pune", date(2026, 10, 25))
    assert [r.route.id for r in results] == [test_route.id]


@pytest.mark.asyncio
async def test_search_skips_inactive_routes_and_taxis(db_session, test_taxi, test_route):
    parked = await create_taxi(db_session, vehicle_number="MH02AA0002", is_active=False)
    await create_route(db_session, parked)
    await create_route(db_session, test_taxi, departure_time="18:00", is_active=False)

    engine = make_engine(db_session)
    results = await engine.search_availability("Mumbai", "Pune", date(2026, 10, 25))
    assert [r.route.id for r in results] == [test_route.id]


@pytest.mark.asyncio
async def test_search_wildcards_are_literal(db_session, test_route):
    engine = make_engine(db_session)
    assert await engine.search_availability("%", "Pune", date(2026, 10, 25)) == []
