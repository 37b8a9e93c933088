"""
Booking endpoints. All require authentication.

Write endpoints commit the request transaction themselves and only then
publish the events the engine produced, so subscribers never see
uncommitted state.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxi_booking.api.deps import get_booking_engine, get_event_bus
from taxi_booking.core.events import EventBus
from taxi_booking.core.metrics import booking_latency
from taxi_booking.core.security import get_current_user
from taxi_booking.core.logging import get_logger
from taxi_booking.db.base import utcnow
from taxi_booking.db.session import get_db
from taxi_booking.models.user import User
from taxi_booking.schemas.booking import (
    BookingCancel,
    BookingCancelResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    PaymentRequest,
)
from taxi_booking.schemas.review import ReviewCreate, ReviewResponse
from taxi_booking.services.booking_engine import BookingEngine, PassengerContact, StopPoint
from taxi_booking.services.review_service import submit_review

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _stop(point) -> StopPoint:
    if point is None:
        return StopPoint()
    return StopPoint(location=point.location, time=point.time)


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
    bus: EventBus = Depends(get_event_bus),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a taxi on a route for a ride date.

    Fails with 409 if the taxi+route is already booked that day, including
    when a concurrent request wins the slot first.
    """
    user_id = current_user.id
    with booking_latency.time():
        booking = await engine.create_booking(
            user_id=user_id,
            taxi_id=booking_data.taxi_id,
            route_id=booking_data.route_id,
            ride_date=booking_data.ride_date,
            passenger_count=booking_data.passenger_count,
            passenger_contact=PassengerContact(
                name=booking_data.passenger_name,
                phone=booking_data.passenger_phone,
            ),
            pickup_location=_stop(booking_data.pickup_location),
            drop_location=_stop(booking_data.drop_location),
        )
    await db.commit()
    await bus.publish_all(engine.drain_events())
    return BookingResponse.from_booking(booking)


@router.get("/user/{user_id}", response_model=BookingListResponse)
async def list_user_bookings(
    user_id: int,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """Bookings of a user, newest first. Users see their own; admins see anyone's."""
    bookings = await engine.list_user_bookings(user_id, current_user.id, current_user.role)
    return BookingListResponse(
        count=len(bookings),
        bookings=[BookingResponse.from_booking(b) for b in bookings],
    )


@router.get("/{booking_code}", response_model=BookingResponse)
async def get_booking(
    booking_code: str,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
):
    booking = await engine.get_booking(booking_code, current_user.id, current_user.role)
    return BookingResponse.from_booking(booking)


@router.put("/{booking_code}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_code: str,
    cancel_data: Optional[BookingCancel] = None,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
    bus: EventBus = Depends(get_event_bus),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking; the refund depends on how long before the ride it happens."""
    result = await engine.cancel_booking(
        booking_code,
        current_user.id,
        current_user.role,
        cancel_data.reason if cancel_data else None,
    )
    await db.commit()
    await bus.publish_all(engine.drain_events())
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking=BookingResponse.from_booking(result.booking),
        refund_amount=result.refund_amount,
        refund_percentage=result.refund_percentage,
    )


@router.post("/{booking_code}/payment", response_model=BookingResponse)
async def process_payment(
    booking_code: str,
    payment: PaymentRequest,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
    bus: EventBus = Depends(get_event_bus),
    db: AsyncSession = Depends(get_db),
):
    """Mark the booking as paid. No payment gateway is involved."""
    method = payment.payment_method.value if payment.payment_method else None
    booking = await engine.process_payment(
        booking_code, current_user.id, method, payment.transaction_id
    )
    await db.commit()
    await bus.publish_all(engine.drain_events())
    return BookingResponse.from_booking(booking)


@router.post(
    "/{booking_code}/review",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
async def review_booking(
    booking_code: str,
    review_data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    bus: EventBus = Depends(get_event_bus),
    db: AsyncSession = Depends(get_db),
):
    review, event = await submit_review(
        db,
        booking_code,
        current_user.id,
        review_data.rating,
        review_data.comment,
        now=utcnow(),
    )
    await db.commit()
    await bus.publish(event)
    return review
