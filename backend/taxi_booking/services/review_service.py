"""
Ride reviews. A user can review the taxi of each of their rides once,
after the ride date has passed.
"""

from datetime import datetime
from typing import Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taxi_booking.core.events import ReviewSubmitted
from taxi_booking.core.exceptions import (
    AlreadyCancelledError,
    AlreadyReviewedError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from taxi_booking.core.logging import get_logger
from taxi_booking.infrastructure.sql_stores import SqlBookingStore
from taxi_booking.models.review import Review

logger = get_logger(__name__)


async def submit_review(
    db: AsyncSession,
    booking_code: str,
    requester_id: int,
    rating: int,
    comment: str,
    now: datetime,
) -> Tuple[Review, ReviewSubmitted]:
    """
    Store a review for the booking's taxi.

    Returns the review and the ReviewSubmitted event to publish once the
    transaction has committed.
    """
    booking = await SqlBookingStore(db).find_by_id(booking_code)
    if booking is None:
        raise NotFoundError("Booking not found")

    if booking.user_id != requester_id:
        raise AuthorizationError("Not authorized to review this booking")

    if booking.is_cancelled:
        raise AlreadyCancelledError("Cannot review a cancelled booking")

    if booking.booking_status != "completed" and booking.ride_date > now:
        raise ValidationError("You can review a ride only after it has taken place")

    existing = await db.execute(select(Review.id).where(Review.booking_id == booking.id))
    if existing.scalar_one_or_none() is not None:
        raise AlreadyReviewedError()

    review = Review(
        user_id=requester_id,
        taxi_id=booking.taxi_id,
        booking_id=booking.id,
        rating=rating,
        comment=comment.strip(),
    )
    db.add(review)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise AlreadyReviewedError()
    await db.refresh(review)

    logger.info(
        "review_submitted",
        review_id=review.id,
        booking_code=booking_code,
        taxi_id=review.taxi_id,
        rating=rating,
    )
    return review, ReviewSubmitted(review_id=review.id, taxi_id=review.taxi_id, rating=rating)
