"""
Keeps taxis.rating and taxis.review_count in step with the reviews table.

Subscribed to ReviewSubmitted; runs after the review transaction commits,
in its own session, and recomputes from scratch so repeated or reordered
events converge on the same numbers.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taxi_booking.core.events import EventBus, ReviewSubmitted
from taxi_booking.core.logging import get_logger
from taxi_booking.models.review import Review
from taxi_booking.models.taxi import Taxi

logger = get_logger(__name__)


def round_rating(average) -> float:
    """One decimal place, halves rounded up (4.25 -> 4.3)."""
    return float(Decimal(str(average)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class RatingAggregator:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def recompute(self, taxi_id: int) -> tuple:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.avg(Review.rating), func.count(Review.id)).where(Review.taxi_id == taxi_id)
            )
            average, count = result.one()
            rating = round_rating(average) if count else 0.0

            await session.execute(
                update(Taxi).where(Taxi.id == taxi_id).values(rating=rating, review_count=count)
            )
            await session.commit()

        logger.info("taxi_rating_recomputed", taxi_id=taxi_id, rating=rating, review_count=count)
        return rating, count

    async def on_review_submitted(self, event: ReviewSubmitted) -> None:
        await self.recompute(event.taxi_id)

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(ReviewSubmitted, self.on_review_submitted)
