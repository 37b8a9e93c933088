"""
Post-commit domain events.

Services never trigger unrelated recomputation themselves. Route handlers
commit the request transaction first, then publish the events the service
produced; subscribers (cache invalidation, rating aggregation) react.

A failing subscriber is logged and does not affect other subscribers or the
already-committed request.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, DefaultDict, List, Type

from taxi_booking.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookingCreated:
    booking_code: str
    user_id: int
    taxi_id: int
    route_id: int
    ride_day: date


@dataclass(frozen=True)
class BookingCancelled:
    booking_code: str
    taxi_id: int
    route_id: int
    ride_day: date
    refund_percentage: int


@dataclass(frozen=True)
class PaymentCompleted:
    booking_code: str
    payment_method: str
    transaction_id: str


@dataclass(frozen=True)
class ReviewSubmitted:
    review_id: int
    taxi_id: int
    rating: int


Handler = Callable[[object], Awaitable[None]]


class EventBus:
    """In-process dispatcher for post-commit events."""

    def __init__(self):
        self._handlers: DefaultDict[Type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    async def publish(self, event: object) -> None:
        for handler in self._handlers.get(type(event), []):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "event_handler_failed",
                    event_type=type(event).__name__,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                )

    async def publish_all(self, events) -> None:
        for event in events:
            await self.publish(event)
