"""
Cancellation refund tiers.

hours before ride     refund
  >= 24                 90%
  >= 12                 50%
  >= 6                  25%
  < 6                    0%
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

# (minimum hours before the ride, refund percentage), highest tier first
REFUND_TIERS = (
    (24, 90),
    (12, 50),
    (6, 25),
)

CENT = Decimal("0.01")


def hours_until(ride_date: datetime, now: datetime) -> float:
    return (ride_date - now).total_seconds() / 3600


def refund_percentage(hours_before_ride: float) -> int:
    for min_hours, percentage in REFUND_TIERS:
        if hours_before_ride >= min_hours:
            return percentage
    return 0


def refund_amount(total_amount: Decimal, percentage: int) -> Decimal:
    """Exact refund, quantized to cents only at the end."""
    exact = Decimal(total_amount) * Decimal(percentage) / Decimal(100)
    return exact.quantize(CENT, rounding=ROUND_HALF_UP)
