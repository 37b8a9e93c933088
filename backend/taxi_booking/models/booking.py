"""
Booking model representing one reservation of a taxi+route for a ride date.

Key design decisions:
- `booking_code` is the public, human-readable identifier (unique index)
- `ride_day` is the calendar day of `ride_date` in the booking timezone;
  the partial unique index on (taxi_id, route_id, ride_day) for confirmed
  rows closes the check-then-insert race between concurrent bookings
- Cancellation flips status instead of deleting, which also frees the slot
  because the index only covers confirmed rows
"""

from sqlalchemy import (
    Column, Integer, String, Date, Numeric, ForeignKey, Index, CheckConstraint, text,
)
from sqlalchemy.orm import relationship

from taxi_booking.db.base import Base, TimestampMixin, UTCDateTime

_CONFIRMED = text("booking_status = 'confirmed'")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_code = Column(String(40), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    taxi_id = Column(Integer, ForeignKey("taxis.id"), nullable=False)
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=False)

    ride_date = Column(UTCDateTime(), nullable=False)
    ride_day = Column(Date, nullable=False)
    passenger_count = Column(Integer, nullable=False)
    passenger_name = Column(String(100), nullable=False)
    passenger_phone = Column(String(20), nullable=False)
    pickup_location = Column(String(255), nullable=True)
    pickup_time = Column(String(5), nullable=True)
    drop_location = Column(String(255), nullable=True)
    drop_time = Column(String(5), nullable=True)

    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=True)
    transaction_id = Column(String(64), nullable=True)

    booking_status = Column(String(20), nullable=False, default="confirmed")
    cancellation_reason = Column(String(255), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=False, default=0)

    user = relationship("User", back_populates="bookings", lazy="raise")
    taxi = relationship("Taxi", lazy="raise")
    route = relationship("Route", lazy="raise")

    __table_args__ = (
        # One confirmed booking per taxi, route and calendar day
        Index(
            "uq_bookings_confirmed_slot",
            "taxi_id", "route_id", "ride_day",
            unique=True,
            postgresql_where=_CONFIRMED,
            sqlite_where=_CONFIRMED,
        ),
        # Ride lookups by taxi and availability lookups by route and day
        Index("ix_bookings_taxi_ride_date", "taxi_id", "ride_date"),
        Index("ix_bookings_route_ride_day", "route_id", "ride_day"),
        # "My bookings", newest first
        Index("ix_bookings_user_created", "user_id", "created_at"),
        CheckConstraint(
            "passenger_count >= 1 AND passenger_count <= 7",
            name="check_booking_passenger_count",
        ),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            "refund_amount >= 0 AND refund_amount <= total_amount",
            name="check_booking_refund_bounds",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        CheckConstraint(
            "booking_status IN ('confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.booking_status == "cancelled"

    def __repr__(self) -> str:
        return f"<Booking(code={self.booking_code}, taxi={self.taxi_id}, route={self.route_id}, status={self.booking_status})>"
