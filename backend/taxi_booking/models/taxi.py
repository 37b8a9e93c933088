"""
Taxi model: catalog reference data read by the booking engine.

Key design decisions:
- `capacity` bounds passenger_count on every booking (CHECK 1..10)
- `rating`/`review_count` are denormalized and only written by the
  rating aggregator in response to ReviewSubmitted events
- `price_per_km` is informational; bookings are priced flat per route
"""

from sqlalchemy import Column, Integer, String, Boolean, Numeric, Float, JSON, CheckConstraint, Index
from sqlalchemy.orm import relationship, validates

from taxi_booking.db.base import Base, TimestampMixin


class Taxi(Base, TimestampMixin):
    __tablename__ = "taxis"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    vehicle_number = Column(String(20), unique=True, nullable=False)
    taxi_type = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False, default=4)
    price_per_km = Column(Numeric(10, 2), nullable=False)
    driver_name = Column(String(100), nullable=False)
    driver_phone = Column(String(20), nullable=False)
    amenities = Column(JSON, nullable=False, default=list)
    operator = Column(String(100), nullable=False)
    rating = Column(Float, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_approved = Column(Boolean, nullable=False, default=True)

    routes = relationship("Route", back_populates="taxi", lazy="raise")

    __table_args__ = (
        CheckConstraint("capacity >= 1 AND capacity <= 10", name="check_taxi_capacity"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="check_taxi_rating"),
        CheckConstraint("review_count >= 0", name="check_taxi_review_count"),
        CheckConstraint(
            "taxi_type IN ('Mini', 'Sedan', 'SUV', 'Luxury', 'Premium')",
            name="check_taxi_type",
        ),
        # Featured listing: best rated first
        Index("ix_taxis_active_rating", "is_active", "rating"),
    )

    @validates("vehicle_number")
    def _normalize_vehicle_number(self, key, value):
        return value.strip().upper() if value else value

    def __repr__(self) -> str:
        return f"<Taxi(id={self.id}, vehicle={self.vehicle_number}, capacity={self.capacity})>"
