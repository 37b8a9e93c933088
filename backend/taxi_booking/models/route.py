"""
Route model: one taxi serving a source -> destination leg at a flat price.
"""

from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship

from taxi_booking.db.base import Base, TimestampMixin


class Route(Base, TimestampMixin):
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True)
    taxi_id = Column(Integer, ForeignKey("taxis.id"), nullable=False, index=True)
    source = Column(String(100), nullable=False)
    destination = Column(String(100), nullable=False)
    departure_time = Column(String(5), nullable=False)  # HH:MM
    arrival_time = Column(String(5), nullable=False)  # HH:MM
    duration = Column(String(50), nullable=False)
    distance_km = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    offers = Column(String(255), nullable=True)
    discount = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_approved = Column(Boolean, nullable=False, default=True)

    taxi = relationship("Taxi", back_populates="routes", lazy="selectin")

    __table_args__ = (
        CheckConstraint("distance_km >= 1", name="check_route_distance"),
        CheckConstraint("price >= 0", name="check_route_price"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="check_route_discount"),
        # Search: WHERE source ~ :s AND destination ~ :d AND is_active
        Index("ix_routes_search", "source", "destination", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Route(id={self.id}, {self.source} -> {self.destination}, taxi={self.taxi_id})>"
