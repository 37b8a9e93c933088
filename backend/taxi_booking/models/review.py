"""
Review left by a user for the taxi of one of their rides.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint, Index

from taxi_booking.db.base import Base, TimestampMixin


class Review(Base, TimestampMixin):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    taxi_id = Column(Integer, ForeignKey("taxis.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=False)

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="check_review_rating"),
        Index("ix_reviews_taxi_created", "taxi_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, taxi={self.taxi_id}, rating={self.rating})>"
