"""
Pydantic schemas for ride reviews.
"""

from datetime import datetime
from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=500)


class ReviewResponse(BaseModel):
    id: int
    user_id: int
    taxi_id: int
    booking_id: int
    rating: int
    comment: str
    created_at: datetime

    model_config = {"from_attributes": True}
