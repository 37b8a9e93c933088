"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class PaymentMethod(str, Enum):
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"
    WALLET = "wallet"
    CASH = "cash"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


_TIME = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"


class StopPointIn(BaseModel):
    location: Optional[str] = Field(None, max_length=255)
    time: Optional[str] = Field(None, pattern=_TIME)


class BookingCreate(BaseModel):
    taxi_id: int = Field(..., gt=0)
    route_id: int = Field(..., gt=0)
    ride_date: datetime
    passenger_count: int = Field(..., ge=1, le=7)
    passenger_name: str = Field(..., min_length=1, max_length=100)
    passenger_phone: str = Field(..., min_length=5, max_length=20)
    pickup_location: Optional[StopPointIn] = None
    drop_location: Optional[StopPointIn] = None


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class PaymentRequest(BaseModel):
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = Field(None, max_length=64)


class StopPointOut(BaseModel):
    location: Optional[str]
    time: Optional[str]


class BookingResponse(BaseModel):
    booking_code: str
    user_id: int
    taxi_id: int
    route_id: int
    ride_date: datetime
    passenger_count: int
    passenger_name: str
    passenger_phone: str
    pickup_location: StopPointOut
    drop_location: StopPointOut
    total_amount: Decimal
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod]
    transaction_id: Optional[str]
    booking_status: BookingStatus
    cancellation_reason: Optional[str]
    cancelled_at: Optional[datetime]
    refund_amount: Decimal
    created_at: datetime

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        return cls(
            booking_code=booking.booking_code,
            user_id=booking.user_id,
            taxi_id=booking.taxi_id,
            route_id=booking.route_id,
            ride_date=booking.ride_date,
            passenger_count=booking.passenger_count,
            passenger_name=booking.passenger_name,
            passenger_phone=booking.passenger_phone,
            pickup_location=StopPointOut(location=booking.pickup_location, time=booking.pickup_time),
            drop_location=StopPointOut(location=booking.drop_location, time=booking.drop_time),
            total_amount=booking.total_amount,
            payment_status=booking.payment_status,
            payment_method=booking.payment_method,
            transaction_id=booking.transaction_id,
            booking_status=booking.booking_status,
            cancellation_reason=booking.cancellation_reason,
            cancelled_at=booking.cancelled_at,
            refund_amount=booking.refund_amount,
            created_at=booking.created_at,
        )


class BookingListResponse(BaseModel):
    count: int
    bookings: List[BookingResponse]


class BookingCancelResponse(BaseModel):
    message: str
    booking: BookingResponse
    refund_amount: Decimal
    refund_percentage: int
