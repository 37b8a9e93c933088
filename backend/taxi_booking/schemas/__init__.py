from taxi_booking.schemas.user import UserCreate, UserResponse, UserLogin, Token
from taxi_booking.schemas.taxi import (
    TaxiResponse, RouteResponse, TaxiDetailResponse, TaxiListResponse,
    RouteAvailabilityResponse, SearchResponse,
)
from taxi_booking.schemas.booking import (
    BookingCreate, BookingCancel, PaymentRequest,
    BookingResponse, BookingListResponse, BookingCancelResponse,
)
from taxi_booking.schemas.review import ReviewCreate, ReviewResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "TaxiResponse", "RouteResponse", "TaxiDetailResponse", "TaxiListResponse",
    "RouteAvailabilityResponse", "SearchResponse",
    "BookingCreate", "BookingCancel", "PaymentRequest",
    "BookingResponse", "BookingListResponse", "BookingCancelResponse",
    "ReviewCreate", "ReviewResponse",
]
