"""
Error taxonomy for the booking engine.

Every error carries a stable `kind` and the HTTP status the presentation
layer maps it to. Services raise these; `register_exception_handlers`
renders them as JSON.
"""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from taxi_booking.core.logging import get_logger

logger = get_logger(__name__)


class BookingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "booking_error"
    retryable = False
    default_message = "Booking request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "retryable": self.retryable}


class ValidationError(BookingError):
    kind = "validation_error"
    default_message = "Please provide all required booking details"


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"
    default_message = "Resource not found"


class ConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    kind = "conflict"
    default_message = "This taxi is already booked for the selected date and route"


class BookingCodeCollisionError(ConflictError):
    """Raised when every generated booking code collided with an existing one."""

    retryable = True
    default_message = "Could not allocate a booking code. Please try again."


class CapacityError(BookingError):
    kind = "capacity_exceeded"
    default_message = "Passenger count exceeds taxi capacity"


class AuthorizationError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    kind = "forbidden"
    default_message = "Not authorized to access this booking"


class AlreadyCancelledError(BookingError):
    kind = "already_cancelled"
    default_message = "Booking is already cancelled"


class AlreadyPaidError(BookingError):
    kind = "already_paid"
    default_message = "Payment already completed"


class PastBookingError(BookingError):
    kind = "past_booking"
    default_message = "Cannot cancel past bookings"


class AlreadyReviewedError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    kind = "already_reviewed"
    default_message = "This booking has already been reviewed"


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    logger.info(
        "booking_error",
        kind=exc.kind,
        status_code=exc.status_code,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
