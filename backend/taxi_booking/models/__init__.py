from taxi_booking.models.user import User
from taxi_booking.models.taxi import Taxi
from taxi_booking.models.route import Route
from taxi_booking.models.booking import Booking
from taxi_booking.models.review import Review

__all__ = ["User", "Taxi", "Route", "Booking", "Review"]
