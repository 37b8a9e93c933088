"""
Store interfaces consumed by the booking engine.
Allows swapping the persistence layer without changing business rules.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from taxi_booking.models.booking import Booking
from taxi_booking.models.route import Route
from taxi_booking.models.taxi import Taxi
from taxi_booking.models.user import User
from taxi_booking.services.day_window import DayWindow


SLOT_KEY = "slot"
BOOKING_CODE_KEY = "booking_code"


class DuplicateKeyError(Exception):
    """
    A unique index rejected an insert.

    `key` names the index that fired: SLOT_KEY when a confirmed booking
    already holds the taxi, route and day, BOOKING_CODE_KEY when the
    generated code is taken. The store has already rolled back its
    transaction when this is raised.
    """

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class IdentityStore(ABC):

    @abstractmethod
    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[User]:
        pass


class CatalogStore(ABC):
    """Read-only view of taxis and routes."""

    @abstractmethod
    async def find_taxi_by_id(self, taxi_id: int) -> Optional[Taxi]:
        pass

    @abstractmethod
    async def find_route_by_id(self, route_id: int) -> Optional[Route]:
        pass

    @abstractmethod
    async def find_active_routes(
        self, source: str, destination: str, match_mode: str = "substring"
    ) -> List[Route]:
        """
        Active routes on active taxis matching source/destination.

        match_mode "substring" matches case-insensitively anywhere in the
        name; "exact" matches the whole name case-insensitively.
        """
        pass

    @abstractmethod
    async def list_featured_taxis(self, limit: int) -> List[Taxi]:
        pass

    @abstractmethod
    async def list_active_routes_for_taxi(self, taxi_id: int) -> List[Route]:
        pass


class BookingStore(ABC):

    @abstractmethod
    async def find_conflicting(
        self, taxi_id: int, route_id: int, window: DayWindow, status: str = "confirmed"
    ) -> Optional[Booking]:
        pass

    @abstractmethod
    async def find_confirmed_for_route(self, route_id: int, window: DayWindow) -> Optional[Booking]:
        pass

    @abstractmethod
    async def insert(self, booking: Booking) -> Booking:
        """Persist a new booking. Raises DuplicateKeyError when a unique index rejects it."""
        pass

    @abstractmethod
    async def find_by_id(self, booking_code: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: int) -> List[Booking]:
        pass
