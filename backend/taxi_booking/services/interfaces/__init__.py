"""
Service interfaces for dependency inversion.
The booking engine only sees these; SQL implementations live in
taxi_booking.infrastructure.
"""

from .stores import BookingStore, CatalogStore, DuplicateKeyError, IdentityStore

__all__ = ['BookingStore', 'CatalogStore', 'DuplicateKeyError', 'IdentityStore']
