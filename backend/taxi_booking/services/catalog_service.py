"""
Catalog reads: featured taxis and taxi details with their active routes.
"""

from typing import List, Tuple

from taxi_booking.core.exceptions import NotFoundError
from taxi_booking.models.route import Route
from taxi_booking.models.taxi import Taxi
from taxi_booking.services.interfaces.stores import CatalogStore


async def get_featured_taxis(catalog: CatalogStore, limit: int) -> List[Taxi]:
    """Active, approved taxis, best rated first, then newest."""
    return await catalog.list_featured_taxis(limit)


async def get_taxi_details(catalog: CatalogStore, taxi_id: int) -> Tuple[Taxi, List[Route]]:
    taxi = await catalog.find_taxi_by_id(taxi_id)
    if taxi is None:
        raise NotFoundError("Taxi not found")
    routes = await catalog.list_active_routes_for_taxi(taxi_id)
    return taxi, routes
