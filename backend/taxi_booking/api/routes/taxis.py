"""
Public taxi endpoints: featured list, availability search (cached in Redis),
and taxi details.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from taxi_booking.api.deps import get_booking_engine, get_catalog_store
from taxi_booking.core.config import get_settings
from taxi_booking.core.logging import get_logger
from taxi_booking.infrastructure.sql_stores import SqlCatalogStore
from taxi_booking.schemas.taxi import (
    RouteAvailabilityResponse,
    RouteResponse,
    SearchResponse,
    TaxiDetailResponse,
    TaxiListResponse,
    TaxiResponse,
)
from taxi_booking.services.booking_engine import BookingEngine
from taxi_booking.services.cache_service import get_cached_search, set_cached_search
from taxi_booking.services.catalog_service import get_featured_taxis, get_taxi_details

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(prefix="/taxis", tags=["Taxis"])


@router.get("/", response_model=TaxiListResponse)
async def featured_taxis(
    limit: int = Query(settings.FEATURED_TAXIS_LIMIT, ge=1, le=50),
    catalog: SqlCatalogStore = Depends(get_catalog_store),
):
    """Featured taxis for the home page, best rated first."""
    taxis = await get_featured_taxis(catalog, limit)
    return TaxiListResponse(
        count=len(taxis),
        taxis=[TaxiResponse.model_validate(t) for t in taxis],
    )


@router.get("/search", response_model=SearchResponse)
async def search_taxis(
    source: Optional[str] = Query(None, max_length=100),
    destination: Optional[str] = Query(None, max_length=100),
    ride_date: Optional[date] = Query(None, alias="date"),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """
    Routes from source to destination that are still free on the given date.
    Booked routes are left out of the results rather than shown as sold out.
    Results are cached in Redis until the next booking or cancellation.
    """
    if source and destination and ride_date:
        cached = await get_cached_search(source, destination, ride_date.isoformat())
        if cached:
            logger.info("search_cache_hit", source=source, destination=destination)
            cached["cached"] = True
            return SearchResponse(**cached)

    results = await engine.search_availability(source, destination, ride_date)

    routes = [
        RouteAvailabilityResponse(
            **RouteResponse.model_validate(r.route).model_dump(),
            taxi=TaxiResponse.model_validate(r.taxi),
            is_available=r.is_available,
            available_seats=r.available_seats,
        )
        for r in results
    ]
    response = SearchResponse(
        source=source,
        destination=destination,
        ride_date=ride_date,
        count=len(routes),
        routes=routes,
    )

    await set_cached_search(
        source, destination, ride_date.isoformat(), response.model_dump(mode="json")
    )
    return response


@router.get("/{taxi_id}", response_model=TaxiDetailResponse)
async def taxi_details(
    taxi_id: int,
    catalog: SqlCatalogStore = Depends(get_catalog_store),
):
    taxi, routes = await get_taxi_details(catalog, taxi_id)
    return TaxiDetailResponse(
        taxi=TaxiResponse.model_validate(taxi),
        routes=[RouteResponse.model_validate(r) for r in routes],
    )
