"""
Pydantic schemas for taxi, route and search responses.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class TaxiType(str, Enum):
    MINI = "Mini"
    SEDAN = "Sedan"
    SUV = "SUV"
    LUXURY = "Luxury"
    PREMIUM = "Premium"


class TaxiResponse(BaseModel):
    id: int
    name: str
    model: str
    vehicle_number: str
    taxi_type: TaxiType
    capacity: int = Field(..., ge=1, le=10)
    price_per_km: Decimal
    driver_name: str
    driver_phone: str
    amenities: List[str]
    operator: str
    rating: float = Field(..., ge=0, le=5)
    review_count: int = Field(..., ge=0)
    is_active: bool

    model_config = {"from_attributes": True}


class RouteResponse(BaseModel):
    id: int
    taxi_id: int
    source: str
    destination: str
    departure_time: str
    arrival_time: str
    duration: str
    distance_km: int
    price: Decimal
    offers: Optional[str]
    discount: int = Field(..., ge=0, le=100)

    model_config = {"from_attributes": True}


class TaxiDetailResponse(BaseModel):
    taxi: TaxiResponse
    routes: List[RouteResponse]


class TaxiListResponse(BaseModel):
    count: int
    taxis: List[TaxiResponse]


class RouteAvailabilityResponse(RouteResponse):
    taxi: TaxiResponse
    is_available: bool
    available_seats: int


class SearchResponse(BaseModel):
    source: str
    destination: str
    ride_date: date
    count: int
    routes: List[RouteAvailabilityResponse]
    cached: bool = False
