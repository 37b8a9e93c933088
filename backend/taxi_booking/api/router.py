"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from taxi_booking.api.routes import auth, taxis, bookings

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(taxis.router)
api_router.include_router(bookings.router)
