"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from booking_engine.api.routes import assessments, availability, blacklist, bookings, catalog

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(catalog.router)
api_router.include_router(bookings.router)
api_router.include_router(assessments.router)
api_router.include_router(blacklist.router)
api_router.include_router(availability.router)
