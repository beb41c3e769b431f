"""
Inkbook — API v1 Router
Aggregates all endpoint routers into a single v1 router.
"""

from fastapi import APIRouter

from inkbook.api.v1.endpoints.bookings import router as bookings_router

api_v1_router = APIRouter()

api_v1_router.include_router(bookings_router)
