"""
API v1 router setup
Public routes only: invitees browse availability, book, and vote without auth
"""
from fastapi import APIRouter

from app.api.v1.public import availability, bookings, polls

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (No authentication required)
# ============================================================================
api_v1_router.include_router(
    availability.router,
    prefix="/public",
    tags=["Public"]
)

api_v1_router.include_router(
    bookings.router,
    prefix="/public",
    tags=["Public"]
)

api_v1_router.include_router(
    polls.router,
    prefix="/public",
    tags=["Public"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """API information and available public endpoints."""
    return {
        "version": "1.0",
        "endpoints": {
            "availability": "/api/v1/public/booking-links/{link_id}/availability",
            "booking_link": "/api/v1/public/booking/{username}/{slug}",
            "bookings": "/api/v1/public/booking-links/{link_id}/bookings",
            "poll": "/api/v1/public/polls/{poll_id}",
            "votes": "/api/v1/public/polls/{poll_id}/votes",
        }
    }
