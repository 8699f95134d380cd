"""
API v1 router setup
Organized into: public (business API token) and dashboard (operator JWT) routes
"""
from fastapi import APIRouter

from slotbook.api.v1.dashboard import appointments
from slotbook.api.v1.public import booking

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (business API token required)
# ============================================================================
api_v1_router.include_router(
    booking.router,
    prefix="/public",
    tags=["Public"]
)

# ============================================================================
# DASHBOARD ROUTES (JWT authentication required)
# ============================================================================
api_v1_router.include_router(
    appointments.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """
    API information and available endpoints.
    Shows the structure of all API routes organized by authentication type.
    """
    return {
        "version": "1.0",
        "authentication": {
            "public": "Business API token required (Bearer bk_...)",
            "dashboard": "JWT Bearer token required (operator session)"
        }
    }
