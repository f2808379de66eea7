"""
API v1 router setup
"""
from fastapi import APIRouter

from agenda.api.v1.dashboard import appointments

api_v1_router = APIRouter()

# ============================================================================
# DASHBOARD ROUTES (acting-as context required)
# ============================================================================
api_v1_router.include_router(
    appointments.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)
