"""API route modules."""

from fastapi import APIRouter

from checkpulse.entrypoints.api.routes.checkins import router as checkins_router
from checkpulse.entrypoints.api.routes.roster import router as roster_router

# Create main API router
api_router = APIRouter()

api_router.include_router(checkins_router)
api_router.include_router(roster_router)

__all__ = ["api_router"]
