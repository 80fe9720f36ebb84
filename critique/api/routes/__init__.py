"""API route registration."""

from fastapi import APIRouter

from critique.api.routes import blobs, health, screenshots, session

# All storage and review endpoints live under /api
api_router = APIRouter(prefix="/api")

api_router.include_router(blobs.router)
api_router.include_router(screenshots.router)
api_router.include_router(session.router)

__all__ = ["api_router", "health"]
