"""
ClipCast API v1 Router Aggregator.

Combines the v1 endpoint routers into a single APIRouter that the main
application mounts under /api/v1.

Router Structure:
    - /upload: Thumbnail and video upload endpoints
    - /videos: Video record lookup
"""

from fastapi import APIRouter

from app.api.v1.upload import router as upload_router
from app.api.v1.videos import router as videos_router


api_router = APIRouter()

api_router.include_router(upload_router, prefix="/upload")
api_router.include_router(videos_router, prefix="/videos")


__all__ = ["api_router"]
