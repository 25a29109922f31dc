"""
FastAPI Videos Router for ClipCast

- GET /{video_id} - Fetch a video record owned by the caller
"""

from fastapi import APIRouter, Depends

from app.api.v1.upload import ERROR_RESPONSES, get_video_repository
from app.core.auth import get_current_user_id
from app.core.exceptions import Forbidden, NotFound
from app.models.video import Video
from app.services.record_service import VideoRepository


router = APIRouter(tags=["videos"], responses=ERROR_RESPONSES)


@router.get(
    "/{video_id}",
    response_model=Video,
    response_model_by_alias=False,
    summary="Get a video record",
)
async def get_video(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: VideoRepository = Depends(get_video_repository),
) -> Video:
    """Return the video record, including its thumbnail and video URLs."""
    video = await repository.get_video(video_id)
    if video is None:
        raise NotFound(f"Video {video_id} not found")
    if not video.is_owned_by(user_id):
        raise Forbidden("You do not have permission to view this video")
    return video
