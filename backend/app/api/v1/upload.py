"""
FastAPI Upload Router for ClipCast

One endpoint per asset kind, each attaching an uploaded file to an existing
video record owned by the caller:

- POST /thumbnail/{video_id} - multipart field ``thumbnail`` (png, jpeg, gif, webp; 10 MB)
- POST /video/{video_id} - multipart field ``video`` (mp4; 1 GB)

Both respond with the updated video record. Pipeline errors are rendered by
the application-wide UploadPipelineError handler.
"""

import logging

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from starlette.datastructures import FormData

from app.config import Settings, get_settings
from app.core.auth import get_current_user_id
from app.core.database import get_db_client
from app.core.exceptions import SizeExceeded
from app.models.video import AssetKind, Video
from app.services.probe_service import StreamProber
from app.services.publish_service import AssetPublisher
from app.services.record_service import VideoRepository
from app.services.staging_service import StagingStore
from app.services.storage_service import StorageService
from app.services.upload_service import FormLoader, UploadService
from app.utils.file_validator import format_file_size


logger = logging.getLogger(__name__)

# Room for multipart boundaries and part headers around the file bytes
MULTIPART_FRAMING_ALLOWANCE = 16 * 1024


# ============================================================================
# Response Models
# ============================================================================


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str = Field(..., description="Machine-readable error code", examples=["forbidden"])
    message: str = Field(..., description="Human-readable error message")
    status_code: int = Field(..., description="HTTP status code")


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Missing file field, oversized or unsupported upload"},
    401: {"model": ErrorResponse, "description": "Missing or invalid bearer token"},
    403: {"model": ErrorResponse, "description": "Caller does not own the video"},
    404: {"model": ErrorResponse, "description": "Video not found"},
    500: {"model": ErrorResponse, "description": "Staging, probe, publish or record store failure"},
}


def _multipart_body(field: str, description: str) -> dict[str, Any]:
    """OpenAPI request body for a form carrying one binary file field."""
    return {
        "requestBody": {
            "required": True,
            "content": {
                "multipart/form-data": {
                    "schema": {
                        "type": "object",
                        "required": [field],
                        "properties": {
                            field: {"type": "string", "format": "binary", "description": description}
                        },
                    }
                }
            },
        }
    }


router = APIRouter(tags=["upload"], responses=ERROR_RESPONSES)


# ============================================================================
# Dependency Injection Functions
# ============================================================================


def get_storage_service(
    request: Request, settings: Settings = Depends(get_settings)
) -> StorageService:
    """
    Application-wide StorageService, created on first use.

    The boto3 client is thread-safe, so one instance serves every request.
    """
    storage_service = getattr(request.app.state, "storage_service", None)
    if storage_service is None:
        storage_service = StorageService.from_settings(settings)
        request.app.state.storage_service = storage_service
    return storage_service


def get_video_repository() -> VideoRepository:
    return VideoRepository(get_db_client().get_videos_collection())


def get_upload_service(
    settings: Settings = Depends(get_settings),
    repository: VideoRepository = Depends(get_video_repository),
    storage_service: StorageService = Depends(get_storage_service),
) -> UploadService:
    """
    Dependency injection for UploadService.

    Returns:
        UploadService: Orchestrator wired to the configured staging root,
            ffprobe, local asset directory, S3 bucket and videos collection.
    """
    return UploadService(
        settings=settings,
        repository=repository,
        staging=StagingStore(settings),
        prober=StreamProber(settings),
        publisher=AssetPublisher(settings, storage_service),
    )


def bounded_form_loader(request: Request, max_size: int) -> FormLoader:
    """
    Form loader that refuses a request body too large to hold an allowed file.

    The declared Content-Length is compared against the limit before the
    body is parsed, so an oversized upload is never spooled to disk. Bodies
    without a usable length (chunked transfer) are parsed as usual and
    caught by the size re-check after the part is read.
    """

    async def load_form() -> FormData:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > max_size + MULTIPART_FRAMING_ALLOWANCE:
            logger.info(
                "Refusing %s body of %s before parsing", request.url.path, declared
            )
            raise SizeExceeded(
                f"Request body ({format_file_size(int(declared))}) exceeds the "
                f"{format_file_size(max_size)} limit"
            )
        return await request.form()

    return load_form


# ============================================================================
# Upload Endpoints
# ============================================================================


@router.post(
    "/thumbnail/{video_id}",
    response_model=Video,
    response_model_by_alias=False,
    summary="Upload a video thumbnail",
    openapi_extra=_multipart_body(AssetKind.THUMBNAIL.value, "PNG, JPEG, GIF or WebP image"),
)
async def upload_thumbnail(
    video_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
) -> Video:
    """
    Attach a thumbnail image to a video.

    The image is stored in the local asset directory and the video's
    thumbnail_url is set to its public URL.
    """
    return await upload_service.upload_thumbnail(
        video_id, user_id, bounded_form_loader(request, upload_service.max_size(AssetKind.THUMBNAIL))
    )


@router.post(
    "/video/{video_id}",
    response_model=Video,
    response_model_by_alias=False,
    summary="Upload a video file",
    openapi_extra=_multipart_body(AssetKind.VIDEO.value, "MP4 video"),
)
async def upload_video(
    video_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    upload_service: UploadService = Depends(get_upload_service),
) -> Video:
    """
    Attach a video file to a video record.

    The file is probed for its aspect ratio, uploaded to object storage under
    ``landscape/``, ``portrait/`` or ``other/``, and the video's video_url is
    set to the object's URL.
    """
    return await upload_service.upload_video(
        video_id, user_id, bounded_form_loader(request, upload_service.max_size(AssetKind.VIDEO))
    )
