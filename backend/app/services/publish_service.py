"""
Asset Publisher for ClipCast uploads.

Moves staged bytes to their final home and returns the URL the video record
should point at:

- Thumbnails are copied into the flat local asset directory as
  ``{name}.{ext}`` and served from ``http://{public_host}:{port}/assets``.
- Videos are uploaded to the S3 bucket under ``{aspect_ratio}/{name}.mp4``
  and referenced by their virtual-hosted-style S3 URL.

Failures are not retried here.
"""

import asyncio
import logging
import shutil

from pathlib import Path

from app.config import Settings
from app.core.exceptions import PublishIOError, PublishUploadError
from app.models.video import AspectRatio, AssetKind
from app.services.staging_service import StagedFile
from app.services.storage_service import StorageOperationError, StorageService
from app.utils.file_validator import extension_for_content_type


logger = logging.getLogger(__name__)

VIDEO_EXTENSION = "mp4"


def video_object_key(name: str, aspect_ratio: AspectRatio) -> str:
    """Object key for a published video, namespaced by its aspect-ratio bucket."""
    return f"{aspect_ratio.value}/{name}.{VIDEO_EXTENSION}"


class AssetPublisher:
    """
    Publishes staged files as thumbnails or videos.

    Attributes:
        assets_root: Local directory thumbnails are copied into
        assets_base_url: Public URL prefix of the local asset directory
        storage: Object storage used for videos
    """

    def __init__(self, settings: Settings, storage_service: StorageService) -> None:
        self.assets_root = Path(settings.assets_root)
        self.assets_base_url = settings.assets_base_url
        self.storage = storage_service

    async def publish(
        self,
        staged_file: StagedFile,
        kind: AssetKind,
        content_type: str,
        aspect_ratio: AspectRatio | None = None,
    ) -> str:
        """
        Publish a staged file and return its asset URL.

        Args:
            staged_file: Staged upload to publish
            kind: Whether this is a thumbnail or a video
            content_type: Validated content type of the upload
            aspect_ratio: Probe result; required for videos

        Raises:
            PublishIOError: If the thumbnail cannot be copied.
            PublishUploadError: If the video upload fails.
        """
        if kind is AssetKind.THUMBNAIL:
            return await self._publish_thumbnail(staged_file, content_type)

        if aspect_ratio is None:
            raise ValueError("aspect_ratio is required to publish a video")
        return await self._publish_video(staged_file, content_type, aspect_ratio)

    async def _publish_thumbnail(self, staged_file: StagedFile, content_type: str) -> str:
        filename = f"{staged_file.name}.{extension_for_content_type(content_type)}"
        destination = self.assets_root / filename

        def _copy() -> None:
            self.assets_root.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(staged_file.path, destination)

        try:
            await asyncio.to_thread(_copy)
        except OSError as e:
            logger.error("Failed to publish thumbnail to %s: %s", destination, e)
            raise PublishIOError(f"Could not write thumbnail {filename}: {e}") from e

        logger.info("Published thumbnail %s (%d bytes)", destination, staged_file.size)
        return f"{self.assets_base_url}/{filename}"

    async def _publish_video(
        self,
        staged_file: StagedFile,
        content_type: str,
        aspect_ratio: AspectRatio,
    ) -> str:
        object_key = video_object_key(staged_file.name, aspect_ratio)

        try:
            await self.storage.upload_file(
                object_key,
                file_path=str(staged_file.path),
                content_type=content_type,
            )
        except StorageOperationError as e:
            raise PublishUploadError(f"Could not upload video {object_key}: {e}") from e

        logger.info("Published video %s (%d bytes)", object_key, staged_file.size)
        return self.storage.public_url(object_key)
