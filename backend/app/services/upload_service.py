"""
ClipCast Upload Orchestrator

This module is the entry point of the upload pipeline. It composes the
pipeline components under one ownership check and one cleanup guarantee:

    AWAITING_AUTH -> VALIDATING -> STAGED -> PROBED (video only)
                  -> PUBLISHED -> RECORD_UPDATED

Any state can move to FAILED. The first error raised by a component is the
one the caller sees; nothing here recovers from it.

Components:
- Media validation: app.utils.file_validator
- StagingStore: writes the payload to a private staged file and releases it
- StreamProber: classifies the staged video with ffprobe
- AssetPublisher: copies thumbnails locally or uploads videos to S3
- RecordUpdater: writes the resolved URL onto the video record

The staged file is acquired through ``StagingStore.staged``, so it is
released exactly once on every exit path, including cancellation.

Ownership policy:
    With ``authorize_before_staging`` (the default) the video record is looked
    up and ownership is confirmed before the multipart form is even read. With
    it disabled, ownership is confirmed after the payload has been staged.
    Either way no record is changed and nothing is published for a caller
    who does not own the video.
"""

import asyncio
import logging

from collections.abc import Awaitable, Callable
from enum import Enum

from starlette.datastructures import FormData, UploadFile

from app.config import Settings
from app.core.exceptions import (
    Forbidden,
    MissingField,
    NotFound,
    RecordPersistError,
    Unauthenticated,
    UploadPipelineError,
)
from app.models.video import AspectRatio, AssetKind, Video
from app.services.probe_service import StreamProber
from app.services.publish_service import AssetPublisher
from app.services.record_service import RecordUpdater, VideoRepository
from app.services.staging_service import StagingStore
from app.utils.file_validator import validate_file_size, validate_upload
from app.utils.logger import add_log_context


logger = logging.getLogger(__name__)

FormLoader = Callable[[], Awaitable[FormData]]


class UploadState(str, Enum):
    """States of a single upload pipeline run."""

    AWAITING_AUTH = "awaiting_auth"
    VALIDATING = "validating"
    STAGED = "staged"
    PROBED = "probed"
    PUBLISHED = "published"
    RECORD_UPDATED = "record_updated"
    FAILED = "failed"


class _Run:
    """Tracks the state of one pipeline invocation for logging."""

    def __init__(self, log: logging.LoggerAdapter) -> None:
        self.log = log
        self.state = UploadState.AWAITING_AUTH

    def advance(self, state: UploadState) -> None:
        self.log.debug("Upload state %s -> %s", self.state.value, state.value)
        self.state = state


class UploadService:
    """
    Upload orchestrator for thumbnails and videos.

    Example:
        ```python
        service = UploadService(
            settings=settings,
            repository=VideoRepository(collection),
            staging=StagingStore(settings),
            prober=StreamProber(settings),
            publisher=AssetPublisher(settings, storage_service),
        )
        video = await service.upload_video(video_id, user_id, request.form)
        ```
    """

    def __init__(
        self,
        settings: Settings,
        repository: VideoRepository,
        staging: StagingStore,
        prober: StreamProber,
        publisher: AssetPublisher,
        record_updater: RecordUpdater | None = None,
        authorize_before_staging: bool | None = None,
    ) -> None:
        self.repository = repository
        self.staging = staging
        self.prober = prober
        self.publisher = publisher
        self.record_updater = record_updater or RecordUpdater(repository)
        self.authorize_before_staging = (
            settings.authorize_before_staging
            if authorize_before_staging is None
            else authorize_before_staging
        )
        self.limits: dict[AssetKind, tuple[int, list[str]]] = {
            AssetKind.THUMBNAIL: (
                settings.max_thumbnail_size_bytes,
                settings.allowed_thumbnail_types,
            ),
            AssetKind.VIDEO: (settings.max_video_size_bytes, settings.allowed_video_types),
        }

    def max_size(self, kind: AssetKind) -> int:
        return self.limits[kind][0]

    async def upload_thumbnail(
        self, video_id: str, user_id: str, form_loader: FormLoader
    ) -> Video:
        return await self.upload(AssetKind.THUMBNAIL, video_id, user_id, form_loader)

    async def upload_video(self, video_id: str, user_id: str, form_loader: FormLoader) -> Video:
        return await self.upload(AssetKind.VIDEO, video_id, user_id, form_loader)

    async def upload(
        self,
        kind: AssetKind,
        video_id: str,
        user_id: str,
        form_loader: FormLoader,
    ) -> Video:
        """
        Run the pipeline for one upload.

        Args:
            kind: Asset kind; its value is also the multipart field name
            video_id: Target video record id
            user_id: Authenticated caller identity
            form_loader: Awaitable returning the parsed multipart form. It is
                only called once the request is allowed to carry a payload.

        Returns:
            The updated video record.

        Raises:
            UploadPipelineError: The first failure of any pipeline step.
        """
        log = add_log_context(logger, video_id=video_id, user_id=user_id, asset_kind=kind.value)
        run = _Run(log)
        log.info("Upload started")

        try:
            if not user_id:
                raise Unauthenticated("Missing caller identity")

            video: Video | None = None
            if self.authorize_before_staging:
                video = await self._authorize(video_id, user_id)

            run.advance(UploadState.VALIDATING)
            content_type, data = await self._read_payload(kind, form_loader)

            async with self.staging.staged(data, kind) as staged_file:
                run.advance(UploadState.STAGED)
                if video is None:
                    video = await self._authorize(video_id, user_id)

                aspect_ratio: AspectRatio | None = None
                if kind is AssetKind.VIDEO:
                    aspect_ratio = await self.prober.probe(staged_file)
                    run.advance(UploadState.PROBED)

                url = await self.publisher.publish(staged_file, kind, content_type, aspect_ratio)
                run.advance(UploadState.PUBLISHED)

                try:
                    updated = await self.record_updater.update(video, kind, url)
                except RecordPersistError:
                    log.error("Orphaned published asset %s: video record was not updated", url)
                    raise
                run.advance(UploadState.RECORD_UPDATED)

        except UploadPipelineError as e:
            failed_in = run.state
            run.advance(UploadState.FAILED)
            if e.is_client_error:
                log.warning("Upload rejected in %s: %s", failed_in.value, e.message)
            else:
                log.error("Upload failed in %s: %s", failed_in.value, e.message)
            raise
        except asyncio.CancelledError:
            log.warning("Upload cancelled in %s", run.state.value)
            raise

        log.info("Upload completed: %s", url)
        return updated

    async def _authorize(self, video_id: str, user_id: str) -> Video:
        video = await self.repository.get_video(video_id)
        if video is None:
            raise NotFound(f"Video {video_id} not found")
        if not video.is_owned_by(user_id):
            raise Forbidden("You do not have permission to modify this video")
        return video

    async def _read_payload(self, kind: AssetKind, form_loader: FormLoader) -> tuple[str, bytes]:
        """
        Pull the named file part out of the form and validate it.

        The declared size and type are checked before the part is read into
        memory; the size is checked again against the bytes actually read.
        """
        max_size, allowed_types = self.limits[kind]
        form = await form_loader()
        try:
            part = form.get(kind.value)
            if not isinstance(part, UploadFile):
                raise MissingField(f"Multipart field '{kind.value}' must be a file")

            content_type = validate_upload(part.size, part.content_type, max_size, allowed_types)
            data = await part.read()
            validate_file_size(len(data), max_size)
        finally:
            await form.close()

        return content_type, data
