"""
Record store access and the Record Updater for ClipCast.

VideoRepository reads and writes video documents in MongoDB through Motor.
apply_asset_reference builds the updated record value, and RecordUpdater
persists it. Every pymongo failure surfaces as RecordPersistError.
"""

import logging

from datetime import UTC, datetime

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from app.core.exceptions import RecordPersistError
from app.models.video import AssetKind, Video


logger = logging.getLogger(__name__)


def apply_asset_reference(video: Video, kind: AssetKind, url: str) -> Video:
    """
    Return a copy of video with the asset reference for kind set to url.

    Only that field and updated_at change; the input is left untouched.
    """
    return video.model_copy(
        update={kind.record_field: url, "updated_at": datetime.now(UTC)}
    )


class VideoRepository:
    """Single-record reads and writes against the videos collection."""

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def get_video(self, video_id: str) -> Video | None:
        """
        Fetch a video record by id.

        Raises:
            RecordPersistError: If the record store cannot be read.
        """
        try:
            document = await self.collection.find_one({"_id": video_id})
        except PyMongoError as e:
            logger.error("Failed to read video %s: %s", video_id, e)
            raise RecordPersistError(f"Could not read video {video_id}") from e

        if document is None:
            return None
        return Video.model_validate(document)

    async def update_video(self, video: Video, fields: list[str] | None = None) -> None:
        """
        Persist a video record.

        With fields, only those fields (plus updated_at) are written, so a
        concurrent change to another field of the same record is not lost.

        Raises:
            RecordPersistError: If the write fails or the record no longer exists.
        """
        document = video.to_document()
        document.pop("_id")
        if fields is not None:
            document = {key: document[key] for key in [*fields, "updated_at"]}

        try:
            result = await self.collection.update_one({"_id": video.id}, {"$set": document})
        except PyMongoError as e:
            logger.error("Failed to update video %s: %s", video.id, e)
            raise RecordPersistError(f"Could not update video {video.id}") from e

        if result.matched_count == 0:
            raise RecordPersistError(f"Video {video.id} disappeared before it could be updated")


class RecordUpdater:
    """Applies a resolved asset reference to a video and persists it."""

    def __init__(self, repository: VideoRepository) -> None:
        self.repository = repository

    async def update(self, video: Video, kind: AssetKind, url: str) -> Video:
        updated = apply_asset_reference(video, kind, url)
        await self.repository.update_video(updated, fields=[kind.record_field])
        logger.info("Set %s on video %s", kind.record_field, video.id)
        return updated
