"""
Video Pydantic models for ClipCast.

This module defines the Video record that uploads attach assets to, along
with the enums the upload pipeline uses to describe what is being uploaded
and how a video stream was classified.

Video records are created by other parts of the platform before any upload
happens. The upload pipeline only ever sets thumbnail_url or video_url on an
existing record and never deletes one.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class AssetKind(str, Enum):
    """
    Kind of asset an upload carries.

    The value doubles as the multipart form field name the endpoint reads.
    """

    THUMBNAIL = "thumbnail"
    VIDEO = "video"

    @property
    def record_field(self) -> str:
        """Video field that stores the asset reference for this kind."""
        return f"{self.value}_url"


class AspectRatio(str, Enum):
    """
    Aspect-ratio bucket derived from the first video stream.

    Also used as the object-storage key prefix for published videos.
    """

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


# =============================================================================
# MODELS
# =============================================================================


class Video(BaseModel):
    """
    Video record stored in the MongoDB videos collection.

    Attributes:
        id: Record identifier (aliased from _id)
        user_id: Identity of the owning user
        title: Display title
        description: Optional free-form description
        thumbnail_url: Resolved thumbnail URL, set by a thumbnail upload
        video_url: Resolved video URL, set by a video upload
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)

    Example:
        ```python
        video = Video(_id="6f1c...", user_id="user123", title="Boot sequence")
        ```
    """

    id: str = Field(..., alias="_id", min_length=1, description="Video identifier")

    user_id: str = Field(..., min_length=1, description="Identity of the owning user")

    title: str = Field(default="", max_length=255)

    description: str | None = Field(default=None, max_length=5000)

    thumbnail_url: str | None = Field(default=None, description="Resolved thumbnail URL")

    video_url: str | None = Field(default=None, description="Resolved video URL")

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "5e0b8c1f-3c4f-4c16-9a53-8b3f5c0f6a11",
                "user_id": "user123",
                "title": "Boot sequence",
                "thumbnail_url": "http://localhost:8091/assets/Zm9vYmFy.png",
                "video_url": (
                    "https://clipcast-videos.s3.us-east-1.amazonaws.com/landscape/ab12.mp4"
                ),
                "created_at": "2026-01-15T10:30:00Z",
                "updated_at": "2026-01-15T10:30:00Z",
            }
        },
    )

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id

    def to_document(self) -> dict:
        """Serialize for MongoDB storage, keeping the _id key."""
        return self.model_dump(by_alias=True)
