"""
Models Package for ClipCast.

Pydantic models for the records the upload pipeline reads and writes.

Models Overview:
    - Video: Video record that thumbnail and video uploads attach to
    - AssetKind: Thumbnail or video upload
    - AspectRatio: Stream classification used to namespace published videos
"""

from app.models.video import AspectRatio, AssetKind, Video


__all__ = ["AspectRatio", "AssetKind", "Video"]
