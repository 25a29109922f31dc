"""
Media Validation Utilities Module for ClipCast

This module decides whether an incoming upload may proceed, before any byte
of it is written to disk:
- Declared size enforcement against a per-asset-kind limit
- Declared content type enforcement against a per-asset-kind allow list
- Content type to file extension mapping for published thumbnails

All checks are pure decision functions. They raise the BadRequest family of
pipeline errors and have no side effects.
"""

from app.core.exceptions import SizeExceeded, UnsupportedType


# =============================================================================
# CONSTANTS
# =============================================================================

BYTES_PER_KB: int = 1024

# Extension used when a content type has no usable subtype
DEFAULT_IMAGE_EXTENSION: str = "png"

# Explicit content type to extension mapping for thumbnails
IMAGE_EXTENSIONS_BY_CONTENT_TYPE: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


# =============================================================================
# CONTENT TYPE HELPERS
# =============================================================================


def normalize_content_type(content_type: str | None) -> str:
    """
    Reduce a declared content type to its bare lower-case media type.

    Parameters such as ``; charset=...`` or ``; codecs=...`` are dropped.

    Example:
        >>> normalize_content_type("Video/MP4; codecs=avc1")
        "video/mp4"
    """
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def extension_for_content_type(content_type: str | None) -> str:
    """
    Derive the file extension for a published thumbnail.

    Known image types use the explicit mapping. Anything else falls back to
    the subtype portion of the content type, or to "png" when that is empty.

    Example:
        >>> extension_for_content_type("image/jpeg")
        "jpg"
        >>> extension_for_content_type("image/avif")
        "avif"
    """
    media_type = normalize_content_type(content_type)
    if media_type in IMAGE_EXTENSIONS_BY_CONTENT_TYPE:
        return IMAGE_EXTENSIONS_BY_CONTENT_TYPE[media_type]

    _, _, subtype = media_type.partition("/")
    return subtype or DEFAULT_IMAGE_EXTENSION


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable string.

    Example:
        >>> format_file_size(1536)
        "1.50 KB"
        >>> format_file_size(1048576)
        "1.00 MB"
    """
    if size_bytes < 0:
        return "Invalid size"

    bytes_per_mb = BYTES_PER_KB * BYTES_PER_KB
    bytes_per_gb = bytes_per_mb * BYTES_PER_KB

    if size_bytes < BYTES_PER_KB:
        return f"{size_bytes} B"
    if size_bytes < bytes_per_mb:
        return f"{size_bytes / BYTES_PER_KB:.2f} KB"
    if size_bytes < bytes_per_gb:
        return f"{size_bytes / bytes_per_mb:.2f} MB"
    return f"{size_bytes / bytes_per_gb:.2f} GB"


# =============================================================================
# VALIDATION
# =============================================================================


def validate_file_size(file_size: int | None, max_size: int) -> None:
    """
    Enforce the size limit on a declared or measured payload size.

    A size of None means the transport did not declare one; the caller is
    expected to re-check once the payload length is known.

    Raises:
        SizeExceeded: If file_size is negative or greater than max_size.
    """
    if file_size is None:
        return

    if file_size < 0 or file_size > max_size:
        raise SizeExceeded(
            f"File size ({format_file_size(file_size)}) exceeds the "
            f"{format_file_size(max_size)} limit"
        )


def validate_content_type(content_type: str | None, allowed_types: list[str]) -> str:
    """
    Enforce the content type allow list.

    Returns:
        The normalized content type.

    Raises:
        UnsupportedType: If the normalized type is not in allowed_types.
    """
    media_type = normalize_content_type(content_type)
    allowed = {normalize_content_type(item) for item in allowed_types}

    if media_type not in allowed:
        raise UnsupportedType(
            f"Content type '{media_type or 'unknown'}' is not supported. "
            f"Allowed types: {', '.join(sorted(allowed))}"
        )
    return media_type


def validate_upload(
    declared_size: int | None,
    declared_type: str | None,
    max_size: int,
    allowed_types: list[str],
) -> str:
    """
    Validate an upload's declared size and content type.

    Size is checked first so oversized payloads are rejected without
    inspecting anything else.

    Returns:
        The normalized content type.

    Raises:
        SizeExceeded: If declared_size is greater than max_size.
        UnsupportedType: If declared_type is not in allowed_types.
    """
    validate_file_size(declared_size, max_size)
    return validate_content_type(declared_type, allowed_types)
