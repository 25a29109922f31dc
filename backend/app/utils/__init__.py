"""
Utilities Package for the ClipCast Backend Application.

Modules:
--------
file_validator:
    Upload decision functions:
    - Declared size enforcement per asset kind
    - Declared content type enforcement per asset kind
    - Content type to thumbnail extension mapping

logger:
    Structured logging configuration:
    - JSONFormatter for structured log output
    - StandardFormatter for human-readable development logs
    - setup_logging for application-wide configuration
    - add_log_context for per-upload context on log lines
"""

from app.utils.file_validator import (
    extension_for_content_type,
    format_file_size,
    normalize_content_type,
    validate_content_type,
    validate_file_size,
    validate_upload,
)
from app.utils.logger import add_log_context, setup_logging


__all__ = [
    "add_log_context",
    "extension_for_content_type",
    "format_file_size",
    "normalize_content_type",
    "setup_logging",
    "validate_content_type",
    "validate_file_size",
    "validate_upload",
]
