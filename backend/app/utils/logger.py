"""
Structured Logging Configuration Module for ClipCast

Configures application-wide logging with JSON or plain text output, an
optional rotating log file, and per-upload context: every line logged while
an upload is handled carries the video, user and asset kind it belongs to.

Features:
- JSONFormatter: One JSON object per record, upload context as top-level keys
- StandardFormatter: Human-readable lines with an upload context suffix
- setup_logging: Root, uvicorn and third-party logger configuration
- add_log_context: LoggerAdapter factory for per-upload context

Usage:
    from app.utils.logger import add_log_context, setup_logging

    setup_logging(log_level="INFO", json_logs=True)

    logger = logging.getLogger(__name__)
    upload_logger = add_log_context(logger, video_id="abc", user_id="u1", asset_kind="video")
    upload_logger.info("Staged upload")
"""

import json
import logging
import sys
import traceback

from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


# =============================================================================
# Constants
# =============================================================================

LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5
DEFAULT_LOG_FILENAME = "clipcast.log"

# Context keys attached by add_log_context in the upload pipeline
UPLOAD_CONTEXT_FIELDS: tuple[str, ...] = ("video_id", "user_id", "asset_kind")

# Noisy libraries held at third_party_level
THIRD_PARTY_LOGGERS: tuple[str, ...] = (
    "boto3",
    "botocore",
    "s3transfer",
    "urllib3",
    "motor",
    "pymongo",
    "multipart",
    "python_multipart",
    "asyncio",
)

UVICORN_LOGGERS: tuple[str, ...] = ("uvicorn", "uvicorn.access", "uvicorn.error")

# Attributes every LogRecord has; anything else arrived through extra=
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """
    Logging formatter that outputs log records as JSON lines.

    Upload context fields are promoted to top-level keys so log pipelines can
    filter by video or user directly; any other extra fields are collected
    under "extra".

    Example output:
        {"timestamp": "2026-01-15T10:30:45.123456+00:00", "level": "INFO",
         "logger": "app.services.upload_service", "message": "Upload completed",
         "video_id": "abc", "user_id": "u1", "asset_kind": "video"}
    """

    def __init__(self, include_source_location: bool = False) -> None:
        super().__init__()
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(
                timespec="microseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = _record_extras(record)
        for field in UPLOAD_CONTEXT_FIELDS:
            if field in extras:
                log_entry[field] = extras.pop(field)
        if extras:
            log_entry["extra"] = extras

        if self.include_source_location:
            log_entry["source"] = f"{record.filename}:{record.lineno} in {record.funcName}"

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "message": str(exc_value) if exc_value else "",
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        # default=str keeps datetimes, paths and enums in extras serializable
        return json.dumps(log_entry, default=str, ensure_ascii=False, separators=(",", ":"))


class StandardFormatter(logging.Formatter):
    """
    Text formatter for console output in development.

    Format: [TIMESTAMP] LEVEL logger_name: message [video_id=... user_id=... asset_kind=...]
    """

    DEFAULT_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(
            fmt=fmt or self.DEFAULT_FORMAT,
            datefmt=datefmt or self.DEFAULT_DATE_FORMAT,
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = " ".join(
            f"{field}={getattr(record, field)}"
            for field in UPLOAD_CONTEXT_FIELDS
            if hasattr(record, field)
        )
        if not context:
            return line
        # keep a traceback, if any, below the context suffix
        first, sep, rest = line.partition("\n")
        return f"{first} [{context}]{sep}{rest}"


# =============================================================================
# Application Logging Setup
# =============================================================================


def _create_file_handler(
    log_dir: str, log_level: int, formatter: logging.Formatter
) -> RotatingFileHandler | None:
    """
    Create a RotatingFileHandler (10 MB per file, 5 backups).

    Returns None if the log directory cannot be created or opened.
    """
    try:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(Path(log_dir) / DEFAULT_LOG_FILENAME),
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as e:
        sys.stderr.write(f"Warning: Could not create log file handler: {e}\n")
        return None

    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    return file_handler


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    log_dir: str | None = None,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure application-wide logging.

    Called once from the application lifespan. Replaces any handlers on the
    root logger, routes uvicorn's loggers through the same formatter and
    quiets boto3, Motor and the other chatty libraries.

    Args:
        log_level: Application log level name, case-insensitive
        json_logs: Emit JSON lines instead of plain text
        log_dir: When set, also write to a rotating file in this directory
        third_party_level: Level applied to THIRD_PARTY_LOGGERS
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if json_logs:
        formatter: logging.Formatter = JSONFormatter(include_source_location=level <= logging.DEBUG)
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_dir:
        file_handler = _create_file_handler(log_dir, level, formatter)
        if file_handler:
            root_logger.addHandler(file_handler)

    # uvicorn installs its own handlers; hand them to the root logger instead
    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = True

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level.upper())

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s, file_logging=%s",
        logging.getLevelName(level),
        json_logs,
        bool(log_dir),
    )


# =============================================================================
# Context Enrichment
# =============================================================================


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges its context into each call's extra fields.

    Values passed explicitly through ``extra=`` win over the adapter context.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def add_log_context(logger: logging.Logger, **kwargs: Any) -> logging.LoggerAdapter:
    """
    Wrap a logger so every message carries the given context fields.

    Example:
        upload_logger = add_log_context(
            logger, video_id="abc", user_id="u1", asset_kind="thumbnail"
        )
        upload_logger.warning("Upload rejected: %s", reason)
    """
    return ContextLoggerAdapter(logger, kwargs)
