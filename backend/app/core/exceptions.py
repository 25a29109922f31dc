"""
Upload pipeline error taxonomy.

Every component of the upload pipeline fails fast by raising one of these
exceptions. Each class carries the HTTP status code and machine-readable
error code the API layer uses to build the client response, so the
orchestrator never has to translate errors itself.

Hierarchy:
    UploadPipelineError
    ├── Unauthenticated (401)
    ├── Forbidden (403)
    ├── NotFound (404)
    ├── BadRequest (400)
    │   ├── MissingField
    │   ├── SizeExceeded
    │   └── UnsupportedType
    ├── ProbeFailure (500)
    │   ├── ProbeProcessError
    │   └── NoStreamFound
    ├── PublishFailure (500)
    │   ├── PublishIOError
    │   └── PublishUploadError
    ├── RecordPersistError (500)
    └── StagingIOError (500)
"""

from fastapi import status


class UploadPipelineError(Exception):
    """Base exception for all upload pipeline failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.error

    @property
    def is_client_error(self) -> bool:
        return self.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR


# =============================================================================
# Identity and access
# =============================================================================


class Unauthenticated(UploadPipelineError):
    """Bearer credential is missing or invalid."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthenticated"


class Forbidden(UploadPipelineError):
    """Caller does not own the target video."""

    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"


class NotFound(UploadPipelineError):
    """Target video record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


# =============================================================================
# Request shape
# =============================================================================


class BadRequest(UploadPipelineError):
    """Request is malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "bad_request"


class MissingField(BadRequest):
    """Named multipart field is absent or is not a file part."""

    error = "missing_field"


class SizeExceeded(BadRequest):
    """Declared upload size is above the limit for the asset kind."""

    error = "size_exceeded"


class UnsupportedType(BadRequest):
    """Declared content type is not allowed for the asset kind."""

    error = "unsupported_type"


# =============================================================================
# Probe
# =============================================================================


class ProbeFailure(UploadPipelineError):
    """Stream inspection failed."""

    error = "probe_failed"


class ProbeProcessError(ProbeFailure):
    """
    The inspection process could not run, timed out, exited non-zero or
    produced unparseable output.

    The process diagnostics are kept on the exception for logging.
    """

    error = "probe_process_error"

    def __init__(
        self,
        message: str = "",
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class NoStreamFound(ProbeFailure):
    """Inspection output contains no usable video stream."""

    error = "no_stream_found"


# =============================================================================
# Publish
# =============================================================================


class PublishFailure(UploadPipelineError):
    """Staged bytes could not be published."""

    error = "publish_failed"


class PublishIOError(PublishFailure):
    """Copy into the local asset directory failed."""

    error = "publish_io_error"


class PublishUploadError(PublishFailure):
    """Upload to object storage failed."""

    error = "publish_upload_error"


# =============================================================================
# Record store and staging
# =============================================================================


class RecordPersistError(UploadPipelineError):
    """Record store rejected the read or update."""

    error = "record_persist_error"


class StagingIOError(UploadPipelineError):
    """Payload could not be written to the staging directory."""

    error = "staging_io_error"
