"""
S3-compatible storage service for ClipCast.

This module wraps boto3 for the object-storage side of the upload pipeline.
It works against AWS S3 or any S3-compatible endpoint such as MinIO.

Key Features:
- Async-wrapped uploads so boto3 never blocks the event loop
- Content type tagging on stored objects
- Virtual-hosted-style public URLs for stored objects

Uploads overwrite any existing object under the same key. Nothing here
retries beyond boto3's own transport retries; callers decide retry policy.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from app.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def async_wrap(func: Callable[..., T]) -> Callable[..., "asyncio.Future[T]"]:
    """
    Run a blocking boto3 call in the default thread pool.

    Uses asyncio.to_thread so S3 transfers do not stall other requests.
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(func, *args, **kwargs)
    return wrapper


class StorageServiceError(Exception):
    """Base exception for storage service errors."""
    pass


class StorageConnectionError(StorageServiceError):
    """Raised when the S3 client cannot be created."""
    pass


class StorageOperationError(StorageServiceError):
    """Raised when a storage operation fails."""
    pass


class StorageService:
    """
    S3-compatible storage service.

    Attributes:
        bucket_name: Bucket all objects are written to
        endpoint_url: S3-compatible endpoint URL (None for AWS S3)
        region_name: Bucket region, also used in public URLs

    Example:
        >>> service = StorageService.from_settings(settings)
        >>> await service.upload_file(
        ...     "landscape/ab12.mp4", file_path="/srv/staging/ab12", content_type="video/mp4"
        ... )
        >>> service.public_url("landscape/ab12.mp4")
        'https://clipcast-videos.s3.us-east-1.amazonaws.com/landscape/ab12.mp4'
    """

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region_name: str = "us-east-1",
    ) -> None:
        """
        Create the boto3 client.

        Raises:
            StorageConnectionError: If the client cannot be created.
        """
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.region_name = region_name

        client_config: Dict[str, Any] = {
            "service_name": "s3",
            "region_name": region_name,
            "config": Config(retries={"max_attempts": 3, "mode": "standard"}),
        }
        if endpoint_url:
            client_config["endpoint_url"] = endpoint_url
        # Without explicit keys boto3 falls back to the environment or IAM role
        if access_key and secret_key:
            client_config["aws_access_key_id"] = access_key
            client_config["aws_secret_access_key"] = secret_key

        try:
            self._client = boto3.client(**client_config)
        except BotoCoreError as e:
            error_msg = f"Failed to initialize S3 client: {e}"
            logger.error(error_msg)
            raise StorageConnectionError(error_msg) from e

        logger.info(
            "StorageService initialized with bucket=%s, region=%s, endpoint=%s",
            bucket_name,
            region_name,
            endpoint_url or "AWS S3 default",
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageService":
        return cls(
            bucket_name=settings.s3_bucket_name,
            endpoint_url=settings.s3_endpoint_url,
            access_key=settings.s3_access_key_id,
            secret_key=settings.s3_secret_access_key,
            region_name=settings.s3_region,
        )

    def public_url(self, object_key: str) -> str:
        """Virtual-hosted-style URL for an object in the bucket."""
        return f"https://{self.bucket_name}.s3.{self.region_name}.amazonaws.com/{object_key}"

    async def upload_file(
        self,
        object_key: str,
        file_path: str,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Upload a local file to the bucket.

        Args:
            object_key: Key to store the object under
            file_path: Local file system path to upload
            content_type: MIME type stored as the object's Content-Type
            metadata: Optional user metadata to attach to the object

        Returns:
            Dictionary with object_key and bucket.

        Raises:
            StorageOperationError: If the upload fails.
        """
        extra_args: Dict[str, Any] = {}
        if content_type:
            extra_args["ContentType"] = content_type
        if metadata:
            extra_args["Metadata"] = metadata

        logger.info("Uploading file to object_key=%s, bucket=%s", object_key, self.bucket_name)

        @async_wrap
        def _upload_file() -> None:
            self._client.upload_file(
                file_path,
                self.bucket_name,
                object_key,
                ExtraArgs=extra_args or None,
            )

        try:
            await _upload_file()
        except S3UploadFailedError as e:
            error_msg = f"Failed to upload {object_key}: {e}"
            logger.error(error_msg)
            raise StorageOperationError(error_msg) from e
        except ClientError as e:
            error_msg = f"Failed to upload {object_key}: {e.response['Error'].get('Message', e)}"
            logger.error(error_msg)
            raise StorageOperationError(error_msg) from e
        except NoCredentialsError as e:
            error_msg = "S3 credentials not found for upload"
            logger.error(error_msg)
            raise StorageOperationError(error_msg) from e
        except (BotoCoreError, OSError) as e:
            error_msg = f"Storage operation error during upload of {object_key}: {e}"
            logger.error(error_msg)
            raise StorageOperationError(error_msg) from e

        logger.info("Successfully uploaded %s", object_key)
        return {"object_key": object_key, "bucket": self.bucket_name}
