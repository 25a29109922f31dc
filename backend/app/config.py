"""
ClipCast Configuration Management Module

This module provides configuration management for the ClipCast media upload
backend using Pydantic Settings. It loads and validates all environment
variables required for:
- Application settings (name, environment, debug mode, logging)
- MongoDB connection for video records
- S3/MinIO object storage for published videos
- Bearer token (JWT) validation
- Upload limits and allowed content types per asset kind
- Local asset and staging directories
- The ffprobe stream inspection process

Settings are frozen once loaded. Components receive a Settings instance at
construction time instead of reading module-level state, which keeps them
testable with fabricated configurations.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BYTES_PER_MB = 1024 * 1024


class Settings(BaseSettings):
    """
    Configuration settings for the ClipCast upload pipeline.

    Values are read from environment variables (case-insensitive) and an
    optional .env file. The instance is immutable after construction.

    Example usage:
        ```python
        from app.config import Settings

        settings = Settings(assets_root="/srv/assets")
        print(settings.max_thumbnail_size_bytes)
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(default="ClipCast", description="Application name used in docs and logs")

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode and hot reload")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(default=False, description="Emit structured JSON log lines")

    log_dir: str | None = Field(
        default=None, description="Directory for rotating log files; console only when unset"
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8091, description="Port number for the API server", ge=1, le=65535)

    public_host: str = Field(
        default="localhost",
        description="Host name used when composing URLs for locally served assets",
    )

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # Authentication
    # =========================================================================

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret used to sign and verify bearer tokens",
        min_length=32,
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_expiration_hours: int = Field(
        default=24, description="Issued token lifetime in hours", ge=1, le=168
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017", description="MongoDB connection URI"
    )

    mongodb_db_name: str = Field(default="clipcast", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(default=1, ge=1)

    mongodb_max_pool_size: int = Field(default=50, ge=1)

    # =========================================================================
    # S3/MinIO Storage Configuration
    # =========================================================================

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL for MinIO (None for AWS S3)"
    )

    s3_access_key_id: str | None = Field(default=None, description="S3 access key ID")

    s3_secret_access_key: str | None = Field(default=None, description="S3 secret access key")

    s3_bucket_name: str = Field(default="clipcast-videos", description="Bucket for video assets")

    s3_region: str = Field(default="us-east-1", description="Region of the video bucket")

    # =========================================================================
    # Local Asset Storage
    # =========================================================================

    assets_root: Path = Field(
        default=Path("assets"), description="Directory served under /assets for thumbnails"
    )

    staging_root: Path = Field(
        default=Path("staging"),
        description="Directory holding staged uploads for the lifetime of one request",
    )

    # =========================================================================
    # Upload Limits
    # =========================================================================

    max_thumbnail_size_mb: int = Field(default=10, description="Thumbnail size limit", ge=1)

    max_video_size_mb: int = Field(default=1024, description="Video size limit (1 GiB)", ge=1)

    allowed_thumbnail_types: list[str] = Field(
        default=["image/png", "image/jpeg", "image/jpg", "image/gif", "image/webp"],
        description="Content types accepted for thumbnail uploads",
    )

    allowed_video_types: list[str] = Field(
        default=["video/mp4"], description="Content types accepted for video uploads"
    )

    authorize_before_staging: bool = Field(
        default=True,
        description=(
            "Check record ownership before any bytes are staged. When False, the "
            "ownership check runs after staging."
        ),
    )

    # =========================================================================
    # Stream Probing
    # =========================================================================

    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable name or path")

    probe_timeout_seconds: float = Field(
        default=30.0, description="Upper bound on a single ffprobe run", gt=0
    )

    aspect_ratio_tolerance: int = Field(
        default=0,
        description="Pixel tolerance for 16:9 classification; 0 applies the exact rule",
        ge=0,
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only HMAC algorithms are supported since tokens are verified with secret_key."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("allowed_thumbnail_types", "allowed_video_types", mode="before")
    @classmethod
    def validate_content_types(cls, v: str | list[str]) -> list[str]:
        """Accept comma-separated strings and normalize content types to lower case."""
        if isinstance(v, str):
            v = [item for item in v.split(",") if item.strip()]
        return [item.strip().lower() for item in v]

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_thumbnail_size_bytes(self) -> int:
        return self.max_thumbnail_size_mb * BYTES_PER_MB

    @property
    def max_video_size_bytes(self) -> int:
        return self.max_video_size_mb * BYTES_PER_MB

    @property
    def assets_base_url(self) -> str:
        """Base URL under which files in assets_root are served."""
        return f"http://{self.public_host}:{self.port}/assets"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the application Settings instance.

    The instance is built once from the environment and reused by the
    FastAPI dependency graph. Tests override this dependency instead of
    mutating the returned object.
    """
    return Settings()
