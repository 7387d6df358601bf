"""
Tubely Configuration Management Module

This module provides configuration management for the Tubely video ingestion
service using Pydantic Settings. It loads and validates all environment variables
required for:
- Application settings (name, environment, debug mode, logging)
- MongoDB connection for the video metadata store
- S3/MinIO object storage and presigned playback URLs
- Bearer token (JWT) validation
- Upload limits and local staging directories
- External media tools (ffprobe, ffmpeg)

All settings support environment variable overrides and .env file loading.
The settings object is passed explicitly into every service so the ingestion
pipeline never reads ambient environment state itself.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Delimiter used by the persisted location descriptor ("<bucket>,<key>")
LOCATION_DELIMITER = ","


class Settings(BaseSettings):
    """
    Configuration settings for the Tubely service.

    Configuration Categories:
    - Application: Core app settings like name, environment, debug mode
    - MongoDB: Metadata store connection URI and pool settings
    - S3/MinIO: Object storage credentials, bucket and signed URL TTL
    - Auth: JWT secret and issuer for bearer token validation
    - Upload: Size caps, staging directory and thumbnail asset root
    - Media tools: ffprobe/ffmpeg binaries and per-invocation timeout

    Example usage:
        ```python
        from tubely.config import get_settings

        settings = get_settings()
        print(f"Uploading videos to bucket: {settings.s3_bucket_name}")
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(default="tubely", description="Application name used in logs and docs")

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode and verbose logging")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool = Field(
        default=True, description="Emit structured JSON logs instead of plain text"
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8091, description="Port number for the API server", ge=1, le=65535)

    platform_url: str = Field(
        default="http://localhost:8091",
        description="Public base URL of this service, used to build thumbnail links",
    )

    cors_origins: list[str] = Field(
        default=["http://localhost:8091"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI for the video metadata store",
    )

    mongodb_db_name: str = Field(default="tubely", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(
        default=1, description="Minimum number of connections in MongoDB connection pool", ge=0
    )

    mongodb_max_pool_size: int = Field(
        default=50, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    # =========================================================================
    # S3/MinIO Storage Configuration
    # =========================================================================

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL for MinIO (None for AWS S3)"
    )

    s3_access_key_id: str | None = Field(
        default=None, description="S3 access key ID (None to use the default AWS credential chain)"
    )

    s3_secret_access_key: str | None = Field(
        default=None, description="S3 secret access key"
    )

    s3_bucket_name: str = Field(
        default="tubely-videos", description="Bucket receiving processed video uploads"
    )

    s3_region: str = Field(default="us-east-1", description="AWS region for the S3 bucket")

    signed_url_ttl_seconds: int = Field(
        default=3600,
        description="Lifetime of presigned playback URLs in seconds (1 hour)",
        ge=60,
        le=604800,
    )

    # =========================================================================
    # Auth Configuration
    # =========================================================================

    jwt_secret: str = Field(
        default="development-jwt-secret-change-in-production-32chars",
        description="HS256 secret used to validate bearer tokens",
        min_length=32,
    )

    jwt_issuer: str = Field(default="tubely-access", description="Expected JWT issuer claim")

    jwt_expiration_hours: int = Field(
        default=1, description="Lifetime of access tokens minted by this service", ge=1, le=168
    )

    # =========================================================================
    # Upload Settings
    # =========================================================================

    max_video_upload_bytes: int = Field(
        default=1 << 30, description="Maximum video request body size (1 GiB)", ge=1
    )

    max_thumbnail_memory_bytes: int = Field(
        default=10 << 20, description="Maximum thumbnail form size held in memory (10 MiB)", ge=1
    )

    upload_chunk_size: int = Field(
        default=1 << 20, description="Chunk size used when staging uploads to disk", ge=1024
    )

    staging_dir: str | None = Field(
        default=None, description="Directory for staged uploads (None uses the system temp dir)"
    )

    assets_root: str = Field(
        default="./assets", description="Directory where thumbnails are written and served from"
    )

    # =========================================================================
    # Media Tools
    # =========================================================================

    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe executable")

    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")

    media_tool_timeout_seconds: float = Field(
        default=600.0, description="Upper bound for a single ffprobe/ffmpeg run", gt=0
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
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

    @field_validator("s3_bucket_name")
    @classmethod
    def validate_bucket_name(cls, v: str) -> str:
        """Reject bucket names that would corrupt the persisted location descriptor."""
        v = v.strip()
        if not v:
            raise ValueError("s3_bucket_name cannot be empty")
        if LOCATION_DELIMITER in v:
            raise ValueError(f"s3_bucket_name cannot contain '{LOCATION_DELIMITER}'")
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("platform_url")
    @classmethod
    def validate_platform_url(cls, v: str) -> str:
        """Strip the trailing slash so asset links can be joined safely."""
        return v.rstrip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Configuration is loaded once from the environment and reused for the
    lifetime of the process. Tests construct their own ``Settings`` and pass
    them into services directly.

    Returns:
        Settings: The global configuration instance.
    """
    return Settings()
