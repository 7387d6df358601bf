"""
Video Pydantic models for Tubely.

This module defines the video metadata record, the structured storage
location of an uploaded object, and the coarse layout tag derived from a
video's stream dimensions.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================


class VideoLayout(str, Enum):
    """
    Coarse aspect-ratio bucket of a video.

    The layout is never stored on its own; it becomes the first path segment
    of the object key (``landscape/...``, ``portrait/...``, ``other/...``).
    """

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


# =============================================================================
# MODELS
# =============================================================================


class StorageLocation(BaseModel):
    """Address of an object in S3-compatible storage."""

    bucket: str = Field(..., min_length=1, description="Storage bucket name")
    key: str = Field(..., min_length=1, description="Object key within the bucket")

    model_config = ConfigDict(frozen=True)


class StreamDimensions(BaseModel):
    """Frame size of the first media stream of a probed file."""

    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)


class Video(BaseModel):
    """
    Video metadata record.

    Attributes:
        id: Video identifier (UUID), immutable
        user_id: Owner of the video, immutable
        title: Video title
        description: Video description
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
        thumbnail_url: Public URL of the thumbnail, set by the thumbnail path
        video_url: Persisted location descriptor ("<bucket>,<key>"). In API
            responses this field carries a presigned playback URL instead.
    """

    id: UUID = Field(..., description="Video ID")
    user_id: UUID = Field(..., description="Owner user ID")
    title: str = Field(default="", max_length=500)
    description: str = Field(default="", max_length=5000)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    thumbnail_url: str | None = Field(default=None)
    video_url: str | None = Field(default=None)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0f8fad5b-d9cb-469f-a165-70867728950e",
                "user_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                "title": "Boots on the ground",
                "description": "A short clip",
                "created_at": "2024-01-15T10:30:00Z",
                "updated_at": "2024-01-15T10:30:00Z",
                "thumbnail_url": "http://localhost:8091/assets/abc.png",
                "video_url": "https://tubely-videos.s3.amazonaws.com/landscape/ab12.mp4?X-Amz-Signature=...",
            }
        },
    )

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """MongoDB returns naive datetimes; treat them as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    def to_document(self) -> dict[str, Any]:
        """Convert to a MongoDB document (string UUIDs, ``_id`` key)."""
        return {
            "_id": str(self.id),
            "user_id": str(self.user_id),
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "thumbnail_url": self.thumbnail_url,
            "video_url": self.video_url,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Video":
        """Build a Video from a MongoDB document."""
        data = dict(document)
        data["id"] = data.pop("_id")
        return cls.model_validate(data)
