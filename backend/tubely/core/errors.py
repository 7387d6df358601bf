"""
Error taxonomy for the Tubely ingestion pipeline.

Every failure in the pipeline is raised as a ``TubelyError`` subclass carrying
the HTTP status it maps to and a user-safe message. The underlying cause is
chained (``raise ... from``) and logged where it happens, but never echoed to
the client. A single FastAPI exception handler renders these errors.
"""

from typing import Any

from fastapi import status


class TubelyError(Exception):
    """Base exception for all pipeline failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "internal_error"
    message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Render the client-facing error body."""
        return {
            "error": self.error,
            "message": self.message,
            "status_code": self.status_code,
        }


# =============================================================================
# Request / authorization errors
# =============================================================================


class InvalidIdentifier(TubelyError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_identifier"
    message = "Invalid video ID"


class Unauthenticated(TubelyError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthenticated"
    message = "Missing or invalid bearer token"


class Forbidden(TubelyError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"
    message = "You can only modify your own videos"


class NotFound(TubelyError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"
    message = "Video not found"


class PayloadTooLarge(TubelyError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    error = "payload_too_large"
    message = "Upload exceeds the maximum allowed size"


class UnsupportedMediaType(TubelyError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "unsupported_media_type"
    message = "Unsupported media type"


class MissingFormField(TubelyError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "missing_form_field"
    message = "Required form field is missing"


# =============================================================================
# Processing errors (all 500)
# =============================================================================


class StagingFailed(TubelyError):
    error = "staging_failed"
    message = "Could not save the uploaded file"


class ProbeFailed(TubelyError):
    error = "probe_failed"
    message = "Could not read the video stream metadata"


class NoStreams(ProbeFailed):
    error = "no_streams"
    message = "The uploaded file contains no media streams"


class RemuxFailed(TubelyError):
    error = "remux_failed"
    message = "Could not process the video for streaming"


class UploadFailed(TubelyError):
    error = "upload_failed"
    message = "Could not store the video"


class SigningFailed(TubelyError):
    error = "signing_failed"
    message = "Could not generate a playback URL"


class PersistenceFailed(TubelyError):
    error = "persistence_failed"
    message = "Could not update the video record"


class MalformedDescriptor(TubelyError):
    error = "malformed_descriptor"
    message = "Stored video location is invalid"
