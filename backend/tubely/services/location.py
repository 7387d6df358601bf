"""
Location descriptor codec and playback URL signing.

A stored video is addressed by a ``StorageLocation`` (bucket, key). At the
metadata store boundary the location is flattened to a single
``"<bucket>,<key>"`` string held in ``Video.video_url``. On every read the
descriptor is decoded again and exchanged for a short-lived presigned GET URL;
presigned URLs are never written back to the store.
"""

import logging

from botocore.exceptions import BotoCoreError, ClientError

from tubely.config import LOCATION_DELIMITER, Settings
from tubely.core.errors import MalformedDescriptor, SigningFailed
from tubely.core.storage import StorageClient
from tubely.models.video import StorageLocation, Video


logger = logging.getLogger(__name__)


# =============================================================================
# Codec
# =============================================================================


def encode_location(location: StorageLocation) -> str:
    """
    Flatten a location to ``"<bucket>,<key>"``.

    Raises:
        MalformedDescriptor: If either part is empty or contains the delimiter,
            which would make the descriptor impossible to decode.
    """
    for part in (location.bucket, location.key):
        if not part or LOCATION_DELIMITER in part:
            logger.error(
                "Refusing to encode location with invalid part",
                extra={"bucket": location.bucket, "key": location.key},
            )
            raise MalformedDescriptor

    return f"{location.bucket}{LOCATION_DELIMITER}{location.key}"


def decode_location(descriptor: str) -> StorageLocation:
    """
    Parse a ``"<bucket>,<key>"`` descriptor.

    Raises:
        MalformedDescriptor: Unless the descriptor splits into exactly two
            non-empty parts.
    """
    parts = descriptor.split(LOCATION_DELIMITER)
    if len(parts) != 2 or not all(parts):
        logger.error("Malformed location descriptor: %r", descriptor)
        raise MalformedDescriptor

    bucket, key = parts
    return StorageLocation(bucket=bucket, key=key)


# =============================================================================
# Signing
# =============================================================================


class LocationSigner:
    """Exchanges stored locations for presigned playback URLs."""

    def __init__(self, storage: StorageClient, settings: Settings) -> None:
        self.storage = storage
        self.ttl_seconds = settings.signed_url_ttl_seconds

    def sign(self, location: StorageLocation, ttl_seconds: int | None = None) -> str:
        """
        Return a presigned GET URL for ``location``.

        Raises:
            SigningFailed: If the storage client cannot produce a URL.
        """
        expires_in = ttl_seconds or self.ttl_seconds
        try:
            return self.storage.generate_presigned_download_url(
                location.bucket, location.key, expires_in=expires_in
            )
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.exception(
                "Failed to presign playback URL",
                extra={"bucket": location.bucket, "key": location.key},
            )
            raise SigningFailed from e

    def sign_video(self, video: Video) -> Video:
        """
        Return a copy of ``video`` whose ``video_url`` is a presigned URL.

        Records without an uploaded video are returned unchanged.

        Raises:
            MalformedDescriptor: If the stored descriptor cannot be decoded.
            SigningFailed: If presigning fails.
        """
        if not video.video_url:
            return video

        url = self.sign(decode_location(video.video_url))
        return video.model_copy(update={"video_url": url})

    def sign_videos(self, videos: list[Video]) -> list[Video]:
        return [self.sign_video(video) for video in videos]
