"""
Thumbnail upload for video records.

A thumbnail is a single JPEG or PNG image. It is held in memory (at most
``max_thumbnail_memory_bytes`` of image data), checked with libmagic against
its declared type, written under ``assets_root`` with a random URL-safe
name and served back from ``<platform_url>/assets/<name>``.
"""

import logging
import secrets

from pathlib import Path

import aiofiles

from fastapi import UploadFile

from tubely.config import Settings
from tubely.core.database import VideoStore
from tubely.core.errors import PayloadTooLarge, StagingFailed, TubelyError, UnsupportedMediaType
from tubely.models.video import Video
from tubely.services.location import LocationSigner
from tubely.services.ownership import OwnedVideo
from tubely.utils.file_validator import (
    THUMBNAIL_EXTENSIONS,
    content_matches_media_type,
    parse_media_type,
)


logger = logging.getLogger(__name__)


THUMBNAIL_FORM_FIELD = "thumbnail"

ASSETS_URL_PATH = "/assets"

# Room for part headers and boundaries on top of the image itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class ThumbnailService:
    def __init__(self, settings: Settings, store: VideoStore, signer: LocationSigner) -> None:
        self.settings = settings
        self.store = store
        self.signer = signer

    async def attach(self, owned: OwnedVideo, upload: UploadFile) -> Video:
        """
        Store ``upload`` as the thumbnail of ``owned.video``.

        Returns:
            Video: The updated record, with its video URL presigned when set.

        Raises:
            UnsupportedMediaType: Declared type is not JPEG/PNG or the content
                does not match it.
            PayloadTooLarge: The image is larger than the in-memory cap.
            StagingFailed: The image could not be written to the assets root.
        """
        media_type = parse_media_type(upload.content_type)
        extension = THUMBNAIL_EXTENSIONS.get(media_type)
        if extension is None:
            logger.info("Rejected thumbnail with media type %r", media_type)
            raise UnsupportedMediaType("Invalid file type, only JPEG and PNG are allowed")

        max_bytes = self.settings.max_thumbnail_memory_bytes
        content = await upload.read(max_bytes + 1)
        if len(content) > max_bytes:
            raise PayloadTooLarge

        if not content_matches_media_type(content, media_type):
            raise UnsupportedMediaType("Thumbnail content does not match its declared type")

        filename = f"{secrets.token_urlsafe(32)}{extension}"
        await self._write_asset(filename, content)

        updated = owned.video.model_copy(
            update={"thumbnail_url": f"{self.settings.platform_url}{ASSETS_URL_PATH}/{filename}"}
        )
        try:
            saved = await self.store.update_video(updated)
        except TubelyError:
            logger.error(
                "Record update failed, removing stored thumbnail",
                extra={"video_id": str(owned.video.id), "asset": filename},
            )
            self._remove_asset(filename)
            raise

        logger.info(
            "Thumbnail stored",
            extra={"video_id": str(saved.id), "asset": filename, "size": len(content)},
        )
        return self.signer.sign_video(saved)

    async def _write_asset(self, filename: str, content: bytes) -> None:
        assets_root = Path(self.settings.assets_root)
        try:
            assets_root.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(assets_root / filename, "wb") as asset:
                await asset.write(content)
        except OSError as e:
            logger.exception("Could not write thumbnail to %s", assets_root)
            raise StagingFailed("Could not save the thumbnail") from e

    def _remove_asset(self, filename: str) -> None:
        path = Path(self.settings.assets_root) / filename
        try:
            path.unlink(missing_ok=True)
        except OSError as cleanup_error:
            logger.warning("Failed to remove thumbnail '%s': %s", path, str(cleanup_error))
