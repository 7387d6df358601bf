"""
Video Ingestion Service for Tubely

Takes a video upload from an authorized owner through to a stored, playable
object:

1. Receive the multipart body, cutting the stream off past ``max_video_upload_bytes``
2. Require the ``video`` part to be declared as ``video/mp4``
3. Stage the part to a temporary file in chunks using aiofiles
4. Probe the staged file and classify its layout (landscape/portrait/other)
5. Remux to a faststart MP4 next to the staged file
6. Compose a fresh ``<layout>/<random hex>.mp4`` key and upload to S3
7. Persist the ``"<bucket>,<key>"`` descriptor on the video record
8. Return the record with a presigned playback URL in ``video_url``

Stages run strictly in order and any failure ends the request; nothing is
retried. Both temporary files are removed on every exit path. If the record
update fails after the upload succeeded, the new object is deleted again.
After a successful re-upload the previously referenced object is deleted.
Both deletions are best-effort and only logged when they fail.
"""

import logging
import os
import tempfile

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from pathlib import Path

import aiofiles

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import Request, UploadFile
from starlette.datastructures import FormData
from starlette.formparsers import MultiPartException, MultiPartParser
from starlette.requests import ClientDisconnect

from tubely.config import Settings
from tubely.core.database import VideoStore
from tubely.core.errors import (
    MissingFormField,
    PayloadTooLarge,
    StagingFailed,
    TubelyError,
    UnsupportedMediaType,
)
from tubely.core.storage import StorageClient
from tubely.models.video import StorageLocation, Video
from tubely.services.location import LocationSigner, decode_location, encode_location
from tubely.services.media import PROCESSING_SUFFIX, MediaInspector, MediaRemuxer, classify_layout
from tubely.services.ownership import OwnedVideo
from tubely.services.storage_keys import compose_video_key
from tubely.utils.file_validator import VIDEO_MEDIA_TYPE, parse_media_type


logger = logging.getLogger(__name__)


VIDEO_FORM_FIELD = "video"

MULTIPART_MEDIA_TYPE = "multipart/form-data"

STAGING_PREFIX = "tubely-upload"
STAGING_SUFFIX = ".mp4"


# =============================================================================
# Receiving
# =============================================================================


def check_declared_length(request: Request, max_bytes: int) -> None:
    """
    Reject a request whose declared ``Content-Length`` exceeds ``max_bytes``.

    Runs before the body is read. A missing or unparsable header is left to
    the byte count enforced on the body stream.

    Raises:
        PayloadTooLarge: If the declared length is over the cap.
    """
    declared = request.headers.get("content-length")
    if declared is None:
        return

    try:
        length = int(declared)
    except ValueError:
        logger.debug("Ignoring unparsable Content-Length %r", declared)
        return

    if length > max_bytes:
        logger.warning(
            "Rejected upload over size cap",
            extra={"content_length": length, "max_bytes": max_bytes},
        )
        raise PayloadTooLarge


async def capped_body(request: Request, max_bytes: int) -> AsyncIterator[bytes]:
    """
    Yield the raw request body, failing once more than ``max_bytes`` arrive.

    Reading stops at the chunk that crosses the cap, so a body without a
    ``Content-Length`` is never consumed past it.

    Raises:
        PayloadTooLarge: If the body grows past ``max_bytes``.
    """
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes:
            logger.warning(
                "Request body exceeded size cap while receiving",
                extra={"received_bytes": received, "max_bytes": max_bytes},
            )
            raise PayloadTooLarge
        yield chunk


async def parse_multipart(request: Request, max_bytes: int) -> FormData:
    """
    Parse a ``multipart/form-data`` body read through ``capped_body``.

    Any spooled part files are closed by the parser if reading fails.

    Raises:
        PayloadTooLarge: If the body grows past ``max_bytes``.
        MissingFormField: If the body is not valid multipart form data.
        StagingFailed: If the client disconnects while the body is read.
    """
    if parse_media_type(request.headers.get("content-type")) != MULTIPART_MEDIA_TYPE:
        raise MissingFormField("Request body must be multipart/form-data")

    try:
        async with aclosing(capped_body(request, max_bytes)) as stream:
            return await MultiPartParser(request.headers, stream).parse()
    except MultiPartException as e:
        logger.info("Rejected malformed multipart body: %s", e.message)
        raise MissingFormField(e.message) from e
    except ClientDisconnect as e:
        logger.warning("Client disconnected while sending the upload")
        raise StagingFailed from e


@asynccontextmanager
async def receive_upload(
    request: Request,
    field: str,
    max_bytes: int,
) -> AsyncIterator[UploadFile]:
    """
    Parse the multipart body and yield the file part named ``field``.

    ``max_bytes`` bounds the whole request body. It is checked against the
    declared ``Content-Length`` before reading and against the bytes actually
    received while parsing. The parsed form (and any spooled part files) is
    closed on exit.

    Raises:
        PayloadTooLarge: If the body is, or grows, larger than ``max_bytes``.
        MissingFormField: If the form has no file part named ``field``.
        StagingFailed: If the client disconnects while the body is read.
    """
    check_declared_length(request, max_bytes)
    form = await parse_multipart(request, max_bytes)

    try:
        upload = form.get(field)
        if upload is None or isinstance(upload, str):
            logger.info("Form field %r missing from upload", field)
            raise MissingFormField(f"Missing form field: {field}")
        yield upload
    finally:
        await form.close()


# =============================================================================
# Service
# =============================================================================


class VideoIngestService:
    """
    Runs the ingestion pipeline for one authorized upload.

    Every collaborator is injected so tests can replace the store, storage
    client and media tools with mocks.

    Example usage:
        ```python
        service = VideoIngestService(settings, store, storage, inspector, remuxer, signer)
        owned = await guard.authorize(video_id, authorization)
        async with receive_upload(request, "video", settings.max_video_upload_bytes) as upload:
            video = await service.ingest(owned, upload)
        ```
    """

    def __init__(
        self,
        settings: Settings,
        store: VideoStore,
        storage: StorageClient,
        inspector: MediaInspector,
        remuxer: MediaRemuxer,
        signer: LocationSigner,
    ) -> None:
        self.settings = settings
        self.store = store
        self.storage = storage
        self.inspector = inspector
        self.remuxer = remuxer
        self.signer = signer

    async def ingest(self, owned: OwnedVideo, upload: UploadFile) -> Video:
        """
        Process ``upload`` and attach it to ``owned.video``.

        Returns:
            Video: The updated record with a presigned URL in ``video_url``.

        Raises:
            UnsupportedMediaType: The part is not declared as ``video/mp4``.
            PayloadTooLarge: The part grew past the size cap while staging.
            StagingFailed, ProbeFailed, RemuxFailed, UploadFailed,
            PersistenceFailed, SigningFailed: The corresponding stage failed.
        """
        video = owned.video
        log_extra = {"video_id": str(video.id), "user_id": str(owned.user_id)}

        media_type = parse_media_type(upload.content_type)
        if media_type != VIDEO_MEDIA_TYPE:
            logger.info("Rejected upload with media type %r", media_type, extra=log_extra)
            raise UnsupportedMediaType("Invalid file type, only MP4 is allowed")

        staged_path: Path | None = None
        processed_path: Path | None = None

        try:
            staged_path = self._create_staging_file()
            size = await self._stage(upload, staged_path)
            logger.info("Staged upload (%d bytes)", size, extra=log_extra)

            dimensions = await self.inspector.probe(staged_path)
            layout = classify_layout(dimensions.width, dimensions.height)

            processed_path = staged_path.with_name(staged_path.name + PROCESSING_SUFFIX)
            processed_path = await self.remuxer.remux(staged_path)

            location = StorageLocation(
                bucket=self.settings.s3_bucket_name,
                key=compose_video_key(layout),
            )
            await self.storage.upload_file(
                str(processed_path),
                location.key,
                VIDEO_MEDIA_TYPE,
                bucket=location.bucket,
            )

            saved = await self._persist(video, location)
            logger.info(
                "Video ingested",
                extra={
                    **log_extra,
                    "layout": layout.value,
                    "width": dimensions.width,
                    "height": dimensions.height,
                    "key": location.key,
                },
            )

            if video.video_url:
                await self._discard_previous(video.video_url)

            return self.signer.sign_video(saved)

        finally:
            self._cleanup(staged_path, processed_path)

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _create_staging_file(self) -> Path:
        try:
            fd, name = tempfile.mkstemp(
                prefix=STAGING_PREFIX, suffix=STAGING_SUFFIX, dir=self.settings.staging_dir
            )
            os.close(fd)
        except OSError as e:
            logger.exception("Could not create staging file")
            raise StagingFailed from e
        return Path(name)

    async def _stage(self, upload: UploadFile, path: Path) -> int:
        """Copy the upload to ``path`` in chunks, enforcing the size cap."""
        max_bytes = self.settings.max_video_upload_bytes
        chunk_size = self.settings.upload_chunk_size
        written = 0

        try:
            async with aiofiles.open(path, "wb") as staged:
                while chunk := await upload.read(chunk_size):
                    written += len(chunk)
                    if written > max_bytes:
                        logger.warning(
                            "Upload exceeded size cap while staging",
                            extra={"max_bytes": max_bytes},
                        )
                        raise PayloadTooLarge
                    await staged.write(chunk)
        except (OSError, ClientDisconnect) as e:
            logger.exception("Could not stage upload to %s", path)
            raise StagingFailed from e

        return written

    async def _persist(self, video: Video, location: StorageLocation) -> Video:
        updated = video.model_copy(update={"video_url": encode_location(location)})
        try:
            return await self.store.update_video(updated)
        except TubelyError:
            logger.error(
                "Record update failed after upload, removing stored object",
                extra={"video_id": str(video.id), "key": location.key},
            )
            await self._delete_object(location)
            raise

    async def _discard_previous(self, descriptor: str) -> None:
        try:
            previous = decode_location(descriptor)
        except TubelyError:
            logger.warning("Previous video descriptor unreadable, leaving object in place")
            return
        await self._delete_object(previous)

    async def _delete_object(self, location: StorageLocation) -> None:
        try:
            await self.storage.delete_file(location.key, bucket=location.bucket)
        except (ClientError, BotoCoreError):
            logger.warning(
                "Could not delete stored object",
                exc_info=True,
                extra={"bucket": location.bucket, "key": location.key},
            )

    def _cleanup(self, *paths: Path | None) -> None:
        for path in paths:
            if path is None:
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as cleanup_error:
                logger.warning(
                    "Failed to clean up temporary file '%s': %s", path, str(cleanup_error)
                )
