"""
Video endpoints for Tubely API v1.

- POST /videos/{video_id}/video: upload, classify, remux and store a video
- POST /videos/{video_id}/thumbnail: attach a JPEG/PNG thumbnail
- GET /videos/{video_id}: read one of the caller's videos
- GET /videos: list the caller's videos

All endpoints require ``Authorization: Bearer <token>``. Stored video
locations are exchanged for presigned playback URLs in every response.

The upload endpoints read the multipart body themselves (instead of declaring
``File(...)`` parameters) so ownership and the declared body size are checked
before any of the body is parsed.
"""

import logging

from fastapi import APIRouter, Depends, Header, Request

from tubely.config import Settings, get_settings
from tubely.core.database import VideoStore, get_video_store
from tubely.core.storage import StorageClient, get_storage_client
from tubely.models.video import Video
from tubely.services.location import LocationSigner
from tubely.services.media import FFmpegRemuxer, FFprobeInspector
from tubely.services.ownership import OwnershipGuard
from tubely.services.thumbnail_service import (
    MULTIPART_OVERHEAD_BYTES,
    THUMBNAIL_FORM_FIELD,
    ThumbnailService,
)
from tubely.services.video_ingest import VIDEO_FORM_FIELD, VideoIngestService, receive_upload


logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# OpenAPI helpers
# ============================================================================

ERROR_RESPONSES = {
    400: {"description": "Invalid video ID, media type or missing form field"},
    401: {"description": "Missing or invalid bearer token"},
    403: {"description": "Video belongs to another user"},
    404: {"description": "Video not found"},
    500: {"description": "Processing, storage or persistence failure"},
}


def _multipart_body(field: str) -> dict:
    return {
        "requestBody": {
            "required": True,
            "content": {
                "multipart/form-data": {
                    "schema": {
                        "type": "object",
                        "required": [field],
                        "properties": {field: {"type": "string", "format": "binary"}},
                    }
                }
            },
        }
    }


# ============================================================================
# Dependency Injection Functions
# ============================================================================


def get_ownership_guard(
    store: VideoStore = Depends(get_video_store),
    settings: Settings = Depends(get_settings),
) -> OwnershipGuard:
    return OwnershipGuard(store, settings)


def get_location_signer(
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
) -> LocationSigner:
    return LocationSigner(storage, settings)


def get_video_ingest_service(
    settings: Settings = Depends(get_settings),
    store: VideoStore = Depends(get_video_store),
    storage: StorageClient = Depends(get_storage_client),
    signer: LocationSigner = Depends(get_location_signer),
) -> VideoIngestService:
    """
    Dependency injection for VideoIngestService.

    Wires the ffprobe/ffmpeg wrappers configured from settings; tests override
    this dependency to substitute fakes for the media tools.
    """
    return VideoIngestService(
        settings=settings,
        store=store,
        storage=storage,
        inspector=FFprobeInspector(settings),
        remuxer=FFmpegRemuxer(settings),
        signer=signer,
    )


def get_thumbnail_service(
    settings: Settings = Depends(get_settings),
    store: VideoStore = Depends(get_video_store),
    signer: LocationSigner = Depends(get_location_signer),
) -> ThumbnailService:
    return ThumbnailService(settings, store, signer)


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/{video_id}/video",
    response_model=Video,
    summary="Upload a video",
    description="Upload an MP4 for an existing video record (multipart field 'video', max 1 GiB).",
    responses={**ERROR_RESPONSES, 413: {"description": "Upload too large"}},
    openapi_extra=_multipart_body(VIDEO_FORM_FIELD),
)
async def upload_video(
    video_id: str,
    request: Request,
    authorization: str | None = Header(default=None),
    guard: OwnershipGuard = Depends(get_ownership_guard),
    service: VideoIngestService = Depends(get_video_ingest_service),
    settings: Settings = Depends(get_settings),
) -> Video:
    """
    Upload the video file for a record owned by the caller.

    Returns:
        Video: The updated record with a presigned playback URL.
    """
    owned = await guard.authorize(video_id, authorization)
    logger.info("Uploading video %s for user %s", owned.video.id, owned.user_id)

    async with receive_upload(
        request, VIDEO_FORM_FIELD, settings.max_video_upload_bytes
    ) as upload:
        return await service.ingest(owned, upload)


@router.post(
    "/{video_id}/thumbnail",
    response_model=Video,
    summary="Upload a thumbnail",
    description="Upload a JPEG or PNG thumbnail (multipart field 'thumbnail', max 10 MiB).",
    responses={**ERROR_RESPONSES, 413: {"description": "Thumbnail too large"}},
    openapi_extra=_multipart_body(THUMBNAIL_FORM_FIELD),
)
async def upload_thumbnail(
    video_id: str,
    request: Request,
    authorization: str | None = Header(default=None),
    guard: OwnershipGuard = Depends(get_ownership_guard),
    service: ThumbnailService = Depends(get_thumbnail_service),
    settings: Settings = Depends(get_settings),
) -> Video:
    owned = await guard.authorize(video_id, authorization)
    logger.info("Uploading thumbnail for video %s", owned.video.id)

    async with receive_upload(
        request,
        THUMBNAIL_FORM_FIELD,
        settings.max_thumbnail_memory_bytes + MULTIPART_OVERHEAD_BYTES,
    ) as upload:
        return await service.attach(owned, upload)


@router.get(
    "/{video_id}",
    response_model=Video,
    summary="Get a video",
    responses=ERROR_RESPONSES,
)
async def get_video(
    video_id: str,
    authorization: str | None = Header(default=None),
    guard: OwnershipGuard = Depends(get_ownership_guard),
    signer: LocationSigner = Depends(get_location_signer),
) -> Video:
    owned = await guard.authorize(video_id, authorization)
    return signer.sign_video(owned.video)


@router.get(
    "",
    response_model=list[Video],
    summary="List videos",
    description="List the caller's videos, newest first.",
    responses={401: ERROR_RESPONSES[401], 500: ERROR_RESPONSES[500]},
)
async def list_videos(
    authorization: str | None = Header(default=None),
    guard: OwnershipGuard = Depends(get_ownership_guard),
    signer: LocationSigner = Depends(get_location_signer),
) -> list[Video]:
    user_id = guard.authenticate(authorization)
    videos = await guard.store.get_videos(user_id)
    return signer.sign_videos(videos)
