"""
Ownership checks for video mutations.

``OwnershipGuard.authorize`` is the first step of every write to a video
record. It establishes, in order, that the path identifier is a UUID, that the
caller presented a valid bearer token, that the record exists, and that the
caller owns it. Each step fails with its own error so the HTTP status tells
the client which precondition was not met.
"""

import logging

from dataclasses import dataclass
from uuid import UUID

from tubely.config import Settings
from tubely.core.auth import get_bearer_token, validate_jwt
from tubely.core.database import VideoStore
from tubely.core.errors import Forbidden, InvalidIdentifier, NotFound
from tubely.models.video import Video


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnedVideo:
    """A video record together with the authenticated caller who owns it."""

    video: Video
    user_id: UUID


def parse_video_id(video_id_text: str) -> UUID:
    """Parse a path identifier, raising ``InvalidIdentifier`` if it is not a UUID."""
    try:
        return UUID(video_id_text)
    except (ValueError, TypeError) as e:
        logger.debug("Rejected video id %r", video_id_text)
        raise InvalidIdentifier from e


class OwnershipGuard:
    def __init__(self, store: VideoStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings

    def authenticate(self, authorization: str | None) -> UUID:
        """Validate the bearer credential and return the caller's user id."""
        token = get_bearer_token(authorization)
        return validate_jwt(token, self.settings)

    async def authorize(self, video_id_text: str, authorization: str | None) -> OwnedVideo:
        """
        Resolve the video named by ``video_id_text`` for its owner.

        Raises:
            InvalidIdentifier: The id is not a UUID (400).
            Unauthenticated: The bearer credential is missing or invalid (401).
            NotFound: No record has that id (404).
            Forbidden: The record belongs to another user (403).
        """
        video_id = parse_video_id(video_id_text)
        user_id = self.authenticate(authorization)

        video = await self.store.get_video(video_id)
        if video is None:
            logger.info("Video not found", extra={"video_id": str(video_id)})
            raise NotFound

        if video.user_id != user_id:
            logger.warning(
                "Ownership check failed",
                extra={"video_id": str(video_id), "user_id": str(user_id)},
            )
            raise Forbidden

        return OwnedVideo(video=video, user_id=user_id)
