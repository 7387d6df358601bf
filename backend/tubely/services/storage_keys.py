"""Object key composition for uploaded videos."""

import secrets

from tubely.models.video import VideoLayout


# 32 random bytes, hex encoded to 64 characters
KEY_TOKEN_BYTES = 32


def compose_video_key(layout: VideoLayout, extension: str = "mp4") -> str:
    """
    Build a fresh object key of the form ``<layout>/<64 hex chars>.<extension>``.

    The token comes from the OS CSPRNG, so keys are unguessable and a
    re-upload never overwrites an earlier object.
    """
    token = secrets.token_hex(KEY_TOKEN_BYTES)
    return f"{layout.value}/{token}.{extension.lstrip('.')}"
