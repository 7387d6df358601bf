"""
File Validation Utilities Module for Tubely

Helpers used by the upload paths to check what a client sent:
- Media type parsing for multipart part headers (parameters stripped)
- Content sniffing with libmagic so a declared image type cannot be spoofed
- Extension lookup for the image types accepted as thumbnails
"""

import logging

import magic


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

VIDEO_MEDIA_TYPE = "video/mp4"

# Accepted thumbnail media types and the extension each is stored with
THUMBNAIL_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
}

# libmagic only needs the leading bytes of a file
SNIFF_BYTES = 2048


# =============================================================================
# MEDIA TYPES
# =============================================================================


def parse_media_type(content_type: str | None) -> str:
    """
    Return the bare, lower-cased media type of a ``Content-Type`` value.

    Examples:
        >>> parse_media_type("video/mp4; codecs=avc1")
        'video/mp4'
        >>> parse_media_type(None)
        ''
    """
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def detect_mime_type(content: bytes) -> str:
    """Detect the MIME type of ``content`` from its leading bytes using libmagic."""
    if not content:
        return ""
    detected = magic.from_buffer(content[:SNIFF_BYTES], mime=True)
    return (detected or "").lower().strip()


def content_matches_media_type(content: bytes, media_type: str) -> bool:
    """
    Check that sniffed content agrees with a declared media type.

    Returns:
        bool: True if libmagic detects exactly ``media_type``.
    """
    detected = detect_mime_type(content)
    if detected != media_type:
        logger.warning(
            "Content type mismatch",
            extra={"declared": media_type, "detected": detected or "unknown"},
        )
        return False
    return True
