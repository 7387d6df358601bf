"""
Pydantic data models for Tubely.

- Video: video metadata record stored in MongoDB
- StorageLocation: structured (bucket, key) address of a stored object
- StreamDimensions: probed frame size of a media file
- VideoLayout: coarse aspect-ratio bucket (landscape, portrait, other)
"""

from tubely.models.video import StorageLocation, StreamDimensions, Video, VideoLayout


__all__ = [
    "StorageLocation",
    "StreamDimensions",
    "Video",
    "VideoLayout",
]
