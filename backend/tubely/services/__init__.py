"""
Services module for the Tubely backend application.

This package contains the ingestion pipeline stages and their orchestration:

- ownership: Resolves the caller and asserts ownership of a video record
- media: ffprobe aspect classification and ffmpeg faststart remuxing
- storage_keys: Layout-namespaced, collision-resistant object keys
- location: Location descriptor codec and presigned URL signing
- video_ingest: Upload orchestration and temporary file lifecycle
- thumbnail_service: Thumbnail validation and local asset storage

Services receive their collaborators and settings through their constructors
and are wired into FastAPI routes via dependency functions.
"""
