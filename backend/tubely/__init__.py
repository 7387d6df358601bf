"""
Tubely Backend Application Package

This package contains the Tubely FastAPI application for video ingestion.
The service provides:

- Authorization-gated video uploads with a 1 GiB body cap
- Aspect ratio classification via ffprobe (landscape, portrait, other)
- Faststart remuxing via ffmpeg for progressive playback
- Durable storage in S3/MinIO with presigned playback URLs
- Thumbnail uploads served from a local asset directory

Package Structure:
- api/: REST API endpoints organized by version (v1)
- core/: Core infrastructure (database, storage, auth, errors)
- models/: Pydantic data models
- services/: Ingestion pipeline stages and orchestration
- utils/: Logging and upload validation helpers
"""

__version__ = "1.0.0"
__app_name__ = "tubely"
