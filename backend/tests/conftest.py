"""
Pytest Configuration and Test Fixtures for the Tubely Backend

This module provides shared fixtures including:
- Test Settings with staging and asset directories under tmp_path
- A video record owned by a test user, and bearer tokens for that user
- Mocked metadata store and S3 storage client
- Fake ffprobe/ffmpeg collaborators that never spawn processes
- A FastAPI TestClient with dependencies overridden to use the mocks
- A minimal valid PNG for thumbnail tests
"""

import binascii
import json
import struct
import zlib

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest

from fastapi.testclient import TestClient
from jose import jwt

from tubely.api.v1.videos import get_video_ingest_service
from tubely.config import Settings, get_settings
from tubely.core.database import get_video_store
from tubely.core.storage import StorageClient, get_storage_client
from tubely.main import app
from tubely.models.video import StreamDimensions, Video
from tubely.services.location import LocationSigner
from tubely.services.media import PROCESSING_SUFFIX
from tubely.services.video_ingest import VideoIngestService


TEST_JWT_SECRET = "test-secret-key-for-jwt-signing-minimum-32-chars"

PRESIGNED_URL = "https://s3.example.com/test-bucket/key.mp4?X-Amz-Signature=abc123"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def staging_dir(tmp_path: Path) -> Path:
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def mock_settings(tmp_path: Path, staging_dir: Path) -> Settings:
    """
    Settings for an isolated test environment.

    Uploads are capped at 1 MiB and staged in chunks of 1 KiB so size-limit
    behavior can be exercised with small payloads.
    """
    return Settings(
        app_env="testing",
        app_name="tubely-test",
        debug=True,
        json_logs=False,
        mongodb_uri="mongodb://localhost:27017/test_tubely",
        mongodb_db_name="test_tubely",
        s3_endpoint_url="http://localhost:9000",
        s3_access_key_id="test-access-key",
        s3_secret_access_key="test-secret-key",
        s3_bucket_name="test-bucket",
        s3_region="us-east-1",
        signed_url_ttl_seconds=3600,
        jwt_secret=TEST_JWT_SECRET,
        jwt_issuer="tubely-access",
        max_video_upload_bytes=1024 * 1024,
        max_thumbnail_memory_bytes=64 * 1024,
        upload_chunk_size=1024,
        staging_dir=str(staging_dir),
        assets_root=str(tmp_path / "assets"),
        platform_url="http://localhost:8091",
        media_tool_timeout_seconds=5.0,
    )


# ==============================================================================
# User, Token and Record Fixtures
# ==============================================================================


@pytest.fixture
def test_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_user_id() -> UUID:
    return uuid4()


def make_token(
    user_id: UUID | str,
    secret: str = TEST_JWT_SECRET,
    issuer: str = "tubely-access",
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """Encode an HS256 bearer token the way the token issuer does."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iss": issuer,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def test_jwt_token(test_user_id: UUID) -> str:
    return make_token(test_user_id)


@pytest.fixture
def test_expired_jwt_token(test_user_id: UUID) -> str:
    return make_token(test_user_id, expires_in=timedelta(hours=-1))


@pytest.fixture
def auth_headers(test_jwt_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {test_jwt_token}"}


@pytest.fixture
def test_video(test_user_id: UUID) -> Video:
    """A video record owned by the test user with no upload yet."""
    created = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
    return Video(
        id=uuid4(),
        user_id=test_user_id,
        title="Boots on the ground",
        description="A short clip",
        created_at=created,
        updated_at=created,
    )


# ==============================================================================
# Collaborator Mocks
# ==============================================================================


@pytest.fixture
def mock_store(test_video: Video) -> AsyncMock:
    """Metadata store returning ``test_video`` and echoing updates."""
    store = AsyncMock()
    store.get_video = AsyncMock(return_value=test_video)
    store.update_video = AsyncMock(side_effect=lambda video: video)
    store.get_videos = AsyncMock(return_value=[test_video])
    return store


@pytest.fixture
def mock_storage() -> Mock:
    """Mocked S3 storage client."""
    storage = Mock(spec=StorageClient)
    storage.upload_file = AsyncMock(return_value=None)
    storage.delete_file = AsyncMock(return_value=None)
    storage.generate_presigned_download_url = Mock(return_value=PRESIGNED_URL)
    return storage


@pytest.fixture
def mock_inspector() -> AsyncMock:
    """ffprobe stand-in reporting a 1920x1080 first stream."""
    inspector = AsyncMock()
    inspector.probe = AsyncMock(return_value=StreamDimensions(width=1920, height=1080))
    return inspector


@pytest.fixture
def mock_remuxer() -> AsyncMock:
    """ffmpeg stand-in that copies the staged file to ``<path>.processing``."""

    async def remux(path: Path) -> Path:
        output = path.with_name(path.name + PROCESSING_SUFFIX)
        output.write_bytes(path.read_bytes())
        return output

    remuxer = AsyncMock()
    remuxer.remux = AsyncMock(side_effect=remux)
    return remuxer


@pytest.fixture
def location_signer(mock_storage: Mock, mock_settings: Settings) -> LocationSigner:
    return LocationSigner(mock_storage, mock_settings)


@pytest.fixture
def ingest_service(
    mock_settings: Settings,
    mock_store: AsyncMock,
    mock_storage: Mock,
    mock_inspector: AsyncMock,
    mock_remuxer: AsyncMock,
    location_signer: LocationSigner,
) -> VideoIngestService:
    return VideoIngestService(
        settings=mock_settings,
        store=mock_store,
        storage=mock_storage,
        inspector=mock_inspector,
        remuxer=mock_remuxer,
        signer=location_signer,
    )


# ==============================================================================
# FastAPI Test Client
# ==============================================================================


@pytest.fixture
def test_client(
    mock_settings: Settings,
    mock_store: AsyncMock,
    mock_storage: Mock,
    ingest_service: VideoIngestService,
) -> Generator[TestClient, None, None]:
    """
    TestClient with settings, store, storage and media tools overridden.

    The lifespan is not entered, so no MongoDB or S3 connection is made.
    """
    app.dependency_overrides[get_settings] = lambda: mock_settings
    app.dependency_overrides[get_video_store] = lambda: mock_store
    app.dependency_overrides[get_storage_client] = lambda: mock_storage
    app.dependency_overrides[get_video_ingest_service] = lambda: ingest_service

    yield TestClient(app)

    app.dependency_overrides.clear()


# ==============================================================================
# File Fixtures
# ==============================================================================


def _png_chunk(chunk_type: bytes, data: bytes) -> bytes:
    crc = binascii.crc32(chunk_type + data) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + chunk_type + data + struct.pack(">I", crc)


@pytest.fixture
def test_png() -> bytes:
    """A valid 1x1 RGB PNG."""
    header = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    pixels = zlib.compress(b"\x00\xff\x00\x00")
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", pixels)
        + _png_chunk(b"IEND", b"")
    )


@pytest.fixture
def test_mp4_bytes() -> bytes:
    """Bytes standing in for an MP4 body (the media tools are mocked)."""
    return b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 4096


def staged_files(directory: Path) -> list[Path]:
    """Files left behind in a staging directory."""
    return sorted(directory.iterdir())


def make_process(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0) -> Mock:
    """Fake ``asyncio.subprocess.Process`` with canned output and exit status."""
    process = Mock()
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    process.returncode = returncode
    process.kill = Mock()
    process.wait = AsyncMock(return_value=returncode)
    return process


def ffprobe_json(*streams: dict) -> bytes:
    return json.dumps({"streams": list(streams)}).encode()
