"""
Tubely MongoDB Database Client Module

This module provides async MongoDB connection management for Tubely using
Motor (async MongoDB driver), and the video metadata store built on top of it:
- Connection pooling with configurable pool size
- Health checks using MongoDB ping command
- Index creation for the ``videos`` collection
- Startup/shutdown lifecycle management for FastAPI integration
- Retry logic with exponential backoff for connection reliability
- ``VideoStore`` protocol and its Mongo implementation (get, update, list)

Driver errors raised by store operations are converted to ``PersistenceFailed``
so callers only handle the pipeline's own error taxonomy.
"""

import asyncio
import logging

from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from tubely.config import Settings
from tubely.core.errors import NotFound, PersistenceFailed
from tubely.models.video import Video


# Configure module logger for structured logging
logger = logging.getLogger(__name__)

# Collection name constants for consistency
VIDEOS_COLLECTION = "videos"


# =============================================================================
# Video Store
# =============================================================================


class VideoStore(Protocol):
    """Metadata store operations used by the ingestion pipeline."""

    async def get_video(self, video_id: UUID) -> Video | None: ...

    async def update_video(self, video: Video) -> Video: ...

    async def get_videos(self, user_id: UUID) -> list[Video]: ...


class MongoVideoStore:
    """
    ``VideoStore`` backed by the ``videos`` collection.

    Documents use the string form of the video UUID as ``_id`` and store
    ``user_id`` as a string as well.
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def get_video(self, video_id: UUID) -> Video | None:
        try:
            document = await self._collection.find_one({"_id": str(video_id)})
        except PyMongoError as e:
            logger.exception("Failed to load video %s", video_id)
            raise PersistenceFailed("Could not load the video record") from e

        if document is None:
            return None
        return Video.from_document(document)

    async def update_video(self, video: Video) -> Video:
        """Replace the mutable fields of a record and refresh ``updated_at``."""
        updated = video.model_copy(update={"updated_at": datetime.now(UTC)})
        document = updated.to_document()
        document.pop("_id")
        document.pop("created_at")

        try:
            result = await self._collection.update_one(
                {"_id": str(video.id)},
                {"$set": document},
            )
        except PyMongoError as e:
            logger.exception("Failed to update video %s", video.id)
            raise PersistenceFailed from e

        if result.matched_count == 0:
            logger.warning("Update matched no video record: %s", video.id)
            raise NotFound

        logger.debug("Updated video record %s", video.id)
        return updated

    async def get_videos(self, user_id: UUID) -> list[Video]:
        try:
            cursor = self._collection.find({"user_id": str(user_id)}).sort("created_at", -1)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.exception("Failed to list videos for user %s", user_id)
            raise PersistenceFailed("Could not load video records") from e

        return [Video.from_document(document) for document in documents]

    async def create_video(self, video: Video) -> Video:
        """Insert a new record. Used by seeding scripts and tests."""
        try:
            await self._collection.insert_one(video.to_document())
        except PyMongoError as e:
            logger.exception("Failed to create video %s", video.id)
            raise PersistenceFailed("Could not create the video record") from e

        logger.info("Created video record %s for user %s", video.id, video.user_id)
        return video


# =============================================================================
# Database Client
# =============================================================================


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Attributes:
        _settings: Settings instance containing MongoDB configuration
        _client: Motor async MongoDB client instance
        _database: Motor async database instance

    Example usage:
        ```python
        db_client = DatabaseClient(settings)
        await db_client.connect()

        store = db_client.get_video_store()
        video = await store.get_video(video_id)

        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._min_pool_size = settings.mongodb_min_pool_size
        self._max_pool_size = settings.mongodb_max_pool_size
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

        logger.info(
            "DatabaseClient initialized with pool size %d-%d for database: %s",
            self._min_pool_size,
            self._max_pool_size,
            self._db_name,
        )

    async def connect(self) -> bool:
        """
        Establish MongoDB connection with retry logic and exponential backoff.

        Makes 3 attempts with exponential backoff (1s, 2s, 4s) and verifies
        each attempt with a ping.

        Returns:
            bool: True if connection successful, False on failure after all retries.
        """
        max_retries = 3
        retry_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                logger.info(
                    "Attempting MongoDB connection (attempt %d/%d) to %s...",
                    attempt,
                    max_retries,
                    self._db_name,
                )

                self._client = AsyncIOMotorClient(
                    self._mongodb_uri,
                    minPoolSize=self._min_pool_size,
                    maxPoolSize=self._max_pool_size,
                    serverSelectionTimeoutMS=5000,
                    tz_aware=True,
                )
                self._database = self._client[self._db_name]

                await self._client.admin.command("ping")

                logger.info("Successfully connected to MongoDB database: %s", self._db_name)
                return True

            except (ServerSelectionTimeoutError, ConnectionFailure):
                logger.exception(
                    "MongoDB connection failure (attempt %d/%d)", attempt, max_retries
                )
                if attempt < max_retries:
                    logger.warning("Retrying in %.0f seconds...", retry_delay)
                    await asyncio.sleep(retry_delay)
                    retry_delay *= 2

        logger.error(
            "Failed to connect to MongoDB after %d attempts. "
            "Check connection URI and server availability.",
            max_retries,
        )
        return False

    async def close(self) -> None:
        """Close the MongoDB connection. Safe to call when not connected."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed for database: %s", self._db_name)
        else:
            logger.warning("MongoDB close called but no active connection exists")

    async def ping(self) -> bool:
        """
        Health check using MongoDB admin ping command.

        Returns:
            bool: True if ping successful, False on failure.
        """
        if self._client is None:
            logger.warning("MongoDB ping failed: No active connection")
            return False

        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            logger.exception("MongoDB ping failed")
            return False

    def get_videos_collection(self) -> AsyncIOMotorCollection:
        """
        Get the videos collection.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError(
                "MongoDB database not available. Call connect() first or check connection status."
            )
        return self._database[VIDEOS_COLLECTION]

    def get_video_store(self) -> MongoVideoStore:
        return MongoVideoStore(self.get_videos_collection())

    async def create_indexes(self) -> None:
        """Create indexes used by the per-user listing query."""
        videos = self.get_videos_collection()
        try:
            await videos.create_index("user_id")
            await videos.create_index([("user_id", 1), ("created_at", -1)])
        except PyMongoError:
            logger.exception("Error creating MongoDB indexes")
            raise
        logger.info("Created indexes on %s collection", VIDEOS_COLLECTION)


# Container class for database client singleton to avoid global statements
class _DatabaseClientContainer:
    """Container for database client singleton to avoid global statements."""

    client: DatabaseClient | None = None


_container = _DatabaseClientContainer()


async def init_db(settings: Settings) -> DatabaseClient:
    """
    Initialize the global database client singleton.

    Connects to MongoDB and creates indexes. Called from the FastAPI lifespan.

    Raises:
        RuntimeError: If connection to MongoDB fails after all retries.
    """
    if _container.client is not None:
        logger.warning("Database client already initialized, returning existing instance")
        return _container.client

    logger.info("Initializing MongoDB database client...")
    client = DatabaseClient(settings)

    if not await client.connect():
        raise RuntimeError(
            "Failed to establish MongoDB connection. "
            "Check mongodb_uri configuration and server availability."
        )

    await client.create_indexes()
    _container.client = client

    logger.info("MongoDB database client initialization complete")
    return client


async def close_db() -> None:
    """Close the global database client connection."""
    if _container.client is not None:
        logger.info("Closing MongoDB database client...")
        await _container.client.close()
        _container.client = None
    else:
        logger.warning("close_db called but no database client exists")


def get_db_client() -> DatabaseClient:
    """
    Get the global database client singleton instance.

    Raises:
        RuntimeError: If database client has not been initialized.
    """
    if _container.client is None:
        raise RuntimeError(
            "Database client not initialized. Call init_db() first during application startup."
        )
    return _container.client


def get_video_store() -> MongoVideoStore:
    """Get the video store backed by the global database client."""
    return get_db_client().get_video_store()
