"""
Tubely S3-Compatible Storage Client

This module wraps boto3 for the object storage operations the ingestion
pipeline needs. It supports both MinIO (development) and AWS S3 (production)
through a configurable endpoint URL.

Key Features:
- Managed (multipart-capable) upload of a local file with its content type
- Presigned GET URL generation for time-limited playback
- Object deletion for rollback and replacement of superseded uploads
- Singleton accessor for reuse of the underlying boto3 client

boto3 is synchronous; the upload and delete calls are moved off the event
loop with ``asyncio.to_thread``. Presigning is a local computation and stays
synchronous.
"""

import asyncio
import logging

import boto3

from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from tubely.config import Settings, get_settings
from tubely.core.errors import UploadFailed


# Configure module-level constants to avoid magic numbers
MIN_PRESIGNED_EXPIRATION_SECONDS = 60
MAX_PRESIGNED_EXPIRATION_SECONDS = 604800

# Configure module-level logger
logger = logging.getLogger(__name__)

# Singleton container for storage client instance
# Using a dict container allows modification without global statement
_singleton_container: dict[str, "StorageClient"] = {}


class StorageClient:
    """
    S3-compatible storage client supporting both MinIO and AWS S3.

    Attributes:
        settings: Application settings containing S3 configuration
        s3_client: Initialized boto3 S3 client
        bucket_name: Default bucket for all operations

    Example usage:
        ```python
        from tubely.core.storage import get_storage_client

        storage = get_storage_client()
        await storage.upload_file("/tmp/clip.mp4.processing", "landscape/ab12.mp4", "video/mp4")
        url = storage.generate_presigned_download_url("tubely-videos", "landscape/ab12.mp4")
        ```
    """

    def __init__(self, settings: Settings) -> None:
        """
        Initialize the S3 storage client with configuration from settings.

        Args:
            settings: Settings instance holding the endpoint, credentials,
                region and default bucket.
        """
        self.settings = settings

        # Path-style addressing and SigV4 keep presigned URLs valid on MinIO
        client_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            retries={"max_attempts": 3, "mode": "standard"},
        )

        self.s3_client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=settings.s3_region,
            config=client_config,
        )
        self.bucket_name = settings.s3_bucket_name

        logger.info(
            "S3 storage client initialized successfully",
            extra={
                "bucket": self.bucket_name,
                "region": settings.s3_region,
                "endpoint": settings.s3_endpoint_url or "AWS S3 (default)",
            },
        )

    async def upload_file(
        self,
        file_path: str,
        key: str,
        content_type: str,
        bucket: str | None = None,
    ) -> None:
        """
        Upload a local file to S3 with the given content type.

        Uses boto3's managed transfer, which switches to multipart upload for
        large files. The call runs in a worker thread.

        Args:
            file_path: Path to the local file to upload.
            key: The S3 object key where the file will be stored.
                Example: "landscape/3f9a...c1.mp4"
            content_type: MIME type recorded on the object.
            bucket: Target bucket. Defaults to the configured bucket.

        Raises:
            UploadFailed: If the file cannot be read or the storage service
                rejects the upload.
        """
        bucket = bucket or self.bucket_name

        try:
            await asyncio.to_thread(
                self.s3_client.upload_file,
                Filename=file_path,
                Bucket=bucket,
                Key=key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, BotoCoreError, OSError) as e:
            logger.exception(
                "Failed to upload file to S3",
                extra={"file_path": file_path, "bucket": bucket, "key": key},
            )
            raise UploadFailed from e

        logger.info(
            "Uploaded file to S3",
            extra={"bucket": bucket, "key": key, "content_type": content_type},
        )

    def generate_presigned_download_url(
        self,
        bucket: str,
        key: str,
        expires_in: int = 3600,
    ) -> str:
        """
        Generate a presigned GET URL for time-limited download.

        Args:
            bucket: Bucket holding the object.
            key: The S3 object key.
            expires_in: Expiration time in seconds. Default is 3600 (1 hour).

        Returns:
            str: Presigned GET URL.

        Raises:
            ValueError: If expires_in is outside the valid range.
            ClientError, BotoCoreError: If URL generation fails.
        """
        if not MIN_PRESIGNED_EXPIRATION_SECONDS <= expires_in <= MAX_PRESIGNED_EXPIRATION_SECONDS:
            raise ValueError(
                f"expires_in must be between {MIN_PRESIGNED_EXPIRATION_SECONDS} and "
                f"{MAX_PRESIGNED_EXPIRATION_SECONDS} seconds, got {expires_in}"
            )

        presigned_url = self.s3_client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expires_in,
        )

        logger.debug(
            "Generated presigned download URL",
            extra={"bucket": bucket, "key": key, "expires_in": expires_in},
        )
        return presigned_url

    async def delete_file(self, key: str, bucket: str | None = None) -> None:
        """
        Delete an object from S3.

        Idempotent: deleting a missing key does not raise.

        Raises:
            ClientError, BotoCoreError: If the delete request fails.
        """
        bucket = bucket or self.bucket_name

        await asyncio.to_thread(self.s3_client.delete_object, Bucket=bucket, Key=key)

        logger.info("Deleted file from S3", extra={"bucket": bucket, "key": key})


def get_storage_client() -> StorageClient:
    """
    Get the singleton StorageClient instance.

    The boto3 client is thread-safe and is shared across requests.

    Returns:
        StorageClient: The shared storage client instance.
    """
    if "instance" not in _singleton_container:
        _singleton_container["instance"] = StorageClient(get_settings())
        logger.info("Created new StorageClient singleton instance")

    return _singleton_container["instance"]
