"""
S3 Storage Adapter for the ParkLookup media service.

Writes normalized media and thumbnails to S3-compatible storage (MinIO).
Unlike the read helpers, writes never degrade silently: a failed upload
raises StorageError so the upload lifecycle can mark the asset failed.
"""

import asyncio
import io
import time
from urllib.parse import urlparse

from minio import Minio

from ..core.config import S3Config, settings
from ..core.logging import get_logger
from ..observability.metrics import metrics

logger = get_logger("adapters.storage_s3")


class StorageError(Exception):
    """Object storage write or delete failed."""

    pass


class S3Storage:
    """S3-compatible storage adapter using MinIO."""

    def __init__(self, config: S3Config | None = None, client: Minio | None = None):
        """Initialize S3 storage adapter."""
        self.config = config or settings.s3
        self.endpoint = self.config.endpoint
        self._client = client
        self._known_buckets: set[str] = set()
        logger.info("S3Storage initialized", endpoint=self.endpoint)

    def _get_client(self) -> Minio:
        """Get or create MinIO client."""
        if self._client is None:
            parsed = urlparse(self.endpoint)
            secure = parsed.scheme == "https"
            endpoint = parsed.netloc or parsed.path

            self._client = Minio(
                endpoint,
                access_key=self.config.access_key,
                secret_key=self.config.secret_key.get_secret_value(),
                region=self.config.region,
                secure=secure,
            )
        return self._client

    def _ensure_bucket(self, client: Minio, bucket: str) -> None:
        if bucket in self._known_buckets:
            return
        if not client.bucket_exists(bucket_name=bucket):
            client.make_bucket(bucket_name=bucket)
            logger.info("Created bucket", bucket=bucket)
        self._known_buckets.add(bucket)

    async def upload_bytes(self, bucket: str, key: str, data: bytes, content_type: str) -> str:
        """
        Upload an in-memory object.

        Args:
            bucket: Target bucket
            key: Object key
            data: Object bytes
            content_type: MIME type stored with the object

        Returns:
            The object key

        Raises:
            StorageError: If the write fails
        """
        start_time = time.time()

        def _put():
            client = self._get_client()
            self._ensure_bucket(client, bucket)
            client.put_object(
                bucket_name=bucket,
                object_name=key,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )

        try:
            await asyncio.get_running_loop().run_in_executor(None, _put)
        except Exception as e:
            metrics.track_storage_operation("upload", bucket, "failure", time.time() - start_time)
            logger.error("Failed to upload object", bucket=bucket, key=key, error=str(e))
            raise StorageError(f"Failed to upload {bucket}/{key}: {e}") from e

        metrics.track_storage_operation("upload", bucket, "success", time.time() - start_time)
        logger.info("Uploaded object", bucket=bucket, key=key, size=len(data))
        return key

    async def delete_object(self, bucket: str, key: str) -> bool:
        """Delete object from S3. Returns False instead of raising on failure."""
        start_time = time.time()
        client = self._get_client()

        try:
            await asyncio.get_running_loop().run_in_executor(
                None, lambda: client.remove_object(bucket_name=bucket, object_name=key)
            )
        except Exception as e:
            metrics.track_storage_operation("delete", bucket, "failure", time.time() - start_time)
            logger.error("Failed to delete object", bucket=bucket, key=key, error=str(e))
            return False

        metrics.track_storage_operation("delete", bucket, "success", time.time() - start_time)
        logger.info("Deleted object", bucket=bucket, key=key)
        return True

    def public_url(self, bucket: str, key: str | None) -> str | None:
        """Build the public URL of an object, or None for an empty key."""
        if not key:
            return None
        base = (self.config.public_base_url or self.endpoint).rstrip("/")
        return f"{base}/{bucket}/{key}"

    def health_check(self) -> bool:
        """Check that the media bucket is reachable."""
        try:
            self._get_client().bucket_exists(bucket_name=self.config.media_bucket)
            return True
        except Exception as e:
            logger.error("Storage health check failed", error=str(e))
            return False


# Global instance
s3_storage = S3Storage()
