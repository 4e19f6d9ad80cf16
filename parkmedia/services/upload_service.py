"""
Upload lifecycle management for user media.

Every accepted upload gets a MediaAsset row in the processing state before
the pipeline runs. The row then moves exactly once, to ready after the
processed bytes are in object storage, or to failed with the error message
recorded verbatim. Nothing written to storage stays referenced by a failed
row.
"""

import asyncio
import time
import uuid
from typing import Any

from ..adapters.storage_s3 import S3Storage, StorageError, s3_storage
from ..core.config import settings
from ..core.logging import audit_logger, get_logger, with_logging_context
from ..media.formats import THUMBNAIL_MIME_TYPE, get_media_type
from ..media.processor import MediaProcessor, media_processor
from ..models.db import DatabaseManager, db_manager
from ..models.entities import MediaAsset
from ..models.repositories import MediaAssetRepository
from ..observability.metrics import metrics, track_processing_time

logger = get_logger("services.upload")

# Storage key extension per output MIME type
_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "video/mp4": "mp4",
}


class AssetNotFoundError(Exception):
    """No asset exists with the given id."""

    pass


class AssetAccessDeniedError(Exception):
    """The caller does not own the asset."""

    pass


def extension_for(mime_type: str) -> str:
    return _EXTENSIONS.get(mime_type, "bin")


def build_storage_keys(owner_id: str, asset_id: uuid.UUID, mime_type: str,
                       timestamp_ms: int | None = None) -> tuple[str, str]:
    """Return the primary and thumbnail object keys for an asset."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    base = f"{owner_id}/{asset_id}/{timestamp_ms}"
    return f"{base}.{extension_for(mime_type)}", f"{base}-thumb.jpg"


class UploadService:
    """Drives a MediaAsset from placeholder to ready or failed."""

    def __init__(
        self,
        processor: MediaProcessor | None = None,
        storage: S3Storage | None = None,
        db: DatabaseManager | None = None,
    ):
        self.processor = processor or media_processor
        self.storage = storage or s3_storage
        self.db = db or db_manager
        self.media_bucket = settings.s3.media_bucket
        self.thumbnail_bucket = settings.s3.thumbnail_bucket

    async def upload(
        self,
        owner_id: str,
        park_code: str,
        data: bytes,
        content_type: str,
        original_filename: str,
        title: str | None = None,
        description: str | None = None,
    ) -> MediaAsset:
        """
        Process an upload and persist the result.

        Args:
            owner_id: Authenticated owner id
            park_code: Park the media belongs to
            data: Raw upload bytes
            content_type: Declared MIME type
            original_filename: Client-supplied filename
            title: Optional title
            description: Optional description

        Returns:
            The ready MediaAsset

        Raises:
            Whatever the pipeline or storage raised, after the row is marked failed
        """
        media_type = get_media_type(content_type)

        with self.db.get_sync_session() as session:
            asset = MediaAssetRepository(session).create_placeholder(
                user_id=owner_id,
                park_code=park_code,
                media_type=media_type,
                original_filename=original_filename,
                file_size=len(data),
                mime_type=content_type,
                title=title,
                description=description,
            )
            asset_id = asset.id

        with with_logging_context(user_id=owner_id, asset_id=str(asset_id)):
            logger.info("Upload accepted", park_code=park_code, content_type=content_type, size=len(data))
            start_time = time.time()
            written: list[tuple[str, str]] = []

            try:
                result = await self.processor.process(data, content_type, original_filename)
                storage_path, thumbnail_key = build_storage_keys(owner_id, asset_id, result.mime_type)

                with track_processing_time(result.media_type.value, "store"):
                    await self.storage.upload_bytes(
                        self.media_bucket, storage_path, result.processed_data, result.mime_type
                    )
                    written.append((self.media_bucket, storage_path))

                    thumbnail_path = None
                    if result.thumbnail_data:
                        try:
                            await self.storage.upload_bytes(
                                self.thumbnail_bucket, thumbnail_key, result.thumbnail_data, THUMBNAIL_MIME_TYPE
                            )
                            thumbnail_path = thumbnail_key
                            written.append((self.thumbnail_bucket, thumbnail_key))
                        except StorageError as e:
                            logger.warning("Thumbnail upload failed, continuing without thumbnail", error=str(e))

                with self.db.get_sync_session() as session:
                    asset = MediaAssetRepository(session).mark_ready(
                        asset_id,
                        storage_path=storage_path,
                        thumbnail_path=thumbnail_path,
                        width=result.width,
                        height=result.height,
                        duration=result.duration,
                        mime_type=result.mime_type,
                    )

            except (Exception, asyncio.CancelledError) as e:
                await self._fail(asset_id, owner_id, media_type, e, written)
                raise

            processing_time = time.time() - start_time
            metrics.track_upload(result.media_type.value, "ready")
            audit_logger.log_media_uploaded(
                media_id=str(asset_id),
                user_id=owner_id,
                park_code=park_code,
                media_type=result.media_type.value,
                processing_time=processing_time,
                has_thumbnail=thumbnail_path is not None,
            )
            return asset

    async def _fail(self, asset_id: uuid.UUID, owner_id: str, media_type, error: BaseException,
                    written: list[tuple[str, str]]) -> None:
        if isinstance(error, asyncio.CancelledError):
            message = "Upload cancelled before processing completed"
        else:
            message = str(error) or error.__class__.__name__

        for bucket, key in written:
            await self.storage.delete_object(bucket, key)

        try:
            with self.db.get_sync_session() as session:
                MediaAssetRepository(session).mark_failed(asset_id, message)
        except Exception as record_error:
            logger.error("Failed to record processing failure", error=str(record_error))

        metrics.track_upload(media_type.value if media_type else None, "failed")
        audit_logger.log_media_failed(
            media_id=str(asset_id),
            user_id=owner_id,
            error=message,
            error_type=error.__class__.__name__,
        )

    def get(self, asset_id: uuid.UUID) -> MediaAsset | None:
        """Get an asset in any state."""
        with self.db.get_sync_session() as session:
            return MediaAssetRepository(session).get_by_id(asset_id)

    def list_ready(
        self,
        park_code: str | None = None,
        owner_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[MediaAsset]:
        """List ready assets, newest first."""
        with self.db.get_sync_session() as session:
            return MediaAssetRepository(session).list_ready(
                park_code=park_code, user_id=owner_id, limit=limit, offset=offset
            )

    async def delete(self, asset_id: uuid.UUID, owner_id: str) -> None:
        """
        Delete an asset and its stored objects.

        Raises:
            AssetNotFoundError: Unknown asset id
            AssetAccessDeniedError: The caller is not the owner
        """
        asset = self.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Media not found: {asset_id}")
        if asset.user_id != owner_id:
            raise AssetAccessDeniedError("Not authorized to delete this media")

        if asset.storage_path:
            await self.storage.delete_object(self.media_bucket, asset.storage_path)
        if asset.thumbnail_path:
            await self.storage.delete_object(self.thumbnail_bucket, asset.thumbnail_path)

        with self.db.get_sync_session() as session:
            MediaAssetRepository(session).delete(asset_id)

        audit_logger.log_media_deleted(media_id=str(asset_id), user_id=owner_id)

    def public_urls(self, asset: MediaAsset) -> dict[str, Any]:
        """Public URLs of the primary object and thumbnail."""
        return {
            "url": self.storage.public_url(self.media_bucket, asset.storage_path),
            "thumbnail_url": self.storage.public_url(self.thumbnail_bucket, asset.thumbnail_path),
        }


# Global service instance
upload_service = UploadService()
