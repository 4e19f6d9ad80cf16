"""
Repository classes for the ParkLookup media service.

This module provides:
- Generic CRUD operations
- MediaAsset lifecycle transitions (processing -> ready | failed)
- Listing queries for ready assets
"""

import uuid
from datetime import datetime, timezone
from typing import Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..media.formats import MediaType
from .db import Base
from .entities import MediaAsset, MediaStatus


T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD operations."""

    model_class: type[T]

    def __init__(self, session: Session):
        self.session = session

    def create(self, **kwargs) -> T:
        """Create a new entity."""
        entity = self.model_class(**kwargs)
        self.session.add(entity)
        self.session.flush()
        return entity

    def get_by_id(self, entity_id: uuid.UUID) -> T | None:
        """Get entity by ID."""
        return self.session.get(self.model_class, entity_id)

    def update(self, entity_id: uuid.UUID, **kwargs) -> T | None:
        """Update entity by ID."""
        entity = self.get_by_id(entity_id)
        if entity:
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            entity.updated_at = datetime.now(timezone.utc)
            self.session.flush()
        return entity

    def delete(self, entity_id: uuid.UUID) -> bool:
        """Delete entity by ID."""
        entity = self.get_by_id(entity_id)
        if entity:
            self.session.delete(entity)
            self.session.flush()
            return True
        return False

    def count(self) -> int:
        """Count total entities."""
        return self.session.scalar(select(func.count()).select_from(self.model_class))


class MediaAssetRepository(BaseRepository[MediaAsset]):
    """Repository for MediaAsset entities."""

    model_class = MediaAsset

    def create_placeholder(
        self,
        user_id: str,
        park_code: str,
        media_type: MediaType | None,
        original_filename: str | None = None,
        file_size: int | None = None,
        mime_type: str | None = None,
        title: str | None = None,
        description: str | None = None,
    ) -> MediaAsset:
        """Create the processing row for an accepted upload."""
        return self.create(
            user_id=user_id,
            park_code=park_code,
            media_type=media_type,
            status=MediaStatus.PROCESSING,
            storage_path="",
            original_filename=original_filename,
            file_size=file_size,
            mime_type=mime_type,
            title=title,
            description=description,
        )

    def mark_ready(
        self,
        asset_id: uuid.UUID,
        storage_path: str,
        thumbnail_path: str | None,
        width: int,
        height: int,
        duration: int | None,
        mime_type: str,
    ) -> MediaAsset | None:
        """Finalize a processed asset in a single update."""
        if not storage_path:
            raise ValueError("A ready asset requires a storage path")
        return self.update(
            asset_id,
            storage_path=storage_path,
            thumbnail_path=thumbnail_path,
            width=width,
            height=height,
            duration=duration,
            mime_type=mime_type,
            status=MediaStatus.READY,
            processing_error=None,
        )

    def mark_failed(self, asset_id: uuid.UUID, error: str) -> MediaAsset | None:
        """Record a processing failure."""
        return self.update(
            asset_id,
            status=MediaStatus.FAILED,
            processing_error=error or "Unknown processing error",
        )

    def list_ready(
        self,
        park_code: str | None = None,
        user_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[MediaAsset]:
        """Get ready assets, newest first."""
        query = select(MediaAsset).where(MediaAsset.status == MediaStatus.READY)
        if park_code:
            query = query.where(MediaAsset.park_code == park_code)
        if user_id:
            query = query.where(MediaAsset.user_id == user_id)
        query = query.order_by(MediaAsset.created_at.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(query))


# Export
__all__ = [
    "BaseRepository",
    "MediaAssetRepository",
]
