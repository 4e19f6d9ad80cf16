"""
SQLAlchemy models for the ParkLookup media service.

This module defines the persisted media entity:
- MediaAsset: one uploaded photo or video and its processing state
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum

from ..media.formats import MediaType
from .db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MediaStatus(str, Enum):
    """Asset processing status."""
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class MediaAsset(Base):
    """Uploaded media file attached to a park."""

    __tablename__ = "user_media"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Ownership
    user_id = Column(String(255), nullable=False, index=True)
    park_code = Column(String(50), nullable=False, index=True)

    # Null only for uploads whose declared type could not be classified
    media_type = Column(SQLEnum(MediaType, values_callable=lambda e: [m.value for m in e]), nullable=True)
    status = Column(
        SQLEnum(MediaStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MediaStatus.PROCESSING,
    )

    # Storage keys; storage_path is "" while processing
    storage_path = Column(String(1000), nullable=False, default="")
    thumbnail_path = Column(String(1000), nullable=True)

    # Upload metadata
    original_filename = Column(String(500), nullable=True)
    file_size = Column(BigInteger, nullable=True)
    mime_type = Column(String(100), nullable=True)
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)

    # Output metadata
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    duration = Column(Integer, nullable=True)  # Whole seconds, video only

    processing_error = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_user_media_park_status", "park_code", "status"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": str(self.id),
            "user_id": self.user_id,
            "park_code": self.park_code,
            "media_type": self.media_type.value if self.media_type else None,
            "status": self.status.value if self.status else None,
            "storage_path": self.storage_path,
            "thumbnail_path": self.thumbnail_path,
            "original_filename": self.original_filename,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "title": self.title,
            "description": self.description,
            "width": self.width,
            "height": self.height,
            "duration": self.duration,
            "processing_error": self.processing_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
