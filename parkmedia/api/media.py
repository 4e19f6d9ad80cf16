"""
Media API routes for the ParkLookup media service.

This module provides:
- Upload endpoint (multipart) driving the upload lifecycle
- Listing and lookup of media assets
- Owner-only deletion
- Pydantic response schemas
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field

from ..core.logging import get_logger
from ..media.errors import MediaValidationError
from ..models.entities import MediaAsset
from ..services.upload_service import AssetAccessDeniedError, AssetNotFoundError, UploadService
from .deps import get_current_user_id, get_upload_service

router = APIRouter(prefix="/media", tags=["Media"])
logger = get_logger("api.media")


class MediaResponse(BaseModel):
    """Media asset response schema."""

    id: str = Field(description="Asset ID")
    user_id: str = Field(description="Owner ID")
    park_code: str = Field(description="Associated park code")
    media_type: str | None = Field(default=None, description="photo or video")
    status: str = Field(description="processing, ready or failed")
    url: str | None = Field(default=None, description="Public URL of the processed asset")
    thumbnail_url: str | None = Field(default=None, description="Public URL of the thumbnail")
    original_filename: str | None = Field(default=None, description="Client-supplied filename")
    file_size: int | None = Field(default=None, description="Upload size in bytes")
    mime_type: str | None = Field(default=None, description="MIME type of the stored asset")
    title: str | None = Field(default=None, description="Title")
    description: str | None = Field(default=None, description="Description")
    width: int | None = Field(default=None, description="Width in pixels")
    height: int | None = Field(default=None, description="Height in pixels")
    duration: int | None = Field(default=None, description="Duration in seconds (video only)")
    processing_error: str | None = Field(default=None, description="Failure message")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class MediaListResponse(BaseModel):
    """Media listing response schema."""

    media: list[MediaResponse] = Field(description="Ready media assets")
    limit: int = Field(description="Page size")
    offset: int = Field(description="Page offset")


def _to_response(asset: MediaAsset, service: UploadService) -> MediaResponse:
    return MediaResponse(
        id=str(asset.id),
        user_id=asset.user_id,
        park_code=asset.park_code,
        media_type=asset.media_type.value if asset.media_type else None,
        status=asset.status.value,
        original_filename=asset.original_filename,
        file_size=asset.file_size,
        mime_type=asset.mime_type,
        title=asset.title,
        description=asset.description,
        width=asset.width,
        height=asset.height,
        duration=asset.duration,
        processing_error=asset.processing_error,
        created_at=asset.created_at,
        **service.public_urls(asset),
    )


@router.post("", response_model=MediaResponse, status_code=status.HTTP_201_CREATED)
async def upload_media(
    file: UploadFile = File(..., description="Photo or video file"),
    park_code: str = Form(..., min_length=1, description="Park code"),
    title: str | None = Form(default=None),
    description: str | None = Form(default=None),
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
):
    """Upload a photo or video for a park."""
    data = await file.read()
    content_type = file.content_type or ""
    filename = file.filename or "upload"

    try:
        asset = await service.upload(
            owner_id=user_id,
            park_code=park_code,
            data=data,
            content_type=content_type,
            original_filename=filename,
            title=title,
            description=description,
        )
    except MediaValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("Media upload failed", error=str(e), error_type=e.__class__.__name__)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to process media: {e}",
        )

    return _to_response(asset, service)


@router.get("", response_model=MediaListResponse)
async def list_media(
    park_code: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    service: UploadService = Depends(get_upload_service),
):
    """List ready media, newest first."""
    assets = service.list_ready(park_code=park_code, owner_id=user_id, limit=limit, offset=offset)
    return MediaListResponse(
        media=[_to_response(asset, service) for asset in assets],
        limit=limit,
        offset=offset,
    )


@router.get("/{media_id}", response_model=MediaResponse)
async def get_media(
    media_id: uuid.UUID,
    service: UploadService = Depends(get_upload_service),
):
    """Get a single media asset in any state."""
    asset = service.get(media_id)
    if asset is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    return _to_response(asset, service)


@router.delete("/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_media(
    media_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    service: UploadService = Depends(get_upload_service),
):
    """Delete a media asset owned by the caller."""
    try:
        await service.delete(media_id, user_id)
    except AssetNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")
    except AssetAccessDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
