"""
FastAPI dependency providers for the ParkLookup media service.

This module provides:
- Upload service access
- Owner identity supplied by the authentication gateway
"""

from fastapi import Header, HTTPException, status

from ..core.logging import get_logger
from ..services.upload_service import UploadService, upload_service

logger = get_logger("api.deps")


def get_upload_service() -> UploadService:
    """Get the upload lifecycle service."""
    return upload_service


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """
    Resolve the authenticated owner id.

    Authentication happens upstream; the gateway forwards the verified
    user id in the X-User-Id header.

    Raises:
        HTTPException: 401 when the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        logger.debug("Request without authenticated user")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return x_user_id.strip()
