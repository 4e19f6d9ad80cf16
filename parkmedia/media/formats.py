"""
Content-type classification and upload validation.

The declared content-type is trusted as supplied by the request; no byte
sniffing happens here. A mismatch between declared and actual format is
caught later by the decoder or prober.
"""

from dataclasses import dataclass
from enum import Enum

from ..core.config import settings
from .errors import MediaTooLargeError, MediaValidationError, UnsupportedMediaTypeError


class MediaType(str, Enum):
    """Media kinds accepted for upload."""
    PHOTO = "photo"
    VIDEO = "video"


SUPPORTED_IMAGE_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/heic",
    "image/heif",
)

SUPPORTED_VIDEO_TYPES = (
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
    "video/webm",
    "video/x-matroska",
    "video/3gpp",
    "video/x-m4v",
)

# Camera formats browsers cannot display; always re-encoded to JPEG
LEGACY_IMAGE_TYPES = ("image/heic", "image/heif")

CANONICAL_VIDEO_TYPE = "video/mp4"
THUMBNAIL_MIME_TYPE = "image/jpeg"


@dataclass
class ValidationOutcome:
    """Result of validating an upload against type and size limits."""
    valid: bool
    error: str | None = None
    media_type: MediaType | None = None
    error_class: type[MediaValidationError] | None = None
    content_type: str | None = None
    size: int = 0
    max_size: int = 0

    def raise_for_error(self) -> None:
        if self.valid:
            return
        if self.error_class is MediaTooLargeError:
            raise MediaTooLargeError(self.size, self.max_size)
        raise UnsupportedMediaTypeError(self.content_type)


def normalize_content_type(content_type: str | None) -> str:
    """Lower-case a content-type and strip parameters such as charset."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def get_media_type(content_type: str | None) -> MediaType | None:
    """Map a content-type to a media kind, or None when unrecognized."""
    normalized = normalize_content_type(content_type)
    if normalized in SUPPORTED_IMAGE_TYPES:
        return MediaType.PHOTO
    if normalized in SUPPORTED_VIDEO_TYPES:
        return MediaType.VIDEO
    return None


def max_size_for(media_type: MediaType) -> int:
    if media_type == MediaType.PHOTO:
        return settings.media.max_image_size
    return settings.media.max_video_size


def validate_media(data: bytes, content_type: str | None) -> ValidationOutcome:
    """
    Validate an upload against supported types and size ceilings.

    Args:
        data: Raw upload bytes
        content_type: Declared MIME type

    Returns:
        ValidationOutcome describing whether processing may proceed
    """
    media_type = get_media_type(content_type)

    if media_type is None:
        return ValidationOutcome(
            valid=False,
            error=f"Unsupported media type: {content_type}",
            error_class=UnsupportedMediaTypeError,
            content_type=content_type,
        )

    max_size = max_size_for(media_type)
    if len(data) > max_size:
        return ValidationOutcome(
            valid=False,
            error=f"File too large. Maximum size is {round(max_size / 1024 / 1024)}MB",
            media_type=media_type,
            error_class=MediaTooLargeError,
            size=len(data),
            max_size=max_size,
        )

    return ValidationOutcome(valid=True, media_type=media_type, size=len(data), max_size=max_size)


def ensure_valid(data: bytes, content_type: str | None) -> MediaType:
    """Validate an upload and return its media kind, raising on failure."""
    outcome = validate_media(data, content_type)
    outcome.raise_for_error()
    return outcome.media_type
