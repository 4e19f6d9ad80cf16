"""
Media processing module for the ParkLookup media service.

This module turns uploaded photos and videos into web-ready assets:
- Format classification and upload validation
- Image normalization and cover-fit thumbnails (Pillow)
- Video transcoding, probing and frame extraction (FFmpeg)
- MediaProcessor: routes an upload through the right pipeline
"""

from .errors import (
    MediaError,
    MediaValidationError,
    UnsupportedMediaTypeError,
    MediaTooLargeError,
    ImageProcessingError,
    FFmpegError,
    FFmpegTimeoutError,
    ProbeParseError,
    NoVideoStreamError,
    TranscodingUnavailableError,
)

from .formats import (
    MediaType,
    ValidationOutcome,
    SUPPORTED_IMAGE_TYPES,
    SUPPORTED_VIDEO_TYPES,
    get_media_type,
    validate_media,
    ensure_valid,
)

from .image_normalizer import (
    NormalizedImage,
    normalize_image,
    generate_image_thumbnail,
)

from .ffmpeg_wrapper import (
    FFmpegWrapper,
    ffmpeg_wrapper,
    VideoInfo,
    VideoConversion,
)

from .processor import (
    MediaProcessor,
    media_processor,
    ProcessingResult,
)


__all__ = [
    # Errors
    "MediaError",
    "MediaValidationError",
    "UnsupportedMediaTypeError",
    "MediaTooLargeError",
    "ImageProcessingError",
    "FFmpegError",
    "FFmpegTimeoutError",
    "ProbeParseError",
    "NoVideoStreamError",
    "TranscodingUnavailableError",
    # Format classifier
    "MediaType",
    "ValidationOutcome",
    "SUPPORTED_IMAGE_TYPES",
    "SUPPORTED_VIDEO_TYPES",
    "get_media_type",
    "validate_media",
    "ensure_valid",
    # Image normalizer
    "NormalizedImage",
    "normalize_image",
    "generate_image_thumbnail",
    # FFmpeg Wrapper
    "FFmpegWrapper",
    "ffmpeg_wrapper",
    "VideoInfo",
    "VideoConversion",
    # Orchestrator
    "MediaProcessor",
    "media_processor",
    "ProcessingResult",
]
