"""
Exceptions raised by the media pipeline.

Validation errors are raised before any temp file or subprocess is created.
Processing errors carry the underlying diagnostics in their message so the
upload lifecycle can record them verbatim on the asset row.
"""


class MediaError(Exception):
    """Base exception for media pipeline failures."""

    pass


class MediaValidationError(MediaError):
    """Upload rejected before processing was attempted."""

    pass


class UnsupportedMediaTypeError(MediaValidationError):
    """Declared content-type is neither a supported image nor video type."""

    def __init__(self, content_type: str | None):
        self.content_type = content_type
        super().__init__(f"Unsupported media type: {content_type}")


class MediaTooLargeError(MediaValidationError):
    """Upload exceeds the ceiling for its media kind."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"File too large. Maximum size is {round(max_size / 1024 / 1024)}MB")


class ImageProcessingError(MediaError):
    """Image could not be decoded or re-encoded."""

    pass


class FFmpegError(MediaError):
    """Custom exception for FFmpeg operations."""

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(message)


class FFmpegTimeoutError(FFmpegError):
    """Exception raised when an FFmpeg operation times out."""

    pass


class ProbeParseError(FFmpegError):
    """ffprobe output could not be parsed."""

    pass


class NoVideoStreamError(FFmpegError):
    """ffprobe report contains no video stream."""

    def __init__(self, message: str = "No video stream found"):
        super().__init__(message)


class TranscodingUnavailableError(MediaError):
    """Encoder binary is missing and the input cannot be passed through."""

    def __init__(self, message: str = "Video processing is not available. FFmpeg is required for non-MP4 videos."):
        super().__init__(message)
