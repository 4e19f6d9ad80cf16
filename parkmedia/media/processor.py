"""
Media pipeline orchestrator.

Turns a validated upload into a ProcessingResult: the normalized primary
asset, an optional thumbnail and the metadata recorded on the asset row.
Errors from the classifier, normalizer and transcoder propagate unchanged.
"""

import asyncio
import time
from dataclasses import dataclass
from functools import partial

from ..core.logging import get_logger
from ..observability.metrics import metrics
from .errors import TranscodingUnavailableError
from .ffmpeg_wrapper import FFmpegWrapper, ffmpeg_wrapper
from .formats import CANONICAL_VIDEO_TYPE, MediaType, ensure_valid, normalize_content_type
from .image_normalizer import generate_image_thumbnail, normalize_image

logger = get_logger("media.processor")


@dataclass
class ProcessingResult:
    """Normalized asset plus the metadata stored alongside it."""
    processed_data: bytes
    thumbnail_data: bytes | None
    media_type: MediaType
    width: int
    height: int
    duration: int | None
    mime_type: str


class MediaProcessor:
    """Routes uploads to the image normalizer or the video transcoder."""

    def __init__(self, ffmpeg: FFmpegWrapper | None = None):
        self.ffmpeg = ffmpeg or ffmpeg_wrapper

    async def process(self, data: bytes, content_type: str, original_filename: str) -> ProcessingResult:
        """
        Validate and process an upload.

        Args:
            data: Raw upload bytes
            content_type: Declared MIME type
            original_filename: Client-supplied filename

        Returns:
            ProcessingResult ready to be written to storage

        Raises:
            MediaValidationError: Unsupported type or oversized upload
            ImageProcessingError: Photo could not be decoded or encoded
            FFmpegError: Video transcoding or probing failed
            TranscodingUnavailableError: No encoder and the input is not MP4
        """
        media_type = ensure_valid(data, content_type)
        start_time = time.time()

        logger.info(
            "Processing media",
            media_type=media_type.value,
            content_type=content_type,
            size=len(data),
            original_filename=original_filename,
        )

        try:
            if media_type == MediaType.PHOTO:
                result = await self._process_image(data, content_type)
            else:
                result = await self._process_video(data, content_type, original_filename)
        except Exception:
            metrics.track_media_processed(media_type.value, False, time.time() - start_time, len(data))
            raise

        metrics.track_media_processed(
            media_type.value, True, time.time() - start_time, len(result.processed_data)
        )
        logger.info(
            "Media processed",
            media_type=media_type.value,
            mime_type=result.mime_type,
            width=result.width,
            height=result.height,
            duration=result.duration,
            has_thumbnail=result.thumbnail_data is not None,
        )
        return result

    async def _process_image(self, data: bytes, content_type: str) -> ProcessingResult:
        # Pillow work is CPU bound; keep it off the event loop
        loop = asyncio.get_running_loop()
        normalized = await loop.run_in_executor(None, partial(normalize_image, data, content_type))
        thumbnail = await loop.run_in_executor(None, partial(generate_image_thumbnail, normalized.data))

        return ProcessingResult(
            processed_data=normalized.data,
            thumbnail_data=thumbnail,
            media_type=MediaType.PHOTO,
            width=normalized.width,
            height=normalized.height,
            duration=None,
            mime_type=normalized.mime_type,
        )

    async def _process_video(self, data: bytes, content_type: str, original_filename: str) -> ProcessingResult:
        if not await self.ffmpeg.is_available():
            if normalize_content_type(content_type) == CANONICAL_VIDEO_TYPE:
                logger.warning("FFmpeg unavailable, storing MP4 upload unprocessed",
                               original_filename=original_filename)
                metrics.track_passthrough()
                return ProcessingResult(
                    processed_data=data,
                    thumbnail_data=None,
                    media_type=MediaType.VIDEO,
                    width=0,
                    height=0,
                    duration=0,
                    mime_type=CANONICAL_VIDEO_TYPE,
                )
            raise TranscodingUnavailableError()

        conversion = await self.ffmpeg.convert_to_mp4(data, original_filename)
        thumbnail = await self.ffmpeg.extract_thumbnail(
            conversion.data, "converted.mp4", duration=conversion.duration_seconds
        )

        return ProcessingResult(
            processed_data=conversion.data,
            thumbnail_data=thumbnail,
            media_type=MediaType.VIDEO,
            width=conversion.width,
            height=conversion.height,
            duration=conversion.duration,
            mime_type=CANONICAL_VIDEO_TYPE,
        )


# Global processor instance
media_processor = MediaProcessor()
