"""
FFmpeg Wrapper for the ParkLookup media service.

Re-encodes uploaded video into the canonical web profile (H.264/AAC in a
fast-start MP4), probes dimensions and duration with ffprobe, and extracts a
letterboxed JPEG still for the thumbnail.

Each call works on its own uniquely named temp files, which are removed on
every exit path.
"""

import json
import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.config import settings
from ..core.logging import get_logger
from ..observability.metrics import track_processing_time
from .errors import FFmpegError, FFmpegTimeoutError, NoVideoStreamError, ProbeParseError
from .process_invoker import ProcessInvoker, process_invoker

logger = get_logger("media.ffmpeg_wrapper")

TEMP_SUBDIR = "parklookup-media"

_SAFE_SUFFIX = re.compile(r"^\.[a-z0-9]{1,8}$")


@dataclass
class VideoInfo:
    """Dimensions and duration reported by ffprobe."""
    width: int
    height: int
    duration: float


@dataclass
class VideoConversion:
    """Result of re-encoding a video into the canonical profile."""
    data: bytes
    width: int
    height: int
    duration: int
    duration_seconds: float


def _safe_suffix(filename: str | None, default: str = ".bin") -> str:
    suffix = Path(filename or "").suffix.lower()
    return suffix if _SAFE_SUFFIX.match(suffix) else default


def _remove_quietly(path: Path) -> None:
    """Delete a temp file; failures are logged and never raised."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Failed to remove temp file", path=str(path), error=str(e))


def _parse_probe_report(raw: str) -> VideoInfo:
    try:
        report = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProbeParseError(f"Failed to parse video info: {e}")

    if not isinstance(report, dict):
        raise ProbeParseError("Failed to parse video info: report is not an object")

    streams = report.get("streams") or []
    if not isinstance(streams, list):
        raise ProbeParseError("Failed to parse video info: streams is not a list")

    video_stream = next(
        (s for s in streams if isinstance(s, dict) and s.get("codec_type") == "video"),
        None,
    )
    if video_stream is None:
        raise NoVideoStreamError()

    format_info: dict[str, Any] = report.get("format") or {}
    try:
        width = int(video_stream.get("width") or 0)
        height = int(video_stream.get("height") or 0)
        duration = float(format_info.get("duration") or video_stream.get("duration") or 0)
    except (TypeError, ValueError, AttributeError) as e:
        raise ProbeParseError(f"Failed to parse video info: {e}")

    return VideoInfo(width=width, height=height, duration=duration)


class FFmpegWrapper:
    """Python wrapper around the ffmpeg and ffprobe binaries."""

    def __init__(self, invoker: ProcessInvoker | None = None, temp_dir: str | Path | None = None):
        """Initialize FFmpeg wrapper."""
        self.invoker = invoker or process_invoker
        self.temp_dir = Path(temp_dir or settings.media.temp_dir) / TEMP_SUBDIR
        self._available: bool | None = None

    async def is_available(self) -> bool:
        """
        Check once whether the encoder binary can be executed.

        The result is cached for the lifetime of the wrapper.
        """
        if self._available is None:
            self._available = await self._check_available()
            if self._available:
                logger.info("FFmpeg available", binary=self.invoker.ffmpeg_binary)
            else:
                logger.warning("FFmpeg not available, video transcoding disabled",
                               binary=self.invoker.ffmpeg_binary)
        return self._available

    async def _check_available(self) -> bool:
        try:
            output = await self.invoker.run_encoder(["-version"], timeout=settings.media.probe_timeout)
        except (OSError, FFmpegTimeoutError) as e:
            logger.debug("FFmpeg version check failed", error=str(e))
            return False
        return output.ok

    def reset_availability(self) -> None:
        """Forget the cached availability result."""
        self._available = None

    @contextmanager
    def temp_file(self, prefix: str, suffix: str) -> Iterator[Path]:
        """Reserve a unique temp path that is deleted when the block exits."""
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        path = self.temp_dir / f"{prefix}-{uuid.uuid4()}{suffix}"
        try:
            yield path
        finally:
            _remove_quietly(path)

    def build_convert_args(self, input_path: Path, output_path: Path) -> list[str]:
        """Build ffmpeg arguments for the canonical web profile."""
        media = settings.media
        scale = (
            f"scale='min({media.video_max_width},iw)':'min({media.video_max_height},ih)'"
            ":force_original_aspect_ratio=decrease:force_divisible_by=2"
        )
        return [
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-i", str(input_path),
            "-c:v", media.video_codec,
            "-preset", media.video_preset,
            "-crf", str(media.video_crf),
            "-profile:v", media.video_profile,
            "-level", media.video_level,
            "-pix_fmt", "yuv420p",
            "-c:a", media.audio_codec,
            "-b:a", media.audio_bitrate,
            "-movflags", "+faststart",
            "-vf", scale,
            "-f", "mp4",
            str(output_path),
        ]

    def build_thumbnail_args(self, input_path: Path, output_path: Path, seek: float) -> list[str]:
        """Build ffmpeg arguments that grab one letterboxed frame."""
        size = settings.media.thumbnail_size
        letterbox = (
            f"scale={size}:{size}:force_original_aspect_ratio=decrease,"
            f"pad={size}:{size}:(ow-iw)/2:(oh-ih)/2"
        )
        return [
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-i", str(input_path),
            "-ss", f"{seek:.3f}",
            "-frames:v", "1",
            "-vf", letterbox,
            "-q:v", "3",
            "-f", "image2",
            str(output_path),
        ]

    @staticmethod
    def build_probe_args(path: Path) -> list[str]:
        return [
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]

    async def probe(self, path: str | Path) -> VideoInfo:
        """
        Read width, height and duration of a video file with ffprobe.

        Raises:
            FFmpegError: If ffprobe exits with a non-zero status
            NoVideoStreamError: If the file has no video stream
            ProbeParseError: If the report cannot be parsed
        """
        output = await self.invoker.run_probe(self.build_probe_args(Path(path)))
        if not output.ok:
            stderr = output.stderr_text
            raise FFmpegError(f"FFprobe exited with code {output.returncode}: {stderr}", stderr)
        return _parse_probe_report(output.stdout_text)

    async def convert_to_mp4(self, data: bytes, original_filename: str = "video.mp4") -> VideoConversion:
        """
        Re-encode a video into the canonical MP4 profile.

        Args:
            data: Raw video bytes
            original_filename: Used only to pick the input temp file extension

        Returns:
            VideoConversion with the encoded bytes and output metadata
        """
        logger.info("Starting video conversion", input_bytes=len(data), original_filename=original_filename)

        with track_processing_time("video", "transcode"), \
                self.temp_file("input", _safe_suffix(original_filename)) as input_path, \
                self.temp_file("output", ".mp4") as output_path:
            input_path.write_bytes(data)

            input_info = await self.probe(input_path)

            output = await self.invoker.run_encoder(self.build_convert_args(input_path, output_path))
            if not output.ok:
                stderr = output.stderr_text
                raise FFmpegError(f"FFmpeg exited with code {output.returncode}: {stderr[-2000:]}", stderr)

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise FFmpegError("FFmpeg did not produce an output file", output.stderr_text)

            converted = output_path.read_bytes()
            output_info = await self.probe(output_path)

        logger.info(
            "Video conversion completed successfully",
            input_dimensions=(input_info.width, input_info.height),
            output_dimensions=(output_info.width, output_info.height),
            duration=output_info.duration,
            output_bytes=len(converted),
        )

        return VideoConversion(
            data=converted,
            width=output_info.width,
            height=output_info.height,
            duration=round(output_info.duration),
            duration_seconds=output_info.duration,
        )

    def thumbnail_seek(self, duration: float | None) -> float:
        """Timestamp of the thumbnail frame; clips shorter than the default use their midpoint."""
        seek = settings.media.video_thumbnail_time
        if duration is not None and 0 < duration <= seek:
            return duration / 2
        return seek

    async def extract_thumbnail(
        self, data: bytes, original_filename: str = "video.mp4", duration: float | None = None
    ) -> bytes:
        """
        Extract a single JPEG frame, letterboxed to the thumbnail square.

        Args:
            data: Raw video bytes
            original_filename: Used only to pick the input temp file extension
            duration: Known clip length in seconds, if any

        Returns:
            JPEG bytes
        """
        with self.temp_file("thumb-input", _safe_suffix(original_filename, ".mp4")) as input_path, \
                self.temp_file("thumb-output", ".jpg") as output_path:
            input_path.write_bytes(data)

            args = self.build_thumbnail_args(input_path, output_path, self.thumbnail_seek(duration))
            output = await self.invoker.run_encoder(args)
            if not output.ok:
                stderr = output.stderr_text
                raise FFmpegError(
                    f"FFmpeg thumbnail exited with code {output.returncode}: {stderr[-2000:]}", stderr
                )

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise FFmpegError("FFmpeg thumbnail produced no frame", output.stderr_text)

            thumbnail = output_path.read_bytes()

        logger.debug("Video thumbnail extracted", thumbnail_bytes=len(thumbnail))
        return thumbnail


# Global wrapper instance
ffmpeg_wrapper = FFmpegWrapper()
