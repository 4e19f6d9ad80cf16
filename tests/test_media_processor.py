"""
Unit tests for the media pipeline orchestrator.

Covers dispatch by media kind, the degraded MP4 passthrough when FFmpeg is
missing, and propagation of validation and processing errors.
"""

import io
from unittest.mock import patch

import pytest
from PIL import Image

from conftest import FakeInvoker, make_image, probe_report
from parkmedia.media.errors import (
    FFmpegError,
    ImageProcessingError,
    MediaTooLargeError,
    TranscodingUnavailableError,
    UnsupportedMediaTypeError,
)
from parkmedia.media.ffmpeg_wrapper import FFmpegWrapper
from parkmedia.media.formats import MediaType
from parkmedia.media.processor import MediaProcessor
from parkmedia.observability.metrics import metrics


@pytest.fixture
def processor(ffmpeg) -> MediaProcessor:
    return MediaProcessor(ffmpeg=ffmpeg)


@pytest.fixture
def offline_processor(tmp_path) -> MediaProcessor:
    return MediaProcessor(ffmpeg=FFmpegWrapper(invoker=FakeInvoker(available=False), temp_dir=tmp_path))


class TestPhotoProcessing:
    """Test the photo branch."""

    @pytest.mark.asyncio
    async def test_jpeg_upload(self, processor):
        result = await processor.process(make_image("JPEG", (3000, 2000)), "image/jpeg", "trail.jpg")

        assert result.media_type == MediaType.PHOTO
        assert (result.width, result.height) == (2048, 1365)
        assert result.mime_type == "image/jpeg"
        assert result.duration is None
        assert Image.open(io.BytesIO(result.thumbnail_data)).size == (400, 400)

    @pytest.mark.asyncio
    async def test_photo_never_touches_ffmpeg(self, processor, fake_invoker):
        await processor.process(make_image("PNG", (200, 200)), "image/png", "map.png")
        assert fake_invoker.encoder_calls == []

    @pytest.mark.asyncio
    async def test_thumbnail_is_cut_from_normalized_image(self, processor):
        data = make_image("JPEG", (3000, 2000))

        with patch("parkmedia.media.processor.generate_image_thumbnail", return_value=b"thumb") as mock_thumb:
            result = await processor.process(data, "image/jpeg", "trail.jpg")

        mock_thumb.assert_called_once_with(result.processed_data)
        assert result.thumbnail_data == b"thumb"

    @pytest.mark.asyncio
    async def test_corrupt_photo_propagates(self, processor):
        with pytest.raises(ImageProcessingError):
            await processor.process(b"not really a jpeg", "image/jpeg", "broken.jpg")


class TestVideoProcessing:
    """Test the video branch with and without an encoder."""

    @pytest.mark.asyncio
    async def test_mov_is_transcoded(self, processor, fake_invoker):
        fake_invoker.probe_reports = [probe_report(1920, 1080, "30.2"), probe_report(1920, 1080, "30.2")]

        result = await processor.process(b"quicktime bytes", "video/quicktime", "geyser.mov")

        assert result.media_type == MediaType.VIDEO
        assert result.mime_type == "video/mp4"
        assert result.processed_data == fake_invoker.video_bytes
        assert result.duration == 30
        assert (result.width, result.height) == (1920, 1080)
        assert result.thumbnail_data == fake_invoker.thumbnail_bytes

    @pytest.mark.asyncio
    async def test_sub_second_clip_thumbnail_seeks_inside_clip(self, processor, fake_invoker):
        fake_invoker.probe_reports = [probe_report(640, 360, "0.4"), probe_report(640, 360, "0.4")]

        result = await processor.process(b"quicktime bytes", "video/quicktime", "blink.mov")

        thumbnail_args = fake_invoker.encoder_calls[-1]
        seek = float(thumbnail_args[thumbnail_args.index("-ss") + 1])
        assert 0 < seek < 0.4
        assert result.duration == 0
        assert result.thumbnail_data == fake_invoker.thumbnail_bytes

    @pytest.mark.asyncio
    async def test_transcoded_video_is_counted_once(self, processor):
        def processed_count():
            return metrics.registry.get_sample_value(
                "parkmedia_media_processed_total", {"media_type": "video", "success": "success"}
            ) or 0

        before = processed_count()
        await processor.process(b"quicktime bytes", "video/quicktime", "geyser.mov")

        assert processed_count() - before == 1

    @pytest.mark.asyncio
    async def test_mp4_passthrough_without_ffmpeg(self, offline_processor):
        data = b"\x00\x00\x00\x18ftypisom original"

        result = await offline_processor.process(data, "video/mp4", "clip.mp4")

        assert result.processed_data == data
        assert result.thumbnail_data is None
        assert (result.width, result.height, result.duration) == (0, 0, 0)
        assert result.mime_type == "video/mp4"

    @pytest.mark.asyncio
    async def test_non_mp4_without_ffmpeg_fails(self, offline_processor):
        with pytest.raises(TranscodingUnavailableError) as exc_info:
            await offline_processor.process(b"webm bytes", "video/webm", "clip.webm")

        assert "FFmpeg is required for non-MP4 videos" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transcode_failure_propagates(self, tmp_path):
        invoker = FakeInvoker(encoder_returncode=1, encoder_stderr=b"Unknown encoder 'libx264'")
        processor = MediaProcessor(ffmpeg=FFmpegWrapper(invoker=invoker, temp_dir=tmp_path))

        with pytest.raises(FFmpegError, match="Unknown encoder"):
            await processor.process(b"avi bytes", "video/x-msvideo", "old.avi")


class TestValidation:
    """Test that validation happens before any processing."""

    @pytest.mark.asyncio
    async def test_unsupported_type(self, processor, fake_invoker):
        with pytest.raises(UnsupportedMediaTypeError):
            await processor.process(b"%PDF", "application/pdf", "guide.pdf")
        assert fake_invoker.encoder_calls == []

    @pytest.mark.asyncio
    async def test_oversized_video(self, processor, fake_invoker):
        with pytest.raises(MediaTooLargeError):
            await processor.process(b"\0" * (50 * 1024 * 1024 + 1), "video/mp4", "huge.mp4")
        assert fake_invoker.encoder_calls == []
