"""
Unit tests for photo normalization and thumbnails.

Fixture images are rendered with Pillow in memory.
"""

import io

import pytest
from PIL import Image

from conftest import make_image
from parkmedia.media.errors import ImageProcessingError
from parkmedia.media.image_normalizer import (
    fit_within,
    generate_image_thumbnail,
    normalize_image,
    output_format_for,
)


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


class TestFitWithin:
    """Test bounding-box math."""

    def test_small_images_are_not_upscaled(self):
        assert fit_within(800, 600, 2048) == (800, 600)

    def test_landscape_larger_side_hits_bound(self):
        assert fit_within(4000, 3000, 2048) == (2048, 1536)

    def test_portrait_larger_side_hits_bound(self):
        assert fit_within(3000, 4000, 2048) == (1536, 2048)

    def test_extreme_aspect_keeps_one_pixel(self):
        assert fit_within(10000, 2, 2048) == (2048, 1)

    def test_aspect_ratio_within_rounding(self):
        width, height = fit_within(4032, 3023, 2048)
        assert max(width, height) == 2048
        assert abs(width / height - 4032 / 3023) < 2 / height


class TestOutputFormat:
    """Test output format selection."""

    @pytest.mark.parametrize("content_type,expected", [
        ("image/heic", ("JPEG", "image/jpeg")),
        ("image/heif", ("JPEG", "image/jpeg")),
        ("image/png", ("PNG", "image/png")),
        ("image/webp", ("WEBP", "image/webp")),
        ("image/jpeg", ("JPEG", "image/jpeg")),
        ("image/gif", ("JPEG", "image/jpeg")),
    ])
    def test_output_format_for(self, content_type, expected):
        assert output_format_for(content_type) == expected


class TestNormalizeImage:
    """Test resize and re-encode."""

    def test_large_jpeg_is_downscaled(self):
        data = make_image("JPEG", (4000, 3000))

        result = normalize_image(data, "image/jpeg")

        assert (result.width, result.height) == (2048, 1536)
        assert result.mime_type == "image/jpeg"
        assert _open(result.data).size == (2048, 1536)

    def test_small_png_keeps_size_and_format(self):
        data = make_image("PNG", (320, 200), mode="RGBA")

        result = normalize_image(data, "image/png")

        assert (result.width, result.height) == (320, 200)
        assert result.mime_type == "image/png"
        assert _open(result.data).format == "PNG"

    def test_webp_stays_webp(self):
        data = make_image("WEBP", (300, 300))

        result = normalize_image(data, "image/webp")

        assert result.mime_type == "image/webp"
        assert _open(result.data).format == "WEBP"

    def test_transparent_gif_becomes_jpeg(self):
        img = Image.new("P", (120, 80), 0)
        img.info["transparency"] = 0
        buffer = io.BytesIO()
        img.save(buffer, format="GIF", transparency=0)

        result = normalize_image(buffer.getvalue(), "image/gif")

        assert result.mime_type == "image/jpeg"
        decoded = _open(result.data)
        assert decoded.format == "JPEG"
        assert decoded.mode == "RGB"

    def test_exif_orientation_is_applied_before_measuring(self):
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 degrees clockwise on display
        data = make_image("JPEG", (300, 100), exif=exif.tobytes())

        result = normalize_image(data, "image/jpeg")

        assert (result.width, result.height) == (100, 300)
        assert _open(result.data).size == (100, 300)

    @pytest.mark.parametrize("content_type", ["image/heic", "image/heif"])
    def test_heic_becomes_jpeg(self, content_type):
        data = make_image("HEIF", (320, 240))

        result = normalize_image(data, content_type)

        assert result.mime_type == "image/jpeg"
        assert (result.width, result.height) == (320, 240)
        decoded = _open(result.data)
        assert decoded.format == "JPEG"
        assert decoded.size == (320, 240)

    def test_undecodable_bytes_raise(self):
        with pytest.raises(ImageProcessingError) as exc_info:
            normalize_image(b"definitely not an image", "image/jpeg")

        assert str(exc_info.value).startswith("Failed to process image:")


class TestGenerateImageThumbnail:
    """Test square cover-fit thumbnails."""

    @pytest.mark.parametrize("size", [(1600, 900), (300, 1200), (50, 50)])
    def test_thumbnail_is_always_square_jpeg(self, size):
        thumbnail = generate_image_thumbnail(make_image("PNG", size))

        decoded = _open(thumbnail)
        assert decoded.format == "JPEG"
        assert decoded.size == (400, 400)

    def test_undecodable_bytes_raise(self):
        with pytest.raises(ImageProcessingError):
            generate_image_thumbnail(b"\x89PNG broken")
