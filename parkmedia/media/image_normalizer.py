"""
Image normalization for uploaded photos.

Decodes the upload, applies the EXIF orientation, bounds the dimensions,
re-encodes to a web format and produces a square JPEG thumbnail.
HEIC/HEIF decoding is provided by pillow-heif.
"""

import io
from dataclasses import dataclass

from PIL import Image, ImageOps
from pillow_heif import register_heif_opener

from ..core.config import settings
from ..core.logging import get_logger
from .errors import ImageProcessingError
from .formats import LEGACY_IMAGE_TYPES, normalize_content_type

register_heif_opener()

logger = get_logger("media.image_normalizer")

# Output codec per declared input type; anything unlisted becomes JPEG
_OUTPUT_FORMATS = {
    "image/png": ("PNG", "image/png"),
    "image/webp": ("WEBP", "image/webp"),
}
_DEFAULT_OUTPUT = ("JPEG", "image/jpeg")

_PNG_MODES = {"1", "L", "LA", "I", "P", "RGB", "RGBA"}


@dataclass
class NormalizedImage:
    """Re-encoded image with its final pixel dimensions."""
    data: bytes
    width: int
    height: int
    mime_type: str


def fit_within(width: int, height: int, bound: int) -> tuple[int, int]:
    """
    Compute dimensions that fit a square bounding box without upscaling.

    The larger side lands exactly on the bound; the other side is rounded
    to the nearest pixel and never drops below 1.
    """
    if width <= bound and height <= bound:
        return width, height

    scale = bound / max(width, height)
    if width >= height:
        return bound, max(1, round(height * scale))
    return max(1, round(width * scale)), bound


def output_format_for(content_type: str) -> tuple[str, str]:
    """Return the Pillow format name and MIME type used to re-encode an upload."""
    normalized = normalize_content_type(content_type)
    if normalized in LEGACY_IMAGE_TYPES:
        return _DEFAULT_OUTPUT
    return _OUTPUT_FORMATS.get(normalized, _DEFAULT_OUTPUT)


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    """Composite transparent pixels onto white and drop the alpha channel."""
    if img.mode in ("RGB", "L"):
        return img
    if _has_alpha(img):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


def _prepare_for_format(img: Image.Image, fmt: str) -> Image.Image:
    if fmt == "JPEG":
        return _flatten_to_rgb(img)
    if fmt == "WEBP" and img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if _has_alpha(img) else "RGB")
    if fmt == "PNG" and img.mode not in _PNG_MODES:
        return img.convert("RGBA" if _has_alpha(img) else "RGB")
    return img


def _encode(img: Image.Image, fmt: str, quality: int) -> bytes:
    buffer = io.BytesIO()
    img = _prepare_for_format(img, fmt)
    if fmt == "PNG":
        img.save(buffer, format="PNG", optimize=True)
    elif fmt == "WEBP":
        img.save(buffer, format="WEBP", quality=quality)
    else:
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    # Rotate before anything else so width/height refer to the upright image
    return ImageOps.exif_transpose(img)


def normalize_image(data: bytes, content_type: str) -> NormalizedImage:
    """
    Resize and re-encode an uploaded image.

    Args:
        data: Raw image bytes
        content_type: Declared MIME type of the upload

    Returns:
        NormalizedImage with dimensions measured after rotation and resize

    Raises:
        ImageProcessingError: If decoding or encoding fails
    """
    media = settings.media
    try:
        img = _open(data)
        original_size = img.size

        target_size = fit_within(img.width, img.height, media.image_max_dimension)
        if target_size != img.size:
            img = img.resize(target_size, Image.Resampling.LANCZOS)

        fmt, mime_type = output_format_for(content_type)
        encoded = _encode(img, fmt, media.image_quality)
    except Exception as e:
        logger.warning("Image normalization failed", content_type=content_type, error=str(e))
        raise ImageProcessingError(f"Failed to process image: {e}") from e

    logger.debug(
        "Image normalized",
        original_size=original_size,
        output_size=img.size,
        output_mime_type=mime_type,
        output_bytes=len(encoded),
    )

    return NormalizedImage(data=encoded, width=img.width, height=img.height, mime_type=mime_type)


def generate_image_thumbnail(data: bytes) -> bytes:
    """
    Produce a square, center-cropped JPEG thumbnail.

    Cover-fit: the image is scaled to fill the square and the overflow is
    cropped, so the output is always thumbnail_size x thumbnail_size.
    """
    media = settings.media
    size = (media.thumbnail_size, media.thumbnail_size)
    try:
        img = _open(data)
        thumb = ImageOps.fit(img, size, method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
        return _encode(thumb, "JPEG", media.thumbnail_quality)
    except Exception as e:
        logger.warning("Thumbnail generation failed", error=str(e))
        raise ImageProcessingError(f"Failed to generate thumbnail: {e}") from e

