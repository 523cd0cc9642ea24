"""
Contact photo processing for Exchange contact distribution.

Source pictures are normalised once per run into a JPEG that Exchange
accepts as a contact picture attachment.
"""

import io
import logging

from PIL import Image, ImageOps

# Exchange contact picture limits
MAX_PHOTO_SIZE = 512 * 1024  # bytes
MAX_PHOTO_DIMENSION = 648  # pixels - largest Exchange contact picture size
JPEG_QUALITY = 85

# Qualities tried in order until the encoded picture fits MAX_PHOTO_SIZE
QUALITY_STEPS = (JPEG_QUALITY, 70, 55, 40, 25)

# File name Outlook uses for contact pictures
CONTACT_PHOTO_NAME = "ContactPicture.jpg"

logger = logging.getLogger(__name__)


class PhotoError(Exception):
    """Raised when a photo cannot be turned into a contact picture."""

    pass


def _flatten(image: Image.Image) -> Image.Image:
    """Return an RGB or grayscale copy of ``image`` with transparency on white."""
    if image.mode in ("RGB", "L"):
        return image
    if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


def process_photo(
    photo_data: bytes,
    max_size: int = MAX_PHOTO_SIZE,
    max_dimension: int = MAX_PHOTO_DIMENSION,
) -> bytes:
    """
    Convert a source picture into an Exchange contact picture.

    The picture is turned upright according to its EXIF orientation,
    flattened to RGB (grayscale stays grayscale), scaled down to fit
    ``max_dimension`` and encoded as JPEG at the highest quality step that
    fits ``max_size``. Small pictures are never enlarged.

    Args:
        photo_data: Raw picture bytes as stored on the source contact
        max_size: Maximum encoded size in bytes
        max_dimension: Maximum width and height in pixels

    Returns:
        JPEG bytes

    Raises:
        PhotoError: If the data is not a readable image or cannot be made
            small enough
    """
    if not photo_data:
        raise PhotoError("Photo data cannot be empty")

    try:
        image = Image.open(io.BytesIO(photo_data))
        image.load()
        image = _flatten(ImageOps.exif_transpose(image))
        image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

        for quality in QUALITY_STEPS:
            output = io.BytesIO()
            image.save(output, format="JPEG", quality=quality, optimize=True)
            if output.tell() <= max_size:
                logger.debug(
                    f"Processed photo: {len(photo_data)} -> {output.tell()} bytes "
                    f"at {image.size[0]}x{image.size[1]}, quality {quality}"
                )
                return output.getvalue()

    except Image.UnidentifiedImageError as e:
        raise PhotoError("Invalid or unsupported image format") from e

    except (OSError, ValueError) as e:
        raise PhotoError(f"Failed to process photo: {e}") from e

    raise PhotoError(
        f"Unable to reduce photo size below {max_size} bytes "
        f"(current: {output.tell()} bytes)"
    )
