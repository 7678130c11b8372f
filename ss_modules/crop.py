"""
Screenshot Stitcher Crop Module

Pure crop functions over PNG bytes. Amounts come in logical (CSS) pixels and
are converted to raster rows with the device density:
- trim_bottom: drop the fixed chrome band under the viewport
- trim_overlap: drop rows the previous fragment already holds
"""

import io
import logging
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from .errors import CropBoundsError, DecodeError

logger = logging.getLogger(__name__)


def physical_rows(logical: float, density: float) -> int:
    """Convert a logical height to raster rows."""
    return int(round(logical * density))


def decode_image(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise DecodeError(f"Failed to load image: {e}") from e
    return image


def encode_png(image: Image.Image) -> bytes:
    output = io.BytesIO()
    image.save(output, format="PNG")
    return output.getvalue()


def image_size(data: bytes) -> Tuple[int, int]:
    """(width, height) of encoded image bytes."""
    return decode_image(data).size


def _check_bounds(trim: int, height: int, what: str) -> None:
    if trim < 0 or trim >= height:
        raise CropBoundsError(
            f"Image height {height}px is smaller than {what} height {trim}px, cannot crop.",
            image_height=height,
            trim_rows=trim,
        )


def trim_bottom(image_data: bytes, logical_height: float, density: float) -> bytes:
    """
    Remove ``logical_height`` logical pixels from the bottom of the image.

    Raises:
        CropBoundsError: The band is negative or covers the whole image
        DecodeError: The input is not a raster image
    """
    image = decode_image(image_data)
    width, height = image.size
    trim = physical_rows(logical_height, density)
    _check_bounds(trim, height, "chrome band")
    if trim == 0:
        return image_data

    logger.debug(f"[Crop] trim_bottom: {trim} rows of {height}")
    return encode_png(image.crop((0, 0, width, height - trim)))


def trim_overlap(image_data: bytes, logical_overlap_height: float, density: float) -> bytes:
    """
    Remove ``logical_overlap_height`` logical pixels from the top of the image.

    Raises:
        CropBoundsError: The overlap is negative or covers the whole image
        DecodeError: The input is not a raster image
    """
    image = decode_image(image_data)
    width, height = image.size
    trim = physical_rows(logical_overlap_height, density)
    _check_bounds(trim, height, "overlap")
    if trim == 0:
        return image_data

    logger.debug(f"[Crop] trim_overlap: {trim} rows of {height}")
    return encode_png(image.crop((0, trim, width, height)))
