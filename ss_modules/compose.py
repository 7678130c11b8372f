"""
Screenshot Stitcher Compose Module

Concatenates the ordered fragment sequence top to bottom into one RGBA
canvas and encodes it once as PNG. Fragments are already cropped by the
capture loop, so composition is pure stacking.
"""

import logging
from typing import Sequence, Union

import numpy as np
from PIL import Image

from .crop import decode_image, encode_png
from .errors import DecodeError, EmptySequenceError, FragmentWidthError
from .models import Fragment

logger = logging.getLogger(__name__)


class ImageComposer:
    """Composes cropped fragments into a single image."""

    def combine(self, fragments: Sequence[Union[Fragment, bytes]]) -> bytes:
        """
        Stack fragments vertically.

        Args:
            fragments: Fragments (or raw PNG bytes) in top-to-bottom order

        Returns:
            PNG bytes of the composite, width = common fragment width,
            height = sum of fragment heights

        Raises:
            EmptySequenceError: No fragments given
            DecodeError: A fragment is not a decodable raster
            FragmentWidthError: Fragment widths differ
        """
        if not fragments:
            raise EmptySequenceError()

        logger.info(f"[ImageComposer] Combining {len(fragments)} screenshots...")

        arrays = []
        for index, fragment in enumerate(fragments):
            data = fragment.data if isinstance(fragment, Fragment) else fragment
            try:
                image = decode_image(data)
            except DecodeError as e:
                raise DecodeError(f"Fragment {index}: {e.message}", index=index) from e
            arrays.append(np.asarray(image.convert("RGBA")))

        width = arrays[0].shape[1]
        for index, array in enumerate(arrays):
            if array.shape[1] != width:
                raise FragmentWidthError(
                    f"Fragment {index} is {array.shape[1]}px wide, expected {width}px",
                    expected=width,
                    actual=array.shape[1],
                    index=index,
                )

        total_height = sum(array.shape[0] for array in arrays)
        logger.info(f"[ImageComposer] Combining {len(arrays)} images, total height: {total_height} px")

        canvas = np.zeros((total_height, width, 4), dtype=np.uint8)
        y_offset = 0
        for array in arrays:
            height = array.shape[0]
            canvas[y_offset:y_offset + height] = array
            y_offset += height

        return encode_png(Image.fromarray(canvas))
