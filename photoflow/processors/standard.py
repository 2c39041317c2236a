"""
Standard image decoding (JPEG, PNG, GIF, WebP, TIFF) through Pillow
"""

import logging
import mmap
import os
from pathlib import Path
from typing import BinaryIO, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from photoflow.errors import DecodeError, ReadError
from photoflow.models import DecodedImage

logger = logging.getLogger(__name__)

MMAP_THRESHOLD = 32 * 1024 * 1024  # 32MB


class StandardDecoder:
    """
    Decodes compressed container formats into RGB8 pixels.

    Files larger than ``mmap_threshold`` bytes are handed to Pillow through
    a read-only memory map instead of a buffered file object to bound peak
    memory. Both paths yield identical pixels.
    """

    def __init__(self, mmap_threshold: int = MMAP_THRESHOLD):
        self.mmap_threshold = mmap_threshold

    def load_image(self, path: Union[str, Path]) -> DecodedImage:
        """
        Decode an image file

        Args:
            path: Image file

        Returns:
            DecodedImage in RGB8

        Raises:
            ReadError: File is missing or unreadable
            DecodeError: Pillow cannot decode the bytes
        """
        path = Path(path)
        logger.info(f"Loading standard image: {path}")

        try:
            size = os.path.getsize(path)
            f = open(path, 'rb')
        except OSError as e:
            raise ReadError(f"Failed to open image file {path}: {e}") from e

        with f:
            if size > self.mmap_threshold:
                logger.debug(f"Memory-mapping {path.name} ({size / 1024 / 1024:.1f}MB)")
                with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as mapped:
                    return self._decode(mapped, path)
            return self._decode(f, path)

    def _decode(self, source: BinaryIO, path: Path) -> DecodedImage:
        try:
            with Image.open(source) as img:
                # Animated formats decode their first frame
                rgb = np.asarray(img.convert('RGB'))
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Failed to decode image {path}: {e}") from e

        decoded = DecodedImage.from_array(rgb)
        logger.debug(f"Decoded {path.name}: {decoded.width}x{decoded.height}")
        return decoded
