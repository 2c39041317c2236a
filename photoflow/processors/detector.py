"""
Image format detection from file header bytes
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Union

from photoflow.errors import ReadError

logger = logging.getLogger(__name__)

HEADER_SIZE = 16  # Most magic numbers sit in the first 16 bytes
EXTENDED_SCAN_SIZE = 4096

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
TIFF_MAGIC = (b"MM\x00*", b"II*\x00")
CANON_MARKERS = (b"CR\x02", b"CR\x03")
NIKON_MARKER = b"NIKON"
GENERIC_RAW_MARKERS = (
    b"CIFF",  # Old Canon
    b"HEIC",  # Container that may carry RAW data
    b"DNGK",  # DNG
    b"EPAK",  # Some Sigma bodies
)


class ImageType(Enum):
    """File formats recognised by the detector"""
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    TIFF = "tiff"
    WEBP = "webp"
    RAW_FUJI = "raw_fuji"            # RAF
    RAW_CANON = "raw_canon"          # CR2/CR3
    RAW_NIKON = "raw_nikon"          # NEF
    RAW_SONY = "raw_sony"            # ARW
    RAW_PANASONIC = "raw_panasonic"  # RW2
    RAW_GENERIC = "raw_generic"
    UNKNOWN = "unknown"

    def is_raw(self) -> bool:
        return self.value.startswith("raw_")


def detect_image_type(path: Union[str, Path]) -> ImageType:
    """
    Classify a file by its magic bytes.

    Rules are applied in a fixed order and the first match wins. A TIFF
    header is only reported as TIFF once a scan of the first 4096 bytes has
    failed to find a Nikon maker string.

    Args:
        path: File to inspect

    Returns:
        Detected ImageType; UNKNOWN is a valid result

    Raises:
        ReadError: File is missing, unreadable or shorter than 16 bytes
    """
    path = Path(path)
    try:
        with open(path, 'rb') as f:
            header = f.read(HEADER_SIZE)
            if len(header) < HEADER_SIZE:
                raise ReadError(
                    f"File too short for type detection ({len(header)} bytes): {path}"
                )

            if header[0:2] == b"\xff\xd8":
                logger.debug(f"Detected JPEG format: {path.name}")
                return ImageType.JPEG

            if header[0:8] == PNG_SIGNATURE:
                logger.debug(f"Detected PNG format: {path.name}")
                return ImageType.PNG

            if header[0:3] == b"GIF":
                logger.debug(f"Detected GIF format: {path.name}")
                return ImageType.GIF

            if header[0:4] == b"RIFF" and header[8:12] == b"WEBP":
                logger.debug(f"Detected WebP format: {path.name}")
                return ImageType.WEBP

            is_tiff = header[0:4] in TIFF_MAGIC

            if header[0:4] == b"FUJI":
                logger.debug(f"Detected Fuji RAF format: {path.name}")
                return ImageType.RAW_FUJI

            if header[8:11] in CANON_MARKERS:
                logger.debug(f"Detected Canon RAW format: {path.name}")
                return ImageType.RAW_CANON

            if is_tiff:
                # NEF files carry a plain TIFF header, the maker string sits deeper
                f.seek(0)
                extended = f.read(EXTENDED_SCAN_SIZE)
                if NIKON_MARKER in extended:
                    logger.debug(f"Detected Nikon NEF format: {path.name}")
                    return ImageType.RAW_NIKON
                logger.debug(f"Detected TIFF format: {path.name}")
                return ImageType.TIFF
    except OSError as e:
        raise ReadError(f"Failed to read file header of {path}: {e}") from e

    if header[0:4] == b"SONY":
        logger.debug(f"Detected Sony ARW format: {path.name}")
        return ImageType.RAW_SONY

    if header[0:4] == b"IIU\x00":
        logger.debug(f"Detected Panasonic RW2 format: {path.name}")
        return ImageType.RAW_PANASONIC

    for marker in GENERIC_RAW_MARKERS:
        if marker in header:
            logger.debug(f"Detected generic RAW format: {path.name}")
            return ImageType.RAW_GENERIC

    logger.debug(f"Unknown image format: {path.name}")
    return ImageType.UNKNOWN
