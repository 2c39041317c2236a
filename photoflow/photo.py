"""
Photo model: a file path with best-effort EXIF metadata and decoded pixels
"""

import logging
from pathlib import Path
from typing import Optional, Union

import exifread

from photoflow.cache import ImageCache
from photoflow.models import DecodedImage, ExifData

logger = logging.getLogger(__name__)


def _first_value(tag):
    values = getattr(tag, 'values', None)
    if isinstance(values, (list, tuple)):
        return values[0] if values else None
    return values


def _ratio_to_float(value) -> Optional[float]:
    if value is None:
        return None
    denominator = getattr(value, 'denominator', 1)
    if denominator == 0:
        return None
    return getattr(value, 'numerator', value) / denominator


def extract_exif(path: Union[str, Path]) -> ExifData:
    """
    Read camera metadata with exifread

    Args:
        path: Image file

    Returns:
        ExifData with whatever fields the file carries

    Raises:
        OSError: File cannot be opened
    """
    with open(path, 'rb') as f:
        tags = exifread.process_file(f, details=False)

    data = ExifData()

    if 'Image Make' in tags:
        data.make = str(tags['Image Make']).strip()
    if 'Image Model' in tags:
        data.model = str(tags['Image Model']).strip()

    if 'EXIF ExposureTime' in tags:
        ratio = _first_value(tags['EXIF ExposureTime'])
        if ratio is not None:
            data.exposure_time = f"{ratio.numerator}/{ratio.denominator}"

    if 'EXIF FNumber' in tags:
        data.f_number = _ratio_to_float(_first_value(tags['EXIF FNumber']))

    if 'EXIF ISOSpeedRatings' in tags:
        iso = _first_value(tags['EXIF ISOSpeedRatings'])
        if iso is not None:
            data.iso = int(iso)

    if 'EXIF FocalLength' in tags:
        data.focal_length = _ratio_to_float(_first_value(tags['EXIF FocalLength']))

    if 'EXIF DateTimeOriginal' in tags:
        data.datetime = str(tags['EXIF DateTimeOriginal']).strip()

    logger.debug(f"Extracted EXIF data: {data}")
    return data


class Photo:
    """
    A photo on disk.

    Metadata is read at construction and its failure is not fatal. Pixels
    are attached later, usually from a background decode.
    """

    def __init__(self, path: Union[str, Path], load_metadata: bool = True):
        self._path = Path(path)
        self._exif_data: Optional[ExifData] = None
        self._image: Optional[DecodedImage] = None
        self._rgb_data: Optional[bytes] = None

        if load_metadata:
            try:
                self._exif_data = extract_exif(self._path)
            except Exception as e:
                # Metadata is optional, keep the photo usable
                logger.debug(f"Failed to load EXIF data from {self._path}: {e}")

    def __repr__(self):
        return f"Photo({str(self._path)!r}, loaded={self._image is not None})"

    @property
    def path(self) -> Path:
        return self._path

    @property
    def exif_data(self) -> Optional[ExifData]:
        return self._exif_data

    @property
    def image(self) -> Optional[DecodedImage]:
        return self._image

    def set_image(self, image: DecodedImage):
        self._image = image
        self._rgb_data = image.buffer

    def get_rgb_data(self) -> Optional[bytes]:
        """Flattened RGB8 bytes of the attached image"""
        return self._rgb_data

    def load_image(self, cache: ImageCache) -> DecodedImage:
        """Decode (or fetch from cache) the pixels for this photo"""
        logger.info(f"Loading image: {self._path}")
        return cache.get_or_decode(self._path)
