"""
Data models shared by the PhotoFlow decoders, cache and viewer.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image


@dataclass(frozen=True)
class DecodedImage:
    """
    Tightly packed RGB8 pixels produced by a decoder.

    The buffer holds ``width * height * 3`` bytes in row-major R,G,B order
    with no row padding. Display code must treat it as read-only.
    """
    width: int
    height: int
    buffer: bytes

    def __post_init__(self):
        expected = self.width * self.height * 3
        if len(self.buffer) != expected:
            raise ValueError(
                f"RGB buffer holds {len(self.buffer)} bytes, expected {expected} "
                f"for {self.width}x{self.height}"
            )

    @classmethod
    def from_array(cls, rgb: np.ndarray) -> 'DecodedImage':
        """Build from an (H, W, 3) uint8 array"""
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise ValueError(f"Expected an (H, W, 3) array, got shape {rgb.shape}")
        height, width = rgb.shape[:2]
        return cls(width=width, height=height,
                   buffer=np.ascontiguousarray(rgb, dtype=np.uint8).tobytes())

    def to_array(self) -> np.ndarray:
        """Read-only (H, W, 3) view over the buffer"""
        return np.frombuffer(self.buffer, dtype=np.uint8).reshape(self.height, self.width, 3)

    def to_pil(self) -> Image.Image:
        return Image.frombytes('RGB', (self.width, self.height), self.buffer)

    @property
    def nbytes(self) -> int:
        return len(self.buffer)


@dataclass
class ExifData:
    """Camera metadata read from a photo; every field is independently optional"""
    make: Optional[str] = None
    model: Optional[str] = None
    exposure_time: Optional[str] = None  # Rational string, e.g. "1/250"
    f_number: Optional[float] = None
    iso: Optional[int] = None
    focal_length: Optional[float] = None  # mm
    datetime: Optional[str] = None
