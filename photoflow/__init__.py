"""
PhotoFlow: RAW and standard photo decoding with a freshness-aware cache

Detects image formats from header bytes, develops camera RAW sensor data
into RGB pixels and keeps recently decoded images in a bounded cache.
"""

__version__ = "0.1.0"

from .config import load_config
from .errors import PhotoFlowError, ReadError, DecodeError, ConfigError
from .models import DecodedImage, ExifData
from .cache import ImageCache
from .photo import Photo
from .processors import ImageType, ProcessorRouter, detect_image_type
from .pipeline import build_cache, build_router

__all__ = [
    "load_config",
    "PhotoFlowError",
    "ReadError",
    "DecodeError",
    "ConfigError",
    "DecodedImage",
    "ExifData",
    "ImageCache",
    "Photo",
    "ImageType",
    "ProcessorRouter",
    "detect_image_type",
    "build_cache",
    "build_router",
]
