"""
File system helpers for PhotoFlow.
"""

from .filesystem import DEFAULT_EXTENSIONS, find_photos

__all__ = [
    'DEFAULT_EXTENSIONS',
    'find_photos',
]
