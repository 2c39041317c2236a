"""
File enumeration for PhotoFlow
Lists candidate photo files in a directory by extension
"""

import logging
from pathlib import Path
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ('jpg', 'jpeg', 'raf', 'raw')


def find_photos(directory: Union[str, Path],
                extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> List[Path]:
    """
    Find photo files directly inside a directory

    Args:
        directory: Directory to list (not searched recursively)
        extensions: Allowed extensions, with or without the leading dot

    Returns:
        Sorted list of matching file paths
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ValueError(f"Not a directory: {directory}")

    allowed = {ext.lower().lstrip('.') for ext in extensions}
    photos = sorted(
        entry for entry in directory.iterdir()
        if entry.is_file() and entry.suffix.lower().lstrip('.') in allowed
    )
    logger.info(f"Found {len(photos)} photos in {directory}")
    return photos
