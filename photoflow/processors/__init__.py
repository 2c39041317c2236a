"""
Image processors for PhotoFlow

Routes each file to the standard or RAW decoder based on its header bytes.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from photoflow.errors import PhotoFlowError
from photoflow.models import DecodedImage
from .detector import ImageType, detect_image_type
from .raw import CFAPattern, RawDecoder, RawSensorImage, develop, gamma_for
from .standard import StandardDecoder

logger = logging.getLogger(__name__)


class ProcessorKind(Enum):
    """Decoding strategies available to the router"""
    STANDARD = "standard"
    RAW = "raw"


class ProcessorRouter:
    """
    Picks a decoding strategy per file and runs it.

    Detection failures never reach the caller: the file is handed to the
    standard decoder so that something can still be displayed.
    """

    def __init__(self, standard: Optional[StandardDecoder] = None,
                 raw: Optional[RawDecoder] = None):
        self.standard = standard or StandardDecoder()
        self.raw = raw or RawDecoder()

    def select(self, path: Union[str, Path]) -> Tuple[ProcessorKind, Optional[ImageType]]:
        """
        Choose the processor for a file

        Returns:
            Tuple of (processor kind, detected type or None if detection failed)
        """
        try:
            image_type = detect_image_type(path)
        except PhotoFlowError as e:
            logger.error(f"Failed to detect image type: {e}")
            return ProcessorKind.STANDARD, None

        logger.debug(f"Detected image type: {image_type.name}")
        if image_type.is_raw():
            return ProcessorKind.RAW, image_type
        return ProcessorKind.STANDARD, image_type

    def load_image(self, path: Union[str, Path]) -> DecodedImage:
        """Decode a file with the processor chosen by select()"""
        kind, image_type = self.select(path)
        if kind is ProcessorKind.RAW:
            return self.raw.load_image(path, image_type)
        return self.standard.load_image(path)


__all__ = [
    'ImageType',
    'detect_image_type',
    'ProcessorKind',
    'ProcessorRouter',
    'StandardDecoder',
    'RawDecoder',
    'RawSensorImage',
    'CFAPattern',
    'develop',
    'gamma_for',
]
