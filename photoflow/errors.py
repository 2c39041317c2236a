"""
Error types raised by the PhotoFlow decoding pipeline
"""


class PhotoFlowError(Exception):
    """Base class for all PhotoFlow errors"""


class ReadError(PhotoFlowError):
    """File is missing, unreadable, or too short to inspect"""


class DecodeError(PhotoFlowError):
    """Sensor container is malformed or the codec rejected the bytes"""


class ConfigError(PhotoFlowError):
    """Invalid CFA geometry, degenerate normalization range, or bad setting"""
