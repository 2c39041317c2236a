"""
Builds the decoding pipeline (decoders, router, cache) from configuration
"""

import logging
from typing import Any, Dict, Optional

from photoflow.cache import ImageCache
from photoflow.config import get_config_value, get_default_config
from photoflow.errors import ConfigError
from photoflow.processors import ImageType, ProcessorRouter, RawDecoder, StandardDecoder
from photoflow.processors.raw import DEFAULT_GAMMA

logger = logging.getLogger(__name__)


def _gamma_table(config: Dict[str, Any]):
    gamma = dict(get_config_value(config, 'raw.gamma', {}) or {})
    default = float(gamma.pop('default', DEFAULT_GAMMA))
    table = {}
    for name, value in gamma.items():
        try:
            image_type = ImageType(str(name).lower())
        except ValueError as e:
            raise ConfigError(f"Unknown image type in raw.gamma: {name!r}") from e
        if not image_type.is_raw():
            raise ConfigError(f"raw.gamma only applies to RAW formats, got {name!r}")
        table[image_type] = float(value)
    return table, default


def build_router(config: Optional[Dict[str, Any]] = None) -> ProcessorRouter:
    """Create a ProcessorRouter with decoders configured from ``config``"""
    config = config if config is not None else get_default_config()

    threshold_mb = get_config_value(config, 'standard.mmap_threshold_mb', 32)
    if threshold_mb is None or float(threshold_mb) < 0:
        raise ConfigError(f"standard.mmap_threshold_mb must be >= 0, got {threshold_mb}")
    standard = StandardDecoder(mmap_threshold=int(float(threshold_mb) * 1024 * 1024))

    table, default = _gamma_table(config)
    raw = RawDecoder(
        gamma_table=table,
        default_gamma=default,
        border_mode=str(get_config_value(config, 'raw.border_mode', 'none')),
    )
    return ProcessorRouter(standard=standard, raw=raw)


def build_cache(config: Optional[Dict[str, Any]] = None,
                router: Optional[ProcessorRouter] = None) -> ImageCache:
    """Create the image cache in front of a router"""
    config = config if config is not None else get_default_config()
    router = router or build_router(config)
    capacity = int(get_config_value(config, 'cache.capacity', 32))
    logger.debug(f"Building image cache with capacity {capacity}")
    return ImageCache(router.load_image, capacity=capacity)
