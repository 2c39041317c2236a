"""
Freshness-aware LRU cache of decoded images keyed by file path.

Each entry remembers the source file's modification time at decode time;
a lookup only counts as a hit when the file has not been modified since.
"""

import logging
import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from photoflow.errors import ConfigError
from photoflow.models import DecodedImage

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 32

Loader = Callable[[Path], DecodedImage]


@dataclass
class CacheEntry:
    """A decoded image and the source mtime (ns) it was decoded from"""
    path: Path
    image: DecodedImage
    mtime_ns: Optional[int]


def _current_mtime(path: Path) -> Optional[int]:
    try:
        return os.stat(path).st_mtime_ns
    except OSError as e:
        logger.debug(f"Cannot read modification time of {path}: {e}")
        return None


class ImageCache:
    """
    Bounded LRU cache in front of an image loader.

    The lock only guards bookkeeping; decoding runs outside it. Two callers
    racing on the same stale path will both decode it and the last insert
    wins. That wastes work but never corrupts the cache.
    """

    def __init__(self, loader: Loader, capacity: int = DEFAULT_CAPACITY):
        """
        Args:
            loader: Callable decoding a path, usually ProcessorRouter.load_image
            capacity: Maximum number of entries kept
        """
        if capacity < 1:
            raise ConfigError(f"Cache capacity must be at least 1, got {capacity}")
        self.loader = loader
        self.capacity = capacity
        self._entries: 'OrderedDict[Path, CacheEntry]' = OrderedDict()
        self._lock = threading.RLock()
        self.stats = {
            'hits': 0,
            'misses': 0,
            'stale': 0,
            'evictions': 0,
            'decodes': 0,
        }

    @staticmethod
    def _key(path: Union[str, Path]) -> Path:
        return Path(path).absolute()

    def get_or_decode(self, path: Union[str, Path]) -> DecodedImage:
        """
        Return the cached image for a path, decoding it on a miss.

        The entry is reused only if the file's current mtime is known and not
        newer than the one stored with it. A hit makes the entry the most
        recently used one.

        Raises:
            Whatever the loader raises; nothing is cached in that case
        """
        key = self._key(path)
        mtime = _current_mtime(key)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if (mtime is not None and entry.mtime_ns is not None
                        and mtime <= entry.mtime_ns):
                    self._entries.move_to_end(key)
                    self.stats['hits'] += 1
                    logger.debug(f"Cache hit: {key}")
                    return entry.image
                self.stats['stale'] += 1
                logger.debug(f"Cache entry stale: {key}")
            else:
                self.stats['misses'] += 1
                logger.debug(f"Cache miss: {key}")

        image = self.loader(key)
        with self._lock:
            self.stats['decodes'] += 1
        self.put(key, image, mtime)
        return image

    def put(self, path: Union[str, Path], image: DecodedImage,
            mtime_ns: Optional[int]) -> None:
        """Insert or replace an entry, evicting least recently used ones"""
        key = self._key(path)
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(path=key, image=image, mtime_ns=mtime_ns)
            while len(self._entries) > self.capacity:
                old_key, _ = self._entries.popitem(last=False)
                self.stats['evictions'] += 1
                logger.debug(f"Evicted {old_key} from cache")

    def entry(self, path: Union[str, Path]) -> Optional[CacheEntry]:
        """Peek at an entry without touching its recency"""
        with self._lock:
            return self._entries.get(self._key(path))

    def invalidate(self, path: Union[str, Path]) -> bool:
        with self._lock:
            return self._entries.pop(self._key(path), None) is not None

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path) -> bool:
        with self._lock:
            return self._key(path) in self._entries

    def get_stats(self) -> Dict[str, Union[int, float]]:
        """Get cache statistics."""
        with self._lock:
            lookups = self.stats['hits'] + self.stats['misses'] + self.stats['stale']
            return {
                **self.stats,
                'items': len(self._entries),
                'capacity': self.capacity,
                'memory_mb': sum(e.image.nbytes for e in self._entries.values()) / 1024 / 1024,
                'hit_rate': (self.stats['hits'] / lookups * 100) if lookups > 0 else 0.0,
            }
