"""Result Cache for the retrieval pipeline.

A bounded, time-evicting key-value cache. One instance is owned by the
component that uses it (the embedding client caches query vectors) and is
injected rather than shared globally, so tests can swap or disable it.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar
import hashlib
import json
import logging
import time

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass
class CacheConfig:
    """Configuration for result cache."""

    enabled: bool = True
    ttl_seconds: int = 3600  # 0 disables expiry
    max_size: int = 500


@dataclass
class CacheEntry(Generic[V]):
    """Cache entry containing a value and metadata."""

    value: V
    created_at: float
    hits: int = 0


class ResultCache(Generic[V]):
    """LRU cache with per-entry time-to-live.

    Keys are derived from a normalized text plus optional parameters, hashed
    with SHA-256.
    """

    def __init__(self, config: CacheConfig, clock: Callable[[], float] = time.monotonic):
        """Initialize the result cache.

        Args:
            config: Cache configuration settings
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.config = config
        self._clock = clock
        self._cache: "OrderedDict[str, CacheEntry[V]]" = OrderedDict()
        self._misses = 0
        self._evictions = 0

    def get(self, text: str, params: Optional[Dict[str, Any]] = None) -> Optional[V]:
        """Get a cached value if present and not expired.

        Args:
            text: Text the value was computed from
            params: Optional parameters that also determine the value

        Returns:
            Cached value, or None on miss or expiry
        """
        if not self.config.enabled:
            return None

        cache_key = self.make_key(text, params)
        entry = self._cache.get(cache_key)

        if entry is None:
            self._misses += 1
            logger.debug(f"Cache miss for key hash: {cache_key[:8]}...")
            return None

        if self._is_expired(entry):
            logger.debug(f"Cache entry expired for key hash: {cache_key[:8]}...")
            del self._cache[cache_key]
            self._misses += 1
            return None

        entry.hits += 1
        self._cache.move_to_end(cache_key)
        logger.debug(f"Cache hit for key hash: {cache_key[:8]}... (hits: {entry.hits})")
        return entry.value

    def set(self, text: str, value: V, params: Optional[Dict[str, Any]] = None) -> None:
        """Cache a value, evicting the least recently used entry when full.

        Args:
            text: Text the value was computed from
            value: The value to cache
            params: Optional parameters that also determine the value
        """
        if not self.config.enabled:
            return

        cache_key = self.make_key(text, params)

        if cache_key in self._cache:
            self._cache.move_to_end(cache_key)
        else:
            while len(self._cache) >= self.config.max_size:
                self._evict_oldest()

        self._cache[cache_key] = CacheEntry(value=value, created_at=self._clock())

    @staticmethod
    def make_key(text: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Generate cache key from text and parameters.

        Returns:
            SHA-256 hash of the normalized text and sorted parameters
        """
        key_data = {
            'text': " ".join(text.lower().split()),
            'params': params or {}
        }
        key_string = json.dumps(key_data, sort_keys=True, default=str)
        return hashlib.sha256(key_string.encode('utf-8')).hexdigest()

    def _is_expired(self, entry: CacheEntry) -> bool:
        if self.config.ttl_seconds <= 0:
            return False
        return self._clock() - entry.created_at > self.config.ttl_seconds

    def _evict_oldest(self) -> None:
        if not self._cache:
            return
        oldest_key, _ = self._cache.popitem(last=False)
        self._evictions += 1
        logger.debug(f"Evicted oldest cache entry: {oldest_key[:8]}...")

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._cache.clear()
        logger.debug("Cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary containing cache statistics
        """
        total_hits = sum(entry.hits for entry in self._cache.values())
        lookups = total_hits + self._misses

        return {
            'enabled': self.config.enabled,
            'size': len(self._cache),
            'max_size': self.config.max_size,
            'ttl_seconds': self.config.ttl_seconds,
            'total_hits': total_hits,
            'misses': self._misses,
            'evictions': self._evictions,
            'hit_rate': (total_hits / lookups) if lookups else 0.0,
        }
