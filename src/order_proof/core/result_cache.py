# ============================================================================
# src/order_proof/core/result_cache.py
# ============================================================================
"""
Result Cache

Re-submitting the same screenshot (users retry uploads, proof screens are
re-checked) should not repeat recognition and model calls. Results are
cached per image content hash, proof kind and expected values.

Features:
- LRU eviction when max_size is reached
- TTL-based expiration
- Thread-safe operations
- Per-image invalidation
- Cache statistics

Entries hold copies; a hit returns a fresh copy flagged ``cached=True``.
"""

import copy
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ..utils.image_utils import image_digest

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, Tuple[Any, ...]]


@dataclass
class CacheEntry:
    """
    Single cache entry with metadata.

    Attributes:
        value: Cached result object
        created_at: When the entry was created
        access_count: Number of times read
        ttl_seconds: Time-to-live (None = no expiration)
    """
    value: Any
    created_at: datetime
    access_count: int = 0
    ttl_seconds: Optional[int] = None

    def is_expired(self) -> bool:
        if self.ttl_seconds is None:
            return False
        age = (datetime.now() - self.created_at).total_seconds()
        return age > self.ttl_seconds


class CacheStatistics:
    """Track cache performance metrics"""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0
        self.writes = 0
        self.invalidations = 0

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "writes": self.writes,
            "invalidations": self.invalidations,
            "hit_rate": self.hit_rate(),
        }


def _normalize_expected(value: Any) -> Any:
    if isinstance(value, str):
        return ' '.join(value.split()).lower()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class ResultCache:
    """
    LRU + TTL cache of extraction and verification results.

    Example:
        cache = ResultCache(max_size=256, default_ttl=1800)
        key = cache.make_key(image_bytes, "purchase", "408-1234567-7654321", 1499)
        cached = cache.get(key)
        if cached is None:
            cache.set(key, result)
    """

    def __init__(self, max_size: int = 256, default_ttl: Optional[int] = 1800, enabled: bool = True):
        self.max_size = max_size
        self.default_ttl = default_ttl
        self.enabled = enabled

        self._cache: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStatistics()

    @staticmethod
    def make_key(image_bytes: bytes, kind: str, *expected: Any) -> CacheKey:
        return (image_digest(image_bytes), kind, tuple(_normalize_expected(v) for v in expected))

    def get(self, key: CacheKey) -> Optional[Any]:
        """Copy of the cached result flagged ``cached=True``, or None."""
        if not self.enabled:
            return None
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats.misses += 1
                return None

            if entry.is_expired():
                del self._cache[key]
                self._stats.misses += 1
                self._stats.expirations += 1
                return None

            entry.access_count += 1
            self._cache.move_to_end(key)
            self._stats.hits += 1
            value = copy.deepcopy(entry.value)

        if hasattr(value, 'cached'):
            value.cached = True
        return value

    def set(self, key: CacheKey, value: Any, ttl: Optional[int] = None) -> None:
        if not self.enabled or self.max_size <= 0:
            return
        with self._lock:
            if key not in self._cache:
                while len(self._cache) >= self.max_size:
                    evicted, _ = self._cache.popitem(last=False)
                    self._stats.evictions += 1
                    logger.debug(f"Evicted cached result {evicted[1]}:{evicted[0][:12]}")

            self._cache[key] = CacheEntry(
                value=copy.deepcopy(value),
                created_at=datetime.now(),
                ttl_seconds=ttl if ttl is not None else self.default_ttl,
            )
            self._cache.move_to_end(key)
            self._stats.writes += 1

    def invalidate(self, image_bytes: bytes) -> int:
        """Drop every entry for one image. Returns the number removed."""
        digest = image_digest(image_bytes)
        with self._lock:
            keys = [key for key in self._cache if key[0] == digest]
            for key in keys:
                del self._cache[key]
            self._stats.invalidations += len(keys)
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
        logger.info("Result cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._stats.to_dict()
            stats["entry_count"] = len(self._cache)
            stats["max_size"] = self.max_size
            stats["default_ttl"] = self.default_ttl
            stats["enabled"] = self.enabled
            return stats
