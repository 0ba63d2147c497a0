"""Bounded in-process caches with size and TTL policies.

One generic cache backs every cache role in the package:

- classification and filter caches: size-capped, oldest inserted entry
  evicted, no TTL
- retrieval and response caches: TTL-governed, pruned by a full scan on
  each access
- the exact half of the embedding cache (see retrieval_caching.py)

There is no background timer. Expiry happens lazily on the read path and
via ``prune_expired``, so an idle cache can hold stale entries until the
next access.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """A single cache entry with its insertion timestamp."""

    value: V
    created_at: float


class BoundedCache(Generic[K, V]):
    """Insertion-ordered cache with an optional size cap and optional TTL.

    Eviction is FIFO, not LRU: reads never reorder entries, and overwriting
    an existing key refreshes its timestamp but keeps its position.

    Example:
        >>> cache = BoundedCache(max_size=100)
        >>> cache.set("what are the specs of dl380 gen12?", classification)
        >>> cache.get("what are the specs of dl380 gen12?")
        >>>
        >>> results = BoundedCache(ttl_seconds=300)
        >>> results.prune_expired()
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries (None or 0 = unbounded)
            ttl_seconds: Entry lifetime in seconds (None = no expiration)
            clock: Time source, injectable for tests
        """
        self._max_size = max_size or None
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: OrderedDict[K, CacheEntry[V]] = OrderedDict()

        # Metrics
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @property
    def max_size(self) -> Optional[int]:
        return self._max_size

    @property
    def ttl_seconds(self) -> Optional[float]:
        return self._ttl_seconds

    def __len__(self) -> int:
        """Return number of entries in cache."""
        return len(self._cache)

    def __contains__(self, key: object) -> bool:
        return key in self._cache

    def _is_expired(self, entry: CacheEntry[V], ttl: Optional[float], now: float) -> bool:
        return ttl is not None and now - entry.created_at > ttl

    def get(self, key: K) -> Optional[V]:
        """Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if absent or expired
        """
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._is_expired(entry, self._ttl_seconds, self._clock()):
            del self._cache[key]
            self._expirations += 1
            self._misses += 1
            return None

        self._hits += 1
        return entry.value

    def set(self, key: K, value: V) -> None:
        """Insert or overwrite a value, evicting the oldest entry when full.

        Args:
            key: Cache key
            value: Value to store
        """
        now = self._clock()

        if key in self._cache:
            self._cache[key] = CacheEntry(value=value, created_at=now)
            return

        if self._max_size is not None and len(self._cache) >= self._max_size:
            self._cache.popitem(last=False)
            self._evictions += 1

        self._cache[key] = CacheEntry(value=value, created_at=now)

    def prune_expired(self, ttl: Optional[float] = None) -> int:
        """Remove every entry older than ``ttl`` (default: the instance TTL).

        Returns:
            Number of entries removed
        """
        ttl = self._ttl_seconds if ttl is None else ttl
        if ttl is None:
            return 0

        now = self._clock()
        expired = [key for key, entry in self._cache.items() if self._is_expired(entry, ttl, now)]
        for key in expired:
            del self._cache[key]

        self._expirations += len(expired)
        return len(expired)

    def clear(self) -> None:
        """Clear all cache entries. Metrics are kept."""
        self._cache.clear()

    def get_metrics(self) -> Dict[str, Any]:
        """Get cache metrics.

        Returns:
            Dict with hits, misses, hit_rate, evictions, expirations, size
        """
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0.0

        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": hit_rate,
            "evictions": self._evictions,
            "expirations": self._expirations,
            "size": len(self._cache),
            "max_size": self._max_size,
        }
