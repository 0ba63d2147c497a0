"""
Retrieval-specific caching layer: query text -> embedding vector.

This module caches EMBEDDINGS, not retrieval results or answers.
Retrieval results and answers use the generic BoundedCache in caching.py.

Caching Strategy:
- Exact tier: normalized query -> vector (BoundedCache)
- Semantic tier: append-only list of (normalized query, vector), capped and
  scanned linearly in insertion order. The first entry whose key equals the
  query, or whose Jaccard similarity to it reaches the threshold, is a hit.
  First qualifying entry wins, not the best one.
"""

from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Tuple

from .caching import BoundedCache
from .text_similarity import similarity

EmbeddingVector = List[float]


@dataclass(frozen=True)
class EmbeddingLookup:
    """Result of an embedding cache lookup."""

    vector: EmbeddingVector
    tier: str  # "exact" | "semantic"
    matched_key: str


class EmbeddingCache:
    """Two-tier cache for normalized query -> embedding vector.

    Callers are expected to pass already-normalized text (see
    text_similarity.normalize).
    """

    def __init__(
        self,
        similarity_threshold: float = 0.82,
        semantic_max_entries: int = 256,
        exact_max_size: Optional[int] = None,
    ):
        """Initialize embedding cache.

        Args:
            similarity_threshold: Minimum Jaccard similarity for a semantic hit
            semantic_max_entries: Cap on the semantic list (oldest dropped first)
            exact_max_size: Cap on the exact tier (None = unbounded)
        """
        self._threshold = similarity_threshold
        self._exact: BoundedCache[str, EmbeddingVector] = BoundedCache(max_size=exact_max_size)
        self._semantic: Deque[Tuple[str, EmbeddingVector]] = deque(maxlen=semantic_max_entries)
        self._exact_hits = 0
        self._semantic_hits = 0
        self._misses = 0

    @property
    def similarity_threshold(self) -> float:
        return self._threshold

    def lookup(self, key: str) -> Optional[EmbeddingLookup]:
        """Find a reusable embedding for ``key``.

        A semantic hit is promoted into the exact tier under ``key``.

        Args:
            key: Normalized query text

        Returns:
            EmbeddingLookup, or None on miss
        """
        vector = self._exact.get(key)
        if vector is not None:
            self._exact_hits += 1
            return EmbeddingLookup(vector=vector, tier="exact", matched_key=key)

        for cached_key, cached_vector in self._semantic:
            if cached_key == key or similarity(key, cached_key) >= self._threshold:
                self._semantic_hits += 1
                self._exact.set(key, cached_vector)
                return EmbeddingLookup(vector=cached_vector, tier="semantic", matched_key=cached_key)

        self._misses += 1
        return None

    def store(self, key: str, vector: EmbeddingVector) -> None:
        """Store a freshly computed embedding in both tiers.

        Args:
            key: Normalized query text
            vector: Embedding vector
        """
        self._exact.set(key, vector)
        self._semantic.append((key, vector))

    def clear(self) -> None:
        """Clear both tiers. Hit counters are kept."""
        self._exact.clear()
        self._semantic.clear()

    def semantic_keys(self) -> List[str]:
        """Keys of the semantic list in insertion order (oldest first)."""
        return [key for key, _ in self._semantic]

    def get_metrics(self) -> Dict[str, Any]:
        """Get cache performance metrics.

        Returns:
            Dictionary with exact/semantic hits, misses and tier sizes
        """
        return {
            "exact_hits": self._exact_hits,
            "semantic_hits": self._semantic_hits,
            "misses": self._misses,
            "exact_size": len(self._exact),
            "semantic_size": len(self._semantic),
            "semantic_max_entries": self._semantic.maxlen,
        }

    def __len__(self) -> int:
        """Return size of the exact tier."""
        return len(self._exact)
