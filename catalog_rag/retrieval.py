"""
Retrieval orchestration over the catalog vector index.

Owns the embedding cache (exact + semantic) and the retrieval cache, and
implements the filtered -> unfiltered fallback.

Pipeline for ``search``:
1. Composite key over (query, filter, top_k, min_score, search_k)
2. Prune expired retrieval entries, return a cached list on hit
3. Resolve the query embedding (exact tier, semantic tier, then provider)
4. Ask the index for min(search_k, corpus size) neighbours
5. Walk candidates in score order: drop bad ids, low scores and filter
   misses; stop at top_k
6. Cache the accepted list, empty lists included

Example:
    >>> orchestrator = RetrievalOrchestrator(index, metadata, HttpEmbeddingClient())
    >>> outcome = await orchestrator.search_with_fallback(
    ...     "What are the specs of DL380 Gen12?",
    ...     top_k=3,
    ...     filter=parse_filter({"document_type": "family-guide", "category": "specs"}),
    ... )
    >>> outcome.used_fallback
    False
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .caching import BoundedCache
from .config import RAGConfig, get_config
from .embeddings import EmbeddingProvider
from .filters import Filter, filter_to_dict, matches_filter
from .observability.metrics import record_cache_lookup, record_collaborator_failure, track_latency
from .retrieval_caching import EmbeddingCache, EmbeddingVector
from .text_similarity import normalize
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    """A catalog passage accepted by the score threshold and the filter."""

    id: Any
    score: float
    metadata: Mapping[str, Any]


@dataclass(frozen=True)
class RetrievalOutcome:
    """Results of a search with fallback."""

    results: List[SearchResult] = field(default_factory=list)
    used_fallback: bool = False
    filter_applied: Optional[Filter] = None


def make_cache_key(query: str, filter: Optional[Filter], options: Mapping[str, Any]) -> str:
    """Deterministic composite key over the query, the filter and search options."""
    return json.dumps(
        {"query": query, "filter": filter_to_dict(filter), "options": dict(options)},
        sort_keys=True,
        default=str,
    )


class RetrievalOrchestrator:
    """
    Ranked, filtered catalog search with embedding and retrieval caches.

    The index and metadata are loaded elsewhere and never mutated here; row
    ``i`` of the index corresponds to ``metadata[i]``.
    """

    def __init__(
        self,
        index: VectorIndex,
        metadata: Sequence[Mapping[str, Any]],
        embedder: EmbeddingProvider,
        config: Optional[RAGConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize orchestrator.

        Args:
            index: Vector index over the catalog passages
            metadata: Per-row metadata records (same order as the index)
            embedder: Query embedding provider
            config: Configuration (default: global config)
            clock: Time source for TTL checks
        """
        self.config = config or get_config()
        self._index = index
        self._metadata = list(metadata)
        self._embedder = embedder

        cache_config = self.config.cache
        self.embedding_cache = EmbeddingCache(
            similarity_threshold=cache_config.text_similarity_threshold,
            semantic_max_entries=cache_config.semantic_cache_size,
            exact_max_size=cache_config.embedding_cache_size or None,
        )
        self.retrieval_cache: BoundedCache[str, List[SearchResult]] = BoundedCache(
            ttl_seconds=cache_config.retrieval_ttl,
            clock=clock,
        )

        self._provider_calls = 0
        self._retrieval_hits = 0

        if len(self._index) != len(self._metadata):
            logger.warning(
                f"Index size {len(self._index)} does not match metadata size {len(self._metadata)}"
            )

    @property
    def corpus_size(self) -> int:
        return len(self._metadata)

    async def get_query_embedding(self, query: str) -> EmbeddingVector:
        """Resolve the embedding for ``query`` through the embedding cache.

        Raises:
            Exception: Whatever the embedding provider raises
        """
        key = normalize(query)

        cached = self.embedding_cache.lookup(key)
        record_cache_lookup("embedding", cached is not None)
        if cached is not None:
            logger.debug(f"Embedding {cached.tier} cache hit for '{key}' (matched '{cached.matched_key}')")
            return cached.vector

        self._provider_calls += 1
        try:
            with track_latency(stage="embed"):
                vector = await self._embedder.embed(query)
        except Exception:
            record_collaborator_failure("embedding")
            raise

        self.embedding_cache.store(key, vector)
        return vector

    async def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        filter: Optional[Filter] = None,
        min_score: Optional[float] = None,
        search_k: Optional[int] = None,
    ) -> List[SearchResult]:
        """Search the catalog.

        Args:
            query: Raw query text
            top_k: Maximum results (default from config)
            filter: Metadata filter (None = no filter)
            min_score: Minimum similarity score (default from config)
            search_k: Candidates requested from the index (default top_k * multiplier)

        Returns:
            Up to top_k results in descending score order (possibly empty)

        Raises:
            Exception: Embedding provider and index failures propagate
        """
        retrieval_config = self.config.retrieval
        top_k = retrieval_config.top_k if top_k is None else top_k
        min_score = retrieval_config.min_score if min_score is None else min_score
        if search_k is None:
            search_k = top_k * retrieval_config.search_k_multiplier

        key = make_cache_key(query, filter, {"top_k": top_k, "min_score": min_score, "search_k": search_k})

        self.retrieval_cache.prune_expired()
        cached = self.retrieval_cache.get(key)
        record_cache_lookup("retrieval", cached is not None)
        if cached is not None:
            self._retrieval_hits += 1
            logger.debug(f"Retrieval cache hit for '{query}'")
            return list(cached)

        embedding = await self.get_query_embedding(query)

        try:
            with track_latency(stage="search"):
                hits = await self._index.search(embedding, min(search_k, self.corpus_size))
        except Exception:
            record_collaborator_failure("vector_index")
            raise

        matches: List[SearchResult] = []
        for hit in hits:
            if hit.id < 0 or hit.id >= self.corpus_size:
                continue
            if hit.score < min_score:
                continue
            metadata = self._metadata[hit.id]
            if not matches_filter(metadata, filter):
                continue
            matches.append(SearchResult(id=metadata.get("id", hit.id), score=hit.score, metadata=metadata))
            if len(matches) >= top_k:
                break

        logger.debug(f"Search for '{query}' -> {len(matches)} hits from {len(hits)} candidates")

        self.retrieval_cache.set(key, matches)
        return matches

    async def _search_or_empty(self, query: str, attempt: str, **kwargs: Any) -> List[SearchResult]:
        try:
            return await self.search(query, **kwargs)
        except Exception as e:
            logger.error(f"{attempt} search failed for '{query}': {e}")
            return []

    async def search_with_fallback(
        self,
        query: str,
        top_k: Optional[int] = None,
        filter: Optional[Filter] = None,
        min_score: Optional[float] = None,
    ) -> RetrievalOutcome:
        """Filtered search, retried once without the filter if it finds nothing.

        Collaborator failures are logged and count as an empty attempt; this
        method never raises for them.
        """
        results = await self._search_or_empty(
            query, "Primary", top_k=top_k, filter=filter, min_score=min_score
        )
        if results or filter is None:
            return RetrievalOutcome(results=results, used_fallback=False, filter_applied=filter)

        logger.info(f"No matches with filter for '{query}'; retrying without filter")
        results = await self._search_or_empty(
            query, "Unfiltered retry", top_k=top_k, filter=None, min_score=min_score
        )
        return RetrievalOutcome(results=results, used_fallback=True, filter_applied=None)

    def clear_caches(self) -> None:
        self.embedding_cache.clear()
        self.retrieval_cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Hit counters and sizes of the embedding and retrieval caches."""
        embedding = self.embedding_cache.get_metrics()
        return {
            "embedding_exact_hits": embedding["exact_hits"],
            "embedding_semantic_hits": embedding["semantic_hits"],
            "embedding_provider_calls": self._provider_calls,
            "embedding_cache_size": embedding["exact_size"],
            "semantic_cache_size": embedding["semantic_size"],
            "retrieval_hits": self._retrieval_hits,
            "retrieval_cache_size": len(self.retrieval_cache),
        }
