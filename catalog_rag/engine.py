"""
Catalog question answering entry point.

``CatalogQAEngine.resolve_query`` runs the whole pipeline:

1. Classify the query. Plain conversation gets a short reply, no retrieval.
2. Choose the filter: explicit override, else the route filter of a routed
   query, else a synthesized filter.
3. Choose top_k / min_score: explicit options, else route defaults for
   routed queries, else configured defaults.
4. Return a cached answer if one is fresh.
5. Search with fallback. Nothing found -> a no-results answer (not cached).
6. Generate, finalize and cache (unless generation failed).

Example:
    >>> engine = CatalogQAEngine.from_components(index, metadata, HttpEmbeddingClient(), LiteLLMCompletionClient())
    >>> answer = await engine.resolve_query("What are the specs of DL380 Gen12?")
    >>> answer.classification.rule_name, answer.sources[0]["source"]
    ('specs_queries', 'dl380-gen12-family-guide.pdf')
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from .answers import Answer, AnswerGenerator, TokenCallback, no_results_answer
from .caching import BoundedCache
from .config import RAGConfig, get_config
from .embeddings import EmbeddingProvider
from .filters import Filter, parse_filter
from .llm import CompletionProvider
from .observability.metrics import record_cache_lookup, track_latency
from .query_classifier import Classification, ClassificationType, should_use_intelligent_response
from .retrieval import RetrievalOrchestrator, make_cache_key
from .router import QueryRouter
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


CONVERSATION_REPLY = (
    "Thanks for reaching out! To help match you with the right ProLiant solution, "
    "may I ask a couple of quick questions? What type of workloads are you looking "
    "to support, and what's driving your server evaluation: growth, modernization, "
    "or replacing aging hardware?"
)


@dataclass
class QueryOptions:
    """Per-query overrides for resolve_query.

    Attributes:
        top_k: Maximum passages to retrieve
        min_score: Minimum similarity score
        filter: Filter override (Filter node or dict form)
        on_token: Streaming callback ``(token, text_so_far)``
    """

    top_k: Optional[int] = None
    min_score: Optional[float] = None
    filter: Optional[Union[Filter, Mapping[str, Any]]] = None
    on_token: Optional[TokenCallback] = None


class CatalogQAEngine:
    """Classify, retrieve and answer catalog questions with layered caching."""

    def __init__(
        self,
        orchestrator: RetrievalOrchestrator,
        generator: AnswerGenerator,
        router: Optional[QueryRouter] = None,
        config: Optional[RAGConfig] = None,
        clock=time.time,
    ):
        self.config = config or get_config()
        self.orchestrator = orchestrator
        self.generator = generator
        self.router = router or QueryRouter()
        self._clock = clock
        self.response_cache: BoundedCache[str, Answer] = BoundedCache(
            ttl_seconds=self.config.cache.response_ttl,
            clock=clock,
        )
        self._response_hits = 0

    @classmethod
    def from_components(
        cls,
        index: VectorIndex,
        metadata: Sequence[Mapping[str, Any]],
        embedder: EmbeddingProvider,
        completion: CompletionProvider,
        config: Optional[RAGConfig] = None,
        clock=time.time,
    ) -> "CatalogQAEngine":
        """Wire an engine from its external collaborators."""
        config = config or get_config()
        orchestrator = RetrievalOrchestrator(index, metadata, embedder, config=config, clock=clock)
        generator = AnswerGenerator(completion, config=config.llm)
        return cls(orchestrator, generator, config=config, clock=clock)

    def _select_filter(
        self, text: str, classification: Classification, options: QueryOptions
    ) -> Optional[Filter]:
        if options.filter is not None:
            return parse_filter(options.filter)
        if classification.type == ClassificationType.ROUTE:
            return classification.route
        return self.router.extract_filter(text)

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000

    async def resolve_query(self, text: str, options: Optional[QueryOptions] = None) -> Answer:
        """Answer a catalog question.

        Never raises for collaborator failures; those surface as a
        no-results or generation_failed Answer.

        Raises:
            FilterParseError: If ``options.filter`` is a malformed dict filter
        """
        options = options or QueryOptions()
        start = self._clock()

        with track_latency(stage="classify"):
            classification = self.router.classify(text)

        if not should_use_intelligent_response(classification):
            return Answer(
                text=CONVERSATION_REPLY,
                confidence=classification.confidence,
                method="conversation",
                classification=classification,
                latency_ms=self._elapsed_ms(start),
            )

        filter = self._select_filter(text, classification, options)

        retrieval_config = self.config.retrieval
        is_route = classification.type == ClassificationType.ROUTE
        top_k = options.top_k
        if top_k is None:
            top_k = retrieval_config.route_top_k if is_route else retrieval_config.top_k
        min_score = options.min_score
        if min_score is None:
            min_score = retrieval_config.route_min_score if is_route else retrieval_config.min_score

        key = make_cache_key(text, filter, {"top_k": top_k, "min_score": min_score})
        self.response_cache.prune_expired()
        cached = self.response_cache.get(key)
        record_cache_lookup("response", cached is not None)
        if cached is not None:
            self._response_hits += 1
            logger.debug(f"Response cache hit for '{text}'")
            if options.on_token is not None:
                result = options.on_token(cached.text, cached.text)
                if asyncio.iscoroutine(result):
                    await result
            return replace(
                cached,
                cached=True,
                classification=classification,
                latency_ms=self._elapsed_ms(start),
            )

        outcome = await self.orchestrator.search_with_fallback(
            text, top_k=top_k, filter=filter, min_score=min_score
        )
        if not outcome.results:
            logger.info(f"No results for '{text}'")
            return replace(no_results_answer(classification), latency_ms=self._elapsed_ms(start))

        answer = await self.generator.generate(
            text, outcome.results, on_token=options.on_token, classification=classification
        )
        answer = replace(answer, used_fallback=outcome.used_fallback, latency_ms=self._elapsed_ms(start))

        if answer.method != "generation_failed":
            self.response_cache.set(key, answer)
        return answer

    def clear_caches(self) -> None:
        """Empty every cache. Hit counters are kept."""
        self.router.clear_caches()
        self.orchestrator.clear_caches()
        self.response_cache.clear()
        logger.info("Cleared all catalog-rag caches")

    def get_cache_statistics(self) -> Dict[str, Dict[str, Any]]:
        """Hit counts and current sizes per cache."""
        classification = self.router.classifier.get_cache_stats()
        filters = self.router.synthesizer.get_cache_stats()
        retrieval = self.orchestrator.get_stats()
        return {
            "classification": {
                "hits": classification["hits"],
                "misses": classification["misses"],
                "size": classification["size"],
            },
            "filter": {
                "hits": filters["hits"],
                "misses": filters["misses"],
                "size": filters["size"],
            },
            "embedding": {
                "exact_hits": retrieval["embedding_exact_hits"],
                "semantic_hits": retrieval["embedding_semantic_hits"],
                "provider_calls": retrieval["embedding_provider_calls"],
                "size": retrieval["embedding_cache_size"],
                "semantic_size": retrieval["semantic_cache_size"],
            },
            "retrieval": {
                "hits": retrieval["retrieval_hits"],
                "size": retrieval["retrieval_cache_size"],
            },
            "response": {
                "hits": self._response_hits,
                "size": len(self.response_cache),
            },
        }
