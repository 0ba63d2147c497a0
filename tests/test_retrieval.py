"""
Test suite for RetrievalOrchestrator.

Uses the in-process catalog from conftest: a 4-row numpy index and a
keyword-driven fake embedder, so scores are exact and predictable.
"""

import pytest

from catalog_rag.filters import Equals, parse_filter
from catalog_rag.retrieval import RetrievalOrchestrator, make_cache_key


SPECS_ROUTE = parse_filter({"document_type": "family-guide", "category": "specs"})


class FakeClock:

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def orchestrator(catalog_index, catalog_metadata, embedder, clock):
    return RetrievalOrchestrator(catalog_index, catalog_metadata, embedder, clock=clock)


@pytest.mark.asyncio
class TestEmbeddingResolution:

    async def test_provider_called_once_per_query(self, orchestrator, embedder):
        await orchestrator.get_query_embedding("DL380 specs")
        await orchestrator.get_query_embedding("  dl380 SPECS ")

        assert embedder.calls == ["DL380 specs"]
        assert orchestrator.get_stats()["embedding_exact_hits"] == 1

    async def test_semantic_hit_reuses_vector(self, orchestrator, embedder):
        first = await orchestrator.get_query_embedding("DL380 specs")
        second = await orchestrator.get_query_embedding("dl380 specs?")

        assert second == first
        assert len(embedder.calls) == 1
        stats = orchestrator.get_stats()
        assert stats["embedding_semantic_hits"] == 1
        # Promoted into the exact tier under the new key
        assert stats["embedding_cache_size"] == 2
        assert stats["semantic_cache_size"] == 1

    async def test_dissimilar_query_calls_provider(self, orchestrator, embedder):
        await orchestrator.get_query_embedding("DL380 specs")
        await orchestrator.get_query_embedding("DL360 warranty terms")

        assert len(embedder.calls) == 2
        assert orchestrator.get_stats()["embedding_provider_calls"] == 2


@pytest.mark.asyncio
class TestSearch:

    async def test_threshold_and_top_k(self, orchestrator):
        results = await orchestrator.search("dl380 overview", top_k=3, min_score=0.45)

        # dl380 guide (1.0) and dl380 benchmarks (0.6); the rest score 0
        assert [r.id for r in results] == ["dl380-gen12-specs", "dl380-benchmarks"]
        assert results[0].score == pytest.approx(1.0)

    async def test_top_k_stops_early(self, orchestrator):
        results = await orchestrator.search("dl380 overview", top_k=1, min_score=0.45)
        assert [r.id for r in results] == ["dl380-gen12-specs"]

    async def test_min_score_excludes(self, orchestrator):
        results = await orchestrator.search("dl380 overview", top_k=3, min_score=0.7)
        assert [r.id for r in results] == ["dl380-gen12-specs"]

    async def test_filter_applied(self, orchestrator):
        results = await orchestrator.search(
            "dl380 overview", top_k=3, min_score=0.45, filter=Equals("category", "performance")
        )
        assert [r.id for r in results] == ["dl380-benchmarks"]

    async def test_defaults_from_config(self, orchestrator):
        results = await orchestrator.search("dl380 overview")
        assert len(results) == 2

    async def test_out_of_range_ids_skipped(self, catalog_index, catalog_metadata, embedder):
        # Metadata shorter than the index: rows past the end are ignored
        orchestrator = RetrievalOrchestrator(catalog_index, catalog_metadata[:2], embedder)

        results = await orchestrator.search("dl380 overview", top_k=3, min_score=0.45)

        assert [r.id for r in results] == ["dl380-gen12-specs"]

    async def test_results_cached_including_empty(self, orchestrator, embedder):
        empty_filter = Equals("category", "does-not-exist")
        first = await orchestrator.search("dl380 overview", filter=empty_filter)
        second = await orchestrator.search("dl380 overview", filter=empty_filter)

        assert first == second == []
        assert orchestrator.get_stats()["retrieval_hits"] == 1

    async def test_cache_key_includes_options(self, orchestrator):
        await orchestrator.search("dl380 overview", top_k=1)
        await orchestrator.search("dl380 overview", top_k=2)

        stats = orchestrator.get_stats()
        assert stats["retrieval_hits"] == 0
        assert stats["retrieval_cache_size"] == 2

    async def test_retrieval_cache_ttl(self, orchestrator, clock, embedder):
        await orchestrator.search("dl380 overview")
        clock.now += 301
        await orchestrator.search("dl380 overview")

        stats = orchestrator.get_stats()
        assert stats["retrieval_hits"] == 0
        # The embedding is still cached; only retrieval expired
        assert len(embedder.calls) == 1

    async def test_embedding_errors_propagate_from_search(self, catalog_index, catalog_metadata, failing_embedder):
        orchestrator = RetrievalOrchestrator(catalog_index, catalog_metadata, failing_embedder)

        with pytest.raises(TimeoutError):
            await orchestrator.search("dl380 overview")


@pytest.mark.asyncio
class TestSearchWithFallback:

    async def test_filtered_hit_no_fallback(self, orchestrator):
        outcome = await orchestrator.search_with_fallback(
            "What are the specs of DL380 Gen12?", top_k=3, filter=SPECS_ROUTE
        )

        assert [r.id for r in outcome.results] == ["dl380-gen12-specs"]
        assert outcome.used_fallback is False
        assert outcome.filter_applied == SPECS_ROUTE

    async def test_empty_filtered_result_retries_unfiltered(self, orchestrator):
        outcome = await orchestrator.search_with_fallback(
            "dl380 overview", filter=Equals("category", "does-not-exist")
        )

        assert outcome.used_fallback is True
        assert outcome.filter_applied is None
        assert [r.id for r in outcome.results] == ["dl380-gen12-specs", "dl380-benchmarks"]

    async def test_no_retry_without_filter(self, orchestrator, embedder):
        outcome = await orchestrator.search_with_fallback("unrelated gadget")

        assert outcome.results == []
        assert outcome.used_fallback is False
        assert orchestrator.get_stats()["retrieval_cache_size"] == 1

    async def test_collaborator_failure_degrades_to_empty(
        self, catalog_index, catalog_metadata, failing_embedder
    ):
        orchestrator = RetrievalOrchestrator(catalog_index, catalog_metadata, failing_embedder)

        outcome = await orchestrator.search_with_fallback("dl380 overview", filter=SPECS_ROUTE)

        assert outcome.results == []
        assert outcome.used_fallback is True
        # Both attempts reached the provider
        assert len(failing_embedder.calls) == 2

    async def test_index_failure_degrades_to_empty(self, catalog_metadata, embedder):
        class BrokenIndex:
            def __len__(self):
                return 4

            async def search(self, embedding, k):
                raise RuntimeError("index unavailable")

        orchestrator = RetrievalOrchestrator(BrokenIndex(), catalog_metadata, embedder)

        outcome = await orchestrator.search_with_fallback("dl380 overview")

        assert outcome.results == []


@pytest.mark.asyncio
async def test_clear_caches(orchestrator, embedder):
    await orchestrator.search("dl380 overview")
    orchestrator.clear_caches()

    stats = orchestrator.get_stats()
    assert stats["retrieval_cache_size"] == 0
    assert stats["embedding_cache_size"] == 0
    assert stats["semantic_cache_size"] == 0

    await orchestrator.search("dl380 overview")
    assert len(embedder.calls) == 2


def test_cache_key_is_deterministic():
    a = make_cache_key("dl380", SPECS_ROUTE, {"top_k": 3, "min_score": 0.45})
    b = make_cache_key("dl380", parse_filter({"category": "specs", "document_type": "family-guide"}),
                       {"min_score": 0.45, "top_k": 3})
    assert a == make_cache_key("dl380", SPECS_ROUTE, {"min_score": 0.45, "top_k": 3})
    assert a != make_cache_key("DL380", SPECS_ROUTE, {"top_k": 3, "min_score": 0.45})
    # Keys inside a record are sorted, so field order does not change the key
    assert a == b
