"""Tests for the QueryRouter facade."""

import unittest

import pytest


@pytest.mark.unit
class TestQueryRouter(unittest.TestCase):

    def test_prewarm_default_queries(self):
        from catalog_rag.router import DEFAULT_PREWARM_QUERIES, QueryRouter

        router = QueryRouter()
        warmed = router.prewarm()

        self.assertEqual(warmed, len(DEFAULT_PREWARM_QUERIES))
        stats = router.get_stats()
        self.assertEqual(stats["classification_cache_size"], len(DEFAULT_PREWARM_QUERIES))
        self.assertEqual(stats["filter_cache_size"], len(DEFAULT_PREWARM_QUERIES))

    def test_prewarm_custom_queries(self):
        from catalog_rag.router import QueryRouter

        router = QueryRouter()
        self.assertEqual(router.prewarm(["dl380 memory options", "ml350 warranty"]), 2)
        self.assertEqual(router.get_stats()["classification_cache_size"], 2)

    def test_prewarmed_classification_is_served_from_cache(self):
        from catalog_rag.router import QueryRouter

        router = QueryRouter()
        router.prewarm()
        router.classify("Latest updates")

        self.assertEqual(router.classifier.get_cache_stats()["hits"], 1)

    def test_stats_counts_tables(self):
        from catalog_rag.filter_synthesizer import CATEGORY_PATTERNS, PRODUCT_PATTERNS
        from catalog_rag.router import QueryRouter

        stats = QueryRouter().get_stats()

        self.assertEqual(stats["total_keywords"], 28)
        self.assertEqual(stats["product_patterns"], len(PRODUCT_PATTERNS))
        self.assertEqual(stats["category_patterns"], len(CATEGORY_PATTERNS))

    def test_clear_caches(self):
        from catalog_rag.router import QueryRouter

        router = QueryRouter()
        router.prewarm()
        router.clear_caches()

        stats = router.get_stats()
        self.assertEqual(stats["classification_cache_size"], 0)
        self.assertEqual(stats["filter_cache_size"], 0)

    def test_batch_classify(self):
        from catalog_rag.router import QueryRouter

        results = QueryRouter().batch_classify(["hi", "AI inference benchmarks"])

        self.assertEqual(results[1].rule_name, "ai_inference")
