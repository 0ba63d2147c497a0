"""Query router: one classifier plus one filter synthesizer behind a single object."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .filter_synthesizer import FilterSynthesizer
from .filters import Filter
from .query_classifier import Classification, QueryClassifier

logger = logging.getLogger(__name__)


# Common catalog questions used to warm both caches at startup
DEFAULT_PREWARM_QUERIES = (
    "What are the specs of DL380 Gen12?",
    "Tell me about DL360 performance",
    "How to configure HPE iLO?",
    "Compare DL380 vs DL384",
    "VMware alternative virtualization",
    "AI inference benchmarks",
    "Customer case studies",
    "Latest updates",
    "Hello",
    "Thanks",
)


class QueryRouter:
    """
    Owns the classification and filter caches for a process.

    Example:
        >>> router = QueryRouter()
        >>> router.prewarm()
        10
        >>> router.classify("Latest updates").rule_name
        'latest_info'
    """

    def __init__(
        self,
        classifier: Optional[QueryClassifier] = None,
        synthesizer: Optional[FilterSynthesizer] = None,
    ):
        self.classifier = classifier or QueryClassifier()
        self.synthesizer = synthesizer or FilterSynthesizer()

    def classify(self, text: str) -> Classification:
        return self.classifier.classify(text)

    def extract_filter(self, text: str) -> Optional[Filter]:
        return self.synthesizer.extract(text)

    def batch_classify(self, texts: Iterable[str]) -> List[Classification]:
        return self.classifier.batch_classify(texts)

    def prewarm(self, queries: Optional[Iterable[str]] = None) -> int:
        """Run classification and filter synthesis over ``queries``.

        Args:
            queries: Queries to warm (empty or None = DEFAULT_PREWARM_QUERIES)

        Returns:
            Number of queries warmed
        """
        queries = list(queries or ())
        if not queries:
            queries = list(DEFAULT_PREWARM_QUERIES)

        for query in queries:
            self.classifier.classify(query)
            self.synthesizer.extract(query)

        logger.info(f"Pre-warmed router caches with {len(queries)} queries")
        return len(queries)

    def clear_caches(self) -> None:
        self.classifier.clear_cache()
        self.synthesizer.clear_cache()
        logger.info("Router caches cleared")

    def get_stats(self) -> Dict[str, Any]:
        classification = self.classifier.get_cache_stats()
        filters = self.synthesizer.get_cache_stats()
        return {
            "classification_cache_size": classification["size"],
            "filter_cache_size": filters["size"],
            "total_keywords": classification["total_keywords"],
            "product_patterns": filters["product_patterns"],
            "category_patterns": filters["category_patterns"],
        }
