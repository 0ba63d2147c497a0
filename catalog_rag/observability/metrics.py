"""
Prometheus Metrics Collection for catalog-rag

Tracks cache lookups per cache role, classification outcomes, per-stage
latency of the query pipeline and failures of the external collaborators
(embedding provider, vector index, completion provider).
"""

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Histogram, Counter, REGISTRY, generate_latest


# Buckets tuned for the pipeline stages (1ms to 5s)
LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


cache_lookups = Counter(
    'catalog_rag_cache_lookups_total',
    'Cache lookups by cache role and outcome',
    labelnames=['cache', 'outcome']
)

classifications = Counter(
    'catalog_rag_classifications_total',
    'Query classifications by outcome type',
    labelnames=['type']
)

collaborator_failures = Counter(
    'catalog_rag_collaborator_failures_total',
    'Failed calls to external collaborators',
    labelnames=['collaborator']
)

stage_latency_histogram = Histogram(
    'catalog_rag_stage_latency_seconds',
    'Latency of query pipeline stages in seconds',
    labelnames=['stage'],
    buckets=LATENCY_BUCKETS
)


def record_cache_lookup(cache: str, hit: bool) -> None:
    """Count one lookup against ``cache`` as a hit or a miss."""
    cache_lookups.labels(cache=cache, outcome="hit" if hit else "miss").inc()


def record_classification(classification_type: str) -> None:
    classifications.labels(type=classification_type).inc()


def record_collaborator_failure(collaborator: str) -> None:
    collaborator_failures.labels(collaborator=collaborator).inc()


class MetricsRegistry:
    """
    Singleton registry for Prometheus metrics export.

    Provides centralized access to metrics and export functionality.
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern - ensures only one registry instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def export(self) -> str:
        """
        Export all metrics in Prometheus text format.

        Returns:
            str: Prometheus-formatted metrics text
        """
        return generate_latest(REGISTRY).decode('utf-8')


@contextmanager
def track_latency(stage: str) -> Generator[None, None, None]:
    """
    Context manager for automatic stage latency tracking.

    Records duration to stage_latency_histogram even when the block raises.

    Args:
        stage: Pipeline stage name ("classify", "embed", "search", "generate", ...)

    Example:
        >>> with track_latency(stage="search"):
        ...     results = await orchestrator.search(query)
    """
    start = time.time()
    try:
        yield
    finally:
        stage_latency_histogram.labels(stage=stage).observe(time.time() - start)
