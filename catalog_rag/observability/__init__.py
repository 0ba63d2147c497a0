"""Observability for catalog-rag: Prometheus metrics."""

from .metrics import (
    MetricsRegistry,
    cache_lookups,
    classifications,
    collaborator_failures,
    record_cache_lookup,
    record_classification,
    record_collaborator_failure,
    stage_latency_histogram,
    track_latency,
)

__all__ = [
    "MetricsRegistry",
    "cache_lookups",
    "classifications",
    "collaborator_failures",
    "record_cache_lookup",
    "record_classification",
    "record_collaborator_failure",
    "stage_latency_histogram",
    "track_latency",
]
