"""catalog-rag: retrieval-augmented question answering over a product catalog."""

from .answers import Answer, AnswerGenerator, ensure_complete_sentence
from .caching import BoundedCache
from .config import RAGConfig, get_config, reset_config
from .embeddings import EmbeddingProvider, HttpEmbeddingClient
from .engine import CatalogQAEngine, QueryOptions
from .exceptions import CatalogRAGError, EmbeddingError, FilterParseError
from .filter_synthesizer import FilterSynthesizer
from .filters import All, Equals, Filter, In, Or, matches_filter, parse_filter
from .llm import CompletionProvider, LiteLLMCompletionClient
from .query_classifier import (
    Classification,
    ClassificationType,
    QueryClassifier,
    should_use_intelligent_response,
    should_use_rag,
)
from .retrieval import RetrievalOrchestrator, RetrievalOutcome, SearchResult
from .retrieval_caching import EmbeddingCache
from .router import QueryRouter
from .text_similarity import normalize, similarity, token_set
from .vector_index import NumpyVectorIndex, VectorHit, VectorIndex

__version__ = "0.1.0"

__all__ = [
    "All",
    "Answer",
    "AnswerGenerator",
    "BoundedCache",
    "CatalogQAEngine",
    "CatalogRAGError",
    "Classification",
    "ClassificationType",
    "CompletionProvider",
    "EmbeddingCache",
    "EmbeddingError",
    "EmbeddingProvider",
    "Equals",
    "Filter",
    "FilterParseError",
    "FilterSynthesizer",
    "HttpEmbeddingClient",
    "In",
    "LiteLLMCompletionClient",
    "NumpyVectorIndex",
    "Or",
    "QueryClassifier",
    "QueryOptions",
    "QueryRouter",
    "RAGConfig",
    "RetrievalOrchestrator",
    "RetrievalOutcome",
    "SearchResult",
    "VectorHit",
    "VectorIndex",
    "ensure_complete_sentence",
    "get_config",
    "matches_filter",
    "normalize",
    "parse_filter",
    "reset_config",
    "should_use_intelligent_response",
    "should_use_rag",
    "similarity",
    "token_set",
]
