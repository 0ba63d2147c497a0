"""Centralized catalog-rag configuration.

All embedding, caching, retrieval and completion settings in one place.
Override via environment variables or a .env file at the repository root.

=== CONFIGURATION SECTIONS ===

1. Embedding Provider (RAG_EMBEDDING_*)
   - OpenAI-compatible /v1/embeddings endpoint (LM Studio by default)
   - RAG_EMBEDDING_DIM must match the dimension of the prebuilt index (384)

2. Caches (RAG_*_CACHE_*)
   - Classification and filter caches are size-capped (oldest evicted)
   - Retrieval and response caches are TTL-governed
   - RAG_TEXT_SIMILARITY: Jaccard threshold for semantic embedding reuse

3. Retrieval (RAG_TOP_K, RAG_MIN_SCORE, RAG_ROUTE_*)
   - Defaults for general queries and for keyword-routed queries

4. Completion (RAG_COMPLETION_*)
   - LiteLLM model name plus prompt assembly budget
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _get_env(key: str, default: str) -> str:
    """Get environment variable with default."""
    return os.getenv(key, default)


def _get_env_int(key: str, default: int) -> int:
    """Get integer environment variable with default."""
    return int(os.getenv(key, str(default)))


def _get_env_float(key: str, default: float) -> float:
    """Get float environment variable with default."""
    return float(os.getenv(key, str(default)))


def _get_env_optional(key: str) -> Optional[str]:
    """Get environment variable, treating empty strings as unset."""
    value = os.getenv(key)
    return value or None


# ============================================================================
# EMBEDDING CONFIGURATION
# ============================================================================

@dataclass
class EmbeddingConfig:
    """Embedding provider configuration.

    Environment Variables:
        RAG_EMBEDDING_URL: Embedding server URL (default: http://localhost:1234)
        RAG_EMBEDDING_MODEL: Model name (default: all-minilm-l6-v2)
        RAG_EMBEDDING_DIM: Embedding dimension (default: 384)
        RAG_EMBEDDING_TIMEOUT: Request timeout in seconds (default: 10)
    """

    url: str = field(default_factory=lambda: _get_env("RAG_EMBEDDING_URL", "http://localhost:1234"))

    # Same model family the offline index was built with
    model: str = field(default_factory=lambda: _get_env("RAG_EMBEDDING_MODEL", "all-minilm-l6-v2"))

    dimension: int = field(default_factory=lambda: _get_env_int("RAG_EMBEDDING_DIM", 384))

    timeout: float = field(default_factory=lambda: _get_env_float("RAG_EMBEDDING_TIMEOUT", 10.0))

    # Max input length (chars)
    max_input_length: int = field(default_factory=lambda: _get_env_int("RAG_EMBEDDING_MAX_LENGTH", 8000))


# ============================================================================
# CACHE CONFIGURATION
# ============================================================================

@dataclass
class CacheConfig:
    """Sizes, TTLs and similarity threshold for the in-process caches."""

    classification_cache_size: int = field(
        default_factory=lambda: _get_env_int("RAG_CLASSIFICATION_CACHE_SIZE", 100)
    )
    filter_cache_size: int = field(default_factory=lambda: _get_env_int("RAG_FILTER_CACHE_SIZE", 100))

    # 0 = unbounded exact embedding cache
    embedding_cache_size: int = field(default_factory=lambda: _get_env_int("RAG_EMBEDDING_CACHE_SIZE", 0))
    semantic_cache_size: int = field(default_factory=lambda: _get_env_int("RAG_SEMANTIC_CACHE_SIZE", 256))

    # Jaccard threshold for reusing an embedding computed for a similar query
    text_similarity_threshold: float = field(
        default_factory=lambda: _get_env_float("RAG_TEXT_SIMILARITY", 0.82)
    )

    # Seconds
    response_ttl: float = field(default_factory=lambda: _get_env_float("RAG_CACHE_TTL", 300.0))
    retrieval_ttl: float = field(
        default_factory=lambda: _get_env_float(
            "RAG_RETRIEVAL_CACHE_TTL", _get_env_float("RAG_CACHE_TTL", 300.0)
        )
    )


# ============================================================================
# RETRIEVAL CONFIGURATION
# ============================================================================

@dataclass
class RetrievalConfig:
    """Retrieval defaults."""

    top_k: int = field(default_factory=lambda: _get_env_int("RAG_TOP_K", 3))
    min_score: float = field(default_factory=lambda: _get_env_float("RAG_MIN_SCORE", 0.45))

    # Candidates requested from the index = top_k * multiplier
    search_k_multiplier: int = field(default_factory=lambda: _get_env_int("RAG_SEARCH_K_MULTIPLIER", 3))

    # Keyword-routed queries are already narrowed, so they get a wider, looser search
    route_top_k: int = field(default_factory=lambda: _get_env_int("RAG_ROUTE_TOP_K", 4))
    route_min_score: float = field(default_factory=lambda: _get_env_float("RAG_ROUTE_MIN_SCORE", 0.42))


# ============================================================================
# COMPLETION CONFIGURATION
# ============================================================================

@dataclass
class LLMConfig:
    """Completion provider and prompt assembly configuration."""

    model: str = field(default_factory=lambda: _get_env("RAG_COMPLETION_MODEL", "gpt-3.5-turbo"))
    api_key: Optional[str] = field(default_factory=lambda: _get_env_optional("OPENAI_API_KEY"))
    api_base: Optional[str] = field(default_factory=lambda: _get_env_optional("RAG_COMPLETION_API_BASE"))
    temperature: float = field(default_factory=lambda: _get_env_float("RAG_COMPLETION_TEMPERATURE", 0.3))
    max_tokens: int = field(default_factory=lambda: _get_env_int("RAG_COMPLETION_MAX_TOKENS", 160))
    timeout: float = field(default_factory=lambda: _get_env_float("RAG_COMPLETION_TIMEOUT", 5.0))

    # Prompt assembly budget
    context_passages: int = field(default_factory=lambda: _get_env_int("RAG_CONTEXT_PASSAGES", 2))
    passage_char_budget: int = field(default_factory=lambda: _get_env_int("RAG_PASSAGE_CHAR_BUDGET", 400))


@dataclass
class RAGConfig:
    """Master catalog-rag configuration."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)


# Global singleton
_config: Optional[RAGConfig] = None


def get_config() -> RAGConfig:
    """Get the global configuration singleton."""
    global _config
    if _config is None:
        _config = RAGConfig()
    return _config


def reset_config() -> None:
    """Reset configuration (for testing)."""
    global _config
    _config = None


# Convenience accessors
def get_embedding_config() -> EmbeddingConfig:
    """Get embedding provider configuration."""
    return get_config().embedding


def get_cache_config() -> CacheConfig:
    """Get cache configuration."""
    return get_config().cache


def get_retrieval_config() -> RetrievalConfig:
    """Get retrieval configuration."""
    return get_config().retrieval


def get_llm_config() -> LLMConfig:
    """Get completion configuration."""
    return get_config().llm
