"""Embedding providers for catalog-rag.

Usage:
    from catalog_rag.embeddings import HttpEmbeddingClient

    async with HttpEmbeddingClient() as client:
        vector = await client.embed("What are the specs of DL380 Gen12?")

Any OpenAI-compatible ``/v1/embeddings`` endpoint works (LM Studio, vLLM,
OpenAI itself). The model must match the one the catalog index was built with.
"""

import logging
from typing import Any, List, Optional, Protocol, runtime_checkable

import httpx

from .config import EmbeddingConfig, get_embedding_config
from .exceptions import EmbeddingError

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns text into an L2-normalized vector."""

    async def embed(self, text: str) -> List[float]:
        ...


class HttpEmbeddingClient:
    """Async client for an OpenAI-compatible embeddings endpoint.

    Attributes:
        url: Server base URL (``/v1/embeddings`` is appended)
        model: Embedding model name
        dimension: Expected vector dimension
    """

    def __init__(
        self,
        url: Optional[str] = None,
        model: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: Optional[float] = None,
        api_key: Optional[str] = None,
        config: Optional[EmbeddingConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize embedding client.

        Args:
            url: Server base URL (default from config)
            model: Model name (default from config)
            dimension: Expected dimension (default from config)
            timeout: Request timeout in seconds (default from config)
            api_key: Bearer token, if the server needs one
            config: Embedding configuration (default: global config)
            client: Pre-built httpx.AsyncClient (for tests / shared pools)
        """
        config = config or get_embedding_config()
        self.url = (url or config.url).rstrip("/")
        self.model = model or config.model
        self.dimension = dimension or config.dimension
        self.timeout = timeout or config.timeout
        self.max_input_length = config.max_input_length

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._headers = headers
        self._client = client
        self._owns_client = client is None

        logger.info(f"Embedding client initialized: {self.model} @ {self.url}, dim={self.dimension}")

    async def __aenter__(self) -> "HttpEmbeddingClient":
        """Async context manager entry."""
        self._get_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self._headers)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Args:
            text: Input text (truncated to max_input_length chars)

        Returns:
            Embedding vector

        Raises:
            EmbeddingError: On a non-200 response or a payload without an embedding
            httpx.HTTPError: On transport failures, timeouts included
        """
        response = await self._get_client().post(
            f"{self.url}/v1/embeddings",
            json={"model": self.model, "input": text[: self.max_input_length]},
        )

        if response.status_code != 200:
            raise EmbeddingError(f"Embedding API error {response.status_code}: {response.text}")

        try:
            embedding = response.json()["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}") from e

        if len(embedding) != self.dimension:
            logger.warning(f"Unexpected embedding dim: {len(embedding)} vs {self.dimension}")
        return embedding
