"""
Tests for the async HTTP embedding client.

The httpx.AsyncClient is replaced by an AsyncMock, so no server is needed.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from catalog_rag.embeddings import EmbeddingProvider, HttpEmbeddingClient
from catalog_rag.exceptions import EmbeddingError


def _mock_client(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = "error body"
    response.json.return_value = payload if payload is not None else {"data": [{"embedding": [0.1] * 384}]}
    client = AsyncMock()
    client.post.return_value = response
    return client


@pytest.mark.asyncio
class TestHttpEmbeddingClient:

    async def test_embed_posts_openai_compatible_request(self):
        client = _mock_client()
        embedder = HttpEmbeddingClient(url="http://localhost:1234/", model="all-minilm-l6-v2", client=client)

        vector = await embedder.embed("What are the specs of DL380 Gen12?")

        assert len(vector) == 384
        client.post.assert_awaited_once_with(
            "http://localhost:1234/v1/embeddings",
            json={"model": "all-minilm-l6-v2", "input": "What are the specs of DL380 Gen12?"},
        )

    async def test_input_is_truncated(self):
        client = _mock_client()
        embedder = HttpEmbeddingClient(client=client)

        await embedder.embed("x" * 20000)

        sent = client.post.call_args.kwargs["json"]["input"]
        assert len(sent) == embedder.max_input_length

    async def test_non_200_raises(self):
        embedder = HttpEmbeddingClient(client=_mock_client(status_code=503))

        with pytest.raises(EmbeddingError, match="503"):
            await embedder.embed("dl380")

    async def test_malformed_payload_raises(self):
        embedder = HttpEmbeddingClient(client=_mock_client(payload={"data": []}))

        with pytest.raises(EmbeddingError, match="Malformed"):
            await embedder.embed("dl380")

    async def test_timeout_propagates(self):
        client = AsyncMock()
        client.post.side_effect = httpx.ReadTimeout("timed out")
        embedder = HttpEmbeddingClient(client=client)

        with pytest.raises(httpx.TimeoutException):
            await embedder.embed("dl380")

    async def test_injected_client_is_not_closed(self):
        client = _mock_client()
        async with HttpEmbeddingClient(client=client) as embedder:
            await embedder.embed("dl380")

        client.aclose.assert_not_awaited()

    async def test_owned_client_is_created_and_closed(self):
        with patch("httpx.AsyncClient") as mock_async_client:
            instance = _mock_client()
            mock_async_client.return_value = instance

            async with HttpEmbeddingClient(url="http://embed:8080") as embedder:
                await embedder.embed("dl380")

            mock_async_client.assert_called_once()
            instance.aclose.assert_awaited_once()


def test_client_satisfies_provider_protocol():
    assert isinstance(HttpEmbeddingClient(client=AsyncMock()), EmbeddingProvider)


def test_defaults_come_from_config(monkeypatch):
    from catalog_rag.config import reset_config

    monkeypatch.setenv("RAG_EMBEDDING_URL", "http://gpu-box:9000")
    monkeypatch.setenv("RAG_EMBEDDING_DIM", "768")
    reset_config()

    embedder = HttpEmbeddingClient(client=AsyncMock())

    assert embedder.url == "http://gpu-box:9000"
    assert embedder.dimension == 768
