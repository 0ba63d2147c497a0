"""Shared fixtures: a tiny product catalog and in-process collaborators."""

from typing import AsyncIterator, Dict, List

import pytest

from catalog_rag.config import reset_config


# Row i of CATALOG_VECTORS belongs to CATALOG_METADATA[i]
CATALOG_METADATA = [
    {
        "id": "dl380-gen12-specs",
        "source": "dl380-gen12-family-guide.pdf",
        "product": "DL380",
        "document_type": "family-guide",
        "category": "specs",
        "text": "The HPE ProLiant DL380 Gen12 is a 2U two-socket server with up to 32 DIMM slots.",
    },
    {
        "id": "dl360-gen12-specs",
        "source": "dl360-gen12-family-guide.pdf",
        "product": "DL360",
        "document_type": "family-guide",
        "category": "specs",
        "text": "The HPE ProLiant DL360 Gen12 is a dense 1U two-socket server.",
    },
    {
        "id": "dl380-benchmarks",
        "source": "dl380-benchmark-results.pdf",
        "product": "DL380",
        "document_type": "benchmark-results",
        "category": "performance",
        "topics": ["ai-inference", "virtualization"],
        "text": "The DL380 Gen12 set a two-socket record on SPECrate 2017 integer.",
    },
    {
        "id": "bank-case-study",
        "source": "bank-case-study.pdf",
        "product": "all",
        "document_type": "customer-case-study",
        "referenced_products": ["DL380", "DL360"],
        "text": "A regional bank consolidated 40 racks onto ProLiant Gen12 servers.",
    },
]

CATALOG_VECTORS = [
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 1.0, 0.0, 0.0],
    [0.6, 0.8, 0.0, 0.0],
    [0.0, 0.0, 1.0, 0.0],
]


class FakeEmbedder:
    """Keyword-driven embedder: the vector depends only on which topic the text mentions."""

    def __init__(self, fail: bool = False):
        self.calls: List[str] = []
        self.fail = fail

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise TimeoutError("embedding provider timed out")
        lower = text.lower()
        if "dl380" in lower:
            return [1.0, 0.0, 0.0, 0.0]
        if "dl360" in lower:
            return [0.0, 1.0, 0.0, 0.0]
        if "case stud" in lower or "bank" in lower:
            return [0.0, 0.0, 1.0, 0.0]
        return [0.0, 0.0, 0.0, 1.0]


class FakeCompletion:
    """Completion provider returning canned text, single-shot or token by token."""

    def __init__(self, text: str = "The DL380 Gen12 supports up to 32 DIMMs", fail: bool = False):
        self.text = text
        self.fail = fail
        self.calls: List[List[Dict[str, str]]] = []

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        self.calls.append(messages)
        if self.fail:
            raise RuntimeError("completion provider unavailable")
        return self.text

    async def stream(self, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        self.calls.append(messages)
        if self.fail:
            raise RuntimeError("completion provider unavailable")
        for word in self.text.split(" "):
            yield word + " "


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Every test starts from default configuration."""
    for key in ("RAG_TOP_K", "RAG_MIN_SCORE", "RAG_CACHE_TTL", "RAG_RETRIEVAL_CACHE_TTL", "RAG_TEXT_SIMILARITY"):
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def catalog_metadata():
    return [dict(record) for record in CATALOG_METADATA]


@pytest.fixture
def catalog_index():
    from catalog_rag.vector_index import NumpyVectorIndex

    return NumpyVectorIndex(CATALOG_VECTORS)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def failing_embedder():
    return FakeEmbedder(fail=True)


@pytest.fixture
def failing_completion():
    return FakeCompletion(fail=True)


@pytest.fixture
def blank_completion():
    return FakeCompletion(text="   ")
