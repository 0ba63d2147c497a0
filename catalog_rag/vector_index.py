"""Vector index interface and a flat in-memory implementation.

The catalog index is built offline; at runtime it is only searched. Ids are
row positions into the metadata list the index was built alongside, so an
id outside ``range(len(metadata))`` means index and metadata disagree.
"""

from dataclasses import dataclass
from typing import List, Protocol, Sequence, runtime_checkable

import numpy as np


@dataclass(frozen=True)
class VectorHit:
    """Raw nearest-neighbour hit: row id and inner-product score."""

    id: int
    score: float


@runtime_checkable
class VectorIndex(Protocol):
    async def search(self, embedding: Sequence[float], k: int) -> List[VectorHit]:
        """Return up to ``k`` hits ordered by descending score."""
        ...

    def __len__(self) -> int:
        ...


class NumpyVectorIndex:
    """Exact inner-product search over a dense matrix.

    With L2-normalized vectors the inner product is cosine similarity.

    Example:
        >>> index = NumpyVectorIndex([[1.0, 0.0], [0.0, 1.0]])
        >>> await index.search([1.0, 0.0], k=1)
        [VectorHit(id=0, score=1.0)]
    """

    def __init__(self, vectors: Sequence[Sequence[float]]):
        matrix = np.asarray(vectors, dtype=np.float32)
        if matrix.ndim != 2:
            if matrix.size == 0:
                matrix = matrix.reshape(0, 0)
            else:
                raise ValueError(f"Expected a 2-D array of vectors, got shape {matrix.shape}")
        self._vectors = matrix

    @property
    def dimension(self) -> int:
        return int(self._vectors.shape[1])

    def __len__(self) -> int:
        return int(self._vectors.shape[0])

    async def search(self, embedding: Sequence[float], k: int) -> List[VectorHit]:
        if k <= 0 or len(self) == 0:
            return []

        query = np.asarray(embedding, dtype=np.float32)
        if query.shape != (self.dimension,):
            raise ValueError(f"Query dimension {query.shape} does not match index dimension {self.dimension}")

        scores = self._vectors @ query
        k = min(k, len(self))
        # argpartition for the top k, then a stable sort of just those
        top = np.argpartition(-scores, k - 1)[:k]
        top = top[np.argsort(-scores[top], kind="stable")]
        return [VectorHit(id=int(i), score=float(scores[i])) for i in top]
