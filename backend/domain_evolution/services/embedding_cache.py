"""In-memory embedding store mirrored to the ``turn_embeddings`` table.

Classes:
    EmbeddingCache: Holds one vector per captured turn, computes cosine similarity, and
        writes every change through to the database before touching memory.

Functions:
    similarity_matrix(vectors): Pairwise cosine similarity of equally sized vectors.
    get_embedding_cache(): Return the process-wide cache instance.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray
from sqlalchemy import delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.models import TurnEmbedding
from domain_evolution.services.errors import EmbeddingDimensionError
from domain_evolution.services.openai_client import OpenAIService, get_openai_service
from domain_evolution.utils.text import normalise_for_embedding
from domain_evolution.utils.vectors import VECTOR_DTYPE, as_vector, blob_to_vector, vector_to_blob

_LOGGER = logging.getLogger(__name__)


def similarity_matrix(vectors: Sequence[NDArray]) -> NDArray[np.float64]:
    """Cosine similarity of every pair; zero vectors score 0.0 against everything."""

    if not vectors:
        return np.zeros((0, 0), dtype=np.float64)
    dims = {int(np.asarray(vector).shape[-1]) for vector in vectors}
    if len(dims) > 1:
        raise EmbeddingDimensionError(f"Embeddings have mixed dimensions: {sorted(dims)}")

    matrix = np.vstack([np.asarray(vector, dtype=np.float64).reshape(1, -1) for vector in vectors])
    norms = np.linalg.norm(matrix, axis=1)
    safe = np.where(norms > 0, norms, 1.0)
    unit = matrix / safe[:, None]
    unit[norms == 0] = 0.0
    return np.clip(unit @ unit.T, -1.0, 1.0)


class EmbeddingCache:
    def __init__(self, openai_service: OpenAIService | None = None) -> None:
        self._openai = openai_service or OpenAIService()
        self._vectors: dict[int, NDArray[np.float32]] = {}
        self._dim: int | None = None

    async def load(self, session: AsyncSession) -> int:
        """Rebuild the cache from storage. Mixed dimensionality aborts the load."""

        rows = (await session.exec(select(TurnEmbedding))).all()
        vectors: dict[int, NDArray[np.float32]] = {}
        dim: int | None = None
        for row in rows:
            vector = blob_to_vector(row.vector, row.vector_dtype)
            if dim is None:
                dim = int(vector.shape[0])
            elif vector.shape[0] != dim:
                raise EmbeddingDimensionError(
                    f"Stored embedding for turn {row.turn_id} has dimension {vector.shape[0]}, expected {dim}; "
                    "the embedding model changed and all turns must be re-embedded"
                )
            vectors[row.turn_id] = vector
        self._vectors = vectors
        self._dim = dim
        _LOGGER.info("Loaded %d turn embeddings into memory", len(vectors))
        return len(vectors)

    async def embed(self, text: str) -> NDArray[np.float32]:
        return as_vector(await self._openai.embed_text(normalise_for_embedding(text)))

    async def store(
        self,
        session: AsyncSession,
        turn_id: int,
        vector: Sequence[float] | NDArray,
        *,
        model: str | None = None,
    ) -> None:
        value = as_vector(vector)
        self._check_dimension(turn_id, value)

        row = await session.get(TurnEmbedding, turn_id)
        if row is None:
            row = TurnEmbedding(turn_id=turn_id, dim=int(value.shape[0]), vector=vector_to_blob(value))
        else:
            row.dim = int(value.shape[0])
            row.vector = vector_to_blob(value)
        row.model = model
        row.vector_dtype = np.dtype(VECTOR_DTYPE).name
        session.add(row)
        await session.commit()

        self._vectors[turn_id] = value
        self._dim = int(value.shape[0])

    async def delete(self, session: AsyncSession, turn_ids: Iterable[int], *, commit: bool = True) -> int:
        ids = list(turn_ids)
        if not ids:
            return 0
        await session.execute(delete(TurnEmbedding).where(TurnEmbedding.turn_id.in_(ids)))
        if commit:
            await session.commit()
        self.forget(ids)
        return len(ids)

    def forget(self, turn_ids: Iterable[int]) -> None:
        """Drop vectors from memory only; callers have already deleted the rows."""

        for turn_id in turn_ids:
            self._vectors.pop(turn_id, None)
        if not self._vectors:
            self._dim = None

    def get(self, turn_id: int) -> NDArray[np.float32] | None:
        return self._vectors.get(turn_id)

    def has(self, turn_id: int) -> bool:
        return turn_id in self._vectors

    def count(self) -> int:
        return len(self._vectors)

    @property
    def dimension(self) -> int | None:
        return self._dim

    def all(self) -> dict[int, NDArray[np.float32]]:
        return dict(self._vectors)

    @staticmethod
    def similarity(a: Sequence[float] | NDArray, b: Sequence[float] | NDArray) -> float:
        left = np.asarray(a, dtype=np.float64).reshape(-1)
        right = np.asarray(b, dtype=np.float64).reshape(-1)
        if left.shape[0] != right.shape[0]:
            raise EmbeddingDimensionError(
                f"Cannot compare vectors of dimension {left.shape[0]} and {right.shape[0]}"
            )
        denominator = float(np.linalg.norm(left) * np.linalg.norm(right))
        if denominator == 0.0:
            return 0.0
        return float(np.clip(np.dot(left, right) / denominator, -1.0, 1.0))

    def similarity_matrix(self, turn_ids: Sequence[int]) -> list[list[float]]:
        """Pairwise cosine similarity; 1.0 on the diagonal, 0.0 wherever a turn has no embedding."""

        ids = list(turn_ids)
        matrix = np.zeros((len(ids), len(ids)), dtype=np.float64)
        positions = [index for index, turn_id in enumerate(ids) if turn_id in self._vectors]
        if positions:
            sims = similarity_matrix([self._vectors[ids[index]] for index in positions])
            matrix[np.ix_(positions, positions)] = sims
            matrix[positions, positions] = 1.0
        return matrix.tolist()

    def _check_dimension(self, turn_id: int, vector: NDArray) -> None:
        others = [key for key in self._vectors if key != turn_id]
        if self._dim is not None and others and vector.shape[0] != self._dim:
            raise EmbeddingDimensionError(
                f"Embedding for turn {turn_id} has dimension {vector.shape[0]}, cache holds {self._dim}"
            )


@lru_cache()
def get_embedding_cache() -> EmbeddingCache:
    return EmbeddingCache(get_openai_service())
