"""Greedy similarity clustering over embedded captured turns.

Classes:
    ClusterCandidate: A captured turn paired with its embedding vector.
    PatternCluster: A computed (never persisted) grouping of similar turns.
    PatternDetector: Loads embedded turns newest-first and clusters them.

Functions:
    greedy_cluster(candidates, min_size, threshold): Single deterministic greedy pass.

Membership depends on visiting order: each unassigned turn, taken in order, claims every
other unassigned turn at or above the threshold when that gives at least ``min_size``
members. The same order, threshold, and size always give the same clusters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray
from sqlmodel.ext.asyncio.session import AsyncSession

from domain_evolution.core.config import get_settings
from domain_evolution.services.captures import CaptureStore
from domain_evolution.services.embedding_cache import EmbeddingCache, get_embedding_cache, similarity_matrix
from domain_evolution.services.errors import NotFoundError

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ClusterCandidate:
    turn_id: int
    text: str
    vector: NDArray[np.float32]


@dataclass(slots=True)
class PatternCluster:
    seed_turn_id: int
    turn_ids: list[int]
    texts: list[str]
    # Mean of seed-to-member similarities only, not of all member pairs.
    avg_similarity: float

    @property
    def size(self) -> int:
        return len(self.turn_ids)


def greedy_cluster(
    candidates: Sequence[ClusterCandidate],
    *,
    min_size: int = 3,
    threshold: float = 0.75,
) -> list[PatternCluster]:
    if min_size < 1:
        raise ValueError("min_size must be at least 1")
    if len(candidates) < min_size:
        return []

    sims = similarity_matrix([candidate.vector for candidate in candidates])
    assigned: set[int] = set()
    clusters: list[PatternCluster] = []

    for seed_index, seed in enumerate(candidates):
        if seed_index in assigned:
            continue
        members = [seed_index]
        seed_sims: list[float] = []
        for other_index in range(len(candidates)):
            if other_index == seed_index or other_index in assigned:
                continue
            score = float(sims[seed_index, other_index])
            if score >= threshold:
                members.append(other_index)
                seed_sims.append(score)

        if len(members) < min_size:
            continue

        clusters.append(
            PatternCluster(
                seed_turn_id=seed.turn_id,
                turn_ids=[candidates[index].turn_id for index in members],
                texts=[candidates[index].text for index in members],
                avg_similarity=float(np.mean(seed_sims)) if seed_sims else 1.0,
            )
        )
        assigned.update(members)

    # Stable sort keeps discovery order among equally sized clusters.
    clusters.sort(key=lambda cluster: cluster.size, reverse=True)
    return clusters


class PatternDetector:
    def __init__(self, session: AsyncSession, cache: EmbeddingCache | None = None) -> None:
        self._session = session
        self._cache = cache or get_embedding_cache()
        self._settings = get_settings()

    async def candidates(self) -> list[ClusterCandidate]:
        """Embedded turns, most recent first. Unembedded turns are skipped, not awaited."""

        turns = await CaptureStore(self._session, self._cache).list_recent()
        candidates: list[ClusterCandidate] = []
        for turn in turns:
            vector = self._cache.get(turn.id)
            if vector is not None:
                candidates.append(ClusterCandidate(turn_id=turn.id, text=turn.raw_text, vector=vector))
        return candidates

    async def detect(
        self,
        min_size: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> list[PatternCluster]:
        size = min_size if min_size is not None else self._settings.cluster_default_min_size
        cutoff = threshold if threshold is not None else self._settings.cluster_default_threshold
        candidates = await self.candidates()
        clusters = greedy_cluster(candidates, min_size=size, threshold=cutoff)
        _LOGGER.info(
            "Detected %d clusters over %d embedded turns (min_size=%d, threshold=%.2f)",
            len(clusters),
            len(candidates),
            size,
            cutoff,
        )
        return clusters

    async def cluster_at(
        self,
        index: int,
        min_size: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> PatternCluster:
        clusters = await self.detect(min_size, threshold)
        if index < 0 or index >= len(clusters):
            raise NotFoundError(f"Pattern {index} not found ({len(clusters)} detected)")
        return clusters[index]
