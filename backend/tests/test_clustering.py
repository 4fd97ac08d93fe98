"""Tests for greedy pattern clustering and the detector that feeds it."""

from __future__ import annotations

import numpy as np
import pytest

from domain_evolution.services import CaptureStore, PatternDetector, greedy_cluster
from domain_evolution.services.clustering import ClusterCandidate
from domain_evolution.services.errors import NotFoundError

from helpers import uncertain


def _candidate(turn_id: int, vector, text: str | None = None) -> ClusterCandidate:
    return ClusterCandidate(turn_id=turn_id, text=text or f"turn {turn_id}", vector=np.asarray(vector, dtype=np.float32))


WORKOUTS = [
    _candidate(1, [1.0, 0.05, 0.0], "Did 3 sets of 10 bench press at 135lbs"),
    _candidate(2, [0.98, 0.1, 0.0], "Squats today: 5x5 at 225"),
    _candidate(3, [0.97, 0.0, 0.1], "Deadlift PR 315 for 3 reps"),
    _candidate(4, [0.95, 0.15, 0.05], "Ran 5 miles in 42 minutes"),
    _candidate(5, [0.99, 0.05, 0.05], "Pull-ups: 4 sets of 8"),
]
UNRELATED = [
    _candidate(6, [0.0, 0.0, 1.0], "What is the weather like?"),
    _candidate(7, [0.0, 1.0, 0.0], "Tell me a joke"),
]


def test_similar_turns_form_one_cluster_and_outliers_are_left_out():
    clusters = greedy_cluster([*WORKOUTS, *UNRELATED], min_size=3, threshold=0.75)

    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster.seed_turn_id == 1
    assert cluster.turn_ids == [1, 2, 3, 4, 5]
    assert cluster.size == 5
    assert cluster.texts[0] == "Did 3 sets of 10 bench press at 135lbs"
    assert 0.75 <= cluster.avg_similarity <= 1.0


def test_fewer_candidates_than_min_size_yields_nothing():
    assert greedy_cluster(WORKOUTS[:2], min_size=3, threshold=0.5) == []
    assert greedy_cluster([], min_size=1, threshold=0.5) == []


def test_min_size_must_be_positive():
    with pytest.raises(ValueError):
        greedy_cluster(WORKOUTS, min_size=0, threshold=0.5)


def test_clusters_are_sorted_by_size_and_never_share_turns():
    small_group = [
        _candidate(10, [0.0, 1.0, 0.0]),
        _candidate(11, [0.0, 0.98, 0.1]),
        _candidate(12, [0.05, 0.97, 0.0]),
    ]
    clusters = greedy_cluster([*small_group, *WORKOUTS], min_size=3, threshold=0.8)

    assert [cluster.size for cluster in clusters] == [5, 3]
    assert clusters[1].seed_turn_id == 10
    seen: set[int] = set()
    for cluster in clusters:
        assert seen.isdisjoint(cluster.turn_ids)
        seen.update(cluster.turn_ids)


def test_clustering_is_deterministic_for_the_same_input():
    candidates = [*WORKOUTS, *UNRELATED]
    first = greedy_cluster(candidates, min_size=2, threshold=0.7)
    second = greedy_cluster(candidates, min_size=2, threshold=0.7)

    assert [(c.seed_turn_id, c.turn_ids, c.avg_similarity) for c in first] == [
        (c.seed_turn_id, c.turn_ids, c.avg_similarity) for c in second
    ]


def test_average_similarity_is_measured_against_the_seed():
    candidates = [
        _candidate(1, [1.0, 0.0]),
        _candidate(2, [1.0, 0.0]),
        _candidate(3, [0.8, 0.6]),
    ]
    [cluster] = greedy_cluster(candidates, min_size=3, threshold=0.75)

    assert cluster.avg_similarity == pytest.approx((1.0 + 0.8) / 2)


def test_singleton_cluster_reports_full_similarity():
    [cluster] = greedy_cluster([_candidate(1, [1.0, 0.0])], min_size=1, threshold=0.9)

    assert cluster.turn_ids == [1]
    assert cluster.avg_similarity == 1.0


@pytest.mark.asyncio
async def test_detector_skips_unembedded_turns_and_seeds_from_newest(session, cache):
    store = CaptureStore(session, cache)
    turns = [await store.create(f"logged workout {index}", uncertain()) for index in range(4)]
    await store.create("not embedded yet", uncertain())
    for index, turn in enumerate(turns):
        await cache.store(session, turn.id, [1.0, 0.02 * index, 0.0])

    detector = PatternDetector(session, cache)
    candidates = await detector.candidates()
    assert [candidate.turn_id for candidate in candidates] == [turn.id for turn in reversed(turns)]

    clusters = await detector.detect(min_size=3, threshold=0.75)
    assert len(clusters) == 1
    assert clusters[0].seed_turn_id == turns[-1].id
    assert sorted(clusters[0].turn_ids) == sorted(turn.id for turn in turns)

    assert (await detector.cluster_at(0, 3, 0.75)).seed_turn_id == turns[-1].id
    with pytest.raises(NotFoundError):
        await detector.cluster_at(1, 3, 0.75)
