"""Similarity engine: distance metrics, temporal decay, and k-NN search.

None of these functions raise on bad input. Vectors of different length
have cosine similarity 0 and distance ``sys.float_info.max``; an empty
candidate set yields an empty neighbour list.
"""

from __future__ import annotations

import math
import sys
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")

MAX_DISTANCE = sys.float_info.max
SECONDS_PER_DAY = 86400.0


class DistanceMetric(str, Enum):
    """Metrics supported by find_nearest()."""

    COSINE = "cosine"
    EUCLIDEAN = "euclidean"
    MANHATTAN = "manhattan"


@dataclass(frozen=True)
class Candidate(Generic[T]):
    """A vector to search over, with the item it belongs to."""

    id: str
    vector: Sequence[float]
    item: T


@dataclass(frozen=True)
class Neighbor(Generic[T]):
    """One k-NN result."""

    id: str
    distance: float
    similarity: float
    item: T


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), clamped to [-1, 1].

    Returns 0.0 if the lengths differ, either vector is empty, or either
    norm is zero.
    """
    if len(a) != len(b) or not a:
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    return max(-1.0, min(1.0, dot / (math.sqrt(norm_a) * math.sqrt(norm_b))))


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b) or not a:
        return MAX_DISTANCE
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def manhattan_distance(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b) or not a:
        return MAX_DISTANCE
    return sum(abs(x - y) for x, y in zip(a, b))


def weighted_euclidean_distance(
    a: Sequence[float],
    b: Sequence[float],
    weights: Sequence[float],
) -> float:
    """Euclidean distance with a per-dimension weight on the squared difference."""
    if len(a) != len(b) or len(a) != len(weights) or not a:
        return MAX_DISTANCE
    return math.sqrt(sum(w * (x - y) ** 2 for x, y, w in zip(a, b, weights)))


def temporal_weight(
    timestamp: float,
    half_life_days: float = 30.0,
    now: float | None = None,
) -> float:
    """Exponential decay weight for a record created at ``timestamp``.

    ``exp(-ln 2 * age_days / half_life_days)``: 1.0 for a record created now,
    0.5 at one half-life.
    """
    current = time.time() if now is None else now
    age_days = (current - timestamp) / SECONDS_PER_DAY
    return math.exp(-math.log(2) * age_days / half_life_days)


def normalize(vector: Sequence[float]) -> list[float]:
    """Scale to unit length. A zero vector is returned unchanged."""
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0.0:
        return list(vector)
    return [v / norm for v in vector]


def weight_vector(vector: Sequence[float], weights: Sequence[float]) -> list[float]:
    """Element-wise product. Returned unchanged if the lengths differ."""
    if len(vector) != len(weights):
        return list(vector)
    return [v * w for v, w in zip(vector, weights)]


def _score(
    query: Sequence[float],
    vector: Sequence[float],
    metric: DistanceMetric,
) -> tuple[float, float]:
    if metric is DistanceMetric.EUCLIDEAN:
        distance = euclidean_distance(query, vector)
        return distance, 1.0 / (1.0 + distance)
    if metric is DistanceMetric.MANHATTAN:
        distance = manhattan_distance(query, vector)
        return distance, 1.0 / (1.0 + distance)
    similarity = cosine_similarity(query, vector)
    return 1.0 - similarity, similarity


def find_nearest(
    query: Sequence[float],
    candidates: Iterable[Candidate[T]],
    k: int = 5,
    metric: DistanceMetric | str = DistanceMetric.COSINE,
    *,
    min_similarity: float | None = None,
    max_distance: float | None = None,
    weights: Mapping[str, float] | None = None,
) -> list[Neighbor[T]]:
    """Return up to ``k`` candidates most similar to ``query``.

    Args:
        query: Query vector.
        candidates: Vectors to search. Candidates with an empty vector are skipped.
        k: Maximum number of results.
        metric: Distance metric. Euclidean and Manhattan similarity is 1 / (1 + d).
        min_similarity: Drop results whose (weighted) similarity is below this.
        max_distance: Drop results whose (weighted) distance is above this.
        weights: Per-candidate-id weight, e.g. temporal decay. Similarity is
            multiplied by the weight and distance by ``2 - weight``.

    Returns:
        Neighbours sorted by similarity, highest first.
    """
    metric = DistanceMetric(metric)
    scored: list[Neighbor[T]] = []

    for candidate in candidates:
        if not candidate.vector:
            continue

        distance, similarity = _score(query, candidate.vector, metric)

        if weights is not None and candidate.id in weights:
            weight = weights[candidate.id]
            similarity *= weight
            distance *= 2.0 - weight

        if min_similarity is not None and similarity < min_similarity:
            continue
        if max_distance is not None and distance > max_distance:
            continue

        scored.append(Neighbor(candidate.id, distance, similarity, candidate.item))

    scored.sort(key=lambda n: n.similarity, reverse=True)
    return scored[: max(0, k)]
