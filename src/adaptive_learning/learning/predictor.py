"""Performance predictor: duration, success, and quality forecasts from k-NN."""

from __future__ import annotations

from dataclasses import dataclass

from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.embedder import TaskAnalysis, TaskEmbedder
from adaptive_learning.learning.similarity import Neighbor
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    RecordMetadata,
    StoreStats,
    TaskRecord,
    new_record_id,
)

_logger = get_logger("learning.predictor")


@dataclass
class DurationPrediction:
    estimated: float = 30.0
    minimum: float = 10.0
    maximum: float = 60.0
    confidence: float = 0.0
    sample_size: int = 0


@dataclass
class SuccessPrediction:
    probability: float = 0.5
    confidence: float = 0.0
    sample_size: int = 0


@dataclass
class QualityPrediction:
    expected: float = 7.0
    minimum: float = 5.0
    maximum: float = 9.0
    confidence: float = 0.0
    sample_size: int = 0


@dataclass
class PerformancePrediction:
    """Combined forecast returned by PerformancePredictor.predict()."""

    duration: DurationPrediction
    success: SuccessPrediction
    quality: QualityPrediction


def _mean_similarity(neighbors: list[Neighbor[TaskRecord]]) -> float:
    return sum(n.similarity for n in neighbors) / len(neighbors)


class PerformancePredictor:
    """Forecasts how a task will go from how similar tasks went.

    Each forecast has a point estimate, a min/max range, a confidence equal
    to the mean neighbour similarity, and the sample size. With no usable
    neighbours the neutral defaults (30s, p=0.5, quality 7) are returned with
    confidence 0.
    """

    def __init__(self, store: HistoryStore, embedder: TaskEmbedder | None = None) -> None:
        self.store = store
        self.embedder = embedder or TaskEmbedder()

    def _neighbors(
        self,
        task: str,
        agent_type: str | None,
        k: int,
        analysis: TaskAnalysis | None,
    ) -> list[Neighbor[TaskRecord]]:
        vector = self.embedder.embed(analysis or self.embedder.analyze_task(task))
        filters = {"agent_id": agent_type} if agent_type else None
        return self.store.find_similar(vector, k, filters)

    def predict_duration(
        self,
        task: str,
        agent_type: str | None = None,
        k: int = 10,
        analysis: TaskAnalysis | None = None,
    ) -> DurationPrediction:
        neighbors = self._neighbors(task, agent_type, k, analysis)
        durations = [n.item.duration_seconds for n in neighbors if n.item.duration_seconds > 0]
        if not durations:
            return DurationPrediction()

        return DurationPrediction(
            estimated=sum(durations) / len(durations),
            minimum=min(durations),
            maximum=max(durations),
            confidence=_mean_similarity(neighbors),
            sample_size=len(durations),
        )

    def predict_success(
        self,
        task: str,
        agent_type: str | None = None,
        k: int = 10,
        analysis: TaskAnalysis | None = None,
    ) -> SuccessPrediction:
        neighbors = self._neighbors(task, agent_type, k, analysis)
        if not neighbors:
            return SuccessPrediction()

        successes = sum(1 for n in neighbors if n.item.success)
        return SuccessPrediction(
            probability=successes / len(neighbors),
            confidence=_mean_similarity(neighbors),
            sample_size=len(neighbors),
        )

    def predict_quality(
        self,
        task: str,
        agent_type: str | None = None,
        k: int = 10,
        analysis: TaskAnalysis | None = None,
    ) -> QualityPrediction:
        neighbors = self._neighbors(task, agent_type, k, analysis)
        if not neighbors:
            return QualityPrediction()

        qualities = [n.item.quality_score for n in neighbors]
        return QualityPrediction(
            expected=sum(qualities) / len(qualities),
            minimum=min(qualities),
            maximum=max(qualities),
            confidence=_mean_similarity(neighbors),
            sample_size=len(qualities),
        )

    def predict(
        self,
        task: str,
        agent_type: str | None = None,
        k: int = 10,
        analysis: TaskAnalysis | None = None,
    ) -> PerformancePrediction:
        """All three forecasts for ``task``."""
        return PerformancePrediction(
            duration=self.predict_duration(task, agent_type, k, analysis),
            success=self.predict_success(task, agent_type, k, analysis),
            quality=self.predict_quality(task, agent_type, k, analysis),
        )

    def record_performance(
        self,
        task: str,
        agent_type: str,
        success: bool,
        duration: float,
        quality_score: float,
        metadata: RecordMetadata | None = None,
        analysis: TaskAnalysis | None = None,
    ) -> TaskRecord:
        """Log an observed outcome so later predictions can use it."""
        analysis = analysis or self.embedder.analyze_task(task)
        record = self.store.record(
            TaskRecord(
                id=new_record_id("perf"),
                embedding=tuple(self.embedder.embed(analysis)),
                agent_id=agent_type,
                task_text=task[:500],
                success=success,
                quality_score=quality_score,
                duration_seconds=duration,
                metadata=metadata or RecordMetadata(),
            )
        )
        _logger.debug(
            "performance_recorded",
            agent_type=agent_type,
            success=success,
            quality_score=record.quality_score,
        )
        return record

    def get_accuracy_stats(self) -> StoreStats:
        return self.store.get_stats()
