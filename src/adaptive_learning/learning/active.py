"""Active-learning selector: decide when an outcome deserves human feedback.

An uncertainty score in [0, 1] is computed by the configured sampling
strategy. Outcomes at or above the threshold are queued for review (one
entry per task text). The queue lives in memory only.
"""

from __future__ import annotations

import statistics
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum

from adaptive_learning.core.config import ActiveLearningConfig
from adaptive_learning.core.errors import UnknownStrategyError
from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.embedder import TaskAnalysis, TaskEmbedder
from adaptive_learning.learning.ensemble import AgentResult
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    RecordMetadata,
    TaskRecord,
    new_record_id,
)

_logger = get_logger("learning.active")

HUMAN_FEEDBACK_AGENT = "human_feedback"
_SUCCESS_QUALITY = 7.0
_DEFAULT_CONFIDENCE = 0.5
_TREND_WINDOW = 5


class SamplingStrategy(str, Enum):
    UNCERTAINTY = "uncertainty"
    DIVERSITY = "diversity"
    ERROR_REDUCTION = "error_reduction"
    COMMITTEE = "committee"

    @classmethod
    def parse(cls, name: SamplingStrategy | str) -> SamplingStrategy:
        try:
            return cls(name)
        except ValueError:
            raise UnknownStrategyError("sampling", str(name), (s.value for s in cls)) from None


def uncertainty_reason(score: float) -> str:
    """Human-readable bucket for an uncertainty score."""
    if score >= 0.7:
        return "Very high uncertainty - critical for learning"
    if score >= 0.5:
        return "High uncertainty - valuable for learning"
    if score >= 0.3:
        return "Moderate uncertainty - helpful for learning"
    return "Low uncertainty - query not recommended"


@dataclass
class QueryDecision:
    should_query: bool
    reason: str
    priority: float
    uncertainty: float
    strategy: SamplingStrategy


@dataclass
class QueryQueueEntry:
    """A task waiting for human feedback."""

    task: str
    priority: float
    reason: str
    result: AgentResult | None = None
    queued_at: float = field(default_factory=time.time)


@dataclass
class ActiveLearningStats:
    total_queries: int = 0
    feedback_received: int = 0
    pending_queries: int = 0
    quality_improvement: float = 0.0
    efficiency: float = 0.0
    avg_feedback_quality: float = 0.0


class ActiveLearner:
    """Scores outcomes for uncertainty and manages the human-feedback queue."""

    def __init__(
        self,
        store: HistoryStore,
        config: ActiveLearningConfig | None = None,
        embedder: TaskEmbedder | None = None,
    ) -> None:
        self.store = store
        self.config = config or ActiveLearningConfig()
        self.embedder = embedder or TaskEmbedder()
        self.sampling_strategy = SamplingStrategy.parse(self.config.sampling_strategy)
        self._queue: list[QueryQueueEntry] = []
        self._scorers: dict[
            SamplingStrategy, Callable[[list[float], AgentResult, float], float]
        ] = {
            SamplingStrategy.UNCERTAINTY: self._uncertainty_score,
            SamplingStrategy.DIVERSITY: self._diversity_score,
            SamplingStrategy.ERROR_REDUCTION: self._error_reduction_score,
            SamplingStrategy.COMMITTEE: self._committee_score,
        }

    def set_sampling_strategy(self, strategy: SamplingStrategy | str) -> ActiveLearner:
        """Switch strategy.

        Raises:
            UnknownStrategyError: If ``strategy`` is not a sampling strategy.
        """
        self.sampling_strategy = SamplingStrategy.parse(strategy)
        return self

    def should_query(
        self,
        task: str,
        result: AgentResult,
        *,
        threshold: float | None = None,
        confidence: float | None = None,
        analysis: TaskAnalysis | None = None,
    ) -> QueryDecision:
        """Score ``result`` and queue ``task`` for feedback if it is uncertain enough.

        Args:
            task: Task text; also the queue's deduplication key.
            result: The agent's outcome for the task.
            threshold: Overrides the configured uncertainty threshold.
            confidence: The agent's confidence. Defaults to ``result.confidence``,
                then 0.5.
            analysis: Task analysis used to embed the task.
        """
        threshold = self.config.uncertainty_threshold if threshold is None else threshold
        if confidence is None:
            confidence = (
                result.confidence if result.confidence is not None else _DEFAULT_CONFIDENCE
            )

        vector = self.embedder.embed(analysis or self.embedder.analyze_task(task))
        uncertainty = self._scorers[self.sampling_strategy](vector, result, confidence)
        uncertainty = max(0.0, min(1.0, uncertainty))

        should = uncertainty >= threshold
        reason = uncertainty_reason(uncertainty)
        if should:
            self._enqueue(task, result, uncertainty, reason)

        _logger.debug(
            "query_evaluated",
            strategy=self.sampling_strategy.value,
            uncertainty=round(uncertainty, 3),
            should_query=should,
        )
        return QueryDecision(
            should_query=should,
            reason=reason,
            priority=round(uncertainty, 3),
            uncertainty=round(uncertainty, 3),
            strategy=self.sampling_strategy,
        )

    def record_feedback(
        self,
        task: str,
        correct_answer: str,
        quality: float,
        metadata: RecordMetadata | None = None,
        analysis: TaskAnalysis | None = None,
    ) -> TaskRecord:
        """Store a human's answer as a ``human_feedback`` record and dequeue the task."""
        base = metadata or RecordMetadata()
        record = self.store.record(
            TaskRecord(
                id=new_record_id("feedback"),
                embedding=tuple(self.embedder.embed(analysis or self.embedder.analyze_task(task))),
                agent_id=HUMAN_FEEDBACK_AGENT,
                task_text=task[:500],
                success=quality >= _SUCCESS_QUALITY,
                quality_score=quality,
                metadata=replace(
                    base,
                    extra={
                        **base.extra,
                        "correct_answer": correct_answer,
                        "feedback_source": "human",
                        "learning_method": "active",
                    },
                ),
            )
        )
        self._queue = [entry for entry in self._queue if entry.task != task]
        _logger.info("feedback_recorded", quality=record.quality_score)
        return record

    def get_query_queue(self, limit: int = 10) -> list[QueryQueueEntry]:
        """Pending entries, highest priority first."""
        return sorted(self._queue, key=lambda e: e.priority, reverse=True)[:limit]

    def clear_query_queue(self) -> None:
        self._queue = []

    def get_statistics(self) -> ActiveLearningStats:
        feedback = sorted(
            self.store.filter({"agent_id": HUMAN_FEEDBACK_AGENT}),
            key=lambda r: r.timestamp or 0.0,
        )
        received = len(feedback)
        qualities = [r.quality_score for r in feedback]

        improvement = 0.0
        if received > _TREND_WINDOW:
            improvement = statistics.fmean(qualities[-_TREND_WINDOW:]) - statistics.fmean(
                qualities[:_TREND_WINDOW]
            )

        return ActiveLearningStats(
            total_queries=len(self._queue) + received,
            feedback_received=received,
            pending_queries=len(self._queue),
            quality_improvement=round(improvement, 2),
            efficiency=round(improvement / received, 4) if received else 0.0,
            avg_feedback_quality=round(statistics.fmean(qualities), 2) if qualities else 0.0,
        )

    # ------------------------------------------------------------------
    # Scorers
    # ------------------------------------------------------------------

    def _uncertainty_score(
        self, vector: list[float], result: AgentResult, confidence: float
    ) -> float:
        base = 1.0 - confidence
        similar = self.store.find_similar(vector, self.config.neighbor_count)
        if not similar:
            return min(1.0, base + 0.3)

        spread = statistics.pstdev([n.item.quality_score for n in similar]) / 10.0
        return min(1.0, 0.7 * base + 0.3 * spread)

    def _diversity_score(
        self, vector: list[float], result: AgentResult, confidence: float
    ) -> float:
        similar = self.store.find_similar(vector, 1)
        if not similar:
            return 0.9
        return max(0.0, min(1.0, 1.0 - similar[0].similarity))

    def _error_reduction_score(
        self, vector: list[float], result: AgentResult, confidence: float
    ) -> float:
        similar = self.store.find_similar(vector, self.config.neighbor_count)
        if not similar:
            return 0.8

        error = sum(
            1.0 - n.similarity
            for n in similar
            if not n.item.success or n.item.quality_score < _SUCCESS_QUALITY
        )
        return min(1.0, error / len(similar))

    def _committee_score(
        self, vector: list[float], result: AgentResult, confidence: float
    ) -> float:
        votes = result.metadata.get("votes")
        if votes:
            values = list(votes.values()) if isinstance(votes, dict) else list(votes)
            return min(1.0, statistics.pstdev(float(v) for v in values))
        return 1.0 - confidence

    def _enqueue(
        self, task: str, result: AgentResult, uncertainty: float, reason: str
    ) -> None:
        if any(entry.task == task for entry in self._queue):
            return
        self._queue.append(
            QueryQueueEntry(task=task, priority=uncertainty, reason=reason, result=result)
        )
        _logger.debug("query_queued", priority=round(uncertainty, 3), pending=len(self._queue))
