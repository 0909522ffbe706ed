"""Per-agent learners for execution strategy and parameter choice.

Both learners log an agent's executions to a history store and answer
"what worked on tasks like this one?" with a similarity-weighted k-NN vote.
"""

from __future__ import annotations

import statistics
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.embedder import TaskEmbedder
from adaptive_learning.learning.similarity import Neighbor
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    RecordMetadata,
    StoreStats,
    TaskRecord,
    new_record_id,
)

_logger = get_logger("learning.selectors")

_NEUTRAL_CONFIDENCE = 0.5


@dataclass
class StrategyPerformance:
    attempts: int
    successes: int
    success_rate: float
    avg_quality: float
    avg_duration: float


@dataclass
class StrategyConfidence:
    strategy: str
    confidence: float
    reasoning: str


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class StrategySelector:
    """Learns which of a closed set of strategies suits which tasks.

    Example:
        selector = StrategySelector(store, "react", ["direct", "plan"], "direct")
        strategy = selector.select_best_strategy(task)
        ...
        selector.record_strategy_performance(task, strategy, True, 8.5, 12.0)
    """

    def __init__(
        self,
        store: HistoryStore,
        agent_id: str,
        strategies: Sequence[str],
        default_strategy: str,
        embedder: TaskEmbedder | None = None,
    ) -> None:
        if default_strategy not in strategies:
            raise ValueError(f"Default strategy '{default_strategy}' is not in {list(strategies)}")
        self.store = store
        self.agent_id = agent_id
        self.strategies = list(strategies)
        self.default_strategy = default_strategy
        self.embedder = embedder or TaskEmbedder()

    def _similar(self, task: str, k: int) -> list[Neighbor[TaskRecord]]:
        return self.store.find_similar(
            self.embedder.embed_text(task), k, {"agent_id": self.agent_id}
        )

    def select_best_strategy(self, task: str, k: int = 10) -> str:
        """Strategy with the best similarity-weighted score on similar tasks.

        A neighbour scores its quality if it succeeded, half its quality
        otherwise. Strategies never seen among the neighbours do not compete;
        with no tagged neighbours the default strategy is returned.
        """
        similar = self._similar(task, k)

        scores: dict[str, float] = {}
        for strategy in self.strategies:
            weighted = 0.0
            total_weight = 0.0
            for neighbor in similar:
                record = neighbor.item
                if record.metadata.strategy != strategy:
                    continue
                score = record.quality_score if record.success else record.quality_score * 0.5
                weighted += score * neighbor.similarity
                total_weight += neighbor.similarity
            if total_weight > 0:
                scores[strategy] = weighted / total_weight

        if not scores:
            return self.default_strategy
        return max(scores, key=lambda s: scores[s])

    def record_strategy_performance(
        self,
        task: str,
        strategy: str,
        success: bool,
        quality_score: float,
        duration: float,
        metadata: Mapping[str, Any] | None = None,
    ) -> TaskRecord:
        record = self.store.record(
            TaskRecord(
                id=new_record_id("strat"),
                embedding=tuple(self.embedder.embed_text(task)),
                agent_id=self.agent_id,
                task_text=task[:500],
                success=success,
                quality_score=quality_score,
                duration_seconds=duration,
                metadata=RecordMetadata(strategy=strategy, extra=dict(metadata or {})),
            )
        )
        _logger.debug("strategy_performance_recorded", strategy=strategy, success=success)
        return record

    def get_strategy_performance(self) -> dict[str, StrategyPerformance]:
        """Totals per strategy over the whole store; unseen strategies are omitted."""
        performance: dict[str, StrategyPerformance] = {}
        for strategy in self.strategies:
            records = self.store.filter({"agent_id": self.agent_id, "metadata.strategy": strategy})
            if not records:
                continue
            successes = sum(1 for r in records if r.success)
            performance[strategy] = StrategyPerformance(
                attempts=len(records),
                successes=successes,
                success_rate=successes / len(records),
                avg_quality=statistics.fmean(r.quality_score for r in records),
                avg_duration=statistics.fmean(r.duration_seconds for r in records),
            )
        return performance

    def get_strategy_confidence(self, task: str, k: int = 10) -> StrategyConfidence:
        """Selected strategy plus ``0.5 * avg_similarity + 0.5 * agreement``.

        ``agreement`` is the share of neighbours tagged with the selected
        strategy.
        """
        similar = self._similar(task, k)
        selected = self.select_best_strategy(task, k)
        if not similar:
            return StrategyConfidence(
                strategy=selected,
                confidence=_NEUTRAL_CONFIDENCE,
                reasoning="No similar historical tasks found",
            )

        avg_similarity = statistics.fmean(n.similarity for n in similar)
        agreement = sum(1 for n in similar if n.item.metadata.strategy == selected) / len(similar)
        return StrategyConfidence(
            strategy=selected,
            confidence=0.5 * avg_similarity + 0.5 * agreement,
            reasoning=(
                f"Based on {len(similar)} similar tasks (avg similarity: {avg_similarity:.2f}, "
                f"strategy agreement: {agreement * 100:.1f}%)"
            ),
        )


class ParameterOptimizer:
    """Learns parameter values from an agent's successful executions."""

    def __init__(
        self,
        store: HistoryStore,
        agent_id: str,
        defaults: Mapping[str, Any] | None = None,
        embedder: TaskEmbedder | None = None,
    ) -> None:
        self.store = store
        self.agent_id = agent_id
        self.defaults = dict(defaults or {})
        self.embedder = embedder or TaskEmbedder()

    def learn_optimal_parameters(
        self,
        task: str,
        parameter_names: Sequence[str],
        k: int = 10,
    ) -> dict[str, Any]:
        """Parameter values learned from successful similar tasks, over the defaults.

        Numeric parameters take the mean weighted by
        ``similarity * quality / 10`` (rounded when the first observed value
        is an int). Other parameters take their most common value. A
        parameter never observed keeps its default, or None.
        """
        similar = self.store.find_similar(
            self.embedder.embed_text(task), k, {"agent_id": self.agent_id, "success": True}
        )
        if not similar:
            return dict(self.defaults)

        learned: dict[str, Any] = {}
        for name in parameter_names:
            values: list[Any] = []
            weights: list[float] = []
            for neighbor in similar:
                params = neighbor.item.metadata.parameters or {}
                if name in params:
                    values.append(params[name])
                    weights.append(neighbor.similarity * neighbor.item.quality_score / 10.0)

            if not values:
                learned[name] = self.defaults.get(name)
                continue

            numeric = [(v, w) for v, w in zip(values, weights) if _is_number(v)]
            total_weight = sum(w for _, w in numeric)
            if _is_number(values[0]) and total_weight > 0:
                value: Any = sum(v * w for v, w in numeric) / total_weight
                if isinstance(values[0], int):
                    value = int(round(value))
                learned[name] = value
            else:
                learned[name] = max(values, key=values.count)

        _logger.debug("parameters_learned", agent_id=self.agent_id, parameters=list(learned))
        return {**self.defaults, **learned}

    def record_parameter_performance(
        self,
        task: str,
        parameters: Mapping[str, Any],
        success: bool,
        quality_score: float,
        duration: float,
    ) -> TaskRecord:
        return self.store.record(
            TaskRecord(
                id=new_record_id("param"),
                embedding=tuple(self.embedder.embed_text(task)),
                agent_id=self.agent_id,
                task_text=task[:500],
                success=success,
                quality_score=quality_score,
                duration_seconds=duration,
                metadata=RecordMetadata(parameters=dict(parameters)),
            )
        )

    def get_parameter_stats(self) -> StoreStats:
        return self.store.get_stats()
