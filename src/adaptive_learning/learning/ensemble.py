"""Ensemble combiner: merge several agents' results for one task.

Each agent runs independently; an agent that raises is logged and counted as
a failed result, never aborting the combination. Only when every agent fails
does the combiner return a failure result. Every combination is written back
to the history store as ``ensemble:<strategy>`` so later weighting can use it.
"""

from __future__ import annotations

import random
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from adaptive_learning.core.config import EnsembleConfig
from adaptive_learning.core.errors import InvalidRecordError, UnknownStrategyError
from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.embedder import TaskAnalysis, TaskEmbedder
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    RecordMetadata,
    StoreStats,
    TaskRecord,
    new_record_id,
)

_logger = get_logger("learning.ensemble")

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")
_MAX_ANSWER_KEY = 200


class EnsembleStrategy(str, Enum):
    VOTING = "voting"
    WEIGHTED_VOTING = "weighted_voting"
    BAGGING = "bagging"
    STACKING = "stacking"
    BEST_OF_N = "best_of_n"

    @classmethod
    def parse(cls, name: EnsembleStrategy | str) -> EnsembleStrategy:
        """Resolve a strategy name.

        Raises:
            UnknownStrategyError: If ``name`` is not a known strategy.
        """
        try:
            return cls(name)
        except ValueError:
            raise UnknownStrategyError("ensemble", str(name), (s.value for s in cls)) from None


@dataclass
class AgentResult:
    """Outcome of one agent run, or of a whole ensemble.

    Attributes:
        answer: Final answer text. Empty on failure.
        success: Whether the run produced an answer.
        iterations: Reasoning iterations used; fewer is more efficient.
        quality_score: Self-reported quality (0-10), if any.
        confidence: Agreement level for ensemble results.
        error: Failure description.
        metadata: Strategy-specific details (votes, scores, selected agent).
    """

    answer: str = ""
    success: bool = True
    iterations: int = 1
    quality_score: float | None = None
    confidence: float | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: str, **metadata: Any) -> AgentResult:
        return cls(success=False, iterations=0, error=error, metadata=metadata)


@runtime_checkable
class Agent(Protocol):
    """Anything that can run a task and report an AgentResult."""

    def run(self, task: str) -> AgentResult:
        ...


def normalize_answer(answer: str) -> str:
    """Key used to group equivalent answers in a vote.

    Lowercased and trimmed, whitespace collapsed, punctuation removed,
    truncated to 200 characters.
    """
    normalized = _WHITESPACE.sub(" ", answer.strip().lower())
    normalized = _PUNCTUATION.sub("", normalized)
    return normalized[:_MAX_ANSWER_KEY]


def _efficiency(iterations: int) -> float:
    return max(0.0, 10.0 - iterations * 0.5)


@dataclass
class _Ballot:
    raw: str
    weight: float = 0.0
    agents: list[str] = field(default_factory=list)


Combiner = Callable[[dict[str, AgentResult], int | None], AgentResult]


class EnsembleLearner:
    """Combines agents' answers with a selectable strategy.

    Example:
        learner = EnsembleLearner(HistoryStore(Path("storage/ensemble.json")))
        result = learner.combine("Capital of France?", {"a": agent_a, "b": agent_b},
                                 strategy="voting")
    """

    def __init__(
        self,
        store: HistoryStore,
        config: EnsembleConfig | None = None,
        embedder: TaskEmbedder | None = None,
    ) -> None:
        self.store = store
        self.config = config or EnsembleConfig()
        self.strategy = EnsembleStrategy.parse(self.config.strategy)
        self.embedder = embedder or TaskEmbedder()
        self._rng = random.Random(self.config.random_seed)
        self._weight_overrides: dict[str, float] = {}
        self._combiners: dict[EnsembleStrategy, Combiner] = {
            EnsembleStrategy.VOTING: lambda results, _k: self._voting(results),
            EnsembleStrategy.WEIGHTED_VOTING: lambda results, _k: self._weighted_voting(results),
            EnsembleStrategy.BAGGING: self._bagging,
            EnsembleStrategy.STACKING: lambda results, _k: self._stacking(results),
            EnsembleStrategy.BEST_OF_N: lambda results, _k: self._best_of_n(results),
        }

    def combine(
        self,
        task: str,
        agents: Mapping[str, Agent],
        strategy: EnsembleStrategy | str | None = None,
        *,
        k: int | None = None,
        analysis: TaskAnalysis | None = None,
    ) -> AgentResult:
        """Run every agent on ``task`` and merge their results.

        Args:
            task: Task text given to each agent.
            agents: Agent id -> agent.
            strategy: Overrides the configured strategy for this call.
            k: Bootstrap sample size for bagging. Defaults to the configured
                ``bagging_k``, then to the number of agents.
            analysis: Task analysis used to embed the logged outcome.

        Raises:
            UnknownStrategyError: If ``strategy`` is not a known strategy.
        """
        chosen = self.strategy if strategy is None else EnsembleStrategy.parse(strategy)
        if not agents:
            return AgentResult.failure("No agents provided for ensemble")

        _logger.info("ensemble_started", strategy=chosen.value, agent_count=len(agents))
        start = time.monotonic()

        results: dict[str, AgentResult] = {}
        for agent_id, agent in agents.items():
            agent_start = time.monotonic()
            try:
                results[agent_id] = agent.run(task)
            except Exception as e:
                _logger.warning("ensemble_agent_failed", agent_id=agent_id, error=str(e))
                results[agent_id] = AgentResult.failure(str(e))
                continue
            _logger.debug(
                "ensemble_agent_completed",
                agent_id=agent_id,
                success=results[agent_id].success,
                duration=time.monotonic() - agent_start,
            )

        sample_size = k or self.config.bagging_k or len(agents)
        combined = self._combiners[chosen](results, sample_size)
        self._record(task, chosen, results, combined, time.monotonic() - start, analysis)
        return combined

    def set_agent_weights(self, weights: Mapping[str, float]) -> EnsembleLearner:
        """Fix raw weights for some agents instead of deriving them from history."""
        self._weight_overrides.update(weights)
        return self

    def get_agent_weights(self, agent_ids: list[str]) -> dict[str, float]:
        """Normalised historical weight per agent.

        Raw weight is ``0.5 * success_rate + 0.5 * avg_quality / 10`` over the
        agent's stored records (1.0 when unseen); weights are then scaled to
        average 1.0 across ``agent_ids``.
        """
        weights: dict[str, float] = {}
        for agent_id in agent_ids:
            if agent_id in self._weight_overrides:
                weights[agent_id] = self._weight_overrides[agent_id]
                continue
            records = self.store.filter({"agent_id": agent_id})
            if not records:
                weights[agent_id] = 1.0
                continue
            success_rate = sum(1 for r in records if r.success) / len(records)
            avg_quality = sum(r.quality_score for r in records) / len(records)
            weights[agent_id] = 0.5 * success_rate + 0.5 * avg_quality / 10.0

        total = sum(weights.values())
        if total > 0:
            weights = {a: w / total * len(weights) for a, w in weights.items()}
        return weights

    def get_statistics(self) -> StoreStats:
        return self.store.get_stats()

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _voting(self, results: dict[str, AgentResult]) -> AgentResult:
        ballots: dict[str, _Ballot] = {}
        successful = 0
        for agent_id, result in results.items():
            if not result.success:
                continue
            successful += 1
            ballot = ballots.setdefault(normalize_answer(result.answer), _Ballot(result.answer))
            ballot.weight += 1
            ballot.agents.append(agent_id)

        if not ballots:
            return AgentResult.failure("All agents failed")

        winner = max(ballots.values(), key=lambda b: b.weight)
        confidence = winner.weight / successful
        return AgentResult(
            answer=winner.raw,
            iterations=len(results),
            confidence=confidence,
            metadata={
                "strategy": EnsembleStrategy.VOTING.value,
                "votes": {key: int(b.weight) for key, b in ballots.items()},
                "voting_agents": winner.agents,
            },
        )

    def _weighted_voting(
        self,
        results: dict[str, AgentResult],
        draws: list[str] | None = None,
        weights: dict[str, float] | None = None,
    ) -> AgentResult:
        weights = weights or self.get_agent_weights(list(results))
        ballots: dict[str, _Ballot] = {}
        total = 0.0
        for agent_id in draws if draws is not None else list(results):
            result = results[agent_id]
            if not result.success:
                continue
            weight = weights.get(agent_id, 1.0)
            total += weight
            ballot = ballots.setdefault(normalize_answer(result.answer), _Ballot(result.answer))
            ballot.weight += weight
            ballot.agents.append(agent_id)

        if not ballots:
            return AgentResult.failure("All agents failed")

        winner = max(ballots.values(), key=lambda b: b.weight)
        confidence = winner.weight / total if total > 0 else 0.0
        return AgentResult(
            answer=winner.raw,
            iterations=len(results),
            confidence=confidence,
            metadata={
                "strategy": EnsembleStrategy.WEIGHTED_VOTING.value,
                "votes": {key: b.weight for key, b in ballots.items()},
                "agent_weights": weights,
            },
        )

    def _bagging(self, results: dict[str, AgentResult], k: int | None) -> AgentResult:
        successful = [a for a, r in results.items() if r.success]
        if not successful:
            return AgentResult.failure("All agents failed")

        draws = [self._rng.choice(successful) for _ in range(k or len(successful))]
        combined = self._weighted_voting(
            results, draws=draws, weights=self.get_agent_weights(list(results))
        )
        combined.metadata["strategy"] = EnsembleStrategy.BAGGING.value
        combined.metadata["bootstrap_sample"] = draws
        return combined

    def _stacking(self, results: dict[str, AgentResult]) -> AgentResult:
        weights = self.get_agent_weights(list(results))
        scores: dict[str, float] = {}
        for agent_id, result in results.items():
            if not result.success:
                continue
            quality = result.quality_score if result.quality_score is not None else 5.0
            base = quality * 0.7 + _efficiency(result.iterations) * 0.3
            scores[agent_id] = base * weights.get(agent_id, 1.0)

        if not scores:
            return AgentResult.failure("All agents failed")

        best_agent = max(scores, key=lambda a: scores[a])
        return AgentResult(
            answer=results[best_agent].answer,
            iterations=len(results),
            quality_score=results[best_agent].quality_score,
            metadata={
                "strategy": EnsembleStrategy.STACKING.value,
                "best_agent": best_agent,
                "score": scores[best_agent],
                "all_scores": scores,
            },
        )

    def _best_of_n(self, results: dict[str, AgentResult]) -> AgentResult:
        scores: dict[str, float] = {}
        for agent_id, result in results.items():
            if not result.success:
                continue
            quality = result.quality_score if result.quality_score is not None else 5.0
            scores[agent_id] = 0.7 * quality + 0.3 * _efficiency(result.iterations)

        if not scores:
            return AgentResult.failure("All agents failed")

        best_agent = max(scores, key=lambda a: scores[a])
        best = results[best_agent]
        return AgentResult(
            answer=best.answer,
            iterations=best.iterations,
            quality_score=best.quality_score,
            metadata={
                **best.metadata,
                "strategy": EnsembleStrategy.BEST_OF_N.value,
                "selected_agent": best_agent,
                "selection_score": round(scores[best_agent], 2),
                "all_scores": {a: round(s, 2) for a, s in scores.items()},
            },
        )

    def _record(
        self,
        task: str,
        strategy: EnsembleStrategy,
        results: dict[str, AgentResult],
        combined: AgentResult,
        duration: float,
        analysis: TaskAnalysis | None,
    ) -> None:
        if combined.quality_score is not None:
            quality = combined.quality_score
        else:
            quality = 8.0 if combined.success else 0.0

        record = TaskRecord(
            id=new_record_id("ensemble"),
            embedding=tuple(self.embedder.embed(analysis or self.embedder.analyze_task(task))),
            agent_id=f"ensemble:{strategy.value}",
            task_text=task[:500],
            success=combined.success,
            quality_score=quality,
            duration_seconds=duration,
            metadata=RecordMetadata(
                strategy=strategy.value,
                extra={
                    "agent_count": len(results),
                    "successful_agents": sum(1 for r in results.values() if r.success),
                    "ensemble_confidence": combined.confidence or 0.0,
                },
            ),
        )
        try:
            self.store.record(record)
        except (InvalidRecordError, OSError) as e:
            _logger.warning("ensemble_record_failed", strategy=strategy.value, error=str(e))
