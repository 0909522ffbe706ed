"""Meta-learner: pick a learning strategy and hyperparameters from few examples.

Four candidate strategies are tracked with exponential-moving-average
success rate and sample efficiency. Few-shot adaptation combines those
running metrics with the strategies that worked on similar past tasks, and
every adaptation episode is logged to the history store for future votes.
"""

from __future__ import annotations

import statistics
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

from adaptive_learning.core.config import MetaLearningConfig
from adaptive_learning.core.errors import InsufficientDataError, UnknownStrategyError
from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.embedder import TaskAnalysis, TaskEmbedder
from adaptive_learning.learning.similarity import Neighbor
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    RecordMetadata,
    TaskRecord,
    new_record_id,
)

_logger = get_logger("learning.meta")

META_LEARNER_AGENT = "meta_learner"
_EPISODE_QUALITY = 7.0
_EXPERIENCE_NEIGHBORS = 5
_TREND_THRESHOLD = 0.1


class LearningStrategy(str, Enum):
    GRADIENT_BASED = "gradient_based"
    MODEL_BASED = "model_based"
    METRIC_BASED = "metric_based"
    OPTIMIZATION_BASED = "optimization_based"

    @classmethod
    def parse(cls, name: LearningStrategy | str) -> LearningStrategy:
        try:
            return cls(name)
        except ValueError:
            raise UnknownStrategyError("learning", str(name), (s.value for s in cls)) from None


@dataclass
class StrategyMetrics:
    """Running performance of one learning strategy."""

    success_rate: float = 0.5
    sample_efficiency: float = 0.5
    used_count: int = 0
    last_quality: float | None = None

    @property
    def score(self) -> float:
        return 0.6 * self.success_rate + 0.4 * self.sample_efficiency


@dataclass
class Hyperparameters:
    learning_rate: float = 0.01
    adaptation_window: int = 5
    min_samples_for_adaptation: int = 3
    meta_batch_size: int = 10


@dataclass(frozen=True)
class FewShotExample:
    task: str
    quality: float


@dataclass
class MetaFeatures:
    """Summary of a set of few-shot examples.

    ``complexity`` blends task length and inverse quality:
    ``0.5 * min(1, avg_task_length / 200) + 0.5 * (1 - avg_quality / 10)``.
    """

    sample_count: int
    avg_quality: float
    quality_std: float
    avg_task_length: float
    complexity: float


@dataclass
class AdaptationResult:
    strategy: LearningStrategy
    parameters: Hyperparameters
    confidence: float
    meta_features: MetaFeatures
    few_shot_count: int


@dataclass
class MetaLearningStats:
    strategies: dict[str, StrategyMetrics] = field(default_factory=dict)
    hyperparameters: Hyperparameters = field(default_factory=Hyperparameters)
    learning_efficiency: float = 0.0
    total_meta_experiences: int = 0
    best_strategy: LearningStrategy = LearningStrategy.GRADIENT_BASED


def linear_trend(values: Sequence[float]) -> float:
    """Least-squares slope of ``values`` against their index. 0 for fewer than 2."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)


def extract_meta_features(examples: Sequence[FewShotExample]) -> MetaFeatures:
    qualities = [e.quality for e in examples]
    lengths = [len(e.task) for e in examples]
    avg_quality = statistics.fmean(qualities)
    avg_length = statistics.fmean(lengths)
    complexity = 0.5 * min(1.0, avg_length / 200.0) + 0.5 * (1.0 - avg_quality / 10.0)
    return MetaFeatures(
        sample_count=len(examples),
        avg_quality=avg_quality,
        quality_std=statistics.pstdev(qualities),
        avg_task_length=avg_length,
        complexity=complexity,
    )


class MetaLearner:
    """Learns which learning strategy suits which kind of task."""

    def __init__(
        self,
        store: HistoryStore,
        config: MetaLearningConfig | None = None,
        embedder: TaskEmbedder | None = None,
    ) -> None:
        self.store = store
        self.config = config or MetaLearningConfig()
        self.embedder = embedder or TaskEmbedder()
        self.hyperparameters = Hyperparameters(
            learning_rate=self.config.default_learning_rate,
            adaptation_window=self.config.adaptation_window,
            min_samples_for_adaptation=self.config.min_samples_for_adaptation,
            meta_batch_size=self.config.meta_batch_size,
        )
        self.strategies: dict[LearningStrategy, StrategyMetrics] = {
            strategy: StrategyMetrics() for strategy in LearningStrategy
        }

    def few_shot_adapt(
        self,
        task: str,
        examples: Sequence[FewShotExample],
        analysis: TaskAnalysis | None = None,
    ) -> AdaptationResult:
        """Choose a strategy and hyperparameters for ``task`` from a few examples.

        Raises:
            InsufficientDataError: If ``examples`` is empty.
        """
        if not examples:
            raise InsufficientDataError("At least 1 example required for few-shot learning")

        _logger.info("few_shot_adaptation_started", examples=len(examples))

        vector = self.embedder.embed(analysis or self.embedder.analyze_task(task))
        experiences = self.store.find_similar(vector, _EXPERIENCE_NEIGHBORS)
        features = extract_meta_features(examples)

        strategy = self._vote_strategy(experiences) or self.select_algorithm()
        parameters = self._tune_hyperparameters(features)
        confidence = self._adaptation_confidence(experiences, features)

        self.store.record(
            TaskRecord(
                id=new_record_id("meta"),
                embedding=tuple(vector),
                agent_id=META_LEARNER_AGENT,
                task_text=task[:500],
                success=True,
                quality_score=_EPISODE_QUALITY,
                metadata=RecordMetadata(
                    strategy=strategy.value,
                    parameters=asdict(parameters),
                    extra={"meta_features": asdict(features), "learning_type": "few_shot"},
                ),
            )
        )

        return AdaptationResult(
            strategy=strategy,
            parameters=parameters,
            confidence=round(confidence, 3),
            meta_features=features,
            few_shot_count=len(examples),
        )

    def optimize_learning_rate(self, recent_performance: Sequence[float]) -> float:
        """Adjust the learning rate from the trend of recent quality scores.

        Slope above 0.1 raises it by 20%, below -0.1 lowers it by 20%, and
        anything in between nudges it up 5%. The result stays within the
        configured bounds.
        """
        current = self.hyperparameters.learning_rate
        if not recent_performance:
            return current

        trend = linear_trend(recent_performance)
        if trend > _TREND_THRESHOLD:
            new_rate = min(self.config.max_learning_rate, current * 1.2)
        elif trend < -_TREND_THRESHOLD:
            new_rate = max(self.config.min_learning_rate, current * 0.8)
        else:
            new_rate = min(self.config.max_learning_rate, current * 1.05)

        self.hyperparameters.learning_rate = new_rate
        _logger.debug(
            "learning_rate_optimized",
            old_lr=round(current, 5),
            new_lr=round(new_rate, 5),
            trend=round(trend, 3),
        )
        return new_rate

    def select_algorithm(
        self, characteristics: Mapping[str, Any] | None = None
    ) -> LearningStrategy:
        """Best strategy by running metrics plus a bonus for past successes.

        ``score = 0.6 * success_rate + 0.4 * sample_efficiency + 0.1 * uses``
        where ``uses`` counts successful stored episodes with that strategy.
        ``characteristics`` is accepted for callers that describe the task but
        does not change the ranking.
        """
        scores: dict[LearningStrategy, float] = {}
        for strategy, metrics in self.strategies.items():
            uses = len(
                self.store.filter({"metadata.strategy": strategy.value, "success": True})
            )
            scores[strategy] = metrics.score + 0.1 * uses

        best = max(scores, key=lambda s: scores[s])
        _logger.info("algorithm_selected", algorithm=best.value, score=round(scores[best], 3))
        return best

    def update_meta_model(
        self,
        strategy: LearningStrategy | str,
        success: bool,
        samples_used: int,
        quality: float,
    ) -> StrategyMetrics:
        """Fold one observed outcome into a strategy's running metrics.

        Raises:
            UnknownStrategyError: If ``strategy`` is not a learning strategy.
        """
        key = LearningStrategy.parse(strategy)
        alpha = self.config.ema_alpha
        current = self.strategies[key]
        efficiency = 1.0 / max(1, samples_used)

        updated = replace(
            current,
            success_rate=current.success_rate * (1 - alpha) + (1.0 if success else 0.0) * alpha,
            sample_efficiency=current.sample_efficiency * (1 - alpha) + efficiency * alpha,
            used_count=current.used_count + 1,
            last_quality=quality,
        )
        self.strategies[key] = updated
        _logger.debug(
            "meta_model_updated",
            strategy=key.value,
            success_rate=round(updated.success_rate, 3),
            sample_efficiency=round(updated.sample_efficiency, 3),
        )
        return updated

    def get_best_strategy(self) -> LearningStrategy:
        return max(self.strategies, key=lambda s: self.strategies[s].score)

    def get_statistics(self) -> MetaLearningStats:
        history = sorted(self.store.all(), key=lambda r: r.timestamp or 0.0)
        efficiency = 0.0
        if len(history) > 10:
            early = statistics.fmean(r.quality_score for r in history[:10])
            recent = statistics.fmean(r.quality_score for r in history[-10:])
            efficiency = (recent - early) / 10.0

        return MetaLearningStats(
            strategies={s.value: replace(m) for s, m in self.strategies.items()},
            hyperparameters=replace(self.hyperparameters),
            learning_efficiency=round(efficiency, 4),
            total_meta_experiences=len(history),
            best_strategy=self.get_best_strategy(),
        )

    def _vote_strategy(
        self, experiences: list[Neighbor[TaskRecord]]
    ) -> LearningStrategy | None:
        votes: dict[LearningStrategy, float] = {}
        for exp in experiences:
            name = exp.item.metadata.strategy
            if not exp.item.success or name is None:
                continue
            try:
                strategy = LearningStrategy(name)
            except ValueError:
                continue
            votes[strategy] = votes.get(strategy, 0.0) + exp.similarity

        if not votes:
            return None
        return max(votes, key=lambda s: votes[s])

    def _tune_hyperparameters(self, features: MetaFeatures) -> Hyperparameters:
        tuned = replace(self.hyperparameters)
        if features.complexity > 0.7:
            tuned.learning_rate *= 0.5
        elif features.complexity < 0.3:
            tuned.learning_rate *= 1.5

        if features.sample_count < 3:
            tuned.adaptation_window = 3
        else:
            tuned.adaptation_window = min(10, features.sample_count)
        return tuned

    def _adaptation_confidence(
        self, experiences: list[Neighbor[TaskRecord]], features: MetaFeatures
    ) -> float:
        if not experiences:
            return 0.3

        avg_similarity = statistics.fmean(e.similarity for e in experiences)
        avg_quality = statistics.fmean(e.item.quality_score for e in experiences)
        confidence = 0.5 * avg_similarity + 0.4 * avg_quality / 10.0
        if features.sample_count >= 5:
            confidence += 0.1
        return min(1.0, confidence)
