"""Transfer engine: seed one agent's history from another's.

Knowledge moves between two history stores. bootstrap() copies an
experienced agent's best records into a new agent's store, skipping anything
the target already knows, so re-running it with unchanged inputs transfers
nothing new. distill() merges several sources into a small, diverse set of
representative records.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace

from adaptive_learning.core.config import TransferConfig
from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.embedder import TaskAnalysis, TaskEmbedder
from adaptive_learning.learning.similarity import cosine_similarity
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    RecordMetadata,
    TaskRecord,
    new_record_id,
)

_logger = get_logger("learning.transfer")

_LEARNED_QUALITY = 8.0
_COLD_START_WINDOW = 5
_TREND_WINDOW = 10


@dataclass
class BootstrapResult:
    transferred: int = 0
    skipped: int = 0
    adapted: int = 0


@dataclass
class Recommendation:
    """A source-domain neighbour, adapted to the target domain."""

    task_text: str
    quality_score: float
    similarity: float
    agent_id: str
    metadata: RecordMetadata


@dataclass
class FineTuneResult:
    recommendations: list[Recommendation] = field(default_factory=list)
    confidence: float = 0.0
    source_count: int = 0


@dataclass
class DistillResult:
    distilled: int = 0
    sources_used: int = 0
    avg_quality: float = 0.0


@dataclass
class TransferEffectiveness:
    """How an agent's quality evolved after receiving transferred knowledge.

    Attributes:
        cold_start_quality: Mean quality of the agent's first 5 records.
        quality_improvement: Mean of the last 10 minus mean of the first 10.
        learning_speed: 1 / position of the first record reaching 8.0, else 0.
        transferred_ratio: Share of the agent's records that were transferred.
    """

    cold_start_quality: float = 0.0
    quality_improvement: float = 0.0
    learning_speed: float = 0.0
    transferred_ratio: float = 0.0


class TransferLearner:
    """Moves experience from a source history store to a target store."""

    def __init__(
        self,
        source: HistoryStore,
        target: HistoryStore,
        config: TransferConfig | None = None,
        embedder: TaskEmbedder | None = None,
    ) -> None:
        self.source = source
        self.target = target
        self.config = config or TransferConfig()
        self.embedder = embedder or TaskEmbedder()
        self.domain_mappings: dict[str, str] = dict(self.config.domain_mappings)

    def set_domain_mappings(self, mappings: Mapping[str, str]) -> TransferLearner:
        """Replace the source -> target term substitutions."""
        self.domain_mappings = dict(mappings)
        return self

    def adapt_domain(self, record: TaskRecord) -> TaskRecord:
        """Rewrite task text and the metadata domain tag with the domain mappings.

        Returns the record unchanged when no mappings are set.
        """
        if not self.domain_mappings:
            return record

        task_text = record.task_text
        domain = record.metadata.domain
        for source_term, target_term in self.domain_mappings.items():
            task_text = task_text.replace(source_term, target_term)
            if domain is not None:
                domain = domain.replace(source_term, target_term)

        metadata = replace(
            record.metadata,
            domain=domain,
            extra={**record.metadata.extra, "domain_adapted": True},
        )
        return replace(record, task_text=task_text, metadata=metadata)

    def bootstrap(
        self,
        source_agent_id: str,
        target_agent_id: str,
        *,
        min_quality: float | None = None,
        similarity_threshold: float | None = None,
        max_samples: int | None = None,
        domain_adaptation: bool | None = None,
    ) -> BootstrapResult:
        """Copy the source agent's best successful records to the target agent.

        Candidates are the source agent's successful records with quality at
        least ``min_quality``, best first, capped at ``max_samples``. A
        candidate is skipped when the target store already holds a neighbour
        with similarity above ``similarity_threshold``. Copies are discounted
        by ``transfer_discount`` and tagged ``transferred_from``.
        """
        cfg = self.config
        min_quality = cfg.min_quality if min_quality is None else min_quality
        threshold = (
            cfg.similarity_threshold if similarity_threshold is None else similarity_threshold
        )
        max_samples = cfg.max_samples if max_samples is None else max_samples
        adapt = cfg.domain_adaptation if domain_adaptation is None else domain_adaptation

        _logger.info(
            "bootstrap_started",
            source_agent=source_agent_id,
            target_agent=target_agent_id,
            min_quality=min_quality,
        )

        candidates = [
            r
            for r in self.source.filter({"agent_id": source_agent_id, "success": True})
            if r.quality_score >= min_quality
        ]
        candidates.sort(key=lambda r: r.quality_score, reverse=True)

        result = BootstrapResult()
        for sample in candidates[:max_samples]:
            existing = self.target.find_similar(sample.embedding, 1)
            if existing and existing[0].similarity > threshold:
                result.skipped += 1
                continue

            if adapt and self.domain_mappings:
                sample = self.adapt_domain(sample)
                result.adapted += 1

            self.target.record(
                replace(
                    sample,
                    id=new_record_id("transfer"),
                    agent_id=target_agent_id,
                    quality_score=sample.quality_score * cfg.transfer_discount,
                    timestamp=None,
                    metadata=replace(
                        sample.metadata,
                        transferred_from=source_agent_id,
                        original_quality=sample.quality_score,
                    ),
                )
            )
            result.transferred += 1

        _logger.info(
            "bootstrap_completed",
            transferred=result.transferred,
            skipped=result.skipped,
            adapted=result.adapted,
        )
        return result

    def fine_tune(
        self,
        task: str,
        k: int = 5,
        analysis: TaskAnalysis | None = None,
    ) -> FineTuneResult:
        """Recommendations for ``task`` drawn from the source domain.

        ``confidence = 0.6 * avg_similarity + 0.4 * avg_quality / 10``.
        """
        vector = self.embedder.embed(analysis or self.embedder.analyze_task(task))
        neighbors = self.source.find_similar(vector, k)
        if not neighbors:
            return FineTuneResult()

        recommendations = []
        for neighbor in neighbors:
            adapted = self.adapt_domain(neighbor.item)
            recommendations.append(
                Recommendation(
                    task_text=adapted.task_text,
                    quality_score=neighbor.item.quality_score,
                    similarity=neighbor.similarity,
                    agent_id=neighbor.item.agent_id,
                    metadata=adapted.metadata,
                )
            )

        avg_similarity = sum(n.similarity for n in neighbors) / len(neighbors)
        avg_quality = sum(n.item.quality_score for n in neighbors) / len(neighbors)
        return FineTuneResult(
            recommendations=recommendations,
            confidence=round(0.6 * avg_similarity + 0.4 * avg_quality / 10.0, 3),
            source_count=len(neighbors),
        )

    def distill(
        self,
        source_agent_ids: Sequence[str],
        target_agent_id: str,
        *,
        min_quality: float | None = None,
        max_samples: int | None = None,
    ) -> DistillResult:
        """Merge several source agents into a diverse set of target records."""
        cfg = self.config
        min_quality = cfg.distill_min_quality if min_quality is None else min_quality
        max_samples = cfg.distill_max_samples if max_samples is None else max_samples

        _logger.info(
            "distillation_started",
            sources=len(source_agent_ids),
            target_agent=target_agent_id,
        )

        pool = [
            r
            for r in self.source.filter({"agent_id": list(source_agent_ids), "success": True})
            if r.quality_score >= min_quality
        ]
        selected = self.select_representative_samples(pool, max_samples)

        for sample in selected:
            self.target.record(
                replace(
                    sample,
                    id=new_record_id("distill"),
                    agent_id=target_agent_id,
                    quality_score=sample.quality_score * cfg.distill_discount,
                    timestamp=None,
                    metadata=replace(
                        sample.metadata,
                        distilled_from=tuple(source_agent_ids),
                        extra={
                            **sample.metadata.extra,
                            "distillation_method": "representative_sampling",
                        },
                    ),
                )
            )

        avg_quality = (
            sum(r.quality_score for r in selected) / len(selected) if selected else 0.0
        )
        result = DistillResult(
            distilled=len(selected),
            sources_used=len(source_agent_ids),
            avg_quality=round(avg_quality, 2),
        )
        _logger.info(
            "distillation_completed",
            distilled=result.distilled,
            avg_quality=result.avg_quality,
        )
        return result

    def select_representative_samples(
        self,
        samples: Sequence[TaskRecord],
        max_samples: int,
    ) -> list[TaskRecord]:
        """Greedy diverse subset of high-quality samples.

        Pools no larger than ``max_samples`` are kept whole. Otherwise the best
        sample is always kept and each following candidate, best first, is
        accepted only if its maximum cosine similarity to every selected
        sample is below ``diversity_cutoff``.
        """
        if len(samples) <= max_samples:
            return list(samples)

        ranked = sorted(samples, key=lambda r: r.quality_score, reverse=True)
        selected = [ranked[0]]
        for candidate in ranked[1:]:
            if len(selected) >= max_samples:
                break
            closest = max(cosine_similarity(candidate.embedding, s.embedding) for s in selected)
            if closest < self.config.diversity_cutoff:
                selected.append(candidate)
        return selected

    def measure_transfer_effectiveness(self, target_agent_id: str) -> TransferEffectiveness:
        """Quality trajectory of ``target_agent_id`` in the target store."""
        history = sorted(
            self.target.filter({"agent_id": target_agent_id}),
            key=lambda r: r.timestamp or 0.0,
        )
        if not history:
            return TransferEffectiveness()

        qualities = [r.quality_score for r in history]
        cold_start = _mean(qualities[:_COLD_START_WINDOW])
        improvement = _mean(qualities[-_TREND_WINDOW:]) - _mean(qualities[:_TREND_WINDOW])

        first_learned = next(
            (i + 1 for i, q in enumerate(qualities) if q >= _LEARNED_QUALITY), 0
        )
        transferred = sum(1 for r in history if r.metadata.transferred_from is not None)

        return TransferEffectiveness(
            cold_start_quality=round(cold_start, 2),
            quality_improvement=round(improvement, 2),
            learning_speed=round(1.0 / first_learned, 4) if first_learned else 0.0,
            transferred_ratio=round(transferred / len(history), 2),
        )


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0
