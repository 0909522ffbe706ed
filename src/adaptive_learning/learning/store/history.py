"""Size-bounded, persisted history of task execution outcomes.

The store is the one shared mutable resource of the engine. Every write
rewrites the whole JSON snapshot, so at most one writer may use a given
snapshot file at a time; callers that share a store across threads or
processes must serialize access themselves. Readers see the snapshot
loaded at construction until they call reload().
"""

from __future__ import annotations

import json
import statistics
import tempfile
import time
from collections.abc import Mapping, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

from adaptive_learning.core.config import HistoryStoreConfig, ScoringConfig
from adaptive_learning.core.errors import InvalidRecordError
from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.similarity import (
    Candidate,
    DistanceMetric,
    Neighbor,
    find_nearest,
    temporal_weight,
)
from adaptive_learning.learning.store.models import (
    AgentPerformance,
    AgentRanking,
    StoreStats,
    TaskRecord,
)

_logger = get_logger("learning.history")

FilterValue = Any
"""A scalar (equality) or a list/tuple/set (inclusion)."""


def _matches(record: TaskRecord, filters: Mapping[str, FilterValue]) -> bool:
    for key, expected in filters.items():
        actual = record.field_value(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class HistoryStore:
    """Persisted log of TaskRecords with k-NN queries over their embeddings.

    Example:
        store = HistoryStore(Path("storage/agent_history.json"))
        store.record(TaskRecord(id="t1", embedding=vec, agent_id="react", ...))
        best = store.get_best_agents_for_similar(vec, k=10, top_n=3)
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        auto_save: bool = True,
        max_history_size: int = 1000,
        half_life_days: float = 30.0,
        scoring: ScoringConfig | None = None,
        name: str | None = None,
    ) -> None:
        """Create a store and load its snapshot, if any.

        Args:
            path: Snapshot file. None keeps the store in memory only.
            auto_save: Rewrite the snapshot after every record() and clear().
            max_history_size: Maximum records retained.
            half_life_days: Half-life of temporal decay in find_similar().
            scoring: Weights for agent ranking and the adaptive threshold.
            name: Label used in log events. Defaults to the file stem.
        """
        if max_history_size < 1:
            raise ValueError("max_history_size must be at least 1")
        self.path = path
        self.auto_save = auto_save
        self.max_history_size = max_history_size
        self.half_life_days = half_life_days
        self.scoring = scoring or ScoringConfig()
        self.name = name or (path.stem if path else "memory")
        self._records: list[TaskRecord] = []
        self._dimension: int | None = None
        self._log = _logger.bind(store=self.name)
        self.reload()

    @classmethod
    def from_config(
        cls,
        config: HistoryStoreConfig,
        scoring: ScoringConfig | None = None,
    ) -> HistoryStore:
        return cls(
            config.path,
            auto_save=config.auto_save,
            max_history_size=config.max_history_size,
            half_life_days=config.half_life_days,
            scoring=scoring,
        )

    def __len__(self) -> int:
        return len(self._records)

    @property
    def dimension(self) -> int | None:
        """Embedding length shared by every record, or None while empty."""
        return self._dimension

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def record(self, entry: TaskRecord) -> TaskRecord:
        """Append a record, evicting the oldest entries beyond the size limit.

        Returns:
            The stored record, with its timestamp filled in.

        Raises:
            InvalidRecordError: If id, embedding, or agent_id is empty, or the
                embedding length differs from the store's dimension.
        """
        if not entry.id or not entry.embedding or not entry.agent_id:
            raise InvalidRecordError("Record must include id, embedding, and agent_id")
        if self._dimension is not None and len(entry.embedding) != self._dimension:
            raise InvalidRecordError(
                f"Embedding has {len(entry.embedding)} dimensions, store expects {self._dimension}"
            )

        if entry.timestamp is None:
            entry = _with_timestamp(entry, time.time())

        self._records.append(entry)
        self._dimension = len(entry.embedding)

        self._evict_oldest()

        if self.auto_save:
            self.save()
        return entry

    def _evict_oldest(self) -> None:
        """Keep only the newest max_history_size records."""
        if len(self._records) <= self.max_history_size:
            return
        self._records.sort(key=lambda r: r.timestamp or 0.0, reverse=True)
        evicted = len(self._records) - self.max_history_size
        del self._records[self.max_history_size:]
        self._log.debug("history_evicted", evicted=evicted, size=len(self._records))

    def clear(self) -> None:
        """Remove every record."""
        self._records = []
        self._dimension = None
        if self.auto_save:
            self.save()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all(self) -> list[TaskRecord]:
        """All records, in storage order."""
        return list(self._records)

    def filter(self, filters: Mapping[str, FilterValue] | None = None) -> list[TaskRecord]:
        """Records whose fields match ``filters``.

        Keys name a TaskRecord field or ``metadata.<key>``. A list, tuple or
        set value matches by inclusion, anything else by equality.
        """
        if not filters:
            return list(self._records)
        return [r for r in self._records if _matches(r, filters)]

    def find_similar(
        self,
        vector: Sequence[float],
        k: int = 5,
        filters: Mapping[str, FilterValue] | None = None,
    ) -> list[Neighbor[TaskRecord]]:
        """k nearest records by temporally weighted cosine similarity."""
        candidates = self.filter(filters)
        if not candidates:
            return []

        now = time.time()
        weights = {
            r.id: temporal_weight(r.timestamp or now, self.half_life_days, now=now)
            for r in candidates
        }
        return find_nearest(
            vector,
            (Candidate(r.id, r.embedding, r) for r in candidates),
            k,
            DistanceMetric.COSINE,
            weights=weights,
        )

    def get_agent_performance_on_similar(
        self,
        vector: Sequence[float],
        agent_id: str,
        k: int = 5,
    ) -> AgentPerformance:
        """How ``agent_id`` fared on the k tasks most similar to ``vector``."""
        similar = [n for n in self.find_similar(vector, k) if n.item.agent_id == agent_id]
        if not similar:
            return AgentPerformance()

        successes = sum(1 for n in similar if n.item.success)
        count = len(similar)
        return AgentPerformance(
            attempts=count,
            successes=successes,
            success_rate=successes / count,
            avg_quality=sum(n.item.quality_score for n in similar) / count,
            avg_duration=sum(n.item.duration_seconds for n in similar) / count,
            sample_size=count,
            avg_similarity=sum(n.similarity for n in similar) / count,
        )

    def get_best_agents_for_similar(
        self,
        vector: Sequence[float],
        k: int = 10,
        top_n: int = 3,
    ) -> list[AgentRanking]:
        """Rank the agents that appear among the k nearest records."""
        grouped: dict[str, list[Neighbor[TaskRecord]]] = {}
        for neighbor in self.find_similar(vector, k):
            grouped.setdefault(neighbor.item.agent_id, []).append(neighbor)

        scoring = self.scoring
        rankings: list[AgentRanking] = []
        for agent_id, neighbors in grouped.items():
            attempts = len(neighbors)
            success_rate = sum(1 for n in neighbors if n.item.success) / attempts
            avg_quality = sum(n.item.quality_score for n in neighbors) / attempts
            avg_similarity = sum(n.similarity for n in neighbors) / attempts
            score = (
                scoring.success_weight * success_rate
                + scoring.quality_weight * avg_quality / 10.0
                + scoring.similarity_weight * avg_similarity
            )
            rankings.append(
                AgentRanking(
                    agent_id=agent_id,
                    score=score,
                    success_rate=success_rate,
                    avg_quality=avg_quality,
                    avg_similarity=avg_similarity,
                    attempts=attempts,
                )
            )

        rankings.sort(key=lambda r: r.score, reverse=True)
        return rankings[:top_n]

    def get_adaptive_threshold(
        self,
        vector: Sequence[float],
        k: int = 10,
        default: float | None = None,
    ) -> float:
        """Quality bar derived from successful similar tasks.

        ``clamp(mean - offset * std, floor, ceiling)`` over the qualities of the
        k nearest successful records, rounded to one decimal. Returns
        ``default`` when there are no successful neighbours.
        """
        scoring = self.scoring
        fallback = scoring.default_threshold if default is None else default

        similar = self.find_similar(vector, k, {"success": True})
        if not similar:
            return fallback

        qualities = [n.item.quality_score for n in similar]
        mean = statistics.fmean(qualities)
        std = statistics.pstdev(qualities)
        threshold = mean - scoring.threshold_std_offset * std
        threshold = max(scoring.threshold_floor, min(scoring.threshold_ceiling, threshold))
        return round(threshold, 1)

    def get_stats(self) -> StoreStats:
        if not self._records:
            return StoreStats()

        total = len(self._records)
        timestamps = [r.timestamp for r in self._records if r.timestamp is not None]
        return StoreStats(
            total_records=total,
            unique_agents=len({r.agent_id for r in self._records}),
            success_rate=sum(1 for r in self._records if r.success) / total,
            avg_quality=sum(r.quality_score for r in self._records) / total,
            oldest_record=min(timestamps) if timestamps else None,
            newest_record=max(timestamps) if timestamps else None,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        """Write the full snapshot with an atomic temp-file rename."""
        if self.path is None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=self.path.parent,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            json.dump([r.to_dict() for r in self._records], f, indent=2)
            temp_path = Path(f.name)

        temp_path.replace(self.path)

    def reload(self) -> None:
        """Re-read the snapshot from disk, discarding in-memory state.

        A missing or unparsable snapshot yields an empty store. Individual
        malformed entries, and entries whose embedding length disagrees with
        the first valid entry, are skipped.
        """
        self._records = []
        self._dimension = None
        if self.path is None or not self.path.exists():
            return

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self._log.warning("history_snapshot_unreadable", path=str(self.path), error=str(e))
            return

        if not isinstance(data, list):
            self._log.warning("history_snapshot_invalid", path=str(self.path))
            return

        skipped = 0
        for raw in data:
            record = _parse_record(raw)
            if record is None or not record.embedding:
                skipped += 1
                continue
            if self._dimension is None:
                self._dimension = len(record.embedding)
            elif len(record.embedding) != self._dimension:
                skipped += 1
                continue
            self._records.append(record)

        self._evict_oldest()

        if skipped:
            self._log.warning("history_records_skipped", skipped=skipped)
        self._log.debug("history_loaded", records=len(self._records))


def _with_timestamp(entry: TaskRecord, timestamp: float) -> TaskRecord:
    return replace(entry, timestamp=timestamp)


def _parse_record(raw: Any) -> TaskRecord | None:
    if not isinstance(raw, dict):
        return None
    try:
        return TaskRecord.from_dict(raw)
    except (KeyError, TypeError, ValueError):
        return None
