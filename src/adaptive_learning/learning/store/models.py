"""Data models for the history store.

TaskRecord is the single persisted entity: one logged execution outcome.
Records are immutable; a correction is a new record. The remaining
dataclasses are read-only aggregates computed from k-NN queries.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

QUALITY_MIN = 0.0
QUALITY_MAX = 10.0


def clamp_quality(value: float) -> float:
    """Clamp a quality score into [0, 10]."""
    return max(QUALITY_MIN, min(QUALITY_MAX, float(value)))


def new_record_id(prefix: str) -> str:
    """Unique record id such as ``perf_3f2a9c0d1e4b``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class RecordMetadata:
    """Provenance attached to a TaskRecord.

    Keys the engine reads back have named fields; anything else a caller
    attaches is kept in ``extra`` and round-trips through the snapshot
    unchanged.
    """

    transferred_from: str | None = None
    """Source agent id when the record was copied by bootstrap()."""

    distilled_from: tuple[str, ...] | None = None
    """Source agent ids when the record was produced by distill()."""

    original_quality: float | None = None
    """Quality before the transfer discount was applied."""

    strategy: str | None = None
    """Ensemble, learning, or execution strategy that produced the outcome."""

    domain: str | None = None
    """Task domain tag; rewritten by domain adaptation."""

    prompt: str | None = None
    """Prompt text, for prompt-optimisation records."""

    token_usage: int | None = None
    """Total tokens consumed by the prompt."""

    parameters: dict[str, Any] | None = None
    """Parameter values used for the execution."""

    extra: dict[str, Any] = field(default_factory=dict)
    """Open extension map for any other provenance."""

    _NAMED = (
        "transferred_from",
        "distilled_from",
        "original_quality",
        "strategy",
        "domain",
        "prompt",
        "token_usage",
        "parameters",
    )

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a named field or an ``extra`` key."""
        if key in self._NAMED:
            value = getattr(self, key)
            return default if value is None else value
        return self.extra.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to a JSON-compatible dict; unset named fields are omitted."""
        data: dict[str, Any] = dict(self.extra)
        for key in self._NAMED:
            value = getattr(self, key)
            if value is None:
                continue
            data[key] = list(value) if isinstance(value, tuple) else value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RecordMetadata:
        """Rebuild from a flat dict; unknown keys land in ``extra``."""
        if not data:
            return cls()
        named = {k: data[k] for k in cls._NAMED if data.get(k) is not None}
        if "distilled_from" in named:
            named["distilled_from"] = tuple(named["distilled_from"])
        extra = {k: v for k, v in data.items() if k not in cls._NAMED}
        return cls(**named, extra=extra)


@dataclass(frozen=True)
class TaskRecord:
    """One logged execution outcome.

    ``quality_score`` is clamped to [0, 10] on construction. ``timestamp`` is
    Unix seconds; when None the history store stamps the current time on
    record().
    """

    id: str
    embedding: tuple[float, ...]
    agent_id: str
    task_text: str = ""
    success: bool = False
    quality_score: float = 0.0
    duration_seconds: float = 0.0
    timestamp: float | None = None
    metadata: RecordMetadata = field(default_factory=RecordMetadata)

    def __post_init__(self) -> None:
        object.__setattr__(self, "embedding", tuple(float(v) for v in self.embedding))
        object.__setattr__(self, "quality_score", clamp_quality(self.quality_score))
        object.__setattr__(self, "duration_seconds", max(0.0, float(self.duration_seconds)))

    def field_value(self, key: str) -> Any:
        """Value used by store filters: a record field or ``metadata.<key>``."""
        if key.startswith("metadata."):
            return self.metadata.get(key.split(".", 1)[1])
        return getattr(self, key, None)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "id": self.id,
            "task_text": self.task_text,
            "embedding": list(self.embedding),
            "agent_id": self.agent_id,
            "success": self.success,
            "quality_score": self.quality_score,
            "duration_seconds": self.duration_seconds,
            "timestamp": self.timestamp,
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskRecord:
        """Deserialize from dictionary.

        Raises:
            KeyError: If id, embedding, or agent_id is missing.
        """
        return cls(
            id=str(data["id"]),
            embedding=tuple(data["embedding"]),
            agent_id=str(data["agent_id"]),
            task_text=data.get("task_text", ""),
            success=bool(data.get("success", False)),
            quality_score=data.get("quality_score", 0.0),
            duration_seconds=data.get("duration_seconds", 0.0),
            timestamp=data.get("timestamp"),
            metadata=RecordMetadata.from_dict(data.get("metadata")),
        )


@dataclass
class AgentPerformance:
    """One agent's record on the tasks most similar to a query."""

    attempts: int = 0
    successes: int = 0
    success_rate: float = 0.0
    avg_quality: float = 0.0
    avg_duration: float = 0.0
    sample_size: int = 0
    avg_similarity: float = 0.0


@dataclass
class AgentRanking:
    """An agent's composite score over a k-NN neighbourhood."""

    agent_id: str
    score: float
    success_rate: float
    avg_quality: float
    avg_similarity: float
    attempts: int


@dataclass
class StoreStats:
    """Summary of a history store's contents."""

    total_records: int = 0
    unique_agents: int = 0
    success_rate: float = 0.0
    avg_quality: float = 0.0
    oldest_record: float | None = None
    newest_record: float | None = None
