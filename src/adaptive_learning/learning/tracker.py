"""Execution tracking for agents that learn from their own runs."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from adaptive_learning.core.errors import InvalidRecordError
from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.embedder import TaskEmbedder
from adaptive_learning.learning.ensemble import AgentResult
from adaptive_learning.learning.similarity import Neighbor
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    RecordMetadata,
    StoreStats,
    TaskRecord,
    new_record_id,
)

_logger = get_logger("learning.tracker")


def estimate_result_quality(result: AgentResult) -> float:
    """Rough quality from answer length: 0 on failure, then 4.0 / 6.0 / 7.5 / 8.5."""
    if not result.success:
        return 0.0
    length = len(result.answer)
    if length < 50:
        return 4.0
    if length < 200:
        return 6.0
    if length < 500:
        return 7.5
    return 8.5


class ExecutionTracker:
    """Logs an agent's executions and looks up how similar tasks went.

    Recording failures are logged and never propagate: learning must not
    break the execution it observes.
    """

    def __init__(
        self,
        store: HistoryStore,
        agent_id: str,
        agent_type: str | None = None,
        embedder: TaskEmbedder | None = None,
        enabled: bool = True,
    ) -> None:
        self.store = store
        self.agent_id = agent_id
        self.agent_type = agent_type or agent_id
        self.embedder = embedder or TaskEmbedder()
        self.enabled = enabled

    def enable(self) -> ExecutionTracker:
        self.enabled = True
        return self

    def disable(self) -> ExecutionTracker:
        self.enabled = False
        return self

    def record_execution(
        self,
        task: str,
        result: AgentResult,
        duration: float = 0.0,
        metadata: Mapping[str, Any] | None = None,
    ) -> TaskRecord | None:
        """Log one execution. Returns None when disabled or when the write fails."""
        if not self.enabled:
            return None

        try:
            return self.store.record(
                TaskRecord(
                    id=new_record_id("exec"),
                    embedding=tuple(self.embedder.embed_text(task)),
                    agent_id=self.agent_id,
                    task_text=task[:500],
                    success=result.success,
                    quality_score=estimate_result_quality(result),
                    duration_seconds=duration,
                    metadata=RecordMetadata(
                        extra={
                            **(metadata or {}),
                            "agent_type": self.agent_type,
                            "iterations": result.iterations,
                        }
                    ),
                )
            )
        except (InvalidRecordError, OSError) as e:
            _logger.warning("execution_record_failed", agent_id=self.agent_id, error=str(e))
            return None

    def get_historical_performance(self, task: str, k: int = 10) -> list[Neighbor[TaskRecord]]:
        """This agent's k most similar past executions; empty when disabled."""
        if not self.enabled:
            return []
        return self.store.find_similar(
            self.embedder.embed_text(task), k, {"agent_id": self.agent_id}
        )

    def get_learning_stats(self) -> StoreStats | None:
        if not self.enabled:
            return None
        return self.store.get_stats()
