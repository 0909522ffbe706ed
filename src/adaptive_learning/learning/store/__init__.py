"""Persisted task history: records, aggregates, and the k-NN store."""

from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    AgentPerformance,
    AgentRanking,
    RecordMetadata,
    StoreStats,
    TaskRecord,
    clamp_quality,
    new_record_id,
)

__all__ = [
    "AgentPerformance",
    "AgentRanking",
    "HistoryStore",
    "RecordMetadata",
    "StoreStats",
    "TaskRecord",
    "clamp_quality",
    "new_record_id",
]
