"""Pytest fixtures for adaptive-learning tests."""

import logging
import time
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import structlog

from adaptive_learning.learning.embedder import TaskEmbedder
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import RecordMetadata, TaskRecord


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog, root handlers, and CLI state around each test."""
    import adaptive_learning.cli.helpers as cli_helpers

    cli_helpers.reset_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def store() -> HistoryStore:
    """In-memory history store."""
    return HistoryStore(None)


@pytest.fixture
def history_path(tmp_path: Path) -> Path:
    return tmp_path / "storage" / "agent_history.json"


@pytest.fixture
def embedder() -> TaskEmbedder:
    return TaskEmbedder()


RecordFactory = Callable[..., TaskRecord]


@pytest.fixture
def make_record() -> RecordFactory:
    """Build TaskRecords with sensible defaults and unique ids."""
    counter = {"n": 0}

    def _make(
        embedding: Any = (1.0, 0.0, 0.0),
        agent_id: str = "agent_a",
        *,
        success: bool = True,
        quality: float = 8.0,
        duration: float = 10.0,
        timestamp: float | None = None,
        task_text: str = "",
        metadata: RecordMetadata | None = None,
    ) -> TaskRecord:
        counter["n"] += 1
        return TaskRecord(
            id=f"rec_{counter['n']}",
            embedding=tuple(embedding),
            agent_id=agent_id,
            task_text=task_text or f"task {counter['n']}",
            success=success,
            quality_score=quality,
            duration_seconds=duration,
            timestamp=timestamp,
            metadata=metadata or RecordMetadata(),
        )

    return _make


@pytest.fixture
def now() -> float:
    return time.time()
