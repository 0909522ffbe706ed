"""Shared state and helpers for CLI commands.

Global options are stored at module level by the app callback and read by
the commands.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import typer
import yaml
from pydantic import ValidationError
from rich.markup import escape

from adaptive_learning.core.config import EngineConfig
from adaptive_learning.core.logging import configure_logging
from adaptive_learning.learning.store.history import HistoryStore

from .output import console

_config: EngineConfig = EngineConfig()


def get_config() -> EngineConfig:
    return _config


def set_config(config: EngineConfig) -> None:
    global _config
    _config = config


def reset_state() -> None:
    """Restore default configuration (used by tests)."""
    set_config(EngineConfig())


def load_config(path: Path | None) -> EngineConfig:
    """Load ``path`` or return the defaults.

    Raises:
        typer.Exit: If the file cannot be read or fails validation.
    """
    if path is None:
        return EngineConfig()
    try:
        return EngineConfig.from_yaml(path)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        console.print(f"[red]Invalid configuration {path}:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


def setup_logging(config: EngineConfig, level: str | None) -> None:
    log = config.logging
    try:
        configure_logging(
            level=level or log.level,  # type: ignore[arg-type]
            format=log.format,
            file_path=log.file_path,
            max_file_size_mb=log.max_file_size_mb,
            backup_count=log.backup_count,
            include_timestamps=log.include_timestamps,
            include_context=log.include_context,
        )
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def open_store(path: Path, *, must_exist: bool = True, auto_save: bool = False) -> HistoryStore:
    """Open a history store snapshot with the active configuration.

    Raises:
        typer.Exit: If ``must_exist`` and the snapshot file is missing.
    """
    if must_exist and not path.exists():
        console.print(f"[red]History file not found:[/red] {path}")
        raise typer.Exit(1)

    config = get_config()
    return HistoryStore(
        path,
        auto_save=auto_save,
        max_history_size=config.history.max_history_size,
        half_life_days=config.history.half_life_days,
        scoring=config.scoring,
    )


def _to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, Enum):
        return value.value
    return str(value)


def output_json(data: Any) -> None:
    """Print ``data`` as indented JSON without Rich markup or wrapping."""
    console.print(
        json.dumps(data, indent=2, default=_to_jsonable),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )
