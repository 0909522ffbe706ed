"""adaptive-learning CLI: inspect history stores and run transfers.

The library is the primary surface; these commands read snapshot files for
inspection and scripting.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from adaptive_learning import __version__

from .commands import best_agents, bootstrap, effectiveness, predict, stats, threshold
from .helpers import load_config, set_config, setup_logging
from .output import console

app = typer.Typer(
    name="adaptive-learning",
    help="Inspect adaptive-learning history stores",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"adaptive-learning v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="ADAPTIVE_LEARNING_LOG_LEVEL",
        ),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Engine configuration YAML",
            envvar="ADAPTIVE_LEARNING_CONFIG",
        ),
    ] = None,
) -> None:
    """Adaptive learning engine for AI agents."""
    if log_level is not None and log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        console.print(f"[red]Invalid log level:[/red] {log_level}")
        raise typer.Exit(1)

    config = load_config(config_path)
    set_config(config)
    # WARNING unless --log-level or a config file says otherwise.
    level = log_level.upper() if log_level else (None if config_path else "WARNING")
    setup_logging(config, level)


app.command()(stats)
app.command(name="best-agents")(best_agents)
app.command()(threshold)
app.command()(predict)
app.command()(bootstrap)
app.command()(effectiveness)


def main() -> None:
    """Entry point for the ``adaptive-learning`` console script."""
    app()


__all__ = ["app", "main"]
