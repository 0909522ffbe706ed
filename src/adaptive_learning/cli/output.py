"""Rich formatting for the CLI: the shared console and table factories."""

from __future__ import annotations

from datetime import UTC, datetime

from rich.console import Console
from rich.table import Table

console = Console()


def format_timestamp(timestamp: float | None) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def quality_color(quality: float) -> str:
    if quality >= 8.0:
        return "green"
    if quality >= 6.0:
        return "yellow"
    return "red"


def create_key_value_table(title: str) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")
    return table


def create_rankings_table() -> Table:
    """Create a styled table for agent rankings."""
    table = Table(title="Best Agents", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("Score", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Quality", justify="right")
    table.add_column("Similarity", justify="right")
    table.add_column("Attempts", justify="right")
    return table


def create_prediction_table() -> Table:
    table = Table(title="Prediction", show_header=True, header_style="bold")
    table.add_column("Metric", style="cyan")
    table.add_column("Estimate", justify="right")
    table.add_column("Range", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Samples", justify="right")
    return table
