"""Inspection commands over history store snapshots."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from adaptive_learning.learning.embedder import TaskEmbedder
from adaptive_learning.learning.predictor import PerformancePredictor
from adaptive_learning.learning.transfer import TransferLearner

from .helpers import get_config, open_store, output_json
from .output import (
    console,
    create_key_value_table,
    create_prediction_table,
    create_rankings_table,
    format_timestamp,
    quality_color,
)

StoreArg = Annotated[Path, typer.Argument(help="History store JSON snapshot")]
TaskArg = Annotated[str, typer.Argument(help="Task description")]
JsonOption = Annotated[
    bool, typer.Option("--json", "-j", help="Output as JSON for machine parsing")
]


def stats(store_path: StoreArg, json_output: JsonOption = False) -> None:
    """Show summary statistics for a history store.

    Examples:
        adaptive-learning stats storage/agent_history.json
        adaptive-learning stats storage/agent_history.json --json
    """
    store = open_store(store_path)
    summary = store.get_stats()

    if json_output:
        output_json(asdict(summary))
        return

    table = create_key_value_table(f"History: {store_path}")
    table.add_row("Records", str(summary.total_records))
    table.add_row("Unique agents", str(summary.unique_agents))
    table.add_row("Success rate", f"{summary.success_rate * 100:.1f}%")
    color = quality_color(summary.avg_quality)
    table.add_row("Avg quality", f"[{color}]{summary.avg_quality:.2f}[/]")
    table.add_row("Oldest record", format_timestamp(summary.oldest_record))
    table.add_row("Newest record", format_timestamp(summary.newest_record))
    console.print(table)


def best_agents(
    store_path: StoreArg,
    task: TaskArg,
    k: Annotated[int, typer.Option("--k", min=1, help="Neighbours to consider")] = 10,
    top: Annotated[int, typer.Option("--top", min=1, help="Agents to list")] = 3,
    json_output: JsonOption = False,
) -> None:
    """Rank agents by how they did on tasks similar to TASK."""
    store = open_store(store_path)
    rankings = store.get_best_agents_for_similar(TaskEmbedder().embed_text(task), k, top)

    if json_output:
        output_json([asdict(r) for r in rankings])
        return

    if not rankings:
        console.print("[yellow]No similar tasks recorded.[/yellow]")
        return

    table = create_rankings_table()
    for i, ranking in enumerate(rankings, start=1):
        table.add_row(
            str(i),
            ranking.agent_id,
            f"{ranking.score:.3f}",
            f"{ranking.success_rate * 100:.0f}%",
            f"[{quality_color(ranking.avg_quality)}]{ranking.avg_quality:.2f}[/]",
            f"{ranking.avg_similarity:.3f}",
            str(ranking.attempts),
        )
    console.print(table)


def threshold(
    store_path: StoreArg,
    task: TaskArg,
    k: Annotated[int, typer.Option("--k", min=1, help="Neighbours to consider")] = 10,
    json_output: JsonOption = False,
) -> None:
    """Show the adaptive quality threshold for TASK."""
    store = open_store(store_path)
    value = store.get_adaptive_threshold(TaskEmbedder().embed_text(task), k)

    if json_output:
        output_json({"task": task, "threshold": value})
        return
    console.print(f"Adaptive quality threshold: [bold]{value:.1f}[/bold]")


def predict(
    store_path: StoreArg,
    task: TaskArg,
    agent_type: Annotated[
        str | None, typer.Option("--agent-type", "-a", help="Only use this agent's history")
    ] = None,
    k: Annotated[int, typer.Option("--k", min=1, help="Neighbours to consider")] = 10,
    json_output: JsonOption = False,
) -> None:
    """Predict duration, success, and quality for TASK."""
    store = open_store(store_path)
    prediction = PerformancePredictor(store).predict(task, agent_type, k)

    if json_output:
        output_json(asdict(prediction))
        return

    d, s, q = prediction.duration, prediction.success, prediction.quality
    table = create_prediction_table()
    table.add_row(
        "Duration (s)",
        f"{d.estimated:.1f}",
        f"{d.minimum:.1f} - {d.maximum:.1f}",
        f"{d.confidence:.2f}",
        str(d.sample_size),
    )
    table.add_row(
        "Success", f"{s.probability * 100:.0f}%", "-", f"{s.confidence:.2f}", str(s.sample_size)
    )
    table.add_row(
        "Quality",
        f"{q.expected:.2f}",
        f"{q.minimum:.1f} - {q.maximum:.1f}",
        f"{q.confidence:.2f}",
        str(q.sample_size),
    )
    console.print(table)


def bootstrap(
    source_path: Annotated[Path, typer.Argument(help="Source history snapshot")],
    target_path: Annotated[Path, typer.Argument(help="Target history snapshot")],
    source_agent: Annotated[str, typer.Argument(help="Experienced agent id")],
    target_agent: Annotated[str, typer.Argument(help="New agent id")],
    min_quality: Annotated[
        float | None, typer.Option("--min-quality", help="Minimum source quality")
    ] = None,
    max_samples: Annotated[
        int | None, typer.Option("--max-samples", min=1, help="Maximum records to copy")
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Copy SOURCE_AGENT's best records into TARGET_AGENT's history."""
    source = open_store(source_path)
    target = open_store(target_path, must_exist=False)
    learner = TransferLearner(source, target, get_config().transfer)
    result = learner.bootstrap(
        source_agent, target_agent, min_quality=min_quality, max_samples=max_samples
    )
    target.save()

    if json_output:
        output_json(asdict(result))
        return

    console.print(
        f"[green]Transferred {result.transferred}[/green] record(s) "
        f"from [cyan]{source_agent}[/cyan] to [cyan]{target_agent}[/cyan] "
        f"({result.skipped} skipped, {result.adapted} domain-adapted)"
    )


def effectiveness(
    store_path: StoreArg,
    agent: Annotated[str, typer.Argument(help="Agent that received transferred records")],
    json_output: JsonOption = False,
) -> None:
    """Show how AGENT's quality evolved after a transfer."""
    store = open_store(store_path)
    report = TransferLearner(store, store, get_config().transfer).measure_transfer_effectiveness(
        agent
    )

    if json_output:
        output_json(asdict(report))
        return

    table = create_key_value_table(f"Transfer effectiveness: {agent}")
    table.add_row("Cold-start quality", f"{report.cold_start_quality:.2f}")
    table.add_row("Quality improvement", f"{report.quality_improvement:+.2f}")
    table.add_row("Learning speed", f"{report.learning_speed:.4f}")
    table.add_row("Transferred ratio", f"{report.transferred_ratio * 100:.0f}%")
    console.print(table)
