"""Tests for the adaptive-learning CLI."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from adaptive_learning import __version__
from adaptive_learning.cli import app
from adaptive_learning.learning.predictor import PerformancePredictor
from adaptive_learning.learning.store.history import HistoryStore

runner = CliRunner()

TASK = "summarize the quarterly report"


@pytest.fixture
def seeded_history(history_path: Path) -> Path:
    """Snapshot with two successful react runs and one failed cot run."""
    predictor = PerformancePredictor(HistoryStore(history_path))
    predictor.record_performance(TASK, "react", True, 12.0, 9.0)
    predictor.record_performance(TASK, "react", True, 18.0, 9.0)
    predictor.record_performance(TASK, "cot", False, 30.0, 3.0)
    return history_path


class TestGlobalOptions:
    """Tests for the app callback options."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"adaptive-learning v{__version__}" in result.stdout

    def test_invalid_log_level(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["--log-level", "LOUD", "stats", str(seeded_history)])
        assert result.exit_code == 1
        assert "Invalid log level" in result.stdout

    def test_invalid_config_file(self, tmp_path: Path, seeded_history: Path) -> None:
        config = tmp_path / "engine.yaml"
        config.write_text("scoring:\n  threshold_floor: 9\n  threshold_ceiling: 6\n")

        result = runner.invoke(app, ["--config", str(config), "stats", str(seeded_history)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout

    def test_config_applies_to_commands(self, tmp_path: Path, seeded_history: Path) -> None:
        config = tmp_path / "engine.yaml"
        config.write_text("scoring:\n  threshold_ceiling: 8.0\nlogging:\n  level: ERROR\n")

        result = runner.invoke(
            app, ["-c", str(config), "threshold", str(seeded_history), TASK, "--json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["threshold"] == 8.0


class TestStatsCommand:
    """Tests for the stats command."""

    def test_json(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["stats", str(seeded_history), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total_records"] == 3
        assert data["unique_agents"] == 2
        assert data["success_rate"] == pytest.approx(2 / 3)

    def test_table(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["stats", str(seeded_history)])
        assert result.exit_code == 0
        assert "Records" in result.stdout
        assert "Unique agents" in result.stdout

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["stats", str(tmp_path / "missing.json")])
        assert result.exit_code == 1
        assert "History file not found" in result.stdout


class TestQueryCommands:
    """Tests for best-agents, threshold, and predict."""

    def test_best_agents_json(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["best-agents", str(seeded_history), TASK, "--json"])

        assert result.exit_code == 0
        rankings = json.loads(result.stdout)
        assert [r["agent_id"] for r in rankings] == ["react", "cot"]
        assert rankings[0]["attempts"] == 2

    def test_best_agents_top(self, seeded_history: Path) -> None:
        result = runner.invoke(
            app, ["best-agents", str(seeded_history), TASK, "--top", "1", "--json"]
        )
        assert len(json.loads(result.stdout)) == 1

    def test_best_agents_table(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["best-agents", str(seeded_history), TASK])
        assert result.exit_code == 0
        assert "react" in result.stdout

    def test_best_agents_empty_store(self, history_path: Path) -> None:
        HistoryStore(history_path).save()

        result = runner.invoke(app, ["best-agents", str(history_path), TASK])

        assert result.exit_code == 0
        assert "No similar tasks recorded." in result.stdout

    def test_threshold_json(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["threshold", str(seeded_history), TASK, "-j"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"task": TASK, "threshold": 9.0}

    def test_threshold_text(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["threshold", str(seeded_history), TASK])
        assert "Adaptive quality threshold: 9.0" in result.stdout

    def test_predict_json_for_agent(self, seeded_history: Path) -> None:
        result = runner.invoke(
            app, ["predict", str(seeded_history), TASK, "--agent-type", "react", "--json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["success"]["probability"] == 1.0
        assert data["quality"]["expected"] == pytest.approx(9.0)
        assert data["duration"]["estimated"] == pytest.approx(15.0)
        assert data["duration"]["sample_size"] == 2

    def test_predict_table(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["predict", str(seeded_history), TASK])
        assert result.exit_code == 0
        assert "Duration" in result.stdout
        assert "Quality" in result.stdout


class TestTransferCommands:
    """Tests for bootstrap and effectiveness."""

    def test_bootstrap_creates_target(self, seeded_history: Path, tmp_path: Path) -> None:
        target = tmp_path / "novice.json"

        result = runner.invoke(
            app, ["bootstrap", str(seeded_history), str(target), "react", "novice", "--json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["transferred"] == 1
        assert data["skipped"] == 1
        [record] = HistoryStore(target).all()
        assert record.agent_id == "novice"
        assert record.metadata.transferred_from == "react"

    def test_bootstrap_rerun_is_noop(self, seeded_history: Path, tmp_path: Path) -> None:
        target = tmp_path / "novice.json"
        args = ["bootstrap", str(seeded_history), str(target), "react", "novice"]
        runner.invoke(app, args)

        result = runner.invoke(app, args)

        assert result.exit_code == 0
        assert "Transferred 0 record(s)" in result.stdout
        assert len(HistoryStore(target)) == 1

    def test_bootstrap_min_quality(self, seeded_history: Path, tmp_path: Path) -> None:
        target = tmp_path / "novice.json"
        result = runner.invoke(
            app,
            [
                "bootstrap",
                str(seeded_history),
                str(target),
                "react",
                "novice",
                "--min-quality",
                "9.5",
                "--json",
            ],
        )
        assert json.loads(result.stdout)["transferred"] == 0

    def test_effectiveness_json(self, seeded_history: Path, tmp_path: Path) -> None:
        target = tmp_path / "novice.json"
        runner.invoke(app, ["bootstrap", str(seeded_history), str(target), "react", "novice"])

        result = runner.invoke(app, ["effectiveness", str(target), "novice", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["transferred_ratio"] == 1.0
        assert data["cold_start_quality"] == pytest.approx(8.1)
        assert data["learning_speed"] == 1.0

    def test_effectiveness_table(self, seeded_history: Path) -> None:
        result = runner.invoke(app, ["effectiveness", str(seeded_history), "react"])
        assert result.exit_code == 0
        assert "Cold-start quality" in result.stdout
