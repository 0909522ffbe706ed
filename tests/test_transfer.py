"""Tests for TransferLearner: bootstrap, fine-tuning, distillation, effectiveness."""

import pytest

from adaptive_learning.core.config import TransferConfig
from adaptive_learning.learning.embedder import TaskEmbedder
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import RecordMetadata
from adaptive_learning.learning.transfer import TransferLearner


@pytest.fixture
def source() -> HistoryStore:
    return HistoryStore(None, name="source")


@pytest.fixture
def target() -> HistoryStore:
    return HistoryStore(None, name="target")


@pytest.fixture
def seeded_source(source: HistoryStore, make_record) -> HistoryStore:
    """Expert agent with two transferable records and two that are not."""
    source.record(make_record((1.0, 0.0, 0.0, 0.0), "expert", quality=9.0))
    source.record(make_record((0.0, 1.0, 0.0, 0.0), "expert", quality=8.0))
    source.record(make_record((0.0, 0.0, 1.0, 0.0), "expert", quality=6.0))
    source.record(make_record((0.0, 0.0, 0.0, 1.0), "expert", quality=9.5, success=False))
    source.record(make_record((1.0, 1.0, 0.0, 0.0), "someone_else", quality=10.0))
    return source


class TestBootstrap:
    """Tests for TransferLearner.bootstrap()."""

    def test_copies_best_successful_records(
        self, seeded_source: HistoryStore, target: HistoryStore
    ) -> None:
        result = TransferLearner(seeded_source, target).bootstrap("expert", "novice")

        assert result.transferred == 2
        assert result.skipped == 0
        records = target.filter({"agent_id": "novice"})
        assert sorted(r.quality_score for r in records) == pytest.approx([7.2, 8.1])

    def test_provenance_recorded(self, seeded_source: HistoryStore, target: HistoryStore) -> None:
        TransferLearner(seeded_source, target).bootstrap("expert", "novice")

        best = max(target.all(), key=lambda r: r.quality_score)
        assert best.metadata.transferred_from == "expert"
        assert best.metadata.original_quality == 9.0
        assert best.id.startswith("transfer_")
        assert best.timestamp is not None

    def test_source_store_unchanged(
        self, seeded_source: HistoryStore, target: HistoryStore
    ) -> None:
        before = seeded_source.all()
        TransferLearner(seeded_source, target).bootstrap("expert", "novice")
        assert seeded_source.all() == before

    def test_rerun_transfers_nothing_new(
        self, seeded_source: HistoryStore, target: HistoryStore
    ) -> None:
        learner = TransferLearner(seeded_source, target)
        learner.bootstrap("expert", "novice")

        second = learner.bootstrap("expert", "novice")

        assert second.transferred == 0
        assert second.skipped == 2
        assert len(target) == 2

    def test_max_samples_keeps_best(
        self, seeded_source: HistoryStore, target: HistoryStore
    ) -> None:
        result = TransferLearner(seeded_source, target).bootstrap(
            "expert", "novice", max_samples=1
        )
        assert result.transferred == 1
        assert target.all()[0].metadata.original_quality == 9.0

    def test_min_quality_override(
        self, seeded_source: HistoryStore, target: HistoryStore
    ) -> None:
        result = TransferLearner(seeded_source, target).bootstrap(
            "expert", "novice", min_quality=5.0
        )
        assert result.transferred == 3

    def test_configured_discount(self, seeded_source: HistoryStore, target: HistoryStore) -> None:
        learner = TransferLearner(seeded_source, target, TransferConfig(transfer_discount=0.5))
        learner.bootstrap("expert", "novice", max_samples=1)
        assert target.all()[0].quality_score == pytest.approx(4.5)

    def test_unknown_source_agent(self, seeded_source: HistoryStore, target: HistoryStore) -> None:
        result = TransferLearner(seeded_source, target).bootstrap("nobody", "novice")
        assert (result.transferred, result.skipped, result.adapted) == (0, 0, 0)
        assert len(target) == 0


class TestDomainAdaptation:
    """Tests for domain mappings applied during transfer."""

    def test_bootstrap_rewrites_task_and_domain(
        self, source: HistoryStore, target: HistoryStore, make_record
    ) -> None:
        source.record(
            make_record(
                agent_id="expert",
                task_text="write python tests",
                metadata=RecordMetadata(domain="python", extra={"tag": "x"}),
            )
        )
        learner = TransferLearner(source, target).set_domain_mappings({"python": "rust"})

        result = learner.bootstrap("expert", "novice")

        assert result.adapted == 1
        copied = target.all()[0]
        assert copied.task_text == "write rust tests"
        assert copied.metadata.domain == "rust"
        assert copied.metadata.extra == {"tag": "x", "domain_adapted": True}

    def test_adaptation_disabled(
        self, source: HistoryStore, target: HistoryStore, make_record
    ) -> None:
        source.record(make_record(agent_id="expert", task_text="write python tests"))
        learner = TransferLearner(source, target).set_domain_mappings({"python": "rust"})

        result = learner.bootstrap("expert", "novice", domain_adaptation=False)

        assert result.adapted == 0
        assert target.all()[0].task_text == "write python tests"

    def test_no_mappings_returns_record_unchanged(
        self, source: HistoryStore, target: HistoryStore, make_record
    ) -> None:
        record = make_record(task_text="write python tests")
        assert TransferLearner(source, target).adapt_domain(record) is record

    def test_mappings_from_config(self, source: HistoryStore, target: HistoryStore) -> None:
        learner = TransferLearner(
            source, target, TransferConfig(domain_mappings={"sql": "graphql"})
        )
        assert learner.domain_mappings == {"sql": "graphql"}


class TestFineTune:
    """Tests for TransferLearner.fine_tune()."""

    def test_empty_source(self, source: HistoryStore, target: HistoryStore) -> None:
        result = TransferLearner(source, target).fine_tune("summarize a report")
        assert result.recommendations == []
        assert result.confidence == 0.0
        assert result.source_count == 0

    def test_recommendations_adapted(
        self,
        source: HistoryStore,
        target: HistoryStore,
        embedder: TaskEmbedder,
        make_record,
    ) -> None:
        task = "summarize a sql report"
        source.record(
            make_record(
                embedder.embed_text(task),
                "expert",
                quality=8.0,
                task_text=task,
            )
        )
        learner = TransferLearner(source, target).set_domain_mappings({"sql": "graphql"})

        result = learner.fine_tune(task, k=3)

        assert result.source_count == 1
        assert result.recommendations[0].task_text == "summarize a graphql report"
        assert result.recommendations[0].agent_id == "expert"
        assert result.confidence == pytest.approx(0.6 + 0.32, abs=1e-3)


class TestDistill:
    """Tests for TransferLearner.distill()."""

    @pytest.fixture
    def pool(self, source: HistoryStore, make_record) -> HistoryStore:
        source.record(make_record((1.0, 0.0, 0.0), "a", quality=9.0))
        source.record(make_record((0.99, 0.1, 0.0), "b", quality=8.5))
        source.record(make_record((0.0, 1.0, 0.0), "b", quality=8.0))
        source.record(make_record((0.0, 0.0, 1.0), "a", quality=7.6))
        source.record(make_record((0.0, 0.0, 1.0), "a", quality=6.0))
        source.record(make_record((0.5, 0.5, 0.0), "c", quality=9.9))
        return source

    def test_selects_diverse_samples(self, pool: HistoryStore, target: HistoryStore) -> None:
        result = TransferLearner(pool, target).distill(["a", "b"], "student", max_samples=2)

        assert result.distilled == 2
        assert result.sources_used == 2
        assert result.avg_quality == pytest.approx(8.5)
        embeddings = {r.embedding for r in target.all()}
        assert embeddings == {(1.0, 0.0, 0.0), (0.0, 1.0, 0.0)}

    def test_distilled_records_tagged_and_discounted(
        self, pool: HistoryStore, target: HistoryStore
    ) -> None:
        TransferLearner(pool, target).distill(["a", "b"], "student", max_samples=2)

        best = max(target.all(), key=lambda r: r.quality_score)
        assert best.agent_id == "student"
        assert best.quality_score == pytest.approx(8.55)
        assert best.metadata.distilled_from == ("a", "b")
        assert best.metadata.extra["distillation_method"] == "representative_sampling"

    def test_small_pool_kept_whole(self, pool: HistoryStore, target: HistoryStore) -> None:
        result = TransferLearner(pool, target).distill(["a", "b"], "student")
        assert result.distilled == 4

    def test_no_candidates(self, pool: HistoryStore, target: HistoryStore) -> None:
        result = TransferLearner(pool, target).distill(["nobody"], "student")
        assert result.distilled == 0
        assert result.avg_quality == 0.0


class TestTransferEffectiveness:
    """Tests for TransferLearner.measure_transfer_effectiveness()."""

    def test_unknown_agent(self, source: HistoryStore, target: HistoryStore) -> None:
        report = TransferLearner(source, target).measure_transfer_effectiveness("nobody")
        assert report.cold_start_quality == 0.0
        assert report.learning_speed == 0.0

    def test_quality_trajectory(
        self, source: HistoryStore, target: HistoryStore, make_record
    ) -> None:
        qualities = [4.0, 4.0] + [6.0] * 8 + [9.0, 9.0]
        for i, quality in enumerate(qualities):
            metadata = RecordMetadata(transferred_from="expert") if i < 2 else None
            target.record(
                make_record(
                    agent_id="novice",
                    quality=quality,
                    timestamp=1000.0 + i,
                    metadata=metadata,
                )
            )

        report = TransferLearner(source, target).measure_transfer_effectiveness("novice")

        assert report.cold_start_quality == pytest.approx(5.2)
        assert report.quality_improvement == pytest.approx(1.0)
        assert report.learning_speed == pytest.approx(0.0909)
        assert report.transferred_ratio == pytest.approx(0.17)
