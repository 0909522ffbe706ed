"""Tests for ActiveLearner sampling strategies and the feedback queue."""

import pytest

from adaptive_learning.core.config import ActiveLearningConfig
from adaptive_learning.core.errors import UnknownStrategyError
from adaptive_learning.learning.active import (
    HUMAN_FEEDBACK_AGENT,
    ActiveLearner,
    SamplingStrategy,
    uncertainty_reason,
)
from adaptive_learning.learning.embedder import TaskEmbedder
from adaptive_learning.learning.ensemble import AgentResult, EnsembleLearner
from adaptive_learning.learning.store.history import HistoryStore

TASK = "classify the sentiment of this review"


@pytest.fixture
def learner(store: HistoryStore) -> ActiveLearner:
    return ActiveLearner(store)


class StaticAgent:
    def __init__(self, answer: str) -> None:
        self.answer = answer

    def run(self, task: str) -> AgentResult:
        return AgentResult(answer=self.answer)


def seed_neighbors(store: HistoryStore, make_record, embedder: TaskEmbedder, **kwargs) -> None:
    vector = embedder.embed_text(TASK)
    for _ in range(3):
        store.record(make_record(vector, "agent_a", **kwargs))


class TestSamplingStrategy:
    """Tests for strategy parsing and switching."""

    def test_parse_by_name(self) -> None:
        assert SamplingStrategy.parse("committee") is SamplingStrategy.COMMITTEE

    def test_unknown_name_raises(self) -> None:
        with pytest.raises(UnknownStrategyError, match="sampling strategy 'random'"):
            SamplingStrategy.parse("random")

    def test_set_unknown_strategy_raises(self, learner: ActiveLearner) -> None:
        with pytest.raises(UnknownStrategyError):
            learner.set_sampling_strategy("random")
        assert learner.sampling_strategy is SamplingStrategy.UNCERTAINTY

    def test_configured_strategy(self, store: HistoryStore) -> None:
        learner = ActiveLearner(store, ActiveLearningConfig(sampling_strategy="diversity"))
        assert learner.sampling_strategy is SamplingStrategy.DIVERSITY


class TestUncertaintyReason:
    """Tests for uncertainty_reason() buckets."""

    @pytest.mark.parametrize(
        "score, prefix",
        [
            (0.9, "Very high"),
            (0.7, "Very high"),
            (0.55, "High"),
            (0.3, "Moderate"),
            (0.1, "Low"),
        ],
    )
    def test_buckets(self, score: float, prefix: str) -> None:
        assert uncertainty_reason(score).startswith(prefix)


class TestShouldQuery:
    """Tests for ActiveLearner.should_query() across strategies."""

    def test_uncertainty_without_history(self, learner: ActiveLearner) -> None:
        decision = learner.should_query(TASK, AgentResult(answer="positive"), confidence=0.9)

        assert decision.uncertainty == pytest.approx(0.4)
        assert decision.should_query is True
        assert decision.reason.startswith("Moderate")
        assert decision.strategy is SamplingStrategy.UNCERTAINTY

    def test_uncertainty_with_consistent_history(
        self, store: HistoryStore, learner: ActiveLearner, make_record, embedder: TaskEmbedder
    ) -> None:
        seed_neighbors(store, make_record, embedder, quality=8.0)

        decision = learner.should_query(TASK, AgentResult(answer="positive"), confidence=0.9)

        assert decision.uncertainty == pytest.approx(0.07)
        assert decision.should_query is False
        assert learner.get_query_queue() == []

    def test_confidence_taken_from_result(self, learner: ActiveLearner) -> None:
        decision = learner.should_query(TASK, AgentResult(answer="x", confidence=1.0))
        assert decision.uncertainty == pytest.approx(0.3)

    def test_confidence_defaults_to_half(self, learner: ActiveLearner) -> None:
        decision = learner.should_query(TASK, AgentResult(answer="x"))
        assert decision.uncertainty == pytest.approx(0.8)

    def test_threshold_override(self, learner: ActiveLearner) -> None:
        decision = learner.should_query(
            TASK, AgentResult(answer="x"), confidence=0.9, threshold=0.5
        )
        assert decision.should_query is False

    def test_diversity_novel_task(self, learner: ActiveLearner) -> None:
        learner.set_sampling_strategy("diversity")
        decision = learner.should_query(TASK, AgentResult(answer="x"))
        assert decision.uncertainty == pytest.approx(0.9)
        assert decision.reason.startswith("Very high")

    def test_diversity_known_task(
        self, store: HistoryStore, learner: ActiveLearner, make_record, embedder: TaskEmbedder
    ) -> None:
        seed_neighbors(store, make_record, embedder)
        learner.set_sampling_strategy(SamplingStrategy.DIVERSITY)

        decision = learner.should_query(TASK, AgentResult(answer="x"))

        assert decision.uncertainty == pytest.approx(0.0, abs=1e-3)
        assert decision.should_query is False

    def test_error_reduction_without_history(self, learner: ActiveLearner) -> None:
        learner.set_sampling_strategy("error_reduction")
        assert learner.should_query(TASK, AgentResult()).uncertainty == pytest.approx(0.8)

    def test_error_reduction_ignores_good_neighbors(
        self, store: HistoryStore, learner: ActiveLearner, make_record, embedder: TaskEmbedder
    ) -> None:
        seed_neighbors(store, make_record, embedder, quality=9.0)
        learner.set_sampling_strategy("error_reduction")
        assert learner.should_query(TASK, AgentResult()).uncertainty == 0.0

    def test_committee_uses_vote_spread(self, learner: ActiveLearner) -> None:
        learner.set_sampling_strategy("committee")
        result = AgentResult(answer="x", metadata={"votes": {"a": 1.0, "b": 0.0}})
        assert learner.should_query(TASK, result).uncertainty == pytest.approx(0.5)

    def test_committee_reads_ensemble_votes(self, learner: ActiveLearner) -> None:
        """Vote counts written by EnsembleLearner feed the committee score."""
        agents = {
            "a": StaticAgent("Paris"),
            "b": StaticAgent("Paris"),
            "c": StaticAgent("Lyon"),
        }
        combined = EnsembleLearner(HistoryStore(None)).combine("capital?", agents, "voting")
        learner.set_sampling_strategy("committee")

        decision = learner.should_query(TASK, combined, confidence=0.9)

        assert decision.uncertainty == pytest.approx(0.5)

    def test_committee_without_votes(self, learner: ActiveLearner) -> None:
        learner.set_sampling_strategy("committee")
        decision = learner.should_query(TASK, AgentResult(answer="x"), confidence=0.75)
        assert decision.uncertainty == pytest.approx(0.25)


class TestQueryQueue:
    """Tests for the pending-feedback queue."""

    def test_queue_deduplicates_by_task(self, learner: ActiveLearner) -> None:
        learner.should_query(TASK, AgentResult(answer="a"))
        learner.should_query(TASK, AgentResult(answer="b"))
        assert len(learner.get_query_queue()) == 1

    def test_queue_ordered_by_priority(self, learner: ActiveLearner) -> None:
        learner.should_query("first task", AgentResult(), confidence=0.6)
        learner.should_query("second task", AgentResult(), confidence=0.1)

        queue = learner.get_query_queue()

        assert [e.task for e in queue] == ["second task", "first task"]
        assert [e.task for e in learner.get_query_queue(limit=1)] == ["second task"]

    def test_clear(self, learner: ActiveLearner) -> None:
        learner.should_query(TASK, AgentResult())
        learner.clear_query_queue()
        assert learner.get_query_queue() == []


class TestFeedback:
    """Tests for record_feedback() and get_statistics()."""

    def test_feedback_record(self, store: HistoryStore, learner: ActiveLearner) -> None:
        record = learner.record_feedback(TASK, "negative", 8.5)

        assert record.agent_id == HUMAN_FEEDBACK_AGENT
        assert record.success is True
        assert record.metadata.extra["correct_answer"] == "negative"
        assert record.metadata.extra["feedback_source"] == "human"
        assert record.metadata.extra["learning_method"] == "active"
        assert store.all() == [record]

    def test_low_quality_feedback_is_failure(self, learner: ActiveLearner) -> None:
        assert learner.record_feedback(TASK, "meh", 4.0).success is False

    def test_feedback_dequeues_task(self, learner: ActiveLearner) -> None:
        learner.should_query(TASK, AgentResult())
        learner.should_query("another task", AgentResult())

        learner.record_feedback(TASK, "negative", 8.0)

        assert [e.task for e in learner.get_query_queue()] == ["another task"]

    def test_statistics_empty(self, learner: ActiveLearner) -> None:
        stats = learner.get_statistics()
        assert stats.total_queries == 0
        assert stats.avg_feedback_quality == 0.0

    def test_statistics_trend(self, learner: ActiveLearner) -> None:
        for quality in [5.0, 5.0, 5.0, 5.0, 5.0, 8.0]:
            learner.record_feedback(TASK, "answer", quality)
        learner.should_query("pending task", AgentResult())

        stats = learner.get_statistics()

        assert stats.feedback_received == 6
        assert stats.pending_queries == 1
        assert stats.total_queries == 7
        assert stats.quality_improvement == pytest.approx(0.6)
        assert stats.efficiency == pytest.approx(0.1)
        assert stats.avg_feedback_quality == pytest.approx(5.5)
