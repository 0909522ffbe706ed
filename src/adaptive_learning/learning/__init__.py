"""Learning components: embedding, k-NN history, and the learners built on it."""

from adaptive_learning.learning.active import ActiveLearner, SamplingStrategy
from adaptive_learning.learning.embedder import TaskAnalysis, TaskEmbedder
from adaptive_learning.learning.ensemble import (
    Agent,
    AgentResult,
    EnsembleLearner,
    EnsembleStrategy,
)
from adaptive_learning.learning.meta import FewShotExample, LearningStrategy, MetaLearner
from adaptive_learning.learning.predictor import PerformancePredictor
from adaptive_learning.learning.prompt_optimizer import PromptOptimizer
from adaptive_learning.learning.selectors import ParameterOptimizer, StrategySelector
from adaptive_learning.learning.similarity import DistanceMetric, find_nearest
from adaptive_learning.learning.store import HistoryStore, RecordMetadata, TaskRecord
from adaptive_learning.learning.tracker import ExecutionTracker
from adaptive_learning.learning.transfer import TransferLearner

__all__ = [
    "ActiveLearner",
    "Agent",
    "AgentResult",
    "DistanceMetric",
    "EnsembleLearner",
    "EnsembleStrategy",
    "ExecutionTracker",
    "FewShotExample",
    "HistoryStore",
    "LearningStrategy",
    "MetaLearner",
    "ParameterOptimizer",
    "PerformancePredictor",
    "PromptOptimizer",
    "RecordMetadata",
    "SamplingStrategy",
    "StrategySelector",
    "TaskAnalysis",
    "TaskEmbedder",
    "TaskRecord",
    "TransferLearner",
    "find_nearest",
]
