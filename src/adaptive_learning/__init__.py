"""Adaptive learning engine for AI agents.

k-NN retrieval over a persisted history of task outcomes, with learners for
agent selection, ensembles, transfer, active learning, meta-learning,
prompt optimisation, and performance prediction.
"""

from adaptive_learning.core.config import EngineConfig
from adaptive_learning.core.errors import LearningError
from adaptive_learning.core.logging import configure_logging, get_logger
from adaptive_learning.learning import (
    ActiveLearner,
    AgentResult,
    EnsembleLearner,
    ExecutionTracker,
    HistoryStore,
    MetaLearner,
    ParameterOptimizer,
    PerformancePredictor,
    PromptOptimizer,
    StrategySelector,
    TaskEmbedder,
    TaskRecord,
    TransferLearner,
)

__version__ = "0.4.0"

__all__ = [
    "ActiveLearner",
    "AgentResult",
    "EngineConfig",
    "EnsembleLearner",
    "ExecutionTracker",
    "HistoryStore",
    "LearningError",
    "MetaLearner",
    "ParameterOptimizer",
    "PerformancePredictor",
    "PromptOptimizer",
    "StrategySelector",
    "TaskEmbedder",
    "TaskRecord",
    "TransferLearner",
    "__version__",
    "configure_logging",
    "get_logger",
]
