"""Core configuration, errors, and logging for the learning engine."""

from adaptive_learning.core.config import (
    ActiveLearningConfig,
    EngineConfig,
    EnsembleConfig,
    HistoryStoreConfig,
    LogConfig,
    MetaLearningConfig,
    PromptOptimizerConfig,
    ScoringConfig,
    TransferConfig,
)
from adaptive_learning.core.errors import (
    ConfigurationError,
    GenerationError,
    InsufficientDataError,
    InvalidRecordError,
    LearningError,
    UnknownStrategyError,
)

__all__ = [
    "ActiveLearningConfig",
    "ConfigurationError",
    "EngineConfig",
    "EnsembleConfig",
    "GenerationError",
    "HistoryStoreConfig",
    "InsufficientDataError",
    "InvalidRecordError",
    "LearningError",
    "LogConfig",
    "MetaLearningConfig",
    "PromptOptimizerConfig",
    "ScoringConfig",
    "TransferConfig",
    "UnknownStrategyError",
]
