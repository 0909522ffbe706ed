"""Configuration models for the learning engine.

Every tunable constant of the engine lives here with its empirical default.
The weights and cut-offs (best-agent scoring, adaptive threshold offset,
uncertainty threshold, distillation diversity cut-off) carry no derivation;
they are exposed so deployments can adjust them rather than fixed in code.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator

EnsembleStrategyName = Literal[
    "voting", "weighted_voting", "bagging", "stacking", "best_of_n"
]
SamplingStrategyName = Literal["uncertainty", "diversity", "error_reduction", "committee"]


class LogConfig(BaseModel):
    """Structured logging settings passed to ``configure_logging()``."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to emit.",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Output format. 'both' writes console to stderr and JSON to file_path.",
    )
    file_path: Path | None = Field(
        default=None,
        description="Log file path. Required when format='both'.",
    )
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Rotate the log file once it reaches this size.",
    )
    backup_count: int = Field(
        default=3,
        ge=0,
        le=100,
        description="Number of rotated log files to keep.",
    )
    include_timestamps: bool = Field(default=True)
    include_context: bool = Field(
        default=True,
        description="Merge the active LearningContext (store, run_id) into log entries.",
    )

    @model_validator(mode="after")
    def _require_file_for_both(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError("file_path is required when format='both'")
        return self


class HistoryStoreConfig(BaseModel):
    """Settings for one persisted history store."""

    path: Path | None = Field(
        default=None,
        description="Snapshot file. None keeps the store in memory only.",
    )
    auto_save: bool = Field(
        default=True,
        description="Rewrite the snapshot after every record().",
    )
    max_history_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum records retained. The oldest by timestamp are evicted first.",
    )
    half_life_days: float = Field(
        default=30.0,
        gt=0.0,
        description="Half-life of the temporal decay applied to neighbour similarity.",
    )


class ScoringConfig(BaseModel):
    """Weights for best-agent ranking and the adaptive quality threshold.

    best-agent score = success_weight * success_rate
                     + quality_weight * avg_quality / 10
                     + similarity_weight * avg_similarity
    threshold = clamp(mean - threshold_std_offset * std, floor, ceiling)
    """

    success_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    quality_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    similarity_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    threshold_std_offset: float = Field(
        default=0.5,
        ge=0.0,
        description="Standard deviations subtracted from the mean neighbour quality.",
    )
    threshold_floor: float = Field(default=5.0, ge=0.0, le=10.0)
    threshold_ceiling: float = Field(default=9.5, ge=0.0, le=10.0)
    default_threshold: float = Field(
        default=7.0,
        ge=0.0,
        le=10.0,
        description="Returned when no successful similar task exists.",
    )

    @model_validator(mode="after")
    def _validate_threshold_bounds(self) -> ScoringConfig:
        if self.threshold_floor > self.threshold_ceiling:
            raise ValueError(
                f"threshold_floor ({self.threshold_floor}) must not exceed "
                f"threshold_ceiling ({self.threshold_ceiling})"
            )
        return self


class EnsembleConfig(BaseModel):
    """Ensemble combiner defaults."""

    strategy: EnsembleStrategyName = Field(
        default="weighted_voting",
        description="Strategy used when combine() is not given one.",
    )
    bagging_k: int | None = Field(
        default=None,
        ge=1,
        description="Bootstrap sample size. None samples as many as there are successes.",
    )
    random_seed: int | None = Field(
        default=None,
        description="Seed for bagging. Set for reproducible combinations.",
    )


class TransferConfig(BaseModel):
    """Bootstrap and distillation settings for the transfer engine."""

    min_quality: float = Field(default=7.0, ge=0.0, le=10.0)
    similarity_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Skip a source sample if the target already has a neighbour above this.",
    )
    max_samples: int = Field(default=50, ge=1)
    transfer_discount: float = Field(default=0.9, ge=0.0, le=1.0)
    domain_adaptation: bool = Field(default=True)
    distill_min_quality: float = Field(default=7.5, ge=0.0, le=10.0)
    distill_max_samples: int = Field(default=100, ge=1)
    distill_discount: float = Field(default=0.95, ge=0.0, le=1.0)
    diversity_cutoff: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="A distillation candidate is kept only if its max similarity "
        "to already selected samples is below this.",
    )
    domain_mappings: dict[str, str] = Field(
        default_factory=dict,
        description="Source term -> target term substitutions applied to task text and domain.",
    )


class ActiveLearningConfig(BaseModel):
    """Active-learning selector settings."""

    sampling_strategy: SamplingStrategyName = Field(default="uncertainty")
    uncertainty_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Query a human when the uncertainty score reaches this value.",
    )
    neighbor_count: int = Field(default=5, ge=1)


class MetaLearningConfig(BaseModel):
    """Meta-learner hyperparameters."""

    default_learning_rate: float = Field(default=0.01, gt=0.0, le=1.0)
    adaptation_window: int = Field(default=5, ge=1)
    min_samples_for_adaptation: int = Field(default=3, ge=1)
    meta_batch_size: int = Field(default=10, ge=1)
    ema_alpha: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="Smoothing factor for strategy success rate and sample efficiency.",
    )
    min_learning_rate: float = Field(default=0.001, gt=0.0)
    max_learning_rate: float = Field(default=0.1, gt=0.0)

    @model_validator(mode="after")
    def _validate_learning_rate_bounds(self) -> MetaLearningConfig:
        if self.min_learning_rate > self.max_learning_rate:
            raise ValueError(
                f"min_learning_rate ({self.min_learning_rate}) must not exceed "
                f"max_learning_rate ({self.max_learning_rate})"
            )
        return self


class PromptOptimizerConfig(BaseModel):
    """Prompt optimizer settings."""

    k: int = Field(default=5, ge=1, description="Neighbours retrieved for optimisation.")
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    max_tokens: int = Field(default=2048, ge=1)
    min_example_quality: float = Field(default=7.0, ge=0.0, le=10.0)
    max_examples: int = Field(default=3, ge=1)


class EngineConfig(BaseModel):
    """Root configuration for the learning engine.

    Example YAML:
        history:
          path: ./storage/agent_history.json
          max_history_size: 500
        ensemble:
          strategy: voting
        logging:
          level: DEBUG
    """

    history: HistoryStoreConfig = Field(default_factory=HistoryStoreConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    ensemble: EnsembleConfig = Field(default_factory=EnsembleConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    active_learning: ActiveLearningConfig = Field(default_factory=ActiveLearningConfig)
    meta_learning: MetaLearningConfig = Field(default_factory=MetaLearningConfig)
    prompt_optimizer: PromptOptimizerConfig = Field(default_factory=PromptOptimizerConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> EngineConfig:
        """Load engine configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> EngineConfig:
        """Load engine configuration from a YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})
