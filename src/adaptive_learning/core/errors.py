"""Exception hierarchy for the learning engine.

All engine exceptions inherit from LearningError so callers can catch broadly
or narrowly. Configuration and input errors also subclass ValueError.

Recoverable runtime conditions (a corrupt snapshot, mismatched vector
dimensions, empty neighbour sets, a failing agent inside an ensemble, a
failing text generator inside the prompt optimizer) are handled where they
occur and never surface as exceptions.
"""

from __future__ import annotations

from collections.abc import Iterable


class LearningError(Exception):
    """Base exception for all learning-engine errors."""


class ConfigurationError(LearningError, ValueError):
    """Raised for invalid engine configuration."""


class UnknownStrategyError(ConfigurationError):
    """Raised when a strategy name is not one of the registered strategies.

    Unknown ensemble, sampling, or meta-learning strategy names are
    programmer errors and fail immediately.
    """

    def __init__(self, kind: str, name: str, valid: Iterable[str]) -> None:
        self.kind = kind
        self.name = name
        self.valid = sorted(valid)
        super().__init__(
            f"Unknown {kind} strategy '{name}'. Must be one of: {', '.join(self.valid)}"
        )


class InvalidRecordError(LearningError, ValueError):
    """Raised when a record is missing required fields or has the wrong shape."""


class InsufficientDataError(LearningError, ValueError):
    """Raised when an operation is called with too few inputs to be meaningful."""


class GenerationError(LearningError):
    """Raised by text-generation backends when a completion cannot be produced."""
