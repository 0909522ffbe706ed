"""Task embedder: deterministic task analysis -> fixed-length feature vector.

The feature layout is::

    [complexity, domain x6 (one-hot), tools, knowledge, reasoning, iteration,
     quality, estimated_steps_norm, key_requirements_count]

Unknown labels fall back to the neutral value for that feature (medium
complexity, general domain, standard quality) rather than raising.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

COMPLEXITY_LEVELS: dict[str, float] = {
    "simple": 0.25,
    "medium": 0.50,
    "complex": 0.75,
    "extreme": 1.00,
}

DOMAINS: tuple[str, ...] = (
    "general",
    "technical",
    "creative",
    "analytical",
    "conversational",
    "monitoring",
)

QUALITY_TIERS: dict[str, float] = {
    "standard": 0.33,
    "high": 0.66,
    "extreme": 1.00,
}

FEATURE_NAMES: tuple[str, ...] = (
    "complexity",
    *(f"domain_{d}" for d in DOMAINS),
    "requires_tools",
    "requires_knowledge",
    "requires_reasoning",
    "requires_iteration",
    "requires_quality",
    "estimated_steps_norm",
    "key_requirements_count",
)

EMBEDDING_DIMENSIONS = len(FEATURE_NAMES)

DEFAULT_FEATURE_WEIGHTS: dict[str, float] = {
    "complexity": 1.0,
    "domain": 1.0,
    "tools": 1.2,
    "knowledge": 1.1,
    "reasoning": 1.2,
    "iteration": 0.9,
    "quality": 1.3,
    "steps": 0.8,
    "requirements": 0.9,
}

# Weight group for each position in the vector
_WEIGHT_GROUPS: tuple[str, ...] = (
    "complexity",
    *("domain" for _ in DOMAINS),
    "tools",
    "knowledge",
    "reasoning",
    "iteration",
    "quality",
    "steps",
    "requirements",
)

_MAX_STEPS = 50.0
_MAX_REQUIREMENTS = 10.0


@dataclass
class TaskAnalysis:
    """Structured description of a task, the input to embedding.

    Attributes:
        complexity: One of simple, medium, complex, extreme.
        domain: One of the six DOMAINS.
        requires_tools: Task needs tool invocation.
        requires_knowledge: Task needs external knowledge.
        requires_reasoning: Task needs multi-step reasoning.
        requires_iteration: Task needs iterative refinement.
        requires_quality: Quality tier: standard, high, extreme.
        estimated_steps: Expected number of steps (normalised against 50).
        key_requirements: Free-form requirement descriptions; only the count is embedded.
    """

    complexity: str = "medium"
    domain: str = "general"
    requires_tools: bool = False
    requires_knowledge: bool = False
    requires_reasoning: bool = False
    requires_iteration: bool = False
    requires_quality: str = "standard"
    estimated_steps: int = 10
    key_requirements: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TaskAnalysis:
        """Build an analysis from a loose mapping, ignoring unknown keys."""
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        if "key_requirements" in known:
            known["key_requirements"] = list(known["key_requirements"] or [])
        return cls(**known)

    def to_dict(self) -> dict[str, Any]:
        return {
            "complexity": self.complexity,
            "domain": self.domain,
            "requires_tools": self.requires_tools,
            "requires_knowledge": self.requires_knowledge,
            "requires_reasoning": self.requires_reasoning,
            "requires_iteration": self.requires_iteration,
            "requires_quality": self.requires_quality,
            "estimated_steps": self.estimated_steps,
            "key_requirements": list(self.key_requirements),
        }


class TaskEmbedder:
    """Maps a TaskAnalysis to a 14-dimensional feature vector.

    Stateless: the same analysis always yields the same vector.
    """

    dimensions: int = EMBEDDING_DIMENSIONS

    def embed(self, analysis: TaskAnalysis | Mapping[str, Any]) -> list[float]:
        """Embed a task analysis.

        Args:
            analysis: A TaskAnalysis or a mapping with the same keys.

        Returns:
            Feature vector of length ``dimensions``.
        """
        if not isinstance(analysis, TaskAnalysis):
            analysis = TaskAnalysis.from_mapping(analysis)

        features: list[float] = [COMPLEXITY_LEVELS.get(analysis.complexity, 0.5)]

        domain_index = DOMAINS.index(analysis.domain) if analysis.domain in DOMAINS else 0
        features.extend(1.0 if i == domain_index else 0.0 for i in range(len(DOMAINS)))

        features.append(1.0 if analysis.requires_tools else 0.0)
        features.append(1.0 if analysis.requires_knowledge else 0.0)
        features.append(1.0 if analysis.requires_reasoning else 0.0)
        features.append(1.0 if analysis.requires_iteration else 0.0)

        features.append(QUALITY_TIERS.get(analysis.requires_quality, 0.33))
        features.append(min(1.0, analysis.estimated_steps / _MAX_STEPS))
        features.append(min(1.0, len(analysis.key_requirements) / _MAX_REQUIREMENTS))
        return features

    def embed_weighted(
        self,
        analysis: TaskAnalysis | Mapping[str, Any],
        weights: Mapping[str, float] | None = None,
    ) -> list[float]:
        """Embed and scale each feature block by its weight.

        ``weights`` overrides entries of DEFAULT_FEATURE_WEIGHTS by group name
        (complexity, domain, tools, knowledge, reasoning, iteration, quality,
        steps, requirements).
        """
        merged = {**DEFAULT_FEATURE_WEIGHTS, **(weights or {})}
        features = self.embed(analysis)
        return [value * merged[group] for value, group in zip(features, _WEIGHT_GROUPS)]

    def feature_names(self) -> list[str]:
        return list(FEATURE_NAMES)

    def feature_importance(self, historical_vectors: Sequence[Sequence[float]]) -> list[float]:
        """Per-dimension weights proportional to observed variance.

        Each dimension gets ``variance + 0.5``; the weights are then scaled so
        they sum to the number of dimensions. Vectors whose length differs
        from the first are skipped. No history yields all ones.
        """
        if not historical_vectors:
            return [1.0] * self.dimensions

        dimensions = len(historical_vectors[0])
        vectors = [v for v in historical_vectors if len(v) == dimensions]
        importance: list[float] = []
        for dim in range(dimensions):
            values = [vector[dim] for vector in vectors]
            mean = sum(values) / len(values)
            variance = sum((v - mean) ** 2 for v in values) / len(values)
            importance.append(variance + 0.5)

        total = sum(importance)
        return [w / total * dimensions for w in importance]

    def analyze_task(self, text: str) -> TaskAnalysis:
        """Heuristic analysis of raw task text.

        Complexity is judged by length and word count; every task is assumed
        to be general-domain, reasoning-based, standard-quality work.
        """
        length = len(text)
        word_count = len(text.split())

        if length < 50 or word_count < 10:
            complexity = "simple"
        elif length < 200 or word_count < 30:
            complexity = "medium"
        else:
            complexity = "complex"

        return TaskAnalysis(
            complexity=complexity,
            domain="general",
            requires_reasoning=True,
            requires_quality="standard",
            estimated_steps=max(1, min(20, word_count // 5)),
        )

    def embed_text(self, text: str) -> list[float]:
        """Shortcut for ``embed(analyze_task(text))``."""
        return self.embed(self.analyze_task(text))
