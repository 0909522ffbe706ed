"""Prompt optimizer: rewrite prompts using the ones that worked before.

Prompt outcomes are logged as records whose agent id is ``prompt:<hash>``
and whose metadata carries the prompt text. optimize() shows the best
similar prompts to a text generator and parses its two-section answer.
compare_prompts() ranks prompt variants without any model call.
"""

from __future__ import annotations

import difflib
import hashlib
import re
import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field

import jinja2

from adaptive_learning.backends.base import TextGenerator
from adaptive_learning.core.config import PromptOptimizerConfig
from adaptive_learning.core.errors import InsufficientDataError
from adaptive_learning.core.logging import get_logger
from adaptive_learning.learning.embedder import TaskEmbedder
from adaptive_learning.learning.similarity import Neighbor
from adaptive_learning.learning.store.history import HistoryStore
from adaptive_learning.learning.store.models import (
    RecordMetadata,
    TaskRecord,
    new_record_id,
)

_logger = get_logger("learning.prompt_optimizer")

OPTIMIZED_MARKER = "OPTIMIZED PROMPT:"
IMPROVEMENTS_MARKER = "IMPROVEMENTS:"

OPTIMIZATION_TEMPLATE = """\
You are a prompt optimization expert. Analyze the following prompt and suggest \
improvements based on successful patterns.

Original Prompt:
{{ original_prompt }}

Task Context:
{{ task_context }}

Similar Successful Prompts:
{% for example in examples -%}
Example {{ loop.index }} (Quality: {{ "%.1f"|format(example.quality) }}, \
Similarity: {{ "%.3f"|format(example.similarity) }}):
{{ example.prompt }}

{% endfor %}
Provide an optimized version of the original prompt that incorporates best \
practices from the successful examples.
Also list 3-5 specific improvements you made.

Format your response as:
OPTIMIZED PROMPT:
[Your optimized prompt here]

IMPROVEMENTS:
1. [First improvement]
2. [Second improvement]
3. [Third improvement]
"""

_STRUCTURE_RE = re.compile(r"\b(step|first|then|finally|task|goal|output)\b", re.IGNORECASE)
_EXAMPLES_RE = re.compile(r"\b(example|for instance|such as)\b", re.IGNORECASE)
_INSTRUCTIONS_RE = re.compile(
    r"\b(must|should|please|provide|give|list|explain)\b", re.IGNORECASE
)
_NUMBERED_RE = re.compile(r"^\d+\.\s*(.+)$")

_BASE_SCORE = 5.0
_PATTERN_OVERLAP_PERCENT = 30.0
_COMPARISON_NEIGHBORS = 10


@dataclass
class PromptExample:
    prompt: str
    quality: float
    similarity: float
    token_usage: int = 0


@dataclass
class OptimizationResult:
    optimized_prompt: str
    confidence: float = 0.0
    improvements: list[str] = field(default_factory=list)
    similar_prompts: list[PromptExample] = field(default_factory=list)


@dataclass
class PromptComparison:
    winner: str
    winner_index: int
    scores: list[float]
    confidence: float


@dataclass
class PromptStats:
    total_prompts: int = 0
    avg_quality: float = 0.0
    avg_tokens: float = 0.0
    success_rate: float = 0.0


def prompt_agent_id(prompt: str) -> str:
    """Stable agent id for a prompt: ``prompt:`` plus 8 hex chars of its MD5."""
    return "prompt:" + hashlib.md5(prompt.encode("utf-8")).hexdigest()[:8]


def extract_section(text: str, start_marker: str, end_marker: str | None) -> str:
    """Text between two markers; empty if ``start_marker`` is absent."""
    start = text.find(start_marker)
    if start == -1:
        return ""
    start += len(start_marker)
    if end_marker is None:
        return text[start:]
    end = text.find(end_marker, start)
    return text[start:] if end == -1 else text[start:end]


def parse_improvements(text: str) -> list[str]:
    """Items of a numbered list, one per ``N. item`` line."""
    improvements = []
    for line in text.splitlines():
        match = _NUMBERED_RE.match(line.strip())
        if match:
            improvements.append(match.group(1).strip())
    return improvements or ["No specific improvements identified"]


def overlap_percent(a: str, b: str) -> float:
    """Character-level similarity of two strings as a percentage."""
    return difflib.SequenceMatcher(None, a, b).ratio() * 100.0


class PromptOptimizer:
    """Learns from logged prompt outcomes to improve new prompts."""

    def __init__(
        self,
        store: HistoryStore,
        generator: TextGenerator,
        config: PromptOptimizerConfig | None = None,
        embedder: TaskEmbedder | None = None,
        jinja_env: jinja2.Environment | None = None,
    ) -> None:
        self.store = store
        self.generator = generator
        self.config = config or PromptOptimizerConfig()
        self.embedder = embedder or TaskEmbedder()
        self.env = jinja_env or jinja2.Environment(
            undefined=jinja2.StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._template = self.env.from_string(OPTIMIZATION_TEMPLATE)

    def optimize(
        self,
        original_prompt: str,
        task_context: str = "",
        *,
        k: int | None = None,
        temperature: float | None = None,
    ) -> OptimizationResult:
        """Rewrite ``original_prompt`` using the best similar historical prompts.

        Never raises for generator failures: the original prompt comes back
        with confidence 0 and an ``Error: ...`` improvement note.
        """
        k = self.config.k if k is None else k
        temperature = self.config.temperature if temperature is None else temperature
        _logger.info(
            "prompt_optimization_started",
            original_length=len(original_prompt),
            context=task_context[:50],
        )

        vector = self.embedder.embed_text(task_context or original_prompt)
        similar = self.store.find_similar(vector, k)
        if not similar:
            _logger.info("prompt_optimization_no_history")
            return OptimizationResult(
                optimized_prompt=original_prompt,
                improvements=["No historical data available"],
            )

        examples = self._best_examples(similar)
        if not examples:
            return OptimizationResult(
                optimized_prompt=original_prompt,
                improvements=["No successful examples found"],
            )

        request = self._template.render(
            original_prompt=original_prompt,
            task_context=task_context,
            examples=examples,
        )
        try:
            content = self.generator.generate(
                request, temperature=temperature, max_tokens=self.config.max_tokens
            )
        except Exception as e:
            _logger.error("prompt_optimization_failed", generator=self.generator.name, error=str(e))
            return OptimizationResult(
                optimized_prompt=original_prompt,
                improvements=[f"Error: {e}"],
                similar_prompts=examples,
            )

        optimized = extract_section(content, OPTIMIZED_MARKER, IMPROVEMENTS_MARKER).strip()
        if not optimized:
            _logger.warning("prompt_optimization_unparsed", generator=self.generator.name)
            return OptimizationResult(
                optimized_prompt=original_prompt,
                improvements=["Could not parse optimized prompt from response"],
                similar_prompts=examples,
            )
        improvements = parse_improvements(extract_section(content, IMPROVEMENTS_MARKER, None))

        avg_similarity = statistics.fmean(e.similarity for e in examples)
        avg_quality = statistics.fmean(e.quality for e in examples)
        result = OptimizationResult(
            optimized_prompt=optimized,
            confidence=round(0.6 * avg_similarity + 0.4 * avg_quality / 10.0, 3),
            improvements=improvements,
            similar_prompts=examples,
        )
        _logger.info(
            "prompt_optimized",
            confidence=result.confidence,
            improvements_count=len(result.improvements),
        )
        return result

    def compare_prompts(self, prompts: Sequence[str], task_context: str) -> PromptComparison:
        """Rank prompt variants heuristically for ``task_context``.

        Raises:
            InsufficientDataError: If fewer than two prompts are given.
        """
        if len(prompts) < 2:
            raise InsufficientDataError("At least 2 prompts required for comparison")

        _logger.info("prompt_comparison_started", count=len(prompts))
        similar = self.store.find_similar(
            self.embedder.embed_text(task_context), _COMPARISON_NEIGHBORS
        )
        scores = [self.score_prompt(p, similar) for p in prompts]

        ranked = sorted(range(len(scores)), key=lambda i: scores[i], reverse=True)
        winner, runner_up = ranked[0], ranked[1]
        return PromptComparison(
            winner=prompts[winner],
            winner_index=winner,
            scores=scores,
            confidence=round(scores[winner] - scores[runner_up], 3),
        )

    def score_prompt(
        self, prompt: str, similar: Sequence[Neighbor[TaskRecord]] = ()
    ) -> float:
        """Heuristic quality score in [5, 10].

        Starts at 5 and adds 1.5 for structure words, 1.0 for more than 100
        characters, 1.5 for examples, 1.0 for explicit instructions, and 0.5
        for each successful similar prompt it overlaps by more than 30%.
        """
        score = _BASE_SCORE
        if _STRUCTURE_RE.search(prompt):
            score += 1.5
        if len(prompt) > 100:
            score += 1.0
        if _EXAMPLES_RE.search(prompt):
            score += 1.5
        if _INSTRUCTIONS_RE.search(prompt):
            score += 1.0

        lowered = prompt.lower()
        matches = 0
        for neighbor in similar:
            record = neighbor.item
            historical = record.metadata.prompt
            if not record.success or record.quality_score < self.config.min_example_quality:
                continue
            if not historical:
                continue
            if overlap_percent(lowered, historical.lower()) > _PATTERN_OVERLAP_PERCENT:
                matches += 1

        return min(10.0, score + 0.5 * matches)

    def record_performance(
        self,
        prompt: str,
        task_context: str,
        quality_score: float,
        token_usage: int,
        success: bool,
        duration: float,
    ) -> TaskRecord:
        """Log how a prompt performed so later optimizations can learn from it."""
        record = self.store.record(
            TaskRecord(
                id=new_record_id("prompt"),
                embedding=tuple(self.embedder.embed_text(task_context or prompt)),
                agent_id=prompt_agent_id(prompt),
                task_text=task_context[:500],
                success=success,
                quality_score=quality_score,
                duration_seconds=duration,
                metadata=RecordMetadata(
                    prompt=prompt,
                    token_usage=token_usage,
                    extra={
                        "prompt_length": len(prompt),
                        "tokens_per_second": token_usage / duration if duration > 0 else 0.0,
                    },
                ),
            )
        )
        _logger.debug(
            "prompt_performance_recorded",
            quality_score=record.quality_score,
            success=success,
        )
        return record

    def get_statistics(self) -> PromptStats:
        records = [r for r in self.store.all() if r.metadata.prompt is not None]
        if not records:
            return PromptStats()

        return PromptStats(
            total_prompts=len(records),
            avg_quality=round(statistics.fmean(r.quality_score for r in records), 2),
            avg_tokens=round(statistics.fmean(r.metadata.token_usage or 0 for r in records), 1),
            success_rate=round(sum(1 for r in records if r.success) / len(records), 3),
        )

    def _best_examples(self, similar: list[Neighbor[TaskRecord]]) -> list[PromptExample]:
        examples = [
            PromptExample(
                prompt=n.item.metadata.prompt,
                quality=n.item.quality_score,
                similarity=n.similarity,
                token_usage=n.item.metadata.token_usage or 0,
            )
            for n in similar
            if n.item.success
            and n.item.quality_score >= self.config.min_example_quality
            and n.item.metadata.prompt
        ]
        examples.sort(key=lambda e: e.quality * e.similarity, reverse=True)
        return examples[: self.config.max_examples]
