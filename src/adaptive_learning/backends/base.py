"""Protocol for the text-generation collaborator used by the prompt optimizer."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that turns a prompt into free text.

    Implementations block until the text is available and raise
    GenerationError on any failure. They are free to ignore sampling
    parameters they do not support.
    """

    @property
    def name(self) -> str: ...

    def generate(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        """Generate a completion for ``prompt``.

        Raises:
            GenerationError: If the backend cannot produce a completion.
        """
        ...
