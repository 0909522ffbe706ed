"""Anthropic API text generator using the official SDK.

Synchronous client; the prompt optimizer calls it inline and callers bound
the call with ``timeout_seconds``.
"""

from __future__ import annotations

import os

import anthropic

from adaptive_learning.core.errors import GenerationError
from adaptive_learning.core.logging import get_logger

_logger = get_logger("backend.anthropic")


class AnthropicTextGenerator:
    """Generate text with Claude models through the Anthropic API."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key_env: str = "ANTHROPIC_API_KEY",
        timeout_seconds: float = 60.0,
        client: anthropic.Anthropic | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            model: Model ID to use.
            api_key_env: Environment variable containing the API key.
            timeout_seconds: Request timeout passed to the SDK client.
            client: Pre-built client, mainly for tests.
        """
        self.model = model
        self.api_key_env = api_key_env
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def name(self) -> str:
        return "anthropic-api"

    def _get_client(self) -> anthropic.Anthropic:
        if self._client is None:
            api_key = os.environ.get(self.api_key_env)
            if not api_key:
                raise GenerationError(
                    f"API key not found in environment variable: {self.api_key_env}"
                )
            self._client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout_seconds)
        return self._client

    def generate(self, prompt: str, *, temperature: float = 0.7, max_tokens: int = 2048) -> str:
        client = self._get_client()
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.RateLimitError as e:
            raise GenerationError(f"Rate limited: {e}") from e
        except anthropic.AuthenticationError as e:
            raise GenerationError(f"Authentication failed: {e}") from e
        except anthropic.APITimeoutError as e:
            raise GenerationError(f"API timeout after {self.timeout_seconds}s: {e}") from e
        except anthropic.APIError as e:
            raise GenerationError(f"Anthropic API error: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if response.usage is not None:
            _logger.debug(
                "generation_completed",
                model=self.model,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )
        return text
