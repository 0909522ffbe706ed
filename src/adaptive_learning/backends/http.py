"""Generic HTTP text generator.

POSTs ``{"prompt", "temperature", "max_tokens"}`` as JSON and reads the
completion from a ``text`` or ``completion`` field of the JSON response.
"""

from __future__ import annotations

from typing import Any

import httpx

from adaptive_learning.core.errors import GenerationError
from adaptive_learning.core.logging import get_logger

_logger = get_logger("backend.http")

_RESPONSE_FIELDS = ("text", "completion")


class HttpTextGenerator:
    """Text generation against any JSON-over-HTTP completion endpoint.

    Attributes:
        endpoint: Full URL of the completion endpoint.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 60.0,
        headers: dict[str, str] | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.headers = headers or {}
        self._client = client

    @property
    def name(self) -> str:
        return "http"

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json", **self.headers},
            )
        return self._client

    def generate(self, prompt: str, *, temperature: float = 0.7, max_tokens: int = 2048) -> str:
        payload = {"prompt": prompt, "temperature": temperature, "max_tokens": max_tokens}
        _logger.debug(
            "http_request",
            endpoint=self.endpoint,
            timeout=self.timeout,
            prompt_length=len(prompt),
        )

        try:
            response = self._get_client().post(self.endpoint, json=payload)
            response.raise_for_status()
            data: Any = response.json()
        except httpx.TimeoutException as e:
            raise GenerationError(f"Request timed out after {self.timeout}s: {e}") from e
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                f"HTTP {e.response.status_code} from {self.endpoint}"
            ) from e
        except httpx.HTTPError as e:
            raise GenerationError(f"Connection error: {e}") from e
        except ValueError as e:
            raise GenerationError(f"Response is not valid JSON: {e}") from e

        if isinstance(data, dict):
            for key in _RESPONSE_FIELDS:
                value = data.get(key)
                if isinstance(value, str):
                    return value
        raise GenerationError("Response has no 'text' or 'completion' field")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
