"""Tests for the text-generation backends."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from adaptive_learning.backends import (
    AnthropicTextGenerator,
    HttpTextGenerator,
    TextGenerator,
)
from adaptive_learning.core.errors import GenerationError

ENDPOINT = "http://localhost:8080/v1/complete"


def _http_generator(handler) -> HttpTextGenerator:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpTextGenerator(ENDPOINT, timeout=5.0, client=client)


def _text_block(text: str) -> MagicMock:
    block = MagicMock()
    block.type = "text"
    block.text = text
    return block


def _anthropic_response(*blocks: MagicMock) -> MagicMock:
    usage = MagicMock()
    usage.input_tokens = 12
    usage.output_tokens = 34
    response = MagicMock()
    response.content = list(blocks)
    response.usage = usage
    return response


def _status_response(code: int) -> MagicMock:
    response = MagicMock()
    response.status_code = code
    return response


class TestProtocol:
    """Both backends satisfy the TextGenerator protocol."""

    def test_http_generator(self) -> None:
        assert isinstance(HttpTextGenerator(ENDPOINT), TextGenerator)

    def test_anthropic_generator(self) -> None:
        assert isinstance(AnthropicTextGenerator(client=MagicMock()), TextGenerator)


class TestHttpTextGenerator:
    """Tests for HttpTextGenerator."""

    def test_posts_prompt_and_reads_text(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"text": "optimized"})

        generator = _http_generator(handler)

        assert generator.generate("Improve me", temperature=0.3, max_tokens=256) == "optimized"
        assert seen == [{"prompt": "Improve me", "temperature": 0.3, "max_tokens": 256}]
        assert generator.name == "http"

    def test_completion_field(self) -> None:
        generator = _http_generator(lambda r: httpx.Response(200, json={"completion": "done"}))
        assert generator.generate("p") == "done"

    def test_missing_field(self) -> None:
        generator = _http_generator(lambda r: httpx.Response(200, json={"output": "x"}))
        with pytest.raises(GenerationError, match="no 'text' or 'completion'"):
            generator.generate("p")

    def test_status_error(self) -> None:
        generator = _http_generator(lambda r: httpx.Response(503, text="busy"))
        with pytest.raises(GenerationError, match=f"HTTP 503 from {ENDPOINT}"):
            generator.generate("p")

    def test_invalid_json(self) -> None:
        generator = _http_generator(lambda r: httpx.Response(200, text="not json"))
        with pytest.raises(GenerationError, match="not valid JSON"):
            generator.generate("p")

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GenerationError, match="timed out after 5.0s"):
            _http_generator(handler).generate("p")

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GenerationError, match="Connection error"):
            _http_generator(handler).generate("p")

    def test_close_drops_client(self) -> None:
        generator = _http_generator(lambda r: httpx.Response(200, json={"text": "x"}))
        generator.close()
        assert generator._client is None


class TestAnthropicTextGenerator:
    """Tests for AnthropicTextGenerator."""

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(GenerationError, match="ANTHROPIC_API_KEY"):
            AnthropicTextGenerator().generate("p")

    def test_client_built_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        with patch.object(anthropic, "Anthropic") as factory:
            factory.return_value.messages.create.return_value = _anthropic_response(
                _text_block("ok")
            )
            result = AnthropicTextGenerator(timeout_seconds=12.0).generate("p")

        assert result == "ok"
        factory.assert_called_once_with(api_key="sk-test", timeout=12.0)

    def test_request_and_text_blocks(self) -> None:
        client = MagicMock()
        other = MagicMock()
        other.type = "tool_use"
        client.messages.create.return_value = _anthropic_response(
            _text_block("Better "), other, _text_block("prompt")
        )
        generator = AnthropicTextGenerator(model="claude-test", client=client)

        assert generator.generate("Improve me", temperature=0.2, max_tokens=100) == (
            "Better prompt"
        )
        client.messages.create.assert_called_once_with(
            model="claude-test",
            max_tokens=100,
            temperature=0.2,
            messages=[{"role": "user", "content": "Improve me"}],
        )

    @pytest.mark.parametrize(
        "error, message",
        [
            (
                anthropic.RateLimitError(
                    message="Rate limited", response=_status_response(429), body=None
                ),
                "Rate limited",
            ),
            (
                anthropic.AuthenticationError(
                    message="Invalid key", response=_status_response(401), body=None
                ),
                "Authentication failed",
            ),
            (anthropic.APITimeoutError(request=MagicMock()), "API timeout after 60.0s"),
            (anthropic.APIConnectionError(request=MagicMock()), "Anthropic API error"),
        ],
    )
    def test_sdk_errors_mapped(self, error: Exception, message: str) -> None:
        client = MagicMock()
        client.messages.create.side_effect = error

        with pytest.raises(GenerationError, match=message):
            AnthropicTextGenerator(client=client).generate("p")
