"""
Unit tests for the Anthropic and OpenAI backends.

SDK clients are replaced with mocks; SDK exceptions are built from real
httpx responses so error classification sees the same objects as in
production.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import openai
import pytest

from review_forge.config import BackendSettings
from review_forge.providers import BackendError, BackendErrorKind, GenerationOptions
from review_forge.providers import anthropic_backend, openai_backend
from review_forge.providers.base import MAX_PROMPT_LENGTH


def http_response(status: int, headers: dict[str, str] | None = None) -> httpx.Response:
    request = httpx.Request("POST", "https://api.example.test/v1")
    return httpx.Response(status, headers=headers or {}, request=request)


def connection_request() -> httpx.Request:
    return httpx.Request("POST", "https://api.example.test/v1")


# =============================================================================
# UNIT TESTS: error classification
# =============================================================================

class TestAnthropicClassifyError:
    """Anthropic SDK exceptions map to BackendError kinds."""

    def test_rate_limit_with_retry_after(self):
        """429 becomes RATE_LIMITED with the retry-after hint."""
        error = anthropic.RateLimitError(
            "slow down", response=http_response(429, {"retry-after": "3"}), body=None
        )
        result = anthropic_backend.classify_error(error)

        assert result.kind == BackendErrorKind.RATE_LIMITED
        assert result.retryable
        assert result.retry_after == 3.0

    def test_authentication(self):
        """401 becomes AUTHENTICATION_FAILED and is not retried."""
        error = anthropic.AuthenticationError("bad key", response=http_response(401), body=None)
        result = anthropic_backend.classify_error(error)

        assert result.kind == BackendErrorKind.AUTHENTICATION_FAILED
        assert not result.retryable

    def test_bad_request(self):
        """400 becomes INVALID_REQUEST and is not retried."""
        error = anthropic.BadRequestError("bad", response=http_response(400), body=None)
        result = anthropic_backend.classify_error(error)

        assert result.kind == BackendErrorKind.INVALID_REQUEST
        assert not result.retryable

    def test_server_error_retryable(self):
        """Server errors are retryable and keep the status code."""
        error = anthropic.InternalServerError("oops", response=http_response(500), body=None)
        result = anthropic_backend.classify_error(error)

        assert result.kind == BackendErrorKind.GENERIC
        assert result.status_code == 500
        assert result.retryable

    def test_connection_error_retryable(self):
        """Connection failures are retryable."""
        error = anthropic.APIConnectionError(request=connection_request())
        result = anthropic_backend.classify_error(error)

        assert result.kind == BackendErrorKind.GENERIC
        assert result.retryable


class TestOpenAIClassifyError:
    """OpenAI SDK exceptions map to BackendError kinds."""

    def test_rate_limit(self):
        """429 without a header has no retry-after hint."""
        error = openai.RateLimitError("slow down", response=http_response(429), body=None)
        result = openai_backend.classify_error(error)

        assert result.kind == BackendErrorKind.RATE_LIMITED
        assert result.retry_after is None

    def test_authentication(self):
        """401 becomes AUTHENTICATION_FAILED."""
        error = openai.AuthenticationError("bad key", response=http_response(401), body=None)
        assert openai_backend.classify_error(error).kind == BackendErrorKind.AUTHENTICATION_FAILED

    def test_client_error_not_retryable(self):
        """Other 4xx errors are not retried."""
        error = openai.NotFoundError("missing", response=http_response(404), body=None)
        result = openai_backend.classify_error(error)

        assert result.kind == BackendErrorKind.GENERIC
        assert not result.retryable

    def test_timeout_retryable(self):
        """SDK timeouts are retryable."""
        error = openai.APITimeoutError(request=connection_request())
        assert openai_backend.classify_error(error).retryable


# =============================================================================
# UNIT TESTS: backend construction and calls
# =============================================================================

class TestAnthropicBackend:
    """Tests for create_anthropic_backend()."""

    def test_requires_api_key(self):
        """Missing API key is an invalid request."""
        with pytest.raises(BackendError) as exc_info:
            anthropic_backend.create_anthropic_backend(BackendSettings(name="anthropic"))
        assert exc_info.value.kind == BackendErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_generate_review(self, monkeypatch: pytest.MonkeyPatch):
        """Text blocks and token usage come back from the SDK reply."""
        client = MagicMock()
        client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                id="msg_1",
                model="claude-test",
                content=[SimpleNamespace(type="text", text="Looks fine")],
                usage=SimpleNamespace(input_tokens=10, output_tokens=5),
            )
        )
        monkeypatch.setattr(anthropic_backend.anthropic, "AsyncAnthropic", lambda **kwargs: client)

        backend = anthropic_backend.create_anthropic_backend(
            BackendSettings(name="anthropic", api_key="k")
        )
        response = await backend.generate_review("review this", GenerationOptions(max_tokens=200))

        assert backend.name == "anthropic"
        assert backend.model == anthropic_backend.DEFAULT_MODEL
        assert response.content == "Looks fine"
        assert response.backend == "anthropic"
        assert response.usage.total_tokens == 15
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["max_tokens"] == 200
        assert kwargs["model"] == anthropic_backend.DEFAULT_MODEL

    @pytest.mark.asyncio
    async def test_sdk_error_is_classified(self, monkeypatch: pytest.MonkeyPatch):
        """SDK exceptions surface as BackendError."""
        client = MagicMock()
        client.messages.create = AsyncMock(
            side_effect=anthropic.RateLimitError("slow", response=http_response(429), body=None)
        )
        monkeypatch.setattr(anthropic_backend.anthropic, "AsyncAnthropic", lambda **kwargs: client)

        backend = anthropic_backend.create_anthropic_backend(
            BackendSettings(name="anthropic", api_key="k")
        )
        with pytest.raises(BackendError) as exc_info:
            await backend.generate_review("review this")

        assert exc_info.value.kind == BackendErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_empty_response_is_retryable(self, monkeypatch: pytest.MonkeyPatch):
        """An empty reply is a retryable failure."""
        client = MagicMock()
        client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                id="msg_2",
                model="claude-test",
                content=[],
                usage=SimpleNamespace(input_tokens=1, output_tokens=0),
            )
        )
        monkeypatch.setattr(anthropic_backend.anthropic, "AsyncAnthropic", lambda **kwargs: client)

        backend = anthropic_backend.create_anthropic_backend(
            BackendSettings(name="anthropic", api_key="k")
        )
        with pytest.raises(BackendError) as exc_info:
            await backend.generate_review("review this")

        assert exc_info.value.retryable


class TestOpenAIBackend:
    """Tests for create_openai_backend()."""

    def test_requires_api_key(self):
        """Missing API key is rejected."""
        with pytest.raises(BackendError):
            openai_backend.create_openai_backend(BackendSettings(name="openai"))

    @pytest.mark.asyncio
    async def test_generate_review_truncates_prompt(self, monkeypatch: pytest.MonkeyPatch):
        """Long prompts are truncated and the reply is stripped."""
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                id="cmpl_1",
                model="gpt-test",
                choices=[SimpleNamespace(message=SimpleNamespace(content="  Review text  "))],
                usage=SimpleNamespace(prompt_tokens=7, completion_tokens=3, total_tokens=10),
            )
        )
        monkeypatch.setattr(openai_backend.openai, "AsyncOpenAI", lambda **kwargs: client)

        backend = openai_backend.create_openai_backend(
            BackendSettings(name="openai", api_key="k", model="gpt-custom")
        )
        response = await backend.generate_review("x" * (MAX_PROMPT_LENGTH + 10))

        assert response.content == "Review text"
        assert response.usage.total_tokens == 10
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-custom"
        assert len(kwargs["messages"][1]["content"]) == MAX_PROMPT_LENGTH
        assert kwargs["messages"][0]["role"] == "system"
