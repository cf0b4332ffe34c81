"""Anthropic (Claude) generation backend."""

import time

import anthropic
import structlog

from review_forge.config import BackendSettings

from .base import (
    SYSTEM_PROMPT,
    BackendError,
    GenerationBackend,
    GenerationOptions,
    GenerationResponse,
    TokenUsage,
)

logger = structlog.get_logger(__name__)

NAME = "anthropic"
DEFAULT_MODEL = "claude-sonnet-4-5"


def _retry_after(error: anthropic.APIStatusError) -> float | None:
    value = error.response.headers.get("retry-after") if error.response else None
    try:
        return float(value) if value else None
    except ValueError:
        return None


def classify_error(error: Exception) -> BackendError:
    """Map an Anthropic SDK exception to a ``BackendError``."""
    if isinstance(error, anthropic.RateLimitError):
        return BackendError.rate_limited(NAME, _retry_after(error))
    if isinstance(error, anthropic.AuthenticationError):
        return BackendError.authentication_failed(NAME)
    if isinstance(error, anthropic.BadRequestError):
        return BackendError.invalid_request(NAME, str(error))
    if isinstance(error, anthropic.APIStatusError):
        return BackendError.generic(NAME, str(error), status_code=error.status_code)
    if isinstance(error, anthropic.APIConnectionError):
        # Includes APITimeoutError
        return BackendError.generic(NAME, str(error), retryable=True)
    return BackendError.generic(NAME, str(error), retryable=False)


def create_anthropic_backend(settings: BackendSettings) -> GenerationBackend:
    """Build a Claude backend from settings."""
    if not settings.api_key:
        raise BackendError.invalid_request(NAME, "API key is required for Claude backend")

    client = anthropic.AsyncAnthropic(
        api_key=settings.api_key,
        base_url=settings.base_url,
        max_retries=settings.max_retries,
        timeout=settings.timeout_ms / 1000,
    )

    async def call(prompt: str, options: GenerationOptions) -> GenerationResponse:
        start = time.monotonic()
        try:
            message = await client.messages.create(
                model=options.model or DEFAULT_MODEL,
                max_tokens=options.max_tokens or settings.max_tokens,
                temperature=options.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AnthropicError as e:
            raise classify_error(e) from e

        latency_ms = int((time.monotonic() - start) * 1000)
        content = "\n".join(
            block.text for block in message.content if block.type == "text"
        )
        if not content:
            raise BackendError.generic(NAME, "Empty response from Claude", retryable=True)

        logger.debug(
            "Claude review generated", model=message.model, latency_ms=latency_ms
        )

        input_tokens = message.usage.input_tokens
        output_tokens = message.usage.output_tokens
        return GenerationResponse(
            content=content,
            model=message.model,
            backend=NAME,
            usage=TokenUsage(
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            request_id=message.id,
            latency_ms=latency_ms,
        )

    return GenerationBackend(
        name=NAME, settings=settings, call=call, default_model=DEFAULT_MODEL
    )
