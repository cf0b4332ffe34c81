"""OpenAI generation backend."""

import time

import openai
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

NAME = "openai"
DEFAULT_MODEL = "gpt-4o-mini"


def _retry_after(error: openai.APIStatusError) -> float | None:
    value = error.response.headers.get("retry-after") if error.response else None
    try:
        return float(value) if value else None
    except ValueError:
        return None


def classify_error(error: Exception) -> BackendError:
    """Map an OpenAI SDK exception to a ``BackendError``."""
    if isinstance(error, openai.RateLimitError):
        return BackendError.rate_limited(NAME, _retry_after(error))
    if isinstance(error, openai.AuthenticationError):
        return BackendError.authentication_failed(NAME)
    if isinstance(error, openai.BadRequestError):
        return BackendError.invalid_request(NAME, str(error))
    if isinstance(error, openai.APIStatusError):
        return BackendError.generic(NAME, str(error), status_code=error.status_code)
    if isinstance(error, openai.APIConnectionError):
        return BackendError.generic(NAME, str(error), retryable=True)
    return BackendError.generic(NAME, str(error), retryable=False)


def create_openai_backend(settings: BackendSettings) -> GenerationBackend:
    """Build an OpenAI backend from settings."""
    if not settings.api_key:
        raise BackendError.invalid_request(NAME, "API key is required for OpenAI backend")

    client = openai.AsyncOpenAI(
        api_key=settings.api_key,
        organization=settings.organization,
        base_url=settings.base_url,
        max_retries=settings.max_retries,
        timeout=settings.timeout_ms / 1000,
    )

    async def call(prompt: str, options: GenerationOptions) -> GenerationResponse:
        start = time.monotonic()
        try:
            completion = await client.chat.completions.create(
                model=options.model or DEFAULT_MODEL,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=options.temperature,
                max_tokens=options.max_tokens or settings.max_tokens,
            )
        except openai.OpenAIError as e:
            raise classify_error(e) from e

        latency_ms = int((time.monotonic() - start) * 1000)
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise BackendError.generic(NAME, "Empty response from OpenAI", retryable=True)

        logger.debug(
            "OpenAI review generated", model=completion.model, latency_ms=latency_ms
        )

        usage = TokenUsage()
        if completion.usage:
            usage = TokenUsage(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            )

        return GenerationResponse(
            content=content.strip(),
            model=completion.model,
            backend=NAME,
            usage=usage,
            request_id=completion.id,
            latency_ms=latency_ms,
        )

    return GenerationBackend(
        name=NAME, settings=settings, call=call, default_model=DEFAULT_MODEL
    )
