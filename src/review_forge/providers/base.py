"""
Generation backend capability.

A backend is a name, its settings and one async call function. Failures are
reported with a single tagged ``BackendError`` carrying an explicit
retryable flag and optional retry-after hint.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

import structlog

from review_forge.config import BackendSettings

logger = structlog.get_logger(__name__)

MAX_PROMPT_LENGTH = 50_000

SYSTEM_PROMPT = (
    "You are an expert code reviewer with deep knowledge of software engineering "
    "best practices, design patterns, and security. Your reviews are thorough, "
    "constructive, and focused on improving code quality. You provide specific, "
    "actionable feedback with clear severity levels."
)


class BackendErrorKind(str, Enum):
    """Classified failure of a generation call."""

    RATE_LIMITED = "rate_limited"
    AUTHENTICATION_FAILED = "authentication_failed"
    INVALID_REQUEST = "invalid_request"
    TIMEOUT = "timeout"
    GENERIC = "generic"


class BackendError(Exception):
    """A classified generation failure."""

    def __init__(
        self,
        message: str,
        kind: BackendErrorKind = BackendErrorKind.GENERIC,
        backend: str = "",
        retryable: bool = False,
        retry_after: float | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.backend = backend
        self.retryable = retryable
        self.retry_after = retry_after
        self.status_code = status_code

    @classmethod
    def rate_limited(
        cls, backend: str, retry_after: float | None = None
    ) -> "BackendError":
        return cls(
            f"{backend} rate limit exceeded",
            kind=BackendErrorKind.RATE_LIMITED,
            backend=backend,
            retryable=True,
            retry_after=retry_after,
            status_code=429,
        )

    @classmethod
    def authentication_failed(cls, backend: str) -> "BackendError":
        return cls(
            f"Invalid {backend} API key",
            kind=BackendErrorKind.AUTHENTICATION_FAILED,
            backend=backend,
            retryable=False,
            status_code=401,
        )

    @classmethod
    def invalid_request(cls, backend: str, detail: str) -> "BackendError":
        return cls(
            f"Invalid request: {detail}",
            kind=BackendErrorKind.INVALID_REQUEST,
            backend=backend,
            retryable=False,
            status_code=400,
        )

    @classmethod
    def timeout(cls, backend: str, timeout_ms: int) -> "BackendError":
        return cls(
            f"Timeout after {timeout_ms}ms",
            kind=BackendErrorKind.TIMEOUT,
            backend=backend,
            retryable=True,
        )

    @classmethod
    def generic(
        cls,
        backend: str,
        detail: str,
        status_code: int | None = None,
        retryable: bool | None = None,
    ) -> "BackendError":
        if retryable is None:
            # Server-side failures are worth another attempt
            retryable = status_code is None or status_code >= 500
        return cls(
            f"{backend} API error: {detail}",
            kind=BackendErrorKind.GENERIC,
            backend=backend,
            retryable=retryable,
            status_code=status_code,
        )

    def __repr__(self) -> str:
        return (
            f"BackendError(kind={self.kind.value!r}, backend={self.backend!r}, "
            f"retryable={self.retryable}, message={self.message!r})"
        )


@dataclass
class GenerationOptions:
    """Per-call generation options; unset values fall back to settings."""

    max_tokens: int | None = None
    temperature: float | None = None
    model: str | None = None


@dataclass
class TokenUsage:
    """Token accounting for one generation call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass
class GenerationResponse:
    """Text produced by a backend plus accounting."""

    content: str
    model: str
    backend: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    request_id: str | None = None
    latency_ms: int | None = None


CallFunction = Callable[[str, GenerationOptions], Awaitable[GenerationResponse]]


@dataclass
class GenerationBackend:
    """
    A generation capability composed from settings and a call function.

    Backend modules only supply ``call``; option merging and prompt
    truncation happen here.
    """

    name: str
    settings: BackendSettings
    call: CallFunction
    default_model: str = ""

    @property
    def model(self) -> str:
        return self.settings.model or self.default_model

    def is_available(self) -> bool:
        """Check if the backend is enabled and has credentials."""
        return self.settings.enabled and bool(self.settings.api_key)

    def merge_options(self, options: GenerationOptions | None) -> GenerationOptions:
        """Fill unset options from backend settings."""
        options = options or GenerationOptions()
        return GenerationOptions(
            max_tokens=options.max_tokens or self.settings.max_tokens,
            temperature=(
                options.temperature
                if options.temperature is not None
                else self.settings.temperature
            ),
            model=options.model or self.model,
        )

    async def generate_review(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> GenerationResponse:
        """Generate a review for ``prompt``; raises ``BackendError`` on failure."""
        if len(prompt) > MAX_PROMPT_LENGTH:
            logger.warning(
                "Prompt truncated",
                backend=self.name,
                original_length=len(prompt),
                max_length=MAX_PROMPT_LENGTH,
            )
            prompt = prompt[:MAX_PROMPT_LENGTH]

        return await self.call(prompt, self.merge_options(options))
