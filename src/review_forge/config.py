"""Configuration management for review-forge.

Defaults match the large-diff review pipeline; every value can be overridden
through environment variables.
"""

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ChunkingConfig:
    """Bounds used when packing file changes into chunks."""

    max_chunk_size: int = 8000  # characters
    max_files_per_chunk: int = 10
    min_chunk_size: int = 2000  # characters
    prioritize_high_risk: bool = True
    split_large_files: bool = False


@dataclass
class ExecutionConfig:
    """Concurrency, timeout and retry policy for review agents."""

    max_concurrent_agents: int = 3
    agent_timeout_ms: int = 30000
    retry_attempts: int = 2
    fallback_to_summary: bool = True
    fallback_failure_ratio: float = 0.3
    retry_backoff_base: float = 1.0  # seconds
    retry_backoff_cap: float = 5.0  # seconds


@dataclass
class AggregationConfig:
    """Deduplication and report inclusion settings."""

    deduplication_threshold: float = 0.85
    max_issues_per_file: int = 20
    include_low_severity: bool = False


@dataclass
class ModelConfig:
    """Generation settings for chunk reviews."""

    agent: str | None = None  # primary backend only; None = backend default model
    max_tokens_per_chunk: int = 1500
    temperature: float = 0.2


@dataclass
class RoutingConfig:
    """Diff-size thresholds (characters) for strategy selection."""

    standard_threshold: int = 10_000
    chunked_threshold: int = 100_000
    hierarchical_threshold: int = 1_000_000


@dataclass
class ReviewConfig:
    """Complete review pipeline configuration."""

    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    models: ModelConfig = field(default_factory=ModelConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)

    @classmethod
    def from_env(cls) -> "ReviewConfig":
        """Create configuration from environment variables."""
        config = cls()

        config.chunking.max_chunk_size = _env_int(
            "LLM_MAX_CHUNK_SIZE", config.chunking.max_chunk_size
        )
        config.chunking.max_files_per_chunk = _env_int(
            "LLM_MAX_FILES_PER_CHUNK", config.chunking.max_files_per_chunk
        )
        config.chunking.min_chunk_size = _env_int(
            "LLM_MIN_CHUNK_SIZE", config.chunking.min_chunk_size
        )
        config.chunking.split_large_files = _env_bool(
            "LLM_SPLIT_LARGE_FILES", config.chunking.split_large_files
        )

        config.execution.max_concurrent_agents = _env_int(
            "LLM_MAX_CONCURRENT_AGENTS", config.execution.max_concurrent_agents
        )
        config.execution.agent_timeout_ms = _env_int(
            "LLM_AGENT_TIMEOUT", config.execution.agent_timeout_ms
        )
        config.execution.retry_attempts = _env_int(
            "LLM_RETRY_ATTEMPTS", config.execution.retry_attempts
        )
        config.execution.fallback_to_summary = _env_bool(
            "LLM_FALLBACK_TO_SUMMARY", config.execution.fallback_to_summary
        )

        config.aggregation.deduplication_threshold = _env_float(
            "LLM_DEDUPLICATION_THRESHOLD", config.aggregation.deduplication_threshold
        )
        config.aggregation.include_low_severity = _env_bool(
            "LLM_INCLUDE_LOW_SEVERITY", config.aggregation.include_low_severity
        )
        config.aggregation.max_issues_per_file = _env_int(
            "LLM_MAX_ISSUES_PER_FILE", config.aggregation.max_issues_per_file
        )

        config.models.agent = os.getenv("LLM_AGENT_MODEL") or config.models.agent
        config.models.max_tokens_per_chunk = _env_int(
            "LLM_MAX_TOKENS_PER_CHUNK", config.models.max_tokens_per_chunk
        )

        config.routing.standard_threshold = _env_int(
            "LLM_STANDARD_THRESHOLD", config.routing.standard_threshold
        )
        config.routing.chunked_threshold = _env_int(
            "LLM_CHUNKED_THRESHOLD", config.routing.chunked_threshold
        )

        return config

    def validate(self) -> list[str]:
        """Return a list of configuration errors (empty when valid)."""
        errors: list[str] = []

        if self.chunking.max_chunk_size <= 0:
            errors.append("max_chunk_size must be greater than 0")
        if self.chunking.min_chunk_size >= self.chunking.max_chunk_size:
            errors.append("min_chunk_size must be less than max_chunk_size")
        if self.chunking.max_files_per_chunk <= 0:
            errors.append("max_files_per_chunk must be greater than 0")
        if self.execution.max_concurrent_agents <= 0:
            errors.append("max_concurrent_agents must be greater than 0")
        if self.execution.agent_timeout_ms <= 0:
            errors.append("agent_timeout_ms must be greater than 0")
        if self.execution.retry_attempts < 0:
            errors.append("retry_attempts must be non-negative")
        if not 0.0 <= self.aggregation.deduplication_threshold <= 1.0:
            errors.append("deduplication_threshold must be between 0 and 1")
        if self.models.max_tokens_per_chunk < 1:
            errors.append("max_tokens_per_chunk must be positive")
        if self.routing.standard_threshold >= self.routing.chunked_threshold:
            errors.append("standard_threshold must be less than chunked_threshold")
        if self.routing.chunked_threshold >= self.routing.hierarchical_threshold:
            errors.append("chunked_threshold must be less than hierarchical_threshold")

        return errors


@dataclass
class BackendSettings:
    """Connection settings for one generation backend."""

    name: str
    api_key: str = ""
    model: str | None = None
    base_url: str | None = None
    organization: str | None = None
    max_retries: int = 0  # SDK-level retries; the executor owns retry policy
    timeout_ms: int = 30000
    max_tokens: int = 1500
    temperature: float = 0.2
    enabled: bool = True

    @classmethod
    def from_env(cls, name: str) -> "BackendSettings":
        """Load settings for a backend from ``<NAME>_*`` variables."""
        prefix = name.upper()
        return cls(
            name=name,
            api_key=os.getenv(f"{prefix}_API_KEY", ""),
            model=os.getenv(f"{prefix}_MODEL"),
            base_url=os.getenv(f"{prefix}_BASE_URL"),
            organization=os.getenv(f"{prefix}_ORGANIZATION"),
            max_retries=_env_int(f"{prefix}_MAX_RETRIES", 0),
            timeout_ms=_env_int(f"{prefix}_TIMEOUT", _env_int("TIMEOUT", 30000)),
            max_tokens=_env_int(f"{prefix}_MAX_TOKENS", _env_int("MAX_TOKENS", 1500)),
            temperature=_env_float(
                f"{prefix}_TEMPERATURE", _env_float("TEMPERATURE", 0.2)
            ),
            enabled=os.getenv(f"{prefix}_ENABLED") != "false",
        )

    def validate(self) -> list[str]:
        """Return a list of settings errors (empty when valid)."""
        errors: list[str] = []
        if not self.api_key:
            errors.append(f"API key is required for {self.name}")
        if self.max_retries < 0:
            errors.append("max_retries must be non-negative")
        if self.timeout_ms < 1000:
            errors.append("timeout must be at least 1000ms")
        if not 0.0 <= self.temperature <= 2.0:
            errors.append("temperature must be between 0 and 2")
        if self.max_tokens < 1:
            errors.append("max_tokens must be positive")
        return errors


@dataclass
class AppConfig:
    """Service configuration: which backends to use and how to review."""

    primary_backend: str = "openai"
    fallback_backends: list[str] = field(default_factory=list)
    backends: dict[str, BackendSettings] = field(default_factory=dict)
    review: ReviewConfig = field(default_factory=ReviewConfig)

    @property
    def backend_order(self) -> list[str]:
        """Primary first, then fallbacks, without duplicates."""
        order: list[str] = []
        for name in [self.primary_backend, *self.fallback_backends]:
            if name not in order:
                order.append(name)
        return order

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        primary = os.getenv("AI_PROVIDER", "openai")
        fallbacks_raw = os.getenv("FALLBACK_PROVIDERS", "")
        fallbacks = [s.strip() for s in fallbacks_raw.split(",") if s.strip()]

        backends: dict[str, BackendSettings] = {}
        for name in [primary, *fallbacks]:
            settings = BackendSettings.from_env(name)
            if settings.api_key and settings.enabled:
                backends[name] = settings

        return cls(
            primary_backend=primary,
            fallback_backends=fallbacks,
            backends=backends,
            review=ReviewConfig.from_env(),
        )
