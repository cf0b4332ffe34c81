"""
Backend registry.

Maps backend names to factories and caches created instances keyed by
(backend name, model). The registry is created by the service startup routine
and passed explicitly into the pipeline; ``clear()`` resets it between tests.
"""

import asyncio
from typing import Callable

import structlog

from review_forge.config import BackendSettings

from .anthropic_backend import create_anthropic_backend
from .base import BackendError, BackendErrorKind, GenerationBackend
from .openai_backend import create_openai_backend

logger = structlog.get_logger(__name__)

BackendFactory = Callable[[BackendSettings], GenerationBackend]

DEFAULT_FACTORIES: dict[str, BackendFactory] = {
    "anthropic": create_anthropic_backend,
    "openai": create_openai_backend,
}

DEFAULT_ALIASES: dict[str, str] = {
    "claude": "anthropic",
    "gpt": "openai",
}


class ProviderRegistry:
    """Name-keyed backend factories with an instance cache."""

    def __init__(
        self,
        factories: dict[str, BackendFactory] | None = None,
        aliases: dict[str, str] | None = None,
    ):
        self._factories: dict[str, BackendFactory] = dict(
            DEFAULT_FACTORIES if factories is None else factories
        )
        self._aliases: dict[str, str] = dict(
            DEFAULT_ALIASES if aliases is None else aliases
        )
        self._instances: dict[tuple[str, str], GenerationBackend] = {}
        self._lock = asyncio.Lock()

    def resolve(self, name: str) -> str:
        """Normalize a backend name, following aliases."""
        normalized = name.strip().lower()
        return self._aliases.get(normalized, normalized)

    def register(self, name: str, factory: BackendFactory) -> None:
        """Register (or replace) a backend factory."""
        normalized = name.strip().lower()
        if normalized in self._factories:
            logger.warning("Backend already registered, overwriting", backend=normalized)
        self._factories[normalized] = factory
        logger.info("Registered backend", backend=normalized)

    def available(self) -> list[str]:
        """Canonical names of registered backends."""
        return sorted(self._factories)

    def cached(self, name: str, model: str | None = None) -> GenerationBackend | None:
        """Return a cached instance if one exists."""
        return self._instances.get((self.resolve(name), model or "default"))

    async def create(
        self, name: str, settings: BackendSettings, cache: bool = True
    ) -> GenerationBackend:
        """Create a backend, reusing a cached instance when allowed."""
        canonical = self.resolve(name)
        factory = self._factories.get(canonical)
        if factory is None:
            available = ", ".join(self.available())
            raise BackendError(
                f"Unknown backend: {name}. Available backends: {available}",
                kind=BackendErrorKind.INVALID_REQUEST,
                backend="registry",
            )

        key = (canonical, settings.model or "default")

        async with self._lock:
            if cache and key in self._instances:
                logger.debug("Using cached backend", backend=canonical, model=key[1])
                return self._instances[key]

            try:
                backend = factory(settings)
            except BackendError:
                raise
            except Exception as e:
                raise BackendError(
                    f"Failed to create backend {name}: {e}",
                    kind=BackendErrorKind.GENERIC,
                    backend="registry",
                ) from e

            if cache:
                self._instances[key] = backend
                logger.info("Cached backend", backend=canonical, model=key[1])

        return backend

    async def create_with_fallback(
        self, configs: list[BackendSettings]
    ) -> list[GenerationBackend]:
        """Create every backend that can be created; fail only if none can."""
        backends: list[GenerationBackend] = []

        for settings in configs:
            try:
                backends.append(await self.create(settings.name, settings))
            except BackendError as e:
                logger.warning(
                    "Failed to create backend", backend=settings.name, error=str(e)
                )

        if not backends:
            raise BackendError(
                "Failed to create any backends",
                kind=BackendErrorKind.GENERIC,
                backend="registry",
            )

        return backends

    def clear(self) -> None:
        """Drop all cached instances."""
        self._instances.clear()
        logger.info("Backend cache cleared")
