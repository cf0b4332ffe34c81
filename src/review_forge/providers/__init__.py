"""
Generation Backends

Pluggable text-generation backends consumed by review agents.
"""

from .base import (
    BackendError,
    BackendErrorKind,
    GenerationBackend,
    GenerationOptions,
    GenerationResponse,
    TokenUsage,
)
from .registry import ProviderRegistry

__all__ = [
    "BackendError",
    "BackendErrorKind",
    "GenerationBackend",
    "GenerationOptions",
    "GenerationResponse",
    "TokenUsage",
    "ProviderRegistry",
]
