"""
Exception hierarchy for the RAG pipeline.

Configuration errors are fatal and never retried. Provider errors are
transient and go through the retry policy in services/resilience.py.

Usage:
    from fin_rag.exceptions import ConfigurationError
    raise ConfigurationError("GOOGLE_API_KEY required for embeddings")
"""

from __future__ import annotations

from typing import Any


class FinRagError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(FinRagError, ValueError):
    """Missing credentials, unknown provider type, or missing collection."""


class DimensionMismatchError(ConfigurationError):
    """The embedding model's vector size differs from the collection's."""


class ProviderError(FinRagError):
    """An embedding, completion or vector-store call failed."""


class ProviderTimeoutError(ProviderError, TimeoutError):
    """An external call did not finish before its deadline."""
