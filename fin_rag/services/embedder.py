# =============================================================================
# Embedding Service - Batch Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates vector embeddings through any OpenAI-compatible embeddings API.
# Presets cover OpenAI, Gemini (OpenAI-compatible endpoint) and Jina; any
# other provider works by setting EMBEDDING_BASE_URL.
#
# DESIGN DECISION: No retry logic in the embedder. Retries and timeouts
# are applied by the caller (services/ingestion.py and retriever.py via
# services/resilience.py), so each request is attempted exactly once here.
#
# The ingestion and query paths MUST use the same provider and model.
# The retriever enforces this by comparing vector sizes against the
# collection before searching.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from openai import OpenAI

from fin_rag.config import settings
from fin_rag.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DIMENSION_PROBE = "dimension probe"

# provider → (default base_url, settings attribute holding the API key)
_PRESETS: dict[str, tuple[str | None, str]] = {
    "openai": (None, "openai_api_key"),
    "gemini": (
        "https://generativelanguage.googleapis.com/v1beta/openai/",
        "google_api_key",
    ),
    "jina": ("https://api.jina.ai/v1", "jina_api_key"),
}


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class EmbeddingProvider(Protocol):
    """Anything that can embed a query and a batch of documents."""

    def embed_query(self, text: str) -> list[float]:
        ...

    def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        ...


# ---------------------------------------------------------------------------
# Implementation: OpenAI-Compatible Embeddings
# ---------------------------------------------------------------------------


class OpenAICompatibleEmbedder:
    """
    Embeddings via the OpenAI SDK with a configurable base_url.

    The client manages its own HTTP connection pool and is thread-safe, so
    it is safe to call from asyncio.to_thread().
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("No API key configured for embeddings")
        client_kwargs: dict = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        self._client = OpenAI(**client_kwargs)
        self.model = model
        self.name = f"embeddings/{model}"

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            model, base_url or "https://api.openai.com/v1",
        )

    def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Embed a batch of texts in one API call.

        Returns embeddings in the SAME ORDER as the input texts.
        """
        if not texts:
            return []
        response = self._client.embeddings.create(model=self.model, input=list(texts))

        embeddings: list[list[float]] = [[] for _ in texts]
        for item in sorted(response.data, key=lambda x: x.index):
            embeddings[item.index] = item.embedding

        logger.debug(
            "Embedded %d texts, %d prompt tokens",
            len(texts),
            response.usage.prompt_tokens if response.usage else 0,
        )
        return embeddings

    def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        return self.embed_documents([text])[0]


# ---------------------------------------------------------------------------
# Factory - Lazy Singleton
# ---------------------------------------------------------------------------

_embedder: OpenAICompatibleEmbedder | None = None


def get_embedder() -> OpenAICompatibleEmbedder:
    """
    Return the configured embedder.

    API key resolution order:
      1. EMBEDDING_API_KEY
      2. The preset's provider key (OPENAI_API_KEY, GOOGLE_API_KEY, JINA_API_KEY)

    Raises:
        ConfigurationError: Unknown provider or no API key.
    """
    global _embedder
    if _embedder is None:
        provider = settings.embedding_provider
        if provider not in _PRESETS and not settings.embedding_base_url:
            raise ConfigurationError(
                f"Unknown embedding provider '{provider}'. "
                f"Supported: {sorted(_PRESETS)} or set EMBEDDING_BASE_URL"
            )
        default_base_url, key_attr = _PRESETS.get(provider, (None, "openai_api_key"))
        api_key = settings.embedding_api_key or getattr(settings, key_attr)
        if not api_key:
            raise ConfigurationError(
                f"No API key for embeddings. Set EMBEDDING_API_KEY or "
                f"{key_attr.upper()} in .env"
            )
        _embedder = OpenAICompatibleEmbedder(
            api_key=api_key,
            model=settings.embedding_model,
            base_url=settings.embedding_base_url or default_base_url,
        )
    return _embedder
