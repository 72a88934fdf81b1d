# =============================================================================
# Retriever - Dimension-Guarded Vector Search with Company Fallback
# =============================================================================
#
# RETRIEVAL FLOW:
#   1. Embed the question (same provider/model as ingestion)
#   2. Compare the query vector length with the collection's declared
#      vector size; a mismatch is a configuration error raised BEFORE any
#      search is issued
#   3. Search: score floor 0.2, limit 8, exact company filter if given
#   4. Company filter returned nothing → unfiltered search (limit 16),
#      then a soft match of the company against payload company/title
#      (lower-case, punctuation removed, substring either way)
#   5. Soft match returned nothing → return the unfiltered results
#
# DESIGN DECISION: Degrade to some context rather than none. Company
# names in filenames are inconsistent ("Acme", "ACME Ltd", "Acme-Corp"),
# so an exact filter miss falls back instead of answering from nothing.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field

from fin_rag.config import settings
from fin_rag.exceptions import ConfigurationError, DimensionMismatchError
from fin_rag.services.embedder import EmbeddingProvider, get_embedder
from fin_rag.services.resilience import retry_async
from fin_rag.services.vectorstore import ScoredPoint, VectorStore, get_vector_store

logger = logging.getLogger(__name__)

_SOFT_STRIP_RE = re.compile(r"[^a-z0-9]")


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class RankedExcerpt:
    """A retrieved chunk with its similarity score and payload metadata."""

    id: int | str
    score: float
    text: str
    title: str | None = None
    source: str | None = None
    company: str | None = None
    doc_type: str | None = None
    published_date: str | None = None
    page_start: int | None = None
    page_end: int | None = None
    chunk_index: int | None = None
    heading: str | None = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_point(cls, point: ScoredPoint) -> RankedExcerpt:
        payload = point.payload or {}
        return cls(
            id=point.id,
            score=point.score,
            text=payload.get("text") or "",
            title=payload.get("title"),
            source=payload.get("source") or payload.get("path"),
            company=payload.get("company"),
            doc_type=payload.get("doc_type"),
            published_date=payload.get("published_date"),
            page_start=payload.get("page_start"),
            page_end=payload.get("page_end"),
            chunk_index=payload.get("chunk_index"),
            heading=payload.get("heading"),
            metadata=payload,
        )

    def as_source(self) -> dict:
        """Citation metadata for API responses (no excerpt text)."""
        return {
            "id": str(self.id),
            "source": self.source,
            "title": self.title,
            "company": self.company,
            "doc_type": self.doc_type,
            "published_date": self.published_date,
            "page_start": self.page_start,
            "page_end": self.page_end,
            "chunk_index": self.chunk_index,
            "score": self.score,
        }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def retrieve(
    question: str,
    company: str | None = None,
    *,
    embedder: EmbeddingProvider | None = None,
    store: VectorStore | None = None,
    collection: str | None = None,
) -> list[RankedExcerpt]:
    """
    Retrieve the excerpts most relevant to *question*.

    Args:
        question: The user's question.
        company: Optional company filter (exact match, with soft fallback).
        embedder: Embedding provider; defaults to get_embedder().
        store: Vector store; defaults to get_vector_store().
        collection: Collection name; defaults to settings.qdrant_collection.

    Returns:
        Excerpts sorted by similarity (highest first).

    Raises:
        DimensionMismatchError: Query vectors and collection sizes differ.
        ConfigurationError: The collection does not exist.
    """
    embedder = embedder or get_embedder()
    store = store or get_vector_store()
    collection = collection or settings.qdrant_collection

    vector = await retry_async(
        lambda: asyncio.to_thread(embedder.embed_query, question),
        label="query embedding",
        attempts=settings.retry_attempts,
        initial_delay=settings.retry_initial_delay_seconds,
        timeout=settings.provider_timeout_seconds,
    )
    await _check_dimensions(store, collection, len(vector))

    company = (company or "").strip() or None
    hits = await store.search(
        collection,
        vector,
        limit=settings.retrieval_top_k,
        score_threshold=settings.retrieval_score_threshold,
        filter={"company": company} if company else None,
    )
    if hits or not company:
        logger.info("Retrieved %d excerpts (company=%s)", len(hits), company)
        return [RankedExcerpt.from_point(h) for h in hits]

    logger.info(
        "Company filter '%s' matched nothing; falling back to unfiltered search",
        company,
    )
    unfiltered = await store.search(
        collection,
        vector,
        limit=settings.retrieval_fallback_limit,
        score_threshold=settings.retrieval_score_threshold,
    )
    excerpts = [RankedExcerpt.from_point(h) for h in unfiltered]
    soft = [e for e in excerpts if soft_company_match(company, e)]
    logger.info(
        "Soft company match kept %d of %d unfiltered excerpts",
        len(soft), len(excerpts),
    )
    return soft or excerpts


def soft_match(needle: str, haystack: str | None) -> bool:
    """Case- and punctuation-insensitive substring match, either direction."""
    a = _soft_key(needle)
    b = _soft_key(haystack or "")
    if not a or not b:
        return False
    return a in b or b in a


def soft_company_match(company: str, excerpt: RankedExcerpt) -> bool:
    return soft_match(company, excerpt.company) or soft_match(company, excerpt.title)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


async def _check_dimensions(store: VectorStore, collection: str, query_size: int) -> None:
    declared = await asyncio.to_thread(store.get_collection_size, collection)
    if declared is None:
        raise ConfigurationError(
            f"Collection '{collection}' does not exist. Run ingestion first.",
            details={"collection": collection},
        )
    if declared != query_size:
        raise DimensionMismatchError(
            f"Embedding model returns {query_size}-dim vectors but collection "
            f"'{collection}' declares {declared}. Use the same embedding model "
            f"for ingestion and querying.",
            details={"collection": collection, "expected": declared, "actual": query_size},
        )


def _soft_key(value: str) -> str:
    return _SOFT_STRIP_RE.sub("", value.lower())
