# =============================================================================
# Vector Store Abstraction - Pluggable Backend Protocol
# =============================================================================
#
# Provides a common collection-oriented interface for vector similarity
# search, with concrete implementations for Qdrant and ChromaDB.
#
# DESIGN DECISION: Protocol (structural typing) over ABC. Test doubles only
# need the right methods, no inheritance.
#
# DESIGN DECISION: Mixed sync/async interface.
# - collection management and upsert() are sync; the ingestion pipeline
#   wraps them in asyncio.to_thread() under its retry/timeout policy
# - search() is async → called from the query graph
#
# Collections use cosine distance. Scores returned by search() are cosine
# similarities (higher = more relevant).
#
# ARCHITECTURE:
#   VectorStore (Protocol)
#   ├── QdrantVectorStore - Qdrant Cloud / server / in-memory (":memory:")
#   └── ChromaVectorStore - ChromaDB (in-process or client/server); the
#                           collection's vector size is kept in its metadata
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

import chromadb
from qdrant_client import QdrantClient, models

from fin_rag.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class PointRecord:
    """
    An embedded chunk as stored in the vector store.

    id is deterministic (see ingestion.point_id), so re-ingesting the same
    document overwrites its points instead of duplicating them.
    """

    id: int
    vector: list[float]
    payload: dict = field(default_factory=dict)


@dataclass
class ScoredPoint:
    """A single search hit: point id, cosine similarity and payload."""

    id: int | str
    score: float
    payload: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class VectorStore(Protocol):
    """Interface shared by the Qdrant and ChromaDB backends."""

    def get_collection_size(self, name: str) -> int | None:
        """Declared vector size of the collection, or None if it does not exist."""
        ...

    def create_collection(self, name: str, size: int) -> None:
        """Create a cosine-distance collection with the given vector size."""
        ...

    def upsert(self, name: str, points: list[PointRecord]) -> None:
        """Insert or overwrite points by id."""
        ...

    def count(self, name: str) -> int:
        ...

    def sample(
        self, name: str, limit: int = 10, filter: dict | None = None,
    ) -> list[ScoredPoint]:
        """First *limit* points (payload only, score 0.0)."""
        ...

    async def search(
        self,
        name: str,
        vector: list[float],
        limit: int = 8,
        score_threshold: float | None = None,
        filter: dict | None = None,
    ) -> list[ScoredPoint]:
        """
        Nearest-neighbour search.

        Args:
            name: Collection name.
            vector: Query embedding.
            limit: Maximum number of hits.
            score_threshold: Drop hits with similarity below this.
            filter: Exact-match payload conditions, e.g. {"company": "Acme"}.

        Returns:
            Hits sorted by similarity (highest first).
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: Qdrant
# ---------------------------------------------------------------------------


class QdrantVectorStore:
    """
    Qdrant-backed vector store.

    With QDRANT_URL unset the client runs in local in-memory mode, which is
    what tests and quick local trials use.
    """

    def __init__(self, client: QdrantClient | None = None) -> None:
        if client is not None:
            self._client = client
        elif settings.qdrant_url:
            self._client = QdrantClient(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key,
                timeout=settings.qdrant_timeout_seconds,
            )
        else:
            self._client = QdrantClient(location=":memory:")

    def get_collection_size(self, name: str) -> int | None:
        if not self._client.collection_exists(name):
            return None
        info = self._client.get_collection(name)
        vectors = info.config.params.vectors
        if isinstance(vectors, dict):
            # Named vectors: use the first (this project only creates unnamed)
            vectors = next(iter(vectors.values()))
        return vectors.size if vectors is not None else None

    def create_collection(self, name: str, size: int) -> None:
        self._client.create_collection(
            collection_name=name,
            vectors_config=models.VectorParams(
                size=size, distance=models.Distance.COSINE,
            ),
        )
        logger.info("Created Qdrant collection '%s' (size=%d, cosine)", name, size)

    def upsert(self, name: str, points: list[PointRecord]) -> None:
        self._client.upsert(
            collection_name=name,
            points=[
                models.PointStruct(id=p.id, vector=p.vector, payload=p.payload)
                for p in points
            ],
            wait=True,
        )
        logger.debug("Upserted %d points into '%s'", len(points), name)

    def count(self, name: str) -> int:
        return self._client.count(collection_name=name, exact=True).count

    def sample(
        self, name: str, limit: int = 10, filter: dict | None = None,
    ) -> list[ScoredPoint]:
        records, _next_offset = self._client.scroll(
            collection_name=name,
            limit=limit,
            scroll_filter=_qdrant_filter(filter),
            with_payload=True,
            with_vectors=False,
        )
        return [ScoredPoint(id=r.id, score=0.0, payload=r.payload or {}) for r in records]

    async def search(
        self,
        name: str,
        vector: list[float],
        limit: int = 8,
        score_threshold: float | None = None,
        filter: dict | None = None,
    ) -> list[ScoredPoint]:
        def _sync_search() -> list[ScoredPoint]:
            response = self._client.query_points(
                collection_name=name,
                query=vector,
                limit=limit,
                score_threshold=score_threshold,
                query_filter=_qdrant_filter(filter),
                with_payload=True,
            )
            return [
                ScoredPoint(id=p.id, score=round(p.score, 4), payload=p.payload or {})
                for p in response.points
            ]

        results = await asyncio.to_thread(_sync_search)
        logger.debug(
            "Qdrant search returned %d hits (limit=%d, filter=%s)",
            len(results), limit, filter,
        )
        return results


# ---------------------------------------------------------------------------
# Implementation 2: ChromaDB
# ---------------------------------------------------------------------------


class ChromaVectorStore:
    """
    ChromaDB-backed vector store.

    ChromaDB does not declare a vector size per collection, so the size is
    stored in collection metadata under "dimension" at creation time.
    Point ids are stored as strings and payload["text"] as the document.
    """

    def __init__(self, client: chromadb.ClientAPI | None = None) -> None:
        if client is not None:
            self._client = client
        elif settings.chroma_url:
            self._client = chromadb.HttpClient(host=settings.chroma_url)
        else:
            self._client = chromadb.Client()

    def _collection_names(self) -> list[str]:
        # chromadb >= 0.6 returns names; older releases return Collection objects
        return [
            c if isinstance(c, str) else c.name
            for c in self._client.list_collections()
        ]

    def get_collection_size(self, name: str) -> int | None:
        if name not in self._collection_names():
            return None
        metadata = self._client.get_collection(name).metadata or {}
        size = metadata.get("dimension")
        return int(size) if size is not None else None

    def create_collection(self, name: str, size: int) -> None:
        self._client.get_or_create_collection(
            name=name,
            metadata={"hnsw:space": "cosine", "dimension": size},
        )
        logger.info("Created Chroma collection '%s' (size=%d, cosine)", name, size)

    def upsert(self, name: str, points: list[PointRecord]) -> None:
        collection = self._client.get_collection(name)
        collection.upsert(
            ids=[str(p.id) for p in points],
            embeddings=[p.vector for p in points],
            documents=[p.payload.get("text", "") for p in points],
            metadatas=[
                _sanitise_chroma_metadata(
                    {k: v for k, v in p.payload.items() if k != "text"}
                )
                for p in points
            ],
        )
        logger.debug("Upserted %d points into '%s'", len(points), name)

    def count(self, name: str) -> int:
        return self._client.get_collection(name).count()

    def sample(
        self, name: str, limit: int = 10, filter: dict | None = None,
    ) -> list[ScoredPoint]:
        results = self._client.get_collection(name).get(
            limit=limit,
            where=_chroma_where(filter),
            include=["documents", "metadatas"],
        )
        return [
            ScoredPoint(
                id=_chroma_id(chroma_id),
                score=0.0,
                payload={**(results["metadatas"][i] or {}), "text": results["documents"][i]},
            )
            for i, chroma_id in enumerate(results["ids"])
        ]

    async def search(
        self,
        name: str,
        vector: list[float],
        limit: int = 8,
        score_threshold: float | None = None,
        filter: dict | None = None,
    ) -> list[ScoredPoint]:
        """Similarity search; the sync client runs in a worker thread."""

        def _sync_search() -> list[ScoredPoint]:
            collection = self._client.get_collection(name)
            results = collection.query(
                query_embeddings=[vector],
                n_results=limit,
                where=_chroma_where(filter),
                include=["documents", "metadatas", "distances"],
            )

            hits: list[ScoredPoint] = []
            if results and results["ids"] and results["ids"][0]:
                for i, chroma_id in enumerate(results["ids"][0]):
                    # ChromaDB cosine distance is in [0, 2]; convert to similarity
                    similarity = round(1.0 - results["distances"][0][i], 4)
                    if score_threshold is not None and similarity < score_threshold:
                        continue
                    payload = dict(results["metadatas"][0][i] or {})
                    payload["text"] = results["documents"][0][i] or ""
                    hits.append(ScoredPoint(
                        id=_chroma_id(chroma_id), score=similarity, payload=payload,
                    ))
            return hits

        return await asyncio.to_thread(_sync_search)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_stores: dict[str, QdrantVectorStore | ChromaVectorStore] = {}


def get_vector_store(
    override_type: str | None = None,
) -> QdrantVectorStore | ChromaVectorStore:
    """
    Return the configured vector store backend (one instance per type).

    Reads `vectorstore_type` from settings:
    - "qdrant" → QdrantVectorStore (default)
    - "chroma" → ChromaVectorStore

    Instances are cached so in-memory backends keep their data between
    ingestion and querying in the same process.
    """
    store_type = override_type or settings.vectorstore_type
    if store_type not in _stores:
        if store_type == "chroma":
            logger.info("Using ChromaDB vector store")
            _stores[store_type] = ChromaVectorStore()
        else:
            logger.info("Using Qdrant vector store")
            _stores[store_type] = QdrantVectorStore()
    return _stores[store_type]


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _qdrant_filter(filter: dict | None) -> models.Filter | None:
    if not filter:
        return None
    return models.Filter(must=[
        models.FieldCondition(key=key, match=models.MatchValue(value=value))
        for key, value in filter.items()
    ])


def _chroma_where(filter: dict | None) -> dict | None:
    if not filter:
        return None
    if len(filter) == 1:
        return dict(filter)
    return {"$and": [{key: value} for key, value in filter.items()]}


def _chroma_id(chroma_id: str) -> int | str:
    return int(chroma_id) if chroma_id.isdigit() else chroma_id


def _sanitise_chroma_metadata(metadata: dict) -> dict:
    """
    Sanitise metadata for ChromaDB compatibility.

    ChromaDB requires all metadata values to be str, int, float, or bool.
    None values are dropped, lists become comma-separated strings.
    """
    sanitised = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, list):
            sanitised[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            sanitised[key] = value
        else:
            sanitised[key] = str(value)
    return sanitised
