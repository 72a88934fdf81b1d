# =============================================================================
# Ingestion Pipeline - Segment → Chunk → Embed → Upsert
# =============================================================================
#
# INGESTION PIPELINE (per document, sequential):
#   1. Infer document metadata from the file name
#   2. For each page: extract positioned text, segment into lines, pick a
#      chunking mode and chunk (failures on a page are logged and skipped)
#   3. Buffer accepted chunks; every embed_batch_size chunks (and at the
#      end of each text-mode page) embed the batch and upsert it in
#      sub-batches of upsert_batch_size
#   4. Flush whatever is left at the end of the document
#
# Once per run, the embedding dimension is probed with a sentinel string
# and the collection is created (cosine distance) if it does not exist.
#
# Embedding and upsert calls are serialized (one batch in flight) and go
# through retry_async(): 3 attempts, 0.5s backoff doubling, each attempt
# raced against timeout_seconds. When a batch finally fails the document
# is abandoned; ingest() logs it, records 0 and moves on to the next file.
#
# Point ids are md5(path + "#" + chunk_index) truncated to 48 bits, so
# re-ingesting a document overwrites its points.
# =============================================================================

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from fin_rag.config import settings
from fin_rag.exceptions import ConfigurationError
from fin_rag.services.chunker import Chunk, ChunkingConfig, IngestionRun, build_splitter, chunk_page
from fin_rag.services.embedder import DIMENSION_PROBE, EmbeddingProvider, get_embedder
from fin_rag.services.parser import DocumentMeta, document_meta_from_path, iter_page_fragments, walk_pdfs
from fin_rag.services.resilience import retry_async
from fin_rag.services.segmenter import segment_page
from fin_rag.services.vectorstore import PointRecord, VectorStore, get_vector_store

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class IngestOptions:
    """Per-run ingestion tunables. Defaults come from settings."""

    chunk_size: int = settings.chunk_size
    chunk_overlap: int = settings.chunk_overlap
    embed_batch_size: int = settings.embed_batch_size
    upsert_batch_size: int = settings.upsert_batch_size
    min_chunk_chars: int = settings.min_chunk_chars
    dedupe_window: int = settings.dedupe_window
    per_page: bool = False
    strategy: str = "auto"
    header_prefix: bool = True
    detect_slides: bool = True
    page_limit: int = 0  # 0 = all pages
    files_limit: int = 0  # 0 = all files
    timeout_seconds: float = settings.provider_timeout_seconds
    retry_attempts: int = settings.retry_attempts
    retry_initial_delay: float = settings.retry_initial_delay_seconds
    log_pages: bool = False
    collection: str | None = None  # defaults to settings.qdrant_collection

    def chunking(self) -> ChunkingConfig:
        return ChunkingConfig(
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            min_chunk_chars=self.min_chunk_chars,
            dedupe_window=self.dedupe_window,
            per_page=self.per_page,
            strategy=self.strategy,
            header_prefix=self.header_prefix,
            detect_slides=self.detect_slides,
        )


# ---------------------------------------------------------------------------
# Point Construction
# ---------------------------------------------------------------------------


def point_id(path: str, chunk_index: int) -> int:
    """Deterministic point id: first 48 bits of md5(path + "#" + index)."""
    digest = hashlib.md5(f"{path}#{chunk_index}".encode("utf-8")).hexdigest()
    return int(digest[:12], 16)


def build_point(document: DocumentMeta, chunk: Chunk, vector: list[float]) -> PointRecord:
    return PointRecord(
        id=point_id(document.path, chunk.chunk_index),
        vector=vector,
        payload={
            **document.payload(),
            "chunk_index": chunk.chunk_index,
            "text": chunk.content,
            "heading": chunk.heading,
            "page_start": chunk.page_start,
            "page_end": chunk.page_end,
            "token_count": chunk.token_count,
        },
    )


# ---------------------------------------------------------------------------
# Batch Writer
# ---------------------------------------------------------------------------


class _BatchWriter:
    """Buffers chunks for one document and flushes embed + upsert batches."""

    def __init__(
        self,
        document: DocumentMeta,
        embedder: EmbeddingProvider,
        store: VectorStore,
        collection: str,
        options: IngestOptions,
    ) -> None:
        self.document = document
        self.embedder = embedder
        self.store = store
        self.collection = collection
        self.options = options
        self.pending: list[Chunk] = []
        self.processed = 0

    async def add(self, chunk: Chunk) -> None:
        self.pending.append(chunk)
        if len(self.pending) >= self.options.embed_batch_size:
            await self.flush()

    async def flush(self) -> None:
        if not self.pending:
            return
        texts = [c.content for c in self.pending]
        vectors = await retry_async(
            lambda: asyncio.to_thread(self.embedder.embed_documents, texts),
            label=f"embeddings ({len(texts)} chunks)",
            attempts=self.options.retry_attempts,
            initial_delay=self.options.retry_initial_delay,
            timeout=self.options.timeout_seconds,
        )
        if len(vectors) != len(texts):
            raise RuntimeError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts"
            )
        points = [
            build_point(self.document, chunk, vector)
            for chunk, vector in zip(self.pending, vectors, strict=True)
        ]

        step = max(self.options.upsert_batch_size, 1)
        for start in range(0, len(points), step):
            sub = points[start : start + step]
            await retry_async(
                lambda sub=sub: asyncio.to_thread(self.store.upsert, self.collection, sub),
                label=f"upsert ({len(sub)} points)",
                attempts=self.options.retry_attempts,
                initial_delay=self.options.retry_initial_delay,
                timeout=self.options.timeout_seconds,
            )

        self.processed += len(self.pending)
        self.pending = []
        logger.info(
            "Upserted batch for '%s', %d chunks so far",
            self.document.source, self.processed,
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def ensure_collection(
    store: VectorStore,
    embedder: EmbeddingProvider,
    collection: str,
    options: IngestOptions,
) -> int:
    """
    Probe the embedding dimension and create the collection if missing.

    Returns:
        The probed vector size.
    """
    probe = await retry_async(
        lambda: asyncio.to_thread(embedder.embed_query, DIMENSION_PROBE),
        label="dimension probe",
        attempts=options.retry_attempts,
        initial_delay=options.retry_initial_delay,
        timeout=options.timeout_seconds,
    )
    vector_size = len(probe)
    existing = await asyncio.to_thread(store.get_collection_size, collection)
    if existing is None:
        await asyncio.to_thread(store.create_collection, collection, vector_size)
    elif existing != vector_size:
        logger.warning(
            "Collection '%s' declares size %d but the embedding model returns %d; "
            "queries will be refused until they match",
            collection, existing, vector_size,
        )
    return vector_size


async def ingest_document(
    path: str | Path,
    options: IngestOptions,
    embedder: EmbeddingProvider,
    store: VectorStore,
    collection: str,
) -> int:
    """
    Ingest a single PDF. Returns the number of chunks upserted.

    Raises:
        Exception: When an embedding or upsert batch fails after retries.
    """
    document = document_meta_from_path(path)
    config = options.chunking()
    run = IngestionRun(document=document, dedupe_window=config.dedupe_window)
    writer = _BatchWriter(document, embedder, store, collection, options)
    splitter = build_splitter(config)

    for raw_page in iter_page_fragments(path, page_limit=options.page_limit):
        try:
            layout = segment_page(raw_page.page_number, raw_page.fragments)
            mode, chunks = chunk_page(layout, run, config, splitter)
        except Exception as exc:
            logger.warning(
                "Skipping page %d of '%s': %s",
                raw_page.page_number, document.source, exc,
            )
            continue

        if options.log_pages:
            logger.info(
                "Page %d: chars=%d mode=%s chunks=%d%s",
                raw_page.page_number, layout.stats.total_chars, mode, len(chunks),
                f" heading={chunks[0].heading!r}" if chunks and chunks[0].heading else "",
            )

        for chunk in chunks:
            await writer.add(chunk)
        # Text pages flush at page end so batches never span many pages
        if mode == "text":
            await writer.flush()

    await writer.flush()

    if run.duplicates_skipped:
        logger.info(
            "Skipped %d duplicate chunks in '%s'", run.duplicates_skipped, document.source,
        )
    if writer.processed == 0:
        logger.warning(
            "No text chunks found in '%s' (scanned PDF? OCR is not supported)",
            document.source,
        )
    return writer.processed


async def ingest(
    paths: Sequence[str | Path],
    options: IngestOptions | None = None,
    embedder: EmbeddingProvider | None = None,
    store: VectorStore | None = None,
) -> dict[str, int]:
    """
    Ingest PDFs (files or directories) into the vector store.

    Args:
        paths: PDF files and/or directories to walk.
        options: Tunables; defaults from settings.
        embedder: Embedding provider; defaults to get_embedder().
        store: Vector store; defaults to get_vector_store().

    Returns:
        Mapping of document path → number of chunks upserted (0 when the
        document failed or had no text).

    Raises:
        ConfigurationError: Missing credentials or unknown providers.
    """
    options = options or IngestOptions()
    embedder = embedder or get_embedder()
    store = store or get_vector_store()
    collection = options.collection or settings.qdrant_collection

    files: list[Path] = []
    for target in paths:
        files.extend(walk_pdfs(target))
    if options.files_limit > 0:
        files = files[: options.files_limit]
    if not files:
        logger.info("No PDFs found to ingest")
        return {}

    logger.info(
        "Found %d PDF(s); collection=%s, chunk_size=%d, overlap=%d, strategy=%s",
        len(files), collection, options.chunk_size, options.chunk_overlap, options.strategy,
    )
    await ensure_collection(store, embedder, collection, options)

    counts: dict[str, int] = {}
    for i, file in enumerate(files, 1):
        logger.info("[%d/%d] Reading %s", i, len(files), file.name)
        try:
            counts[str(file)] = await ingest_document(file, options, embedder, store, collection)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.exception("Ingestion failed for '%s': %s", file.name, exc)
            counts[str(file)] = 0
            continue
        logger.info("Upserted %d chunks for %s", counts[str(file)], file.name)

    logger.info("Ingestion complete: %d chunks across %d files", sum(counts.values()), len(counts))
    return counts
