# =============================================================================
# Celery Task Definitions - Document Ingestion
# =============================================================================
#
# `ingest_paths` runs the async ingestion pipeline (services/ingestion.py)
# inside a synchronous Celery worker via asyncio.run().
#
# IMPORTANT: Celery workers are SYNCHRONOUS. The task owns its event loop
# for the duration of the run; nothing async leaks out of it.
#
# RETRY STRATEGY:
# Transient provider errors are already retried per batch inside the
# pipeline, and a document that still fails is logged and counted as 0.
# The task itself only fails on configuration errors (missing keys) or
# missing paths, which a Celery-level retry would not fix, so it does
# not retry.
# =============================================================================

import asyncio
import logging
from dataclasses import fields

from fin_rag.services.ingestion import IngestOptions, ingest
from fin_rag.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

_OPTION_NAMES = {f.name for f in fields(IngestOptions)}


@celery_app.task(bind=True, name="ingest_paths")
def ingest_paths(self, paths: list[str], overrides: dict | None = None) -> dict:
    """
    Ingest PDF files/folders and return per-document chunk counts.

    Args:
        self: Celery task instance (bound task, provides self.request.id).
        paths: Files or directories on the worker host.
        overrides: IngestOptions field overrides (unknown keys ignored).

    Returns:
        {"chunk_counts": {path: n}, "total_chunks": int, "documents": int}
    """
    task_id = self.request.id
    overrides = {k: v for k, v in (overrides or {}).items() if k in _OPTION_NAMES}
    options = IngestOptions(**overrides)

    logger.info("[%s] Starting ingestion of %s (overrides=%s)", task_id, paths, overrides)
    counts = asyncio.run(ingest(paths, options))

    summary = {
        "chunk_counts": counts,
        "total_chunks": sum(counts.values()),
        "documents": len(counts),
    }
    logger.info(
        "[%s] Ingestion complete: %d chunks across %d documents",
        task_id, summary["total_chunks"], summary["documents"],
    )
    return summary
