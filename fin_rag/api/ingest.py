# =============================================================================
# Ingestion API - Dispatch and Status Tracking
# =============================================================================
#
# ENDPOINTS:
#   POST /ingest           - Dispatch a Celery task over server-side paths
#   GET  /ingest/{task_id} - Poll ingestion status (PENDING → SUCCESS/FAILURE)
#
# DESIGN DECISION: Async processing via Celery (not synchronous).
# Ingestion parses every page, embeds in batches and upserts with retries;
# a large folder takes minutes. The API returns a task_id immediately and
# the client polls for the per-document chunk counts.
#
# DESIGN DECISION: 202 Accepted (not 200 OK) for POST /ingest, since the
# work has been queued but not performed.
#
# Paths are resolved by the worker; they must exist on the worker host.
# =============================================================================

import logging

from celery.result import AsyncResult
from fastapi import APIRouter

from fin_rag.models.requests import IngestRequest
from fin_rag.models.responses import IngestResponse, IngestStatusResponse
from fin_rag.workers.tasks import ingest_paths

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingestion"])


# ---------------------------------------------------------------------------
# POST /ingest - Queue PDFs for ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=202,
    summary="Queue PDF files or folders for ingestion",
)
async def ingest_endpoint(request: IngestRequest) -> IngestResponse:
    overrides = request.option_overrides()
    task = ingest_paths.delay(request.paths, overrides)
    logger.info(
        "Dispatched ingestion task %s for %d path(s), overrides=%s",
        task.id, len(request.paths), overrides,
    )
    return IngestResponse(task_id=task.id)


# ---------------------------------------------------------------------------
# GET /ingest/{task_id} - Poll ingestion status
# ---------------------------------------------------------------------------


@router.get(
    "/ingest/{task_id}",
    response_model=IngestStatusResponse,
    summary="Check ingestion task status",
)
async def get_ingest_status(task_id: str) -> IngestStatusResponse:
    """
    Celery task states:
    - PENDING: Task not yet picked up by a worker
    - STARTED: Worker has begun processing
    - SUCCESS: Ingestion completed (chunk_counts available)
    - FAILURE: Ingestion failed (check error field)
    """
    result = AsyncResult(task_id, app=ingest_paths.app)
    status = result.status

    chunk_counts: dict[str, int] | None = None
    error: str | None = None
    if status == "SUCCESS":
        chunk_counts = (result.result or {}).get("chunk_counts")
    elif status == "FAILURE":
        error = str(result.result) if result.result else "Unknown error"

    return IngestStatusResponse(
        task_id=task_id,
        status=status,
        chunk_counts=chunk_counts,
        error=error,
    )
