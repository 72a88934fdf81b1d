# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# Celery runs the ingestion pipeline in the background:
#   POST /ingest → Redis (broker) → worker: walk → segment → chunk →
#   embed → upsert → Redis (result) → GET /ingest/{task_id}
#
# The broker (Redis db 0) queues tasks. Workers consume and execute them.
# Results are stored in Redis db 1 for the API to poll.
#
# Start a worker:
#   celery -A fin_rag.workers.celery_app worker --loglevel=info
# =============================================================================

from celery import Celery
from celery.signals import setup_logging

from fin_rag.config import settings
from fin_rag.logging_config import configure_logging

celery_app = Celery(
    "fin_rag.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # --- Serialization ---
    # JSON only; task arguments are paths and plain option dicts.
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # --- Reliability ---
    # Acknowledge after completion so a crashed worker's task is re-queued.
    # Re-running is safe: point ids are deterministic, upserts overwrite.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # --- Timeouts ---
    # Folders of PDFs take a while; one hour soft, 70 minutes hard.
    task_soft_time_limit=3600,
    task_time_limit=4200,

    # --- Results ---
    result_expires=3600,
    task_track_started=True,

    include=["fin_rag.workers.tasks"],
)


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging()
