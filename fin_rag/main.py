# =============================================================================
# FastAPI Application - Entry Point
# =============================================================================
#
# Run locally:
#   uvicorn fin_rag.main:app --reload
#
# ROUTES:
#   GET  /health           - liveness + configured vector store
#   POST /ask              - question answering (api/ask.py)
#   POST /ingest           - queue ingestion (api/ingest.py)
#   GET  /ingest/{task_id} - ingestion status (api/ingest.py)
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fin_rag.api.ask import router as ask_router
from fin_rag.api.ingest import router as ingest_router
from fin_rag.config import settings
from fin_rag.logging_config import configure_logging
from fin_rag.models.responses import HealthResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info(
        "Starting %s v%s (vectorstore=%s, collection=%s)",
        settings.app_name, settings.app_version,
        settings.vectorstore_type, settings.qdrant_collection,
    )
    yield
    logger.info("Shutting down %s", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(ask_router)
app.include_router(ingest_router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health() -> HealthResponse:
    return HealthResponse(
        version=settings.app_version,
        service=settings.app_name,
        vectorstore=settings.vectorstore_type,
    )
