# =============================================================================
# API Package - FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - ask.py: question answering with optional chart extraction
#   - ingest.py: Celery-backed ingestion dispatch and status polling
# =============================================================================
