# =============================================================================
# Workers Package - Celery Background Tasks
# =============================================================================
#   - celery_app.py: Celery application configuration
#   - tasks.py: ingest_paths task (runs the async ingestion pipeline)
# =============================================================================
