# =============================================================================
# Financial Document RAG Assistant
# =============================================================================
# Retrieval-augmented Q&A over earnings-call transcripts and investor
# presentations, with chart extraction for numeric questions.
#
# Package structure:
#   fin_rag/
#   ├── api/          → FastAPI route handlers (ask, ingest)
#   ├── agents/       → LangGraph query graph, answer synthesis, charts
#   ├── models/       → Pydantic V2 request/response and chart schemas
#   ├── services/     → Ingestion (parse, segment, chunk, embed, upsert),
#   │                    retrieval, LLM and vector store backends
#   └── workers/      → Celery ingestion task
# =============================================================================

__version__ = "0.1.0"
