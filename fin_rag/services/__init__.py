# =============================================================================
# Services Package - Business Logic
# =============================================================================
# Ingestion and retrieval, separated from API handlers and agents:
#   - normalizer.py: whitespace/invisible-character text cleanup
#   - segmenter.py: positioned fragments → lines, page stats, page type,
#     heading picker (pure functions)
#   - parser.py: PDF discovery, filename metadata, PyMuPDF text positions
#   - chunker.py: per-page and recursive chunking with run-scoped dedupe
#   - embedder.py: OpenAI-compatible embeddings (OpenAI, Gemini, Jina)
#   - vectorstore.py: pluggable vector store protocol (Qdrant, Chroma)
#   - ingestion.py: batched embed + upsert pipeline with retries
#   - retriever.py: dimension-guarded search with company fallback
#   - llm.py: multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - resilience.py: timeouts, retry with backoff, strategy chains
# =============================================================================
