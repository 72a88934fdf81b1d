# =============================================================================
# Application Configuration - Pydantic Settings
# =============================================================================
#
# All runtime configuration is read from environment variables (or a .env
# file) into a single typed Settings object.
#
# Priority order (highest first):
#   1. Environment variables (e.g., `QDRANT_URL=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from fin_rag.config import settings
#   print(settings.qdrant_collection)
# =============================================================================

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Credentials have no defaults. Everything else defaults to values that
    work for local development against an in-memory vector store.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Financial Document RAG Assistant"
    app_version: str = "0.1.0"
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Vector Store - Pluggable Backend
    # -------------------------------------------------------------------------
    # Options:
    #   - "qdrant": Qdrant (cloud, server, or ":memory:" when qdrant_url is
    #     unset)
    #   - "chroma": ChromaDB (in-process, or client/server via chroma_url)
    # -------------------------------------------------------------------------
    vectorstore_type: str = "qdrant"
    qdrant_url: str | None = None
    qdrant_api_key: str | None = None
    qdrant_collection: str = "docs_text-embedding-004"
    qdrant_timeout_seconds: int = 30
    chroma_url: str | None = None

    # -------------------------------------------------------------------------
    # Embedding Configuration
    # -------------------------------------------------------------------------
    # Embeddings go through the OpenAI SDK. embedding_provider picks a
    # default base URL and key variable:
    #   - "openai": api.openai.com, OPENAI_API_KEY
    #   - "gemini": Gemini's OpenAI-compatible endpoint, GOOGLE_API_KEY
    #   - "jina":   api.jina.ai, JINA_API_KEY
    # embedding_base_url / embedding_api_key override the preset.
    #
    # The SAME model must be used for ingestion and querying. The retriever
    # refuses to search a collection whose vector size differs from the
    # query vector.
    # -------------------------------------------------------------------------
    embedding_provider: str = "gemini"
    embedding_model: str = "text-embedding-004"
    embedding_base_url: str | None = None
    embedding_api_key: str | None = None

    openai_api_key: str = ""
    google_api_key: str = ""
    jina_api_key: str = ""
    anthropic_api_key: str = ""
    deepseek_api_key: str = ""

    # -------------------------------------------------------------------------
    # LLM Configuration - Primary Provider
    # -------------------------------------------------------------------------
    # Provider types:
    #   - "anthropic": Claude via native Anthropic SDK
    #   - "openai_compatible": any OpenAI-compatible API (OpenAI, DeepSeek,
    #     Gemini's compatibility endpoint, Qwen, ...)
    #
    # Example configs:
    #   DeepSeek:  provider=openai_compatible, base_url=https://api.deepseek.com/v1, model=deepseek-chat
    #   Gemini:    provider=openai_compatible, base_url=https://generativelanguage.googleapis.com/v1beta/openai/, model=gemini-1.5-flash
    #   Claude:    provider=anthropic, model=claude-sonnet-4-6
    # -------------------------------------------------------------------------
    llm_provider: str = "openai_compatible"
    llm_base_url: str | None = (
        "https://generativelanguage.googleapis.com/v1beta/openai/"
    )
    llm_api_key: str | None = None
    llm_model: str = "gemini-1.5-flash"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 1024

    # -------------------------------------------------------------------------
    # LLM Configuration - Alternate Provider
    # -------------------------------------------------------------------------
    # Tried once when the primary provider fails (answers) or yields no
    # usable chart. Only used when a key resolves for it.
    # -------------------------------------------------------------------------
    llm_fallback_provider: str | None = "openai_compatible"
    llm_fallback_base_url: str | None = "https://api.deepseek.com/v1"
    llm_fallback_api_key: str | None = None
    llm_fallback_model: str = "deepseek-chat"

    # -------------------------------------------------------------------------
    # LLM Configuration - Chart Extraction
    # -------------------------------------------------------------------------
    # Optional dedicated provider/model for structured chart extraction.
    # Unset → the primary provider is used.
    # -------------------------------------------------------------------------
    chart_llm_provider: str | None = None
    chart_llm_model: str | None = None
    chart_llm_base_url: str | None = None
    chart_llm_api_key: str | None = None

    # -------------------------------------------------------------------------
    # Retrieval Configuration
    # -------------------------------------------------------------------------
    retrieval_top_k: int = 8
    retrieval_score_threshold: float = 0.2
    retrieval_fallback_limit: int = 16
    answer_max_excerpts: int = 6

    # -------------------------------------------------------------------------
    # Ingestion Defaults (all overridable per run, see IngestOptions)
    # -------------------------------------------------------------------------
    chunk_size: int = 1200
    chunk_overlap: int = 200
    embed_batch_size: int = 8
    upsert_batch_size: int = 32
    min_chunk_chars: int = 200
    dedupe_window: int = 20000
    provider_timeout_seconds: float = 30.0
    retry_attempts: int = 3
    retry_initial_delay_seconds: float = 0.5

    # -------------------------------------------------------------------------
    # API
    # -------------------------------------------------------------------------
    # Wall-clock budget for POST /ask. 0 disables the budget.
    # -------------------------------------------------------------------------
    ask_timeout_seconds: float = 0.0

    # -------------------------------------------------------------------------
    # Celery (ingestion worker)
    # -------------------------------------------------------------------------
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Module-level convenience instance
# ---------------------------------------------------------------------------
settings = Settings()
