# =============================================================================
# API Response Models - Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API. Source
# references carry citation metadata only; excerpt text and vectors stay
# server-side.
# =============================================================================

from pydantic import BaseModel, Field

from fin_rag.models.chart import ChartSpec


class HealthResponse(BaseModel):
    """Response for GET /health - confirms the API is running."""

    status: str = "ok"
    version: str
    service: str
    vectorstore: str


class SourceRef(BaseModel):
    """
    Citation metadata for one retrieved excerpt.

    Position in the list matches the [S1], [S2] markers in the answer.
    """

    id: str = Field(description="Vector store point id")
    source: str | None = Field(default=None, description="Source file name")
    title: str | None = None
    company: str | None = None
    doc_type: str | None = None
    published_date: str | None = None
    page_start: int | None = None
    page_end: int | None = None
    chunk_index: int | None = None
    score: float | None = Field(
        default=None,
        description="Cosine similarity (higher = more relevant)",
    )


class AskResponse(BaseModel):
    """Response for POST /ask - answer, citations and optional chart."""

    answer: str = Field(description="The synthesized answer with [S#] citations")
    sources: list[SourceRef] = Field(
        description="Excerpts offered to the model, in citation order",
    )
    chart_spec: ChartSpec | None = Field(
        default=None,
        description="Chart specification when the question asked for one and data allowed it",
    )
    chartjs: dict | None = Field(
        default=None,
        description="The chart_spec translated to a Chart.js config",
    )


class IngestResponse(BaseModel):
    """
    Response for POST /ingest - confirms that ingestion was queued.

    Poll GET /ingest/{task_id} to know when the documents are searchable.
    """

    task_id: str = Field(description="Celery task ID for tracking ingestion progress")
    status: str = Field(default="PENDING")
    message: str = Field(default="Ingestion queued.")


class IngestStatusResponse(BaseModel):
    """Response for GET /ingest/{task_id} - ingestion task status."""

    task_id: str
    status: str = Field(description="Task status: PENDING, STARTED, SUCCESS, FAILURE")
    chunk_counts: dict[str, int] | None = Field(
        default=None,
        description="Chunks upserted per document (available when status is SUCCESS)",
    )
    error: str | None = Field(
        default=None,
        description="Error message (available when status is FAILURE)",
    )
