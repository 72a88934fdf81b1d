# =============================================================================
# API Request Models - Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
# FastAPI uses them for:
# 1. Request body validation (automatic 422 errors for invalid data)
# 2. OpenAPI documentation generation (visible at /docs)
# =============================================================================

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AskRequest(BaseModel):
    """
    Request body for POST /ask - ask a question across ingested documents.

    Example:
        {
            "question": "Compare PAT for FY22 and FY23",
            "company": "Acme",
            "enable_charts": true,
            "chart_strategy": "full"
        }
    """

    question: str = Field(
        ...,
        min_length=3,
        max_length=2000,
        description="The question to answer from the ingested documents",
        examples=["What was the EBITDA margin in Q3 FY24?"],
    )

    # Exact match against the payload company, with a soft fallback when
    # nothing matches exactly
    company: str | None = Field(
        default=None,
        max_length=200,
        description="Restrict retrieval to one company. If omitted, searches all documents.",
        examples=["Acme"],
    )

    enable_charts: bool = Field(
        default=True,
        description="Attempt chart extraction when the question asks for a trend or comparison.",
    )

    # "cheap" skips the structured LLM extraction and only uses the regex
    # fallback over the answer text
    chart_strategy: Literal["full", "cheap"] = Field(
        default="full",
        description="'full' asks an LLM for a chart spec; 'cheap' uses text heuristics only.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "question": "What was revenue growth in Q3 FY24?",
                    "company": "Acme",
                },
                {
                    "question": "Plot PAT trend from FY21 to FY24",
                    "enable_charts": True,
                    "chart_strategy": "full",
                },
            ]
        }
    )


class IngestRequest(BaseModel):
    """
    Request body for POST /ingest - ingest PDFs already on the server.

    Paths are files or directories visible to the Celery worker.
    """

    paths: list[str] = Field(
        ...,
        min_length=1,
        description="PDF files or directories to ingest",
        examples=[["data/reports"]],
    )
    chunk_size: int | None = Field(default=None, gt=0)
    chunk_overlap: int | None = Field(default=None, ge=0)
    min_chunk_chars: int | None = Field(default=None, ge=0)
    per_page: bool | None = None
    strategy: Literal["auto", "recursive", "perpage", "semantic"] | None = None
    header_prefix: bool | None = None
    detect_slides: bool | None = None
    page_limit: int | None = Field(default=None, ge=0)
    files_limit: int | None = Field(default=None, ge=0)

    def option_overrides(self) -> dict:
        """Tunables explicitly set on the request (unset fields use defaults)."""
        return self.model_dump(exclude={"paths"}, exclude_none=True)
