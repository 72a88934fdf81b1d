# =============================================================================
# Ask API - Document Q&A Endpoint
# =============================================================================
#
# Provides the POST /ask endpoint that invokes the LangGraph query graph
# (retrieve → answer ‖ chart → finalize) over the ingested documents.
#
# The endpoint handles request validation, the optional
# wall-clock budget, error mapping and response mapping.
#
# ERROR MAPPING:
#   ConfigurationError (missing keys, missing collection,
#   embedding dimension mismatch)             → 503 Service Unavailable
#   Anything else escaping the graph          → 502 Bad Gateway
#   Budget expired (ask_timeout_seconds > 0)  → 200 with a placeholder
#   Provider outage during synthesis          → 200 with DEGRADED_ANSWER
# =============================================================================

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException

from fin_rag.agents.charts import chart_spec_to_chartjs
from fin_rag.agents.orchestrator import answer_question
from fin_rag.config import settings
from fin_rag.exceptions import ConfigurationError
from fin_rag.models.requests import AskRequest
from fin_rag.models.responses import AskResponse, SourceRef

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Question Answering"])

BUDGET_EXPIRED_ANSWER = (
    "This is taking longer than expected. Please try again or rephrase "
    "your question."
)


# ---------------------------------------------------------------------------
# POST /ask - Ask a question about financial documents
# ---------------------------------------------------------------------------


@router.post(
    "/ask",
    response_model=AskResponse,
    summary="Ask a question about ingested financial documents",
    description=(
        "Retrieves the most relevant excerpts, synthesizes an answer with "
        "[S#] citations and, when the question asks for a trend or "
        "comparison, extracts a chart specification."
    ),
)
async def ask_endpoint(request: AskRequest) -> AskResponse:
    logger.info(
        "Ask request: question='%s', company=%s, charts=%s/%s",
        request.question[:80], request.company,
        request.enable_charts, request.chart_strategy,
    )

    call = answer_question(
        question=request.question,
        company=request.company,
        enable_charts=request.enable_charts,
        chart_strategy=request.chart_strategy,
    )

    try:
        if settings.ask_timeout_seconds > 0:
            result = await asyncio.wait_for(call, timeout=settings.ask_timeout_seconds)
        else:
            result = await call
    except asyncio.TimeoutError:
        logger.warning(
            "Ask budget of %.1fs expired; returning placeholder",
            settings.ask_timeout_seconds,
        )
        return AskResponse(answer=BUDGET_EXPIRED_ANSWER, sources=[], chart_spec=None)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e.message}",
        ) from e
    except Exception as e:
        logger.exception("Query graph failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"Upstream service error: {e}",
        ) from e

    chart_spec = result.get("chart_spec")
    return AskResponse(
        answer=result.get("answer") or "No answer generated.",
        sources=[SourceRef(**source) for source in result.get("sources", [])],
        chart_spec=chart_spec,
        chartjs=chart_spec_to_chartjs(chart_spec) if chart_spec else None,
    )
