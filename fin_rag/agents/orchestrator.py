# =============================================================================
# LangGraph Orchestrator - Query Graph Assembly
# =============================================================================
#
# Wires retrieval, answer synthesis and chart extraction into a LangGraph
# StateGraph.
#
# GRAPH TOPOLOGY:
#                      ┌──▶ answer ────────────┐
#   START ──▶ retrieve ┤                       ├──▶ chart_finalize ──▶ END
#                      └──▶ chart_structured ──┘
#
# DESIGN DECISION: answer and chart_structured run as parallel branches.
# Both only read the retrieved excerpts and call independent completion
# providers. chart_finalize waits for both, because the heuristic
# fallback and the suppression guard need the finished answer.
#
# DESIGN DECISION: Retrieval outages degrade, configuration errors raise.
# When embedding or search still fails after retries, the graph finishes
# with DEGRADED_ANSWER, no sources and no chart. Missing keys, a missing
# collection or a dimension mismatch propagate to the caller.
#
# DESIGN DECISION: Plain TypedDict state (not MessagesState).
# There is no conversation history; state is structured data flowing
# through a pipeline: question → excerpts → answer + chart.
#
# DESIGN DECISION: Graph compiled once at module level and reused across
# requests.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from fin_rag.agents.analyst import DEGRADED_ANSWER, synthesize_answer
from fin_rag.agents.charts import (
    detect_chart_intent,
    extract_structured_chart,
    finalize_chart,
)
from fin_rag.config import settings
from fin_rag.exceptions import ConfigurationError
from fin_rag.models.chart import ChartSpec
from fin_rag.services.embedder import EmbeddingProvider
from fin_rag.services.llm import LLMProvider, get_chart_providers
from fin_rag.services.retriever import RankedExcerpt, retrieve
from fin_rag.services.vectorstore import VectorStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Graph State Schema
# ---------------------------------------------------------------------------


class QueryState(TypedDict, total=False):
    """
    State that flows through the query graph.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    question: str
    company: str | None
    enable_charts: bool
    chart_strategy: str  # "full" | "cheap"

    # --- Dependency injection ---
    # When set, nodes use these instead of the configured singletons.
    # NOTE: Not JSON-serialisable. Safe as long as no checkpointer is
    # configured on the graph.
    embedder: EmbeddingProvider | None
    store: VectorStore | None
    answer_providers: list[LLMProvider] | None
    chart_providers: list[LLMProvider] | None

    # --- Intermediate (set by nodes) ---
    excerpts: list[RankedExcerpt]
    wants_chart: bool
    structured_chart: ChartSpec | None
    degraded: bool  # retrieval failed on a provider outage

    # --- Output ---
    answer: str
    sources: list[dict[str, Any]]
    chart_spec: ChartSpec | None


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def retrieve_node(state: QueryState) -> dict:
    """
    Embed the question and fetch the ranked excerpts.

    A provider outage (embedding or vector search failing after retries)
    marks the state as degraded instead of raising; configuration errors
    propagate.
    """
    try:
        excerpts = await retrieve(
            state["question"],
            state.get("company"),
            embedder=state.get("embedder"),
            store=state.get("store"),
        )
    except ConfigurationError:
        raise
    except Exception as exc:
        logger.error("Retrieval failed; answering in degraded mode: %s", exc)
        return {"excerpts": [], "wants_chart": False, "sources": [], "degraded": True}

    wants_chart = bool(state.get("enable_charts", True)) and detect_chart_intent(state["question"])
    return {
        "excerpts": excerpts,
        "wants_chart": wants_chart,
        "sources": [e.as_source() for e in excerpts[: settings.answer_max_excerpts]],
        "degraded": False,
    }


async def answer_node(state: QueryState) -> dict:
    """Synthesize the cited answer (primary, then alternate provider)."""
    if state.get("degraded"):
        return {"answer": DEGRADED_ANSWER}
    answer = await synthesize_answer(
        state["question"],
        state.get("excerpts", []),
        providers=state.get("answer_providers"),
    )
    return {"answer": answer}


async def chart_structured_node(state: QueryState) -> dict:
    """
    Structured chart extraction over the chart provider chain.

    Skipped when there is no chart intent or the "cheap" strategy was
    requested.
    """
    if not state.get("wants_chart") or state.get("chart_strategy") == "cheap":
        return {"structured_chart": None}

    providers = state.get("chart_providers")
    if providers is None:
        providers = get_chart_providers()
    spec = await extract_structured_chart(
        state["question"], state.get("excerpts", []), providers,
    )
    return {"structured_chart": spec}


async def chart_finalize_node(state: QueryState) -> dict:
    """Heuristic fallback, suppression guard and sanitization."""
    if not state.get("wants_chart"):
        return {"chart_spec": None}
    spec = finalize_chart(
        state["question"],
        state.get("answer", ""),
        state.get("structured_chart"),
    )
    logger.info("Chart %s", "produced" if spec else "not produced")
    return {"chart_spec": spec}


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(QueryState)
_builder.add_node("retrieve", retrieve_node)
_builder.add_node("answer", answer_node)
_builder.add_node("chart_structured", chart_structured_node)
_builder.add_node("chart_finalize", chart_finalize_node)

_builder.add_edge(START, "retrieve")
_builder.add_edge("retrieve", "answer")
_builder.add_edge("retrieve", "chart_structured")
_builder.add_edge(["answer", "chart_structured"], "chart_finalize")
_builder.add_edge("chart_finalize", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def answer_question(
    question: str,
    company: str | None = None,
    enable_charts: bool = True,
    chart_strategy: str = "full",
    *,
    embedder: EmbeddingProvider | None = None,
    store: VectorStore | None = None,
    answer_providers: list[LLMProvider] | None = None,
    chart_providers: list[LLMProvider] | None = None,
) -> dict[str, Any]:
    """
    Answer a question over the ingested documents.

    Args:
        question: The user's question.
        company: Optional company filter.
        enable_charts: Attempt chart extraction when the question asks
            for one.
        chart_strategy: "full" (LLM extraction + heuristics) or "cheap"
            (heuristics only).
        embedder, store, answer_providers, chart_providers: Optional
            overrides of the configured backends.

    Returns:
        {"answer": str, "sources": list[dict], "chart_spec": ChartSpec | None}

    Raises:
        ConfigurationError: Missing credentials, missing collection or an
            embedding dimension mismatch.
    """
    initial_state: QueryState = {
        "question": question.strip(),
        "company": company,
        "enable_charts": enable_charts,
        "chart_strategy": chart_strategy,
        "embedder": embedder,
        "store": store,
        "answer_providers": answer_providers,
        "chart_providers": chart_providers,
    }

    logger.info(
        "Invoking query graph: question='%s', company=%s, charts=%s/%s",
        question[:80], company, enable_charts, chart_strategy,
    )

    result = await graph.ainvoke(initial_state)

    logger.info(
        "Query graph complete: sources=%d, chart=%s",
        len(result.get("sources", [])), result.get("chart_spec") is not None,
    )

    return {
        "answer": result.get("answer", ""),
        "sources": result.get("sources", []),
        "chart_spec": result.get("chart_spec"),
    }
