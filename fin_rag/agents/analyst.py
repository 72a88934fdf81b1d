# =============================================================================
# Analyst Agent - Grounded Answer Synthesis with Citations
# =============================================================================
#
# The analyst takes the retrieved excerpts and the user's question, builds
# a single grounded prompt and asks the completion providers for an
# answer, in order:
#
#   primary provider ──fail──▶ alternate provider ──fail──▶ DEGRADED_ANSWER
#
# DESIGN DECISION: Never raise for a provider outage. The caller always
# gets a displayable string; only configuration errors (no credentials)
# propagate.
#
# DESIGN DECISION: Excerpts are numbered "Source 1", "Source 2", ... and
# the model is asked to cite them as [S1], [S2]. The API returns sources
# in the same order so clients can resolve the markers.
# =============================================================================

from __future__ import annotations

import logging
from typing import Sequence

from fin_rag.config import settings
from fin_rag.services.llm import LLMProvider, get_answer_providers
from fin_rag.services.resilience import first_successful, with_timeout
from fin_rag.services.retriever import RankedExcerpt

logger = logging.getLogger(__name__)

DEGRADED_ANSWER = (
    "Sorry, the answer service is temporarily unavailable. "
    "Please try again in a moment."
)

NO_CONTEXT_ANSWER = (
    "No relevant information was found in the ingested documents. "
    "Try rephrasing the question or check the company name."
)

SYSTEM_PROMPT = "You are a helpful financial research assistant."

INSTRUCTIONS = (
    "Answer the user's question using ONLY the information in the provided "
    "sources.\n\n"
    "Rules:\n"
    "- If the answer is not present in the sources, say you don't know\n"
    "- Quote figures exactly as written, with their units and periods "
    "(e.g. 'Rs 1,234 Cr in Q3 FY24'); never round or estimate\n"
    "- Similar metrics are not interchangeable: keep EBITDA, EBIT, PAT, "
    "revenue and margins apart, and say which one a figure refers to\n"
    "- Be concise and factual\n"
    "- End with a short list of citations like [S1], [S2] matching the "
    "source numbers"
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_prompt(question: str, excerpts: Sequence[RankedExcerpt]) -> str:
    """Build the grounded prompt from at most answer_max_excerpts excerpts."""
    blocks = []
    for i, excerpt in enumerate(excerpts[: settings.answer_max_excerpts], 1):
        blocks.append(
            f"Source {i}:\n"
            f"Title: {excerpt.title or excerpt.source or ''}\n"
            f"Company: {excerpt.company or ''}\n"
            f"DocType: {excerpt.doc_type or ''}\n"
            f"Date: {excerpt.published_date or ''}\n"
            f"Excerpt:\n{excerpt.text}"
        )
    sources = "\n\n".join(blocks)
    return f"{INSTRUCTIONS}\n\nQuestion: {question}\n\n{sources}"


async def synthesize_answer(
    question: str,
    excerpts: Sequence[RankedExcerpt],
    providers: Sequence[LLMProvider] | None = None,
) -> str:
    """
    Generate a cited answer from the retrieved excerpts.

    Args:
        question: The user's question.
        excerpts: Retrieved excerpts, best first.
        providers: Ordered completion providers; defaults to
            get_answer_providers() (primary, then alternate if configured).

    Returns:
        The answer text, NO_CONTEXT_ANSWER when there are no excerpts, or
        DEGRADED_ANSWER when every provider failed.
    """
    if not excerpts:
        return NO_CONTEXT_ANSWER

    if providers is None:
        providers = get_answer_providers()
    prompt = build_prompt(question, excerpts)

    logger.info(
        "Analyst generating answer: excerpts=%d, providers=%d",
        min(len(excerpts), settings.answer_max_excerpts), len(providers),
    )

    async def _attempt(provider: LLMProvider) -> str | None:
        response = await with_timeout(
            provider.complete(
                messages=[{"role": "user", "content": prompt}],
                system=SYSTEM_PROMPT,
            ),
            settings.provider_timeout_seconds,
            label=f"answer via {provider.name}",
        )
        logger.info(
            "Analyst complete: model=%s, tokens=%d+%d",
            response.model, response.input_tokens, response.output_tokens,
        )
        return response.content.strip() or None

    answer = await first_successful(providers, _attempt, label="answer synthesis")
    if answer is None:
        logger.error("All answer providers failed; returning degraded answer")
        return DEGRADED_ANSWER
    return answer
