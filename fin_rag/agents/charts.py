# =============================================================================
# Chart Extractor - Intent, Structured Extraction, Heuristics, Sanitization
# =============================================================================
#
# Produces an optional ChartSpec for a question. Per query:
#
#   1. Intent     - keyword match on the question; no intent → no chart
#   2. Structured - ask the chart provider for strict JSON (or null) built
#                   only from the excerpts; parse tolerantly, validate
#   3. Alternate  - repeat step 2 once with the alternate provider
#   4. Heuristic  - regex (period label, value) pairs from the answer,
#                   then from the question
#   5. Suppress   - discard any chart when the answer says the data is
#                   missing ("cannot be answered", "don't know", ...)
#   6. Sanitize   - drop label positions with no usable value; fewer than
#                   2 left → no chart
#
# Steps 2-3 run as a strategy chain (first_successful); the "cheap" chart
# strategy skips them. Malformed model output is treated as "no result",
# never as an error.
#
# chart_spec_to_chartjs() converts a spec to a Chart.js config for
# external renderers (QuickChart, the web UI).
# =============================================================================

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from typing import Any, Callable, Sequence

from pydantic import ValidationError

from fin_rag.config import settings
from fin_rag.models.chart import ChartSeries, ChartSpec, is_plottable
from fin_rag.services.llm import LLMProvider
from fin_rag.services.resilience import first_successful, with_timeout
from fin_rag.services.retriever import RankedExcerpt

logger = logging.getLogger(__name__)

CHART_KEYWORDS = (
    "chart", "graph", "plot", "visuali[sz]e", "trend", "compare",
    "comparison", "breakdown", "split", "share", "growth", "yoy", "qoq",
    "over time", "vs", "versus",
)
_INTENT_RE = re.compile("|".join(CHART_KEYWORDS), re.IGNORECASE)
_BAR_RE = re.compile(r"\bbar\b|compar", re.IGNORECASE)

INSUFFICIENT_PHRASES = (
    "cannot be answered",
    "insufficient data",
    "don't know",
    "don’t know",
    "do not know",
    "not available",
)

HEURISTIC_WINDOW = 40

_LABEL_RE = re.compile(
    r"\b(?:Q[1-4] ?FY\d{2,4}|[1-4]Q ?FY\d{2,4}|H[12] ?FY\d{2,4}|FY\d{2,4}|(?:19|20)\d{2})\b",
    re.IGNORECASE,
)
_VALUE_RE = re.compile(
    r"(?<![A-Za-z_\d])(?<!\d[.,])(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
    r"(?:\s*(%|(?:crore|cr|billion|bn|million|mn)\b))?",
    re.IGNORECASE,
)
# Text allowed between a label and a value that directly follows it
_DIRECT_GAP_RE = re.compile(
    r"^(?:[\s:=()\-–—,]|\b(?:was|is|at|of|stood|to|rs|inr|usd)\b|[₹$.])*$",
    re.IGNORECASE,
)
# Text between a value and the label it belongs to: "520 Cr in FY23"
_ATTRIBUTED_GAP_RE = re.compile(
    r"^\s*(?:(?:in|for|during|by)\s+(?:the\s+)?|\()$",
    re.IGNORECASE,
)
_UNIT_CANONICAL = {
    "%": "%",
    "cr": "CR", "crore": "CR",
    "bn": "BN", "billion": "BN",
    "mn": "MN", "million": "MN",
}

COLORS = ["#2563eb", "#16a34a", "#f59e0b", "#ef4444", "#8b5cf6"]

CHART_SYSTEM_PROMPT = (
    "You extract chart data from financial document excerpts. "
    "Reply with JSON only."
)

CHART_INSTRUCTIONS = (
    "Build a chart specification that answers the question, using ONLY "
    "numbers that appear in the sources below.\n\n"
    "Reply with exactly one JSON object of this shape:\n"
    '{"type": "line" | "bar" | "scatter" | "pie", "labels": ["FY22", "FY23"], '
    '"series": [{"name": "Revenue", "values": [100, 150]}], "unit": "Cr", '
    '"stacked": false}\n\n'
    "Rules:\n"
    "- Every series has one value per label, in label order\n"
    "- Never invent, estimate or zero-fill values\n"
    "- If the sources do not contain at least two data points, reply "
    "with null"
)


# ---------------------------------------------------------------------------
# Step 1: Intent
# ---------------------------------------------------------------------------


def detect_chart_intent(question: str) -> bool:
    return bool(_INTENT_RE.search(question or ""))


# ---------------------------------------------------------------------------
# Step 2: Tolerant JSON Parsing + Validation
# ---------------------------------------------------------------------------


def _parse_raw(text: str) -> Any:
    return json.loads(text.strip())


def _parse_fenced(text: str) -> Any:
    match = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL | re.IGNORECASE)
    if not match:
        raise ValueError("no fenced block")
    return json.loads(match.group(1).strip())


def _parse_braces(text: str) -> Any:
    start = text.find("{")
    if start < 0:
        raise ValueError("no opening brace")
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return json.loads(text[start : i + 1])
    raise ValueError("unbalanced braces")


JSON_PARSERS: tuple[Callable[[str], Any], ...] = (_parse_raw, _parse_fenced, _parse_braces)


def parse_json_loosely(text: str) -> Any:
    """
    Parse model output as JSON: raw, then fenced block, then first
    balanced-brace substring. Returns None when nothing parses.
    """
    for parser in JSON_PARSERS:
        try:
            return parser(text)
        except ValueError:
            continue
    return None


def validate_chart(data: Any) -> ChartSpec | None:
    """Validate a decoded chart object; anything invalid is None."""
    if isinstance(data, dict):
        # Some models wrap the object: {"chart": {...}}
        for key in ("chart", "chartSpec", "chart_spec"):
            if isinstance(data.get(key), dict):
                data = data[key]
                break
    if not isinstance(data, dict):
        return None
    try:
        return ChartSpec.model_validate(data)
    except ValidationError as exc:
        logger.debug("Discarding invalid chart spec: %s", exc.errors()[:3])
        return None


def build_chart_prompt(question: str, excerpts: Sequence[RankedExcerpt]) -> str:
    sources = "\n\n".join(
        f"Source {i}:\nTitle: {e.title or e.source or ''}\n"
        f"Date: {e.published_date or ''}\nExcerpt:\n{e.text}"
        for i, e in enumerate(excerpts[: settings.answer_max_excerpts], 1)
    )
    return f"{CHART_INSTRUCTIONS}\n\nQuestion: {question}\n\n{sources}"


async def extract_structured(
    question: str,
    excerpts: Sequence[RankedExcerpt],
    provider: LLMProvider,
) -> ChartSpec | None:
    """Ask one provider for a chart spec; parse and validate its reply."""
    response = await with_timeout(
        provider.complete(
            messages=[{"role": "user", "content": build_chart_prompt(question, excerpts)}],
            system=CHART_SYSTEM_PROMPT,
            temperature=0.0,
        ),
        settings.provider_timeout_seconds,
        label=f"chart via {provider.name}",
    )
    return validate_chart(parse_json_loosely(response.content))


async def extract_structured_chart(
    question: str,
    excerpts: Sequence[RankedExcerpt],
    providers: Sequence[LLMProvider],
) -> ChartSpec | None:
    """Structured extraction over the provider chain (chart model, then alternate)."""
    if not excerpts or not providers:
        return None
    return await first_successful(
        providers,
        lambda provider: extract_structured(question, excerpts, provider),
        label="chart extraction",
    )


# ---------------------------------------------------------------------------
# Step 4: Heuristic Fallback
# ---------------------------------------------------------------------------


def extract_heuristic(text: str, question: str = "") -> ChartSpec | None:
    """
    Regex (period label, value) pairs out of free text.

    For each label, in order of preference:
      1. the nearest value before it, joined by "in"/"for"/"during"/"by"
         or an opening bracket ("520 Cr in FY23", "520 Cr (FY23)")
      2. a value directly after it, within 40 chars, with only connector
         words in between ("FY23: 520 Cr", "FY23 was Rs 520 Cr")
      3. the nearest value ending within 40 chars before it
    """
    if not text:
        return None

    labels = [(m.start(), m.end(), m.group(0).upper()) for m in _LABEL_RE.finditer(text)]
    if len(labels) < 2:
        return None
    label_spans = [(s, e) for s, e, _ in labels]
    values = [
        (m.start(), m.end(), float(m.group(1).replace(",", "")), m.group(2))
        for m in _VALUE_RE.finditer(text)
        if not any(s < m.end() and m.start() < e for s, e in label_spans)
    ]

    pairs: dict[str, tuple[float, str | None]] = {}
    for start, end, label in labels:
        if label in pairs:
            continue
        before = _value_before(text, start, values, label_spans)
        if before is not None and _ATTRIBUTED_GAP_RE.match(text[before[0]:start]):
            match = before[1:]
        else:
            match = _value_after(text, end, values, label_spans)
            if match is None and before is not None:
                match = before[1:]
        if match is not None:
            pairs[label] = match

    if len(pairs) < 2 or sum(1 for v, _ in pairs.values() if v != 0) < 2:
        return None

    units = Counter(
        _UNIT_CANONICAL[u.lower()] for _, u in pairs.values() if u and u.lower() in _UNIT_CANONICAL
    )
    unit = units.most_common(1)[0][0] if units else None
    chart_type = "bar" if _BAR_RE.search(question or "") else "line"

    try:
        return ChartSpec(
            type=chart_type,
            labels=list(pairs),
            series=[ChartSeries(name="Value", values=[v for v, _ in pairs.values()])],
            unit=unit,
        )
    except ValidationError:
        return None


def _value_after(text, label_end, values, label_spans):
    for start, _end, value, unit in values:
        if start < label_end:
            continue
        if start - label_end > HEURISTIC_WINDOW:
            return None
        if _label_between(label_end, start, label_spans):
            return None
        if _DIRECT_GAP_RE.match(text[label_end:start]):
            return value, unit
        return None
    return None


def _value_before(text, label_start, values, label_spans):
    for start, end, value, unit in reversed(values):
        if end > label_start:
            continue
        if label_start - end > HEURISTIC_WINDOW:
            return None
        if _label_between(end, label_start, label_spans):
            return None
        return end, value, unit
    return None


def _label_between(lo: int, hi: int, label_spans: list[tuple[int, int]]) -> bool:
    return any(lo <= s and e <= hi for s, e in label_spans)


# ---------------------------------------------------------------------------
# Steps 5-6: Suppression + Sanitization
# ---------------------------------------------------------------------------


def is_insufficient_answer(answer: str) -> bool:
    lowered = (answer or "").lower()
    return any(phrase in lowered for phrase in INSUFFICIENT_PHRASES)


def sanitize_chart(spec: ChartSpec | None) -> ChartSpec | None:
    """
    Drop label positions where every series value is missing, non-finite
    or zero. Returns None when fewer than 2 positions survive.
    """
    if spec is None:
        return None
    keep = [
        i for i in range(len(spec.labels))
        if any(is_plottable(s.values[i]) for s in spec.series)
    ]
    if len(keep) < 2:
        return None
    try:
        return ChartSpec(
            type=spec.type,
            labels=[spec.labels[i] for i in keep],
            series=[
                ChartSeries(name=s.name, values=[s.values[i] for i in keep], color=s.color)
                for s in spec.series
            ],
            unit=spec.unit,
            stacked=spec.stacked,
        )
    except ValidationError:
        return None


def finalize_chart(
    question: str,
    answer: str,
    structured: ChartSpec | None,
) -> ChartSpec | None:
    """Heuristic fallback, suppression and sanitization over a candidate."""
    spec = structured
    if spec is None:
        spec = extract_heuristic(answer, question) or extract_heuristic(question, question)
        if spec is not None:
            logger.info("Chart built by heuristic fallback (%d labels)", len(spec.labels))
    if spec is None:
        return None
    if is_insufficient_answer(answer):
        logger.info("Answer reports insufficient data; discarding chart")
        return None
    return sanitize_chart(spec)


# ---------------------------------------------------------------------------
# Chart.js Conversion
# ---------------------------------------------------------------------------


def chart_spec_to_chartjs(spec: ChartSpec) -> dict:
    """Translate a ChartSpec into a Chart.js config dict."""
    is_pie = spec.type == "pie"
    if is_pie:
        first = spec.series[0]
        datasets = [{
            "label": first.name,
            "data": first.values,
            "backgroundColor": [COLORS[i % len(COLORS)] for i in range(len(spec.labels))],
        }]
    else:
        datasets = []
        for i, s in enumerate(spec.series):
            color = s.color or COLORS[i % len(COLORS)]
            datasets.append({
                "label": s.name,
                "data": s.values,
                "borderColor": color,
                "backgroundColor": f"{color}80",
                "fill": spec.type != "line",
            })

    options: dict = {
        "responsive": True,
        "plugins": {
            "legend": {"position": "top", "labels": {"color": "#e5e7eb"}},
            "title": {"display": False},
        },
        "elements": {"point": {"radius": 3}},
    }
    if not is_pie:
        y_axis: dict = {
            "stacked": spec.type == "bar" and bool(spec.stacked),
            "ticks": {"color": "#e5e7eb"},
            "grid": {"color": "#374151"},
        }
        if spec.unit:
            y_axis["title"] = {"display": True, "text": spec.unit, "color": "#e5e7eb"}
        options["scales"] = {
            "x": {"ticks": {"color": "#e5e7eb"}, "grid": {"color": "#374151"}},
            "y": y_axis,
        }

    return {
        # Chart.js has no native scatter-with-category-labels; draw as line
        "type": "pie" if is_pie else ("line" if spec.type == "scatter" else spec.type),
        "data": {"labels": spec.labels, "datasets": datasets},
        "options": options,
    }
