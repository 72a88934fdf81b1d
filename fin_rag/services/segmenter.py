# =============================================================================
# Layout-Aware Page Segmenter
# =============================================================================
#
# Rebuilds text lines from positioned fragments, computes page statistics,
# classifies the page as slide-like or dense text, and picks a heading.
#
# Everything here is a pure function over plain data (fragments, lines,
# stats). The PDF library lives in parser.py; this module never imports it.
#
# ALGORITHM (line grouping):
# 1. Start a line with the first fragment; its y becomes the baseline
# 2. A fragment whose y differs from the baseline by > 3 units starts a
#    new line; otherwise it is appended and the baseline moves to its y
# 3. A fragment carrying an end-of-line hint closes the current line
# 4. Fragments within a line are joined by a single space
# 5. Lines are normalised and empty lines dropped
#
# The slide/text thresholds are rough heuristics. The bullet-density
# formula is kept exactly as tuned: it decides which chunking strategy a
# page receives.
# =============================================================================

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Literal

from fin_rag.services.normalizer import normalize

PageMode = Literal["slide", "text", "perpage"]

LINE_BREAK_THRESHOLD = 3.0
SLIDE_MAX_CHARS = 800
SLIDE_MAX_AVG_LINE_LEN = 60
HEADING_MAX_LEN = 80

BULLET_RE = re.compile(r"^[•\-*–—·]\s+")
_SENTENCE_END_RE = re.compile(r"[.;:!?]$")
_NON_LETTER_RE = re.compile(r"[^A-Za-z]")


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class TextFragment:
    """A run of text at a vertical position on the page."""

    text: str
    y: float | None = None
    has_eol: bool = False  # The PDF marks an end of line after this run


@dataclass
class PageStats:
    """Aggregate statistics over a page's cleaned lines."""

    total_chars: int = 0
    bullet_lines: int = 0
    avg_line_len: float = 0.0


@dataclass
class PageLayout:
    """A segmented page: cleaned lines, joined text and statistics."""

    page_number: int
    lines: list[str] = field(default_factory=list)
    stats: PageStats = field(default_factory=PageStats)

    @property
    def text(self) -> str:
        return normalize("\n".join(self.lines))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def group_lines(fragments: Iterable[TextFragment]) -> list[str]:
    """Group positioned fragments into raw (un-normalised) lines."""
    lines: list[str] = []
    current: list[str] = []
    baseline: float | None = None
    close_pending = False

    for fragment in fragments:
        y = fragment.y if _is_finite(fragment.y) else None
        if current:
            jumped = (
                y is not None
                and baseline is not None
                and abs(y - baseline) > LINE_BREAK_THRESHOLD
            )
            if jumped or close_pending:
                lines.append(" ".join(current))
                current = []
                baseline = None

        current.append(fragment.text)
        if y is not None:
            baseline = y
        close_pending = fragment.has_eol

    if current:
        lines.append(" ".join(current))
    return lines


def compute_stats(lines: list[str]) -> PageStats:
    """Compute total characters, bullet-line count and average line length."""
    total_chars = sum(len(line) for line in lines)
    bullet_lines = sum(1 for line in lines if BULLET_RE.match(line))
    avg_line_len = total_chars / len(lines) if lines else 0.0
    return PageStats(
        total_chars=total_chars,
        bullet_lines=bullet_lines,
        avg_line_len=avg_line_len,
    )


def segment_page(page_number: int, fragments: Iterable[TextFragment]) -> PageLayout:
    """Build a PageLayout from the page's positioned fragments."""
    cleaned = [normalize(line) for line in group_lines(fragments)]
    lines = [line for line in cleaned if line]
    return PageLayout(page_number=page_number, lines=lines, stats=compute_stats(lines))


def detect_page_type(stats: PageStats) -> Literal["slide", "text"]:
    """
    Classify a page as "slide" or "text" (best-effort heuristic).

    A page is a slide when any of these hold:
    - it has at most 800 characters
    - it has >= 2 bullet lines and bullets / max(1, chars/200) > 0.05
    - its average line length is under 60 characters
    """
    slide_by_chars = stats.total_chars <= SLIDE_MAX_CHARS
    slide_by_bullets = (
        stats.bullet_lines >= 2
        and stats.bullet_lines / max(1, stats.total_chars / 200) > 0.05
    )
    slide_by_line_len = 0 < stats.avg_line_len < SLIDE_MAX_AVG_LINE_LEN
    if slide_by_chars or slide_by_bullets or slide_by_line_len:
        return "slide"
    return "text"


def score_heading(line: str) -> float:
    """
    Score a heading candidate. Higher is more heading-like.

    Short lines, upper-case letters and no trailing sentence punctuation
    score up; bullets score down. Empty or >80-char lines score 0.
    """
    length = len(line)
    if length == 0 or length > HEADING_MAX_LEN:
        return 0.0
    letters = _NON_LETTER_RE.sub("", line)
    upper = sum(1 for ch in letters if ch.isupper())
    upper_ratio = upper / len(letters) if letters else 0.0
    punctuation = -0.6 if _SENTENCE_END_RE.search(line) else 0.2
    bullet = -0.8 if BULLET_RE.match(line) else 0.0
    return (1 - length / HEADING_MAX_LEN) + upper_ratio * 0.7 + punctuation + bullet


def pick_heading(lines: list[str]) -> str | None:
    """Return the best of the first two lines if it scores above 0."""
    best: str | None = None
    best_score = -math.inf
    for candidate in lines[:2]:
        score = score_heading(candidate)
        if score > best_score:
            best, best_score = candidate, score
    return best if best_score > 0 else None


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _is_finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)
