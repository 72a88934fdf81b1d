"""Text normalisation for extracted PDF text."""

from __future__ import annotations

import re

_INVISIBLE_RE = re.compile("[\u200b-\u200d\u2060\ufeff\u00ad]")
# Any whitespace except newline (tabs, NBSP, form feeds, ...)
_INLINE_SPACE_RE = re.compile(r"[^\S\n]+")
_LINE_EDGE_SPACE_RE = re.compile(r" *\n *")
_REPEATED_SEPARATOR_RE = re.compile(r"([-_=])\1{2,}")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def normalize(text: str) -> str:
    """
    Clean raw extracted text.

    Removes zero-width characters, squashes intra-line whitespace while
    keeping paragraph breaks, collapses runs of 3+ dashes/underscores/equals
    signs to exactly 3, and keeps at most one blank line between paragraphs.

    Idempotent: normalize(normalize(x)) == normalize(x).
    """
    if not text:
        return ""
    cleaned = _INVISIBLE_RE.sub("", text)
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _INLINE_SPACE_RE.sub(" ", cleaned)
    cleaned = _LINE_EDGE_SPACE_RE.sub("\n", cleaned)
    cleaned = _REPEATED_SEPARATOR_RE.sub(r"\1\1\1", cleaned)
    cleaned = _BLANK_RUN_RE.sub("\n\n", cleaned)
    return cleaned.strip()
