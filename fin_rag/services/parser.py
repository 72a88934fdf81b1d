# =============================================================================
# PDF Source - Document Discovery, Filename Metadata, Positioned Text
# =============================================================================
#
# Raw document source for ingestion:
#   - walk_pdfs(): tree walk yielding leaf PDF files
#   - document_meta_from_path(): title/company/type/date from the filename
#   - iter_page_fragments(): per-page positioned text runs via PyMuPDF
#
# DESIGN DECISION: PyMuPDF's "dict" extraction is used rather than plain
# text extraction. Each span carries a baseline coordinate and the last
# span of each PDF line is flagged as end-of-line, which is exactly what
# the layout-aware segmenter consumes. Segmentation itself lives in
# segmenter.py and knows nothing about PyMuPDF.
#
# Scanned (image-only) pages produce no fragments; OCR is out of scope.
# =============================================================================

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

import fitz  # PyMuPDF

from fin_rag.services.segmenter import TextFragment

logger = logging.getLogger(__name__)

_SKIP_DIRS = {"__MACOSX"}
_DATE_SUFFIX_RE = re.compile(r"[-_](\d{8})\.pdf$", re.IGNORECASE)
_TRANSCRIPT_RE = re.compile(r"call|transcript|analyst", re.IGNORECASE)
_PRESENTATION_RE = re.compile(r"presentation|ppt", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentMeta:
    """
    Document-level metadata inferred from the file name.

    Immutable once built; copied into every point payload.
    """

    title: str
    source: str  # File name, e.g. "Acme-Q3FY24-Earnings-Call-20240115.pdf"
    company: str
    doc_type: str  # "transcript", "presentation" or "unknown"
    published_date: str | None
    path: str

    def payload(self) -> dict:
        return {
            "title": self.title,
            "source": self.source,
            "company": self.company,
            "doc_type": self.doc_type,
            "published_date": self.published_date,
            "path": self.path,
        }


@dataclass
class RawPage:
    """Positioned text runs of one PDF page (1-indexed)."""

    page_number: int
    fragments: list[TextFragment]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def walk_pdfs(target: str | Path) -> list[Path]:
    """
    Collect PDF files under *target* (or *target* itself if it is a PDF).

    Directories named __MACOSX are skipped. Results are sorted for a
    stable ingestion order.

    Raises:
        FileNotFoundError: If *target* does not exist.
    """
    root = Path(target)
    if not root.exists():
        raise FileNotFoundError(f"Input path not found: {target}")
    if root.is_file():
        return [root] if root.suffix.lower() == ".pdf" else []

    found: list[Path] = []
    for path in sorted(root.rglob("*")):
        if any(part in _SKIP_DIRS for part in path.relative_to(root).parts):
            continue
        if path.is_file() and path.suffix.lower() == ".pdf":
            found.append(path)
    return found


def document_meta_from_path(path: str | Path) -> DocumentMeta:
    """
    Infer document metadata from the file name.

    - title: file name without ".pdf"
    - company: title up to the first "-"
    - published_date: trailing 8-digit YYYYMMDD group, ISO-formatted when
      it is a valid date
    - doc_type: transcript (call/transcript/analyst), presentation
      (presentation/ppt), else unknown
    """
    p = Path(path)
    source = p.name
    title = re.sub(r"\.pdf$", "", source, flags=re.IGNORECASE)

    if _TRANSCRIPT_RE.search(title):
        doc_type = "transcript"
    elif _PRESENTATION_RE.search(title):
        doc_type = "presentation"
    else:
        doc_type = "unknown"

    published_date: str | None = None
    match = _DATE_SUFFIX_RE.search(source)
    if match:
        raw = match.group(1)
        try:
            published_date = datetime.strptime(raw, "%Y%m%d").date().isoformat()
        except ValueError:
            published_date = raw

    return DocumentMeta(
        title=title,
        source=source,
        company=title.split("-")[0],
        doc_type=doc_type,
        published_date=published_date,
        path=str(path),
    )


def iter_page_fragments(
    path: str | Path,
    page_limit: int = 0,
) -> Iterator[RawPage]:
    """
    Yield positioned text runs for each page of a PDF.

    Each PyMuPDF span becomes a TextFragment at its baseline y; the last
    span of each PDF line carries has_eol=True. A page that fails to
    extract is logged and skipped.

    Args:
        path: PDF file path.
        page_limit: Stop after this many extracted pages (0 = all pages).
            Pages that fail to extract do not count.

    Raises:
        RuntimeError: If the file cannot be opened as a PDF.
    """
    try:
        doc = fitz.open(str(path))
    except Exception as exc:
        raise RuntimeError(f"PyMuPDF failed to open '{path}': {exc}") from exc

    yielded = 0
    with doc:
        for index, page in enumerate(doc):
            if page_limit > 0 and yielded >= page_limit:
                break
            page_number = index + 1
            try:
                fragments = _page_fragments(page)
            except Exception as exc:
                logger.warning(
                    "Page %d of '%s' failed to extract: %s",
                    page_number, Path(path).name, exc,
                )
                continue
            yielded += 1
            yield RawPage(page_number=page_number, fragments=fragments)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _page_fragments(page: fitz.Page) -> list[TextFragment]:
    """Flatten PyMuPDF's block → line → span tree into fragments."""
    fragments: list[TextFragment] = []
    content = page.get_text("dict", sort=True)
    for block in content.get("blocks", []):
        # type 0 = text block, 1 = image block
        if block.get("type", 0) != 0:
            continue
        for line in block.get("lines", []):
            spans = [s for s in line.get("spans", []) if s.get("text", "").strip()]
            for position, span in enumerate(spans):
                origin = span.get("origin")
                y = float(origin[1]) if origin else float(span["bbox"][3])
                fragments.append(TextFragment(
                    text=span["text"],
                    y=y,
                    has_eol=position == len(spans) - 1,
                ))
    return fragments
