# =============================================================================
# Page Chunker - Per-Page and Recursive Strategies
# =============================================================================
#
# Turns segmented pages into retrievable chunks. Two strategies, picked per
# page from the configuration and the detected page type:
#
#   perpage / slide - the whole page (heading-prefixed) is one chunk,
#                     kept only if it reaches max(80, min_chunk_chars)
#   text            - recursive, separator-aware split bounded by
#                     chunk_size with chunk_overlap characters of overlap
#
# Separator priority for the recursive split:
#   paragraph → bullet marker → line break → sentence end → clause
#   punctuation → whitespace → hard character cut
#
# Every accepted chunk takes the next sequential index from the
# IngestionRun and is deduplicated by MD5 content hash against the run's
# seen set. The set is cleared once it grows past dedupe_window, so a
# duplicate can slip through after a reset on very large documents.
#
# Chunk sizes are measured in characters. Token counts (tiktoken
# cl100k_base) are recorded per chunk for prompt budgeting.
# =============================================================================

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field

import tiktoken
from langchain_text_splitters import RecursiveCharacterTextSplitter

from fin_rag.services.normalizer import normalize
from fin_rag.services.parser import DocumentMeta
from fin_rag.services.segmenter import PageLayout, PageMode, detect_page_type, pick_heading

logger = logging.getLogger(__name__)

PER_PAGE_MIN_CHARS = 80

SEPARATORS = [
    "\n\n",
    "\n• ",
    "\n- ",
    "\n– ",
    "\n— ",
    "\n",
    ". ",
    "; ",
    ", ",
    " ",
    "",
]

STRATEGIES = ("auto", "recursive", "perpage", "semantic")


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class ChunkingConfig:
    """Chunking tunables (character-based)."""

    chunk_size: int = 1200
    chunk_overlap: int = 200
    min_chunk_chars: int = 200
    dedupe_window: int = 20000
    per_page: bool = False
    strategy: str = "auto"  # auto | recursive | perpage | semantic
    header_prefix: bool = True
    detect_slides: bool = True

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be in [0, chunk_size)")
        if self.strategy not in STRATEGIES:
            raise ValueError(
                f"Unknown strategy '{self.strategy}'. Supported: {list(STRATEGIES)}"
            )


@dataclass
class Chunk:
    """A single chunk ready for embedding and storage."""

    content: str
    chunk_index: int  # 0-indexed, monotonic within the document
    page_start: int
    page_end: int
    content_hash: str  # MD5 hex of content
    token_count: int
    heading: str | None = None


@dataclass
class IngestionRun:
    """
    Run-scoped state for one document: next chunk index and dedupe set.

    One instance per document per ingestion run; discarded afterwards.
    """

    document: DocumentMeta
    dedupe_window: int = 20000
    next_index: int = 0
    seen_hashes: set[str] = field(default_factory=set)
    duplicates_skipped: int = 0

    def accept(
        self,
        text: str,
        page_number: int,
        heading: str | None = None,
    ) -> Chunk | None:
        """Register a candidate chunk; return it, or None if it is a duplicate."""
        digest = content_hash(text)
        if digest in self.seen_hashes:
            self.duplicates_skipped += 1
            return None
        self.seen_hashes.add(digest)
        if len(self.seen_hashes) > self.dedupe_window:
            logger.debug(
                "Dedupe window (%d) exceeded for '%s'; resetting",
                self.dedupe_window, self.document.source,
            )
            self.seen_hashes.clear()

        chunk = Chunk(
            content=text,
            chunk_index=self.next_index,
            page_start=page_number,
            page_end=page_number,
            content_hash=digest,
            token_count=count_tokens(text),
            heading=heading,
        )
        self.next_index += 1
        return chunk


# ---------------------------------------------------------------------------
# Tiktoken Encoder - Cached Singleton
# ---------------------------------------------------------------------------

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def content_hash(text: str) -> str:
    """128-bit MD5 hex digest of the chunk text."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def count_tokens(text: str) -> int:
    return len(_get_encoder().encode(text))


def resolve_mode(layout: PageLayout, config: ChunkingConfig) -> PageMode:
    """Pick the chunking mode for a page."""
    if config.per_page or config.strategy == "perpage":
        return "perpage"
    if config.strategy == "auto":
        return detect_page_type(layout.stats) if config.detect_slides else "text"
    # "recursive" and its alias "semantic"
    return "text"


def build_splitter(config: ChunkingConfig) -> RecursiveCharacterTextSplitter:
    return RecursiveCharacterTextSplitter(
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        separators=SEPARATORS,
    )


def chunk_page(
    layout: PageLayout,
    run: IngestionRun,
    config: ChunkingConfig,
    splitter: RecursiveCharacterTextSplitter | None = None,
) -> tuple[PageMode, list[Chunk]]:
    """
    Chunk one segmented page.

    Returns:
        (mode, chunks) - the mode the page was chunked in and the chunks
        accepted by the run (duplicates and short pieces removed).
    """
    mode = resolve_mode(layout, config)
    heading = pick_heading(layout.lines) if config.header_prefix else None
    page_text = layout.text
    base = f"{heading}\n\n{page_text}" if heading else page_text

    if not page_text:
        return mode, []

    chunks: list[Chunk] = []
    if mode in ("perpage", "slide"):
        if len(base) >= max(PER_PAGE_MIN_CHARS, config.min_chunk_chars):
            chunk = run.accept(base, layout.page_number, heading)
            if chunk is not None:
                chunks.append(chunk)
        return mode, chunks

    splitter = splitter or build_splitter(config)
    for piece in splitter.split_text(base):
        text = normalize(piece)
        if len(text) < config.min_chunk_chars:
            continue
        chunk = run.accept(text, layout.page_number, heading)
        if chunk is not None:
            chunks.append(chunk)
    return mode, chunks
