# =============================================================================
# Unit Tests - Page Chunker
# =============================================================================
#
# Tests mode selection, the per-page and recursive strategies, the size
# floors, and run-scoped indexing and deduplication. Pages are built from
# plain lines, no PDF needed.
# =============================================================================

import pytest
from fakes import SLIDE_LINES, dense_lines, fragments_for_lines

from fin_rag.services.chunker import (
    PER_PAGE_MIN_CHARS,
    ChunkingConfig,
    IngestionRun,
    chunk_page,
    content_hash,
    count_tokens,
    resolve_mode,
)
from fin_rag.services.parser import document_meta_from_path
from fin_rag.services.segmenter import PageLayout, segment_page


def _page(number: int, lines: list[str]) -> PageLayout:
    return segment_page(number, fragments_for_lines(lines))


def _run_state(dedupe_window: int = 20000) -> IngestionRun:
    meta = document_meta_from_path("Acme-Q3FY24-Investor-Presentation-20240115.pdf")
    return IngestionRun(document=meta, dedupe_window=dedupe_window)


# ---------------------------------------------------------------------------
# Test: Configuration
# ---------------------------------------------------------------------------


class TestChunkingConfig:
    def test_defaults(self):
        config = ChunkingConfig()
        assert config.chunk_size == 1200
        assert config.chunk_overlap == 200
        assert config.min_chunk_chars == 200
        assert config.strategy == "auto"

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError, match="chunk_size"):
            ChunkingConfig(chunk_size=0)

    def test_rejects_overlap_not_below_size(self):
        with pytest.raises(ValueError, match="chunk_overlap"):
            ChunkingConfig(chunk_size=100, chunk_overlap=100)

    def test_rejects_negative_overlap(self):
        with pytest.raises(ValueError):
            ChunkingConfig(chunk_overlap=-1)

    def test_rejects_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown strategy"):
            ChunkingConfig(strategy="sentences")


# ---------------------------------------------------------------------------
# Test: Mode Selection
# ---------------------------------------------------------------------------


class TestResolveMode:
    """Configuration first, then page classification."""

    def test_auto_detects_slide(self):
        assert resolve_mode(_page(1, SLIDE_LINES), ChunkingConfig()) == "slide"

    def test_auto_detects_text(self):
        assert resolve_mode(_page(1, dense_lines()), ChunkingConfig()) == "text"

    def test_per_page_flag_wins(self):
        config = ChunkingConfig(per_page=True)
        assert resolve_mode(_page(1, dense_lines()), config) == "perpage"

    def test_perpage_strategy(self):
        config = ChunkingConfig(strategy="perpage")
        assert resolve_mode(_page(1, dense_lines()), config) == "perpage"

    def test_slide_detection_disabled(self):
        config = ChunkingConfig(detect_slides=False)
        assert resolve_mode(_page(1, SLIDE_LINES), config) == "text"

    def test_recursive_and_semantic_are_text(self):
        for strategy in ("recursive", "semantic"):
            config = ChunkingConfig(strategy=strategy)
            assert resolve_mode(_page(1, SLIDE_LINES), config) == "text"


# ---------------------------------------------------------------------------
# Test: Per-Page Strategy
# ---------------------------------------------------------------------------


class TestPerPageChunks:
    def test_slide_is_one_heading_prefixed_chunk(self):
        run = _run_state()
        mode, chunks = chunk_page(_page(4, SLIDE_LINES), run, ChunkingConfig())

        assert mode == "slide"
        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.heading == "Q3 FY24 HIGHLIGHTS"
        assert chunk.content.startswith("Q3 FY24 HIGHLIGHTS\n\nQ3 FY24 HIGHLIGHTS\n- Revenue")
        assert chunk.page_start == chunk.page_end == 4
        assert chunk.chunk_index == 0

    def test_without_header_prefix(self):
        config = ChunkingConfig(header_prefix=False)
        _, chunks = chunk_page(_page(1, SLIDE_LINES), _run_state(), config)
        assert chunks[0].heading is None
        assert chunks[0].content.startswith("Q3 FY24 HIGHLIGHTS\n- Revenue")

    def test_short_page_below_floor_dropped(self):
        config = ChunkingConfig(header_prefix=False, min_chunk_chars=0)
        line = "x" * (PER_PAGE_MIN_CHARS - 1)
        _, chunks = chunk_page(_page(1, [line]), _run_state(), config)
        assert chunks == []

    def test_configured_minimum_above_floor(self):
        config = ChunkingConfig(header_prefix=False, min_chunk_chars=500)
        _, chunks = chunk_page(_page(1, SLIDE_LINES), _run_state(), config)
        assert chunks == []

    def test_empty_page(self):
        mode, chunks = chunk_page(PageLayout(page_number=2), _run_state(), ChunkingConfig())
        assert chunks == []
        assert mode == "slide"


# ---------------------------------------------------------------------------
# Test: Recursive Strategy
# ---------------------------------------------------------------------------


class TestRecursiveChunks:
    def test_dense_page_splits_within_bounds(self):
        config = ChunkingConfig(chunk_size=500, chunk_overlap=50, min_chunk_chars=100)
        mode, chunks = chunk_page(_page(2, dense_lines()), _run_state(), config)

        assert mode == "text"
        assert len(chunks) >= 4
        for chunk in chunks:
            assert 100 <= len(chunk.content) <= 500
            assert chunk.page_start == chunk.page_end == 2
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))

    def test_splits_at_line_breaks(self):
        config = ChunkingConfig(chunk_size=500, chunk_overlap=0, min_chunk_chars=50)
        _, chunks = chunk_page(_page(2, dense_lines()), _run_state(), config)
        for chunk in chunks:
            assert chunk.content.startswith("In period")
            assert chunk.content.endswith("base.")

    def test_short_pieces_filtered(self):
        config = ChunkingConfig(strategy="recursive", min_chunk_chars=1000)
        _, chunks = chunk_page(_page(1, SLIDE_LINES), _run_state(), config)
        assert chunks == []

    def test_records_tokens_and_hash(self):
        _, chunks = chunk_page(_page(2, dense_lines()), _run_state(), ChunkingConfig())
        for chunk in chunks:
            assert chunk.token_count == count_tokens(chunk.content) > 0
            assert chunk.content_hash == content_hash(chunk.content)
            assert len(chunk.content_hash) == 32


# ---------------------------------------------------------------------------
# Test: Run-Scoped Indexing and Deduplication
# ---------------------------------------------------------------------------


class TestIngestionRun:
    def test_indexes_continue_across_pages(self):
        run = _run_state()
        config = ChunkingConfig()
        _, first = chunk_page(_page(1, SLIDE_LINES), run, config)
        _, second = chunk_page(_page(2, dense_lines()), run, config)

        indexes = [c.chunk_index for c in first + second]
        assert indexes == list(range(len(indexes)))

    def test_duplicate_page_skipped(self):
        run = _run_state()
        config = ChunkingConfig()
        chunk_page(_page(1, SLIDE_LINES), run, config)
        _, repeated = chunk_page(_page(7, SLIDE_LINES), run, config)

        assert repeated == []
        assert run.duplicates_skipped == 1
        assert run.next_index == 1

    def test_window_reset_lets_duplicate_through(self):
        run = _run_state(dedupe_window=2)
        assert run.accept("alpha", 1) is not None
        assert run.accept("beta", 1) is not None
        assert run.accept("alpha", 1) is None
        # third distinct hash exceeds the window and clears the set
        assert run.accept("gamma", 1) is not None
        assert run.seen_hashes == set()
        repeat = run.accept("alpha", 2)
        assert repeat is not None
        assert repeat.chunk_index == 3


# ---------------------------------------------------------------------------
# Test: Two-Page Document
# ---------------------------------------------------------------------------


class TestTwoPageDocument:
    """A short slide page followed by a ~2000-character text page."""

    def test_modes_and_page_numbers(self):
        slide = _page(1, SLIDE_LINES)
        text = _page(2, dense_lines())
        assert slide.stats.total_chars <= 800
        assert text.stats.total_chars >= 1900

        run = _run_state()
        config = ChunkingConfig()
        slide_mode, slide_chunks = chunk_page(slide, run, config)
        text_mode, text_chunks = chunk_page(text, run, config)

        assert slide_mode == "slide"
        assert len(slide_chunks) == 1
        assert slide_chunks[0].page_start == 1
        assert text_mode == "text"
        assert len(text_chunks) >= 2
        assert all(c.page_start == c.page_end == 2 for c in text_chunks)
