# =============================================================================
# Unit Tests - Layout-Aware Page Segmenter
# =============================================================================
#
# Pure functions over plain data: no PDF library involved.
# =============================================================================

import math

from fin_rag.services.segmenter import (
    PageStats,
    TextFragment,
    compute_stats,
    detect_page_type,
    group_lines,
    pick_heading,
    score_heading,
    segment_page,
)


# ---------------------------------------------------------------------------
# Test: Line Grouping
# ---------------------------------------------------------------------------


class TestGroupLines:
    """Fragments → lines by baseline jumps and end-of-line hints."""

    def test_same_baseline_joined_with_space(self):
        fragments = [TextFragment("Revenue", 100.0), TextFragment("grew", 100.5)]
        assert group_lines(fragments) == ["Revenue grew"]

    def test_small_jitter_stays_on_line(self):
        fragments = [
            TextFragment("a", 100.0),
            TextFragment("b", 102.5),
            TextFragment("c", 104.0),
        ]
        # baseline follows the last fragment, so 100 → 102.5 → 104 never jumps > 3
        assert group_lines(fragments) == ["a b c"]

    def test_jump_starts_new_line(self):
        fragments = [TextFragment("Title", 50.0), TextFragment("Body", 70.0)]
        assert group_lines(fragments) == ["Title", "Body"]

    def test_end_of_line_hint_closes_line(self):
        """
        The hint ends the line AFTER the flagged fragment, so the flagged
        run stays on the current line and the next run opens a new one.
        This matches parser.py, which flags the last span of each PDF line.
        """
        fragments = [
            TextFragment("first", 100.0, has_eol=True),
            TextFragment("second", 100.0),
        ]
        assert group_lines(fragments) == ["first", "second"]

    def test_missing_coordinates_join_current_line(self):
        fragments = [
            TextFragment("a", 100.0),
            TextFragment("b", None),
            TextFragment("c", float("nan")),
        ]
        assert group_lines(fragments) == ["a b c"]

    def test_empty_input(self):
        assert group_lines([]) == []


# ---------------------------------------------------------------------------
# Test: Page Statistics
# ---------------------------------------------------------------------------


class TestComputeStats:
    def test_counts_bullets(self):
        lines = ["HEADING", "• one", "- two", "* three", "– four", "— five", "· six", "-nospace"]
        stats = compute_stats(lines)
        assert stats.bullet_lines == 6

    def test_totals_and_average(self):
        stats = compute_stats(["abcd", "ef"])
        assert stats.total_chars == 6
        assert stats.avg_line_len == 3.0

    def test_empty_lines(self):
        stats = compute_stats([])
        assert stats.total_chars == 0
        assert stats.avg_line_len == 0.0


class TestSegmentPage:
    def test_normalises_and_drops_empty_lines(self):
        fragments = [
            TextFragment("  Q3   HIGHLIGHTS ", 50.0, has_eol=True),
            TextFragment("\u200b", 70.0, has_eol=True),
            TextFragment("- Revenue up", 90.0, has_eol=True),
        ]
        layout = segment_page(3, fragments)
        assert layout.page_number == 3
        assert layout.lines == ["Q3 HIGHLIGHTS", "- Revenue up"]
        assert layout.stats.bullet_lines == 1
        assert layout.text == "Q3 HIGHLIGHTS\n- Revenue up"


# ---------------------------------------------------------------------------
# Test: Page Classification
# ---------------------------------------------------------------------------


class TestDetectPageType:
    """Slide vs. dense text (best-effort thresholds)."""

    def test_short_page_is_slide(self):
        stats = PageStats(total_chars=450, bullet_lines=0, avg_line_len=90)
        assert detect_page_type(stats) == "slide"

    def test_exactly_800_chars_is_slide(self):
        stats = PageStats(total_chars=800, bullet_lines=0, avg_line_len=100)
        assert detect_page_type(stats) == "slide"

    def test_dense_paragraph_page_is_text(self):
        stats = PageStats(total_chars=1500, bullet_lines=0, avg_line_len=90)
        assert detect_page_type(stats) == "text"

    def test_bullet_density_makes_slide(self):
        # 2 / max(1, 2000/200) = 0.2 > 0.05
        stats = PageStats(total_chars=2000, bullet_lines=2, avg_line_len=95)
        assert detect_page_type(stats) == "slide"

    def test_single_bullet_is_not_enough(self):
        stats = PageStats(total_chars=2000, bullet_lines=1, avg_line_len=95)
        assert detect_page_type(stats) == "text"

    def test_bullet_ratio_below_threshold(self):
        # 2 / (10000/200) = 0.04
        stats = PageStats(total_chars=10000, bullet_lines=2, avg_line_len=95)
        assert detect_page_type(stats) == "text"

    def test_short_lines_make_slide(self):
        stats = PageStats(total_chars=3000, bullet_lines=0, avg_line_len=45)
        assert detect_page_type(stats) == "slide"


# ---------------------------------------------------------------------------
# Test: Heading Picker
# ---------------------------------------------------------------------------


class TestPickHeading:
    def test_upper_case_title_wins(self):
        lines = ["FINANCIAL HIGHLIGHTS", "Revenue grew 12% year over year, driven by..."]
        assert pick_heading(lines) == "FINANCIAL HIGHLIGHTS"

    def test_long_line_scores_zero(self):
        line = "This is a very long line exceeding eighty characters in total length for sure, yes."
        assert len(line) > 80
        assert score_heading(line) == 0.0

    def test_short_second_line_can_win(self):
        lines = [
            "This is a very long line exceeding eighty characters in total length for sure, yes.",
            "Q3",
        ]
        assert pick_heading(lines) == "Q3"

    def test_bullet_and_punctuation_penalised(self):
        assert score_heading("- revenue grew.") < score_heading("Revenue grew")

    def test_no_positive_candidate(self):
        assert pick_heading(["- a long bullet sentence that reads like body text, ending here."]) is None

    def test_only_first_two_lines_considered(self):
        lines = [
            "- this bullet line is body text with a full stop at its end.",
            "- so is this one, also written in lower case letters only.",
            "HEADING",
        ]
        assert pick_heading(lines) is None

    def test_empty(self):
        assert pick_heading([]) is None
        assert score_heading("") == 0.0

    def test_scores_are_finite(self):
        assert math.isfinite(score_heading("1234"))
