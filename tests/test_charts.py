# =============================================================================
# Unit Tests - Chart Extraction
# =============================================================================
#
# Intent detection, tolerant JSON parsing, schema validation, the regex
# heuristic, suppression, sanitization and Chart.js conversion.
# =============================================================================

import pytest
from fakes import FakeLLM, _run
from pydantic import ValidationError

from fin_rag.agents.charts import (
    COLORS,
    chart_spec_to_chartjs,
    detect_chart_intent,
    extract_heuristic,
    extract_structured_chart,
    finalize_chart,
    is_insufficient_answer,
    parse_json_loosely,
    sanitize_chart,
    validate_chart,
)
from fin_rag.models.chart import ChartSeries, ChartSpec
from fin_rag.services.retriever import RankedExcerpt

PAT_SPEC = {
    "type": "line",
    "labels": ["FY21", "FY22", "FY23"],
    "series": [{"name": "PAT", "values": [310, 405, 520]}],
    "unit": "Cr",
}


def _spec(**overrides) -> ChartSpec:
    return ChartSpec.model_validate({**PAT_SPEC, **overrides})


# ---------------------------------------------------------------------------
# Test: Intent
# ---------------------------------------------------------------------------


class TestDetectChartIntent:
    def test_positive(self):
        for question in (
            "Plot PAT from FY21 to FY23",
            "Show the revenue trend",
            "Compare EBITDA margins",
            "Q3 vs Q2 revenue",
            "Segment breakdown of revenue",
            "YoY growth in orders",
            "Visualise the order book",
        ):
            assert detect_chart_intent(question), question

    def test_negative(self):
        for question in ("Who is the CEO?", "What was revenue in Q3 FY24?", ""):
            assert not detect_chart_intent(question), question


# ---------------------------------------------------------------------------
# Test: Chart Schema
# ---------------------------------------------------------------------------


class TestChartSpecSchema:
    def test_valid(self):
        spec = _spec()
        assert spec.labels == ["FY21", "FY22", "FY23"]
        assert spec.series[0].values == [310.0, 405.0, 520.0]

    def test_value_coercion(self):
        series = ChartSeries(values=["1,234", "12.5%", "100 Cr", "n/a", None, True])
        assert series.values == [1234.0, 12.5, 100.0, None, None, None]
        assert series.name == "Value"

    def test_length_mismatch(self):
        with pytest.raises(ValidationError, match="2 values for 3 labels"):
            _spec(series=[{"name": "PAT", "values": [1, 2]}])

    def test_needs_two_labels(self):
        with pytest.raises(ValidationError):
            _spec(labels=["FY21"], series=[{"values": [1]}])

    def test_needs_a_non_zero_value(self):
        with pytest.raises(ValidationError):
            _spec(series=[{"values": [0, 0, None]}])

    def test_pie_single_series_positive_total(self):
        pie = _spec(type="pie")
        assert pie.type == "pie"
        with pytest.raises(ValidationError):
            _spec(type="pie", series=[{"values": [1, 2, 3]}, {"values": [4, 5, 6]}])
        with pytest.raises(ValidationError):
            _spec(type="pie", series=[{"values": [-5, 1, 1]}])

    def test_type_normalised(self):
        assert _spec(type="BAR").type == "bar"
        assert _spec(type=None).type == "line"
        with pytest.raises(ValidationError):
            _spec(type="radar")


# ---------------------------------------------------------------------------
# Test: Tolerant JSON Parsing
# ---------------------------------------------------------------------------


class TestParseJsonLoosely:
    def test_raw(self):
        assert parse_json_loosely('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        text = 'Here you go:\n```json\n{"a": 1}\n```\nDone.'
        assert parse_json_loosely(text) == {"a": 1}

    def test_brace_substring(self):
        assert parse_json_loosely('The chart is {"a": {"b": 2}} as requested.') == {"a": {"b": 2}}

    def test_braces_inside_strings(self):
        assert parse_json_loosely('x {"name": "a}b{", "v": 1} y') == {"name": "a}b{", "v": 1}

    def test_null_literal(self):
        assert parse_json_loosely("null") is None

    def test_garbage(self):
        assert parse_json_loosely("no json here") is None
        assert parse_json_loosely("{unbalanced") is None


class TestValidateChart:
    def test_valid_dict(self):
        assert validate_chart(PAT_SPEC).labels == ["FY21", "FY22", "FY23"]

    def test_wrapped_object(self):
        assert validate_chart({"chart": PAT_SPEC}) is not None
        assert validate_chart({"chartSpec": PAT_SPEC}) is not None

    def test_invalid_inputs(self):
        assert validate_chart(None) is None
        assert validate_chart([PAT_SPEC]) is None
        assert validate_chart({**PAT_SPEC, "labels": ["FY21"]}) is None


# ---------------------------------------------------------------------------
# Test: Structured Extraction over the Provider Chain
# ---------------------------------------------------------------------------


_EXCERPTS = [RankedExcerpt(id=1, score=0.9, text="PAT was 310 Cr in FY21, 405 Cr in FY22 and 520 Cr in FY23.")]


class TestExtractStructuredChart:
    def test_primary_json(self):
        import json

        llm = FakeLLM(json.dumps(PAT_SPEC))
        spec = _run(extract_structured_chart("Plot PAT", _EXCERPTS, [llm]))

        assert spec.series[0].values == [310.0, 405.0, 520.0]
        assert llm.calls[0]["temperature"] == 0.0
        assert "Source 1:" in llm.calls[0]["messages"][0]["content"]

    def test_alternate_after_unusable_output(self):
        primary = FakeLLM("I could not find a chart.")
        alternate = FakeLLM('```json\n{"labels": ["FY22", "FY23"], "series": [{"values": [405, 520]}]}\n```')

        spec = _run(extract_structured_chart("Plot PAT", _EXCERPTS, [primary, alternate]))

        assert spec.labels == ["FY22", "FY23"]
        assert len(primary.calls) == 1

    def test_provider_error_falls_through(self):
        primary = FakeLLM(RuntimeError("503"))
        alternate = FakeLLM("null")
        assert _run(extract_structured_chart("Plot PAT", _EXCERPTS, [primary, alternate])) is None

    def test_no_excerpts(self):
        llm = FakeLLM("unused")
        assert _run(extract_structured_chart("Plot PAT", [], [llm])) is None
        assert llm.calls == []


# ---------------------------------------------------------------------------
# Test: Heuristic Fallback
# ---------------------------------------------------------------------------


class TestExtractHeuristic:
    def test_value_before_label(self):
        spec = extract_heuristic("PAT was 100 Cr in FY22 and 150 Cr in FY23")
        assert spec.labels == ["FY22", "FY23"]
        assert spec.series[0].name == "Value"
        assert spec.series[0].values == [100.0, 150.0]
        assert spec.unit == "CR"

    def test_list_of_three(self):
        spec = extract_heuristic("PAT was 310 Cr in FY21, 405 Cr in FY22 and 520 Cr in FY23")
        assert spec.labels == ["FY21", "FY22", "FY23"]
        assert spec.series[0].values == [310.0, 405.0, 520.0]

    def test_value_after_label(self):
        spec = extract_heuristic("FY21: 310, FY22: 405, FY23: 520 crore")
        assert spec.series[0].values == [310.0, 405.0, 520.0]
        assert spec.unit == "CR"

    def test_quarter_labels_and_grouped_numbers(self):
        spec = extract_heuristic("Revenue was Rs 4,085 Cr in Q3 FY23 and Rs 4,820 Cr in Q3 FY24")
        assert spec.labels == ["Q3 FY23", "Q3 FY24"]
        assert spec.series[0].values == [4085.0, 4820.0]

    def test_grouped_decimals_keep_fraction_and_unit(self):
        spec = extract_heuristic("Revenue was 1,234.5 Cr in FY22 and 1,456.7 Cr in FY23")
        assert spec.labels == ["FY22", "FY23"]
        assert spec.series[0].values == [1234.5, 1456.7]
        assert spec.unit == "CR"

    def test_rupee_prefix_with_dot(self):
        spec = extract_heuristic("Revenue was Rs.480 Cr in FY22 and Rs.520 Cr in FY23")
        assert spec.series[0].values == [480.0, 520.0]
        assert spec.unit == "CR"

    def test_value_after_rupee_prefix(self):
        spec = extract_heuristic("FY22 was Rs.480 Cr and FY23 was Rs.520 Cr")
        assert spec.series[0].values == [480.0, 520.0]

    def test_citation_markers_are_not_values(self):
        spec = extract_heuristic("PAT rose in FY22 [S1] and again in FY23 [S2]")
        assert spec is None

    def test_spelled_out_units(self):
        assert extract_heuristic("PAT was 310 crore in FY22 and 405 crore in FY23").unit == "CR"
        assert extract_heuristic("Profit was 12.5 million in 2022 and 15 million in 2023").unit == "MN"
        assert extract_heuristic("Revenue was 1.1 billion in FY22 and 1.4 billion in FY23").unit == "BN"

    def test_unit_by_plurality(self):
        spec = extract_heuristic(
            "Revenue was 310 crore in FY21, 405 Cr in FY22 and 1.2 billion in FY23"
        )
        assert spec.series[0].values == [310.0, 405.0, 1.2]
        assert spec.unit == "CR"

    def test_percent_unit(self):
        spec = extract_heuristic("EBITDA margin was 19.8% in FY23 and 21.4% in FY24")
        assert spec.unit == "%"
        assert spec.series[0].values == [19.8, 21.4]

    def test_first_occurrence_wins(self):
        spec = extract_heuristic("FY22 was 100 Cr and FY23 was 150 Cr. Restated, FY22 was 999 Cr.")
        assert spec.labels == ["FY22", "FY23"]
        assert spec.series[0].values == [100.0, 150.0]

    def test_bar_for_comparison_question(self):
        spec = extract_heuristic("PAT was 100 Cr in FY22 and 150 Cr in FY23", "Compare PAT")
        assert spec.type == "bar"

    def test_needs_two_pairs(self):
        assert extract_heuristic("PAT was 100 Cr in FY22") is None
        assert extract_heuristic("Plot PAT from FY21 to FY24") is None
        assert extract_heuristic("") is None

    def test_needs_two_non_zero_values(self):
        assert extract_heuristic("PAT was 0 Cr in FY22 and 150 Cr in FY23") is None


# ---------------------------------------------------------------------------
# Test: Suppression, Sanitization, Finalization
# ---------------------------------------------------------------------------


class TestSanitizeChart:
    def test_drops_zero_and_missing_positions(self):
        spec = _spec(
            labels=["FY20", "FY21", "FY22", "FY23"],
            series=[{"name": "PAT", "values": [0, 310, None, 520]}],
        )
        clean = sanitize_chart(spec)
        assert clean.labels == ["FY21", "FY23"]
        assert clean.series[0].values == [310.0, 520.0]
        assert clean.unit == "Cr"

    def test_single_non_zero_point_discarded(self):
        spec = ChartSpec(labels=["FY22", "FY23"], series=[ChartSeries(name="Revenue", values=[100, 0])])
        assert sanitize_chart(spec) is None

    def test_keeps_position_if_any_series_has_value(self):
        spec = _spec(series=[
            {"name": "A", "values": [1, 0, 3]},
            {"name": "B", "values": [0, 2, 0]},
        ])
        assert sanitize_chart(spec).labels == ["FY21", "FY22", "FY23"]

    def test_none(self):
        assert sanitize_chart(None) is None


class TestFinalizeChart:
    def test_structured_passes_through(self):
        spec = finalize_chart("Plot PAT", "PAT rose steadily [S1]", _spec())
        assert spec.labels == ["FY21", "FY22", "FY23"]

    def test_heuristic_from_answer(self):
        spec = finalize_chart("Plot PAT", "PAT was 100 Cr in FY22 and 150 Cr in FY23 [S1]", None)
        assert spec.series[0].values == [100.0, 150.0]

    def test_heuristic_from_question(self):
        spec = finalize_chart("Compare PAT: FY22 100 Cr vs FY23 150 Cr", "Profit rose.", None)
        assert spec.labels == ["FY22", "FY23"]
        assert spec.type == "bar"

    def test_suppressed_when_answer_lacks_data(self):
        answer = "I don't know; the FY21 figures are not available in the sources."
        assert finalize_chart("Plot PAT", answer, _spec()) is None

    def test_nothing_found(self):
        assert finalize_chart("Plot PAT", "PAT grew.", None) is None


class TestIsInsufficientAnswer:
    def test_phrases(self):
        assert is_insufficient_answer("This cannot be answered from the documents.")
        assert is_insufficient_answer("Insufficient data to plot.")
        assert is_insufficient_answer("I do not know.")
        assert is_insufficient_answer("I don’t know.")
        assert not is_insufficient_answer("PAT was 520 Cr in FY23 [S1].")
        assert not is_insufficient_answer(None)


# ---------------------------------------------------------------------------
# Test: Chart.js Conversion
# ---------------------------------------------------------------------------


class TestChartSpecToChartjs:
    def test_line(self):
        config = chart_spec_to_chartjs(_spec())
        assert config["type"] == "line"
        assert config["data"]["labels"] == ["FY21", "FY22", "FY23"]
        dataset = config["data"]["datasets"][0]
        assert dataset["label"] == "PAT"
        assert dataset["borderColor"] == COLORS[0]
        assert dataset["backgroundColor"] == COLORS[0] + "80"
        assert dataset["fill"] is False
        assert config["options"]["scales"]["y"]["title"]["text"] == "Cr"
        assert config["options"]["plugins"]["legend"]["position"] == "top"

    def test_stacked_bar(self):
        spec = _spec(type="bar", stacked=True, series=[
            {"name": "A", "values": [1, 2, 3], "color": "#123456"},
            {"name": "B", "values": [3, 2, 1]},
        ])
        config = chart_spec_to_chartjs(spec)
        assert config["options"]["scales"]["y"]["stacked"] is True
        assert config["data"]["datasets"][0]["borderColor"] == "#123456"
        assert config["data"]["datasets"][1]["borderColor"] == COLORS[1]
        assert config["data"]["datasets"][0]["fill"] is True

    def test_scatter_drawn_as_line(self):
        assert chart_spec_to_chartjs(_spec(type="scatter"))["type"] == "line"

    def test_pie(self):
        config = chart_spec_to_chartjs(_spec(type="pie"))
        assert config["type"] == "pie"
        assert len(config["data"]["datasets"][0]["backgroundColor"]) == 3
        assert "scales" not in config["options"]

    def test_no_unit_no_axis_title(self):
        config = chart_spec_to_chartjs(_spec(unit=None))
        assert "title" not in config["options"]["scales"]["y"]
