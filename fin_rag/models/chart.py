# =============================================================================
# Chart Specification - Validated Chart Schema
# =============================================================================
#
# A ChartSpec describes a chart derived from retrieved context: a type,
# category labels (usually fiscal periods) and one or more numeric series.
#
# Validation rules (enforced on construction):
#   - every series has exactly one value per label
#   - at least 2 labels, and at least one non-zero finite value overall
#   - pie charts have exactly one series with a positive total
#
# Values are tolerant on input: "1,234", "12.5%" and "100 Cr" are read as
# numbers; anything unreadable becomes None (a gap).
# =============================================================================

from __future__ import annotations

import math
import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

ChartType = Literal["line", "bar", "scatter", "pie"]

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


class ChartSeries(BaseModel):
    """One named series of values, aligned with ChartSpec.labels."""

    name: str = Field(default="Value")
    values: list[float | None]
    color: str | None = None

    @field_validator("values", mode="before")
    @classmethod
    def _coerce_values(cls, values):
        if not isinstance(values, list):
            return values
        return [_to_number(v) for v in values]


class ChartSpec(BaseModel):
    """A validated chart specification."""

    type: ChartType = "line"
    labels: list[str]
    series: list[ChartSeries]
    unit: str | None = None
    stacked: bool | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalise_type(cls, value):
        if value is None:
            return "line"
        return str(value).strip().lower()

    @field_validator("labels", mode="before")
    @classmethod
    def _stringify_labels(cls, labels):
        if not isinstance(labels, list):
            return labels
        return [str(label).strip() for label in labels]

    @model_validator(mode="after")
    def _check_shape(self) -> ChartSpec:
        if len(self.labels) < 2:
            raise ValueError("a chart needs at least 2 labels")
        if not self.series:
            raise ValueError("a chart needs at least one series")
        for s in self.series:
            if len(s.values) != len(self.labels):
                raise ValueError(
                    f"series '{s.name}' has {len(s.values)} values for "
                    f"{len(self.labels)} labels"
                )
        if not any(is_plottable(v) for s in self.series for v in s.values):
            raise ValueError("a chart needs at least one non-zero value")
        if self.type == "pie":
            if len(self.series) != 1:
                raise ValueError("a pie chart takes exactly one series")
            total = sum(v for v in self.series[0].values if is_plottable(v))
            if total <= 0:
                raise ValueError("a pie chart needs a positive total")
        return self


def is_plottable(value: float | None) -> bool:
    """True for a finite, non-zero number."""
    return value is not None and math.isfinite(value) and value != 0


def _to_number(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER_RE.search(value.replace(",", ""))
        return float(match.group(0)) if match else None
    return None
