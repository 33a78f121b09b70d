"""
models/series.py — Pydantic models for a resolved time series.

A TimeSeries is always strictly ascending by date with one point per date.
Provider payloads are messy (duplicates, NaN markers, unsorted rows), so
the model normalizes on construction rather than trusting callers.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

import polars as pl
from pydantic import BaseModel, Field, field_validator

from macrolens_shared.constants import Frequency

FRAME_SCHEMA: dict[str, Any] = {"date": pl.Date, "value": pl.Float64}


class SeriesPoint(BaseModel):
    date: date
    value: float | None = None

    @field_validator("value", mode="after")
    @classmethod
    def non_finite_to_none(cls, v: float | None) -> float | None:
        if v is None or not math.isfinite(v):
            return None
        return v


class TimeSeries(BaseModel):
    """One observed series as returned by a provider (after optional transform)."""

    id: str
    source_name: str
    native_id: str
    name: str
    frequency: Frequency
    unit: str | None = None
    points: list[SeriesPoint] = Field(default_factory=list)
    last_updated: datetime | None = None

    @field_validator("points", mode="after")
    @classmethod
    def sort_and_dedupe(cls, v: list[SeriesPoint]) -> list[SeriesPoint]:
        # Later duplicates overwrite earlier ones
        by_date: dict[date, SeriesPoint] = {}
        for point in v:
            by_date[point.date] = point
        return [by_date[d] for d in sorted(by_date)]

    # ------------------------------------------------------------------
    # Convenience accessors
    # ------------------------------------------------------------------

    @property
    def has_values(self) -> bool:
        return any(p.value is not None for p in self.points)

    @property
    def last_date(self) -> date | None:
        return self.points[-1].date if self.points else None

    # ------------------------------------------------------------------
    # polars interop
    # ------------------------------------------------------------------

    def to_frame(self) -> pl.DataFrame:
        """Return a (date, value) DataFrame in ascending date order."""
        return pl.DataFrame(
            {
                "date": [p.date for p in self.points],
                "value": [p.value for p in self.points],
            },
            schema=FRAME_SCHEMA,
        )

    @classmethod
    def from_frame(cls, df: pl.DataFrame, **fields: Any) -> "TimeSeries":
        """
        Build a TimeSeries from a DataFrame with `date` and `value` columns.

        Args:
            df:       DataFrame produced by a provider adapter or transform.
            **fields: Remaining model fields (id, source_name, native_id, ...).
        """
        points = [
            SeriesPoint(date=row["date"], value=row["value"])
            for row in df.select(["date", "value"]).iter_rows(named=True)
            if row["date"] is not None
        ]
        return cls(points=points, **fields)
