"""
transforms/time_series.py — Alignment, returns and level transforms for series.

Works on polars DataFrames with a `date` Date column and a `value` Float64
column (TimeSeries.to_frame() shape). Every function here is total: bad or
insufficient input produces nulls or empty frames, never exceptions.

Usage:
    from macrolens_pipeline.transforms.time_series import (
        align_series,
        log_returns,
        yoy_at,
        apply_series_transformation,
    )

    # Pair an asset with a benchmark, filling gaps of up to 3 days
    aligned = align_series(asset.to_frame(), dxy.to_frame(), max_forward_fill_days=3)
    # columns: date, value1, value2

    # Daily log returns, dropping non-positive prices
    rets = log_returns(aligned.select("date", pl.col("value1").alias("value")))

    # Level index → YoY % series
    cpi_yoy = apply_series_transformation(cpi, "yoy")
"""

from __future__ import annotations

import math
from bisect import bisect_left
from collections.abc import Sequence
from datetime import date, timedelta
from typing import Literal

import polars as pl
import structlog

from macrolens_shared.constants import DEFAULT_FORWARD_FILL_DAYS, Frequency, TransformType
from macrolens_shared.models.series import SeriesPoint, TimeSeries
from macrolens_shared.time_utils import align_frequency, months_back

log = structlog.get_logger(__name__)

ChangeMode = Literal["delta", "ratio"]

YOY_TOLERANCE_DAYS = 30
PERIOD_CHANGE_TOLERANCE_DAYS = 15

ALIGNED_SCHEMA = {"date": pl.Date, "value1": pl.Float64, "value2": pl.Float64}


# ---------------------------------------------------------------------------
# Frame hygiene
# ---------------------------------------------------------------------------


def align_to_period_start(
    df: pl.DataFrame,
    date_col: str,
    frequency: Frequency,
) -> pl.DataFrame:
    """
    Snap all dates in date_col to the first day of their period.

    E.g. for "M": date(2024, 3, 15) → date(2024, 3, 1)
    """
    return df.with_columns(
        pl.col(date_col)
        .map_elements(lambda d: align_frequency(d, frequency), return_dtype=pl.Date)
        .alias(date_col)
    )


def deduplicate_series(
    df: pl.DataFrame,
    key_cols: Sequence[str] = ("date",),
    *,
    keep: Literal["first", "last"] = "last",
) -> pl.DataFrame:
    """
    Remove duplicate rows by key_cols, keeping first or last occurrence,
    and return the result sorted by key_cols.

    Use case: providers resend revised values for a date; the later one wins.
    """
    n_before = len(df)
    df = df.unique(subset=list(key_cols), keep=keep, maintain_order=True).sort(list(key_cols))

    dropped = n_before - len(df)
    if dropped:
        log.debug("deduplicated", dropped=dropped, key_cols=list(key_cols))
    return df


def _clean(df: pl.DataFrame) -> pl.DataFrame:
    """Non-null, finite values only; one row per date; ascending."""
    return deduplicate_series(
        df.select(["date", "value"]).filter(
            pl.col("date").is_not_null()
            & pl.col("value").is_not_null()
            & pl.col("value").is_finite()
        )
    )


# ---------------------------------------------------------------------------
# Alignment
# ---------------------------------------------------------------------------


def align_series(
    series1: pl.DataFrame,
    series2: pl.DataFrame,
    *,
    max_forward_fill_days: int = DEFAULT_FORWARD_FILL_DAYS,
    today: date | None = None,
) -> pl.DataFrame:
    """
    Align two (date, value) series on the union of their dates.

    For each date in the union (future dates excluded), each side takes its
    own value on that date, or else its most recent earlier value if that
    value is at most max_forward_fill_days calendar days old. Dates where
    either side is still missing are dropped.

    Args:
        series1:               (date, value) frame, becomes value1.
        series2:               (date, value) frame, becomes value2.
        max_forward_fill_days: Maximum carry-forward gap in calendar days.
        today:                 Reference date for excluding future rows.

    Returns:
        DataFrame with columns date, value1, value2, ascending by date.
    """
    today = today or date.today()
    left = _clean(series1).filter(pl.col("date") <= today)
    right = _clean(series2).filter(pl.col("date") <= today)

    if left.is_empty() or right.is_empty():
        return pl.DataFrame(schema=ALIGNED_SCHEMA)

    spine = (
        pl.concat([left.select("date"), right.select("date")])
        .unique()
        .sort("date")
    )
    tolerance = timedelta(days=max(max_forward_fill_days, 0))

    aligned = (
        spine.join_asof(
            left.rename({"value": "value1"}), on="date", strategy="backward", tolerance=tolerance
        )
        .join_asof(
            right.rename({"value": "value2"}), on="date", strategy="backward", tolerance=tolerance
        )
        .filter(pl.col("value1").is_not_null() & pl.col("value2").is_not_null())
    )
    return aligned.select(["date", "value1", "value2"])


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------


def log_returns(df: pl.DataFrame, value_col: str = "value") -> pl.DataFrame:
    """
    Consecutive log returns ln(v_t / v_{t-1}).

    A return is produced only when both prices are positive and finite, so a
    zero or negative print removes the two returns that touch it.

    Returns:
        DataFrame with columns date, ret (date of the later observation).
    """
    if len(df) < 2:
        return pl.DataFrame(schema={"date": pl.Date, "ret": pl.Float64})

    cur = pl.col(value_col)
    prev = pl.col(value_col).shift(1)
    valid = (
        cur.is_not_null() & prev.is_not_null()
        & cur.is_finite() & prev.is_finite()
        & (cur > 0) & (prev > 0)
    )
    return (
        df.sort("date")
        .with_columns(pl.when(valid).then((cur / prev).log()).otherwise(None).alias("ret"))
        .filter(pl.col("ret").is_not_null() & pl.col("ret").is_finite())
        .select(["date", "ret"])
    )


# ---------------------------------------------------------------------------
# Point transforms (points must be ascending by date)
# ---------------------------------------------------------------------------


def _point_date(p: SeriesPoint) -> date:
    return p.date


def _nearest_within(
    points: Sequence[SeriesPoint],
    target: date,
    tolerance_days: int,
) -> SeriesPoint | None:
    """Closest point with a value to target, ties going to the earlier date."""
    lo = bisect_left(points, target - timedelta(days=tolerance_days), key=_point_date)
    best: SeriesPoint | None = None
    best_gap: int | None = None
    for p in points[lo:]:
        gap = (p.date - target).days
        if gap > tolerance_days:
            break
        if p.value is None:
            continue
        if best_gap is None or abs(gap) < best_gap:
            best, best_gap = p, abs(gap)
    return best


def _value_on(points: Sequence[SeriesPoint], at: date) -> float | None:
    i = bisect_left(points, at, key=_point_date)
    if i < len(points) and points[i].date == at:
        return points[i].value
    return None


def yoy_at(points: Sequence[SeriesPoint], at: date) -> float | None:
    """
    Year-over-year percent change at `at`.

    Looks for the observation nearest to at - 12 months within ±30 days.
    The prior value must be positive and finite.
    """
    current = _value_on(points, at)
    if current is None:
        return None
    prior = _nearest_within(points, months_back(at, 12), YOY_TOLERANCE_DAYS)
    if prior is None or prior.value is None or prior.value <= 0:
        return None
    result = (current / prior.value - 1.0) * 100.0
    return result if math.isfinite(result) else None


def period_change_at(
    points: Sequence[SeriesPoint],
    at: date,
    *,
    months: int = 1,
    tolerance_days: int = PERIOD_CHANGE_TOLERANCE_DAYS,
    mode: ChangeMode = "delta",
) -> float | None:
    """
    Change versus the observation ~`months` earlier (±tolerance_days).

    mode="delta" returns current - prior; mode="ratio" returns the percent
    change and requires a positive prior.
    """
    current = _value_on(points, at)
    if current is None:
        return None
    prior = _nearest_within(points, months_back(at, months), tolerance_days)
    if prior is None or prior.value is None:
        return None
    if mode == "ratio":
        if prior.value <= 0:
            return None
        result = (current / prior.value - 1.0) * 100.0
    else:
        result = current - prior.value
    return result if math.isfinite(result) else None


def lookback_months(frequency: Frequency) -> int:
    """One period back, in months, for QoQ-style changes."""
    match frequency:
        case "Q":
            return 3
        case "A":
            return 12
        case _:
            return 1


def apply_series_transformation(
    series: TimeSeries,
    transform: TransformType,
    *,
    qoq_mode: ChangeMode = "delta",
) -> TimeSeries:
    """
    Derive a transformed series from a level series.

    Leading points without a transformed value are dropped; later gaps stay
    as None so the caller can see them.

    Args:
        series:    Level series (index, price, count).
        transform: "yoy", "qoq" (one period back), "mom" (one month back)
                   or "none".
        qoq_mode:  "delta" or "ratio" for qoq/mom.

    Returns:
        New TimeSeries with the same metadata and transformed points.
    """
    if transform == "none":
        return series

    points = series.points
    out: list[SeriesPoint] = []
    for p in points:
        match transform:
            case "yoy":
                value = yoy_at(points, p.date)
            case "qoq":
                value = period_change_at(
                    points, p.date, months=lookback_months(series.frequency), mode=qoq_mode
                )
            case "mom":
                value = period_change_at(points, p.date, months=1, mode=qoq_mode)
            case _:
                raise ValueError(f"unknown transform {transform!r}")
        if value is None and not out:
            continue
        out.append(SeriesPoint(date=p.date, value=value))

    log.debug(
        "series_transformed",
        series_id=series.id,
        transform=transform,
        input_points=len(points),
        output_points=len(out),
    )
    return series.model_copy(update={"points": out})
