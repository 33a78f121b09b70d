"""
models/analytics.py — Correlation and freshness result models.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from macrolens_shared.constants import Frequency, FreshnessStatus
from macrolens_shared.models.series import SeriesPoint

ReasonNull = Literal["NO_DATA", "TOO_FEW_POINTS", "STALE", "NAN_AFTER_JOIN"]


class CorrelationWindowConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    trading_days: int = Field(gt=1)
    min_observations: int = Field(ge=2)


class CorrelationResult(BaseModel):
    """
    Pearson correlation of daily log returns over one window.

    correlation is None whenever the data could not support a number;
    reason_null then says why.
    """

    correlation: float | None = Field(default=None, ge=-1.0, le=1.0)
    n_observations: int = 0
    last_asset_date: date | None = None
    last_base_date: date | None = None
    reason_null: ReasonNull | None = None


class FreshnessPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    frequency: Frequency
    max_age_days: int
    description: str


class LatestAvailableValue(BaseModel):
    observation: SeriesPoint
    last_date: date
    age_days: int
    freshness_status: FreshnessStatus
