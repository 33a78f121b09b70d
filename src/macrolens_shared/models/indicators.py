"""
models/indicators.py — Per-indicator provider configuration.

One IndicatorSourceConfig says where a named indicator can be found at each
provider. A provider whose identifier fields are unset is "not configured"
for that indicator and is skipped without an error.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from macrolens_shared.constants import Frequency, TransformType


class IndicatorSourceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str                                  # e.g. "us_cpi_yoy"
    name: str | None = None
    frequency: Frequency = "M"
    unit: str | None = None
    transform: TransformType = "none"
    # "delta" = absolute change, "ratio" = percent change
    qoq_mode: Literal["delta", "ratio"] = "delta"

    fred_series_id: str | None = None

    oecd_dataset: str | None = None
    oecd_filter: str | None = None
    oecd_fallback_filters: tuple[str, ...] = Field(default_factory=tuple)

    te_country: str | None = None
    te_indicator: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.key
