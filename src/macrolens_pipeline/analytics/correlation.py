"""
analytics/correlation.py — Rolling Pearson correlation of daily log returns.

compute_correlation() pairs an asset with a benchmark (typically DXY):

  1. align both price series on the union of dates, forward-filling short gaps
  2. require at least `window_days` aligned rows, then keep the last window
  3. refuse to compute if the window ends too long before today (stale)
  4. log returns per side, inner-joined by date
  5. require `min_observations` joint returns
  6. winsorize each side, Pearson, clamp to [-1, 1]

Every rejection returns a CorrelationResult with correlation=None and a
reason_null code; data problems never raise.

The method parameters (windows, fill, winsor percentiles) come from a JSON
file when `settings.correlation_config_path` points at one:

  {
    "windows": {"w12m": {"trading_days": 252, "min_obs": 150},
                "w3m":  {"trading_days": 63,  "min_obs": 40}},
    "method":  {"fill": {"max_days": 3},
                "winsorize": {"p_low": 0.01, "p_high": 0.99}}
  }

Usage:
    from macrolens_pipeline.analytics.correlation import compute_correlation

    result = compute_correlation(gold.to_frame(), dxy.to_frame(), 252)
    print(result.correlation, result.n_observations, result.reason_null)
"""

from __future__ import annotations

import json
import math
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any

import polars as pl
import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

from macrolens_pipeline.transforms.time_series import align_series, log_returns
from macrolens_shared.config import settings
from macrolens_shared.constants import (
    CORRELATION_STALE_DAYS,
    CORRELATION_WINDOWS,
    DEFAULT_FORWARD_FILL_DAYS,
    WINSOR_LOWER,
    WINSOR_UPPER,
)
from macrolens_shared.models.analytics import CorrelationResult, CorrelationWindowConfig
from macrolens_shared.models.series import TimeSeries

log = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Method configuration
# ---------------------------------------------------------------------------


def _default_windows() -> dict[str, CorrelationWindowConfig]:
    return {
        name: CorrelationWindowConfig(trading_days=days, min_observations=min_obs)
        for name, (days, min_obs) in CORRELATION_WINDOWS.items()
    }


class CorrelationMethodConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    windows: dict[str, CorrelationWindowConfig] = Field(default_factory=_default_windows)
    max_forward_fill_days: int = Field(default=DEFAULT_FORWARD_FILL_DAYS, ge=0)
    winsor_lower: float = Field(default=WINSOR_LOWER, ge=0.0, le=1.0)
    winsor_upper: float = Field(default=WINSOR_UPPER, ge=0.0, le=1.0)
    stale_after_days: int = Field(default=CORRELATION_STALE_DAYS, ge=0)

    @model_validator(mode="after")
    def check_winsor_bounds(self) -> "CorrelationMethodConfig":
        if self.winsor_lower > self.winsor_upper:
            raise ValueError(
                f"winsor_lower ({self.winsor_lower}) exceeds winsor_upper ({self.winsor_upper})"
            )
        return self

    @classmethod
    def from_json_dict(cls, raw: dict[str, Any]) -> "CorrelationMethodConfig":
        """Build from the on-disk layout (window keys may carry a 'w' prefix)."""
        fields: dict[str, Any] = {}
        if "windows" in raw:
            fields["windows"] = {
                name.removeprefix("w"): CorrelationWindowConfig(
                    trading_days=cfg["trading_days"],
                    min_observations=cfg.get("min_obs", cfg.get("min_observations")),
                )
                for name, cfg in raw["windows"].items()
            }
        method = raw.get("method") or {}
        if "fill" in method:
            fields["max_forward_fill_days"] = method["fill"]["max_days"]
        if "winsorize" in method:
            fields["winsor_lower"] = method["winsorize"].get("p_low", WINSOR_LOWER)
            fields["winsor_upper"] = method["winsorize"].get("p_high", WINSOR_UPPER)
        if "stale_after_days" in method:
            fields["stale_after_days"] = method["stale_after_days"]
        return cls(**fields)


@lru_cache(maxsize=4)
def load_correlation_config(path: str | None = None) -> CorrelationMethodConfig:
    """
    Load the correlation method config once per path.

    An unset or missing path yields the built-in defaults, with the
    forward-fill limit taken from settings. A file that
    exists but does not parse is a configuration error and raises.
    """
    path = path if path is not None else settings.correlation_config_path
    if not path or not Path(path).is_file():
        return CorrelationMethodConfig(max_forward_fill_days=settings.max_forward_fill_days)
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    config = CorrelationMethodConfig.from_json_dict(raw)
    log.info("correlation_config_loaded", path=path, windows=sorted(config.windows))
    return config


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def winsorize(
    values: pl.Series,
    lower: float = WINSOR_LOWER,
    upper: float = WINSOR_UPPER,
) -> pl.Series:
    """
    Clip values to the empirical [lower, upper] percentiles.

    Bounds are sorted[floor(n * p)], with the index capped at n - 1.
    """
    n = len(values)
    if n == 0:
        return values
    ordered = values.sort()
    lo = ordered[min(int(math.floor(n * lower)), n - 1)]
    hi = ordered[min(int(math.floor(n * upper)), n - 1)]
    return values.clip(lo, hi)


def pearson(x: pl.Series, y: pl.Series) -> float | None:
    """Pearson r clamped to [-1, 1]; None when undefined (n < 2, zero variance)."""
    if len(x) != len(y) or len(x) < 2:
        return None
    r = pl.DataFrame({"x": x, "y": y}).select(pl.corr("x", "y")).item()
    if r is None or not math.isfinite(r):
        return None
    return max(-1.0, min(1.0, float(r)))


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------


def _as_frame(series: pl.DataFrame | TimeSeries) -> pl.DataFrame:
    return series.to_frame() if isinstance(series, TimeSeries) else series


def _last_valid_date(df: pl.DataFrame, today: date) -> date | None:
    valid = df.filter(
        pl.col("value").is_not_null() & pl.col("value").is_finite() & (pl.col("date") <= today)
    )
    return valid["date"].max() if not valid.is_empty() else None


def default_min_observations(window_days: int) -> int:
    return 150 if window_days >= 200 else 40


def compute_correlation(
    asset: pl.DataFrame | TimeSeries,
    base: pl.DataFrame | TimeSeries,
    window_days: int,
    min_observations: int | None = None,
    *,
    today: date | None = None,
    config: CorrelationMethodConfig | None = None,
) -> CorrelationResult:
    """
    Correlation of daily log returns over the last `window_days` aligned days.

    Args:
        asset:            Asset price series (date, value).
        base:             Benchmark price series (date, value).
        window_days:      Aligned rows in the window (252 ≈ 12m, 63 ≈ 3m).
        min_observations: Minimum joint returns; defaults to 150 for windows
                          of 200+ days and 40 otherwise.
        today:            Reference date for staleness and future filtering.
        config:           Method parameters; defaults to load_correlation_config().

    Returns:
        CorrelationResult; correlation is None with reason_null on rejection.
    """
    today = today or date.today()
    config = config or load_correlation_config()
    required = min_observations if min_observations is not None else default_min_observations(window_days)

    asset_df = _as_frame(asset)
    base_df = _as_frame(base)
    last_asset = _last_valid_date(asset_df, today)
    last_base = _last_valid_date(base_df, today)

    def null(n: int, reason: str) -> CorrelationResult:
        log.debug("correlation_null", reason=reason, n_observations=n, window_days=window_days)
        return CorrelationResult(
            correlation=None,
            n_observations=n,
            last_asset_date=last_asset,
            last_base_date=last_base,
            reason_null=reason,
        )

    if last_asset is None or last_base is None:
        return null(0, "NO_DATA")

    aligned = align_series(
        asset_df, base_df, max_forward_fill_days=config.max_forward_fill_days, today=today
    )
    if len(aligned) < window_days:
        return null(len(aligned), "TOO_FEW_POINTS")

    window = aligned.tail(window_days)
    if (today - window["date"].max()).days > config.stale_after_days:
        return null(0, "STALE")

    asset_rets = log_returns(window.select("date", pl.col("value1").alias("value")))
    base_rets = log_returns(window.select("date", pl.col("value2").alias("value")))
    joined = asset_rets.join(base_rets, on="date", how="inner", suffix="_base").sort("date")

    n = len(joined)
    if n < required:
        return null(n, "TOO_FEW_POINTS")

    x = winsorize(joined["ret"], config.winsor_lower, config.winsor_upper)
    y = winsorize(joined["ret_base"], config.winsor_lower, config.winsor_upper)
    corr = pearson(x, y)
    if corr is None:
        return null(n, "NAN_AFTER_JOIN")

    return CorrelationResult(
        correlation=corr,
        n_observations=n,
        last_asset_date=last_asset,
        last_base_date=last_base,
    )


def compute_window_correlations(
    asset: pl.DataFrame | TimeSeries,
    base: pl.DataFrame | TimeSeries,
    *,
    today: date | None = None,
    config: CorrelationMethodConfig | None = None,
) -> dict[str, CorrelationResult]:
    """Run compute_correlation for every configured window ("12m", "3m", …)."""
    config = config or load_correlation_config()
    return {
        name: compute_correlation(
            asset,
            base,
            window.trading_days,
            window.min_observations,
            today=today,
            config=config,
        )
        for name, window in config.windows.items()
    }
