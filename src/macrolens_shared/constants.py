"""
constants.py — shared constants used across the resolver and analytics.

Frequencies, freshness policies, correlation windows and provider names
are defined here so every module agrees on them.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Series frequencies
# ---------------------------------------------------------------------------
Frequency = Literal["D", "W", "M", "Q", "A"]

FREQUENCY_NAMES: Final[dict[str, str]] = {
    "D": "daily",
    "W": "weekly",
    "M": "monthly",
    "Q": "quarterly",
    "A": "annual",
}

# ---------------------------------------------------------------------------
# Freshness: maximum acceptable age (calendar days) of the latest observation
# ---------------------------------------------------------------------------
FRESHNESS_MAX_AGE_DAYS: Final[dict[str, int]] = {
    "D": 7,
    "W": 21,
    "M": 75,
    "Q": 140,
}

FRESHNESS_DESCRIPTIONS: Final[dict[str, str]] = {
    "D": "Daily data should be within 1 week",
    "W": "Weekly data should be within 3 weeks",
    "M": "Monthly data should be within 2.5 months",
    "Q": "Quarterly data should be within 4.5 months",
}

# age / max_age ratio thresholds
FRESH_RATIO: Final[float] = 0.5
STALE_RATIO: Final[float] = 1.0

FreshnessStatus = Literal["fresh", "stale", "old"]

# ---------------------------------------------------------------------------
# Correlation method
# ---------------------------------------------------------------------------
# name -> (trading_days, min_observations)
CORRELATION_WINDOWS: Final[dict[str, tuple[int, int]]] = {
    "12m": (252, 150),
    "3m": (63, 40),
}

# Aligned series whose last date is older than this are not correlated
CORRELATION_STALE_DAYS: Final[int] = 20
DEFAULT_FORWARD_FILL_DAYS: Final[int] = 3
WINSOR_LOWER: Final[float] = 0.01
WINSOR_UPPER: Final[float] = 0.99

# ---------------------------------------------------------------------------
# Providers and transforms
# ---------------------------------------------------------------------------
PROVIDER_PRIORITY: Final[list[str]] = ["fred", "oecd", "tradingeconomics"]

TransformType = Literal["none", "yoy", "qoq", "mom"]

# Response bodies kept on errors are truncated to this many characters
ERROR_BODY_MAX_CHARS: Final[int] = 500
