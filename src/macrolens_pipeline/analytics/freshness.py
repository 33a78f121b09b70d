"""
analytics/freshness.py — Latest-available-value selection and staleness.

Each frequency has a maximum acceptable age for its newest observation.
The status is decided by how much of that allowance has been used:

    age / max_age < 0.5  → "fresh"
    age / max_age < 1.0  → "stale"
    otherwise            → "old"

Usage:
    from macrolens_pipeline.analytics.freshness import find_latest_available_value

    lav = find_latest_available_value(series.points, "M", today=date(2024, 4, 10))
    if lav:
        print(lav.last_date, lav.age_days, lav.freshness_status)
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

import structlog

from macrolens_shared.constants import (
    FRESH_RATIO,
    FRESHNESS_DESCRIPTIONS,
    FRESHNESS_MAX_AGE_DAYS,
    STALE_RATIO,
    Frequency,
    FreshnessStatus,
)
from macrolens_shared.models.analytics import FreshnessPolicy, LatestAvailableValue
from macrolens_shared.models.series import SeriesPoint

log = structlog.get_logger(__name__)

FRESHNESS_POLICIES: dict[str, FreshnessPolicy] = {
    freq: FreshnessPolicy(
        frequency=freq,
        max_age_days=max_age,
        description=FRESHNESS_DESCRIPTIONS[freq],
    )
    for freq, max_age in FRESHNESS_MAX_AGE_DAYS.items()
}


def freshness_status(age_days: int, max_age_days: int) -> FreshnessStatus:
    ratio = age_days / max_age_days
    if ratio < FRESH_RATIO:
        return "fresh"
    if ratio < STALE_RATIO:
        return "stale"
    return "old"


def policy_for(frequency: Frequency) -> FreshnessPolicy:
    """Annual series have no policy of their own and use the quarterly one."""
    return FRESHNESS_POLICIES.get(frequency) or FRESHNESS_POLICIES["Q"]


def find_latest_available_value(
    points: Sequence[SeriesPoint],
    frequency: Frequency,
    today: date | None = None,
) -> LatestAvailableValue | None:
    """
    Pick the newest acceptable observation and rate its freshness.

    Walks observations newest first, skipping future dates (provider error)
    and points without a value. For monthly and quarterly series this means
    the current period if it has been published, otherwise the latest
    earlier one; daily and weekly series take the newest observation.

    Returns:
        LatestAvailableValue, or None if nothing qualifies.
    """
    today = today or date.today()
    policy = policy_for(frequency)

    chosen: SeriesPoint | None = None
    for point in sorted(points, key=lambda p: p.date, reverse=True):
        if point.value is None or point.date > today:
            continue
        chosen = point
        break

    if chosen is None:
        log.debug("no_latest_value", frequency=frequency, points=len(points))
        return None

    age_days = (today - chosen.date).days
    return LatestAvailableValue(
        observation=chosen,
        last_date=chosen.date,
        age_days=age_days,
        freshness_status=freshness_status(age_days, policy.max_age_days),
    )
