"""
time_utils.py — Date parsing and period helpers for provider series.

Providers publish dates in several shapes:
- ISO: "2024-01-31", "2024-01-31T00:00:00"
- Monthly: "2024-01", "2024-M01"
- Quarterly: "2024-Q1", "2024Q1", "Q1 2024"
- Annual: "2024"

Usage:
    from macrolens_shared.time_utils import parse_period_date, align_frequency

    dt = parse_period_date("2024-Q2")                  # date(2024, 4, 1)
    dt = parse_period_date("2024-03-15T00:00:00")      # date(2024, 3, 15)
    aligned = align_frequency(date(2024, 3, 15), "Q")  # date(2024, 1, 1)
"""

from __future__ import annotations

import re
from datetime import date

from dateutil.relativedelta import relativedelta

from macrolens_shared.constants import Frequency


def parse_period_date(raw: str | None) -> date | None:
    """
    Parse a provider date string into a Python date object.

    Returns the FIRST day of the period for monthly, quarterly and annual
    strings. Time components of ISO datetimes are discarded.
    Returns None if the string cannot be parsed.

    Args:
        raw: Raw date string from a provider payload.

    Returns:
        datetime.date or None.
    """
    if not raw:
        return None

    s = raw.strip()

    # ISO date, optionally followed by a time part
    m = re.match(r"(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$", s)
    if m:
        try:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None

    # YYYY-MM or YYYY-MMM (SDMX monthly)
    m = re.fullmatch(r"(\d{4})-M?(\d{2})", s)
    if m:
        month = int(m.group(2))
        return date(int(m.group(1)), month, 1) if 1 <= month <= 12 else None

    # Quarterly: Q1 2024 or 2024-Q1 or 2024Q1
    m = re.fullmatch(r"[Qq]([1-4])\s+(\d{4})", s)
    if m:
        quarter, year = int(m.group(1)), int(m.group(2))
        return date(year, (quarter - 1) * 3 + 1, 1)
    m = re.fullmatch(r"(\d{4})-?[Qq]([1-4])", s)
    if m:
        year, quarter = int(m.group(1)), int(m.group(2))
        return date(year, (quarter - 1) * 3 + 1, 1)

    # Annual: plain 4-digit year
    m = re.fullmatch(r"(\d{4})", s)
    if m:
        return date(int(m.group(1)), 1, 1)

    return None


def align_frequency(d: date, frequency: Frequency) -> date:
    """
    Snap a date to the first day of its period for the given frequency.

    Examples:
        align_frequency(date(2024, 3, 15), "M")  -> date(2024, 3, 1)
        align_frequency(date(2024, 3, 15), "Q")  -> date(2024, 1, 1)
        align_frequency(date(2024, 3, 15), "A")  -> date(2024, 1, 1)
    """
    match frequency:
        case "D":
            return d
        case "W":
            # Monday of the week
            return d - relativedelta(days=d.weekday())
        case "M":
            return date(d.year, d.month, 1)
        case "Q":
            return date(d.year, quarter_of(d) * 3 - 2, 1)
        case "A":
            return date(d.year, 1, 1)
        case _:
            return d


def quarter_of(d: date) -> int:
    return (d.month - 1) // 3 + 1


def months_back(d: date, months: int) -> date:
    """Calendar-aware month subtraction (Mar 31 - 1 month = Feb 28/29)."""
    return d - relativedelta(months=months)
