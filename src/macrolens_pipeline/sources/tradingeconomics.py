"""
sources/tradingeconomics.py — TradingEconomics provider adapter.

The API answers the same question through several URL shapes, and not all
of them are available on every plan or for every country:

  Euro area:
    1. /historical/country/euro area/indicator/{indicator}            (all data)
    2. /historical/country/euro area/indicator/{indicator}?d1=&d2=    (last 5 years)
    3. /indicator/{indicator}?country=euro area
  Other countries:
    1. /indicator/{indicator}?country={country}
    2. /historical/country/{country}/indicator/{indicator}?d1=&d2=    (last 5 years)

The API key travels as the `c` query parameter. Responses are a JSON list
(sometimes wrapped in {"data": [...]} or {"results": [...]}, sometimes a
bare object) whose items use inconsistent field names for the value and
the date; see VALUE_FIELDS / DATE_FIELDS for the lookup order.

Survey indicators (PMIs and similar) are stamped with the first day of the
month they describe. Their dates are snapped to month start and the series
is treated as monthly. The snapping is a TradingEconomics convention and
is not applied to other providers.

Identifier: "{country}/{indicator}", e.g. "united states/manufacturing pmi".
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from typing import Any
from urllib.parse import quote

import polars as pl
from dateutil.relativedelta import relativedelta

from macrolens_pipeline.sources.base import ProviderAdapter
from macrolens_pipeline.sources.fetcher import Endpoint
from macrolens_pipeline.utils.throttle import RequestThrottle
from macrolens_shared.config import settings
from macrolens_shared.constants import Frequency
from macrolens_shared.models.indicators import IndicatorSourceConfig
from macrolens_shared.models.series import FRAME_SCHEMA
from macrolens_shared.time_utils import align_frequency, parse_period_date

VALUE_FIELDS: tuple[str, ...] = (
    "actual", "Actual", "latestValue", "LatestValue", "Value", "value", "Last", "last",
)
DATE_FIELDS: tuple[str, ...] = (
    "latestValueDate", "LatestValueDate", "Date", "date",
    "DateTime", "datetime", "LastUpdate", "lastUpdate",
)

EURO_AREA_ALIASES = frozenset({"euro area", "eurozone", "euro-area"})
SURVEY_KEYWORDS = ("pmi", "manufacturing", "services", "composite")

COUNTRY_PATTERN = re.compile(r"^[a-z][a-z .\-]{1,48}$")
INDICATOR_PATTERN = re.compile(r"^[a-z0-9][a-z0-9 .\-&]{0,78}$")

HISTORY_YEARS = 5


def is_survey_indicator(indicator_name: str) -> bool:
    lowered = indicator_name.lower()
    return any(k in lowered for k in SURVEY_KEYWORDS)


def _first_present(item: dict[str, Any], fields: tuple[str, ...]) -> Any:
    for f in fields:
        if item.get(f) is not None:
            return item[f]
    return None


def _coerce_date(raw: Any) -> date | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int | float):
        # epoch seconds
        try:
            return datetime.fromtimestamp(raw, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(raw, str):
        parsed = parse_period_date(raw)
        if parsed is not None:
            return parsed
        m = re.fullmatch(r"(\d{4})/(\d{1,2})/(\d{1,2})", raw.strip())
        if m:
            try:
                return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            except ValueError:
                return None
    return None


def _coerce_value(raw: Any) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


class TradingEconomicsAdapter(ProviderAdapter):
    """Pulls one country/indicator pair from TradingEconomics."""

    name = "tradingeconomics"
    requires_api_key = True

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", settings.te_base_url)
        kwargs.setdefault("api_key", settings.te_api_key)
        kwargs.setdefault(
            "throttle", RequestThrottle(settings.te_min_interval, name=self.name)
        )
        super().__init__(**kwargs)

    # ------------------------------------------------------------------
    # Identifier: "{country}/{indicator}"
    # ------------------------------------------------------------------

    def identifier_for(self, indicator: IndicatorSourceConfig) -> str | None:
        if not indicator.te_country or not indicator.te_indicator:
            return None
        return f"{indicator.te_country.strip().lower()}/{indicator.te_indicator.strip().lower()}"

    def validate_identifier(self, identifier: str) -> str | None:
        country, _, name = identifier.partition("/")
        if not COUNTRY_PATTERN.fullmatch(country):
            return f"invalid country {country!r}"
        if not INDICATOR_PATTERN.fullmatch(name):
            return f"invalid indicator name {name!r}"
        return None

    def native_frequency(self, identifier: str) -> Frequency | None:
        return "M" if is_survey_indicator(identifier.partition("/")[2]) else None

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def candidate_endpoints(
        self,
        indicator: IndicatorSourceConfig,
        identifier: str,
        *,
        start: date,
        end: date,
    ) -> list[Endpoint]:
        country, _, name = identifier.partition("/")
        key = {"c": self._api_key}
        # TradingEconomics rejects long ranges on some plans
        window = {
            "d1": max(start, end - relativedelta(years=HISTORY_YEARS)).isoformat(),
            "d2": end.isoformat(),
        }
        q_name = quote(name, safe="")

        if country in EURO_AREA_ALIASES:
            historical = f"{self._base_url}/historical/country/{quote('euro area', safe='')}/indicator/{q_name}"
            return [
                Endpoint(historical, dict(key), f"historical/euro area/{name} (all data)"),
                Endpoint(historical, {**key, **window}, f"historical/euro area/{name} (last 5 years)"),
                Endpoint(
                    f"{self._base_url}/indicator/{q_name}",
                    {**key, "country": "euro area"},
                    f"indicator/{name} for euro area",
                ),
            ]

        return [
            Endpoint(
                f"{self._base_url}/indicator/{q_name}",
                {**key, "country": country},
                f"indicator/{name} for {country}",
            ),
            Endpoint(
                f"{self._base_url}/historical/country/{quote(country, safe='')}/indicator/{q_name}",
                {**key, **window},
                f"historical/{country}/{name} (last 5 years)",
            ),
        ]

    def parse(self, payload: Any, endpoint: Endpoint) -> pl.DataFrame:
        items: list[Any]
        if isinstance(payload, list):
            items = payload
        elif isinstance(payload, dict) and isinstance(payload.get("data"), list):
            items = payload["data"]
        elif isinstance(payload, dict) and isinstance(payload.get("results"), list):
            items = payload["results"]
        elif isinstance(payload, dict) and _first_present(payload, VALUE_FIELDS) is not None:
            items = [payload]
        else:
            items = []

        dates: list[date] = []
        values: list[float] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            value = _coerce_value(_first_present(item, VALUE_FIELDS))
            obs_date = _coerce_date(_first_present(item, DATE_FIELDS))
            if value is None or obs_date is None:
                continue
            dates.append(obs_date)
            values.append(value)

        if not dates:
            self._log.info("te_empty_payload", endpoint=endpoint.label)
        return pl.DataFrame({"date": dates, "value": values}, schema=FRAME_SCHEMA)

    def normalize(self, df: pl.DataFrame, identifier: str) -> pl.DataFrame:
        if is_survey_indicator(identifier.partition("/")[2]) and not df.is_empty():
            # latest print within a month wins after snapping
            df = df.sort("date").with_columns(
                pl.col("date").map_elements(
                    lambda d: align_frequency(d, "M"), return_dtype=pl.Date
                )
            )
        return super().normalize(df, identifier)
