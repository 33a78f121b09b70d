"""
sources/fred.py — Federal Reserve Economic Data (FRED) provider adapter.

Endpoints:
  GET /series/observations?series_id=CPIAUCSL&api_key=...&file_type=json
      &observation_start=YYYY-MM-DD&observation_end=YYYY-MM-DD
  GET /series?series_id=CPIAUCSL&api_key=...&file_type=json  (metadata)

Observation response shape:
  {
    "observations": [
      {"realtime_start": "2024-02-13", "realtime_end": "2024-02-13",
       "date": "2024-01-01", "value": "308.417"},
      {"date": "2024-02-01", "value": "."},          # "." = missing
      ...
    ]
  }

When the same observation date appears more than once (vintages), the row
with the latest realtime_start wins. Observation dates are used as-is;
release dates (realtime_start) are not surfaced.

Usage:
    adapter = FredAdapter()
    async with httpx.AsyncClient() as client:
        df = await adapter.fetch_series(indicator, client=client,
                                        start=date(2015, 1, 1), end=date.today())
    # columns: date, value
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

import httpx
import polars as pl

from macrolens_pipeline.sources.base import ProviderAdapter
from macrolens_pipeline.sources.errors import PayloadError
from macrolens_pipeline.sources.fetcher import Endpoint
from macrolens_pipeline.utils.retry import with_retry
from macrolens_shared.config import settings
from macrolens_shared.models.indicators import IndicatorSourceConfig
from macrolens_shared.models.series import FRAME_SCHEMA
from macrolens_shared.time_utils import parse_period_date

SERIES_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.]+$")
SERIES_ID_MAX_LEN = 25

MISSING_VALUE = "."


class FredAdapter(ProviderAdapter):
    """Pulls observations for one FRED series code."""

    name = "fred"
    requires_api_key = True

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", settings.fred_base_url)
        kwargs.setdefault("api_key", settings.fred_api_key)
        super().__init__(**kwargs)

    # ------------------------------------------------------------------
    # Identifier
    # ------------------------------------------------------------------

    def identifier_for(self, indicator: IndicatorSourceConfig) -> str | None:
        return indicator.fred_series_id

    def validate_identifier(self, identifier: str) -> str | None:
        value = identifier.strip()
        if not value:
            return "series id is empty"
        if len(value) > SERIES_ID_MAX_LEN:
            return f"series id too long ({len(value)} chars, max {SERIES_ID_MAX_LEN})"
        if not SERIES_ID_PATTERN.fullmatch(value):
            return "series id must contain only letters, digits, '_' or '.'"
        return None

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _params(self, **extra: str) -> dict[str, str]:
        return {"api_key": self._api_key, "file_type": "json", **extra}

    def candidate_endpoints(
        self,
        indicator: IndicatorSourceConfig,
        identifier: str,
        *,
        start: date,
        end: date,
    ) -> list[Endpoint]:
        series_id = identifier.strip()
        return [
            Endpoint(
                url=f"{self._base_url}/series/observations",
                params=self._params(
                    series_id=series_id,
                    observation_start=start.isoformat(),
                    observation_end=end.isoformat(),
                ),
                description=f"series/observations {series_id}",
            )
        ]

    def parse(self, payload: Any, endpoint: Endpoint) -> pl.DataFrame:
        if not isinstance(payload, dict) or not isinstance(payload.get("observations"), list):
            raise PayloadError(f"{endpoint.label}: missing 'observations' list")

        # observation date → (realtime_start, value)
        latest: dict[date, tuple[str, float]] = {}
        for obs in payload["observations"]:
            if not isinstance(obs, dict):
                continue
            raw_value = obs.get("value")
            if raw_value is None or raw_value == MISSING_VALUE:
                continue
            obs_date = parse_period_date(obs.get("date"))
            try:
                value = float(raw_value)
            except (TypeError, ValueError):
                continue
            if obs_date is None:
                continue
            vintage = obs.get("realtime_start") or ""
            existing = latest.get(obs_date)
            if existing is None or vintage >= existing[0]:
                latest[obs_date] = (vintage, value)

        dates = sorted(latest)
        return pl.DataFrame(
            {"date": dates, "value": [latest[d][1] for d in dates]},
            schema=FRAME_SCHEMA,
        )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @with_retry(max_attempts=3, base_delay=0.5, retry_on=(httpx.TransportError,))
    async def _fetch_series_info(self, series_id: str, client: httpx.AsyncClient) -> dict[str, Any]:
        response = await client.get(
            f"{self._base_url}/series", params=self._params(series_id=series_id)
        )
        response.raise_for_status()
        return response.json()

    async def describe(self, identifier: str, *, client: httpx.AsyncClient) -> str | None:
        """Return the FRED series title, or None if it cannot be looked up."""
        try:
            info = await self._fetch_series_info(identifier.strip(), client)
        except (httpx.HTTPError, ValueError) as exc:
            self._log.warning("fred_title_lookup_failed", series_id=identifier, error=str(exc))
            return None
        seriess = info.get("seriess") if isinstance(info, dict) else None
        if not seriess or not isinstance(seriess[0], dict):
            return None
        title = seriess[0].get("title")
        return title.strip() if isinstance(title, str) and title.strip() else None
