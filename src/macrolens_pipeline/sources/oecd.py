"""
sources/oecd.py — OECD SDMX-JSON provider adapter.

Endpoint:
  GET /{dataset}/{filter}?startTime=YYYY-MM&endTime=YYYY-MM
  e.g. /MEI/USA.CPALTT01.GY.M

Response shape (trimmed):
  {
    "dataSets": [{"series": {"0:0:0:0": {"observations": {"0": [3.1], "1": [3.4]}}}}],
    "structure": {
      "name": "Main Economic Indicators",
      "dimensions": {"observation": [
        {"id": "TIME_PERIOD", "values": [{"id": "2023-01"}, {"id": "2023-02"}]}
      ]}
    }
  }

Observation keys index into the TIME_PERIOD dimension values. The filter's
last dot-separated part is the frequency code (A/Q/M/D). An indicator may
list fallback filters; they are tried in order after the primary filter.
Each filter is a separate lookup: a 404 or 5xx on one filter moves on to
the next, only an AUTH failure stops the provider.
"""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Any
from urllib.parse import quote

import polars as pl

from macrolens_pipeline.sources.base import ProviderAdapter
from macrolens_pipeline.sources.errors import ErrorClass, FetchError, PayloadError
from macrolens_pipeline.sources.fetcher import Endpoint, RetryableFetcher, empty_frame
from macrolens_shared.config import settings
from macrolens_shared.constants import Frequency
from macrolens_shared.models.indicators import IndicatorSourceConfig
from macrolens_shared.models.series import FRAME_SCHEMA
from macrolens_shared.time_utils import parse_period_date

DATASET_PATTERN = re.compile(r"^[A-Z0-9_]+$")
FILTER_PATTERN = re.compile(r"^[A-Za-z0-9_+\-]*(\.[A-Za-z0-9_+\-]*)+$")

TIME_DIMENSION_IDS = ("TIME_PERIOD", "TIME")

_FREQUENCY_CODES: dict[str, Frequency] = {"A": "A", "Q": "Q", "M": "M", "D": "D"}


def frequency_from_filter(sdmx_filter: str) -> Frequency:
    code = sdmx_filter.split(".")[-1].upper()
    return _FREQUENCY_CODES.get(code, "A")


class OECDAdapter(ProviderAdapter):
    """Pulls one series from the OECD SDMX-JSON API."""

    name = "oecd"

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", settings.oecd_base_url)
        super().__init__(**kwargs)

    # ------------------------------------------------------------------
    # Identifier: "{dataset}/{filter}"
    # ------------------------------------------------------------------

    def identifier_for(self, indicator: IndicatorSourceConfig) -> str | None:
        if not indicator.oecd_dataset or not indicator.oecd_filter:
            return None
        return f"{indicator.oecd_dataset}/{indicator.oecd_filter}"

    def validate_identifier(self, identifier: str) -> str | None:
        dataset, _, sdmx_filter = identifier.partition("/")
        if not DATASET_PATTERN.fullmatch(dataset):
            return f"invalid dataset code {dataset!r}"
        if not FILTER_PATTERN.fullmatch(sdmx_filter):
            return f"invalid SDMX filter {sdmx_filter!r}"
        return None

    def native_frequency(self, identifier: str) -> Frequency | None:
        return frequency_from_filter(identifier.partition("/")[2])

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
        dataset, _, primary = identifier.partition("/")
        filters = [primary, *(f for f in indicator.oecd_fallback_filters if f != primary)]
        params = {"startTime": start.strftime("%Y-%m"), "endTime": end.strftime("%Y-%m")}
        return [
            Endpoint(
                url=f"{self._base_url}/{quote(dataset)}/{quote(f, safe='.+')}",
                params=params,
                description=f"{dataset}/{f}",
            )
            for f in filters
        ]

    def parse(self, payload: Any, endpoint: Endpoint) -> pl.DataFrame:
        if not isinstance(payload, dict) or "dataSets" not in payload:
            raise PayloadError(f"{endpoint.label}: not an SDMX-JSON message")

        data_sets = payload.get("dataSets") or []
        if not data_sets:
            return pl.DataFrame(schema=FRAME_SCHEMA)

        series_block = data_sets[0].get("series") if isinstance(data_sets[0], dict) else None
        if isinstance(series_block, dict):
            series_list = list(series_block.values())
        elif isinstance(series_block, list):
            series_list = series_block
        else:
            series_list = []
        if not series_list:
            return pl.DataFrame(schema=FRAME_SCHEMA)

        structure = payload.get("structure") or {}
        dimensions = (structure.get("dimensions") or {}).get("observation") or []
        time_dim = next(
            (d for d in dimensions if isinstance(d, dict) and d.get("id") in TIME_DIMENSION_IDS),
            None,
        )
        if time_dim is None:
            raise PayloadError(f"{endpoint.label}: time dimension not found")
        time_values = time_dim.get("values") or []

        # first series: a fully specified filter yields exactly one
        observations = series_list[0].get("observations") or {}
        dates: list[date] = []
        values: list[float] = []
        for index_str, cell in observations.items():
            try:
                index = int(index_str)
            except (TypeError, ValueError):
                continue
            if not 0 <= index < len(time_values):
                continue
            obs_date = parse_period_date((time_values[index] or {}).get("id"))
            value = cell[0] if isinstance(cell, list) and cell else cell
            if obs_date is None or isinstance(value, bool) or not isinstance(value, int | float):
                continue
            if not math.isfinite(value):
                continue
            dates.append(obs_date)
            values.append(float(value))

        return pl.DataFrame({"date": dates, "value": values}, schema=FRAME_SCHEMA)

    async def fetch_raw(
        self, fetcher: RetryableFetcher, endpoints: list[Endpoint]
    ) -> pl.DataFrame:
        last_error: FetchError | None = None
        for endpoint in endpoints:
            try:
                df = await fetcher.fetch([endpoint], self.parse)
            except FetchError as exc:
                if exc.error_class is ErrorClass.AUTH:
                    raise
                last_error = exc
                self._log.info(
                    "oecd_filter_failed",
                    endpoint=endpoint.label,
                    error_class=str(exc.error_class),
                    status=exc.status,
                )
                continue
            if not df.is_empty():
                return df

        if last_error is not None:
            raise last_error
        return empty_frame()
