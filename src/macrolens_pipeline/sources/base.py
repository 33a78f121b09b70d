"""
sources/base.py — Abstract base class for all provider adapters.

Each concrete provider must implement:
  identifier_for()       — pick this provider's identifier out of an indicator config
  validate_identifier()  — reject malformed identifiers before any network call
  candidate_endpoints()  — ordered request shapes that can answer the query
  parse()                — decoded JSON payload → (date, value) DataFrame

fetch_series() orchestrates endpoints → fetch_raw() → normalize and handles
timing/logging. fetch_raw() hands all endpoints to one RetryableFetcher
walk; override it when endpoints are independent lookups.

The resolver calls fetch_series() rather than the individual methods.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any

import httpx
import polars as pl

from macrolens_pipeline.sources.fetcher import Endpoint, RetryableFetcher
from macrolens_pipeline.utils.logging import get_logger
from macrolens_pipeline.utils.throttle import RequestThrottle
from macrolens_shared.config import settings
from macrolens_shared.constants import Frequency
from macrolens_shared.models.indicators import IndicatorSourceConfig


class ProviderAdapter(ABC):
    """Abstract base for macrolens provider adapters."""

    # Override in subclass: used for logging, kill-switch and attempt records
    name: str = "unknown"
    requires_api_key: bool = False

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        max_retries: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        throttle: RequestThrottle | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._max_retries = max_retries if max_retries is not None else settings.fetch_max_retries
        self._base_delay = base_delay if base_delay is not None else settings.fetch_base_delay
        self._max_delay = max_delay if max_delay is not None else settings.fetch_max_delay
        self._sleep = sleep
        self._throttle = throttle
        self._log = get_logger(__name__, source_name=self.name)

    # ------------------------------------------------------------------
    # Abstract interface: subclasses must implement all four
    # ------------------------------------------------------------------

    @abstractmethod
    def identifier_for(self, indicator: IndicatorSourceConfig) -> str | None:
        """Return this provider's identifier, or None if not configured."""
        ...

    @abstractmethod
    def validate_identifier(self, identifier: str) -> str | None:
        """
        Check identifier format.

        Returns:
            None when valid, otherwise a short description of the problem.
        """
        ...

    @abstractmethod
    def candidate_endpoints(
        self,
        indicator: IndicatorSourceConfig,
        identifier: str,
        *,
        start: date,
        end: date,
    ) -> list[Endpoint]:
        ...

    @abstractmethod
    def parse(self, payload: Any, endpoint: Endpoint) -> pl.DataFrame:
        """
        Turn one decoded response into a (date, value) DataFrame.

        Raises:
            PayloadError: the payload shape is not usable at all.
        """
        ...

    # ------------------------------------------------------------------
    # Optional hooks
    # ------------------------------------------------------------------

    def credentials_problem(self) -> str | None:
        if self.requires_api_key and not self._api_key:
            return f"{self.name} API key not set"
        return None

    def native_frequency(self, identifier: str) -> Frequency | None:
        """Frequency implied by the identifier itself, if the provider encodes one."""
        return None

    def normalize(self, df: pl.DataFrame, identifier: str) -> pl.DataFrame:
        """Drop undated rows, keep the last row per date, sort ascending."""
        return (
            df.filter(pl.col("date").is_not_null())
            .unique(subset=["date"], keep="last", maintain_order=True)
            .sort("date")
        )

    async def describe(self, identifier: str, *, client: httpx.AsyncClient) -> str | None:
        """Human-readable series title, when the provider exposes one."""
        return None

    # ------------------------------------------------------------------
    # Orchestration: the resolver calls this
    # ------------------------------------------------------------------

    def make_fetcher(self, client: httpx.AsyncClient) -> RetryableFetcher:
        return RetryableFetcher(
            client,
            source=self.name,
            max_retries=self._max_retries,
            base_delay=self._base_delay,
            max_delay=self._max_delay,
            sleep=self._sleep,
            throttle=self._throttle,
        )

    async def fetch_raw(
        self, fetcher: RetryableFetcher, endpoints: list[Endpoint]
    ) -> pl.DataFrame:
        """Walk the candidate endpoints as alternatives for one request."""
        return await fetcher.fetch(endpoints, self.parse)

    async def fetch_series(
        self,
        indicator: IndicatorSourceConfig,
        *,
        client: httpx.AsyncClient,
        start: date,
        end: date,
    ) -> pl.DataFrame:
        """
        Fetch + normalize one indicator with timing and structured logging.

        Returns:
            (date, value) DataFrame, possibly empty ("no data").

        Raises:
            FetchError after logging it; anything else propagates untouched.
        """
        identifier = self.identifier_for(indicator)
        if identifier is None:
            raise ValueError(f"{self.name} is not configured for {indicator.key}")

        run_log = self._log.bind(indicator=indicator.key, identifier=identifier)
        run_log.info("source_run_start", start=start.isoformat(), end=end.isoformat())

        t0 = time.monotonic()
        endpoints = self.candidate_endpoints(indicator, identifier, start=start, end=end)
        try:
            raw = await self.fetch_raw(self.make_fetcher(client), endpoints)
        except Exception as exc:
            run_log.warning(
                "source_run_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise

        result = self.normalize(raw, identifier)
        run_log.info(
            "source_run_complete",
            raw_rows=len(raw),
            output_rows=len(result),
            total_duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return result
