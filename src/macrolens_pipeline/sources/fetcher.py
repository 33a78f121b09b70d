"""
sources/fetcher.py — Multi-endpoint fetch with classified retry policy.

A provider usually exposes several URL shapes that can answer the same
question. RetryableFetcher walks them in order:

  - 2xx JSON, parsed into a non-empty (date, value) frame → return it
  - RATE_LIMIT → back off base_delay * 2^(attempt-1) and retry the same
    endpoint, up to max_retries attempts; then move to the next endpoint
  - AUTH / BAD_REQUEST → raise FetchError at once (retrying cannot help)
  - SERVER / UNKNOWN / network error / unparseable body → next endpoint
  - parsed but empty → next endpoint

If every endpoint failed, one FetchError describing the last failure is
raised. If every endpoint answered with no data, an empty frame is
returned and the caller treats it as a soft "no data" outcome.

Usage:
    async with httpx.AsyncClient(timeout=30) as client:
        fetcher = RetryableFetcher(client, source="tradingeconomics")
        df = await fetcher.fetch(endpoints, parse=adapter.parse)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
import polars as pl
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from macrolens_pipeline.sources.errors import (
    FATAL_CLASSES,
    ErrorClass,
    FetchError,
    PayloadError,
    ProviderHTTPError,
)
from macrolens_pipeline.utils.throttle import RequestThrottle
from macrolens_shared.models.series import FRAME_SCHEMA

log = structlog.get_logger(__name__)

Parser = Callable[[Any, "Endpoint"], pl.DataFrame]


@dataclass(frozen=True)
class Endpoint:
    """One candidate request. `description` is what gets logged, never params."""

    url: str
    params: dict[str, str] = field(default_factory=dict, hash=False)
    description: str = ""

    @property
    def label(self) -> str:
        return self.description or self.url


def empty_frame() -> pl.DataFrame:
    return pl.DataFrame(schema=FRAME_SCHEMA)


def _is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, ProviderHTTPError) and exc.error_class is ErrorClass.RATE_LIMIT


class RetryableFetcher:
    """Fetches one provider's data across its candidate endpoints."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        source: str,
        max_retries: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        throttle: RequestThrottle | None = None,
    ) -> None:
        self._client = client
        self._source = source
        self._max_retries = max(max_retries, 1)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._sleep = sleep
        self._throttle = throttle
        self._log = log.bind(source_name=source)

    # ------------------------------------------------------------------
    # Single request
    # ------------------------------------------------------------------

    async def _request(self, endpoint: Endpoint) -> Any:
        if self._throttle is not None:
            await self._throttle.wait()

        try:
            response = await self._client.get(endpoint.url, params=endpoint.params)
        except httpx.HTTPError as exc:
            raise ProviderHTTPError(0, str(exc), endpoint=endpoint.label) from exc

        if not response.is_success:
            raise ProviderHTTPError(
                response.status_code, response.text, endpoint=endpoint.label
            )

        try:
            return response.json()
        except ValueError as exc:
            raise PayloadError(
                f"non-JSON response from {endpoint.label}: {response.text[:200]}"
            ) from exc

    async def _request_with_backoff(self, endpoint: Endpoint) -> Any:
        def _log_backoff(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            self._log.warning(
                "rate_limited_backoff",
                endpoint=endpoint.label,
                attempt=state.attempt_number,
                max_retries=self._max_retries,
                delay_s=state.next_action.sleep if state.next_action else None,
                status=getattr(exc, "status", None),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._base_delay, max=self._max_delay),
            retry=retry_if_exception(_is_rate_limited),
            before_sleep=_log_backoff,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._request, endpoint)

    # ------------------------------------------------------------------
    # Endpoint walk
    # ------------------------------------------------------------------

    async def fetch(self, endpoints: Sequence[Endpoint], parse: Parser) -> pl.DataFrame:
        """
        Try each endpoint in order and return the first non-empty parse.

        Args:
            endpoints: Candidate requests, most specific first.
            parse:     Turns a decoded JSON payload into a (date, value) frame.
                       Raises PayloadError when the shape is unusable.

        Returns:
            Non-empty frame, or an empty frame if every endpoint had no data.

        Raises:
            FetchError: AUTH/BAD_REQUEST anywhere, or every endpoint failed.
        """
        last_error: ProviderHTTPError | PayloadError | None = None

        for endpoint in endpoints:
            try:
                payload = await self._request_with_backoff(endpoint)
                df = parse(payload, endpoint)
            except ProviderHTTPError as exc:
                last_error = exc
                self._log.warning(
                    "endpoint_failed",
                    endpoint=endpoint.label,
                    status=exc.status,
                    error_class=str(exc.error_class),
                )
                if exc.error_class in FATAL_CLASSES:
                    raise self._fetch_error(exc) from exc
                continue
            except PayloadError as exc:
                last_error = exc
                self._log.warning("endpoint_bad_payload", endpoint=endpoint.label, error=str(exc))
                continue

            if df.is_empty():
                self._log.info("endpoint_empty", endpoint=endpoint.label)
                continue

            self._log.info("endpoint_ok", endpoint=endpoint.label, rows=len(df))
            return df

        if last_error is not None:
            raise self._fetch_error(last_error)

        self._log.info("all_endpoints_empty", endpoints=len(endpoints))
        return empty_frame()

    def _fetch_error(self, exc: ProviderHTTPError | PayloadError) -> FetchError:
        if isinstance(exc, ProviderHTTPError):
            return FetchError(
                self._source,
                exc.error_class,
                status=exc.status or None,
                endpoint=exc.endpoint,
                body=exc.body,
                detail="network error" if exc.status == 0 else "",
            )
        return FetchError(self._source, ErrorClass.UNKNOWN, detail=str(exc), body=str(exc))
