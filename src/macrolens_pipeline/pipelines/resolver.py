"""
pipelines/resolver.py — Fallback resolution of one indicator across providers.

For each provider, in priority order:

  1. not configured for the indicator     → skipped, reason "not configured"
  2. identifier malformed / no API key    → skipped, reason "MISCONFIG"
  3. switched off in ProviderAvailability → skipped, reason "SOURCE_DISABLED"
  4. fetch; FetchError                    → attempted, reason = error class
  5. empty result (before or after the indicator's transform)
                                          → attempted, reason "no data"
  6. otherwise                            → success, stop

Expected provider failures never raise: the caller always gets a
ResolverResult, and a failed one carries an aggregated error_type derived
from the attempt list (see classify_failure).

Usage:
    resolver = SourceResolver.default()
    result = await resolver.resolve(get_indicator("us_cpi_yoy"),
                                    ProviderAvailability.from_settings())
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import httpx
import structlog

from macrolens_pipeline.sources.base import ProviderAdapter
from macrolens_pipeline.sources.errors import ErrorClass, FetchError
from macrolens_pipeline.sources.fred import FredAdapter
from macrolens_pipeline.sources.oecd import OECDAdapter
from macrolens_pipeline.sources.tradingeconomics import TradingEconomicsAdapter
from macrolens_pipeline.transforms.time_series import apply_series_transformation
from macrolens_shared.config import Settings, settings
from macrolens_shared.models.indicators import IndicatorSourceConfig
from macrolens_shared.models.resolution import ErrorType, ResolverResult, SourceAttempt
from macrolens_shared.models.series import TimeSeries

log = structlog.get_logger(__name__)

REASON_NOT_CONFIGURED = "not configured"
REASON_MISCONFIG = "MISCONFIG"
REASON_DISABLED = "SOURCE_DISABLED"
REASON_NO_DATA = "no data"
REASON_SUCCESS = "success"

RATE_LIMIT_STATUSES = frozenset({409, 429})
NOT_FOUND_STATUSES = frozenset({400, 404})


# ---------------------------------------------------------------------------
# Kill-switch
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderAvailability:
    """Operational on/off state per provider, decided outside the resolver."""

    disabled: frozenset[str] = field(default_factory=frozenset)

    def is_enabled(self, source: str) -> bool:
        return source.lower() not in self.disabled

    @classmethod
    def all_enabled(cls) -> "ProviderAvailability":
        return cls()

    @classmethod
    def disabling(cls, sources: Iterable[str]) -> "ProviderAvailability":
        return cls(disabled=frozenset(s.strip().lower() for s in sources if s.strip()))

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> "ProviderAvailability":
        return cls.disabling((s or settings).disabled_sources_list)


# ---------------------------------------------------------------------------
# Failure aggregation
# ---------------------------------------------------------------------------

_FAILURE_MESSAGES: dict[str, str] = {
    "MISCONFIG": "provider identifier misconfigured",
    "RATE_LIMITED": "provider rate limit exceeded",
    "SOURCE_DOWN": "provider returned server errors",
    "NO_DATA": "valid response but no data available",
    "blocked": "provider access blocked (403)",
    "not_available_in_source": "indicator not found in configured providers",
    "no_data_source": "all attempted providers failed",
}


def classify_failure(attempts: Sequence[SourceAttempt]) -> ErrorType:
    """Deterministic aggregate error type for a resolution with no winner."""
    attempted = [a for a in attempts if a.attempted]

    if any(a.reason == REASON_MISCONFIG for a in attempts):
        return "MISCONFIG"
    if any(
        a.reason == ErrorClass.RATE_LIMIT or a.http_status in RATE_LIMIT_STATUSES
        for a in attempts
    ):
        return "RATE_LIMITED"
    if any(a.http_status is not None and a.http_status >= 500 for a in attempts):
        return "SOURCE_DOWN"
    if any(a.reason == REASON_NO_DATA for a in attempts):
        return "NO_DATA"
    if any(a.http_status == 403 for a in attempts):
        return "blocked"
    # also holds when no provider was attempted at all
    if all(a.http_status in NOT_FOUND_STATUSES for a in attempted):
        return "not_available_in_source"
    return "no_data_source"


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class SourceResolver:
    """Tries an ordered list of provider adapters until one yields data."""

    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        *,
        history_start: date | None = None,
        enrich_names: bool = True,
    ) -> None:
        self._adapters = list(adapters)
        self._history_start = history_start or settings.history_start
        self._enrich_names = enrich_names

    @classmethod
    def default(cls, **kwargs) -> "SourceResolver":
        """FRED → OECD → TradingEconomics with settings-driven adapters."""
        return cls([FredAdapter(), OECDAdapter(), TradingEconomicsAdapter()], **kwargs)

    @property
    def sources(self) -> list[str]:
        return [a.name for a in self._adapters]

    async def resolve(
        self,
        indicator: IndicatorSourceConfig,
        availability: ProviderAvailability | None = None,
        *,
        today: date | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> ResolverResult:
        """
        Resolve one indicator.

        Args:
            indicator:    Which identifiers to use at each provider.
            availability: Kill-switch state; defaults to all enabled.
            today:        End of the requested date range.
            client:       Shared HTTP client; one is opened per call if omitted.

        Returns:
            ResolverResult — never raises for provider failures.
        """
        if client is None:
            async with httpx.AsyncClient(timeout=settings.http_timeout) as own_client:
                return await self._resolve(indicator, availability, today, own_client)
        return await self._resolve(indicator, availability, today, client)

    async def _resolve(
        self,
        indicator: IndicatorSourceConfig,
        availability: ProviderAvailability | None,
        today: date | None,
        client: httpx.AsyncClient,
    ) -> ResolverResult:
        availability = availability or ProviderAvailability.all_enabled()
        today = today or date.today()
        resolve_log = log.bind(indicator=indicator.key)
        attempts: list[SourceAttempt] = []
        t0 = time.monotonic()

        for adapter in self._adapters:
            source = adapter.name
            identifier = adapter.identifier_for(indicator)

            if identifier is None:
                attempts.append(
                    SourceAttempt(source=source, attempted=False, reason=REASON_NOT_CONFIGURED)
                )
                continue

            problem = adapter.validate_identifier(identifier) or adapter.credentials_problem()
            if problem:
                resolve_log.warning(
                    "provider_misconfigured", source=source, identifier=identifier, problem=problem
                )
                attempts.append(
                    SourceAttempt(
                        source=source, attempted=False, reason=REASON_MISCONFIG, error=problem
                    )
                )
                continue

            if not availability.is_enabled(source):
                resolve_log.info("provider_disabled", source=source)
                attempts.append(
                    SourceAttempt(
                        source=source, attempted=False, reason=REASON_DISABLED, error=REASON_DISABLED
                    )
                )
                continue

            try:
                df = await adapter.fetch_series(
                    indicator, client=client, start=self._history_start, end=today
                )
            except FetchError as exc:
                attempts.append(
                    SourceAttempt(
                        source=source,
                        attempted=True,
                        reason=str(exc.error_class),
                        error=str(exc),
                        http_status=exc.status,
                    )
                )
                continue

            if df.is_empty():
                attempts.append(
                    SourceAttempt(
                        source=source,
                        attempted=True,
                        reason=REASON_NO_DATA,
                        error="provider returned no observations",
                    )
                )
                continue

            native = adapter.native_frequency(identifier)
            if native is not None and native != indicator.frequency:
                resolve_log.warning(
                    "frequency_mismatch",
                    source=source,
                    declared=indicator.frequency,
                    native=native,
                )

            series = TimeSeries.from_frame(
                df,
                id=indicator.key,
                source_name=source,
                native_id=identifier,
                name=indicator.key,
                frequency=indicator.frequency,
                unit=indicator.unit,
                last_updated=datetime.now(timezone.utc),
            )

            if indicator.transform != "none":
                raw_points = len(series.points)
                series = apply_series_transformation(
                    series, indicator.transform, qoq_mode=indicator.qoq_mode
                )
                resolve_log.info(
                    "transform_applied",
                    source=source,
                    transform=indicator.transform,
                    input_points=raw_points,
                    output_points=len(series.points),
                )
                if not series.has_values:
                    attempts.append(
                        SourceAttempt(
                            source=source,
                            attempted=True,
                            reason=REASON_NO_DATA,
                            error=f"no values after {indicator.transform} transform",
                        )
                    )
                    continue

            name = indicator.name
            if name is None and self._enrich_names:
                name = await adapter.describe(identifier, client=client)
            series = series.model_copy(update={"name": name or indicator.key})

            attempts.append(SourceAttempt(source=source, attempted=True, reason=REASON_SUCCESS))
            resolve_log.info(
                "resolve_success",
                source=source,
                points=len(series.points),
                last_date=str(series.last_date),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            return ResolverResult(
                success=True, series=series, source_used=source, attempts=attempts
            )

        error_type = classify_failure(attempts)
        resolve_log.warning(
            "resolve_failed",
            error_type=error_type,
            attempts=[a.model_dump(exclude_none=True) for a in attempts],
            total_attempted=sum(1 for a in attempts if a.attempted),
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return ResolverResult(
            success=False,
            series=None,
            source_used=None,
            error=_FAILURE_MESSAGES[error_type],
            error_type=error_type,
            attempts=attempts,
        )
