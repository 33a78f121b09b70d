"""
tests/test_pipelines/test_resolver.py — Unit tests for the fallback resolver.

All provider HTTP is mocked with respx. No network access or API keys
required; adapters get test base URLs and a recording sleep.
"""

from __future__ import annotations

from datetime import date

import httpx
import pytest
import respx
from pydantic import ValidationError

from macrolens_pipeline.pipelines.resolver import (
    ProviderAvailability,
    SourceResolver,
    classify_failure,
)
from macrolens_pipeline.sources.fred import FredAdapter
from macrolens_pipeline.sources.oecd import OECDAdapter
from macrolens_pipeline.sources.tradingeconomics import TradingEconomicsAdapter
from macrolens_shared.config import Settings
from macrolens_shared.models.indicators import IndicatorSourceConfig
from macrolens_shared.models.resolution import ResolverResult, SourceAttempt

TODAY = date(2024, 4, 10)

FRED_URL = r"https://fred\.test/series/observations.*"
OECD_URL = r"https://oecd\.test/.*"
TE_URL = r"https://te\.test/.*"

UNRATE = IndicatorSourceConfig(
    key="us_unemployment_rate",
    name="US Unemployment Rate",
    fred_series_id="UNRATE",
    oecd_dataset="MEI",
    oecd_filter="USA.LRHUTTTT.STSA.M",
    te_country="united states",
    te_indicator="unemployment rate",
)


def _fred_obs(pairs: list[tuple[str, str]]) -> dict:
    return {"observations": [{"realtime_start": "2024-04-10", "date": d, "value": v} for d, v in pairs]}


FRED_OK = _fred_obs([("2024-01-01", "3.7"), ("2024-02-01", "3.9"), ("2024-03-01", "3.8")])
TE_OK = [
    {"DateTime": "2024-02-01T00:00:00", "Value": 3.9},
    {"DateTime": "2024-03-01T00:00:00", "Value": 3.8},
]


@pytest.fixture
def resolver(fake_sleep) -> SourceResolver:
    return SourceResolver(
        [
            FredAdapter(base_url="https://fred.test", api_key="test", sleep=fake_sleep),
            OECDAdapter(base_url="https://oecd.test", sleep=fake_sleep),
            TradingEconomicsAdapter(
                base_url="https://te.test", api_key="test", sleep=fake_sleep, throttle=None
            ),
        ],
        history_start=date(2020, 1, 1),
        enrich_names=False,
    )


async def _resolve(resolver: SourceResolver, indicator, availability=None) -> ResolverResult:
    async with httpx.AsyncClient() as client:
        return await resolver.resolve(indicator, availability, today=TODAY, client=client)


# ---------------------------------------------------------------------------
# Success paths
# ---------------------------------------------------------------------------

class TestResolveSuccess:
    @pytest.mark.asyncio
    async def test_first_provider_wins(self, resolver: SourceResolver):
        with respx.mock(assert_all_called=False) as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=FRED_OK))
            oecd = router.get(url__regex=OECD_URL).mock(return_value=httpx.Response(500))
            result = await _resolve(resolver, UNRATE)

        assert result.success
        assert result.source_used == "fred"
        assert result.error is None and result.error_type is None
        assert [a.source for a in result.attempts] == ["fred"]
        assert result.series is not None
        assert result.series.name == "US Unemployment Rate"
        assert result.series.native_id == "UNRATE"
        assert [p.value for p in result.series.points] == [3.7, 3.9, 3.8]
        assert not oecd.called

    @pytest.mark.asyncio
    async def test_falls_back_after_server_error(self, resolver: SourceResolver, oecd_payload: dict):
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(503))
            router.get(url__regex=OECD_URL).mock(return_value=httpx.Response(200, json=oecd_payload))
            result = await _resolve(resolver, UNRATE)

        assert result.success
        assert result.source_used == "oecd"
        fred = result.attempts[0]
        assert (fred.source, fred.attempted, fred.reason, fred.http_status) == ("fred", True, "SERVER", 503)
        assert result.attempts[-1].succeeded

    @pytest.mark.asyncio
    async def test_rate_limit_then_success_at_same_provider(
        self, resolver: SourceResolver, sleeps: list[float]
    ):
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(
                side_effect=[httpx.Response(429), httpx.Response(200, json=FRED_OK)]
            )
            result = await _resolve(resolver, UNRATE)

        assert result.source_used == "fred"
        assert sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_disabled_provider_skipped(self, resolver: SourceResolver, oecd_payload: dict):
        with respx.mock(assert_all_called=False) as router:
            fred = router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=FRED_OK))
            router.get(url__regex=OECD_URL).mock(return_value=httpx.Response(200, json=oecd_payload))
            result = await _resolve(resolver, UNRATE, ProviderAvailability.disabling(["FRED"]))

        assert result.source_used == "oecd"
        assert not fred.called
        skipped = result.attempts[0]
        assert skipped.attempted is False
        assert skipped.reason == "SOURCE_DISABLED"
        assert skipped.error == "SOURCE_DISABLED"

    @pytest.mark.asyncio
    async def test_unconfigured_provider_skipped(self, resolver: SourceResolver):
        indicator = IndicatorSourceConfig(key="ez_pmi", te_country="euro area", te_indicator="composite pmi")
        with respx.mock() as router:
            router.get(url__regex=TE_URL).mock(return_value=httpx.Response(200, json=TE_OK))
            result = await _resolve(resolver, indicator)

        assert result.source_used == "tradingeconomics"
        assert [(a.source, a.reason) for a in result.attempts] == [
            ("fred", "not configured"),
            ("oecd", "not configured"),
            ("tradingeconomics", "success"),
        ]

    @pytest.mark.asyncio
    async def test_transform_applied_to_winner(self, resolver: SourceResolver):
        indicator = IndicatorSourceConfig(key="us_cpi_yoy", transform="yoy", fred_series_id="CPIAUCSL")
        payload = _fred_obs([("2023-03-01", "300.0"), ("2024-03-01", "312.0")])
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=payload))
            result = await _resolve(resolver, indicator)

        assert result.success
        assert [p.date for p in result.series.points] == [date(2024, 3, 1)]
        assert result.series.points[0].value == pytest.approx(4.0)
        assert result.series.name == "us_cpi_yoy"

    @pytest.mark.asyncio
    async def test_title_enrichment(self, fake_sleep):
        resolver = SourceResolver(
            [FredAdapter(base_url="https://fred.test", api_key="test", sleep=fake_sleep)],
            history_start=date(2020, 1, 1),
        )
        indicator = IndicatorSourceConfig(key="unrate", fred_series_id="UNRATE")
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=FRED_OK))
            router.get(url__regex=r"https://fred\.test/series\?.*").mock(
                return_value=httpx.Response(200, json={"seriess": [{"title": "Unemployment Rate"}]})
            )
            result = await _resolve(resolver, indicator)

        assert result.series.name == "Unemployment Rate"


# ---------------------------------------------------------------------------
# Failure paths
# ---------------------------------------------------------------------------

class TestResolveFailure:
    @pytest.mark.asyncio
    async def test_misconfigured_identifier_makes_no_request(self, resolver: SourceResolver):
        indicator = IndicatorSourceConfig(key="bad", fred_series_id="UN RATE!")
        with respx.mock(assert_all_called=False) as router:
            route = router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=FRED_OK))
            result = await _resolve(resolver, indicator)

        assert not route.called
        assert not result.success
        assert result.series is None
        assert result.error_type == "MISCONFIG"
        assert result.attempts[0].attempted is False
        assert result.attempts[0].reason == "MISCONFIG"

    @pytest.mark.asyncio
    async def test_misconfigured_provider_falls_through_to_next(
        self, resolver: SourceResolver, oecd_payload: dict, mock_http
    ):
        indicator = UNRATE.model_copy(update={"fred_series_id": "UN RATE!"})
        fred = mock_http.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=FRED_OK))
        mock_http.get(url__regex=OECD_URL).mock(return_value=httpx.Response(200, json=oecd_payload))
        result = await _resolve(resolver, indicator)

        assert not fred.called
        assert result.success
        assert result.source_used == "oecd"
        assert (result.attempts[0].source, result.attempts[0].reason) == ("fred", "MISCONFIG")
        assert result.attempts[0].attempted is False

    @pytest.mark.asyncio
    async def test_missing_api_key_is_misconfig(self, fake_sleep):
        resolver = SourceResolver([FredAdapter(base_url="https://fred.test", api_key="", sleep=fake_sleep)])
        with respx.mock(assert_all_called=False) as router:
            route = router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=FRED_OK))
            result = await _resolve(resolver, UNRATE)

        assert not route.called
        assert result.error_type == "MISCONFIG"
        assert "API key" in result.attempts[0].error

    @pytest.mark.asyncio
    async def test_all_not_found(self, resolver: SourceResolver):
        indicator = UNRATE.model_copy(update={"te_country": None, "te_indicator": None})
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(400))
            router.get(url__regex=OECD_URL).mock(return_value=httpx.Response(404))
            result = await _resolve(resolver, indicator)

        assert result.error_type == "not_available_in_source"
        assert result.error == "indicator not found in configured providers"
        assert [a.http_status for a in result.attempts if a.attempted] == [400, 404]

    @pytest.mark.asyncio
    async def test_rate_limited(self, resolver: SourceResolver, sleeps: list[float]):
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(429))
            router.get(url__regex=OECD_URL).mock(return_value=httpx.Response(404))
            router.get(url__regex=TE_URL).mock(return_value=httpx.Response(401))
            result = await _resolve(resolver, UNRATE)

        assert result.error_type == "RATE_LIMITED"
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_source_down(self, resolver: SourceResolver):
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(503))
            router.get(url__regex=OECD_URL).mock(return_value=httpx.Response(404))
            router.get(url__regex=TE_URL).mock(return_value=httpx.Response(403))
            result = await _resolve(resolver, UNRATE)

        assert result.error_type == "SOURCE_DOWN"

    @pytest.mark.asyncio
    async def test_empty_response_is_no_data(self, resolver: SourceResolver):
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(
                return_value=httpx.Response(200, json={"observations": []})
            )
            router.get(url__regex=OECD_URL).mock(return_value=httpx.Response(404))
            router.get(url__regex=TE_URL).mock(return_value=httpx.Response(200, json=[]))
            result = await _resolve(resolver, UNRATE)

        assert result.error_type == "NO_DATA"
        assert result.attempts[0].reason == "no data"
        assert result.attempts[0].attempted is True

    @pytest.mark.asyncio
    async def test_transform_leaving_nothing_is_no_data(self, resolver: SourceResolver):
        indicator = IndicatorSourceConfig(key="us_cpi_yoy", transform="yoy", fred_series_id="CPIAUCSL")
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=FRED_OK))
            result = await _resolve(resolver, indicator)

        assert result.error_type == "NO_DATA"

    @pytest.mark.asyncio
    async def test_blocked(self, resolver: SourceResolver):
        indicator = IndicatorSourceConfig(key="x", fred_series_id="UNRATE")
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(return_value=httpx.Response(403))
            result = await _resolve(resolver, indicator)

        assert result.error_type == "blocked"

    @pytest.mark.asyncio
    async def test_nothing_configured(self, resolver: SourceResolver):
        result = await _resolve(resolver, IndicatorSourceConfig(key="orphan"))
        assert result.error_type == "not_available_in_source"
        assert all(not a.attempted for a in result.attempts)

    @pytest.mark.asyncio
    async def test_all_providers_disabled(self, resolver: SourceResolver, mock_http):
        route = mock_http.get(url__regex=FRED_URL).mock(return_value=httpx.Response(200, json=FRED_OK))
        result = await _resolve(
            resolver, UNRATE, ProviderAvailability.disabling(["fred", "oecd", "tradingeconomics"])
        )

        assert not result.success
        assert result.error_type == "not_available_in_source"
        assert [a.reason for a in result.attempts] == ["SOURCE_DISABLED"] * 3
        assert not route.called

    @pytest.mark.asyncio
    async def test_network_failure_is_no_data_source(self, resolver: SourceResolver):
        indicator = IndicatorSourceConfig(key="x", fred_series_id="UNRATE")
        with respx.mock() as router:
            router.get(url__regex=FRED_URL).mock(side_effect=httpx.ConnectError("refused"))
            result = await _resolve(resolver, indicator)

        assert result.error_type == "no_data_source"
        assert result.attempts[0].reason == "UNKNOWN"


# ---------------------------------------------------------------------------
# classify_failure() and result consistency
# ---------------------------------------------------------------------------

def _attempt(source: str = "p", *, attempted: bool = True, reason: str = "x", status: int | None = None):
    return SourceAttempt(source=source, attempted=attempted, reason=reason, http_status=status)


class TestClassifyFailure:
    def test_not_found_everywhere(self):
        attempts = [_attempt("a", reason="BAD_REQUEST", status=404), _attempt("b", reason="BAD_REQUEST", status=400)]
        assert classify_failure(attempts) == "not_available_in_source"

    def test_precedence(self):
        misconfig = _attempt(attempted=False, reason="MISCONFIG")
        limited = _attempt(reason="RATE_LIMIT", status=429)
        down = _attempt(reason="SERVER", status=502)
        empty = _attempt(reason="no data")
        forbidden = _attempt(reason="AUTH", status=403)

        assert classify_failure([forbidden, empty, down, limited, misconfig]) == "MISCONFIG"
        assert classify_failure([forbidden, empty, down, limited]) == "RATE_LIMITED"
        assert classify_failure([forbidden, empty, down]) == "SOURCE_DOWN"
        assert classify_failure([forbidden, empty]) == "NO_DATA"
        assert classify_failure([forbidden]) == "blocked"

    def test_conflict_status_counts_as_rate_limit(self):
        assert classify_failure([_attempt(reason="UNKNOWN", status=409)]) == "RATE_LIMITED"

    def test_mixed_not_found_and_unknown(self):
        attempts = [_attempt(reason="BAD_REQUEST", status=404), _attempt(reason="UNKNOWN")]
        assert classify_failure(attempts) == "no_data_source"

    def test_all_disabled_counts_as_not_available(self):
        attempts = [
            _attempt("fred", attempted=False, reason="SOURCE_DISABLED"),
            _attempt("oecd", attempted=False, reason="SOURCE_DISABLED"),
        ]
        assert classify_failure(attempts) == "not_available_in_source"

    def test_nothing_attempted(self):
        assert classify_failure([]) == "not_available_in_source"


class TestResultConsistency:
    def test_success_requires_series(self):
        with pytest.raises(ValidationError):
            ResolverResult(
                success=True,
                source_used="fred",
                attempts=[SourceAttempt(source="fred", attempted=True, reason="success")],
            )

    def test_failure_has_no_series_or_source(self):
        result = ResolverResult(success=False, error_type="NO_DATA", attempts=[])
        assert result.series is None and result.source_used is None


class TestProviderAvailability:
    def test_disabling_normalizes_names(self):
        availability = ProviderAvailability.disabling([" FRED ", "", "oecd"])
        assert not availability.is_enabled("fred")
        assert not availability.is_enabled("OECD")
        assert availability.is_enabled("tradingeconomics")

    def test_from_settings(self):
        availability = ProviderAvailability.from_settings(Settings(disabled_sources="tradingeconomics"))
        assert not availability.is_enabled("tradingeconomics")
        assert availability.is_enabled("fred")

    def test_default_resolver_order(self):
        assert SourceResolver.default().sources == ["fred", "oecd", "tradingeconomics"]
