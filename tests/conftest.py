"""
tests/conftest.py — Shared pytest fixtures for the macrolens test suite.

Provides:
  *_payload           — decoded provider responses from fixture files
  sleeps / fake_sleep — async sleep replacement that records requested delays
  mock_http           — configured respx router for faking HTTP responses
  make_series()       — builds a TimeSeries from (date, value) pairs
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import date
from pathlib import Path

import pytest
import respx

from macrolens_shared.models.series import SeriesPoint, TimeSeries

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------

@pytest.fixture
def fred_payload() -> dict:
    """FRED /series/observations response for CPIAUCSL."""
    return json.loads((FIXTURES_DIR / "fred_observations.json").read_text())


@pytest.fixture
def oecd_payload() -> dict:
    """OECD SDMX-JSON response for MEI/USA.CPALTT01.GY.M."""
    return json.loads((FIXTURES_DIR / "oecd_sdmx.json").read_text())


@pytest.fixture
def te_payload() -> list:
    """TradingEconomics historical response for euro area composite PMI."""
    return json.loads((FIXTURES_DIR / "te_historical.json").read_text())


# ---------------------------------------------------------------------------
# Time control
# ---------------------------------------------------------------------------

@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]):
    """
    Async sleep that returns immediately and records the delay.

    Pass as `sleep=fake_sleep` to adapters and fetchers; assert on `sleeps`.
    """

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router


# ---------------------------------------------------------------------------
# Series builders
# ---------------------------------------------------------------------------

@pytest.fixture
def make_series() -> Callable[..., TimeSeries]:
    def _make(
        pairs: list[tuple[date, float | None]],
        frequency: str = "M",
        series_id: str = "test_series",
    ) -> TimeSeries:
        return TimeSeries(
            id=series_id,
            source_name="test",
            native_id=series_id,
            name=series_id,
            frequency=frequency,
            points=[SeriesPoint(date=d, value=v) for d, v in pairs],
        )

    return _make

