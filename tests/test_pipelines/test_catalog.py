"""
tests/test_pipelines/test_catalog.py — Sanity checks for the indicator catalog.
"""

from __future__ import annotations

import pytest

from macrolens_pipeline.pipelines.catalog import INDICATORS, get_indicator
from macrolens_pipeline.sources.fred import FredAdapter
from macrolens_pipeline.sources.oecd import OECDAdapter
from macrolens_pipeline.sources.tradingeconomics import TradingEconomicsAdapter

ADAPTERS = [
    FredAdapter(api_key="test"),
    OECDAdapter(),
    TradingEconomicsAdapter(api_key="test", throttle=None),
]


@pytest.mark.parametrize("key", sorted(INDICATORS))
def test_identifiers_are_well_formed(key: str):
    indicator = INDICATORS[key]
    configured = 0
    for adapter in ADAPTERS:
        identifier = adapter.identifier_for(indicator)
        if identifier is None:
            continue
        configured += 1
        assert adapter.validate_identifier(identifier) is None, f"{key} @ {adapter.name}"
    assert configured >= 1, f"{key} has no provider"


@pytest.mark.parametrize("key", sorted(INDICATORS))
def test_oecd_frequency_matches_declared(key: str):
    indicator = INDICATORS[key]
    identifier = OECDAdapter().identifier_for(indicator)
    if identifier is not None:
        assert OECDAdapter().native_frequency(identifier) == indicator.frequency


def test_get_indicator():
    assert get_indicator("us_cpi_yoy").fred_series_id == "CPIAUCSL"


def test_get_indicator_unknown_lists_known_keys():
    with pytest.raises(KeyError) as exc_info:
        get_indicator("us_cpi")
    assert "us_cpi_yoy" in str(exc_info.value)
