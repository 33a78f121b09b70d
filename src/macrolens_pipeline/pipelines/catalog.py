"""
pipelines/catalog.py — Statically declared indicators and where to find them.

Each entry lists the identifier at every provider that carries the series.
The resolver tries providers in PROVIDER_PRIORITY order (FRED → OECD →
TradingEconomics) and skips the ones an entry leaves unset.

Transforms apply to whichever provider wins, so every identifier of an
entry with a transform must point at a level series (index, count, price).

Usage:
    from macrolens_pipeline.pipelines.catalog import INDICATORS, get_indicator
    cfg = get_indicator("us_cpi_yoy")
"""

from __future__ import annotations

from macrolens_shared.models.indicators import IndicatorSourceConfig

_ENTRIES: list[IndicatorSourceConfig] = [
    # ------------------------------------------------------------------
    # United States
    # ------------------------------------------------------------------
    IndicatorSourceConfig(
        key="us_cpi_yoy",
        name="US CPI (YoY)",
        frequency="M",
        unit="%",
        transform="yoy",
        fred_series_id="CPIAUCSL",
        oecd_dataset="MEI",
        oecd_filter="USA.CPALTT01.IXOB.M",
        te_country="united states",
        te_indicator="consumer price index cpi",
    ),
    IndicatorSourceConfig(
        key="us_core_pce_yoy",
        name="US Core PCE (YoY)",
        frequency="M",
        unit="%",
        transform="yoy",
        fred_series_id="PCEPILFE",
    ),
    IndicatorSourceConfig(
        key="us_unemployment_rate",
        name="US Unemployment Rate",
        frequency="M",
        unit="%",
        fred_series_id="UNRATE",
        oecd_dataset="MEI",
        oecd_filter="USA.LRHUTTTT.STSA.M",
        te_country="united states",
        te_indicator="unemployment rate",
    ),
    IndicatorSourceConfig(
        key="us_payrolls_change",
        name="US Nonfarm Payrolls (monthly change)",
        frequency="M",
        unit="thousands",
        transform="mom",
        qoq_mode="delta",
        fred_series_id="PAYEMS",
    ),
    IndicatorSourceConfig(
        key="us_gdp_qoq",
        name="US Real GDP (QoQ)",
        frequency="Q",
        unit="%",
        transform="qoq",
        qoq_mode="ratio",
        fred_series_id="GDPC1",
        oecd_dataset="QNA",
        oecd_filter="USA.B1_GE.LNBQRSA.Q",
    ),
    IndicatorSourceConfig(
        key="us_manufacturing_pmi",
        name="US ISM Manufacturing PMI",
        frequency="M",
        unit="index",
        te_country="united states",
        te_indicator="manufacturing pmi",
    ),
    # ------------------------------------------------------------------
    # Euro area
    # ------------------------------------------------------------------
    IndicatorSourceConfig(
        key="ez_hicp_yoy",
        name="Euro Area HICP (YoY)",
        frequency="M",
        unit="%",
        transform="yoy",
        oecd_dataset="MEI",
        oecd_filter="EA20.CPALTT01.IXOB.M",
        oecd_fallback_filters=("EA19.CPALTT01.IXOB.M",),
        te_country="euro area",
        te_indicator="consumer price index cpi",
    ),
    IndicatorSourceConfig(
        key="ez_composite_pmi",
        name="Euro Area Composite PMI",
        frequency="M",
        unit="index",
        te_country="euro area",
        te_indicator="composite pmi",
    ),
    # ------------------------------------------------------------------
    # Benchmarks
    # ------------------------------------------------------------------
    IndicatorSourceConfig(
        key="usd_broad_index",
        name="Nominal Broad U.S. Dollar Index",
        frequency="D",
        unit="index",
        fred_series_id="DTWEXBGS",
    ),
]

INDICATORS: dict[str, IndicatorSourceConfig] = {entry.key: entry for entry in _ENTRIES}


def get_indicator(key: str) -> IndicatorSourceConfig:
    """
    Raises:
        KeyError: unknown indicator key.
    """
    try:
        return INDICATORS[key]
    except KeyError:
        raise KeyError(f"unknown indicator {key!r}; known: {', '.join(sorted(INDICATORS))}") from None
