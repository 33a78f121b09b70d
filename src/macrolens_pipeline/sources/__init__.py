"""
macrolens_pipeline.sources — provider adapters and the fetch layer.

Each adapter wraps one external provider:
  FredAdapter              — FRED series observations (JSON)
  OECDAdapter              — OECD SDMX-JSON data API
  TradingEconomicsAdapter  — TradingEconomics indicator / historical API

Shared pieces:
  classify_error     — HTTP status → ErrorClass
  RetryableFetcher   — multi-endpoint fetch with rate-limit backoff
"""

from macrolens_pipeline.sources.base import ProviderAdapter
from macrolens_pipeline.sources.errors import (
    ErrorClass,
    FetchError,
    PayloadError,
    ProviderHTTPError,
    SourceError,
    classify_error,
)
from macrolens_pipeline.sources.fetcher import Endpoint, RetryableFetcher
from macrolens_pipeline.sources.fred import FredAdapter
from macrolens_pipeline.sources.oecd import OECDAdapter
from macrolens_pipeline.sources.tradingeconomics import TradingEconomicsAdapter

__all__ = [
    "ProviderAdapter",
    "FredAdapter",
    "OECDAdapter",
    "TradingEconomicsAdapter",
    "Endpoint",
    "RetryableFetcher",
    "ErrorClass",
    "classify_error",
    "SourceError",
    "ProviderHTTPError",
    "PayloadError",
    "FetchError",
]
