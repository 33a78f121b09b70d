"""
macrolens_pipeline — provider resolution and correlation analytics.

Architecture:
  sources/     — one adapter per provider (FRED, OECD, TradingEconomics),
                 the error classifier and the retrying fetcher
  transforms/  — series alignment, log returns, YoY / QoQ transforms
  analytics/   — windowed Pearson correlation and freshness evaluation
  pipelines/   — indicator catalog, the fallback resolver and the batch driver
  utils/       — structlog configuration, retry decorator, request throttle

Quick start:
    import asyncio
    from macrolens_pipeline.pipelines.catalog import INDICATORS
    from macrolens_pipeline.pipelines.resolver import SourceResolver, ProviderAvailability

    resolver = SourceResolver.default()
    result = asyncio.run(
        resolver.resolve(INDICATORS["us_cpi_yoy"], ProviderAvailability.from_settings())
    )
    print(result.success, result.source_used, result.error_type)

CLI:
    macrolens resolve us_cpi_yoy
    macrolens correlate asset.csv dxy.csv --window 12m
"""

__version__ = "0.1.0"
