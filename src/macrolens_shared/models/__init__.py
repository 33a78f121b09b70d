"""
macrolens_shared.models — Pydantic models for resolved series and results.

These models are used by:
- macrolens_pipeline.sources: provider identifiers per indicator
- macrolens_pipeline.pipelines: resolver results and attempt audit trail
- macrolens_pipeline.analytics: correlation and freshness outputs
"""

from macrolens_shared.models.analytics import (
    CorrelationResult,
    CorrelationWindowConfig,
    FreshnessPolicy,
    LatestAvailableValue,
)
from macrolens_shared.models.indicators import IndicatorSourceConfig
from macrolens_shared.models.resolution import ResolverResult, SourceAttempt
from macrolens_shared.models.series import SeriesPoint, TimeSeries

__all__ = [
    "SeriesPoint",
    "TimeSeries",
    "IndicatorSourceConfig",
    "SourceAttempt",
    "ResolverResult",
    "CorrelationWindowConfig",
    "CorrelationResult",
    "FreshnessPolicy",
    "LatestAvailableValue",
]
