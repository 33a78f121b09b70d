"""
macrolens_shared — shared configuration, constants, date helpers and models.

Usage:
    from macrolens_shared.config import settings
    from macrolens_shared.models.series import TimeSeries, SeriesPoint
    from macrolens_shared.models.resolution import ResolverResult, SourceAttempt
    from macrolens_shared.constants import CORRELATION_WINDOWS, PROVIDER_PRIORITY
"""

__version__ = "0.1.0"
