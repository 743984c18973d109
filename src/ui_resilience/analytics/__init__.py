"""
Failure analytics: history, aggregates, trends and pattern alerts.
"""

from .error_analytics import ErrorAnalytics, TREND_WINDOWS, error_key
from .estimators import PlaceholderResolutionEstimator, ResolutionEstimator

__all__ = [
    "ErrorAnalytics",
    "TREND_WINDOWS",
    "error_key",
    "PlaceholderResolutionEstimator",
    "ResolutionEstimator",
]
