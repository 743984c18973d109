"""
Data models for the resilience layer.
"""

from .failure_models import (
    AccessibilityFailure,
    ClassifiedFailure,
    ErrorCategory,
    ErrorReport,
    ErrorSeverity,
    FailureContext,
    PerformanceFailure,
    RawError,
    generate_failure_id,
    utc_now,
)
from .recovery_models import (
    DismissAction,
    FallbackStrategy,
    RecoveryAction,
    RecoveryResponse,
    ReportAction,
    ResponseAction,
    RetryAction,
)
from .analytics_models import (
    AnalyticsSummary,
    CategoryBreakdown,
    ClientImpact,
    ComponentErrorRate,
    PatternAlert,
    TrendBucket,
    UserImpactAnalysis,
)
from .config_models import CircuitBreakerConfig, ErrorHandlerConfig
from .protocols import ConsentPrompt, KeyValueStore, ReportSink

__all__ = [
    "AccessibilityFailure",
    "ClassifiedFailure",
    "ErrorCategory",
    "ErrorReport",
    "ErrorSeverity",
    "FailureContext",
    "PerformanceFailure",
    "RawError",
    "generate_failure_id",
    "utc_now",
    "DismissAction",
    "FallbackStrategy",
    "RecoveryAction",
    "RecoveryResponse",
    "ReportAction",
    "ResponseAction",
    "RetryAction",
    "AnalyticsSummary",
    "CategoryBreakdown",
    "ClientImpact",
    "ComponentErrorRate",
    "PatternAlert",
    "TrendBucket",
    "UserImpactAnalysis",
    "CircuitBreakerConfig",
    "ErrorHandlerConfig",
    "ConsentPrompt",
    "KeyValueStore",
    "ReportSink",
]
