"""
Analytics models for failure aggregation, trends and pattern alerts.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, computed_field

from .failure_models import ErrorCategory, ErrorSeverity


def empty_severity_counts() -> Dict[str, int]:
    return {severity.value: 0 for severity in ErrorSeverity}


class AnalyticsSummary(BaseModel):
    """Aggregate for one (category, component, error name) key."""

    error_id: str = Field(..., description="Aggregation key")
    category: ErrorCategory
    severity: ErrorSeverity = Field(..., description="Severity of the first occurrence")
    component: str
    error_name: str
    count: int = Field(0, ge=0)
    first_occurrence: datetime
    last_occurrence: datetime
    affected_users: int = Field(0, ge=0, description="Distinct client identifiers")
    resolution_rate: float = Field(0.0, ge=0.0, le=100.0)
    average_recovery_time_ms: float = Field(0.0, ge=0.0)


class TrendBucket(BaseModel):
    """One of the fixed-count time buckets covering a trend window."""

    timestamp: datetime = Field(..., description="Bucket start")
    count: int = 0
    severity: Dict[str, int] = Field(default_factory=empty_severity_counts)


class CategoryBreakdown(BaseModel):
    category: ErrorCategory
    count: int
    percentage: float


class ComponentErrorRate(BaseModel):
    component: str
    total_errors: int
    error_rate: float = Field(..., description="Errors per hour over the last 24h")


class ClientImpact(BaseModel):
    client_id: str
    error_count: int
    last_error: datetime


class UserImpactAnalysis(BaseModel):
    """How failures are spread across clients."""

    total_affected_users: int = 0
    errors_by_user: List[ClientImpact] = Field(default_factory=list)
    average_errors_per_user: float = 0.0


class PatternAlert(BaseModel):
    """Side-channel signal raised when recent failures cross a threshold."""

    kind: Literal["spike", "critical_pattern", "component_issue"]
    count: int
    window_seconds: int
    component: Optional[str] = None
    raised_at: datetime

    @computed_field
    @property
    def description(self) -> str:
        minutes = self.window_seconds // 60
        if self.kind == "spike":
            return f"Error spike detected: {self.count} errors in the last {minutes} minutes"
        if self.kind == "critical_pattern":
            return f"Critical error pattern detected: {self.count} critical errors in the last {minutes} minutes"
        return f"Component issue detected in {self.component}: {self.count} errors in the last {minutes} minutes"
