"""
Failure models for the resilience layer.
Contains the context captured at a failure site, the raw error shape, the
classified failure produced by the classifier and the report wrapper.
"""

import time
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    computed_field,
    field_validator,
)


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def generate_failure_id(prefix: str = "error") -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ErrorCategory(str, Enum):
    """Failure categories used for routing recovery and analytics."""

    NETWORK = "network"
    UI = "ui"
    DATA = "data"
    AUTH = "auth"
    PERFORMANCE = "performance"
    ACCESSIBILITY = "accessibility"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """Error severity levels for prioritization."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FailureContext(BaseModel):
    """Context captured by the caller at the failure site."""

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(..., description="Session the failure occurred in")
    component: str = Field(..., description="Originating component (failure domain)")
    action: str = Field("unknown", description="Action being performed")
    timestamp: datetime = Field(
        default_factory=utc_now, description="When the failure occurred"
    )
    url: str = Field("", description="Originating URL")
    client_id: str = Field("", description="Client identifier string")
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Open metadata mapping"
    )

    @field_validator("component")
    @classmethod
    def validate_component(cls, v: str) -> str:
        """Failure domains must be named."""
        if not v.strip():
            raise ValueError("component cannot be empty")
        return v.strip()

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class RawError(BaseModel):
    """Language-neutral shape of an error before classification."""

    model_config = ConfigDict(frozen=True)

    message: str = Field("", description="Error message")
    name: str = Field("Error", description="Error type name")
    stack: Optional[str] = Field(None, description="Optional stack trace")

    @classmethod
    def from_exception(cls, exc: BaseException) -> "RawError":
        """Build a RawError from any Python exception."""
        stack = None
        if exc.__traceback__ is not None:
            stack = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        return cls(message=str(exc), name=type(exc).__name__, stack=stack)


class ClassifiedFailure(BaseModel):
    """
    A single failure occurrence after classification.

    Immutable; the only sanctioned change is the caller's retry bump,
    which produces a copy through next_attempt().
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_failure_id, description="Unique id")
    message: str = Field(..., description="Raw error message")
    name: str = Field("Error", description="Raw error name")
    stack: Optional[str] = Field(None, description="Raw stack trace")
    category: ErrorCategory = Field(..., description="Classified category")
    severity: ErrorSeverity = Field(..., description="Classified severity")
    context: FailureContext = Field(..., description="Failure site context")
    recoverable: bool = Field(True, description="Whether recovery may be attempted")
    user_message: str = Field(..., description="Message safe to show the user")
    technical_message: str = Field(..., description="Raw message for operators")
    retry_count: int = Field(0, ge=0, description="Retries attempted so far")
    max_retries: int = Field(3, ge=0, description="Retry budget")

    @computed_field
    @property
    def retries_exhausted(self) -> bool:
        """Whether the retry budget is spent."""
        return self.retry_count >= self.max_retries

    def next_attempt(self) -> "ClassifiedFailure":
        """Copy of this failure with the retry count bumped by one."""
        return self.model_copy(update={"retry_count": self.retry_count + 1})


class PerformanceFailure(ClassifiedFailure):
    """Failure raised by performance monitoring."""

    metric: Literal["loading", "memory", "network", "interaction"] = Field(
        ..., description="Metric that breached its threshold"
    )
    threshold: float = Field(..., description="Configured threshold")
    actual_value: float = Field(..., description="Observed value")
    impact: Literal["user", "system"] = Field("user", description="Who is affected")


class AccessibilityFailure(ClassifiedFailure):
    """Failure raised by an accessibility audit."""

    rule: str = Field(..., description="Audit rule id, e.g. missing-alt-text")
    element: str = Field(..., description="Selector of the offending element")
    wcag_level: Literal["A", "AA", "AAA"] = Field("AA", description="WCAG level")
    impact: Literal["minor", "moderate", "serious", "critical"] = Field(
        "moderate", description="Impact on assistive technology users"
    )


class ErrorReport(BaseModel):
    """A failure report on its way to the reporting sink."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Report id (matches the failure id)")
    failure: SerializeAsAny[ClassifiedFailure] = Field(
        ..., description="The reported failure"
    )
    user_consent: bool = Field(False, description="Whether the user consented")
    reported_at: datetime = Field(default_factory=utc_now)
    resolved: bool = Field(False)
    resolution: Optional[str] = Field(None)

    @classmethod
    def for_failure(
        cls, failure: ClassifiedFailure, user_consent: bool
    ) -> "ErrorReport":
        return cls(id=failure.id, failure=failure, user_consent=user_consent)
