"""
Recovery models returned to the UI layer.
Actions are tagged variants discriminated on ``type`` so callers can match
on them instead of invoking closures.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .failure_models import ClassifiedFailure, ErrorCategory, ErrorSeverity


class FallbackStrategy(BaseModel):
    """What to show (or where to go) instead of the failed content."""

    model_config = ConfigDict(frozen=True)

    type: Literal["component", "page", "offline", "redirect"] = Field(
        "component", description="Kind of fallback"
    )
    content: Optional[str] = Field(None, description="Fallback content reference")
    redirect: Optional[str] = Field(None, description="Redirect target")


class RecoveryAction(BaseModel):
    """A recovery decision."""

    model_config = ConfigDict(frozen=True)

    type: Literal["retry", "fallback", "reload", "redirect", "ignore"]
    delay_ms: Optional[int] = Field(None, ge=0, description="Delay before acting")
    max_attempts: Optional[int] = Field(None, ge=0)
    fallback_strategy: Optional[FallbackStrategy] = None
    condition: Optional[str] = Field(None, description="Optional guard condition")


class RetryAction(BaseModel):
    """Retry the failed operation after delay_ms."""

    type: Literal["retry"] = "retry"
    label: str = "Try Again"
    primary: bool = True
    delay_ms: int = Field(1000, ge=0)
    failure: ClassifiedFailure


class DismissAction(BaseModel):
    """Dismiss the error presentation."""

    type: Literal["dismiss"] = "dismiss"
    label: str = "Dismiss"
    primary: bool = False


class ReportAction(BaseModel):
    """Send a report of the failure."""

    type: Literal["report"] = "report"
    label: str = "Report Issue"
    primary: bool = False
    failure: ClassifiedFailure


ResponseAction = Annotated[
    Union[RetryAction, DismissAction, ReportAction], Field(discriminator="type")
]


class RecoveryResponse(BaseModel):
    """Uniform response shape handed back to the UI layer."""

    message: str = Field(..., description="User-facing message")
    severity: ErrorSeverity
    category: ErrorCategory = ErrorCategory.UNKNOWN
    failure_id: Optional[str] = None
    actions: List[ResponseAction] = Field(default_factory=list)
    retryable: bool = False
    auto_retry: bool = False
    retry_delay_ms: Optional[int] = None
    fallback: Optional[FallbackStrategy] = None
