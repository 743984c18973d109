"""
Pytest configuration and shared fixtures for the resilience layer tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from ui_resilience.analytics import ErrorAnalytics
from ui_resilience.connectivity import ConnectivityMonitor
from ui_resilience.error_handling import ErrorHandler
from ui_resilience.models import (
    CircuitBreakerConfig,
    ClassifiedFailure,
    ErrorCategory,
    ErrorHandlerConfig,
    ErrorSeverity,
    FailureContext,
)
from ui_resilience.reporting import ErrorReporter, MemorySink
from ui_resilience.storage import MemoryStore


class FakeClock:
    """Controllable clock returning timezone-aware UTC datetimes."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingConsentPrompt:
    """Consent prompt that answers with a fixed decision."""

    def __init__(self, decision: bool):
        self.decision = decision
        self.requests = []

    async def request_consent(self, report) -> bool:
        self.requests.append(report)
        return self.decision


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def connectivity():
    return ConnectivityMonitor(online=True)


@pytest.fixture
def context_factory(clock):
    """Build FailureContext objects stamped with the fake clock."""

    def make(component: str = "Dashboard", client_id: str = "", **kwargs):
        kwargs.setdefault("session_id", "session-1")
        kwargs.setdefault("timestamp", clock())
        return FailureContext(component=component, client_id=client_id, **kwargs)

    return make


@pytest.fixture
def failure_factory(context_factory):
    """Build ClassifiedFailure objects without going through the classifier."""

    def make(
        category: ErrorCategory = ErrorCategory.UI,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        component: str = "Dashboard",
        name: str = "TypeError",
        message: str = "x is undefined",
        client_id: str = "",
        **kwargs,
    ) -> ClassifiedFailure:
        return ClassifiedFailure(
            message=message,
            name=name,
            category=category,
            severity=severity,
            context=context_factory(component=component, client_id=client_id),
            user_message="Something went wrong",
            technical_message=message,
            **kwargs,
        )

    return make


@pytest.fixture
def reporter(sink, connectivity, store):
    return ErrorReporter(sink=sink, connectivity=connectivity, store=store)


@pytest.fixture
def analytics(clock):
    return ErrorAnalytics(clock=clock)


@pytest.fixture
def handler_config():
    return ErrorHandlerConfig(
        enable_reporting=True,
        enable_analytics=True,
        max_retries=3,
        circuit_breaker=CircuitBreakerConfig(
            failure_threshold=5,
            reset_timeout=30.0,
            monitoring_period=60.0,
            half_open_max_calls=3,
        ),
    )


@pytest.fixture
def handler(handler_config, analytics, reporter, clock):
    return ErrorHandler(
        config=handler_config,
        analytics=analytics,
        reporter=reporter,
        clock=clock,
    )
