"""
Tests for backoff and recovery planning.
"""

import pytest

from ui_resilience.error_handling import RecoveryPlanner, calculate_retry_delay
from ui_resilience.error_handling.recovery import (
    MEMORY_ERROR_PAGE,
    OFFLINE_FALLBACK,
    SKELETON_FALLBACK,
)
from ui_resilience.models import (
    ErrorCategory,
    ErrorHandlerConfig,
    ErrorSeverity,
    PerformanceFailure,
)


class TestRetryDelay:
    @pytest.mark.parametrize(
        "retry_count,expected",
        [(0, 1000), (1, 2000), (2, 4000), (3, 8000), (4, 10000), (10, 10000), (50, 10000)],
    )
    def test_exponential_backoff_with_cap(self, retry_count, expected):
        assert calculate_retry_delay(retry_count) == expected

    def test_custom_base_and_cap(self):
        assert calculate_retry_delay(2, base_ms=100, cap_ms=300) == 300
        assert calculate_retry_delay(1, base_ms=100, cap_ms=300) == 200

    def test_negative_retry_count_rejected(self):
        with pytest.raises(ValueError):
            calculate_retry_delay(-1)


class TestRecoveryPlanner:
    @pytest.fixture
    def planner(self):
        return RecoveryPlanner(ErrorHandlerConfig(max_retries=3))

    def test_recoverable_failure_is_retried(self, planner, failure_factory):
        failure = failure_factory(category=ErrorCategory.NETWORK, severity=ErrorSeverity.HIGH)
        action = planner.plan(failure)

        assert action.type == "retry"
        assert action.delay_ms == 1000
        assert action.max_attempts == 3

    def test_delay_grows_with_retry_count(self, planner, failure_factory):
        failure = failure_factory(retry_count=2)
        action = planner.plan(failure)

        assert action.type == "retry"
        assert action.delay_ms == 4000
        assert action.max_attempts == 1

    def test_exhausted_retries_fall_back(self, planner, failure_factory):
        failure = failure_factory(retry_count=3)
        action = planner.plan(failure)

        assert action.type == "fallback"
        assert action.fallback_strategy.type == "component"

    def test_non_recoverable_failure_falls_back(self, planner, failure_factory):
        failure = failure_factory(
            category=ErrorCategory.AUTH, severity=ErrorSeverity.CRITICAL, recoverable=False
        )
        action = planner.plan(failure)

        assert action.type == "fallback"
        assert action.fallback_strategy.type == "redirect"
        assert action.fallback_strategy.redirect == "/auth"


class TestPerformancePlanning:
    @pytest.fixture
    def make_performance_failure(self, context_factory):
        def make(metric: str) -> PerformanceFailure:
            return PerformanceFailure(
                message=f"{metric} threshold exceeded",
                category=ErrorCategory.PERFORMANCE,
                severity=ErrorSeverity.HIGH,
                context=context_factory(component="Chart"),
                user_message="Slow",
                technical_message=f"{metric} threshold exceeded",
                metric=metric,
                threshold=100,
                actual_value=250,
            )

        return make

    def test_loading_retries_with_skeleton(self, make_performance_failure):
        action = RecoveryPlanner.plan_performance(make_performance_failure("loading"))

        assert action.type == "retry"
        assert action.delay_ms == 1000
        assert action.max_attempts == 3
        assert action.fallback_strategy.type == "component"
        assert action.fallback_strategy.content == SKELETON_FALLBACK

    def test_memory_reloads_to_error_page(self, make_performance_failure):
        action = RecoveryPlanner.plan_performance(make_performance_failure("memory"))

        assert action.type == "reload"
        assert action.fallback_strategy.type == "page"
        assert action.fallback_strategy.redirect == MEMORY_ERROR_PAGE

    def test_network_serves_offline_content(self, make_performance_failure):
        action = RecoveryPlanner.plan_performance(make_performance_failure("network"))

        assert action.type == "fallback"
        assert action.fallback_strategy.type == "offline"
        assert action.fallback_strategy.content == OFFLINE_FALLBACK

    def test_other_metrics_retry_quickly(self, make_performance_failure):
        action = RecoveryPlanner.plan_performance(make_performance_failure("interaction"))

        assert action.type == "retry"
        assert action.delay_ms == 500
        assert action.max_attempts == 2
