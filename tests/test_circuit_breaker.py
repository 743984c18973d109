"""
Tests for the per-domain circuit breaker.
"""

import asyncio
import time
from unittest.mock import Mock, patch

import pytest

from ui_resilience.error_handling import CircuitBreaker, CircuitState
from ui_resilience.exceptions import CircuitOpenError, ErrorType
from ui_resilience.models import CircuitBreakerConfig


def make_breaker(clock, **overrides) -> CircuitBreaker:
    settings = dict(
        failure_threshold=5, reset_timeout=30.0, monitoring_period=60.0, half_open_max_calls=3
    )
    settings.update(overrides)
    return CircuitBreaker(CircuitBreakerConfig(**settings), domain="Dashboard", clock=clock)


class TestCircuitBreakerStates:
    """State machine transitions."""

    def test_initial_state_is_closed(self, clock):
        cb = make_breaker(clock)
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.last_failure_time is None
        assert cb.can_execute() is True

    def test_stays_closed_below_threshold(self, clock):
        cb = make_breaker(clock)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == CircuitState.CLOSED
        assert cb.can_execute() is True

    def test_opens_at_threshold(self, clock):
        cb = make_breaker(clock)
        for _ in range(5):
            cb.record_failure()

        assert cb.is_open() is True
        assert cb.can_execute() is False
        assert cb.last_failure_time == clock()
        assert cb.time_until_retry() == pytest.approx(30.0)

    def test_success_resets_failure_count_when_closed(self, clock):
        cb = make_breaker(clock)
        for _ in range(4):
            cb.record_failure()
        cb.record_success()
        cb.record_failure()

        assert cb.failure_count == 1
        assert cb.state == CircuitState.CLOSED

    def test_half_open_after_reset_timeout(self, clock):
        cb = make_breaker(clock)
        for _ in range(5):
            cb.record_failure()

        clock.advance(29.9)
        assert cb.is_open() is True

        clock.advance(0.2)
        assert cb.is_half_open() is True
        assert cb.can_execute() is True
        # Failure count is kept until a success closes the circuit
        assert cb.failure_count == 5

    def test_half_open_success_closes(self, clock):
        cb = make_breaker(clock)
        for _ in range(5):
            cb.record_failure()
        clock.advance(30)

        cb.record_success()

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.next_attempt_time is None

    def test_half_open_failure_reopens(self, clock):
        cb = make_breaker(clock)
        for _ in range(5):
            cb.record_failure()
        clock.advance(30)
        assert cb.is_half_open() is True

        cb.record_failure()

        assert cb.is_open() is True
        assert cb.time_until_retry() == pytest.approx(30.0)

    def test_reset_returns_to_fresh_state(self, clock):
        cb = make_breaker(clock)
        for _ in range(5):
            cb.record_failure()

        cb.reset()

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.get_failure_rate() == 0.0

    def test_recovery_with_real_time(self):
        """Half-open transition driven by the wall clock."""
        cb = CircuitBreaker(
            CircuitBreakerConfig(failure_threshold=2, reset_timeout=0.2), domain="api"
        )
        cb.record_failure()
        cb.record_failure()
        assert cb.can_execute() is False

        time.sleep(0.25)

        assert cb.can_execute() is True
        assert cb.is_half_open() is True


class TestCircuitBreakerExecute:
    """Guarded execution."""

    @pytest.mark.asyncio
    async def test_execute_returns_sync_result(self, clock):
        cb = make_breaker(clock)
        assert await cb.execute(lambda x: x * 2, 21) == 42

    @pytest.mark.asyncio
    async def test_execute_awaits_coroutines(self, clock):
        cb = make_breaker(clock)

        async def load(value):
            return value

        assert await cb.execute(load, "data") == "data"
        assert cb.get_failure_rate() == 0.0

    @pytest.mark.asyncio
    async def test_execute_records_failure_and_propagates(self, clock):
        cb = make_breaker(clock)

        async def broken():
            raise ValueError("backend down")

        with pytest.raises(ValueError, match="backend down"):
            await cb.execute(broken)
        assert cb.failure_count == 1

    @pytest.mark.asyncio
    async def test_execute_fails_fast_when_open(self, clock):
        cb = make_breaker(clock)
        for _ in range(5):
            cb.record_failure()
        operation = Mock(return_value="never")

        with pytest.raises(CircuitOpenError) as exc_info:
            await cb.execute(operation)

        operation.assert_not_called()
        assert exc_info.value.domain == "Dashboard"
        assert exc_info.value.error_type == ErrorType.CIRCUIT_OPEN
        assert exc_info.value.failure_count == 5

    @pytest.mark.asyncio
    async def test_three_failures_with_threshold_three(self, clock):
        cb = make_breaker(clock, failure_threshold=3)
        for _ in range(3):
            cb.record_failure()

        assert cb.is_open() is True
        assert cb.can_execute() is False

        fn = Mock()
        with pytest.raises(CircuitOpenError):
            await cb.execute(fn)
        fn.assert_not_called()

    @pytest.mark.asyncio
    async def test_half_open_limits_trial_calls(self, clock):
        cb = make_breaker(clock, half_open_max_calls=1)
        for _ in range(5):
            cb.record_failure()
        clock.advance(30)

        observed = []

        def trial_call():
            # The only trial slot is taken by this call
            observed.append(cb.can_execute())
            return "ok"

        assert await cb.execute(trial_call) == "ok"
        assert observed == [False]
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_cancelled_trial_frees_its_slot(self, clock):
        cb = make_breaker(clock, failure_threshold=1, reset_timeout=1, half_open_max_calls=1)
        cb.record_failure()
        clock.advance(2)
        assert cb.is_half_open() is True

        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(3600)

        trial = asyncio.create_task(cb.execute(slow))
        await started.wait()
        assert cb.can_execute() is False

        trial.cancel()
        with pytest.raises(asyncio.CancelledError):
            await trial

        assert cb.is_half_open() is True
        assert cb.can_execute() is True
        assert cb.failure_count == 1
        assert await cb.execute(lambda: "ok") == "ok"
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_stale_cancelled_trial_keeps_new_slot_taken(self, clock):
        cb = make_breaker(clock, failure_threshold=1, reset_timeout=1, half_open_max_calls=1)
        cb.record_failure()
        clock.advance(2)

        async def slow():
            await asyncio.sleep(3600)

        stale = asyncio.create_task(cb.execute(slow))
        await asyncio.sleep(0)
        # A failure elsewhere reopens the circuit, then a new trial window starts
        cb.record_failure()
        clock.advance(2)
        fresh = asyncio.create_task(cb.execute(slow))
        await asyncio.sleep(0)

        stale.cancel()
        with pytest.raises(asyncio.CancelledError):
            await stale
        assert cb.can_execute() is False

        fresh.cancel()
        with pytest.raises(asyncio.CancelledError):
            await fresh
        assert cb.can_execute() is True


class TestCircuitBreakerMetrics:
    """Failure rate and metrics reporting."""

    def test_failure_rate_within_monitoring_period(self, clock):
        cb = make_breaker(clock)
        cb.record_success()
        cb.record_failure()
        cb.record_failure()
        cb.record_failure()

        assert cb.get_failure_rate() == pytest.approx(0.75)

    def test_failure_rate_drops_old_outcomes(self, clock):
        cb = make_breaker(clock)
        cb.record_failure()
        clock.advance(61)
        cb.record_success()

        assert cb.get_failure_rate() == 0.0

    def test_failure_rate_zero_after_quiet_period(self, clock):
        cb = make_breaker(clock, failure_threshold=100)
        for _ in range(20):
            cb.record_failure()
        clock.advance(60.1)

        assert cb.get_failure_rate() == 0.0
        assert cb.failure_count == 20

    def test_get_metrics(self, clock):
        cb = make_breaker(clock)
        for _ in range(5):
            cb.record_failure()

        metrics = cb.get_metrics()

        assert metrics["domain"] == "Dashboard"
        assert metrics["state"] == "open"
        assert metrics["failure_count"] == 5
        assert metrics["failure_rate"] == 1.0
        assert metrics["is_open"] is True
        assert metrics["can_execute"] is False
        assert metrics["next_attempt_time"] is not None

    def test_logs_state_transitions(self, clock):
        with patch("ui_resilience.error_handling.circuit_breaker.logger") as mock_logger:
            cb = make_breaker(clock)
            for _ in range(5):
                cb.record_failure()

            mock_logger.warning.assert_called_once()
            assert "opened after 5 failures" in mock_logger.warning.call_args[0][0]

            clock.advance(30)
            assert cb.is_half_open() is True
            assert any(
                "half-open" in call[0][0] for call in mock_logger.info.call_args_list
            )
