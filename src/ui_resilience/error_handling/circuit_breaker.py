"""
Per-domain circuit breaker with a sliding monitoring window.

Each failure domain owns one breaker. Consecutive failures open it, an
expired reset timeout admits a bounded number of half-open trial calls, and
the failure rate is computed only over outcomes inside the monitoring period.
"""

import inspect
import logging
import threading
from collections import deque
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple, TypeVar, Union

from ui_resilience.exceptions import CircuitOpenError
from ui_resilience.models import CircuitBreakerConfig, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Circuit breaker for a single failure domain."""

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        domain: str = "default",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or CircuitBreakerConfig()
        self.domain = domain
        self._clock = clock
        self._lock = threading.RLock()

        self._state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.next_attempt_time: Optional[datetime] = None
        self._half_open_calls = 0
        # Bumped on every entry into half-open so stale trial slots are not returned
        self._half_open_epoch = 0
        # (timestamp, succeeded) for every outcome inside the monitoring window
        self._outcomes: Deque[Tuple[datetime, bool]] = deque()

    @property
    def state(self) -> CircuitState:
        """Current state; an expired open circuit reads as half-open."""
        with self._lock:
            self._refresh_state()
            return self._state

    def _refresh_state(self) -> None:
        if (
            self._state == CircuitState.OPEN
            and self.next_attempt_time is not None
            and self._clock() >= self.next_attempt_time
        ):
            self._state = CircuitState.HALF_OPEN
            self._half_open_calls = 0
            self._half_open_epoch += 1
            logger.info(
                f"Circuit breaker for '{self.domain}' transitioned to half-open state"
            )

    def _open(self, now: datetime) -> None:
        self._state = CircuitState.OPEN
        self.next_attempt_time = now + timedelta(seconds=self.config.reset_timeout)
        self._half_open_calls = 0

    def _prune_outcomes(self, now: datetime) -> None:
        cutoff = now - timedelta(seconds=self.config.monitoring_period)
        while self._outcomes and self._outcomes[0][0] < cutoff:
            self._outcomes.popleft()

    def record_success(self) -> None:
        """Record successful operation."""
        with self._lock:
            now = self._clock()
            self._refresh_state()
            self._outcomes.append((now, True))
            self._prune_outcomes(now)

            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                self.next_attempt_time = None
                logger.info(f"Circuit breaker for '{self.domain}' closed after recovery")
            if self._state == CircuitState.CLOSED:
                self.failure_count = 0

    def record_failure(self) -> None:
        """Record failed operation and potentially open circuit."""
        with self._lock:
            now = self._clock()
            self._refresh_state()
            self.failure_count += 1
            self.last_failure_time = now
            self._outcomes.append((now, False))
            self._prune_outcomes(now)

            # In half-open state, any failure immediately opens the circuit
            if self._state == CircuitState.HALF_OPEN:
                self._open(now)
                logger.warning(
                    f"Circuit breaker for '{self.domain}' opened after failure in half-open state"
                )
            elif (
                self._state == CircuitState.CLOSED
                and self.failure_count >= self.config.failure_threshold
            ):
                self._open(now)
                logger.warning(
                    f"Circuit breaker for '{self.domain}' opened after {self.failure_count} failures"
                )

    def can_execute(self) -> bool:
        """Check if an operation may proceed."""
        with self._lock:
            self._refresh_state()
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.HALF_OPEN:
                return self._half_open_calls < self.config.half_open_max_calls
            return False

    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def is_half_open(self) -> bool:
        return self.state == CircuitState.HALF_OPEN

    def time_until_retry(self) -> float:
        """Seconds until an open circuit admits a trial call."""
        with self._lock:
            if self._state != CircuitState.OPEN or self.next_attempt_time is None:
                return 0.0
            remaining = (self.next_attempt_time - self._clock()).total_seconds()
            return max(0.0, remaining)

    def _acquire(self) -> Optional[int]:
        """Admit a call, returning the half-open epoch when it took a trial slot."""
        with self._lock:
            if not self.can_execute():
                raise CircuitOpenError(
                    self.domain, self.failure_count, self.time_until_retry()
                )
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_calls += 1
                return self._half_open_epoch
            return None

    def _release(self, epoch: Optional[int]) -> None:
        """Hand back a trial slot whose call ended without an outcome."""
        if epoch is None:
            return
        with self._lock:
            if (
                self._state == CircuitState.HALF_OPEN
                and self._half_open_epoch == epoch
                and self._half_open_calls > 0
            ):
                self._half_open_calls -= 1

    async def execute(
        self, fn: Callable[..., Union[T, Awaitable[T]]], *args: Any, **kwargs: Any
    ) -> T:
        """
        Run fn under circuit protection.

        Raises CircuitOpenError without invoking fn when the circuit refuses
        the call. Otherwise the operation's own result or exception is
        propagated unchanged after the outcome has been recorded. A call
        that is cancelled records nothing and frees its half-open trial slot.
        """
        epoch = self._acquire()
        try:
            result = fn(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            self.record_failure()
            raise
        except BaseException:
            self._release(epoch)
            raise
        self.record_success()
        return result

    def get_failure_rate(self) -> float:
        """Failed share of outcomes recorded inside the monitoring window."""
        with self._lock:
            self._prune_outcomes(self._clock())
            if not self._outcomes:
                return 0.0
            failures = sum(1 for _, succeeded in self._outcomes if not succeeded)
            return failures / len(self._outcomes)

    def reset(self) -> None:
        """Force the breaker back to a fresh closed state."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self.failure_count = 0
            self.last_failure_time = None
            self.next_attempt_time = None
            self._half_open_calls = 0
            self._outcomes.clear()
            logger.info(f"Circuit breaker for '{self.domain}' reset")

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            state = self.state
            return {
                "domain": self.domain,
                "state": state.value,
                "failure_count": self.failure_count,
                "failure_rate": self.get_failure_rate(),
                "is_open": state == CircuitState.OPEN,
                "is_half_open": state == CircuitState.HALF_OPEN,
                "can_execute": self.can_execute(),
                "last_failure_time": (
                    self.last_failure_time.isoformat() if self.last_failure_time else None
                ),
                "next_attempt_time": (
                    self.next_attempt_time.isoformat() if self.next_attempt_time else None
                ),
            }
