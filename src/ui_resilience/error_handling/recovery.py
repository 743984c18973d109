"""
Recovery planning: turns a classified failure into a RecoveryAction.
"""

import logging
from typing import Optional

from ui_resilience.models import (
    ClassifiedFailure,
    ErrorHandlerConfig,
    FallbackStrategy,
    PerformanceFailure,
    RecoveryAction,
)

logger = logging.getLogger(__name__)

SKELETON_FALLBACK = "skeleton"
OFFLINE_FALLBACK = "offline"
GENERIC_FALLBACK = "generic-error"
MEMORY_ERROR_PAGE = "/error?type=memory"


def calculate_retry_delay(
    retry_count: int, base_ms: int = 1000, cap_ms: int = 10000
) -> int:
    """Exponential backoff: min(base * 2**retry_count, cap)."""
    if retry_count < 0:
        raise ValueError("retry_count must not be negative")
    # Past this exponent the result is always capped
    if retry_count >= 32:
        return cap_ms
    return min(base_ms * (2**retry_count), cap_ms)


class RecoveryPlanner:
    """Chooses retry or fallback for generic failures."""

    def __init__(self, config: Optional[ErrorHandlerConfig] = None):
        self.config = config or ErrorHandlerConfig()

    def retry_delay(self, retry_count: int) -> int:
        return calculate_retry_delay(
            retry_count,
            self.config.retry_base_delay_ms,
            self.config.retry_max_delay_ms,
        )

    def plan(self, failure: ClassifiedFailure) -> RecoveryAction:
        strategy = self.config.fallback_for(failure.category)

        if not failure.recoverable:
            return RecoveryAction(type="fallback", fallback_strategy=strategy)

        if failure.retry_count < failure.max_retries:
            return RecoveryAction(
                type="retry",
                delay_ms=self.retry_delay(failure.retry_count),
                max_attempts=failure.max_retries - failure.retry_count,
            )

        logger.debug(f"Retries exhausted for {failure.id}, falling back")
        return RecoveryAction(type="fallback", fallback_strategy=strategy)

    @staticmethod
    def plan_performance(failure: PerformanceFailure) -> RecoveryAction:
        """Dedicated decision table for performance failures."""
        if failure.metric == "loading":
            return RecoveryAction(
                type="retry",
                delay_ms=1000,
                max_attempts=3,
                fallback_strategy=FallbackStrategy(
                    type="component", content=SKELETON_FALLBACK
                ),
            )
        if failure.metric == "memory":
            return RecoveryAction(
                type="reload",
                fallback_strategy=FallbackStrategy(
                    type="page", redirect=MEMORY_ERROR_PAGE
                ),
            )
        if failure.metric == "network":
            return RecoveryAction(
                type="fallback",
                fallback_strategy=FallbackStrategy(
                    type="offline", content=OFFLINE_FALLBACK
                ),
            )
        return RecoveryAction(type="retry", delay_ms=500, max_attempts=2)
