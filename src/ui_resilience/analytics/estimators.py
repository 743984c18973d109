"""
Pluggable estimators for resolution metrics.

No resolution tracking exists yet, so the default estimator is a
placeholder: deterministic, and monotonic in the occurrence count.
"""

from typing import Protocol


class ResolutionEstimator(Protocol):
    def resolution_rate(self, error_id: str, count: int) -> float:
        """Percentage (0-100) of occurrences considered resolved."""
        ...

    def average_recovery_time_ms(self, error_id: str, count: int) -> float:
        ...


class PlaceholderResolutionEstimator:
    """Rate drops 10 points per occurrence; recovery time is a constant."""

    def __init__(self, step: float = 10.0, recovery_time_ms: float = 30000.0):
        self.step = step
        self.recovery_time_ms = recovery_time_ms

    def resolution_rate(self, error_id: str, count: int) -> float:
        return max(0.0, 100.0 - count * self.step)

    def average_recovery_time_ms(self, error_id: str, count: int) -> float:
        return self.recovery_time_ms
