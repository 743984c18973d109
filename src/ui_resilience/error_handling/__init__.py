"""
Error handling module for UI failure management.
Provides circuit breakers, failure classification, recovery planning and the
orchestrating handler.
"""

from .circuit_breaker import CircuitBreaker, CircuitState
from .classifier import ErrorClassifier, contains_any, named
from .error_handler import ErrorHandler
from .recovery import RecoveryPlanner, calculate_retry_delay

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "ErrorClassifier",
    "contains_any",
    "named",
    "ErrorHandler",
    "RecoveryPlanner",
    "calculate_retry_delay",
]
