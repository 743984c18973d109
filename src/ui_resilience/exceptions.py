"""
Custom exception classes for the UI resilience layer.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorType(str, Enum):
    """Types of errors the resilience layer itself can raise."""

    CONTRACT_VIOLATION = "contract_violation"
    CIRCUIT_OPEN = "circuit_open"
    REPORT_DELIVERY = "report_delivery"
    STORAGE = "storage"
    CONFIGURATION = "configuration"


class ResilienceError(Exception):
    """Base exception for all resilience layer errors."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.CONTRACT_VIOLATION,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.details = details or {}


class InvalidFailureError(ResilienceError):
    """Raised when a caller hands the resilience layer malformed input."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(
            f"Invalid {field}: {reason}",
            ErrorType.CONTRACT_VIOLATION,
            {"field": field, "value": repr(value), "reason": reason},
        )


class CircuitOpenError(ResilienceError):
    """Raised by CircuitBreaker.execute when the circuit refuses the call."""

    def __init__(self, domain: str, failure_count: int, timeout_remaining: float):
        self.domain = domain
        self.failure_count = failure_count
        self.timeout_remaining = timeout_remaining
        super().__init__(
            f"Circuit breaker for '{domain}' is open (failures: {failure_count}, timeout: {timeout_remaining:.1f}s)",
            ErrorType.CIRCUIT_OPEN,
            {
                "domain": domain,
                "failure_count": failure_count,
                "timeout_remaining": timeout_remaining,
            },
        )


class ReportDeliveryError(ResilienceError):
    """Raised by a report sink when the transport fails."""

    def __init__(self, sink: str, reason: str, status_code: Optional[int] = None):
        self.sink = sink
        self.status_code = status_code
        super().__init__(
            f"Delivery to {sink} failed: {reason}",
            ErrorType.REPORT_DELIVERY,
            {"sink": sink, "status_code": status_code},
        )


class StorageError(ResilienceError):
    """Raised when the durable local store cannot be read or written."""

    def __init__(self, operation: str, key: str, reason: str):
        self.operation = operation
        self.key = key
        super().__init__(
            f"Store {operation} for '{key}' failed: {reason}",
            ErrorType.STORAGE,
            {"operation": operation, "key": key},
        )


class ConfigurationError(ResilienceError):
    """Raised when configuration is invalid."""

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        super().__init__(
            f"Invalid configuration for '{setting}': {reason}",
            ErrorType.CONFIGURATION,
            {"setting": setting},
        )
