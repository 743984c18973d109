"""
Typed configuration objects. Defaults come from ui_resilience.config.
"""

from typing import Dict

from pydantic import BaseModel, Field, model_validator

from ui_resilience import config

from .failure_models import ErrorCategory
from .recovery_models import FallbackStrategy


def default_fallback_strategies() -> Dict[ErrorCategory, FallbackStrategy]:
    strategies = {
        category: FallbackStrategy(type="component") for category in ErrorCategory
    }
    strategies[ErrorCategory.AUTH] = FallbackStrategy(type="redirect", redirect="/auth")
    return strategies


class CircuitBreakerConfig(BaseModel):
    """Circuit breaker tuning. Durations are in seconds."""

    failure_threshold: int = Field(config.CIRCUIT_BREAKER_FAILURE_THRESHOLD, ge=0)
    reset_timeout: float = Field(config.CIRCUIT_BREAKER_RESET_TIMEOUT, gt=0)
    monitoring_period: float = Field(config.CIRCUIT_BREAKER_MONITORING_PERIOD, gt=0)
    half_open_max_calls: int = Field(config.CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS, ge=1)


class ErrorHandlerConfig(BaseModel):
    """Top-level handler configuration."""

    enable_reporting: bool = config.ENABLE_REPORTING
    enable_analytics: bool = config.ENABLE_ANALYTICS
    max_retries: int = Field(config.DEFAULT_MAX_RETRIES, ge=0)
    retry_base_delay_ms: int = Field(config.RETRY_BASE_DELAY_MS, gt=0)
    retry_max_delay_ms: int = Field(config.RETRY_MAX_DELAY_MS, gt=0)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    fallback_strategies: Dict[ErrorCategory, FallbackStrategy] = Field(
        default_factory=default_fallback_strategies
    )

    @model_validator(mode="after")
    def validate_delays(self) -> "ErrorHandlerConfig":
        if self.retry_max_delay_ms < self.retry_base_delay_ms:
            raise ValueError("retry_max_delay_ms must be >= retry_base_delay_ms")
        return self

    def fallback_for(self, category: ErrorCategory) -> FallbackStrategy:
        return self.fallback_strategies.get(
            category, FallbackStrategy(type="component")
        )
