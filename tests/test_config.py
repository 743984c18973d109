"""
Tests for configuration constants and typed configuration models.
"""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from ui_resilience import config
from ui_resilience.exceptions import ConfigurationError
from ui_resilience.models import (
    CircuitBreakerConfig,
    ErrorCategory,
    ErrorHandlerConfig,
)


class TestConfigConstants:
    def test_defaults(self):
        assert config.DEFAULT_MAX_RETRIES == 3
        assert config.CIRCUIT_BREAKER_FAILURE_THRESHOLD == 5
        assert config.CIRCUIT_BREAKER_RESET_TIMEOUT == 30.0
        assert config.CIRCUIT_BREAKER_MONITORING_PERIOD == 60.0
        assert config.CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS == 3

    def test_user_message_for_every_category(self):
        for category in ErrorCategory:
            assert config.USER_MESSAGES[category.value]

    def test_validate_config_accepts_defaults(self):
        config.validate_config()

    def test_validate_config_rejects_negative_retries(self):
        with patch.object(config, "DEFAULT_MAX_RETRIES", -1):
            with pytest.raises(ConfigurationError) as exc_info:
                config.validate_config()
        assert exc_info.value.setting == "RESILIENCE_MAX_RETRIES"

    def test_validate_config_rejects_inverted_delays(self):
        with patch.object(config, "RETRY_MAX_DELAY_MS", 10):
            with pytest.raises(ConfigurationError):
                config.validate_config()


class TestConfigModels:
    def test_handler_defaults(self):
        handler_config = ErrorHandlerConfig()

        assert handler_config.max_retries == config.DEFAULT_MAX_RETRIES
        assert handler_config.circuit_breaker.failure_threshold == 5
        assert handler_config.circuit_breaker.half_open_max_calls == 3

    def test_auth_fallback_redirects(self):
        strategy = ErrorHandlerConfig().fallback_for(ErrorCategory.AUTH)

        assert strategy.type == "redirect"
        assert strategy.redirect == "/auth"

    def test_other_categories_use_component_fallback(self):
        handler_config = ErrorHandlerConfig()
        for category in ErrorCategory:
            if category != ErrorCategory.AUTH:
                assert handler_config.fallback_for(category).type == "component"

    def test_invalid_delays_rejected(self):
        with pytest.raises(ValidationError):
            ErrorHandlerConfig(retry_base_delay_ms=5000, retry_max_delay_ms=1000)

    def test_breaker_config_bounds(self):
        with pytest.raises(ValidationError):
            CircuitBreakerConfig(reset_timeout=0)
        with pytest.raises(ValidationError):
            CircuitBreakerConfig(half_open_max_calls=0)
