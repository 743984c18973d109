"""
Configuration constants and settings for the UI resilience layer.
"""

import os

from ui_resilience.exceptions import ConfigurationError


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# Retry policy
DEFAULT_MAX_RETRIES = int(os.getenv("RESILIENCE_MAX_RETRIES", "3"))
RETRY_BASE_DELAY_MS = int(os.getenv("RESILIENCE_RETRY_BASE_DELAY_MS", "1000"))
RETRY_MAX_DELAY_MS = int(os.getenv("RESILIENCE_RETRY_MAX_DELAY_MS", "10000"))

# Circuit breaker (seconds)
CIRCUIT_BREAKER_FAILURE_THRESHOLD = int(
    os.getenv("RESILIENCE_FAILURE_THRESHOLD", "5")
)
CIRCUIT_BREAKER_RESET_TIMEOUT = float(os.getenv("RESILIENCE_RESET_TIMEOUT", "30.0"))
CIRCUIT_BREAKER_MONITORING_PERIOD = float(
    os.getenv("RESILIENCE_MONITORING_PERIOD", "60.0")
)
CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS = int(
    os.getenv("RESILIENCE_HALF_OPEN_MAX_CALLS", "3")
)

# Analytics
MAX_HISTORY_SIZE = 1000
PATTERN_WINDOW_SECONDS = 5 * 60
SPIKE_THRESHOLD = 10
CRITICAL_PATTERN_THRESHOLD = 2
COMPONENT_ISSUE_THRESHOLD = 5
TREND_BUCKET_COUNT = 24
ANALYTICS_PUBLISH_INTERVAL = float(
    os.getenv("RESILIENCE_ANALYTICS_PUBLISH_INTERVAL", str(5 * 60))
)

# Reporting
MAX_PENDING_REPORTS = 100
REPORT_FLUSH_INTERVAL = float(os.getenv("RESILIENCE_REPORT_FLUSH_INTERVAL", "60.0"))
CONNECTIVITY_CHECK_INTERVAL = float(
    os.getenv("RESILIENCE_CONNECTIVITY_CHECK_INTERVAL", "30.0")
)
REPORT_ENDPOINT = os.getenv("RESILIENCE_REPORT_ENDPOINT", "")
ANALYTICS_ENDPOINT = os.getenv("RESILIENCE_ANALYTICS_ENDPOINT", "")
SINK_TIMEOUT = float(os.getenv("RESILIENCE_SINK_TIMEOUT", "10.0"))

# Local persistence
STORE_DIR = os.getenv("RESILIENCE_STORE_DIR", "")
ANALYTICS_STORE_KEY = "error_analytics"
PENDING_REPORTS_STORE_KEY = "error_reports_pending"
LOCAL_REPORTS_STORE_KEY = "error_reports_local"

# Feature flags
ENABLE_REPORTING = _env_bool("RESILIENCE_ENABLE_REPORTING", "true")
ENABLE_ANALYTICS = _env_bool("RESILIENCE_ENABLE_ANALYTICS", "true")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"

# User-facing messages per failure category
USER_MESSAGES = {
    "network": "Connection issue detected. Please check your internet connection and try again.",
    "ui": "Something went wrong with the interface. We're working to fix this.",
    "data": "Unable to load data. Please refresh the page or try again later.",
    "auth": "Authentication required. Please log in to continue.",
    "performance": "The page is loading slowly. Please wait or try refreshing.",
    "accessibility": "Accessibility issue detected. The page may not work properly with assistive technologies.",
    "unknown": "An unexpected error occurred. Please try again or contact support if the problem persists.",
}

RELOAD_MESSAGE = "The page will reload to fix this issue."
REDIRECT_MESSAGE = "Redirecting to a safe page..."


def validate_config() -> None:
    """Validate configuration settings."""
    if DEFAULT_MAX_RETRIES < 0:
        raise ConfigurationError("RESILIENCE_MAX_RETRIES", "must not be negative")

    if RETRY_BASE_DELAY_MS <= 0:
        raise ConfigurationError("RESILIENCE_RETRY_BASE_DELAY_MS", "must be positive")

    if RETRY_MAX_DELAY_MS < RETRY_BASE_DELAY_MS:
        raise ConfigurationError(
            "RESILIENCE_RETRY_MAX_DELAY_MS", "must be at least the base delay"
        )

    if CIRCUIT_BREAKER_RESET_TIMEOUT <= 0:
        raise ConfigurationError("RESILIENCE_RESET_TIMEOUT", "must be positive")

    if CIRCUIT_BREAKER_MONITORING_PERIOD <= 0:
        raise ConfigurationError("RESILIENCE_MONITORING_PERIOD", "must be positive")

    if CIRCUIT_BREAKER_HALF_OPEN_MAX_CALLS < 1:
        raise ConfigurationError("RESILIENCE_HALF_OPEN_MAX_CALLS", "must be positive")
