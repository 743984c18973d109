"""
Error classification: maps a raw error plus its context to a category,
severity, recoverability and user-facing message.

Classification is an ordered rule table evaluated top-to-bottom; the first
matching predicate decides the category.
"""

from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ui_resilience import config
from ui_resilience.models import (
    ClassifiedFailure,
    ErrorCategory,
    ErrorSeverity,
    FailureContext,
    RawError,
)

Predicate = Callable[[RawError], bool]
ClassificationRule = Tuple[Predicate, ErrorCategory]

UI_ERROR_NAMES = frozenset({"ChunkLoadError", "TypeError"})
NON_RECOVERABLE_ERROR_NAMES = frozenset({"ChunkLoadError", "SecurityError"})


def _text(error: RawError) -> str:
    return f"{error.name} {error.message}".lower()


def contains_any(*tokens: str) -> Predicate:
    """Predicate matching when any token appears in the error name or message."""
    lowered = tuple(token.lower() for token in tokens)

    def predicate(error: RawError) -> bool:
        text = _text(error)
        return any(token in text for token in lowered)

    return predicate


def named(*names: str) -> Predicate:
    """Predicate matching on the exact error name."""
    accepted = frozenset(names)

    def predicate(error: RawError) -> bool:
        return error.name in accepted

    return predicate


DEFAULT_RULES: List[ClassificationRule] = [
    (contains_any("fetch", "network", "connection", "offline"), ErrorCategory.NETWORK),
    (contains_any("auth", "unauthorized"), ErrorCategory.AUTH),
    (contains_any("timeout", "performance"), ErrorCategory.PERFORMANCE),
    (contains_any("accessibility", "a11y"), ErrorCategory.ACCESSIBILITY),
    (named(*UI_ERROR_NAMES), ErrorCategory.UI),
]

SEVERITY_BY_CATEGORY = {
    ErrorCategory.AUTH: ErrorSeverity.CRITICAL,
    ErrorCategory.DATA: ErrorSeverity.CRITICAL,
    ErrorCategory.NETWORK: ErrorSeverity.HIGH,
    ErrorCategory.PERFORMANCE: ErrorSeverity.HIGH,
    ErrorCategory.UI: ErrorSeverity.MEDIUM,
}


class ErrorClassifier:
    """Pure, deterministic classifier over an ordered rule table."""

    def __init__(
        self,
        rules: Optional[Sequence[ClassificationRule]] = None,
        extra_rules: Iterable[ClassificationRule] = (),
        max_retries: int = config.DEFAULT_MAX_RETRIES,
    ):
        # Caller-supplied rules take precedence over the defaults
        self.rules: List[ClassificationRule] = list(extra_rules) + list(
            DEFAULT_RULES if rules is None else rules
        )
        self.max_retries = max_retries

    def categorize(self, error: RawError) -> ErrorCategory:
        for predicate, category in self.rules:
            if predicate(error):
                return category
        return ErrorCategory.UNKNOWN

    @staticmethod
    def determine_severity(category: ErrorCategory) -> ErrorSeverity:
        return SEVERITY_BY_CATEGORY.get(category, ErrorSeverity.LOW)

    @staticmethod
    def is_recoverable(error: RawError, category: ErrorCategory) -> bool:
        return (
            error.name not in NON_RECOVERABLE_ERROR_NAMES
            and category != ErrorCategory.AUTH
        )

    @staticmethod
    def user_message(category: ErrorCategory) -> str:
        return config.USER_MESSAGES.get(
            category.value, config.USER_MESSAGES[ErrorCategory.UNKNOWN.value]
        )

    def classify(self, error: RawError, context: FailureContext) -> ClassifiedFailure:
        """Build a ClassifiedFailure for one occurrence."""
        category = self.categorize(error)
        return ClassifiedFailure(
            message=error.message,
            name=error.name,
            stack=error.stack,
            category=category,
            severity=self.determine_severity(category),
            context=context,
            recoverable=self.is_recoverable(error, category),
            user_message=self.user_message(category),
            technical_message=error.message,
            retry_count=0,
            max_retries=self.max_retries,
        )
