"""
Error handler orchestrating classification, circuit breaking, recovery
planning, analytics and reporting.
"""

import asyncio
import inspect
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Union

from ui_resilience import config as settings
from ui_resilience.analytics import ErrorAnalytics
from ui_resilience.exceptions import InvalidFailureError
from ui_resilience.models import (
    AccessibilityFailure,
    ClassifiedFailure,
    ConsentPrompt,
    DismissAction,
    ErrorHandlerConfig,
    ErrorReport,
    ErrorSeverity,
    FailureContext,
    FallbackStrategy,
    PerformanceFailure,
    RawError,
    RecoveryAction,
    RecoveryResponse,
    ReportAction,
    ReportSink,
    ResponseAction,
    RetryAction,
    utc_now,
)
from ui_resilience.reporting import ErrorReporter

from .circuit_breaker import CircuitBreaker
from .classifier import ErrorClassifier
from .recovery import GENERIC_FALLBACK, RecoveryPlanner

logger = logging.getLogger(__name__)

Remediation = Callable[[str], None]


def _fix_alt_text(element: str) -> None:
    logger.info(f"Requested alt-text remediation for {element}")


def _fix_aria_label(element: str) -> None:
    logger.info(f"Requested aria-label remediation for {element}")


DEFAULT_REMEDIATIONS: Dict[str, Remediation] = {
    "missing-alt-text": _fix_alt_text,
    "missing-aria-label": _fix_aria_label,
}


class ErrorHandler:
    """
    Entry point consumed by the UI layer.

    Construct one per application and pass it to callers explicitly. The
    handler exclusively owns one CircuitBreaker per failure domain and is
    the only code that mutates their state.
    """

    def __init__(
        self,
        config: Optional[ErrorHandlerConfig] = None,
        classifier: Optional[ErrorClassifier] = None,
        analytics: Optional[ErrorAnalytics] = None,
        reporter: Optional[ErrorReporter] = None,
        consent_prompt: Optional[ConsentPrompt] = None,
        remediations: Optional[Dict[str, Remediation]] = None,
        analytics_sink: Optional[ReportSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or ErrorHandlerConfig()
        self.classifier = classifier or ErrorClassifier(
            max_retries=self.config.max_retries
        )
        self.planner = RecoveryPlanner(self.config)
        self.analytics = analytics or ErrorAnalytics(clock=clock)
        self.reporter = reporter or ErrorReporter()
        self.consent_prompt = consent_prompt
        self.remediations: Dict[str, Remediation] = {
            **DEFAULT_REMEDIATIONS,
            **(remediations or {}),
        }
        self.analytics_sink = analytics_sink
        self._clock = clock

        self._breakers: Dict[str, CircuitBreaker] = {}
        self._breakers_lock = threading.Lock()
        self._retry_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def handle(
        self,
        error: Union[BaseException, RawError],
        context: FailureContext,
        retry_count: int = 0,
    ) -> RecoveryResponse:
        """
        Classify a failure and decide how the UI should recover.

        Never raises for infrastructure reasons; a missing error or
        context is a contract violation and raises InvalidFailureError.
        ``retry_count`` is the number of retries the caller already made
        for this failure.
        """
        if error is None:
            raise InvalidFailureError("error", error, "an error is required")
        if not isinstance(context, FailureContext):
            raise InvalidFailureError("context", context, "expected a FailureContext")
        if retry_count < 0:
            raise InvalidFailureError("retry_count", retry_count, "must not be negative")

        if isinstance(error, RawError):
            raw = error
        elif isinstance(error, BaseException):
            raw = RawError.from_exception(error)
        else:
            raise InvalidFailureError("error", error, "expected an exception or RawError")

        failure = self.classifier.classify(raw, context)
        if retry_count:
            failure = failure.model_copy(update={"retry_count": retry_count})
        return self.handle_classified(failure)

    def handle_classified(self, failure: ClassifiedFailure) -> RecoveryResponse:
        """Run an already classified failure through the recovery pipeline."""
        self._log_failure(failure)
        self._record(failure)

        breaker = self.get_circuit_breaker(failure.context.component)
        # Open, or half-open with every trial slot taken
        if not breaker.can_execute():
            logger.info(
                f"Circuit for '{failure.context.component}' refuses calls, serving fallback"
            )
            return self._fallback_response(
                failure, self.config.fallback_for(failure.category)
            )

        action = self.planner.plan(failure)
        return self._build_response(failure, action)

    def _record(self, failure: ClassifiedFailure) -> None:
        if not self.config.enable_analytics:
            return
        try:
            self.analytics.record(failure)
        except Exception as e:
            logger.error(f"Failed to record failure {failure.id} in analytics: {e}")

    def _log_failure(self, failure: ClassifiedFailure) -> None:
        summary = (
            f"{failure.category.value} failure in {failure.context.component}"
            f" ({failure.name}): {failure.technical_message}"
        )
        if failure.severity == ErrorSeverity.CRITICAL:
            logger.error(f"Critical {summary}")
        elif failure.severity == ErrorSeverity.HIGH:
            logger.error(f"High severity {summary}")
        else:
            logger.warning(f"Handled {summary}")

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _build_response(
        self, failure: ClassifiedFailure, action: RecoveryAction
    ) -> RecoveryResponse:
        if action.type == "retry":
            return self._retry_response(failure, action)
        if action.type == "reload":
            return self._terminal_response(failure, settings.RELOAD_MESSAGE, action)
        if action.type == "redirect":
            return self._terminal_response(failure, settings.REDIRECT_MESSAGE, action)
        if action.type == "ignore":
            return RecoveryResponse(
                message=failure.user_message,
                severity=failure.severity,
                category=failure.category,
                failure_id=failure.id,
                actions=[DismissAction()],
            )
        return self._fallback_response(failure, action.fallback_strategy)

    def _retry_response(
        self, failure: ClassifiedFailure, action: RecoveryAction
    ) -> RecoveryResponse:
        delay = action.delay_ms if action.delay_ms is not None else self.planner.retry_delay(0)
        actions: List[ResponseAction] = [
            RetryAction(delay_ms=delay, failure=failure),
            DismissAction(),
        ]
        return RecoveryResponse(
            message=failure.user_message,
            severity=failure.severity,
            category=failure.category,
            failure_id=failure.id,
            actions=actions,
            retryable=True,
            auto_retry=failure.severity == ErrorSeverity.LOW,
            retry_delay_ms=delay,
        )

    def _fallback_response(
        self, failure: ClassifiedFailure, strategy: Optional[FallbackStrategy] = None
    ) -> RecoveryResponse:
        if strategy is None:
            strategy = FallbackStrategy(type="component", content=GENERIC_FALLBACK)
        elif strategy.type == "component" and strategy.content is None:
            strategy = strategy.model_copy(update={"content": GENERIC_FALLBACK})

        return RecoveryResponse(
            message=failure.user_message,
            severity=failure.severity,
            category=failure.category,
            failure_id=failure.id,
            actions=[ReportAction(failure=failure), DismissAction()],
            retryable=False,
            fallback=strategy,
        )

    @staticmethod
    def _terminal_response(
        failure: ClassifiedFailure, message: str, action: RecoveryAction
    ) -> RecoveryResponse:
        return RecoveryResponse(
            message=message,
            severity=failure.severity,
            category=failure.category,
            failure_id=failure.id,
            actions=[],
            retryable=False,
            fallback=action.fallback_strategy,
        )

    # ------------------------------------------------------------------
    # Executing operations through breakers
    # ------------------------------------------------------------------

    def get_circuit_breaker(self, domain: str) -> CircuitBreaker:
        with self._breakers_lock:
            breaker = self._breakers.get(domain)
            if breaker is None:
                breaker = CircuitBreaker(
                    self.config.circuit_breaker, domain=domain, clock=self._clock
                )
                self._breakers[domain] = breaker
            return breaker

    async def execute(
        self,
        domain: str,
        operation: Callable[..., Any],
        *args: Any,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Run an operation through the domain's circuit breaker.

        ``timeout`` bounds an awaitable operation (caller's connection
        timeout); the breaker itself imposes none. Raises CircuitOpenError
        without calling the operation while the circuit is open.
        """

        async def guarded() -> Any:
            result = operation(*args, **kwargs)
            if inspect.isawaitable(result):
                if timeout is not None:
                    return await asyncio.wait_for(result, timeout)
                return await result
            return result

        return await self.get_circuit_breaker(domain).execute(guarded)

    def schedule_retry(
        self,
        failure: ClassifiedFailure,
        operation: Callable[..., Any],
        *args: Any,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> asyncio.Task:
        """
        Schedule a backoff-delayed retry of ``operation``.

        The returned task sleeps the backoff delay, then executes the
        operation through the failure domain's breaker. Cancelling it
        before the delay elapses leaves breaker state untouched. If the retry
        fails, hand ``failure.next_attempt()`` back to ``handle_classified``.
        """
        if failure.retries_exhausted:
            raise InvalidFailureError(
                "retry_count", failure.retry_count, "retry budget exhausted"
            )

        delay_ms = self.planner.retry_delay(failure.retry_count)
        attempt = failure.next_attempt()

        async def run() -> Any:
            await asyncio.sleep(delay_ms / 1000)
            logger.info(
                f"Retrying {attempt.id} in {attempt.context.component} "
                f"(attempt {attempt.retry_count}/{attempt.max_retries})"
            )
            return await self.execute(
                attempt.context.component, operation, *args, timeout=timeout, **kwargs
            )

        task = asyncio.get_running_loop().create_task(run())
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)
        return task

    async def perform_action(
        self,
        action: ResponseAction,
        operation: Optional[Callable[..., Any]] = None,
        *args: Any,
        **kwargs: Any,
    ) -> Optional[asyncio.Task]:
        """Carry out the side effect of a response action chosen by the user."""
        if isinstance(action, RetryAction):
            if operation is None:
                raise InvalidFailureError("operation", None, "retry needs an operation")
            return self.schedule_retry(action.failure, operation, *args, **kwargs)

        if isinstance(action, ReportAction):
            consent = True
            if self.consent_prompt is not None:
                consent = await self.consent_prompt.request_consent(
                    ErrorReport.for_failure(action.failure, user_consent=False)
                )
            await self.report(action.failure, consent)
            return None

        if isinstance(action, DismissAction):
            return None

        raise InvalidFailureError("action", action, "unknown action type")

    # ------------------------------------------------------------------
    # Specialised failures
    # ------------------------------------------------------------------

    def handle_performance_failure(self, failure: PerformanceFailure) -> RecoveryAction:
        """Decide recovery for a performance failure via its decision table."""
        self._record(failure)
        action = self.planner.plan_performance(failure)
        logger.warning(
            f"Performance failure ({failure.metric}): {failure.actual_value} "
            f"exceeds {failure.threshold}, action={action.type}"
        )
        return action

    def handle_accessibility_failure(self, failure: AccessibilityFailure) -> None:
        """Attempt remediation and auto-report critical accessibility failures."""
        self._record(failure)

        remediation = self.remediations.get(failure.rule)
        if remediation is not None:
            try:
                remediation(failure.element)
            except Exception as e:
                logger.warning(f"Remediation for '{failure.rule}' failed: {e}")

        # Accessibility failures are always reportable
        if failure.impact == "critical":
            self.reporter.enqueue(ErrorReport.for_failure(failure, user_consent=True))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def report(self, failure: ClassifiedFailure, consent: bool) -> None:
        """Report a failure; consent decides whether it may leave the client."""
        if not self.config.enable_reporting:
            return
        await self.reporter.report(ErrorReport.for_failure(failure, consent))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_metrics(self, domain: str) -> Optional[Dict[str, Any]]:
        with self._breakers_lock:
            breaker = self._breakers.get(domain)
        if breaker is None:
            return None
        return breaker.get_metrics()

    def get_all_metrics(self) -> Dict[str, Dict[str, Any]]:
        with self._breakers_lock:
            breakers = dict(self._breakers)
        return {domain: b.get_metrics() for domain, b in breakers.items()}

    def reset_circuit(self, domain: str) -> bool:
        with self._breakers_lock:
            breaker = self._breakers.get(domain)
        if breaker is None:
            return False
        breaker.reset()
        return True

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of recorded failure history."""
        history = self.analytics.history
        if not history:
            return {"total_errors": 0}

        summary: Dict[str, Any] = {
            "total_errors": len(history),
            "by_category": {},
            "by_severity": {},
            "recent_errors": [],
        }

        for failure in history:
            category = failure.category.value
            summary["by_category"][category] = (
                summary["by_category"].get(category, 0) + 1
            )

            severity = failure.severity.value
            summary["by_severity"][severity] = (
                summary["by_severity"].get(severity, 0) + 1
            )

        summary["recent_errors"] = [
            {
                "category": f.category.value,
                "component": f.context.component,
                "message": f.technical_message,
                "timestamp": f.context.timestamp.isoformat(),
            }
            for f in history[-5:]
        ]

        return summary

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start background tickers owned by the reporter and analytics."""
        self.reporter.start()
        if self.analytics_sink is not None:
            self.analytics.start_publishing(self.analytics_sink)

    async def shutdown(self) -> None:
        """Cancel pending retries and stop background tickers."""
        tasks = list(self._retry_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self.analytics.stop_publishing()
        await self.reporter.stop()
