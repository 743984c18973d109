"""
Error analytics: rolling failure history, aggregate views, trend buckets and
pattern alerts.
"""

import json
import logging
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, List, Literal, Optional, Set

from pydantic import ValidationError

from ui_resilience import config
from ui_resilience.connectivity import ConnectivityMonitor
from ui_resilience.exceptions import StorageError
from ui_resilience.models import (
    AnalyticsSummary,
    CategoryBreakdown,
    ClassifiedFailure,
    ClientImpact,
    ComponentErrorRate,
    ErrorSeverity,
    KeyValueStore,
    PatternAlert,
    ReportSink,
    TrendBucket,
    UserImpactAnalysis,
    utc_now,
)
from ui_resilience.ticker import Ticker

from .estimators import PlaceholderResolutionEstimator, ResolutionEstimator

logger = logging.getLogger(__name__)

TrendWindow = Literal["hour", "day", "week", "month"]
AlertListener = Callable[[PatternAlert], None]

TREND_WINDOWS: Dict[str, timedelta] = {
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
}


def _escape_key_part(part: str) -> str:
    return part.replace("\\", "\\\\").replace("|", "\\|")


def error_key(failure: ClassifiedFailure) -> str:
    """
    Aggregation key: category, component and error name joined by ``|``.

    Backslashes and pipes inside the parts are escaped, so distinct triples
    never share a key.
    """
    return "|".join(
        _escape_key_part(part)
        for part in (failure.category.value, failure.context.component, failure.name)
    )


class ErrorAnalytics:
    """
    Tracks and analyzes failure patterns.

    Owns its history and counts; other components only read through the
    accessor methods, which return snapshots and never mutate state.
    """

    def __init__(
        self,
        max_history_size: int = config.MAX_HISTORY_SIZE,
        store: Optional[KeyValueStore] = None,
        estimator: Optional[ResolutionEstimator] = None,
        clock: Callable[[], datetime] = utc_now,
        pattern_window_seconds: int = config.PATTERN_WINDOW_SECONDS,
        spike_threshold: int = config.SPIKE_THRESHOLD,
        critical_threshold: int = config.CRITICAL_PATTERN_THRESHOLD,
        component_threshold: int = config.COMPONENT_ISSUE_THRESHOLD,
        connectivity: Optional[ConnectivityMonitor] = None,
    ):
        self.max_history_size = max_history_size
        self.store = store
        self.estimator: ResolutionEstimator = (
            estimator or PlaceholderResolutionEstimator()
        )
        self.connectivity = connectivity
        self.pattern_window_seconds = pattern_window_seconds
        self.spike_threshold = spike_threshold
        self.critical_threshold = critical_threshold
        self.component_threshold = component_threshold
        self._clock = clock
        self._lock = threading.RLock()

        self._history: Deque[ClassifiedFailure] = deque(maxlen=max_history_size)
        self._counts: Dict[str, int] = {}
        self._active_alerts: Set[str] = set()
        self._alerts: Deque[PatternAlert] = deque(maxlen=100)
        self._listeners: List[AlertListener] = []
        self._publisher: Optional[Ticker] = None

        self._load()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, failure: ClassifiedFailure) -> None:
        """Record a failure occurrence and run pattern detection."""
        with self._lock:
            self._history.append(failure)
            key = error_key(failure)
            self._counts[key] = self._counts.get(key, 0) + 1
            self._persist()
            raised = self._check_patterns(failure)

        for alert in raised:
            self._notify(alert)

    def add_alert_listener(self, listener: AlertListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def get_alerts(self) -> List[PatternAlert]:
        with self._lock:
            return list(self._alerts)

    @property
    def history(self) -> List[ClassifiedFailure]:
        with self._lock:
            return list(self._history)

    def get_error_count(self, key: str) -> int:
        with self._lock:
            return self._counts.get(key, 0)

    # ------------------------------------------------------------------
    # Pattern detection
    # ------------------------------------------------------------------

    def _recent(self, window_seconds: int) -> List[ClassifiedFailure]:
        cutoff = self._clock() - timedelta(seconds=window_seconds)
        return [f for f in self._history if f.context.timestamp >= cutoff]

    def _check_patterns(self, failure: ClassifiedFailure) -> List[PatternAlert]:
        recent = self._recent(self.pattern_window_seconds)
        critical_count = sum(
            1 for f in recent if f.severity == ErrorSeverity.CRITICAL
        )
        by_component: Dict[str, int] = {}
        for f in recent:
            by_component[f.context.component] = (
                by_component.get(f.context.component, 0) + 1
            )

        def current(alert_key: str) -> int:
            if alert_key == "spike":
                return len(recent)
            if alert_key == "critical_pattern":
                return critical_count
            return by_component.get(alert_key.split(":", 1)[1], 0)

        def threshold(alert_key: str) -> int:
            if alert_key == "spike":
                return self.spike_threshold
            if alert_key == "critical_pattern":
                return self.critical_threshold
            return self.component_threshold

        # Re-arm alerts whose counts have fallen back under threshold
        for alert_key in list(self._active_alerts):
            if current(alert_key) <= threshold(alert_key):
                self._active_alerts.discard(alert_key)

        raised: List[PatternAlert] = []
        candidates = [
            ("spike", "spike", None),
            ("critical_pattern", "critical_pattern", None),
            (
                f"component_issue:{failure.context.component}",
                "component_issue",
                failure.context.component,
            ),
        ]
        for alert_key, kind, component in candidates:
            count = current(alert_key)
            if count > threshold(alert_key) and alert_key not in self._active_alerts:
                self._active_alerts.add(alert_key)
                alert = PatternAlert(
                    kind=kind,
                    count=count,
                    window_seconds=self.pattern_window_seconds,
                    component=component,
                    raised_at=self._clock(),
                )
                self._alerts.append(alert)
                raised.append(alert)
        return raised

    def _notify(self, alert: PatternAlert) -> None:
        if alert.kind == "critical_pattern":
            logger.error(alert.description)
        else:
            logger.warning(alert.description)

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(alert)
            except Exception as e:
                logger.warning(f"Alert listener failed for {alert.kind}: {e}")

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def get_analytics(self) -> List[AnalyticsSummary]:
        """Per-key summaries in first-seen order."""
        with self._lock:
            history = list(self._history)
            counts = dict(self._counts)

        grouped: Dict[str, Dict[str, Any]] = {}
        for failure in history:
            key = error_key(failure)
            ts = failure.context.timestamp
            entry = grouped.get(key)
            if entry is None:
                entry = grouped[key] = {
                    "failure": failure,
                    "count": 0,
                    "first": ts,
                    "last": ts,
                    "clients": set(),
                }
            entry["count"] += 1
            entry["first"] = min(entry["first"], ts)
            entry["last"] = max(entry["last"], ts)
            if failure.context.client_id:
                entry["clients"].add(failure.context.client_id)

        summaries = []
        for key, entry in grouped.items():
            first: ClassifiedFailure = entry["failure"]
            cumulative = counts.get(key, entry["count"])
            summaries.append(
                AnalyticsSummary(
                    error_id=key,
                    category=first.category,
                    severity=first.severity,
                    component=first.context.component,
                    error_name=first.name,
                    count=entry["count"],
                    first_occurrence=entry["first"],
                    last_occurrence=entry["last"],
                    affected_users=len(entry["clients"]),
                    resolution_rate=self.estimator.resolution_rate(key, cumulative),
                    average_recovery_time_ms=self.estimator.average_recovery_time_ms(
                        key, cumulative
                    ),
                )
            )
        return summaries

    def get_error_trends(self, window: TrendWindow = "day") -> List[TrendBucket]:
        """Exactly TREND_BUCKET_COUNT ordered buckets covering the window."""
        if window not in TREND_WINDOWS:
            raise ValueError(f"Unknown trend window: {window}")

        span = TREND_WINDOWS[window]
        bucket_count = config.TREND_BUCKET_COUNT
        bucket_size = span / bucket_count
        now = self._clock()
        start = now - span

        buckets = [
            TrendBucket(timestamp=start + bucket_size * i) for i in range(bucket_count)
        ]
        for failure in self.history:
            ts = failure.context.timestamp
            if ts < start or ts > now:
                continue
            index = min(int((ts - start) / bucket_size), bucket_count - 1)
            bucket = buckets[index]
            bucket.count += 1
            bucket.severity[failure.severity.value] += 1
        return buckets

    def get_top_error_categories(self, limit: int = 10) -> List[CategoryBreakdown]:
        history = self.history
        if not history:
            return []

        counts: Dict[Any, int] = {}
        for failure in history:
            counts[failure.category] = counts.get(failure.category, 0) + 1

        total = len(history)
        breakdown = [
            CategoryBreakdown(
                category=category, count=count, percentage=count / total * 100
            )
            for category, count in counts.items()
        ]
        breakdown.sort(key=lambda b: b.count, reverse=True)
        return breakdown[:limit]

    def get_error_rate_by_component(self) -> List[ComponentErrorRate]:
        """Errors per hour over the trailing 24 hours, per component."""
        history = self.history
        cutoff = self._clock() - timedelta(hours=24)

        totals: Dict[str, int] = {}
        recent: Dict[str, int] = {}
        for failure in history:
            component = failure.context.component
            totals[component] = totals.get(component, 0) + 1
            if failure.context.timestamp > cutoff:
                recent[component] = recent.get(component, 0) + 1

        rates = [
            ComponentErrorRate(
                component=component,
                total_errors=total,
                error_rate=recent.get(component, 0) / 24,
            )
            for component, total in totals.items()
        ]
        rates.sort(key=lambda r: r.error_rate, reverse=True)
        return rates

    def get_user_impact_analysis(self) -> UserImpactAnalysis:
        per_client: Dict[str, Dict[str, Any]] = {}
        for failure in self.history:
            client_id = failure.context.client_id
            if not client_id:
                continue
            entry = per_client.setdefault(
                client_id, {"count": 0, "last": failure.context.timestamp}
            )
            entry["count"] += 1
            entry["last"] = max(entry["last"], failure.context.timestamp)

        impacts = [
            ClientImpact(client_id=client_id, error_count=e["count"], last_error=e["last"])
            for client_id, e in per_client.items()
        ]
        impacts.sort(key=lambda i: i.error_count, reverse=True)

        average = (
            sum(i.error_count for i in impacts) / len(impacts) if impacts else 0.0
        )
        return UserImpactAnalysis(
            total_affected_users=len(impacts),
            errors_by_user=impacts,
            average_errors_per_user=average,
        )

    # ------------------------------------------------------------------
    # Export and publishing
    # ------------------------------------------------------------------

    def build_payload(self) -> Dict[str, Any]:
        return {
            "analytics": [s.model_dump(mode="json") for s in self.get_analytics()],
            "trends": [b.model_dump(mode="json") for b in self.get_error_trends()],
            "categories": [
                c.model_dump(mode="json") for c in self.get_top_error_categories()
            ],
            "user_impact": self.get_user_impact_analysis().model_dump(mode="json"),
            "timestamp": self._clock().isoformat(),
        }

    def export_analytics(self) -> str:
        """Export analytics data for external analysis."""
        payload = self.build_payload()
        payload["exported_at"] = payload.pop("timestamp")
        return json.dumps(payload, indent=2)

    async def publish(self, sink: ReportSink) -> bool:
        """Send the analytics payload to a sink; failures are logged only."""
        if self.connectivity is not None and not self.connectivity.is_online:
            logger.debug("Offline, skipping analytics publish")
            return False
        try:
            delivered = await sink.send(self.build_payload())
        except Exception as e:
            logger.warning(f"Failed to send error analytics: {e}")
            return False
        if not delivered:
            logger.warning("Analytics sink rejected the payload")
        return bool(delivered)

    def start_publishing(
        self, sink: ReportSink, interval: float = config.ANALYTICS_PUBLISH_INTERVAL
    ) -> None:
        """Start the periodic publish ticker on the running loop."""
        if self._publisher is not None and self._publisher.running:
            return

        async def tick() -> None:
            await self.publish(sink)

        self._publisher = Ticker("analytics-publish", interval, tick)
        self._publisher.start()

    async def stop_publishing(self) -> None:
        if self._publisher is not None:
            await self._publisher.stop()
            self._publisher = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if self.store is None:
            return
        data = {
            "history": [f.model_dump(mode="json") for f in self._history],
            "counts": dict(self._counts),
        }
        try:
            self.store.set(config.ANALYTICS_STORE_KEY, data)
        except StorageError as e:
            logger.warning(f"Failed to persist error analytics: {e}")

    def _load(self) -> None:
        if self.store is None:
            return
        try:
            data = self.store.get(config.ANALYTICS_STORE_KEY)
        except StorageError as e:
            logger.warning(f"Failed to load error analytics: {e}")
            return
        if not data:
            return

        try:
            history = [
                ClassifiedFailure.model_validate(item)
                for item in data.get("history", [])
            ]
            counts = {str(k): int(v) for k, v in data.get("counts", {}).items()}
        except (ValidationError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable analytics snapshot: {e}")
            return

        self._history.extend(history)
        self._counts = counts
        logger.info(f"Loaded {len(self._history)} failures from analytics snapshot")

    def clear(self) -> None:
        """Clear analytics data, including the persisted snapshot."""
        with self._lock:
            self._history.clear()
            self._counts.clear()
            self._active_alerts.clear()
            self._alerts.clear()
            if self.store is not None:
                try:
                    self.store.delete(config.ANALYTICS_STORE_KEY)
                except StorageError as e:
                    logger.warning(f"Failed to clear analytics snapshot: {e}")
