"""
Consent-aware error reporter with an offline queue.

Unconsented reports never leave the local-only queue. Consented reports are
sanitized, then delivered immediately when online or parked in a bounded
pending queue that is flushed when connectivity returns.
"""

import asyncio
import logging
import threading
from collections import deque
from typing import Callable, Deque, List, Optional, Set

from pydantic import ValidationError

from ui_resilience import config
from ui_resilience.connectivity import ConnectivityMonitor
from ui_resilience.exceptions import InvalidFailureError, StorageError
from ui_resilience.models import ErrorReport, KeyValueStore, ReportSink
from ui_resilience.ticker import Ticker

from .sanitizer import sanitize_report

logger = logging.getLogger(__name__)


class ErrorReporter:
    """Delivers sanitized reports to a sink and owns the report queues."""

    def __init__(
        self,
        sink: Optional[ReportSink] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        store: Optional[KeyValueStore] = None,
        max_pending: int = config.MAX_PENDING_REPORTS,
        max_local: int = config.MAX_PENDING_REPORTS,
        flush_interval: float = config.REPORT_FLUSH_INTERVAL,
        connectivity_check_interval: float = config.CONNECTIVITY_CHECK_INTERVAL,
        sanitizer: Callable[[ErrorReport], ErrorReport] = sanitize_report,
    ):
        self.sink = sink
        self.connectivity = connectivity or ConnectivityMonitor()
        self.store = store
        self.max_pending = max_pending
        self.flush_interval = flush_interval
        self.connectivity_check_interval = connectivity_check_interval
        self._sanitize = sanitizer

        self._pending: Deque[ErrorReport] = deque(maxlen=max_pending)
        self._local: Deque[ErrorReport] = deque(maxlen=max_local)
        self._lock = threading.RLock()
        self._flush_lock = asyncio.Lock()
        self._flush_tasks: Set[asyncio.Task] = set()
        self._tickers: List[Ticker] = []

        self.connectivity.subscribe(self._on_connectivity_change)
        self._load()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(report: ErrorReport) -> None:
        if not isinstance(report, ErrorReport):
            raise InvalidFailureError(
                "report", report, "expected an ErrorReport instance"
            )

    async def report(self, report: ErrorReport) -> None:
        """
        Submit a report.

        Never raises for transport problems; only a malformed report fails
        synchronously with InvalidFailureError.
        """
        self._validate(report)

        if not report.user_consent:
            self._store_local(report)
            return

        sanitized = self._sanitize(report)
        if self.sink is not None and self.connectivity.is_online:
            if await self._deliver(sanitized):
                logger.debug(f"Report {report.id} delivered")
                return
        self._queue(sanitized)

    def enqueue(self, report: ErrorReport) -> None:
        """Queue a consented report for the next flush without sending now."""
        self._validate(report)
        if not report.user_consent:
            self._store_local(report)
            return
        self._queue(self._sanitize(report))

    async def _deliver(self, report: ErrorReport) -> bool:
        try:
            delivered = await self.sink.send(report.model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"Failed to deliver report {report.id}: {e}")
            return False
        if not delivered:
            logger.warning(f"Sink did not acknowledge report {report.id}")
        return bool(delivered)

    def _store_local(self, report: ErrorReport) -> None:
        with self._lock:
            self._local.append(report)
            self._persist()
        logger.info(f"Report {report.id} kept locally (no user consent)")

    def _queue(self, report: ErrorReport) -> None:
        with self._lock:
            if len(self._pending) == self.max_pending:
                dropped = self._pending[0]
                logger.warning(
                    f"Pending report queue full, dropping oldest report {dropped.id}"
                )
            self._pending.append(report)
            self._persist()
        logger.info(f"Report {report.id} queued for later delivery")

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    async def flush(self) -> int:
        """
        Deliver pending reports in order.

        Only acknowledged reports leave the queue, so an interrupted or
        failing flush keeps the rest queued. Returns the number delivered.
        """
        if self.sink is None:
            return 0

        delivered = 0
        async with self._flush_lock:
            with self._lock:
                snapshot = list(self._pending)

            for report in snapshot:
                if not self.connectivity.is_online:
                    logger.info("Went offline during flush, stopping")
                    break
                if await self._deliver(report):
                    self._remove_pending(report)
                    delivered += 1

        if delivered:
            logger.info(f"Flushed {delivered} pending reports")
        return delivered

    def _remove_pending(self, report: ErrorReport) -> None:
        with self._lock:
            remaining = [r for r in self._pending if r is not report]
            self._pending.clear()
            self._pending.extend(remaining)
            self._persist()

    def _on_connectivity_change(self, online: bool) -> None:
        if not online:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Back online outside an event loop; flush deferred to ticker")
            return
        task = loop.create_task(self.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def _check_connectivity(self) -> None:
        await self.connectivity.check()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic flush and connectivity tickers."""
        if self._tickers:
            return

        async def periodic_flush() -> None:
            if self.connectivity.is_online:
                await self.flush()

        self._tickers.append(Ticker("report-flush", self.flush_interval, periodic_flush))
        if self.connectivity.probe is not None:
            self._tickers.append(
                Ticker(
                    "connectivity-check",
                    self.connectivity_check_interval,
                    self._check_connectivity,
                )
            )
        for ticker in self._tickers:
            ticker.start()
        logger.info("Error reporter started")

    async def stop(self) -> None:
        """Stop tickers and any in-flight flush; unflushed reports stay queued."""
        for ticker in self._tickers:
            await ticker.stop()
        self._tickers = []

        tasks = list(self._flush_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Error reporter stopped")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def pending_reports(self) -> List[ErrorReport]:
        with self._lock:
            return list(self._pending)

    def local_reports(self) -> List[ErrorReport]:
        with self._lock:
            return list(self._local)

    def clear_pending(self) -> None:
        with self._lock:
            self._pending.clear()
            self._persist()

    def clear_local(self) -> None:
        with self._lock:
            self._local.clear()
            self._persist()

    def mark_resolved(self, report_id: str, resolution: Optional[str] = None) -> bool:
        """Flag a queued report as resolved. Returns False if not found."""
        with self._lock:
            for queue in (self._pending, self._local):
                for index, report in enumerate(queue):
                    if report.id == report_id:
                        queue[index] = report.model_copy(
                            update={"resolved": True, "resolution": resolution}
                        )
                        self._persist()
                        return True
        return False

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.set(
                config.PENDING_REPORTS_STORE_KEY,
                [r.model_dump(mode="json") for r in self._pending],
            )
            self.store.set(
                config.LOCAL_REPORTS_STORE_KEY,
                [r.model_dump(mode="json") for r in self._local],
            )
        except StorageError as e:
            logger.warning(f"Failed to persist report queues: {e}")

    def _load(self) -> None:
        if self.store is None:
            return
        for key, queue in (
            (config.PENDING_REPORTS_STORE_KEY, self._pending),
            (config.LOCAL_REPORTS_STORE_KEY, self._local),
        ):
            try:
                stored = self.store.get(key) or []
                queue.extend(ErrorReport.model_validate(item) for item in stored)
            except (StorageError, ValidationError, TypeError) as e:
                logger.warning(f"Failed to load report queue '{key}': {e}")
