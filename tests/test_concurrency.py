"""
Tests for shared state under concurrent callers.
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from ui_resilience.error_handling import CircuitBreaker
from ui_resilience.models import CircuitBreakerConfig, ErrorReport, RawError
from ui_resilience.reporting import ErrorReporter


class YieldingSink:
    """Acknowledges every payload after giving other tasks a turn."""

    def __init__(self):
        self.delivered = []

    async def send(self, payload):
        await asyncio.sleep(0)
        self.delivered.append(payload)
        return True


class TestConcurrentHandling:
    def test_threads_share_one_breaker_per_domain(self, handler, context_factory):
        components = ["Feed", "Cart", "Profile", "Search"]
        calls = 60

        def handle(index):
            component = components[index % len(components)]
            return handler.handle(
                RawError(message="fetch failed"), context_factory(component=component)
            )

        with ThreadPoolExecutor(max_workers=8) as pool:
            responses = list(pool.map(handle, range(calls)))

        assert len(responses) == calls
        assert set(handler.get_all_metrics()) == set(components)
        assert len(handler.analytics.history) == calls
        total = sum(
            handler.analytics.get_error_count(f"network|{c}|Error") for c in components
        )
        assert total == calls

    def test_concurrent_failures_are_all_counted(self, clock):
        cb = CircuitBreaker(
            CircuitBreakerConfig(failure_threshold=10_000), domain="Feed", clock=clock
        )
        workers, per_worker = 8, 250
        barrier = threading.Barrier(workers)

        def fail_many():
            barrier.wait()
            for _ in range(per_worker):
                cb.record_failure()

        threads = [threading.Thread(target=fail_many) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cb.failure_count == workers * per_worker
        assert cb.get_failure_rate() == 1.0


class TestConcurrentReporting:
    @pytest.mark.asyncio
    async def test_reports_racing_flush_are_neither_lost_nor_duplicated(
        self, connectivity, store, failure_factory
    ):
        sink = YieldingSink()
        reporter = ErrorReporter(sink=sink, connectivity=connectivity, store=store)

        queued = [
            ErrorReport.for_failure(failure_factory(), user_consent=True)
            for _ in range(10)
        ]
        for report in queued:
            reporter.enqueue(report)
        live = [
            ErrorReport.for_failure(failure_factory(), user_consent=True)
            for _ in range(20)
        ]

        await asyncio.gather(
            reporter.flush(),
            *(reporter.report(report) for report in live),
            reporter.flush(),
        )

        delivered_ids = [payload["id"] for payload in sink.delivered]
        pending_ids = [report.id for report in reporter.pending_reports()]
        expected = sorted(report.id for report in queued + live)

        assert len(delivered_ids) == len(set(delivered_ids))
        assert sorted(delivered_ids + pending_ids) == expected
