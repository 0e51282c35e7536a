"""Timing utilities: a drift-free interval timer and a latency tracker."""

import asyncio
import itertools
import logging
import time
from collections import Counter
from typing import Callable, Dict, Optional

from .models import LatencyStats

logger = logging.getLogger(__name__)


class HighResolutionTimer:
    """
    Calls a function every ``interval_ms`` milliseconds until stopped.

    Invocations are scheduled on fixed slots measured from the start time,
    not from the end of the previous call, so the long-run rate stays at one
    call per interval even when the event loop lags. A slot that is already
    late fires as soon as possible.

    Args:
        interval_ms: Period between calls in milliseconds
        callback: Function called with no arguments on each slot
        immediate: Fire the first slot at start time instead of one
            interval later
    """

    def __init__(
        self,
        interval_ms: float,
        callback: Callable[[], object],
        immediate: bool = False,
    ):
        if interval_ms <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval_ms}")
        self.interval_ms = interval_ms
        self.callback = callback
        self.immediate = immediate
        self.counter = 0
        self.active = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._start_time = 0.0
        self._handle: Optional[asyncio.TimerHandle] = None

    def start(self) -> None:
        """Start calling back; must run inside the event loop."""
        if self.active:
            return
        self._loop = asyncio.get_running_loop()
        self._start_time = self._loop.time()
        self.counter = 0
        self.active = True
        self._schedule()

    def stop(self) -> None:
        """Cancel all future calls. Safe to call more than once."""
        self.active = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _slot_time(self, slot: int) -> float:
        return self._start_time + slot * self.interval_ms / 1000

    def _schedule(self) -> None:
        slot = self.counter if self.immediate else self.counter + 1
        self._handle = self._loop.call_at(self._slot_time(slot), self._tick)

    def _tick(self) -> None:
        if not self.active:
            return
        try:
            self.callback()
        except Exception:
            logger.exception("Timer callback failed")
        self.counter += 1
        # the callback may have stopped the timer
        if self.active:
            self._schedule()


class LatencyError(KeyError):
    """Raised when a request id is finished twice or was never started."""


class _LatencyWindow:
    """Running aggregates for the requests finished during one window."""

    def __init__(self, start_time: float):
        self.start_time = start_time
        self.count = 0
        self.errors = 0
        self.total_ms = 0.0
        self.min_ms: Optional[float] = None
        self.max_ms: Optional[float] = None
        self.histogram: Counter = Counter()
        self.error_codes: Counter = Counter()

    def record(self, latency_ms: float, error_code: Optional[int]) -> None:
        self.count += 1
        self.total_ms += latency_ms
        if self.min_ms is None or latency_ms < self.min_ms:
            self.min_ms = latency_ms
        if self.max_ms is None or latency_ms > self.max_ms:
            self.max_ms = latency_ms
        self.histogram[round(latency_ms)] += 1
        if error_code is not None:
            self.errors += 1
            self.error_codes[error_code] += 1

    def percentile(self, percentile: float) -> float:
        """Latency below which ``percentile`` percent of requests fall."""
        if not self.count:
            return 0.0
        index = min(int(self.count * percentile / 100), self.count - 1)
        seen = 0
        for latency_ms in sorted(self.histogram):
            seen += self.histogram[latency_ms]
            if seen > index:
                return float(latency_ms)
        return float(max(self.histogram))

    def stats(self, now: float) -> LatencyStats:
        elapsed = max(now - self.start_time, 0.0)
        return LatencyStats(
            total_requests=self.count,
            successful_requests=self.count - self.errors,
            failed_requests=self.errors,
            error_codes=dict(self.error_codes),
            avg_latency_ms=self.total_ms / self.count if self.count else 0.0,
            min_latency_ms=self.min_ms or 0.0,
            max_latency_ms=self.max_ms or 0.0,
            p50_latency_ms=self.percentile(50),
            p95_latency_ms=self.percentile(95),
            p99_latency_ms=self.percentile(99),
            total_latency_ms=self.total_ms,
            elapsed_seconds=elapsed,
            throughput_rps=self.count / elapsed if elapsed > 0 else 0.0,
        )


class LatencyTracker:
    """
    Measures request latency and keeps aggregate statistics.

    Every request gets an id from ``start()`` that must be handed back to
    ``end()`` exactly once. Finished requests are folded into two windows:
    one for the whole run and one since the last partial report.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._ids = itertools.count(1)
        self._requests: Dict[int, float] = {}
        self.initial_time = clock()
        self._total = _LatencyWindow(self.initial_time)
        self._partial = _LatencyWindow(self.initial_time)

    @property
    def in_flight(self) -> int:
        """Number of started requests not yet finished."""
        return len(self._requests)

    def start(self) -> int:
        """Start timing a new request and return its id."""
        request_id = next(self._ids)
        self._requests[request_id] = self._clock()
        return request_id

    def end(self, request_id: int, error_code: Optional[int] = None) -> float:
        """
        Finish timing a request.

        Args:
            request_id: Id returned by ``start()``
            error_code: None for success, otherwise the error to record

        Returns:
            Elapsed time in milliseconds

        Raises:
            LatencyError: If the id is unknown or already finished
        """
        started = self._requests.pop(request_id, None)
        if started is None:
            raise LatencyError(f"Request id {request_id} not found or already ended")
        latency_ms = (self._clock() - started) * 1000
        self._total.record(latency_ms, error_code)
        self._partial.record(latency_ms, error_code)
        return latency_ms

    def show_partial(self) -> LatencyStats:
        """Log and return the statistics since the last partial report."""
        now = self._clock()
        stats = self._partial.stats(now)
        self._partial = _LatencyWindow(now)
        logger.info(
            f"Requests: {stats.total_requests}, "
            f"requests per second: {stats.throughput_rps:.1f}, "
            f"mean latency: {stats.avg_latency_ms:.1f} ms"
        )
        if stats.failed_requests:
            accumulated = self._total.errors
            percent = accumulated / self._total.count * 100
            logger.info(
                f"Errors: {stats.failed_requests}, accumulated errors: {accumulated}, "
                f"{percent:.1f}% of total requests"
            )
        return stats

    def get_results(self) -> LatencyStats:
        """Return the statistics for every request finished so far."""
        return self._total.stats(self._clock())
