"""Load test orchestration: clients, stop conditions and final results."""

import asyncio
import logging
import random
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Type

import aiohttp

from .clients import VirtualClient, client_class_for_url
from .models import LatencyStats, LoadTestConfig, LoadTestResult, TransportOutcome
from .timing import HighResolutionTimer, LatencyTracker
from .transport import create_session


class OperationState(Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class Operation:
    """
    A load test run.

    Owns the virtual clients, the latency tracker and the stop conditions.
    Every finished request is reported through ``on_completion``; the run
    stops when ``max_requests`` completions are counted, when
    ``max_seconds`` have elapsed, or when ``stop()`` is called. The final
    result is delivered once, to ``callback`` if given and as the return
    value of ``run()``.

    Args:
        config: Load test configuration, validated on construction
        callback: Called with the final result when the run stops
        on_partial: Called with each periodic partial snapshot
        client_class: Client variant to use (default: chosen from the URL)
        rng: Random source for the open-loop start offsets
        clock: Clock used to measure latencies
    """

    def __init__(
        self,
        config: LoadTestConfig,
        callback: Optional[Callable[[LoadTestResult], None]] = None,
        on_partial: Optional[Callable[[LatencyStats], None]] = None,
        client_class: Optional[Type[VirtualClient]] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        config.validate()
        self.config = config
        self.callback = callback
        self.on_partial = on_partial
        self.client_class = client_class or client_class_for_url(config.url)
        self.rng = rng or random.Random()
        self.clock = clock

        self.state = OperationState.CREATED
        self.latency: Optional[LatencyTracker] = None
        self.clients: Dict[int, VirtualClient] = {}
        self.completed_requests = 0
        self.late_completions = 0
        self.partials: List[LatencyStats] = []
        self.stop_reason: Optional[str] = None
        self.result: Optional[LoadTestResult] = None
        self.session: Optional[aiohttp.ClientSession] = None
        self.start_timestamp: Optional[datetime] = None

        self._show_timer: Optional[HighResolutionTimer] = None
        self._deadline: Optional[asyncio.TimerHandle] = None
        self._staggered: List[asyncio.TimerHandle] = []
        self._finished = asyncio.Event()
        self.logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        return self.state is OperationState.RUNNING

    @property
    def concurrency(self) -> int:
        return self.config.concurrency

    def start(self) -> None:
        """Start clients, the partial reports and the deadline."""
        if self.state is not OperationState.CREATED:
            raise RuntimeError(f"Cannot start an operation that is {self.state.value}")
        loop = asyncio.get_running_loop()
        self.state = OperationState.RUNNING
        self.start_timestamp = datetime.now()
        self.latency = LatencyTracker(clock=self.clock)
        self.session = create_session(keep_alive=self.config.keep_alive)

        self.logger.info(
            f"Starting {self.config.test_mode.replace('_', '-')} load test against "
            f"{self.config.url} with concurrency {self.concurrency}"
        )
        self._show_timer = HighResolutionTimer(self.config.show_interval_ms, self.show_partial)
        self._show_timer.start()
        self._start_clients(loop)
        if self.config.max_seconds:
            self._deadline = loop.call_later(self.config.max_seconds, self.stop, "max_seconds")

    def _start_clients(self, loop: asyncio.AbstractEventLoop) -> None:
        for index in range(self.concurrency):
            client = self.client_class(self, self.config, index, session=self.session)
            self.clients[index] = client
            if not self.config.is_rate_limited:
                client.start()
            else:
                # start each client at a random moment in the first second
                offset = self.rng.random()
                self._staggered.append(loop.call_later(offset, client.start))

    def show_partial(self) -> LatencyStats:
        """Take a partial snapshot of the statistics."""
        stats = self.latency.show_partial()
        self.partials.append(stats)
        if self.on_partial:
            self.on_partial(stats)
        return stats

    def on_completion(self, client: VirtualClient, outcome: TransportOutcome) -> bool:
        """
        Count a finished request and check the stop conditions.

        Returns:
            True if the client may send another request
        """
        if not self.running:
            self.late_completions += 1
            self.logger.debug(f"Request from client {client.index} finished after stop")
            return False
        self.completed_requests += 1
        if self.config.max_requests and self.completed_requests >= self.config.max_requests:
            self.stop("max_requests")
        return self.running

    def stop(self, reason: str = "requested") -> bool:
        """
        Stop the run and deliver the final result.

        Returns:
            False if the operation had already stopped
        """
        if self.state is OperationState.STOPPED:
            self.logger.debug(f"Operation already stopped ({self.stop_reason}), ignoring {reason}")
            return False
        self.state = OperationState.STOPPED
        self.stop_reason = reason
        if self._show_timer:
            self._show_timer.stop()
        if self._deadline:
            self._deadline.cancel()
        for handle in self._staggered:
            handle.cancel()
        for client in self.clients.values():
            client.stop()

        if self.latency is not None:
            # last window, so the partials add up to the final stats
            self.partials.append(self.latency.show_partial())
        tracker = self.latency or LatencyTracker(clock=self.clock)
        self.result = LoadTestResult(
            url=self.config.url,
            test_mode=self.config.test_mode,
            concurrency=self.concurrency,
            completed_requests=self.completed_requests,
            stop_reason=reason,
            stats=tracker.get_results(),
            in_flight_at_stop=tracker.in_flight,
            target_requests_per_second=self.config.requests_per_second,
            start_timestamp=self.start_timestamp,
            end_timestamp=datetime.now(),
            partials=list(self.partials),
        )
        self.logger.info(f"Load test stopped ({reason}) after {self.completed_requests} requests")
        self._finished.set()
        if self.callback:
            self.callback(self.result)
        return True

    @property
    def pending_tasks(self) -> List[asyncio.Task]:
        return [task for client in self.clients.values() for task in client.tasks]

    async def run(self) -> LoadTestResult:
        """Run until a stop condition fires, then release every resource."""
        self.start()
        try:
            await self._finished.wait()
        finally:
            if self.running:
                self.stop("interrupted")
            await self._shutdown()
        return self.result

    async def _shutdown(self) -> None:
        pending = self.pending_tasks
        if pending:
            self.logger.debug(f"Waiting for {len(pending)} requests in flight")
            _, unfinished = await asyncio.wait(pending, timeout=self.config.drain_seconds)
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)
        for client in self.clients.values():
            await client.close()
        if self.session is not None:
            await self.session.close()


async def load_test(
    config: LoadTestConfig,
    callback: Optional[Callable[[LoadTestResult], None]] = None,
    on_partial: Optional[Callable[[LatencyStats], None]] = None,
    **kwargs,
) -> LoadTestResult:
    """Run a load test and return its final result."""
    operation = Operation(config, callback=callback, on_partial=on_partial, **kwargs)
    return await operation.run()
