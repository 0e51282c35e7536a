"""Virtual clients: each one simulates a single concurrent user."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Set, Type
from urllib.parse import urlsplit

import aiohttp

from .models import (
    HTTP_SCHEMES,
    WEBSOCKET_SCHEMES,
    ConfigurationError,
    LoadTestConfig,
    RequestSpec,
    TransportOutcome,
)
from .timing import HighResolutionTimer
from .transport import HttpTransport, Transport, WebSocketTransport


class ClientState(Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    STOPPED = "stopped"


class VirtualClient(ABC):
    """
    A simulated user sending requests against the target.

    In closed-loop mode (no request rate) the client sends one request,
    waits for it to finish and then sends the next, so it never has more
    than one request in flight. In open-loop mode a timer fires a new
    request every ``1000 / requests_per_second`` ms, whether or not the
    previous one has finished.

    The owning operation must provide ``running``, ``latency`` and
    ``on_completion(client, outcome)``; the latter returns True while the
    operation wants more requests.
    """

    def __init__(
        self,
        operation,
        config: LoadTestConfig,
        index: int,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.operation = operation
        self.config = config
        self.index = index
        self.url = config.url_for_client(index)
        self.state = ClientState.IDLE
        self.running = False
        self.in_flight = 0
        self.requests_sent = 0
        self.tasks: Set[asyncio.Task] = set()
        self._stopped = False
        self._timer: Optional[HighResolutionTimer] = None
        self.logger = logging.getLogger(__name__)

        self.request_spec = self.build_request_spec()
        self.transport = self.create_transport(session)

    @property
    def closed_loop(self) -> bool:
        return not self.config.is_rate_limited

    @abstractmethod
    def build_request_spec(self) -> RequestSpec:
        """Build what gets sent on every request; raise on bad options."""

    @abstractmethod
    def create_transport(self, session: Optional[aiohttp.ClientSession]) -> Transport:
        """Create the transport carrying this client's requests."""

    def next_request_spec(self) -> RequestSpec:
        """Request to send next; the same one unless a subclass varies it."""
        return self.request_spec

    def start(self) -> None:
        """Start sending requests."""
        if self._stopped or self.running:
            return
        self.running = True
        if self.closed_loop:
            self.make_request()
            return
        interval_ms = 1000 / self.config.requests_per_second
        self._timer = HighResolutionTimer(interval_ms, self.make_request, immediate=True)
        self._timer.start()

    def stop(self) -> None:
        """Stop sending requests; requests in flight finish on their own."""
        self._stopped = True
        self.running = False
        self.state = ClientState.STOPPED
        if self._timer is not None:
            self._timer.stop()

    def make_request(self) -> Optional[asyncio.Task]:
        """
        Dispatch a single request.

        Returns:
            The task running the request, or None if nothing was sent
        """
        if not self.running or not self.operation.running:
            return None
        if self.closed_loop and self.in_flight:
            self.logger.debug(f"Client {self.index} already has a request in flight")
            return None
        request_id = self.operation.latency.start()
        self.in_flight += 1
        self.requests_sent += 1
        self.state = ClientState.IN_FLIGHT
        task = asyncio.get_running_loop().create_task(self._request(request_id))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    async def _request(self, request_id: int) -> None:
        try:
            outcome = await self.transport.send(self.url, self.next_request_spec())
        except Exception as e:
            # the request still has to be ended and counted
            self.logger.exception(f"Request {request_id} from client {self.index} failed")
            outcome = TransportOutcome(error=str(e) or type(e).__name__)
        finally:
            self.in_flight -= 1
            if self.state is ClientState.IN_FLIGHT and not self.in_flight:
                self.state = ClientState.IDLE
        self._finish(request_id, outcome)

    def _finish(self, request_id: int, outcome: TransportOutcome) -> None:
        error_code = outcome.error_code
        if error_code is None:
            self.logger.debug(f"Connection {request_id} ended")
        else:
            self.logger.debug(
                f"Connection {request_id} failed: {outcome.error or f'Status code {outcome.status}'}"
            )
        self.operation.latency.end(request_id, error_code)
        proceed = self.operation.on_completion(self, outcome)
        if proceed and self.closed_loop:
            self.make_request()

    async def close(self) -> None:
        await self.transport.close()


class HttpClient(VirtualClient):
    """A client for an HTTP(S) target."""

    def build_request_spec(self) -> RequestSpec:
        headers = {}
        body = self.config.encoded_body()
        if body is not None:
            headers["Content-Type"] = self.config.resolved_content_type()
        if self.config.cookies:
            headers["Cookie"] = "; ".join(self.config.cookies)
        return RequestSpec(method=self.config.method.upper(), headers=headers, body=body)

    def create_transport(self, session: Optional[aiohttp.ClientSession]) -> Transport:
        if session is None:
            raise ConfigurationError("HTTP clients need an aiohttp session")
        return HttpTransport(session)


class WebSocketClient(VirtualClient):
    """
    A client for a WebSocket target.

    Each request sends the configured body, or a small JSON message naming
    the client and request number, and waits for one reply.
    """

    def build_request_spec(self) -> RequestSpec:
        headers = {}
        if self.config.cookies:
            headers["Cookie"] = "; ".join(self.config.cookies)
        return RequestSpec(method="GET", headers=headers, body=self.config.encoded_body())

    def next_request_spec(self) -> RequestSpec:
        if self.request_spec.body is not None:
            return self.request_spec
        message = {"client": self.index, "request": self.requests_sent}
        return RequestSpec(
            method=self.request_spec.method,
            headers=self.request_spec.headers,
            body=json.dumps(message).encode("utf-8"),
        )

    def create_transport(self, session: Optional[aiohttp.ClientSession]) -> Transport:
        if session is None:
            raise ConfigurationError("WebSocket clients need an aiohttp session")
        return WebSocketTransport(session, recover=self.config.recover)


def client_class_for_url(url: str) -> Type[VirtualClient]:
    """Pick the client variant matching the URL scheme."""
    scheme = urlsplit(url).scheme.lower()
    if scheme in WEBSOCKET_SCHEMES:
        return WebSocketClient
    if scheme in HTTP_SCHEMES:
        return HttpClient
    raise ConfigurationError(f"Unsupported URL scheme in {url}")
