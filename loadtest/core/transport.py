"""Transports that carry one request/response exchange."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp

from .models import RequestSpec, TransportOutcome

# Failures that mean no usable response came back
CONNECTION_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


def create_session(keep_alive: bool = False) -> aiohttp.ClientSession:
    """
    Create the HTTP session shared by every client of a load test.

    Without keep-alive each request opens its own connection. There is no
    total timeout: a hung request holds its slot until the run ends.
    """
    timeout = aiohttp.ClientTimeout(total=None)
    connector = aiohttp.TCPConnector(limit=0, force_close=not keep_alive)
    return aiohttp.ClientSession(timeout=timeout, connector=connector)


class Transport(ABC):
    """Sends one request and reports how it went, never raising for I/O."""

    @abstractmethod
    async def send(self, url: str, spec: RequestSpec) -> TransportOutcome:
        """Perform one exchange against ``url``."""

    async def close(self) -> None:
        """Release any connection held by the transport."""


class HttpTransport(Transport):
    """Plain HTTP requests over a shared aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession):
        self.session = session
        self.logger = logging.getLogger(__name__)

    async def send(self, url: str, spec: RequestSpec) -> TransportOutcome:
        try:
            async with self.session.request(
                spec.method, url, data=spec.body, headers=spec.headers
            ) as response:
                body = await response.read()
                self.logger.debug(f"Body: {body[:200]!r}")
                return TransportOutcome(status=response.status)
        except CONNECTION_ERRORS as e:
            return TransportOutcome(error=f"Connection error: {e}")


class WebSocketTransport(Transport):
    """
    Message exchanges over one WebSocket connection.

    The connection is opened on the first exchange. Each exchange sends a
    message and waits for the next one from the server; exchanges on the
    same connection run one at a time.

    Args:
        session: Shared aiohttp session used to open the connection
        recover: Reconnect on the next exchange after the connection dropped
    """

    def __init__(self, session: aiohttp.ClientSession, recover: bool = False):
        self.session = session
        self.recover = recover
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def _connect(self, url: str, spec: RequestSpec) -> None:
        if self._ws is not None and not self.recover:
            raise ConnectionResetError("WebSocket connection lost")
        self._ws = await self.session.ws_connect(url, headers=spec.headers)
        self.logger.debug(f"WebSocket client connected to {url}")

    async def _send_message(self, payload: bytes) -> None:
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError:
            await self._ws.send_bytes(payload)
        else:
            await self._ws.send_str(text)

    async def send(self, url: str, spec: RequestSpec) -> TransportOutcome:
        async with self._lock:
            try:
                if not self.connected:
                    await self._connect(url, spec)
                await self._send_message(spec.body or b"")
                message = await self._ws.receive()
            except CONNECTION_ERRORS as e:
                return TransportOutcome(error=f"Connection error: {e}")

        if message.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
            self.logger.debug(f"Received: {str(message.data)[:200]}")
            return TransportOutcome(status=None)
        return TransportOutcome(error=f"WebSocket {message.type.name.lower()}")

    async def close(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
