"""Client-side transports to the media server.

Two wire formats are supported, plus an in-memory mock for tests:
- SocketTransport: the line protocol over TCP (port 9090 by default)
- CometTransport: Bayeux long-polling over HTTP (``/cometd`` on port 9000)
- MockTransport: records what is sent and replays scripted replies

Architecture:
- ClientTransport is the PROTOCOL (interface) for all transports
- BaseClientTransport owns the state machine and a background reader that
  feeds every inbound message into one queue, consumed by ``receive()``
- ``send()`` writes a batch of messages atomically so concurrent senders
  never interleave inside a batch
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterable, Sequence
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import httpx

from .config import ClientConfig
from .errors import TransportError
from .protocol.comet import REQUEST_CHANNEL, CometMessage

logger = logging.getLogger(__name__)

# Marks the end of the inbound stream
_CLOSED = object()


class TransportState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


StateListener = Callable[[TransportState, TransportState], None]


@runtime_checkable
class ClientTransport(Protocol):
    """Protocol for client transports.

    All transports must implement:
    - connect/disconnect: Lifecycle management
    - send: Write a batch of outbound messages in order
    - receive: Iterate inbound messages until the connection ends
    """

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        ...

    async def connect(self) -> None:
        """Establish the connection.

        Raises:
            ConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Close the connection gracefully."""
        ...

    async def send(self, messages: Sequence[Any]) -> None:
        """Send ``messages`` back to back.

        Raises:
            ConnectionError: If not connected
        """
        ...

    def receive(self) -> AsyncIterator[Any]:
        """Yield inbound messages until the connection is closed."""
        ...


class BaseClientTransport(ABC):
    """Base class for client transports with common functionality.

    Provides:
    - State management with change listeners
    - Background reader task feeding the inbound queue
    - Serialized batch sends
    """

    def __init__(self, config: ClientConfig):
        self.config = config
        self._state = TransportState.DISCONNECTED
        self._inbound: asyncio.Queue[Any] = asyncio.Queue()
        self._reader_task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._send_lock = asyncio.Lock()
        self._state_listeners: list[StateListener] = []

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._state == TransportState.CONNECTED

    def add_state_listener(self, listener: StateListener) -> None:
        """Call ``listener(old, new)`` on every state change."""
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        with contextlib.suppress(ValueError):
            self._state_listeners.remove(listener)

    def _set_state(self, state: TransportState) -> None:
        old = self._state
        if old == state:
            return
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(old, state)
            except Exception:
                logger.exception(f"Error in state listener {listener}")

    async def connect(self) -> None:
        """Establish connection."""
        async with self._lock:
            if self._state == TransportState.CONNECTED:
                return

            self._set_state(TransportState.CONNECTING)
            try:
                await self._do_connect()
            except Exception as e:
                self._set_state(TransportState.DISCONNECTED)
                raise ConnectionError(f"Failed to connect: {e}") from e

            self._inbound = asyncio.Queue()
            self._set_state(TransportState.CONNECTED)

            # Start background reader
            self._reader_task = asyncio.create_task(self._read_loop())

            logger.info(f"{self.__class__.__name__} connected")

    async def disconnect(self) -> None:
        """Close the connection."""
        async with self._lock:
            if self._state == TransportState.CLOSED:
                return
            if self._state == TransportState.DISCONNECTED and self._reader_task is None:
                return

            self._set_state(TransportState.CLOSED)

            if self._reader_task:
                self._reader_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._reader_task
                self._reader_task = None

            await self._do_disconnect()
            self._inbound.put_nowait(_CLOSED)
            self._set_state(TransportState.DISCONNECTED)
            logger.info(f"{self.__class__.__name__} disconnected")

    async def send(self, messages: Sequence[Any]) -> None:
        """Send a batch of messages without interleaving other senders."""
        if not self.is_connected:
            raise ConnectionError("Transport not connected")
        if not messages:
            return
        async with self._send_lock:
            try:
                await self._do_send(list(messages))
            except (OSError, ValueError, httpx.HTTPError) as e:
                # ValueError covers undecodable replies and pydantic validation errors
                raise ConnectionError(f"Send failed: {e}") from e

    async def receive(self) -> AsyncIterator[Any]:
        """Yield inbound messages until the connection ends."""
        while True:
            message = await self._inbound.get()
            if message is _CLOSED:
                break
            yield message

    async def _read_loop(self) -> None:
        """Background task moving received messages to the inbound queue."""
        try:
            async for message in self._receive_messages():
                self._inbound.put_nowait(message)
        except asyncio.CancelledError:
            return
        except Exception as e:
            logger.error(f"Read loop error: {e}")

        # Connection lost without a disconnect() call
        logger.info(f"{self.__class__.__name__} connection closed by server")
        self._inbound.put_nowait(_CLOSED)
        self._set_state(TransportState.DISCONNECTED)

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_disconnect(self) -> None:
        """Implementation-specific disconnection logic."""
        ...

    @abstractmethod
    async def _do_send(self, messages: list[Any]) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    def _receive_messages(self) -> AsyncIterator[Any]:
        """Implementation-specific receive logic. Must be an async generator."""
        ...

    async def __aenter__(self) -> BaseClientTransport:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()


class SocketTransport(BaseClientTransport):
    """Line protocol over a TCP socket.

    Wire format:
    - Outbound: one UTF-8 line per command, LF terminated
    - Inbound: one UTF-8 line per reply or notification
    """

    def __init__(self, config: ClientConfig | None = None):
        super().__init__(config or ClientConfig())
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    async def _do_connect(self) -> None:
        self._reader, self._writer = await asyncio.wait_for(
            asyncio.open_connection(self.config.host, self.config.cli_port),
            timeout=self.config.connect_timeout,
        )
        logger.info(f"Connected to {self.config.host}:{self.config.cli_port}")

    async def _do_disconnect(self) -> None:
        if self._writer:
            self._writer.close()
            with contextlib.suppress(OSError):
                await self._writer.wait_closed()
        self._reader = None
        self._writer = None

    async def _do_send(self, messages: list[Any]) -> None:
        if not self._writer:
            raise ConnectionError("Socket not connected")

        for line in messages:
            logger.debug(f"SENDING: {line}")
        data = "".join(f"{line}\n" for line in messages)
        self._writer.write(data.encode("utf-8"))
        await self._writer.drain()

    async def _receive_messages(self) -> AsyncIterator[str]:
        if not self._reader:
            raise ConnectionError("Socket not connected")

        while True:
            raw = await self._reader.readline()
            if not raw:
                # EOF - server closed the connection
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if line:
                yield line


class CometTransport(BaseClientTransport):
    """Bayeux long-polling over HTTP.

    Connecting performs the handshake, subscribes to everything addressed to
    this client and starts polling ``/meta/connect``. Outbound messages are
    request bodies, published on ``/slim/request``; any data message that
    comes back, inline or from the poll, is delivered as a ``CometMessage``.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config or ClientConfig(transport="comet"))
        self._http_transport = http_transport
        self._http_client: httpx.AsyncClient | None = None
        self._client_id: str | None = None
        self._message_ids = itertools.count(1)

    @property
    def client_id(self) -> str:
        if self._client_id is None:
            raise ConnectionError("Comet handshake not done")
        return self._client_id

    async def _do_connect(self) -> None:
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.connect_timeout, read=None),
            transport=self._http_transport,
        )
        try:
            handshake = await self._post(
                client,
                [
                    {
                        "channel": "/meta/handshake",
                        "version": "1.0",
                        "supportedConnectionTypes": ["long-polling"],
                    }
                ],
            )
            reply = self._meta_reply(handshake, "/meta/handshake")
            self._client_id = reply.client_id
            if not self._client_id:
                raise TransportError("Handshake reply without clientId")

            subscribe = await self._post(
                client,
                [
                    {
                        "channel": "/meta/subscribe",
                        "clientId": self._client_id,
                        "subscription": f"/{self._client_id}/**",
                    }
                ],
            )
            self._meta_reply(subscribe, "/meta/subscribe")
        except Exception:
            await client.aclose()
            raise

        self._http_client = client
        logger.info(f"Comet handshake done with {self.config.comet_url}, clientId={self._client_id}")

    async def _do_disconnect(self) -> None:
        if self._http_client:
            if self._client_id:
                with contextlib.suppress(httpx.HTTPError):
                    await self._post(
                        self._http_client,
                        [{"channel": "/meta/disconnect", "clientId": self._client_id}],
                    )
            await self._http_client.aclose()
            self._http_client = None
        self._client_id = None

    async def _do_send(self, messages: list[Any]) -> None:
        if not self._http_client:
            raise ConnectionError("HTTP client not connected")

        batch = [
            {
                "channel": REQUEST_CHANNEL,
                "clientId": self.client_id,
                "id": str(next(self._message_ids)),
                "data": data,
            }
            for data in messages
        ]
        for message in batch:
            logger.debug(f"PUBLISHING: {message}")
        for reply in await self._post(self._http_client, batch):
            self._deliver(reply)

    async def _receive_messages(self) -> AsyncIterator[CometMessage]:
        """Poll ``/meta/connect`` and yield the data messages it returns."""
        if not self._http_client:
            raise ConnectionError("HTTP client not connected")

        while True:
            replies = await self._post(
                self._http_client,
                [
                    {
                        "channel": "/meta/connect",
                        "clientId": self.client_id,
                        "connectionType": "long-polling",
                    }
                ],
            )
            for reply in replies:
                if reply.is_meta():
                    if reply.channel == "/meta/connect" and reply.successful is False:
                        raise TransportError(f"Comet connect failed: {reply.model_extra}")
                    continue
                yield reply

    def _deliver(self, reply: CometMessage) -> None:
        if reply.is_meta():
            return
        if reply.channel == REQUEST_CHANNEL and reply.data is None:
            # Publish acknowledgement
            if reply.successful is False:
                logger.warning(f"Publish rejected: {reply.model_extra}")
            return
        self._inbound.put_nowait(reply)

    async def _post(self, client: httpx.AsyncClient, messages: list[dict[str, Any]]) -> list[CometMessage]:
        response = await client.post(self.config.comet_url, json=messages)
        response.raise_for_status()
        body = response.json()
        if isinstance(body, dict):
            body = [body]
        return [CometMessage.model_validate(item) for item in body]

    @staticmethod
    def _meta_reply(replies: list[CometMessage], channel: str) -> CometMessage:
        for reply in replies:
            if reply.channel == channel:
                if reply.successful is False:
                    raise TransportError(f"{channel} failed: {reply.model_extra}")
                return reply
        raise TransportError(f"No {channel} reply from server")


# Produces the inbound messages a mock server sends back for one outbound message
Responder = Callable[[Any], Iterable[Any]]


class MockTransport(BaseClientTransport):
    """Mock transport for testing.

    Records every outbound message and answers through an optional
    responder. No actual I/O - everything is in-memory.

    Usage:
        transport = MockTransport(responder=lambda line: [reply_for(line)])
        client = LineClient(transport)
        await client.connect()

        assert transport.recorded[0].startswith("players")
    """

    def __init__(self, config: ClientConfig | None = None, responder: Responder | None = None):
        super().__init__(config or ClientConfig())
        self.responder = responder
        self._recorded: list[Any] = []
        self._batches: list[list[Any]] = []
        self._mock_messages: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def recorded(self) -> list[Any]:
        """All messages sent through this transport."""
        return self._recorded.copy()

    @property
    def batches(self) -> list[list[Any]]:
        """Sent messages grouped by ``send()`` call."""
        return [list(batch) for batch in self._batches]

    def inject(self, message: Any) -> None:
        """Deliver ``message`` as if the server had sent it."""
        self._mock_messages.put_nowait(message)

    def clear(self) -> None:
        self._recorded.clear()
        self._batches.clear()

    async def _do_connect(self) -> None:
        """No-op for mock."""
        pass

    async def _do_disconnect(self) -> None:
        """No-op for mock."""
        pass

    async def _do_send(self, messages: list[Any]) -> None:
        self._batches.append(messages)
        for message in messages:
            self._recorded.append(message)
            if self.responder is not None:
                for reply in self.responder(message):
                    self._mock_messages.put_nowait(reply)

    async def _receive_messages(self) -> AsyncIterator[Any]:
        while True:
            yield await self._mock_messages.get()


# Factory functions


def create_socket_transport(host: str = "localhost", port: int = 9090) -> SocketTransport:
    """Create a transport for the line protocol."""
    return SocketTransport(ClientConfig(host=host, cli_port=port))


def create_comet_transport(host: str = "localhost", port: int = 9000) -> CometTransport:
    """Create a transport for the Comet interface."""
    return CometTransport(ClientConfig(host=host, http_port=port, transport="comet"))


def create_mock_transport(responder: Responder | None = None) -> MockTransport:
    """Create a mock transport for testing."""
    return MockTransport(responder=responder)

