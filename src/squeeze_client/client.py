"""Asynchronous client for the media server.

The client owns one transport and one ``ListQueryEngine``. It renders the
engine's queries for its wire format, runs the reader that feeds replies
back into the engine, and sends the engine's follow-up pages at once.

Usage:
    async with create_client(ClientConfig(host="music.local")) as client:
        players = await client.fetch_players()

        def on_albums(total, start, parameters, items):
            print(f"{start}/{total}: {[a.album for a in items]}")

        client.request_items("albums", 0, on_albums, parameters=["tags:lja"])
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any

from .config import TRANSPORT_COMET, ClientConfig
from .engine import ListQueryEngine
from .errors import UnknownCommandError
from .models import Player
from .protocol.catalog import ListCommand
from .protocol.codec import Token, decode, encode
from .protocol.comet import (
    CometMessage,
    build_command_request,
    build_request,
    correlation_id_from_channel,
)
from .protocol.query import ListQuery
from .registry import ItemListCallback
from .transport import BaseClientTransport, CometTransport, SocketTransport

logger = logging.getLogger(__name__)

# Marks the end of the event stream
_CLOSED = object()


class SqueezeClient(ABC):
    """Transport-agnostic client.

    ``send_command`` and the request methods may be called from any thread.
    Called on the event loop's own thread they never block: the commands
    are queued for a writer task. From any other thread they wait until the
    commands have been written.
    """

    def __init__(
        self,
        transport: BaseClientTransport,
        config: ClientConfig | None = None,
        engine: ListQueryEngine | None = None,
    ):
        self.config = config or transport.config
        self.engine = engine or ListQueryEngine(
            page_size=self.config.page_size,
            debug_logging=self.config.debug_logging,
        )
        self._transport = transport
        self._loop: asyncio.AbstractEventLoop | None = None
        self._outbox: asyncio.Queue[list[Any]] = asyncio.Queue()
        self._events: asyncio.Queue[Any] = asyncio.Queue()
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None

    @property
    def transport(self) -> BaseClientTransport:
        return self._transport

    @property
    def is_connected(self) -> bool:
        return self._transport.is_connected

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """Connect the transport and start the reader and writer tasks.

        Raises:
            ConnectionError: If the server cannot be reached
        """
        await self._transport.connect()
        self._loop = asyncio.get_running_loop()
        self._outbox = asyncio.Queue()
        self._events = asyncio.Queue()
        self._reader_task = asyncio.create_task(self._read_loop())
        self._writer_task = asyncio.create_task(self._write_loop())

    async def disconnect(self) -> None:
        for task in (self._writer_task, self._reader_task):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
        self._writer_task = None
        self._reader_task = None
        await self._transport.disconnect()
        self._events.put_nowait(_CLOSED)
        self._loop = None

    async def __aenter__(self) -> SqueezeClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()

    # =========================================================================
    # Sending
    # =========================================================================

    def send_command(self, *commands: Any) -> None:
        """Send rendered commands, in order, as one batch.

        Raises:
            ConnectionError: If the client is not connected, or (off the
                event loop thread) if the write fails
        """
        if not commands:
            return
        loop = self._loop
        if loop is None or not self.is_connected:
            raise ConnectionError("Client not connected")
        if self._on_loop_thread():
            self._outbox.put_nowait(list(commands))
        else:
            future = asyncio.run_coroutine_threadsafe(self.send_command_immediately(*commands), loop)
            future.result()

    async def send_command_immediately(self, *commands: Any) -> None:
        """Write rendered commands to the transport now."""
        await self._transport.send(commands)

    def send_player_command(self, player_id: str, command: str) -> None:
        """Send a plain command addressed to one player, e.g. ``"mixer volume 50"``."""
        self.send_command(self.render_command(command, player_id))

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    # =========================================================================
    # List queries
    # =========================================================================

    def request_items(
        self,
        command: str | ListCommand,
        start: int,
        callback: ItemListCallback,
        *,
        parameters: Sequence[str | Token] | None = None,
        player_id: str | None = None,
        prefix: str | None = None,
        owner: Any = None,
    ) -> int:
        """Start a paged list query and return its correlation id.

        ``callback(total, start, parameters, items)`` is called once per list
        in every reply, on the event loop thread. A ``start`` of 0 fetches
        the whole list page by page; a negative ``start`` asks the server for
        it in one go.
        """
        query = self.engine.new_query(
            command,
            start,
            callback,
            parameters=parameters,
            player_id=player_id,
            prefix=prefix,
            owner=owner,
        )
        try:
            self.send_command(self.render(query))
        except Exception:
            self.engine.registry.cancel(query.correlation_id)
            raise
        return query.correlation_id

    def request_player_items(
        self,
        player_id: str,
        command: str | ListCommand,
        start: int,
        callback: ItemListCallback,
        *,
        parameters: Sequence[str | Token] | None = None,
        prefix: str | None = None,
        owner: Any = None,
    ) -> int:
        """Start a list query for a player specific command such as ``status``."""
        return self.request_items(
            command,
            start,
            callback,
            parameters=parameters,
            player_id=player_id,
            prefix=prefix,
            owner=owner,
        )

    def cancel_client_requests(self, owner: Any) -> int:
        """Forget all pending queries of ``owner``. Nothing is sent."""
        return self.engine.cancel_client_requests(owner)

    async def fetch_all(
        self,
        command: str | ListCommand,
        *,
        parameters: Sequence[str | Token] | None = None,
        player_id: str | None = None,
        prefix: str | None = None,
        timeout: float | None = None,
    ) -> list[Any]:
        """Fetch a whole single-list result and return its items in order.

        Raises:
            ValueError: If the command returns several lists (``search``)
            TimeoutError: If the list is not complete within ``timeout``
        """
        descriptor = self.engine.catalog.lookup(command)
        if len(descriptor.parsers) != 1:
            raise ValueError(f"'{descriptor.name}' returns {len(descriptor.parsers)} lists")

        done: asyncio.Future[list[Any]] = asyncio.get_running_loop().create_future()
        collected: dict[int, Any] = {}

        def on_items(total: int, start: int, parameters: dict[str, str], items: list[Any]) -> None:
            for offset, item in enumerate(items):
                collected[start + offset] = item
            if len(collected) >= total and not done.done():
                done.set_result([collected[i] for i in sorted(collected)])

        owner = object()
        self.request_items(
            command,
            0,
            on_items,
            parameters=parameters,
            player_id=player_id,
            prefix=prefix,
            owner=owner,
        )
        try:
            return await asyncio.wait_for(done, timeout)
        finally:
            self.cancel_client_requests(owner)

    async def fetch_players(self, timeout: float | None = None) -> list[Player]:
        """All players connected to the server."""
        return await self.fetch_all(ListCommand.PLAYERS, timeout=timeout)

    # =========================================================================
    # Receiving
    # =========================================================================

    async def events(self) -> AsyncIterator[Any]:
        """Yield inbound messages that are not list replies.

        Lines (or Comet messages) the catalog cannot resolve, such as
        notifications and replies to plain commands, end up here.
        """
        while True:
            message = await self._events.get()
            if message is _CLOSED:
                break
            yield message

    async def _read_loop(self) -> None:
        """Process replies one at a time, sending follow-ups before the next."""
        try:
            async for message in self._transport.receive():
                try:
                    follow_up = self.handle_message(message)
                    if follow_up is not None:
                        await self.send_command_immediately(self.render(follow_up))
                except ConnectionError as e:
                    logger.error(f"Could not send follow-up page: {e}")
                except Exception:
                    logger.exception(f"Error handling message: {message!r}")
        except asyncio.CancelledError:
            return
        self._events.put_nowait(_CLOSED)

    async def _write_loop(self) -> None:
        while True:
            commands = await self._outbox.get()
            try:
                await self.send_command_immediately(*commands)
            except ConnectionError as e:
                logger.error(f"Dropping {len(commands)} queued command(s): {e}")
            except Exception:
                logger.exception(f"Dropping {len(commands)} queued command(s)")

    # =========================================================================
    # Wire format
    # =========================================================================

    @abstractmethod
    def render(self, query: ListQuery) -> Any:
        """Render a list query as an outbound message."""
        ...

    @abstractmethod
    def render_command(self, command: str, player_id: str | None = None) -> Any:
        """Render a plain command line as an outbound message."""
        ...

    @abstractmethod
    def handle_message(self, message: Any) -> ListQuery | None:
        """Route one inbound message; return a follow-up query if any."""
        ...


class LineClient(SqueezeClient):
    """Client for the line protocol."""

    def render(self, query: ListQuery) -> str:
        return query.to_line()

    def render_command(self, command: str, player_id: str | None = None) -> str:
        if player_id is None:
            return command
        return f"{encode(player_id)} {command}"

    def handle_message(self, message: str) -> ListQuery | None:
        if self.config.debug_logging:
            logger.debug(f"RECEIVED: {message}")
        try:
            return self.engine.handle_line(message)
        except UnknownCommandError:
            logger.debug(f"Not a list reply: {message}")
            self._events.put_nowait(message)
            return None


class CometClient(SqueezeClient):
    """Client for the Comet (HTTP long-polling) interface."""

    def __init__(
        self,
        transport: CometTransport,
        config: ClientConfig | None = None,
        engine: ListQueryEngine | None = None,
    ):
        super().__init__(transport, config, engine)
        self._comet = transport

    def render(self, query: ListQuery) -> dict[str, Any]:
        return build_request(query, self._comet.client_id)

    def render_command(self, command: str, player_id: str | None = None) -> dict[str, Any]:
        words = [decode(word) for word in command.split()]
        return build_command_request(words, self._comet.client_id, player_id)

    def handle_message(self, message: CometMessage) -> ListQuery | None:
        if self.config.debug_logging:
            logger.debug(f"RECEIVED: {message.channel} {message.data}")
        if correlation_id_from_channel(message.channel) is not None:
            return self.engine.handle_comet(message)
        self._events.put_nowait(message)
        return None


def create_client(config: ClientConfig | None = None) -> SqueezeClient:
    """Create an unconnected client for ``config`` (default: from environment)."""
    config = config or ClientConfig.from_env()
    if config.transport == TRANSPORT_COMET:
        return CometClient(CometTransport(config), config)
    return LineClient(SocketTransport(config), config)
