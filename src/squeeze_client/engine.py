"""List query engine.

This is the control center for asynchronous, paged retrieval of lists.
A caller starts a query with ``new_query`` and supplies a callback; the
engine registers the callback, and every reply that comes back is parsed,
handed to the callback, and followed up with the next page when needed,
repeating the query's parameters. Callers just initiate the request and
receive batches of items.

The engine does no I/O. It returns ``ListQuery`` objects which the client
renders for its wire format and sends.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from .errors import MalformedTokenError
from .paging import DEFAULT_PAGE_SIZE, PaginationDriver
from .protocol.aggregator import ListResponse, parse_line_response
from .protocol.catalog import DEFAULT_CATALOG, CommandCatalog, CommandDescriptor, ListCommand
from .protocol.codec import Token, decode, parse_parameter, tokenize
from .protocol.comet import CometMessage, correlation_id_from_channel, parse_comet_response
from .protocol.query import ListQuery
from .registry import CorrelationRegistry, ItemListCallback, PendingRequest

logger = logging.getLogger(__name__)


class ListQueryEngine:
    """Issues list queries and routes their replies."""

    def __init__(
        self,
        catalog: CommandCatalog | None = None,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        registry: CorrelationRegistry | None = None,
        debug_logging: bool = False,
    ):
        self.catalog = catalog or DEFAULT_CATALOG
        self.registry = registry or CorrelationRegistry()
        self.paging = PaginationDriver(page_size)
        self.debug_logging = debug_logging

    @property
    def page_size(self) -> int:
        return self.paging.page_size

    # =========================================================================
    # Issuing
    # =========================================================================

    def new_query(
        self,
        command: str | ListCommand,
        start: int,
        callback: ItemListCallback,
        *,
        parameters: Sequence[str | Token] | None = None,
        player_id: str | None = None,
        prefix: str | None = None,
        owner: Any = None,
    ) -> ListQuery:
        """Register a list query and return its first request.

        Args:
            command: Name of a catalog command, e.g. ``"albums"``
            start: First item wanted; 0 for a fresh list, negative for the
                whole list in one go
            callback: Receives ``(total, start, parameters, items)`` per batch
            parameters: Tagged parameters as ``"key:value"`` strings
            player_id: Player the command addresses, for player commands
            prefix: Sub-command prefix, for prefixed commands
            owner: Identity used by ``cancel_client_requests``

        Raises:
            UnknownCommandError: If ``command`` is not in the catalog
        """
        descriptor = self.catalog.lookup(command)
        window = self.paging.initial_window(start)
        tokens = tuple(
            p if isinstance(p, Token) else parse_parameter(p) for p in (parameters or ())
        )
        correlation_id = self.registry.register(callback, owner)
        query = ListQuery(
            command=descriptor.name,
            start=window.start,
            count=window.count,
            correlation_id=correlation_id,
            player_id=player_id,
            prefix=prefix,
            parameters=tokens,
            full_list=window.full_list,
        )
        self.registry.update_query(correlation_id, query)
        return query

    def cancel_client_requests(self, owner: Any) -> int:
        """Forget every pending query started by ``owner``."""
        return self.registry.cancel_all(owner)

    # =========================================================================
    # Receiving
    # =========================================================================

    def handle_line(self, line: str) -> ListQuery | None:
        """Process one line from the line protocol.

        Returns the follow-up request to send at once, if any. A line with
        a malformed token is logged and dropped as a whole.

        Raises:
            UnknownCommandError: If the line is not a reply to a list command
        """
        tokens = tokenize(line)
        descriptor = self.catalog.resolve([decode(t) for t in tokens[:6]])
        if self.debug_logging:
            logger.debug(f"Parsing list: {tokens}")
        try:
            response = parse_line_response(descriptor, tokens, debug_logging=self.debug_logging)
        except MalformedTokenError as e:
            logger.error(f"Dropping reply to '{descriptor.name}': {e}")
            return None
        return self.process(descriptor, response)

    def handle_comet(self, message: CometMessage) -> ListQuery | None:
        """Process a reply received on a Comet request response channel."""
        correlation_id = correlation_id_from_channel(message.channel)
        pending = self.registry.get(correlation_id)
        if pending is None or pending.query is None:
            logger.debug(f"No pending request for {message.channel}")
            return None
        descriptor = self.catalog.lookup(pending.query.command)
        response = parse_comet_response(
            descriptor,
            pending.query,
            message.data_dict(),
            debug_logging=self.debug_logging,
        )
        return self.process(descriptor, response)

    def process(self, descriptor: CommandDescriptor, response: ListResponse) -> ListQuery | None:
        """Dispatch a parsed reply and decide on the next page."""
        pending = self.registry.get(response.correlation_id)
        if pending is None:
            # Completed, cancelled or not ours
            logger.debug(
                f"Discarding reply to '{descriptor.name}' for "
                f"correlation id {response.correlation_id}"
            )
            return None

        max_total = self._dispatch(pending, response)

        query = pending.query or ListQuery(
            command=descriptor.name,
            start=response.start,
            count=response.count,
            correlation_id=pending.correlation_id,
        )
        follow_up = self.paging.next_query(query, response, max_total)
        if self.debug_logging:
            window = self.paging.window(
                response, total=max_total - response.actions, max_total=max_total
            )
            logger.debug(f"{descriptor.name} #{pending.correlation_id}: {window}")

        if follow_up is None:
            self.registry.complete(pending.correlation_id)
            return None
        if not self.registry.update_query(pending.correlation_id, follow_up):
            # Cancelled while the callback ran
            return None
        return follow_up

    def _dispatch(self, pending: PendingRequest, response: ListResponse) -> int:
        """Hand each list of the reply to the callback; return the largest total."""
        max_total = 0
        for batch in response.batches:
            count = response.count_for(batch.parser)
            if count is None and response.start != 0:
                continue
            total = count or 0
            max_total = max(max_total, total)
            try:
                items = batch.build_items()
                pending.callback(
                    total - response.actions,
                    response.start,
                    dict(response.parameters),
                    items,
                )
            except Exception:
                logger.exception(f"Error in list callback for correlation id {pending.correlation_id}")
        return max_total
