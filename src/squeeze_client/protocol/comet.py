"""Comet (Bayeux publish/subscribe) wire format.

The HTTP interface of the server answers the same list commands as the line
protocol, but with a JSON body: scalar fields next to one ``<name>_loop``
array of records per list. Requests are published on ``/slim/request`` and
each names its own response channel, whose last path segment is the
correlation id.

Responses are folded into the shared ``ListAggregator`` so paging and
dispatch behave exactly as for line responses. The server does not echo the
request's tagged parameters, so they are replayed from the pending query
ahead of the body.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .aggregator import ListAggregator, ListResponse
from .catalog import CommandDescriptor
from .codec import make_token
from .query import CORRELATION_KEY, ListQuery

logger = logging.getLogger(__name__)

REQUEST_CHANNEL = "/slim/request"
RESPONSE_CHANNEL_FORMAT = "/{client_id}/slim/request/{correlation_id}"
META_PREFIX = "/meta/"


class CometMessage(BaseModel):
    """A Bayeux message as sent or received on the wire."""

    model_config = ConfigDict(extra="allow")

    channel: str
    data: Any = None
    id: str | None = None
    client_id: str | None = Field(default=None, alias="clientId")
    successful: bool | None = None

    def is_meta(self) -> bool:
        return self.channel.startswith(META_PREFIX)

    def data_dict(self) -> dict[str, Any]:
        return self.data if isinstance(self.data, dict) else {}


def response_channel(client_id: str, correlation_id: int | str) -> str:
    return RESPONSE_CHANNEL_FORMAT.format(client_id=client_id, correlation_id=correlation_id)


def correlation_id_from_channel(channel: str) -> int | None:
    """Extract the correlation id from a request response channel."""
    head, _, tail = channel.rpartition("/")
    if not head.endswith("/slim/request"):
        return None
    try:
        return int(tail)
    except ValueError:
        return None


def build_request(query: ListQuery, client_id: str) -> dict[str, Any]:
    """Build the data of a ``/slim/request`` publish for ``query``."""
    return {
        "request": [query.player_id or "", query.to_request_array()],
        "response": response_channel(client_id, query.correlation_id),
    }


def build_command_request(words: list[str], client_id: str, player_id: str | None = None) -> dict[str, Any]:
    """Build the data of a plain (non list) command publish."""
    return {"request": [player_id or "", list(words)], "response": f"/{client_id}/slim/request"}


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, dict | list):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def parse_comet_response(
    descriptor: CommandDescriptor,
    query: ListQuery,
    data: dict[str, Any],
    *,
    debug_logging: bool = False,
) -> ListResponse:
    """Aggregate a Comet response body for the pending ``query``."""
    aggregator = ListAggregator(descriptor, debug_logging=debug_logging)

    aggregator.feed_all(query.wire_parameters())
    aggregator.feed(make_token(CORRELATION_KEY, str(query.correlation_id)))

    loops = {parser.loop: parser for parser in descriptor.parsers if parser.loop}
    for key, value in data.items():
        if key in loops:
            continue
        aggregator.feed(make_token(key, _stringify(value)))

    for loop, parser in loops.items():
        records = data.get(loop) or []
        for record in records:
            if not isinstance(record, dict):
                logger.warning(f"Skipping non-record entry in {loop}: {record!r}")
                continue
            aggregator.begin_record(parser)
            for field_name, field_value in record.items():
                aggregator.add_field(field_name, _stringify(field_value))
        aggregator.end_record()

    return aggregator.finish(
        start=query.start,
        count=query.count,
        player_id=query.player_id,
        prefix=query.prefix,
    )
