"""Wire protocol layer.

Describes the list commands of the media server and how their replies are
decoded, for both wire formats:
- Line protocol: tag-encoded text lines over a TCP connection
- Comet: Bayeux publish/subscribe messages with JSON bodies over HTTP

Key concepts:
- Command catalog: immutable descriptors of each list command
- Codec: percent-encoded fields and ``key%3Avalue`` tokens
- Aggregator: rebuilds records and per-list totals from one reply
- ListQuery: one page request, rendered for either wire format
"""

from .aggregator import ItemBatch, ListAggregator, ListResponse, ScanState, parse_line_response
from .catalog import (
    DEFAULT_CATALOG,
    CommandCatalog,
    CommandDescriptor,
    ListCommand,
    ParserDescriptor,
    default_descriptors,
    list_command,
)
from .codec import ESCAPED_SEPARATOR, Token, decode, encode, make_token, split_token, tokenize
from .comet import CometMessage, parse_comet_response
from .query import ListQuery

__all__ = [
    "DEFAULT_CATALOG",
    "CommandCatalog",
    "CommandDescriptor",
    "ListCommand",
    "ParserDescriptor",
    "default_descriptors",
    "list_command",
    "ESCAPED_SEPARATOR",
    "Token",
    "decode",
    "encode",
    "make_token",
    "split_token",
    "tokenize",
    "ItemBatch",
    "ListAggregator",
    "ListResponse",
    "ScanState",
    "parse_line_response",
    "CometMessage",
    "parse_comet_response",
    "ListQuery",
]
