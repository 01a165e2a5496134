"""List parser/aggregator.

Rebuilds the record lists of one response from its tagged token stream.
The scan is a small state machine: either no record is open, or a record is
open under the parser descriptor whose delimiter tag started it. Every
delimiter tag closes the open record and starts a new one.

Both wire formats feed this class. Line responses push their tokens through
``feed``; Comet responses open records explicitly from their loop arrays.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from ..errors import MalformedTokenError
from .catalog import CommandDescriptor, ParserDescriptor
from .codec import Token, decode, parse_decimal_int, split_token
from .query import CORRELATION_KEY

logger = logging.getLogger(__name__)

RESCAN_KEY = "rescan"
ACTIONS_KEY = "actions"


class ScanState(str, Enum):
    SCANNING = "scanning"
    IN_RECORD = "in_record"


@dataclass
class ItemBatch:
    """Records collected for one parser descriptor."""

    parser: ParserDescriptor
    records: list[dict[str, str]] = field(default_factory=list)

    def build_items(self) -> list:
        return [self.parser.build(record) for record in self.records]


@dataclass
class ListResponse:
    """Everything one response contributed to a list query."""

    command: str
    start: int
    count: int
    batches: list[ItemBatch]
    player_id: str | None = None
    prefix: str | None = None
    correlation_id: int | None = None
    rescan: bool = False
    actions: int = 0
    counts: dict[str, int] = field(default_factory=dict)
    sticky: dict[str, Token] = field(default_factory=dict)
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def item_count(self) -> int:
        return sum(len(batch.records) for batch in self.batches)

    def count_for(self, parser: ParserDescriptor) -> int | None:
        return self.counts.get(parser.count_key)


class ListAggregator:
    """Stateful scan of one response's tagged tokens."""

    def __init__(self, descriptor: CommandDescriptor, *, debug_logging: bool = False):
        self.descriptor = descriptor
        self.debug_logging = debug_logging
        self.batches = [ItemBatch(parser) for parser in descriptor.parsers]
        self.counts: dict[str, int] = {}
        self.sticky: dict[str, Token] = {}
        self.parameters: dict[str, str] = {}
        self.correlation_id: int | None = None
        self.rescan = False
        self.actions = 0

        self._count_keys = {parser.count_key for parser in descriptor.parsers}
        self._delimiters = {
            parser.item_delimiter: batch
            for parser, batch in zip(descriptor.parsers, self.batches, strict=True)
        }
        self._open_batch: ItemBatch | None = None
        self._record: dict[str, str] | None = None

    @property
    def state(self) -> ScanState:
        return ScanState.IN_RECORD if self._record is not None else ScanState.SCANNING

    def feed(self, token: Token) -> None:
        """Process one tagged token."""
        key, value = token.key, token.value
        if self.debug_logging:
            logger.debug(f"key={key}, value={value}")

        if key == CORRELATION_KEY:
            self.correlation_id = parse_decimal_int(value, default=-1)
            if self.correlation_id < 0:
                self.correlation_id = None
            self.sticky[key] = token
            return
        if key == RESCAN_KEY:
            self.rescan = parse_decimal_int(value) == 1
        elif key == ACTIONS_KEY:
            # The server counts its interleaved action entries in the total
            self.actions += 1

        if key in self._count_keys:
            self.counts[key] = parse_decimal_int(value)
            return

        batch = self._delimiters.get(key)
        if batch is not None:
            self.begin_record(batch.parser)

        if self._record is not None:
            self._record[key] = value
        elif self.descriptor.is_sticky(key):
            self.sticky[key] = token
        else:
            self.parameters[key] = value

    def feed_all(self, tokens: Iterable[Token]) -> None:
        for token in tokens:
            self.feed(token)

    def begin_record(self, parser: ParserDescriptor) -> None:
        """Close any open record and open a new one under ``parser``."""
        self.end_record()
        for batch in self.batches:
            if batch.parser is parser:
                self._open_batch = batch
                break
        else:
            raise ValueError(f"Parser is not registered for {self.descriptor.name!r}")
        self._record = {}

    def add_field(self, key: str, value: str) -> None:
        """Insert a field into the open record without classifying it."""
        if self._record is None:
            raise RuntimeError("No record is open")
        self._record[key] = value

    def end_record(self) -> None:
        if self._record is None or self._open_batch is None:
            return
        self._open_batch.records.append(self._record)
        if self.debug_logging:
            logger.debug(f"record={self._record}")
        self._record = None
        self._open_batch = None

    def finish(
        self,
        *,
        start: int,
        count: int,
        player_id: str | None = None,
        prefix: str | None = None,
    ) -> ListResponse:
        """Finalize the open record and return the aggregated response."""
        self.end_record()
        return ListResponse(
            command=self.descriptor.name,
            start=start,
            count=count,
            batches=self.batches,
            player_id=player_id,
            prefix=prefix,
            correlation_id=self.correlation_id,
            rescan=self.rescan,
            actions=self.actions,
            counts=self.counts,
            sticky=self.sticky,
            parameters=self.parameters,
        )


def parse_line_response(
    descriptor: CommandDescriptor,
    tokens: Sequence[str],
    *,
    debug_logging: bool = False,
) -> ListResponse:
    """Parse a tokenized response line for ``descriptor``.

    Positional fields are consumed by fixed offset: player id, prefix,
    command words, start, requested count. The rest must be tagged tokens.

    Raises:
        MalformedTokenError: If a tagged token lacks its separator, or the
            positional fields are missing
    """
    ofs = descriptor.window_offset
    if len(tokens) < ofs + 2:
        raise MalformedTokenError(" ".join(tokens))

    player_id = decode(tokens[0]) if descriptor.player_specific else None
    prefix = decode(tokens[descriptor.command_offset - 1]) if descriptor.prefixed else None
    start = parse_decimal_int(decode(tokens[ofs]))
    count = parse_decimal_int(decode(tokens[ofs + 1]))

    aggregator = ListAggregator(descriptor, debug_logging=debug_logging)
    for raw in tokens[ofs + 2 :]:
        aggregator.feed(split_token(raw))
    return aggregator.finish(start=start, count=count, player_id=player_id, prefix=prefix)
