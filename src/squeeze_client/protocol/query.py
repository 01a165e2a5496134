"""Wire-independent description of one outbound list request."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from .codec import Token, encode, make_token

CORRELATION_KEY = "correlationid"

# Marker asking the server for the entire list in one reply
FULL_LIST_KEY = "full_list"


@dataclass(frozen=True)
class ListQuery:
    """One page request for a logical list query.

    A query keeps its correlation id across all of its pages; only the
    ``start``/``count`` window moves.
    """

    command: str
    start: int
    count: int
    correlation_id: int
    player_id: str | None = None
    prefix: str | None = None
    parameters: tuple[Token, ...] = field(default_factory=tuple)
    full_list: bool = False

    @property
    def end(self) -> int:
        return self.start + self.count

    def next_page(self, start: int, count: int, parameters: tuple[Token, ...] | None = None) -> ListQuery:
        """Same logical query, windowed to ``start``/``count``."""
        return replace(
            self,
            start=start,
            count=count,
            parameters=self.parameters if parameters is None else parameters,
        )

    def wire_parameters(self) -> tuple[Token, ...]:
        """Tagged parameters to send, with the full-list marker if needed."""
        params = tuple(p for p in self.parameters if p.key != CORRELATION_KEY)
        if self.full_list and not any(p.key == FULL_LIST_KEY for p in params):
            params += (make_token(FULL_LIST_KEY, "1"),)
        return params

    def to_line(self) -> str:
        """Render as a line for the CLI protocol.

        Player id and prefix are sent encoded; the correlation id is always
        the last token.
        """
        fields: list[str] = []
        if self.player_id is not None:
            fields.append(encode(self.player_id))
        if self.prefix is not None:
            fields.append(encode(self.prefix))
        fields.append(self.command)
        fields.append(str(self.start))
        fields.append(str(self.count))
        fields.extend(p.raw for p in self.wire_parameters())
        fields.append(f"{CORRELATION_KEY}:{self.correlation_id}")
        return " ".join(fields)

    def to_request_array(self) -> list[str]:
        """Render the command array of a Comet ``/slim/request`` message."""
        fields: list[str] = []
        if self.prefix is not None:
            fields.append(self.prefix)
        fields.extend(self.command.split(" "))
        fields.append(str(self.start))
        fields.append(str(self.count))
        fields.extend(p.as_parameter() for p in self.wire_parameters())
        fields.append(f"{CORRELATION_KEY}:{self.correlation_id}")
        return fields
