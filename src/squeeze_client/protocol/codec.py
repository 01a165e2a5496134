"""Tokenizer and decoder for the server's line protocol.

Wire format (one UTF-8 line per message, LF terminated):

    [<playerid>] [<prefix>] <command words> <start> <count> <key>%3A<value> ...

Every field is percent-encoded on its own. The tagged fields are sent as an
encoded ``key:value`` pair, so the first ``%3A`` in a token separates the key
from the value, and any colon inside the value is itself encoded.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, unquote

from ..errors import MalformedTokenError

# Encoded form of ":" separating key from value in a tagged token
ESCAPED_SEPARATOR = "%3A"

ENCODING = "utf-8"


def encode(text: str) -> str:
    """Percent-encode a single wire field (spaces become ``%20``)."""
    return quote(text, safe="", encoding=ENCODING)


def decode(text: str) -> str:
    """Decode a single percent-encoded wire field."""
    return unquote(text, encoding=ENCODING)


def parse_decimal_int(value: str | None, default: int = 0) -> int:
    """Parse an integer the way the server formats them.

    Anything after a decimal point is ignored; empty or non-numeric input
    yields ``default``.
    """
    if value is None:
        return default
    value = value.split(".", 1)[0].strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Token:
    """A decoded tagged token.

    ``raw`` keeps the exact wire text so sticky parameters can be echoed
    back to the server verbatim.
    """

    key: str
    value: str
    raw: str

    def as_parameter(self) -> str:
        """The decoded ``key:value`` form used by the Comet request array."""
        return f"{self.key}:{self.value}"


def tokenize(line: str) -> list[str]:
    """Split a raw server line into its whitespace separated wire fields."""
    return line.split()


def split_token(raw: str) -> Token:
    """Split a raw tagged token into key and value.

    Raises:
        MalformedTokenError: If the token has no escaped separator
    """
    pos = raw.find(ESCAPED_SEPARATOR)
    if pos == -1:
        raise MalformedTokenError(raw)
    return Token(
        key=decode(raw[:pos]),
        value=decode(raw[pos + len(ESCAPED_SEPARATOR) :]),
        raw=raw,
    )


def make_token(key: str, value: str) -> Token:
    """Build the wire form of a tagged parameter."""
    return Token(key=key, value=value, raw=f"{encode(key)}{ESCAPED_SEPARATOR}{encode(value)}")


def parse_parameter(parameter: str) -> Token:
    """Turn a caller supplied ``key:value`` string into a token.

    A parameter without a colon is sent as a bare key with an empty value.
    """
    key, _, value = parameter.partition(":")
    return make_token(key, value)
