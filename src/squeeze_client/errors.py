"""Exception hierarchy for the squeeze client."""

from __future__ import annotations


class SqueezeClientError(Exception):
    """Base class for all client errors."""


class ProtocolError(SqueezeClientError):
    """A server line or message could not be interpreted."""


class MalformedTokenError(ProtocolError):
    """A tagged token is missing its key/value separator."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Expected colon in list token: {token!r}")


class UnknownCommandError(ProtocolError):
    """No command descriptor matches the requested name or response line."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown list command: {name!r}")


class TransportError(SqueezeClientError):
    """Raised when a transport cannot complete an operation."""
