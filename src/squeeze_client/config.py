"""Client configuration.

Values default to a server on the local host and can be overridden from the
environment:

    SQUEEZE_HOST        server host name (localhost)
    SQUEEZE_CLI_PORT    line protocol port (9090)
    SQUEEZE_HTTP_PORT   HTTP / Comet port (9000)
    SQUEEZE_PAGE_SIZE   items per follow-up page (20)
    SQUEEZE_TRANSPORT   "cli" or "comet" (cli)
    SQUEEZE_DEBUG       "1" to trace every token and record
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .paging import DEFAULT_PAGE_SIZE, MIN_PAGE_SIZE

TRANSPORT_CLI = "cli"
TRANSPORT_COMET = "comet"

ENV_PREFIX = "SQUEEZE_"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from e


def _env_flag(name: str) -> bool:
    return os.getenv(ENV_PREFIX + name, "").lower() in ("1", "true", "yes", "on")


@dataclass
class ClientConfig:
    """Connection and paging settings."""

    host: str = "localhost"
    cli_port: int = 9090
    http_port: int = 9000
    page_size: int = DEFAULT_PAGE_SIZE
    transport: str = TRANSPORT_CLI
    connect_timeout: float = 10.0
    debug_logging: bool = False

    def __post_init__(self) -> None:
        if self.page_size < MIN_PAGE_SIZE:
            raise ValueError(f"page_size must be at least {MIN_PAGE_SIZE}, got {self.page_size}")
        if self.transport not in (TRANSPORT_CLI, TRANSPORT_COMET):
            raise ValueError(f"Unknown transport: {self.transport!r}")

    @property
    def comet_url(self) -> str:
        return f"http://{self.host}:{self.http_port}/cometd"

    @classmethod
    def from_env(cls) -> ClientConfig:
        """Build a config from ``SQUEEZE_*`` environment variables."""
        return cls(
            host=os.getenv(ENV_PREFIX + "HOST") or cls.host,
            cli_port=_env_int("CLI_PORT", cls.cli_port),
            http_port=_env_int("HTTP_PORT", cls.http_port),
            page_size=_env_int("PAGE_SIZE", DEFAULT_PAGE_SIZE),
            transport=os.getenv(ENV_PREFIX + "TRANSPORT") or cls.transport,
            debug_logging=_env_flag("DEBUG"),
        )
