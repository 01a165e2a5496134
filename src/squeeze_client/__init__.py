"""Squeeze client - paged list queries against a Squeezebox / Lyrion media server.

Provides these transports:
- cli: the tag-encoded line protocol over TCP
- comet: Bayeux long-polling over HTTP
- mock: for testing without real I/O

Both share one ListQueryEngine, which registers list queries, parses their
replies and orders the remaining pages.
"""

from .client import CometClient, LineClient, SqueezeClient, create_client
from .config import ClientConfig
from .engine import ListQueryEngine
from .errors import (
    MalformedTokenError,
    ProtocolError,
    SqueezeClientError,
    TransportError,
    UnknownCommandError,
)
from .models import (
    Album,
    Artist,
    Genre,
    Item,
    MusicFolderItem,
    Player,
    Playlist,
    Plugin,
    PluginItem,
    Song,
    Year,
)
from .paging import PaginationDriver
from .protocol.catalog import DEFAULT_CATALOG, CommandCatalog, ListCommand
from .registry import CorrelationRegistry
from .transport import (
    BaseClientTransport,
    ClientTransport,
    CometTransport,
    MockTransport,
    SocketTransport,
    TransportState,
    create_comet_transport,
    create_mock_transport,
    create_socket_transport,
)

__version__ = "0.1.0"

__all__ = [
    # Clients
    "SqueezeClient",
    "LineClient",
    "CometClient",
    "create_client",
    "ClientConfig",
    # Engine
    "ListQueryEngine",
    "CorrelationRegistry",
    "PaginationDriver",
    "CommandCatalog",
    "ListCommand",
    "DEFAULT_CATALOG",
    # Transports
    "ClientTransport",
    "BaseClientTransport",
    "TransportState",
    "SocketTransport",
    "CometTransport",
    "MockTransport",
    "create_socket_transport",
    "create_comet_transport",
    "create_mock_transport",
    # Items
    "Item",
    "Player",
    "Artist",
    "Album",
    "Genre",
    "Year",
    "Song",
    "Playlist",
    "MusicFolderItem",
    "Plugin",
    "PluginItem",
    # Errors
    "SqueezeClientError",
    "ProtocolError",
    "MalformedTokenError",
    "UnknownCommandError",
    "TransportError",
]
