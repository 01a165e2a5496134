"""Command catalog: the list commands the client knows how to page through.

Each command is an immutable ``CommandDescriptor`` in a name-keyed table.
Result handling is selected by ``ParserDescriptor`` rather than by subclass:
a descriptor names the tags that carry the list's total and that start a new
item, plus a factory turning a finished record into a typed item.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import UnknownCommandError
from ..models import (
    Album,
    Artist,
    Genre,
    MusicFolderItem,
    Player,
    Playlist,
    Plugin,
    PluginItem,
    Song,
    Year,
)

ItemFactory = Callable[[dict[str, str]], Any]


class ListCommand(str, Enum):
    """All list commands in the default catalog."""

    PLAYERS = "players"
    ARTISTS = "artists"
    ALBUMS = "albums"
    YEARS = "years"
    GENRES = "genres"
    MUSIC_FOLDER = "musicfolder"
    SONGS = "songs"
    PLAYLISTS = "playlists"
    PLAYLIST_TRACKS = "playlists tracks"
    SEARCH = "search"
    STATUS = "status"
    RADIOS = "radios"
    APPS = "apps"
    ITEMS = "items"


@dataclass(frozen=True)
class ParserDescriptor:
    """How to extract one logical list from a response.

    Attributes:
        item_factory: Builds a typed item from a finished record
        count_key: Tag carrying the server's total for this list
        item_delimiter: Tag whose appearance starts a new record
        loop: Name of the record array in Comet (JSON) responses
    """

    item_factory: ItemFactory
    count_key: str = "count"
    item_delimiter: str = "id"
    loop: str | None = None

    def build(self, record: dict[str, str]) -> Any:
        return self.item_factory(record)


@dataclass(frozen=True)
class CommandDescriptor:
    """Static description of one list command."""

    name: str
    sticky_parameters: frozenset[str]
    parsers: tuple[ParserDescriptor, ...]
    player_specific: bool = False
    prefixed: bool = False

    @property
    def words(self) -> tuple[str, ...]:
        return tuple(self.name.split(" "))

    @property
    def command_offset(self) -> int:
        """Position of the first command word in a response line."""
        return int(self.player_specific) + int(self.prefixed)

    @property
    def window_offset(self) -> int:
        """Position of the ``start`` field in a response line."""
        return self.command_offset + len(self.words)

    def is_sticky(self, key: str) -> bool:
        return key in self.sticky_parameters


def list_command(
    name: str | ListCommand,
    sticky: Iterable[str],
    *parsers: ParserDescriptor,
    player_specific: bool = False,
    prefixed: bool = False,
) -> CommandDescriptor:
    """Build a command descriptor."""
    return CommandDescriptor(
        name=name.value if isinstance(name, ListCommand) else name,
        sticky_parameters=frozenset(sticky),
        parsers=tuple(parsers),
        player_specific=player_specific,
        prefixed=prefixed,
    )


@dataclass
class CommandCatalog:
    """Name-keyed registry of command descriptors."""

    _commands: dict[str, CommandDescriptor] = field(default_factory=dict)

    @classmethod
    def of(cls, descriptors: Iterable[CommandDescriptor]) -> CommandCatalog:
        return cls(_commands={d.name: d for d in descriptors})

    def get(self, name: str | ListCommand) -> CommandDescriptor | None:
        key = name.value if isinstance(name, ListCommand) else name
        return self._commands.get(key)

    def lookup(self, name: str | ListCommand) -> CommandDescriptor:
        """Return the descriptor for ``name``.

        Raises:
            UnknownCommandError: If no such command is registered
        """
        descriptor = self.get(name)
        if descriptor is None:
            raise UnknownCommandError(name.value if isinstance(name, ListCommand) else name)
        return descriptor

    def resolve(self, tokens: Sequence[str]) -> CommandDescriptor:
        """Find the descriptor a decoded response line belongs to.

        The command words must appear at the descriptor's positional offset,
        followed by the start and count fields. The longest matching command
        wins, so ``playlists tracks`` is preferred over ``playlists``.

        Raises:
            UnknownCommandError: If no descriptor matches
        """
        best: CommandDescriptor | None = None
        for descriptor in self._commands.values():
            offset = descriptor.command_offset
            words = descriptor.words
            if len(tokens) < descriptor.window_offset + 2:
                continue
            if tuple(tokens[offset : offset + len(words)]) != words:
                continue
            if best is None or len(words) > len(best.words):
                best = descriptor
        if best is None:
            raise UnknownCommandError(" ".join(tokens[:3]))
        return best

    def is_sticky(self, name: str, key: str) -> bool:
        """Whether ``key`` must be repeated on follow-up pages of ``name``."""
        return self.lookup(name).is_sticky(key)

    def names(self) -> list[str]:
        return list(self._commands)

    def __contains__(self, name: object) -> bool:
        if isinstance(name, ListCommand):
            name = name.value
        return name in self._commands

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)


def default_descriptors() -> list[CommandDescriptor]:
    """Descriptors for every list command of the media server CLI."""
    return [
        list_command(
            ListCommand.PLAYERS,
            ("playerprefs", "charset"),
            ParserDescriptor(Player.from_record, item_delimiter="playerid", loop="players_loop"),
        ),
        list_command(
            ListCommand.ARTISTS,
            ("search", "genre_id", "album_id", "tags", "charset"),
            ParserDescriptor(Artist.from_record, loop="artists_loop"),
        ),
        list_command(
            ListCommand.ALBUMS,
            (
                "search", "genre_id", "artist_id", "track_id", "year",
                "compilation", "sort", "tags", "charset",
            ),
            ParserDescriptor(Album.from_record, loop="albums_loop"),
        ),
        list_command(
            ListCommand.YEARS,
            ("charset",),
            ParserDescriptor(Year.from_record, item_delimiter="year", loop="years_loop"),
        ),
        list_command(
            ListCommand.GENRES,
            ("search", "artist_id", "album_id", "track_id", "year", "tags", "charset"),
            ParserDescriptor(Genre.from_record, loop="genres_loop"),
        ),
        list_command(
            ListCommand.MUSIC_FOLDER,
            ("folder_id", "url", "tags", "charset"),
            ParserDescriptor(MusicFolderItem.from_record, loop="folder_loop"),
        ),
        list_command(
            ListCommand.SONGS,
            ("genre_id", "artist_id", "album_id", "year", "search", "tags", "sort", "charset"),
            ParserDescriptor(Song.from_record, loop="titles_loop"),
        ),
        list_command(
            ListCommand.PLAYLISTS,
            ("search", "tags", "charset"),
            ParserDescriptor(Playlist.from_record, loop="playlists_loop"),
        ),
        list_command(
            ListCommand.PLAYLIST_TRACKS,
            ("playlist_id", "tags", "charset"),
            ParserDescriptor(
                Song.from_record, item_delimiter="playlist index", loop="playlisttracks_loop"
            ),
        ),
        list_command(
            ListCommand.SEARCH,
            ("term", "charset"),
            ParserDescriptor(
                Genre.from_record, "genres_count", "genre_id", loop="genres_loop"
            ),
            ParserDescriptor(
                Album.from_record, "albums_count", "album_id", loop="albums_loop"
            ),
            ParserDescriptor(
                Artist.from_record, "contributors_count", "contributor_id", loop="contributors_loop"
            ),
            ParserDescriptor(
                Song.from_record, "tracks_count", "track_id", loop="tracks_loop"
            ),
        ),
        list_command(
            ListCommand.STATUS,
            ("tags", "charset", "subscribe"),
            ParserDescriptor(
                Song.from_record, "playlist_tracks", "playlist index", loop="playlist_loop"
            ),
            player_specific=True,
        ),
        list_command(
            ListCommand.RADIOS,
            ("sort", "charset"),
            ParserDescriptor(Plugin.from_record, item_delimiter="icon", loop="radioss_loop"),
        ),
        list_command(
            ListCommand.APPS,
            ("sort", "charset"),
            ParserDescriptor(Plugin.from_record, item_delimiter="icon", loop="appss_loop"),
        ),
        list_command(
            ListCommand.ITEMS,
            ("item_id", "search", "want_url", "charset"),
            ParserDescriptor(PluginItem.from_record, loop="loop_loop"),
            player_specific=True,
            prefixed=True,
        ),
    ]


DEFAULT_CATALOG = CommandCatalog.of(default_descriptors())
