"""Typed list items built from aggregated server records.

Records arrive as flat ``field -> string`` mappings. The models only name the
fields callers usually need; everything else the server sends is kept as
extra attributes.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Item(BaseModel):
    """Base for all list items."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    id: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, str]) -> Item:
        """Build an item from an aggregated record."""
        return cls.model_validate(record)

    @property
    def extra(self) -> dict[str, Any]:
        """Fields sent by the server that the model does not declare."""
        return dict(self.model_extra or {})


class Player(Item):
    playerid: str
    name: str | None = None
    model: str | None = None
    ip: str | None = None
    connected: str | None = None
    power: str | None = None

    @property
    def player_id(self) -> str:
        return self.playerid


class Artist(Item):
    artist: str | None = None
    # search results use contributor_* fields
    contributor_id: str | None = None
    contributor: str | None = None


class Album(Item):
    album: str | None = None
    artist: str | None = None
    year: str | None = None
    artwork_track_id: str | None = None
    album_id: str | None = None


class Genre(Item):
    genre: str | None = None
    genre_id: str | None = None


class Year(Item):
    year: str


class Song(Item):
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    duration: str | None = None
    tracknum: str | None = None
    track_id: str | None = None
    track: str | None = None
    playlist_index: str | None = Field(default=None, alias="playlist index")


class Playlist(Item):
    playlist: str | None = None


class MusicFolderItem(Item):
    filename: str | None = None
    type: str | None = None


class Plugin(Item):
    icon: str | None = None
    name: str | None = None
    cmd: str | None = None
    type: str | None = None


class PluginItem(Item):
    name: str | None = None
    type: str | None = None
    isaudio: str | None = None
    hasitems: str | None = None
