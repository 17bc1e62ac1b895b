"""
Catalog data models

A single catalog search can return songs, albums and playlists. Each kind
is its own frozen dataclass carrying only the fields that make sense for it,
and every one exposes a ``kind`` discriminant so callers can branch on
``item.kind`` without isinstance chains:

    for item in results:
        if item.kind is ItemKind.TRACK:
            play(item)
        elif item.kind is ItemKind.ALBUM:
            browse(item.title, item.artist)

Track count only exists on albums and playlists.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from ..utils.helpers import format_duration


class ItemKind(Enum):
    """Discriminant for catalog search results"""
    TRACK = "track"
    ALBUM = "album"
    PLAYLIST = "playlist"


@dataclass(frozen=True)
class Track:
    """
    One playable item

    Attributes:
        identifier: Opaque video id resolvable by the audio backend
        title: Track title as listed by the catalog
        artist: Artist display string
        thumbnail_url: Largest thumbnail available, if any
        album_name: Album the catalog attributes the track to (used for matching)
        duration_seconds: Track length if the catalog reported one
    """
    identifier: str
    title: str
    artist: str
    thumbnail_url: Optional[str] = None
    album_name: Optional[str] = None
    duration_seconds: Optional[int] = None
    kind: ItemKind = field(default=ItemKind.TRACK, init=False)

    @property
    def display_name(self) -> str:
        return f"{self.artist} - {self.title}" if self.artist else self.title

    @property
    def duration_str(self) -> str:
        return format_duration(self.duration_seconds) if self.duration_seconds else "--:--"

    @property
    def watch_url(self) -> str:
        return f"https://music.youtube.com/watch?v={self.identifier}"


@dataclass(frozen=True)
class AlbumItem:
    """An album listed by the catalog"""
    title: str
    artist: str
    browse_id: Optional[str] = None
    year: Optional[str] = None
    track_count: Optional[int] = None
    thumbnail_url: Optional[str] = None
    kind: ItemKind = field(default=ItemKind.ALBUM, init=False)

    @property
    def display_name(self) -> str:
        suffix = f" ({self.year})" if self.year else ""
        return f"{self.artist} - {self.title}{suffix}" if self.artist else f"{self.title}{suffix}"


@dataclass(frozen=True)
class PlaylistItem:
    """A playlist listed by the catalog; browsed the same way as an album"""
    title: str
    author: str
    browse_id: Optional[str] = None
    track_count: Optional[int] = None
    thumbnail_url: Optional[str] = None
    kind: ItemKind = field(default=ItemKind.PLAYLIST, init=False)

    @property
    def artist(self) -> str:
        return self.author

    @property
    def display_name(self) -> str:
        return f"{self.author} - {self.title}" if self.author else self.title


CatalogItem = Union[Track, AlbumItem, PlaylistItem]
