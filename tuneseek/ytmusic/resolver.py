"""
Album track-list reconstruction

The catalog has no reliable "list the tracks of this album" call for
unauthenticated clients, so an album is rebuilt from song searches.

Algorithm Overview:
1. Strict pass: a fixed, ordered list of query variants is tried, one catalog
   call per variant. A candidate is accepted when its album AND its artist
   match the query (lenient containment on normalized keys), its identifier
   is resolvable, and it has not been accepted before. The first variant
   that yields at least one accepted track wins.
2. Fallback pass: if nothing was accepted, the first candidate returned by
   each variant (in variant order) is used as a seed for the catalog's
   related-tracks expansion. Here a candidate is accepted when its album
   matches, OR when its artist matches and fewer than
   catalog.related_artist_cap tracks have been accepted so far.
3. If both passes come back empty, the result is "not found".

A failing catalog call only ends its own variant (or seed); resolution as
a whole never aborts because of one. Catalog order is preserved.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from ..config.settings import get_settings
from ..exceptions import CatalogError
from ..utils.helpers import keys_match, normalize_key
from ..utils.logger import get_logger
from ..utils.validation import is_valid_identifier
from .models import Track


@dataclass(frozen=True)
class AlbumQuery:
    """
    Album resolution input with its comparison keys computed once

    Attributes:
        album_title: Album title as typed or listed
        artist_name: Artist name as typed or listed
        album_key: normalize_key(album_title)
        artist_key: normalize_key(artist_name)
    """
    album_title: str
    artist_name: str
    album_key: str = field(init=False)
    artist_key: str = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, 'album_key', normalize_key(self.album_title))
        object.__setattr__(self, 'artist_key', normalize_key(self.artist_name))

    def variants(self) -> List[str]:
        """Query phrasings in the order they are tried"""
        title, artist = self.album_title.strip(), self.artist_name.strip()
        return [
            f"{title} {artist}",
            f"{artist} album {title}",
            f'"{title}" "{artist}"',
            title,
        ]

    def album_matches(self, track: Track) -> bool:
        return self._matches(self.album_title, self.album_key, track.album_name)

    def artist_matches(self, track: Track) -> bool:
        return self._matches(self.artist_name, self.artist_key, track.artist)

    @staticmethod
    def _matches(raw: str, key: str, candidate: Optional[str]) -> bool:
        """
        Containment match on normalized keys

        A candidate without the field never matches. When both sides
        normalize to nothing (titles such as "Lyrics" or "( )"), the raw
        strings are compared case-insensitively instead.
        """
        if not candidate or not candidate.strip():
            return False
        candidate_key = normalize_key(candidate)
        if not key and not candidate_key:
            return raw.strip().casefold() == candidate.strip().casefold()
        return keys_match(key, candidate_key)


@dataclass(frozen=True)
class ResolutionResult:
    """
    Outcome of an album resolution

    Either found (non-empty tracks, in discovery order) or not found, in which
    case tracks is empty and message names the album and artist attempted.
    """
    query: AlbumQuery
    tracks: Tuple[Track, ...] = ()
    strategy: Optional[str] = None
    message: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.tracks)

    @classmethod
    def success(cls, query: AlbumQuery, tracks: List[Track], strategy: str) -> 'ResolutionResult':
        return cls(query=query, tracks=tuple(tracks), strategy=strategy)

    @classmethod
    def not_found(cls, query: AlbumQuery) -> 'ResolutionResult':
        return cls(
            query=query,
            message=f"No tracks found for album '{query.album_title}' by '{query.artist_name}'",
        )


class _Accumulator:
    """Ordered, identifier-deduplicated list of accepted tracks"""

    def __init__(self):
        self.tracks: List[Track] = []
        self._seen: Set[str] = set()

    def __len__(self) -> int:
        return len(self.tracks)

    def offer(self, track: Track, accept: Callable[[Track], bool]) -> bool:
        if not is_valid_identifier(track.identifier) or track.identifier in self._seen:
            return False
        if not accept(track):
            return False
        self._seen.add(track.identifier)
        self.tracks.append(track)
        return True


class AlbumResolver:
    """
    Rebuilds album track lists from catalog song searches

    The catalog dependency only needs two methods, search_tracks(query) and
    related_tracks(seed), both raising CatalogError on failure.
    """

    def __init__(self, catalog=None, related_artist_cap: Optional[int] = None):
        """
        Initialize album resolver

        Args:
            catalog: Catalog client, defaults to the shared CatalogClient
            related_artist_cap: Override for catalog.related_artist_cap
        """
        self.settings = get_settings()
        self.logger = get_logger(__name__)

        if catalog is None:
            from .searcher import get_catalog_client
            catalog = get_catalog_client()
        self.catalog = catalog
        self.related_artist_cap = (
            related_artist_cap if related_artist_cap is not None
            else self.settings.catalog.related_artist_cap
        )

    def resolve_album_tracks(self, album_title: str, artist_name: str) -> ResolutionResult:
        """
        Reconstruct the ordered track list of an album

        Args:
            album_title: Album title
            artist_name: Album artist

        Returns:
            ResolutionResult, found or not found. Never raises for catalog failures.
        """
        query = AlbumQuery(album_title, artist_name)
        self.logger.info(f"Resolving album '{album_title}' by '{artist_name}'")

        seeds: List[Track] = []
        for index, variant in enumerate(query.variants(), 1):
            candidates = self._search_variant(variant)
            if candidates:
                seeds.append(candidates[0])

            accepted = _Accumulator()
            for candidate in candidates:
                accepted.offer(candidate, lambda t: query.album_matches(t) and query.artist_matches(t))

            if accepted.tracks:
                self.logger.info(f"Variant {index} '{variant}' matched {len(accepted)} tracks")
                return ResolutionResult.success(query, accepted.tracks, f"variant {index}")

        self.logger.debug(f"No strict match for '{album_title}', trying related tracks of {len(seeds)} seeds")

        for seed in seeds:
            tracks = self._expand_seed(query, seed)
            if tracks:
                self.logger.info(f"Related tracks of {seed.identifier} matched {len(tracks)} tracks")
                return ResolutionResult.success(query, tracks, "related")

        self.logger.info(f"Album '{album_title}' by '{artist_name}' not found")
        return ResolutionResult.not_found(query)

    def _search_variant(self, variant: str) -> List[Track]:
        try:
            return list(self.catalog.search_tracks(variant))
        except CatalogError as e:
            self.logger.debug(f"Variant '{variant}' failed: {e}")
            return []

    def _expand_seed(self, query: AlbumQuery, seed: Track) -> List[Track]:
        try:
            related = self.catalog.related_tracks(seed)
        except CatalogError as e:
            self.logger.debug(f"Related tracks for seed {seed.identifier} failed: {e}")
            return []

        accepted = _Accumulator()

        def loose_match(track: Track) -> bool:
            if query.album_matches(track):
                return True
            return query.artist_matches(track) and len(accepted) < self.related_artist_cap

        for candidate in related:
            accepted.offer(candidate, loose_match)
        return accepted.tracks


def resolve_album_tracks(album_title: str, artist_name: str) -> ResolutionResult:
    """Resolve an album with the shared catalog client"""
    return AlbumResolver().resolve_album_tracks(album_title, artist_name)
