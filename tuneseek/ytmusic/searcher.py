"""
YouTube Music catalog client

Thin, timeout-bounded wrapper around ytmusicapi that turns raw search
payloads into the tagged catalog models (Track, AlbumItem, PlaylistItem).

Every call can fail: the network may be down, the unofficial API may change
shape, or a request may time out. All of these surface as a single
CatalogError so that callers (the album resolver in particular) can treat a
failed call as one failed strategy and move on.

Timeouts:
ytmusicapi issues its HTTP requests through a requests.Session that does not
set a timeout. The client therefore hands ytmusicapi a session subclass that
applies catalog.request_timeout to every request unless one is given.

Rate Limiting:
An optional minimum interval between requests (catalog.rate_limit_delay) is
enforced before every call. The default of zero disables it.
"""

import time
from typing import Any, Dict, List, Optional

import requests
from ytmusicapi import YTMusic
from ytmusicapi.exceptions import YTMusicError

from ..config.settings import get_settings
from ..exceptions import CatalogError, NotFoundError
from ..utils.helpers import clean_artist_name, parse_duration_string
from ..utils.logger import get_logger
from ..utils.validation import is_valid_identifier
from .models import AlbumItem, CatalogItem, PlaylistItem, Track


SEARCH_FILTERS = {
    'all': None,
    'songs': 'songs',
    'albums': 'albums',
    'playlists': 'playlists',
}

# Failures of a single catalog call; anything else is a programming error
CATALOG_FAILURES = (YTMusicError, requests.RequestException, KeyError, TypeError, ValueError, AttributeError)

# Malformed payload fields raise one of these while parsing
PARSE_FAILURES = (KeyError, TypeError, ValueError, AttributeError)


class TimeoutSession(requests.Session):
    """requests.Session that applies a default timeout to every request"""

    def __init__(self, timeout: float):
        super().__init__()
        self.default_timeout = timeout

    def request(self, method, url, **kwargs):
        if kwargs.get('timeout') is None:
            kwargs['timeout'] = self.default_timeout
        return super().request(method, url, **kwargs)


def _first_artist(raw: Dict[str, Any]) -> str:
    artists = raw.get('artists') or []
    names = [a.get('name') for a in artists if isinstance(a, dict) and a.get('name')]
    if names:
        return clean_artist_name(", ".join(names))
    # Playlists and some album payloads carry a plain author/artist string
    return clean_artist_name(raw.get('author') or raw.get('artist') or '')


def _best_thumbnail(raw: Dict[str, Any]) -> Optional[str]:
    # Search payloads use 'thumbnails', watch playlists use 'thumbnail'
    thumbnails = raw.get('thumbnails') or raw.get('thumbnail') or []
    if isinstance(thumbnails, list) and thumbnails:
        return thumbnails[-1].get('url')
    return None


def _duration(raw: Dict[str, Any]) -> Optional[int]:
    if raw.get('duration_seconds'):
        return int(raw['duration_seconds'])
    return parse_duration_string(raw.get('duration') or raw.get('length'))


def _track_count(raw: Dict[str, Any]) -> Optional[int]:
    count = raw.get('itemCount') or raw.get('trackCount')
    if count is None:
        return None
    try:
        return int(str(count).split()[0].replace(',', ''))
    except ValueError:
        return None


def parse_track(raw: Dict[str, Any]) -> Optional[Track]:
    """
    Build a Track from a song/video payload

    Returns:
        Track, or None if the payload has no video id
    """
    identifier = raw.get('videoId')
    if not identifier:
        return None
    album = raw.get('album')
    return Track(
        identifier=identifier,
        title=raw.get('title') or '',
        artist=_first_artist(raw),
        thumbnail_url=_best_thumbnail(raw),
        album_name=album.get('name') if isinstance(album, dict) else album,
        duration_seconds=_duration(raw),
    )


def parse_item(raw: Dict[str, Any]) -> Optional[CatalogItem]:
    """
    Classify one search payload by its resultType

    Songs and videos become tracks, albums (including singles and EPs)
    become AlbumItem, playlists become PlaylistItem. Artists, podcasts and
    other kinds are not playable and are dropped (None).
    """
    result_type = raw.get('resultType') or (raw.get('category') or '').lower().rstrip('s')

    if result_type in ('song', 'video'):
        return parse_track(raw)

    if result_type in ('album', 'single', 'ep'):
        return AlbumItem(
            title=raw.get('title') or '',
            artist=_first_artist(raw),
            browse_id=raw.get('browseId'),
            year=str(raw['year']) if raw.get('year') else None,
            track_count=_track_count(raw),
            thumbnail_url=_best_thumbnail(raw),
        )

    if result_type == 'playlist':
        return PlaylistItem(
            title=raw.get('title') or '',
            author=_first_artist(raw),
            browse_id=raw.get('browseId'),
            track_count=_track_count(raw),
            thumbnail_url=_best_thumbnail(raw),
        )

    return None


class CatalogClient:
    """
    YouTube Music catalog client

    Operations:
    - search(): general search with a result-type filter, returning tagged items
    - search_tracks(): song search used by the album resolver
    - related_tracks(): "up next" expansion of a seed track
    """

    def __init__(self, ytmusic: Optional[YTMusic] = None):
        """
        Initialize catalog client

        Args:
            ytmusic: Pre-built YTMusic client (tests); created lazily otherwise
        """
        self.settings = get_settings()
        self.logger = get_logger(__name__)

        self._ytmusic = ytmusic
        self.max_results = self.settings.catalog.max_results
        self.timeout = self.settings.catalog.request_timeout

        self.last_request_time = 0.0
        self.min_request_interval = self.settings.catalog.rate_limit_delay

    @property
    def ytmusic(self) -> YTMusic:
        """
        YouTube Music API client with lazy initialization

        Uses unauthenticated public access, which is enough for search and
        watch playlists.

        Raises:
            CatalogError: If the client cannot be initialized
        """
        if self._ytmusic is None:
            try:
                self._ytmusic = YTMusic(
                    requests_session=TimeoutSession(self.timeout),
                    language=self.settings.catalog.language,
                )
                self.logger.debug("YouTube Music API initialized")
            except CATALOG_FAILURES as e:
                raise CatalogError(f"YouTube Music initialization failed: {e}")
        return self._ytmusic

    def _rate_limit(self) -> None:
        """Enforce the configured minimum interval between requests"""
        if self.min_request_interval <= 0:
            return
        time_since_last = time.time() - self.last_request_time
        if time_since_last < self.min_request_interval:
            time.sleep(self.min_request_interval - time_since_last)
        self.last_request_time = time.time()

    def _raw_search(self, query: str, filter: Optional[str], limit: int) -> List[Dict[str, Any]]:
        self._rate_limit()
        try:
            results = self.ytmusic.search(query=query, filter=filter, limit=limit)
        except CATALOG_FAILURES as e:
            self.logger.debug(f"YTMusic search '{query}' ({filter or 'all'}) failed: {e}")
            raise CatalogError(f"Catalog search failed: {e}", details={'query': query, 'filter': filter})

        if not isinstance(results, list):
            raise CatalogError("Catalog search returned an unexpected payload", details={'query': query})

        self.logger.debug(f"YTMusic search '{query}' ({filter or 'all'}) returned {len(results)} results")
        return results

    def _parse_all(self, raw_results: List[Dict[str, Any]], parser, context: str) -> List[Any]:
        """
        Parse payload items in order, dropping the ones the parser rejects

        Raises:
            CatalogError: If an item is malformed
        """
        parsed = []
        for raw in raw_results:
            try:
                item = parser(raw)
            except PARSE_FAILURES as e:
                self.logger.debug(f"Unparsable catalog item for {context}: {e}")
                raise CatalogError(f"Catalog returned a malformed item: {e}", details={'context': context})
            if item is not None:
                parsed.append(item)
        return parsed

    def search(self, query: str, filter: str = 'all', limit: Optional[int] = None) -> List[CatalogItem]:
        """
        General catalog search

        Args:
            query: Free-text query
            filter: One of 'all', 'songs', 'albums', 'playlists'
            limit: Maximum number of results requested from the catalog

        Returns:
            Tagged items in catalog order; tracks with unresolvable ids are dropped

        Raises:
            CatalogError: On transport or decoding failure
            ValueError: On an unknown filter
        """
        if filter not in SEARCH_FILTERS:
            raise ValueError(f"Unknown search filter: {filter}")

        raw_results = self._raw_search(query, SEARCH_FILTERS[filter], limit or self.max_results)

        items = self._parse_all(raw_results, parse_item, query)
        return [item for item in items
                if not isinstance(item, Track) or is_valid_identifier(item.identifier)]

    def search_tracks(self, query: str, limit: Optional[int] = None) -> List[Track]:
        """
        Song search

        Returns every parsed candidate in catalog order, including ones with
        short identifiers; validation is up to the caller.

        Raises:
            CatalogError: On transport or decoding failure
        """
        raw_results = self._raw_search(query, 'songs', limit or self.max_results)
        return self._parse_all(raw_results, parse_track, query)

    def related_tracks(self, seed: Track, limit: int = 50) -> List[Track]:
        """
        Related-tracks expansion ("up next" queue) for a seed track

        Args:
            seed: Track to expand
            limit: Maximum queue length requested

        Returns:
            Tracks in queue order, the seed itself included when the catalog lists it

        Raises:
            CatalogError: On transport or decoding failure
        """
        self._rate_limit()
        try:
            playlist = self.ytmusic.get_watch_playlist(videoId=seed.identifier, limit=limit)
            raw_tracks = playlist.get('tracks') or []
        except CATALOG_FAILURES as e:
            self.logger.debug(f"Watch playlist for {seed.identifier} failed: {e}")
            raise CatalogError(f"Related tracks lookup failed: {e}", details={'identifier': seed.identifier})

        tracks = self._parse_all(raw_tracks, parse_track, seed.identifier)
        self.logger.debug(f"Watch playlist for {seed.identifier} returned {len(tracks)} tracks")
        return tracks

    def find_track(self, query: str) -> Track:
        """
        First playable song for a query

        Raises:
            CatalogError: On transport or decoding failure
            NotFoundError: If the search has no playable result
        """
        for track in self.search_tracks(query, limit=5):
            if is_valid_identifier(track.identifier):
                return track
        raise NotFoundError(f"No playable track found for '{query}'", details={'query': query})


# Global client instance management
_client_instance: Optional[CatalogClient] = None


def get_catalog_client() -> CatalogClient:
    """Get the shared catalog client (singleton pattern)"""
    global _client_instance
    if _client_instance is None:
        _client_instance = CatalogClient()
    return _client_instance


def reset_catalog_client() -> None:
    """Drop the shared client so the next access picks up new settings"""
    global _client_instance
    _client_instance = None
