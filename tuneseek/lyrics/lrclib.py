"""
LRCLIB API client

Two endpoints are used:
- GET /api/search?q=...  free-text search, returns a list of records
- GET /api/get?artist_name=...&track_name=...[&duration=...]  exact lookup,
  returns one record or 404

Records carry ``syncedLyrics`` ([mm:ss.xx] tagged text) and ``plainLyrics``.
Every request uses the configured timeout; transport errors, timeouts, HTTP
errors other than 404, and non-JSON bodies raise LyricsServiceError.
"""

from typing import Any, Dict, List, Optional

import requests

from ..config.settings import get_settings
from ..exceptions import LyricsServiceError
from ..utils.logger import get_logger


class LrcLibClient:
    """Small requests-based client for lrclib.net"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.settings = get_settings()
        self.logger = get_logger(__name__)

        self.base_url = (base_url or self.settings.lyrics.base_url).rstrip('/')
        self.timeout = timeout if timeout is not None else self.settings.lyrics.timeout
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': self.settings.lyrics.user_agent})

    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise LyricsServiceError(f"LRCLIB request failed: {e}", details={'url': url, 'params': params})

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            raise LyricsServiceError(f"LRCLIB returned HTTP {response.status_code}",
                                     details={'url': url, 'original_error': str(e)})
        except ValueError as e:
            raise LyricsServiceError(f"LRCLIB returned invalid JSON: {e}", details={'url': url})

    def search(self, query: str) -> List[Dict[str, Any]]:
        """
        Free-text search

        Args:
            query: Usually "artist title"

        Returns:
            Matching records in service order (possibly empty)
        """
        data = self._get('/api/search', {'q': query})
        self.logger.debug(f"LRCLIB search '{query}' returned {len(data) if isinstance(data, list) else 0} records")
        return data if isinstance(data, list) else []

    def get(self, artist: str, title: str, duration: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """
        Exact lookup by artist and title

        Args:
            artist: Artist name
            title: Track title
            duration: Optional duration hint in seconds

        Returns:
            The record, or None when LRCLIB has no match
        """
        params: Dict[str, Any] = {'artist_name': artist, 'track_name': title}
        if duration and duration > 0:
            params['duration'] = int(round(duration))
        data = self._get('/api/get', params)
        return data if isinstance(data, dict) else None
