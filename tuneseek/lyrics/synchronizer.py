"""
Time-synchronized lyrics

Fetches [mm:ss.xx] tagged lyrics from LRCLIB, parses them into a sorted
LyricTrack, and answers "which line is current at time t".

Fetch strategy (first success wins, each failure only ends its own step):
1. Search with the normalized "artist title"; take the first record that
   carries synced lyrics.
2. If the raw title looks like "Artist - Title", split it and search again.
3. Exact lookup by artist and title, without a duration hint.

A missing result is reported as None (not found). An empty LyricTrack is
the "no lyrics" sentinel a playback session stores once fetching is over,
which keeps "not fetched yet" (None) distinct from "nothing found".
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config.settings import get_settings
from ..exceptions import LyricsServiceError
from ..utils.helpers import clean_artist_name, clean_for_lookup, normalize_key, split_artist_title
from ..utils.logger import get_logger


# One or more leading time tags followed by the line text
_LINE_RE = re.compile(r'^\s*((?:\[\d+:\d+(?:\.\d+)?\])+)(.*)$')
_TAG_RE = re.compile(r'\[(\d+):(\d+(?:\.\d+)?)\]')


@dataclass(frozen=True)
class LyricLine:
    """A lyric line and the offset (seconds from track start) it begins at"""
    timestamp: float
    text: str


@dataclass(frozen=True)
class LyricTrack:
    """
    Lyric lines sorted ascending by timestamp

    An empty track is the "no lyrics found" sentinel.
    """
    lines: Tuple[LyricLine, ...] = ()
    source: str = ""

    @classmethod
    def not_found(cls) -> 'LyricTrack':
        return cls(lines=(), source="none")

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def __len__(self) -> int:
        return len(self.lines)

    def line_index_at(self, elapsed: float) -> int:
        return find_line_index(self.lines, elapsed)

    def line_at(self, index: int) -> Optional[LyricLine]:
        if 0 <= index < len(self.lines):
            return self.lines[index]
        return None


def parse_lrc(text: Optional[str]) -> List[LyricLine]:
    """
    Parse LRC text into lines sorted by timestamp

    Lines without a leading [mm:ss.xx] tag (metadata such as [ar:...],
    blank lines, plain text) are skipped. A line with several leading tags
    is repeated once per tag. Sorting is stable, so lines sharing a
    timestamp keep their source order.

    Args:
        text: LRC document

    Returns:
        Sorted list of LyricLine
    """
    if not text:
        return []

    lines = []
    for raw_line in text.splitlines():
        match = _LINE_RE.match(raw_line)
        if not match:
            continue
        tags, lyric = match.groups()
        for minutes, seconds in _TAG_RE.findall(tags):
            lines.append(LyricLine(timestamp=int(minutes) * 60 + float(seconds), text=lyric.strip()))

    return sorted(lines, key=lambda line: line.timestamp)


def find_line_index(lines: Sequence[LyricLine], elapsed: float) -> int:
    """
    Index of the last line whose timestamp is <= elapsed

    Args:
        lines: Lines sorted ascending by timestamp
        elapsed: Playback position in seconds

    Returns:
        Line index, or -1 when elapsed is before the first line
    """
    index = -1
    for i, line in enumerate(lines):
        if line.timestamp > elapsed:
            break
        index = i
    return index


class LyricSynchronizer:
    """
    Fetches synced lyrics for a track

    The client dependency only needs search(query) -> list of records and
    get(artist, title) -> record or None, raising LyricsServiceError on failure.
    """

    def __init__(self, client=None):
        self.settings = get_settings()
        self.logger = get_logger(__name__)

        if client is None:
            from .lrclib import LrcLibClient
            client = LrcLibClient()
        self.client = client

    @staticmethod
    def _track_from_record(record: Dict[str, Any], source: str) -> Optional[LyricTrack]:
        lines = parse_lrc(record.get('syncedLyrics'))
        if not lines:
            return None
        return LyricTrack(lines=tuple(lines), source=source)

    def _search(self, artist_key: str, title_key: str) -> Optional[LyricTrack]:
        query = f"{artist_key} {title_key}".strip()
        if not query:
            return None
        try:
            records = self.client.search(query)
        except LyricsServiceError as e:
            self.logger.debug(f"Lyrics search '{query}' failed: {e}")
            return None

        for record in records:
            track = self._track_from_record(record, source="search")
            if track:
                return track
        return None

    def _exact(self, artist: str, title: str) -> Optional[LyricTrack]:
        if not artist or not title:
            return None
        try:
            record = self.client.get(artist, title)
        except LyricsServiceError as e:
            self.logger.debug(f"Lyrics lookup '{artist}' / '{title}' failed: {e}")
            return None
        return self._track_from_record(record, source="get") if record else None

    def fetch_lyrics(self, title: str, artist: str,
                     duration_seconds: Optional[float] = None) -> Optional[LyricTrack]:
        """
        Fetch synced lyrics for a track

        Args:
            title: Raw track title
            artist: Raw artist display string
            duration_seconds: Track length; only logged, the exact lookup is sent without it

        Returns:
            Non-empty LyricTrack, or None if no strategy found synced lyrics
        """
        title_key = normalize_key(title)
        artist_key = normalize_key(clean_artist_name(artist))
        self.logger.debug(f"Fetching lyrics for '{artist}' - '{title}' ({duration_seconds}s)")

        lyrics = self._search(artist_key, title_key)
        if lyrics:
            return lyrics

        split = split_artist_title(title)
        if split:
            split_artist, split_title = split
            lyrics = self._search(normalize_key(split_artist), normalize_key(split_title))
            if lyrics:
                return lyrics

        lyrics = self._exact(clean_for_lookup(clean_artist_name(artist)), clean_for_lookup(title))
        if lyrics:
            return lyrics

        self.logger.info(f"No synced lyrics for '{artist}' - '{title}'")
        return None
