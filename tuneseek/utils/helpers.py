"""
Utility functions and helpers for tuneseek
Text normalization for matching, file naming, duration formatting and retry logic
"""

import functools
import re
import time
import unicodedata
from pathlib import Path
from typing import Optional, Tuple, Union


# Promotional and platform noise stripped from titles before comparison.
# Longest phrases first so "official music video" wins over "video".
NOISE_VOCABULARY = [
    'official music video',
    'official video',
    'official audio',
    'music video',
    'lyric video',
    'full song',
    'lyrics',
    'official',
    'video',
    'audio',
    '1080p',
    '720p',
    'vevo',
    'hd',
    '4k',
]

_BRACKETED = re.compile(r'\([^()]*\)|\[[^\[\]]*\]|\{[^{}]*\}')
_STRAY_BRACKETS = re.compile(r'[()\[\]{}]')
_NOISE = re.compile(r'\b(?:' + '|'.join(re.escape(word) for word in NOISE_VOCABULARY) + r')\b')
_FEATURING = re.compile(r'(?<!\w)(?:featuring|feat\.?|ft\.?)(?=\s|$)')
_TOPIC_SUFFIX = re.compile(r'\s+-\s*topic$')
_SEPARATORS = re.compile(r'[,;/&|"]')
_DASH_TOKENS = re.compile(r'(?:^|\s)[-–—]+(?=\s|$)')
_WHITESPACE = re.compile(r'\s+')
_NOISE_ANY_CASE = re.compile(_NOISE.pattern, re.IGNORECASE)
_FEATURING_ANY_CASE = re.compile(_FEATURING.pattern, re.IGNORECASE)

# Display-level channel suffixes, removed in order
ARTIST_SUFFIXES = [' - Topic', 'Topic', 'VEVO', 'Vevo', ' Official']


def _normalize_once(text: str) -> str:
    text = text.casefold()
    text = _BRACKETED.sub(' ', text)
    text = _STRAY_BRACKETS.sub(' ', text)
    text = _TOPIC_SUFFIX.sub('', text.strip())
    text = _NOISE.sub(' ', text)
    text = _FEATURING.sub(' ', text)
    text = _SEPARATORS.sub(' ', text)
    text = _DASH_TOKENS.sub(' ', text)
    return _WHITESPACE.sub(' ', text).strip()


def normalize_key(raw: Optional[str]) -> str:
    """
    Build a comparison key from a free-text title or artist

    Removes bracketed annotations, platform/promotional words, featuring
    markers and list separators, then case-folds and trims. The result is
    only meant for comparisons, never for display.

    The cleanup is repeated until nothing changes, which makes the function
    idempotent even for nested brackets or noise revealed by a previous pass.

    Args:
        raw: Title or artist string, may be None or empty

    Returns:
        Normalized key ("" for empty input)

    Example:
        >>> normalize_key("Song Title (Official Video) [HD] ft. Someone")
        'song title someone'
    """
    if not raw:
        return ""

    text = raw
    previous = None
    while text != previous:
        previous = text
        text = _normalize_once(text)
    return text


def clean_for_lookup(raw: Optional[str]) -> str:
    """
    Strip annotations from a title or artist for an exact service lookup

    Removes bracketed text, platform/promotional words and featuring markers
    like normalize_key, but keeps case and separators such as "&", so
    "Simon & Garfunkel (Live)" stays "Simon & Garfunkel".
    """
    if not raw:
        return ""
    text = _STRAY_BRACKETS.sub(' ', _BRACKETED.sub(' ', raw))
    text = _NOISE_ANY_CASE.sub(' ', text)
    text = _FEATURING_ANY_CASE.sub(' ', text)
    text = _DASH_TOKENS.sub(' ', text)
    return _WHITESPACE.sub(' ', text).strip()


def keys_match(left: str, right: str) -> bool:
    """
    Lenient key comparison: equal, or either key contains the other

    Empty keys never match anything, otherwise a candidate with missing
    metadata would match every query.
    """
    if not left or not right:
        return False
    return left in right or right in left


def clean_artist_name(artist: Optional[str]) -> str:
    """
    Strip catalog channel suffixes from an artist name for display

    Args:
        artist: Artist name as returned by the catalog

    Returns:
        Artist name without " - Topic", "VEVO" or " Official" suffixes
    """
    if not artist:
        return ""

    cleaned = artist.strip()
    for suffix in ARTIST_SUFFIXES:
        if cleaned.endswith(suffix) and len(cleaned) > len(suffix):
            cleaned = cleaned[:-len(suffix)].strip()
    return cleaned


def split_artist_title(raw_title: str) -> Optional[Tuple[str, str]]:
    """
    Split a title of the form "Artist - Title"

    Returns:
        (artist, title) tuple, or None if the title has no " - " separator
        or one side is empty
    """
    if ' - ' not in raw_title:
        return None
    artist, title = raw_title.split(' - ', 1)
    artist, title = artist.strip(), title.strip()
    if not artist or not title:
        return None
    return artist, title


_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f-\x9f]')
_RELEASE_YEAR = re.compile(r'\s*[(\[]\d{4}[)\]]\s*$')
_TOPIC_CHANNEL = re.compile(r'\s*-?\s*Topic$')

# Device names Windows refuses as file stems
WINDOWS_RESERVED = frozenset(
    ['CON', 'PRN', 'AUX', 'NUL']
    + [f'COM{n}' for n in range(1, 10)]
    + [f'LPT{n}' for n in range(1, 10)]
)


def sanitize_filename(filename: str, max_length: int = 200) -> str:
    """
    Make a file name safe on Windows, macOS and Linux

    Removes reserved and control characters, collapses whitespace, prefixes
    reserved device names with "_" and shortens the stem (never the
    extension) to max_length. Returns "unknown" when nothing usable is left.
    """
    name = unicodedata.normalize('NFKC', (filename or '').strip().strip('"\''))
    name = _WHITESPACE.sub(' ', _UNSAFE_FILENAME_CHARS.sub('', name)).strip(' .')

    stem, dot, extension = name.rpartition('.') if '.' in name else (name, '', '')
    if stem.upper() in WINDOWS_RESERVED:
        name = f"_{name}"

    if len(name) > max_length:
        room = max_length - len(dot + extension)
        name = name[:room] + dot + extension if dot and room > 0 else name[:max_length]
        name = name.rstrip(' .')

    return name or "unknown"


def album_directory_name(album_title: str, max_length: int = 200) -> str:
    """
    Directory name for a downloaded album

    Drops a trailing release year in brackets and catalog "Topic" suffixes
    before sanitizing, so "Greatest Hits (2004)" becomes "Greatest Hits".
    """
    name = _TOPIC_CHANNEL.sub('', _RELEASE_YEAR.sub('', album_title or ''))
    return sanitize_filename(name, max_length=max_length)


def format_duration(seconds: Union[int, float, None]) -> str:
    """Seconds as "m:ss", or "h:mm:ss" from one hour up"""
    total = int(seconds) if seconds and seconds > 0 else 0
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}" if hours else f"{minutes}:{secs:02d}"


def format_file_size(size_bytes: int) -> str:
    size = float(max(size_bytes, 0))
    for unit in ('B', 'KB', 'MB', 'GB'):
        if size < 1024:
            break
        size /= 1024
    else:
        unit = 'TB'
    return f"{int(size)} B" if unit == 'B' else f"{size:.1f} {unit}"


def parse_duration_string(duration_str: Optional[str]) -> Optional[int]:
    """
    Parse a catalog duration such as "3:45" or "1:23:45"

    Returns:
        Seconds, or None when the string is missing or malformed
    """
    if not duration_str:
        return None
    parts = duration_str.strip().split(':')
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        return None
    seconds = 0
    for part in parts:
        seconds = seconds * 60 + int(part)
    return seconds


def retry_on_failure(max_attempts: int = 3, delay: float = 1.0, backoff: float = 2.0,
                     exceptions: tuple = (Exception,)):
    """
    Retry the decorated call on the listed exceptions

    Waits delay seconds after the first failure, multiplied by backoff after
    each further one. The last failure is re-raised; exceptions not listed
    propagate immediately.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            wait = delay
            for attempt in range(max_attempts - 1):
                try:
                    return func(*args, **kwargs)
                except exceptions:
                    time.sleep(wait)
                    wait *= backoff
            return func(*args, **kwargs)
        return wrapper
    return decorator


def ensure_directory(path: Union[str, Path]) -> Path:
    """Create path (and parents) if missing and return it expanded"""
    directory = Path(path).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    return directory
