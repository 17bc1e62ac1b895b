"""
Lyrics package
LRCLIB client and time-synchronized lyric parsing/lookup
"""

from .lrclib import LrcLibClient
from .synchronizer import (
    LyricLine,
    LyricTrack,
    LyricSynchronizer,
    parse_lrc,
    find_line_index
)

__all__ = [
    'LrcLibClient',
    'LyricLine',
    'LyricTrack',
    'LyricSynchronizer',
    'parse_lrc',
    'find_line_index',
]
