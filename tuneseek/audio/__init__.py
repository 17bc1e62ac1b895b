"""
Audio package
Stream resolution, ffmpeg transcoding, PCM output and the playback session
"""

from .session import (
    AssetStatus,
    PlaybackSession,
    PlaybackState,
    PlaybackStatus,
    PlaybackTicket
)
from .source import StreamInfo, StreamResolver
from .transcoder import Transcoder

__all__ = [
    'AssetStatus',
    'PlaybackSession',
    'PlaybackState',
    'PlaybackStatus',
    'PlaybackTicket',
    'StreamInfo',
    'StreamResolver',
    'Transcoder',
]
