"""
Audio source resolution via yt-dlp

Turns a track identifier into a direct, audio-only stream URL plus the HTTP
headers needed to fetch it. Nothing is downloaded here: the URL is handed to
ffmpeg for playback, or to yt-dlp again for persistence.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yt_dlp

from ..config.settings import get_settings
from ..exceptions import SourceResolutionError
from ..utils.helpers import retry_on_failure
from ..utils.logger import get_logger
from ..utils.validation import require_valid_identifier


@dataclass(frozen=True)
class StreamInfo:
    """
    A resolved audio stream

    Attributes:
        identifier: Track identifier the stream belongs to
        url: Direct media URL consumable by ffmpeg
        http_headers: Headers yt-dlp expects to be sent with the request
        duration: Stream length in seconds, if known
        title: Title reported by the video page
        uploader: Channel name reported by the video page
        thumbnail_url: Video thumbnail, used when the catalog had none
    """
    identifier: str
    url: str
    http_headers: Dict[str, str] = field(default_factory=dict)
    duration: Optional[float] = None
    title: Optional[str] = None
    uploader: Optional[str] = None
    thumbnail_url: Optional[str] = None


def watch_url(identifier: str) -> str:
    return f"https://www.youtube.com/watch?v={identifier}"


class StreamResolver:
    """Resolves identifiers to audio stream URLs with yt-dlp"""

    def __init__(self):
        self.settings = get_settings()
        self.logger = get_logger(__name__)

    def _get_ydl_options(self) -> Dict[str, Any]:
        return {
            'format': 'bestaudio/best',
            'noplaylist': True,
            'quiet': True,
            'no_warnings': True,
            'noprogress': True,
            'skip_download': True,
            'socket_timeout': self.settings.catalog.request_timeout,
            'http_headers': {'User-Agent': self.settings.playback.user_agent},
        }

    @retry_on_failure(max_attempts=2, delay=1.0, exceptions=(yt_dlp.utils.DownloadError,))
    def _extract_info(self, identifier: str) -> Dict[str, Any]:
        with yt_dlp.YoutubeDL(self._get_ydl_options()) as ydl:
            return ydl.extract_info(watch_url(identifier), download=False)

    def resolve(self, identifier: str) -> StreamInfo:
        """
        Resolve a track identifier to an audio stream

        Args:
            identifier: Track identifier

        Returns:
            StreamInfo for the best audio-only format

        Raises:
            InvalidIdentifierError: If the identifier is too short
            SourceResolutionError: If yt-dlp cannot produce a stream URL
        """
        identifier = require_valid_identifier(identifier)
        try:
            info = self._extract_info(identifier)
        except yt_dlp.utils.DownloadError as e:
            raise SourceResolutionError(f"Could not resolve audio for {identifier}: {e}",
                                        details={'identifier': identifier})

        url = info.get('url') if info else None
        if not url:
            # Format merges expose the chosen format under requested_formats
            formats = (info or {}).get('requested_formats') or []
            url = formats[0].get('url') if formats else None
        if not url:
            raise SourceResolutionError(f"No audio stream available for {identifier}",
                                        details={'identifier': identifier})

        self.logger.debug(f"Resolved {identifier}: format {info.get('format_id')}, {info.get('duration')}s")
        return StreamInfo(
            identifier=identifier,
            url=url,
            http_headers=dict(info.get('http_headers') or {}),
            duration=info.get('duration'),
            title=info.get('title'),
            uploader=info.get('uploader') or info.get('channel'),
            thumbnail_url=info.get('thumbnail'),
        )
