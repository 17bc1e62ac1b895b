"""
Exception classes for tuneseek.

Every failure that crosses a component boundary is expressed as one of the
classes below. Strategy-level failures (a single search variant or a single
lyric lookup failing) are raised by the low-level clients and absorbed by the
resolver and synchronizer; only the final outcome reaches the CLI.

Exception Hierarchy:
    TuneseekError (base)
        ConfigError - Invalid configuration values
        CatalogError - YouTube Music search/transport failures
        LyricsServiceError - LRCLIB transport/decoding failures
        ThumbnailError - Cover art fetch failures
        NotFoundError - A direct lookup produced nothing
        InvalidIdentifierError - Track identifier failed validation
        ResourceAcquisitionError - Playback resources could not be acquired
            SourceResolutionError - Stream URL could not be resolved
            TranscoderError - ffmpeg could not be started or failed
            AudioOutputError - Audio device could not be opened
        DownloadError - Persisting a track to disk failed
"""

from typing import Any, Dict, Optional


class TuneseekError(Exception):
    """
    Base exception for all tuneseek errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (identifier, query, url).
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(TuneseekError):
    """Raised when configuration values are invalid or cannot be saved."""
    pass


class CatalogError(TuneseekError):
    """
    Raised when a catalog call fails or returns an unparsable payload.

    Non-fatal: the album resolver treats it as a failed strategy variant
    and moves on to the next one.
    """
    pass


class LyricsServiceError(TuneseekError):
    """
    Raised when the lyric service cannot be reached, times out, or
    answers with something that is not JSON.

    Non-fatal: the lyric synchronizer moves on to its next strategy.
    """
    pass


class ThumbnailError(TuneseekError):
    """Raised when cover art cannot be fetched."""
    pass


class NotFoundError(TuneseekError):
    """Raised when a direct lookup (search for a single track) yields nothing."""
    pass


class InvalidIdentifierError(TuneseekError):
    """
    Raised when a track identifier is shorter than the minimum length.

    Always raised before any network activity takes place.
    """
    pass


class ResourceAcquisitionError(TuneseekError):
    """
    Raised when playback resources cannot be acquired.

    Fatal to the current playback attempt. The session is torn down and
    nothing is retried automatically.
    """
    pass


class SourceResolutionError(ResourceAcquisitionError):
    """Raised when yt-dlp cannot resolve a playable audio stream."""
    pass


class TranscoderError(ResourceAcquisitionError):
    """Raised when ffmpeg cannot be started or exits with an error."""
    pass


class AudioOutputError(ResourceAcquisitionError):
    """Raised when the audio output device cannot be opened."""
    pass


class DownloadError(TuneseekError):
    """
    Raised when a track cannot be saved to disk.

    Example:
        raise DownloadError(
            "ffmpeg encoding failed",
            details={'identifier': 'dQw4w9WgXcQ', 'returncode': 1}
        )
    """
    pass
