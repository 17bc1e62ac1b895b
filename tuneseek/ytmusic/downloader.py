"""
Track and album downloads

Saving a track is a three-step pipeline:
1. yt-dlp downloads the best audio-only format into a temporary directory
2. the thumbnail (or the shared album cover) is fetched with requests
3. ffmpeg encodes the audio to MP3 (libmp3lame VBR) with ID3v2.3 tags
   and the cover attached, writing straight to the final path

Single tracks are saved as "<title>.mp3" in the output directory. Albums get
their own directory named after the album, with files "NN - <title>.mp3"
and album/track-number tags. A failing album track is reported and skipped;
the rest of the album still downloads.

Temporary files are always removed, whether the download succeeds or not.
"""

import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yt_dlp

from ..audio.cover import fetch_thumbnail
from ..audio.source import watch_url
from ..audio.transcoder import Transcoder
from ..config.settings import get_settings
from ..exceptions import DownloadError, ThumbnailError, TranscoderError
from ..utils.helpers import (
    album_directory_name,
    ensure_directory,
    format_file_size,
    sanitize_filename
)
from ..utils.logger import OperationLogger, get_logger
from ..utils.validation import is_valid_identifier
from .models import Track


@dataclass
class DownloadResult:
    """
    Outcome of one track download

    Attributes:
        track: Track that was requested
        success: True if the MP3 was written
        file_path: Final file path (None if failed)
        file_size: Size of the written file in bytes
        error_message: Failure description (None if successful)
        download_time: Wall-clock seconds spent
    """
    track: Track
    success: bool
    file_path: Optional[Path] = None
    file_size: Optional[int] = None
    error_message: Optional[str] = None
    download_time: Optional[float] = None

    @property
    def file_size_str(self) -> str:
        return format_file_size(self.file_size) if self.file_size else "Unknown"


@dataclass
class AlbumDownloadSummary:
    """Outcome of an album download"""
    album_title: str
    directory: Path
    results: List[DownloadResult] = field(default_factory=list)
    skipped: List[Track] = field(default_factory=list)

    @property
    def downloaded(self) -> List[DownloadResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[DownloadResult]:
        return [r for r in self.results if not r.success]


class TrackDownloader:
    """Downloads tracks and albums as tagged MP3 files"""

    def __init__(self, transcoder: Optional[Transcoder] = None, cover_fetcher=None):
        self.settings = get_settings()
        self.logger = get_logger(__name__)
        self.transcoder = transcoder or Transcoder()
        self.cover_fetcher = cover_fetcher or fetch_thumbnail

    def _get_ydl_options(self, temp_dir: Path, identifier: str) -> Dict[str, Any]:
        return {
            'format': 'bestaudio/best',
            'outtmpl': str(temp_dir / f"{identifier}.%(ext)s"),
            'noplaylist': True,
            'quiet': True,
            'no_warnings': True,
            'noprogress': True,
            'socket_timeout': self.settings.catalog.request_timeout,
            'retries': 3,
            'fragment_retries': 3,
            'http_headers': {'User-Agent': self.settings.playback.user_agent},
        }

    def _download_source(self, identifier: str, temp_dir: Path) -> Path:
        """
        Download the raw audio with yt-dlp

        Raises:
            DownloadError: If yt-dlp fails or produces no file
        """
        try:
            with yt_dlp.YoutubeDL(self._get_ydl_options(temp_dir, identifier)) as ydl:
                ydl.extract_info(watch_url(identifier), download=True)
        except yt_dlp.utils.DownloadError as e:
            raise DownloadError(f"yt-dlp download failed: {e}", details={'identifier': identifier})

        candidates = [p for p in temp_dir.glob(f"{identifier}.*") if not p.name.endswith('.part')]
        if not candidates:
            raise DownloadError("Downloaded file not found", details={'identifier': identifier})
        return candidates[0]

    def _write_cover(self, track: Track, temp_dir: Path, cover_bytes: Optional[bytes]) -> Optional[Path]:
        if not self.settings.download.embed_cover:
            return None
        if cover_bytes is None and track.thumbnail_url:
            try:
                cover_bytes = self.cover_fetcher(track.thumbnail_url)
            except ThumbnailError as e:
                self.logger.debug(f"No cover for {track.identifier}: {e}")
        if not cover_bytes:
            return None
        cover_path = temp_dir / "cover.jpg"
        cover_path.write_bytes(cover_bytes)
        return cover_path

    def download_track(
        self,
        track: Track,
        output_dir: Optional[Path] = None,
        album: Optional[str] = None,
        track_number: Optional[int] = None,
        total_tracks: Optional[int] = None,
        cover_bytes: Optional[bytes] = None,
    ) -> DownloadResult:
        """
        Download one track as a tagged MP3

        Args:
            track: Track to download
            output_dir: Target directory, defaults to download.output_directory
            album: Album tag; also switches to "NN - title" naming
            track_number: Position within the album
            total_tracks: Album size, written as "n/total"
            cover_bytes: Cover image to attach instead of the track thumbnail

        Returns:
            DownloadResult; failures are reported, not raised
        """
        start_time = time.time()

        if not is_valid_identifier(track.identifier):
            return DownloadResult(track=track, success=False,
                                  error_message=f"Invalid identifier: {track.identifier!r}")

        directory = ensure_directory(output_dir or self.settings.get_output_directory())
        if track_number is not None:
            filename = sanitize_filename(f"{track_number:02d} - {track.title}.mp3")
        else:
            filename = sanitize_filename(f"{track.title}.mp3")
        final_path = directory / filename

        metadata = {'title': track.title, 'artist': track.artist, 'album': album or track.album_name or ''}
        if track_number is not None:
            metadata['track'] = f"{track_number}/{total_tracks}" if total_tracks else str(track_number)

        try:
            with tempfile.TemporaryDirectory(prefix="tuneseek-") as temp:
                temp_dir = Path(temp)
                source = self._download_source(track.identifier, temp_dir)
                cover_path = self._write_cover(track, temp_dir, cover_bytes)
                self.transcoder.encode_file(source, final_path, metadata, cover_path)
        except (DownloadError, TranscoderError, OSError) as e:
            self.logger.error(f"Download failed: {track.identifier} - {e}")
            return DownloadResult(track=track, success=False, error_message=str(e),
                                  download_time=time.time() - start_time)

        file_size = final_path.stat().st_size
        download_time = time.time() - start_time
        self.logger.debug(f"Download completed: {track.identifier} -> {final_path.name} "
                          f"({format_file_size(file_size)}, {download_time:.1f}s)")
        return DownloadResult(track=track, success=True, file_path=final_path,
                              file_size=file_size, download_time=download_time)

    def download_album(
        self,
        album_title: str,
        tracks: Sequence[Track],
        output_dir: Optional[Path] = None,
    ) -> AlbumDownloadSummary:
        """
        Download every track of a resolved album

        Tracks with unresolvable identifiers are skipped; failing tracks are
        recorded and the loop continues.

        Args:
            album_title: Album title, used for the directory and album tag
            tracks: Tracks in album order
            output_dir: Parent directory, defaults to download.output_directory
        """
        base = Path(output_dir) if output_dir else self.settings.get_output_directory()
        directory = ensure_directory(base / album_directory_name(album_title))
        summary = AlbumDownloadSummary(album_title=album_title, directory=directory)

        playable = []
        for track in tracks:
            if is_valid_identifier(track.identifier):
                playable.append(track)
            else:
                summary.skipped.append(track)

        cover_bytes = self._album_cover(playable)

        operation = OperationLogger(self.logger, f"Downloading {album_title}")
        operation.start(f"Downloading {len(playable)} tracks to {directory}")
        total = len(playable)
        for number, track in enumerate(playable, 1):
            operation.progress(track.title, number - 1, total)
            result = self.download_track(
                track,
                output_dir=directory,
                album=album_title,
                track_number=number,
                total_tracks=total,
                cover_bytes=cover_bytes,
            )
            summary.results.append(result)
            operation.progress(track.title, number, total)

        operation.complete(f"Downloaded {len(summary.downloaded)}/{total} tracks to {directory}")
        return summary

    def _album_cover(self, tracks: Sequence[Track]) -> Optional[bytes]:
        """Fetch one cover for the whole album from the first track that has a thumbnail"""
        if not self.settings.download.embed_cover:
            return None
        for track in tracks:
            if track.thumbnail_url:
                try:
                    return self.cover_fetcher(track.thumbnail_url)
                except ThumbnailError as e:
                    self.logger.debug(f"Album cover from {track.identifier} unavailable: {e}")
                    return None
        return None
