"""
Playback session: one active stream with synchronized lyrics

State machine:

    IDLE -> LOADING -> PLAYING <-> PAUSED
                  \\        \\
                   ERROR    STOPPED -> IDLE

start() validates the identifier before any I/O, tears down whatever was
playing, resolves the stream, starts ffmpeg and waits for the first audio
before opening the output device. Any failure on the way lands in ERROR with
every acquired resource released, and the error is re-raised.

Once playing, two one-shot background threads fetch lyrics and cover art,
and a ticker thread samples the playback position every tick_interval
seconds to keep the current lyric index up to date. Background results are
tagged with a PlaybackTicket (track identifier + start serial); a result
whose ticket is no longer current is discarded. Nothing is cancelled.

Teardown happens outside the session lock so that worker threads calling
back into the session can never deadlock against it.
"""

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..config.settings import get_settings
from ..exceptions import ResourceAcquisitionError, ThumbnailError
from ..lyrics.synchronizer import LyricLine, LyricTrack
from ..utils.logger import get_logger
from ..utils.validation import require_valid_identifier
from ..ytmusic.models import Track
from .cover import fetch_thumbnail
from .engine import (
    NO_RESOURCE,
    DecodeHandle,
    EngineResource,
    ProcessHandle,
    release_resource,
)
from .output import AudioSink, create_sink


class PlaybackStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    ERROR = "error"


class AssetStatus(Enum):
    """State of a background-fetched datum (lyrics, cover art)"""
    PENDING = "pending"
    READY = "ready"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class PlaybackTicket:
    """Identity of one start() call"""
    identifier: str
    serial: int


@dataclass
class PlaybackState:
    """
    Snapshot-able view of the session

    lyrics is None until the fetch completes; an empty LyricTrack means the
    fetch completed and found nothing.
    """
    track: Optional[Track] = None
    status: PlaybackStatus = PlaybackStatus.IDLE
    paused: bool = False
    lyrics: Optional[LyricTrack] = None
    lyrics_status: AssetStatus = AssetStatus.PENDING
    current_lyric_index: int = -1
    cover_art: Optional[bytes] = None
    cover_status: AssetStatus = AssetStatus.PENDING
    duration: Optional[float] = None
    error: Optional[str] = None

    @property
    def current_line(self) -> Optional[LyricLine]:
        if self.lyrics is None:
            return None
        return self.lyrics.line_at(self.current_lyric_index)


class PlaybackSession:
    """
    Owns at most one decode pipeline at a time

    Collaborators are injectable for tests:
        stream_resolver: resolve(identifier) -> StreamInfo
        transcoder: open_pcm_stream(stream) -> Popen-like process
        lyrics: fetch_lyrics(title, artist, duration) -> LyricTrack | None
        sink_factory: () -> AudioSink
        cover_fetcher: (url) -> bytes
    """

    def __init__(
        self,
        stream_resolver=None,
        transcoder=None,
        lyrics=None,
        sink_factory: Optional[Callable[[], AudioSink]] = None,
        cover_fetcher: Optional[Callable[[str], bytes]] = None,
        muted: bool = False,
    ):
        self.settings = get_settings()
        self.logger = get_logger(__name__)
        playback = self.settings.playback

        if stream_resolver is None:
            from .source import StreamResolver
            stream_resolver = StreamResolver()
        if transcoder is None:
            from .transcoder import Transcoder
            transcoder = Transcoder()
        if lyrics is None and self.settings.lyrics.enabled:
            from ..lyrics.synchronizer import LyricSynchronizer
            lyrics = LyricSynchronizer()

        self.stream_resolver = stream_resolver
        self.transcoder = transcoder
        self.lyrics = lyrics
        self.sink_factory = sink_factory or (
            lambda: create_sink(playback.sample_rate, playback.channels, muted=muted)
        )
        self.cover_fetcher = cover_fetcher if cover_fetcher is not None else fetch_thumbnail

        self.tick_interval = playback.tick_interval
        self.seek_step = playback.seek_step

        # Called with (index, line) from the ticker thread
        self.on_lyric_change: Optional[Callable[[int, Optional[LyricLine]], None]] = None
        # Called with the finished track from the output thread
        self.on_finished: Optional[Callable[[Track], None]] = None

        self._lock = threading.RLock()
        self._state = PlaybackState()
        self._resource: EngineResource = NO_RESOURCE
        self._serial = 0
        self._ticket: Optional[PlaybackTicket] = None
        self._ticker_stop: Optional[threading.Event] = None
        self._background: List[threading.Thread] = []

    # Queries

    @property
    def state(self) -> PlaybackState:
        return self.snapshot()

    def snapshot(self) -> PlaybackState:
        with self._lock:
            return replace(self._state)

    @property
    def status(self) -> PlaybackStatus:
        with self._lock:
            return self._state.status

    def current_position(self) -> Tuple[float, bool]:
        """
        Current playback position

        Returns:
            (elapsed seconds, valid); valid is False when nothing is playing
        """
        with self._lock:
            resource = self._resource
        if not isinstance(resource, DecodeHandle) or resource.stopped:
            return 0.0, False
        return resource.position_seconds(), True

    # Controls

    def start(self, track: Track) -> None:
        """
        Start playing a track, replacing whatever is playing

        Raises:
            InvalidIdentifierError: Identifier too short; nothing else happens
            ResourceAcquisitionError: Stream, ffmpeg or audio output failed;
                the session is left in ERROR with nothing running
        """
        identifier = require_valid_identifier(track.identifier)
        self.stop()

        with self._lock:
            self._serial += 1
            ticket = PlaybackTicket(identifier, self._serial)
            self._ticket = ticket
            self._state = PlaybackState(track=track, status=PlaybackStatus.LOADING,
                                        duration=track.duration_seconds)

        self.logger.info(f"Loading {track.display_name} ({identifier})")
        try:
            handle = self._acquire(ticket, track)
        except Exception as e:
            with self._lock:
                superseded = not self._is_current(ticket)
                resource = NO_RESOURCE
                if not superseded:
                    resource, self._resource = self._resource, NO_RESOURCE
                    self._state = PlaybackState(track=track, status=PlaybackStatus.ERROR, error=str(e))
            release_resource(resource)
            if superseded:
                self.logger.debug(f"Loading of {identifier} interrupted by stop")
                return
            self.logger.info(f"Playback failed for {identifier}: {e}")
            raise

        with self._lock:
            if not self._is_current(ticket):
                return
            self._state.status = PlaybackStatus.PLAYING
            self._state.duration = handle.duration
            self._start_ticker(ticket)

        self._launch(ticket, self._fetch_lyrics, track, handle.duration)
        self._launch(ticket, self._fetch_cover, track)
        self.logger.console_info(f"Playing {track.display_name}")

    def _install(self, ticket: PlaybackTicket, resource: EngineResource) -> None:
        """Make resource the session's resource unless stop() has run since start()."""
        with self._lock:
            if self._is_current(ticket):
                self._resource = resource
                return
        release_resource(resource)
        raise ResourceAcquisitionError("Playback was stopped while loading")

    def _acquire(self, ticket: PlaybackTicket, track: Track) -> DecodeHandle:
        playback = self.settings.playback
        stream = self.stream_resolver.resolve(ticket.identifier)

        process = self.transcoder.open_pcm_stream(stream)
        self._install(ticket, ProcessHandle(process=process, identifier=ticket.identifier))

        handle = DecodeHandle(
            process=process,
            identifier=ticket.identifier,
            sample_rate=playback.sample_rate,
            channels=playback.channels,
            chunk_frames=playback.chunk_frames,
            duration=stream.duration or track.duration_seconds,
            on_finished=lambda: self._handle_finished(ticket),
        )
        handle.start_decoding()
        self._install(ticket, handle)

        handle.wait_for_audio(playback.startup_timeout)
        handle.start_output(self.sink_factory())
        return handle

    def toggle_pause(self) -> bool:
        """
        Flip the paused flag; no-op outside PLAYING/PAUSED

        Returns:
            The paused flag after the call
        """
        with self._lock:
            if self._state.status not in (PlaybackStatus.PLAYING, PlaybackStatus.PAUSED):
                return self._state.paused
            resource = self._resource
            paused = not self._state.paused
            self._state.paused = paused
            self._state.status = PlaybackStatus.PAUSED if paused else PlaybackStatus.PLAYING
        if isinstance(resource, DecodeHandle):
            resource.set_paused(paused)
        return paused

    def seek(self, delta_seconds: float) -> Optional[float]:
        """
        Move playback by one seek step in the direction of delta_seconds

        The step is fixed (playback.seek_step); the result is clamped to
        [0, track length).

        Returns:
            New position in seconds, or None when nothing is playing
        """
        with self._lock:
            resource = self._resource
        if not isinstance(resource, DecodeHandle) or delta_seconds == 0:
            return None
        step = self.seek_step if delta_seconds > 0 else -self.seek_step
        position = resource.seek(step)
        self._update_lyric_index(position)
        return position

    def stop(self) -> None:
        """Stop playback and clear all state. Safe to call at any time."""
        self._teardown()

    def _teardown(self, expected: Optional[PlaybackTicket] = None) -> bool:
        """
        Release the session's resources and reset its state

        Args:
            expected: Only tear down if this ticket is still current

        Returns:
            False if expected was given and is no longer current
        """
        with self._lock:
            if expected is not None and not self._is_current(expected):
                return False
            resource, self._resource = self._resource, NO_RESOURCE
            had_session = self._ticket is not None or self._state.status != PlaybackStatus.IDLE
            self._ticket = None
            self._serial += 1
            ticker_stop, self._ticker_stop = self._ticker_stop, None
            if had_session:
                self._state.status = PlaybackStatus.STOPPED

        if ticker_stop is not None:
            ticker_stop.set()
        release_resource(resource)

        with self._lock:
            if self._ticket is None:
                self._state = PlaybackState()
        if had_session:
            self.logger.debug("Playback stopped")
        return True

    def join_background(self, timeout: float = 5.0) -> None:
        """Wait for outstanding lyric/cover fetches (tests and shutdown)."""
        with self._lock:
            threads = list(self._background)
        for thread in threads:
            thread.join(timeout)

    # Worker threads

    def _launch(self, ticket: PlaybackTicket, target, *args) -> None:
        thread = threading.Thread(target=target, args=(ticket,) + args,
                                  name=f"tuneseek-{target.__name__.strip('_')}", daemon=True)
        with self._lock:
            self._background = [t for t in self._background if t.is_alive()]
            self._background.append(thread)
        thread.start()

    def _is_current(self, ticket: PlaybackTicket) -> bool:
        return self._ticket == ticket

    def _fetch_lyrics(self, ticket: PlaybackTicket, track: Track, duration: Optional[float]) -> None:
        lyrics = None
        if self.lyrics is not None:
            try:
                lyrics = self.lyrics.fetch_lyrics(track.title, track.artist, duration)
            except Exception as e:
                self.logger.warning(f"Lyrics fetch failed for {track.identifier}: {e}")

        with self._lock:
            if not self._is_current(ticket):
                self.logger.debug(f"Discarding stale lyrics for {ticket.identifier}")
                return
            self._state.lyrics = lyrics if lyrics is not None else LyricTrack.not_found()
            self._state.lyrics_status = AssetStatus.READY if lyrics else AssetStatus.UNAVAILABLE
            self._state.current_lyric_index = -1

        position, valid = self.current_position()
        if valid:
            self._update_lyric_index(position)

    def _fetch_cover(self, ticket: PlaybackTicket, track: Track) -> None:
        art = None
        if self.settings.playback.fetch_cover and track.thumbnail_url:
            try:
                art = self.cover_fetcher(track.thumbnail_url)
            except ThumbnailError as e:
                self.logger.debug(f"Cover art unavailable for {track.identifier}: {e}")

        with self._lock:
            if not self._is_current(ticket):
                return
            self._state.cover_art = art
            self._state.cover_status = AssetStatus.READY if art else AssetStatus.UNAVAILABLE

    def _start_ticker(self, ticket: PlaybackTicket) -> None:
        stop_event = threading.Event()
        self._ticker_stop = stop_event

        def tick():
            while not stop_event.wait(self.tick_interval):
                if not self._is_current(ticket):
                    return
                position, valid = self.current_position()
                if valid:
                    self._update_lyric_index(position)

        threading.Thread(target=tick, name="tuneseek-ticker", daemon=True).start()

    def _update_lyric_index(self, position: float) -> None:
        callback = None
        with self._lock:
            lyrics = self._state.lyrics
            if lyrics is None or lyrics.is_empty:
                return
            index = lyrics.line_index_at(position)
            if index != self._state.current_lyric_index:
                self._state.current_lyric_index = index
                callback = self.on_lyric_change
                line = lyrics.line_at(index)
        if callback is not None:
            callback(index, line)

    def _handle_finished(self, ticket: PlaybackTicket) -> None:
        with self._lock:
            track = self._state.track
        if not self._teardown(expected=ticket):
            return
        self.logger.debug(f"Finished {ticket.identifier}")
        if self.on_finished is not None and track is not None:
            self.on_finished(track)
