"""Test the playback session state machine"""

import threading

import pytest

from tuneseek.audio.output import NullSink
from tuneseek.audio.session import AssetStatus, PlaybackSession, PlaybackStatus
from tuneseek.exceptions import InvalidIdentifierError, SourceResolutionError, TranscoderError
from tuneseek.lyrics.synchronizer import LyricTrack

from .fakes import (
    SAMPLE_RATE,
    BlockingSink,
    FakeLyrics,
    FakeStreamResolver,
    FakeTranscoder,
    make_track,
    silence,
    wait_until
)

TRACK_LENGTH = 10.0


class SessionHarness:
    """A session wired to fakes, with access to every sink it opened"""

    def __init__(self, resolver=None, transcoder=None, lyrics=None, sink_type=BlockingSink, covers=None):
        self.resolver = resolver or FakeStreamResolver(duration=TRACK_LENGTH)
        self.transcoder = transcoder or FakeTranscoder(pcm=silence(TRACK_LENGTH))
        self.lyrics = lyrics or FakeLyrics()
        self.sinks = []
        self.cover_calls = []
        self._sink_type = sink_type
        self._covers = covers or {}

        self.session = PlaybackSession(
            stream_resolver=self.resolver,
            transcoder=self.transcoder,
            lyrics=self.lyrics,
            sink_factory=self._make_sink,
            cover_fetcher=self._fetch_cover,
        )

    def _make_sink(self):
        if self._sink_type is NullSink:
            sink = NullSink(SAMPLE_RATE, 2, realtime=False)
        else:
            sink = self._sink_type()
        self.sinks.append(sink)
        return sink

    def _fetch_cover(self, url):
        self.cover_calls.append(url)
        return self._covers.get(url, b'jpeg-bytes')


@pytest.fixture
def harness():
    h = SessionHarness()
    yield h
    h.session.stop()


class TestStart:
    """Test starting playback"""

    def test_invalid_identifier_makes_no_calls(self, harness):
        """Test that short identifiers are rejected before any I/O"""
        with pytest.raises(InvalidIdentifierError):
            harness.session.start(make_track(identifier="short"))

        assert harness.resolver.calls == []
        assert harness.transcoder.processes == []
        assert harness.session.status is PlaybackStatus.IDLE

    def test_start_plays_and_fetches_assets(self, harness, sample_lyrics):
        """Test a successful start reaches PLAYING with lyrics and cover"""
        harness.lyrics.lyrics = sample_lyrics
        track = make_track(thumbnail_url="https://img.example/cover.jpg", duration_seconds=9)

        harness.session.start(track)
        harness.session.join_background()

        state = harness.session.snapshot()
        assert state.status is PlaybackStatus.PLAYING
        assert state.track == track
        assert state.duration == TRACK_LENGTH
        assert state.lyrics == sample_lyrics
        assert state.lyrics_status is AssetStatus.READY
        assert state.cover_art == b'jpeg-bytes'
        assert state.cover_status is AssetStatus.READY
        assert harness.resolver.calls == [track.identifier]
        assert harness.lyrics.calls == [(track.title, track.artist, TRACK_LENGTH)]
        assert harness.cover_calls == ["https://img.example/cover.jpg"]
        assert harness.session.current_position() == (0.0, True)

    def test_missing_lyrics_and_cover(self, harness):
        """Test not-found assets are distinguishable from pending ones"""
        harness.session.start(make_track())
        harness.session.join_background()

        state = harness.session.snapshot()
        assert state.lyrics == LyricTrack.not_found()
        assert state.lyrics_status is AssetStatus.UNAVAILABLE
        assert state.cover_art is None
        assert state.cover_status is AssetStatus.UNAVAILABLE
        assert harness.cover_calls == []

    def test_restart_replaces_previous_track(self, harness):
        """Test starting a new track tears down the old pipeline"""
        first = make_track(identifier="firsttrack1", title="First")
        second = make_track(identifier="secondtrack", title="Second")

        harness.session.start(first)
        harness.session.start(second)

        assert harness.transcoder.processes[0].returncode is not None
        assert harness.sinks[0].closed.is_set()
        assert harness.session.snapshot().track == second
        assert harness.session.status is PlaybackStatus.PLAYING


class TestStartFailures:
    """Test resource acquisition failures"""

    def test_transcoder_failure_sets_error(self):
        """Test ffmpeg failing to start"""
        h = SessionHarness(transcoder=FakeTranscoder(error=TranscoderError("ffmpeg not found")))

        with pytest.raises(TranscoderError):
            h.session.start(make_track())

        state = h.session.snapshot()
        assert state.status is PlaybackStatus.ERROR
        assert "ffmpeg not found" in state.error
        assert h.session.current_position() == (0.0, False)
        assert h.sinks == []

    def test_ffmpeg_exit_without_audio_sets_error(self):
        """Test ffmpeg exiting before producing audio"""
        h = SessionHarness(transcoder=FakeTranscoder(pcm=b'', returncode=1, stderr=b'403 Forbidden'))

        with pytest.raises(TranscoderError):
            h.session.start(make_track())

        assert h.session.status is PlaybackStatus.ERROR
        assert "403" in h.session.snapshot().error

    def test_resolution_failure_sets_error(self):
        """Test stream resolution failing"""
        h = SessionHarness(resolver=FakeStreamResolver(error=SourceResolutionError("unavailable")))

        with pytest.raises(SourceResolutionError):
            h.session.start(make_track())

        assert h.session.status is PlaybackStatus.ERROR
        assert h.transcoder.processes == []

    def test_error_state_recovers_on_next_start(self):
        """Test a new start after an error"""
        h = SessionHarness(transcoder=FakeTranscoder(error=TranscoderError("boom")))
        with pytest.raises(TranscoderError):
            h.session.start(make_track())

        h.transcoder.error = None
        h.transcoder.pcm = silence(1.0)
        h.session.start(make_track())

        assert h.session.status is PlaybackStatus.PLAYING
        h.session.stop()

    def test_stop_while_loading(self):
        """Test stop() during stream resolution abandons the start quietly"""
        h = SessionHarness(resolver=FakeStreamResolver(duration=TRACK_LENGTH, gated=True))
        errors = []

        def run():
            try:
                h.session.start(make_track())
            except Exception as e:
                errors.append(e)

        starter = threading.Thread(target=run)
        starter.start()
        assert h.resolver.entered.wait(5)
        assert h.session.status is PlaybackStatus.LOADING

        h.session.stop()
        h.resolver.release()
        starter.join(5)

        assert errors == []
        assert h.session.status is PlaybackStatus.IDLE
        assert h.transcoder.processes[0].killed
        assert h.sinks == []


class TestControls:
    """Test pause, seek and stop"""

    def test_toggle_pause(self, harness):
        """Test pause and resume"""
        harness.session.start(make_track())

        assert harness.session.toggle_pause() is True
        assert harness.session.status is PlaybackStatus.PAUSED
        assert harness.session.toggle_pause() is False
        assert harness.session.status is PlaybackStatus.PLAYING
        assert harness.sinks[0].paused == [True, False]

    def test_toggle_pause_when_idle(self, harness):
        """Test pause is a no-op without a track"""
        assert harness.session.toggle_pause() is False
        assert harness.session.status is PlaybackStatus.IDLE

    def test_seek_clamps_at_both_ends(self, harness):
        """Test seek never goes negative nor reaches the track length"""
        harness.session.start(make_track())

        assert harness.session.seek(-5.0) == 0.0
        assert harness.session.seek(5.0) == pytest.approx(5.0)
        end = harness.session.seek(5.0)
        assert end == pytest.approx(TRACK_LENGTH - 1.0 / SAMPLE_RATE)
        assert end < TRACK_LENGTH
        assert harness.session.seek(5.0) == end

        position, valid = harness.session.current_position()
        assert valid
        assert position == end

    def test_seek_uses_fixed_step(self, harness):
        """Test the step size does not depend on the magnitude of delta"""
        harness.session.start(make_track())

        assert harness.session.seek(0.1) == pytest.approx(5.0)
        assert harness.session.seek(-30.0) == pytest.approx(0.0)
        assert harness.session.seek(0) is None

    def test_seek_when_idle(self, harness):
        """Test seek without a track"""
        assert harness.session.seek(5.0) is None

    def test_seek_updates_lyric_line(self, harness, sample_lyrics):
        """Test the lyric index follows the position"""
        changes = []
        harness.session.tick_interval = 60
        harness.session.on_lyric_change = lambda index, line: changes.append((index, line.text))
        harness.lyrics.lyrics = sample_lyrics

        harness.session.start(make_track())
        harness.session.join_background()
        assert wait_until(lambda: harness.session.snapshot().current_lyric_index == 0)

        harness.session.seek(5.0)

        state = harness.session.snapshot()
        assert state.current_lyric_index == 1
        assert state.current_line.text == "second line"
        assert changes == [(0, "first line"), (1, "second line")]

    def test_stop_clears_state(self, harness):
        """Test stop() releases everything and returns to IDLE"""
        harness.session.start(make_track())
        harness.session.stop()

        state = harness.session.snapshot()
        assert state.status is PlaybackStatus.IDLE
        assert state.track is None
        assert harness.transcoder.processes[0].returncode is not None
        assert harness.sinks[0].closed.is_set()
        assert harness.session.current_position() == (0.0, False)

        harness.session.stop()
        assert harness.session.status is PlaybackStatus.IDLE


class TestStaleResults:
    """Test that late background results never touch a newer session"""

    def test_lyrics_arriving_after_stop_are_discarded(self, sample_lyrics):
        """Test stop() before the lyric fetch completes"""
        h = SessionHarness(lyrics=FakeLyrics(lyrics=sample_lyrics, gated=True))

        h.session.start(make_track())
        assert h.lyrics.started.wait(5)
        h.session.stop()
        h.lyrics.release()
        h.session.join_background()

        state = h.session.snapshot()
        assert state.status is PlaybackStatus.IDLE
        assert state.lyrics is None
        assert state.lyrics_status is AssetStatus.PENDING
        assert state.track is None

    def test_lyrics_for_previous_track_are_discarded(self, sample_lyrics):
        """Test a restart before the first track's lyrics arrive"""
        lyrics = FakeLyrics(lyrics={"First": sample_lyrics}, gated=True)
        h = SessionHarness(lyrics=lyrics)

        h.session.start(make_track(identifier="firsttrack1", title="First"))
        assert lyrics.started.wait(5)
        h.session.start(make_track(identifier="secondtrack", title="Second"))
        lyrics.release()
        h.session.join_background()

        state = h.session.snapshot()
        assert state.track.title == "Second"
        assert state.lyrics == LyricTrack.not_found()
        assert state.lyrics_status is AssetStatus.UNAVAILABLE
        h.session.stop()


class TestNaturalEnd:
    """Test end of stream"""

    def test_end_of_stream_returns_to_idle(self):
        """Test the finished listener and the final state"""
        h = SessionHarness(transcoder=FakeTranscoder(pcm=silence(0.2)), sink_type=NullSink)
        finished = threading.Event()
        finished_tracks = []

        def on_finished(track):
            finished_tracks.append(track)
            finished.set()

        h.session.on_finished = on_finished
        track = make_track()
        h.session.start(track)

        assert finished.wait(5)
        assert finished_tracks == [track]
        assert h.session.status is PlaybackStatus.IDLE
        assert h.transcoder.processes[0].returncode == 0
