"""Audio output sinks built around pygame.mixer."""

import threading

import pygame

from ..exceptions import AudioOutputError


class AudioSink:
    """
    Destination for interleaved signed 16-bit PCM

    write() blocks until the device can take more audio, which is what
    paces the engine's output thread.
    """

    def write(self, pcm: bytes) -> None:
        raise NotImplementedError

    def set_paused(self, paused: bool) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        """Drop audio that was handed over but not played yet."""

    def drain(self) -> None:
        """Block until audio already handed over has been played."""

    def close(self) -> None:
        raise NotImplementedError


class PygameSink(AudioSink):
    """
    Streams PCM chunks to one pygame mixer channel

    pygame channels hold one playing and one queued Sound. write() waits
    until the queue slot is free, so at most two chunks are ever in flight.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        channels: int = 2,
        mixer=pygame.mixer,
        poll_interval: float = 0.005,
    ) -> None:
        self._mixer = mixer
        self._poll_interval = poll_interval
        self._closed = threading.Event()
        self._paused = False
        try:
            init_info = self._mixer.get_init()
            if init_info and (init_info[0], init_info[2]) != (sample_rate, channels):
                self._mixer.quit()
                init_info = None
            if not init_info:
                self._mixer.init(frequency=sample_rate, size=-16, channels=channels, buffer=2048)
            self._channel = self._mixer.Channel(0)
        except (pygame.error, AttributeError) as exc:
            raise AudioOutputError(f"Could not open audio output: {exc}") from exc

    def _queue_full(self) -> bool:
        return self._channel.get_queue() is not None

    def write(self, pcm: bytes) -> None:
        if self._closed.is_set() or not pcm:
            return
        while self._queue_full() or self._paused:
            if self._closed.wait(self._poll_interval):
                return
        try:
            sound = self._mixer.Sound(buffer=pcm)
        except (TypeError, pygame.error):
            return
        if self._channel.get_busy():
            self._channel.queue(sound)
        else:
            self._channel.play(sound)

    def set_paused(self, paused: bool) -> None:
        self._paused = paused
        if paused:
            self._channel.pause()
        else:
            self._channel.unpause()

    def flush(self) -> None:
        self._channel.stop()

    def drain(self) -> None:
        while self._channel.get_busy():
            if self._closed.wait(self._poll_interval):
                return

    def close(self) -> None:
        """Stop output; the mixer stays initialised for the next session."""
        self._closed.set()
        try:
            self._channel.stop()
        except pygame.error:
            pass


class NullSink(AudioSink):
    """
    Discards audio

    With realtime=True it sleeps for the duration of each chunk, so playback
    position advances at normal speed without an audio device.
    """

    def __init__(self, sample_rate: int = 44100, channels: int = 2, realtime: bool = True) -> None:
        self._bytes_per_second = sample_rate * channels * 2
        self._realtime = realtime
        self._closed = threading.Event()
        self._resumed = threading.Event()
        self._resumed.set()
        self.bytes_written = 0

    def write(self, pcm: bytes) -> None:
        while not self._resumed.wait(0.05):
            if self._closed.is_set():
                return
        if self._closed.is_set():
            return
        self.bytes_written += len(pcm)
        if self._realtime:
            self._closed.wait(len(pcm) / self._bytes_per_second)

    def set_paused(self, paused: bool) -> None:
        if paused:
            self._resumed.clear()
        else:
            self._resumed.set()

    def close(self) -> None:
        self._closed.set()
        self._resumed.set()


def create_sink(sample_rate: int, channels: int, muted: bool = False) -> AudioSink:
    """Sink for a new playback session."""
    if muted:
        return NullSink(sample_rate, channels)
    return PygameSink(sample_rate, channels)
