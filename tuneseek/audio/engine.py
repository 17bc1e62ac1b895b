"""
Decode/output pipeline for one playback session

Threads per active pipeline:
- decode thread: drains ffmpeg's stdout into a growing PcmBuffer
- output thread: reads from the buffer at the decode cursor, hands chunks
  to the audio sink and advances the cursor

The decode cursor (in sample frames) is the only state shared between the
output thread, seek() and position sampling; every access goes through
one lock. Seeking moves the cursor inside the already decoded buffer, or
ahead of it, in which case the output thread waits for decoding to catch up.

The resources a session can hold are modelled explicitly:

    NoResource      nothing running
    ProcessHandle   ffmpeg started, output not yet running (loading)
    DecodeHandle    full pipeline running

release_resource() tears any of them down and always returns NO_RESOURCE.
"""

import subprocess
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Union

from ..exceptions import TranscoderError
from ..utils.logger import get_logger
from .output import AudioSink

logger = get_logger(__name__)

BYTES_PER_SAMPLE = 2
READ_SIZE = 64 * 1024


class PcmBuffer:
    """
    Append-only PCM store shared by the decode and output threads

    Readers block until enough data is present or decoding has finished.
    """

    def __init__(self, frame_size: int):
        self.frame_size = frame_size
        self._data = bytearray()
        self._cond = threading.Condition()
        self._finished = False
        self.error: Optional[str] = None

    @property
    def frames(self) -> int:
        with self._cond:
            return len(self._data) // self.frame_size

    @property
    def finished(self) -> bool:
        with self._cond:
            return self._finished

    def append(self, chunk: bytes) -> None:
        with self._cond:
            self._data.extend(chunk)
            self._cond.notify_all()

    def finish(self, error: Optional[str] = None) -> None:
        with self._cond:
            if not self._finished:
                self._finished = True
                self.error = error
            self._cond.notify_all()

    def wait_for_data(self, timeout: float) -> bool:
        """True once at least one full frame is available."""
        with self._cond:
            self._cond.wait_for(lambda: len(self._data) >= self.frame_size or self._finished, timeout)
            return len(self._data) >= self.frame_size

    def read(self, offset_frames: int, max_frames: int, timeout: Optional[float] = None) -> bytes:
        """
        Read up to max_frames frames starting at offset_frames

        Returns:
            Whole frames only; empty when nothing arrived within timeout or
            the offset is past the end of a finished stream
        """
        start = offset_frames * self.frame_size
        with self._cond:
            self._cond.wait_for(lambda: len(self._data) >= start + self.frame_size or self._finished, timeout)
            available = (len(self._data) - start) // self.frame_size
            if available <= 0:
                return b''
            count = min(available, max_frames) * self.frame_size
            return bytes(self._data[start:start + count])


@dataclass(frozen=True)
class NoResource:
    """Nothing is running."""


NO_RESOURCE = NoResource()


@dataclass
class ProcessHandle:
    """An ffmpeg process that has been started but is not yet playing."""
    process: subprocess.Popen
    identifier: str


def terminate_process(process: subprocess.Popen, close_pipes: bool = True) -> None:
    """Kill a process if it is still running and reap it."""
    if process.poll() is None:
        try:
            process.kill()
        except OSError:
            pass
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        logger.warning(f"ffmpeg (pid {process.pid}) did not exit after kill")
    if close_pipes:
        for pipe in (process.stdout, process.stderr):
            if pipe is not None:
                try:
                    pipe.close()
                except OSError:
                    pass


class DecodeHandle:
    """
    Running decode/output pipeline

    Args:
        process: ffmpeg process writing PCM to stdout
        identifier: Track identifier (for logging)
        sample_rate: PCM sample rate
        channels: PCM channel count
        chunk_frames: Frames handed to the sink per write
        duration: Track length in seconds, if known before decoding finishes
        on_finished: Called from the output thread after a natural end of stream
    """

    def __init__(
        self,
        process: subprocess.Popen,
        identifier: str,
        sample_rate: int,
        channels: int,
        chunk_frames: int,
        duration: Optional[float] = None,
        on_finished: Optional[Callable[[], None]] = None,
    ):
        self.process = process
        self.identifier = identifier
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_frames = chunk_frames
        self.duration = duration
        self.on_finished = on_finished

        self.buffer = PcmBuffer(channels * BYTES_PER_SAMPLE)
        self.sink: Optional[AudioSink] = None

        self._cursor = 0
        self._seek_serial = 0
        self._cursor_lock = threading.Lock()

        self._stopped = threading.Event()
        self._resumed = threading.Event()
        self._resumed.set()

        self._decode_thread = threading.Thread(target=self._decode_loop, name="tuneseek-decode", daemon=True)
        self._output_thread: Optional[threading.Thread] = None

    # Lifecycle

    def start_decoding(self) -> None:
        self._decode_thread.start()

    def wait_for_audio(self, timeout: float) -> None:
        """
        Block until ffmpeg has produced audio

        Raises:
            TranscoderError: If ffmpeg exits or times out without producing audio
        """
        if self.buffer.wait_for_data(timeout):
            return
        if self.buffer.finished:
            detail = self.buffer.error or "no audio produced"
            raise TranscoderError(f"ffmpeg failed for {self.identifier}: {detail}",
                                  details={'identifier': self.identifier})
        raise TranscoderError(f"Timed out waiting for audio from {self.identifier}",
                              details={'identifier': self.identifier, 'timeout': timeout})

    def start_output(self, sink: AudioSink) -> None:
        self.sink = sink
        self._output_thread = threading.Thread(target=self._output_loop, name="tuneseek-output", daemon=True)
        self._output_thread.start()

    def close(self) -> None:
        """Stop output, kill ffmpeg and join the worker threads. Idempotent."""
        self._stopped.set()
        self._resumed.set()
        self.buffer.finish()
        if self.sink is not None:
            self.sink.close()

        terminate_process(self.process, close_pipes=False)

        current = threading.current_thread()
        for thread in (self._decode_thread, self._output_thread):
            if thread is not None and thread.is_alive() and thread is not current:
                thread.join(timeout=2)

        for pipe in (self.process.stdout, self.process.stderr):
            if pipe is not None:
                try:
                    pipe.close()
                except OSError:
                    pass

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    # Worker threads

    def _decode_loop(self) -> None:
        stdout = self.process.stdout
        error = None
        try:
            while not self._stopped.is_set():
                chunk = stdout.read1(READ_SIZE)
                if not chunk:
                    break
                self.buffer.append(chunk)
        except (OSError, ValueError) as e:
            if not self._stopped.is_set():
                error = str(e)

        if not self._stopped.is_set():
            returncode = self.process.wait()
            if returncode != 0:
                stderr = self.process.stderr.read() if self.process.stderr else b''
                error = error or (stderr.decode('utf-8', 'replace').strip() or f"exit code {returncode}")
                logger.warning(f"ffmpeg exited with {returncode} for {self.identifier}: {error}")
        self.buffer.finish(error)
        logger.debug(f"Decoding finished for {self.identifier}: {self.buffer.frames} frames")

    def _output_loop(self) -> None:
        while not self._stopped.is_set():
            if not self._resumed.wait(0.1):
                continue

            with self._cursor_lock:
                start = self._cursor
                serial = self._seek_serial

            data = self.buffer.read(start, self.chunk_frames, timeout=0.1)
            if not data:
                if self.buffer.finished and start >= self.buffer.frames:
                    break
                continue

            self.sink.write(data)

            with self._cursor_lock:
                # A seek during write() already moved the cursor
                if self._seek_serial == serial:
                    self._cursor = start + len(data) // self.buffer.frame_size

        if not self._stopped.is_set():
            self.sink.drain()
            if not self._stopped.is_set() and self.on_finished:
                self.on_finished()

    # Controls

    def length_frames(self) -> Optional[int]:
        """Track length in frames; None while unknown."""
        if self.buffer.finished:
            return self.buffer.frames
        if self.duration:
            return int(self.duration * self.sample_rate)
        return None

    def position_seconds(self) -> float:
        with self._cursor_lock:
            return self._cursor / self.sample_rate

    def seek(self, delta_seconds: float) -> float:
        """
        Move the cursor by delta_seconds, clamped to [0, length)

        Returns:
            New position in seconds
        """
        length = self.length_frames()
        if length is None:
            length = self.buffer.frames
        with self._cursor_lock:
            target = self._cursor + int(round(delta_seconds * self.sample_rate))
            target = max(0, min(target, max(length - 1, 0)))
            self._cursor = target
            self._seek_serial += 1
        if self.sink is not None:
            self.sink.flush()
        return target / self.sample_rate

    def set_paused(self, paused: bool) -> None:
        if paused:
            self._resumed.clear()
        else:
            self._resumed.set()
        if self.sink is not None:
            self.sink.set_paused(paused)


EngineResource = Union[NoResource, ProcessHandle, DecodeHandle]


def release_resource(resource: EngineResource) -> NoResource:
    """Tear down whatever the session holds."""
    if isinstance(resource, DecodeHandle):
        resource.close()
    elif isinstance(resource, ProcessHandle):
        terminate_process(resource.process)
    return NO_RESOURCE
