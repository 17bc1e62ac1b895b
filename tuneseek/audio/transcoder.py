"""
ffmpeg process management

Two uses:
- Playback: ffmpeg reads the remote stream (reconnecting on drops) and
  writes raw interleaved s16le PCM to stdout, which the engine drains.
- Persistence: ffmpeg encodes a downloaded file to MP3 with ID3v2.3 tags and
  an optional attached cover image.

Failures are reported as a single TranscoderError; partial output is never
inspected.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..config.settings import get_settings
from ..exceptions import TranscoderError
from ..utils.logger import get_logger
from .source import StreamInfo


class Transcoder:
    """Builds ffmpeg command lines and runs them"""

    def __init__(self, ffmpeg_path: Optional[str] = None):
        self.settings = get_settings()
        self.logger = get_logger(__name__)
        self.ffmpeg_path = ffmpeg_path or self.settings.playback.ffmpeg_path

    def is_available(self) -> bool:
        """True if the ffmpeg executable can be found"""
        return shutil.which(self.ffmpeg_path) is not None

    def pcm_stream_args(self, stream: StreamInfo) -> List[str]:
        """
        ffmpeg arguments that decode a remote stream to raw PCM on stdout

        Args:
            stream: Resolved stream

        Returns:
            Argument list, executable first
        """
        playback = self.settings.playback
        headers = {k: v for k, v in stream.http_headers.items() if k.lower() != 'user-agent'}

        args = [
            self.ffmpeg_path,
            '-hide_banner', '-loglevel', 'error', '-nostdin',
            '-reconnect', '1',
            '-reconnect_streamed', '1',
            '-reconnect_delay_max', '5',
            '-user_agent', stream.http_headers.get('User-Agent') or playback.user_agent,
        ]
        if headers:
            args += ['-headers', ''.join(f"{k}: {v}\r\n" for k, v in headers.items())]
        args += [
            '-i', stream.url,
            '-vn',
            '-f', 's16le',
            '-acodec', 'pcm_s16le',
            '-ar', str(playback.sample_rate),
            '-ac', str(playback.channels),
            'pipe:1',
        ]
        return args

    def open_pcm_stream(self, stream: StreamInfo) -> subprocess.Popen:
        """
        Start ffmpeg decoding a stream to PCM

        Returns:
            Running process; PCM is read from its stdout

        Raises:
            TranscoderError: If ffmpeg cannot be started
        """
        args = self.pcm_stream_args(stream)
        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise TranscoderError(f"Could not start ffmpeg: {e}", details={'ffmpeg': self.ffmpeg_path})

        self.logger.debug(f"ffmpeg decoding {stream.identifier} (pid {process.pid})")
        return process

    def encode_args(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        metadata: Dict[str, str],
        cover_path: Optional[Union[str, Path]] = None,
    ) -> List[str]:
        """
        ffmpeg arguments that encode a file to tagged MP3

        Args:
            input_path: Downloaded audio file
            output_path: Target .mp3 path
            metadata: ID3 fields (title, artist, album, track)
            cover_path: Optional cover image to attach

        Returns:
            Argument list, executable first
        """
        args = [self.ffmpeg_path, '-y', '-hide_banner', '-loglevel', 'error', '-i', str(input_path)]
        if cover_path:
            args += ['-i', str(cover_path), '-map', '0:a:0', '-map', '1:0',
                     '-c:v', 'mjpeg', '-disposition:v:0', 'attached_pic',
                     '-metadata:s:v', 'title=Album cover']
        else:
            args += ['-vn']

        args += [
            '-c:a', 'libmp3lame',
            '-q:a', str(self.settings.download.quality),
            '-id3v2_version', '3',
        ]
        for key, value in metadata.items():
            if value:
                args += ['-metadata', f"{key}={value}"]
        args.append(str(output_path))
        return args

    def encode_file(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        metadata: Dict[str, str],
        cover_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        """
        Encode a file to tagged MP3

        Raises:
            TranscoderError: If ffmpeg is missing, times out, or exits non-zero
        """
        args = self.encode_args(input_path, output_path, metadata, cover_path)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.settings.download.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise TranscoderError(f"ffmpeg encoding failed: {e}", details={'output': str(output_path)})

        if result.returncode != 0:
            error_msg = result.stderr.strip() or f"exit code {result.returncode}"
            raise TranscoderError(
                f"ffmpeg encoding failed: {error_msg}",
                details={'output': str(output_path), 'returncode': result.returncode}
            )
        return Path(output_path)
