"""Test ffmpeg command construction and process handling"""

import subprocess
from unittest.mock import Mock, patch

import pytest

from tuneseek.audio.source import StreamInfo
from tuneseek.audio.transcoder import Transcoder
from tuneseek.exceptions import TranscoderError

STREAM = StreamInfo(
    identifier="dQw4w9WgXcQ",
    url="https://media.example/audio",
    http_headers={'User-Agent': 'UA/1.0', 'Referer': 'https://www.youtube.com/'},
    duration=213.0,
)


class TestPcmStream:
    """Test the decode-to-PCM command"""

    def test_pcm_stream_args(self):
        """Test input headers and output format"""
        args = Transcoder(ffmpeg_path="ffmpeg").pcm_stream_args(STREAM)

        assert args[0] == "ffmpeg"
        assert args[args.index('-user_agent') + 1] == 'UA/1.0'
        assert args[args.index('-headers') + 1] == "Referer: https://www.youtube.com/\r\n"
        assert args[args.index('-i') + 1] == STREAM.url
        assert args[args.index('-f') + 1] == 's16le'
        assert args[args.index('-ar') + 1] == '44100'
        assert args[args.index('-ac') + 1] == '2'
        assert args[-1] == 'pipe:1'

    def test_headers_option_omitted_without_extra_headers(self):
        """Test streams that only need a user agent"""
        stream = StreamInfo(identifier="dQw4w9WgXcQ", url="https://media.example/audio")
        args = Transcoder().pcm_stream_args(stream)

        assert '-headers' not in args
        assert args[args.index('-user_agent') + 1]

    def test_open_pcm_stream_failure(self):
        """Test a missing executable"""
        with patch('tuneseek.audio.transcoder.subprocess.Popen', side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(TranscoderError):
                Transcoder().open_pcm_stream(STREAM)

    def test_is_available(self):
        """Test executable lookup"""
        assert not Transcoder(ffmpeg_path="/nonexistent/ffmpeg-binary").is_available()


class TestEncode:
    """Test MP3 encoding"""

    def test_encode_args_with_cover(self):
        """Test cover attachment and metadata"""
        args = Transcoder(ffmpeg_path="ffmpeg").encode_args(
            "in.webm", "out.mp3",
            {'title': 'Song', 'artist': 'Band', 'album': '', 'track': '1/10'},
            cover_path="cover.jpg",
        )

        assert args[:2] == ["ffmpeg", "-y"]
        assert args.count('-i') == 2
        assert 'attached_pic' in args
        assert args[args.index('-c:a') + 1] == 'libmp3lame'
        assert args[args.index('-id3v2_version') + 1] == '3'
        assert 'title=Song' in args and 'track=1/10' in args
        assert not any(arg.startswith('album=') for arg in args)
        assert args[-1] == "out.mp3"

    def test_encode_args_without_cover(self):
        """Test audio-only output"""
        args = Transcoder().encode_args("in.webm", "out.mp3", {'title': 'Song'})

        assert args.count('-i') == 1
        assert '-vn' in args
        assert 'attached_pic' not in args

    def test_encode_file_failure(self):
        """Test non-zero exit and timeouts"""
        transcoder = Transcoder()
        failed = Mock(returncode=1, stderr="Invalid data found")

        with patch('tuneseek.audio.transcoder.subprocess.run', return_value=failed):
            with pytest.raises(TranscoderError, match="Invalid data found"):
                transcoder.encode_file("in.webm", "out.mp3", {})

        with patch('tuneseek.audio.transcoder.subprocess.run',
                   side_effect=subprocess.TimeoutExpired(cmd="ffmpeg", timeout=1)):
            with pytest.raises(TranscoderError):
                transcoder.encode_file("in.webm", "out.mp3", {})

    def test_encode_file_success(self, temp_dir):
        """Test the output path is returned"""
        with patch('tuneseek.audio.transcoder.subprocess.run', return_value=Mock(returncode=0, stderr="")) as run:
            result = Transcoder().encode_file("in.webm", temp_dir / "out.mp3", {'title': 'Song'})

        assert result == temp_dir / "out.mp3"
        assert run.call_args.kwargs['timeout'] == 300
