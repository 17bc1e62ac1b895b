"""Test configuration and fixtures"""

import tempfile
from pathlib import Path

import pytest

from tuneseek.lyrics.synchronizer import LyricLine, LyricTrack


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_lyrics():
    """Three-line lyric track starting at 0s"""
    return LyricTrack(
        lines=(
            LyricLine(0.0, "first line"),
            LyricLine(3.0, "second line"),
            LyricLine(7.0, "third line"),
        ),
        source="search",
    )


@pytest.fixture
def sample_search_results():
    """Raw ytmusicapi search results of every kind"""
    return [
        {
            'resultType': 'song',
            'videoId': 'dQw4w9WgXcQ',
            'title': 'Never Gonna Give You Up',
            'artists': [{'name': 'Rick Astley', 'id': 'UC1'}],
            'album': {'name': 'Whenever You Need Somebody', 'id': 'MPRE1'},
            'duration': '3:33',
            'duration_seconds': 213,
            'thumbnails': [
                {'url': 'https://img.example/small.jpg', 'width': 60, 'height': 60},
                {'url': 'https://img.example/large.jpg', 'width': 544, 'height': 544},
            ],
        },
        {
            'resultType': 'song',
            'videoId': 'short',
            'title': 'Broken Entry',
            'artists': [{'name': 'Nobody'}],
        },
        {
            'resultType': 'album',
            'browseId': 'MPREb_album',
            'title': 'Whenever You Need Somebody',
            'artists': [{'name': 'Rick Astley'}],
            'year': '1987',
            'thumbnails': [{'url': 'https://img.example/album.jpg', 'width': 226, 'height': 226}],
        },
        {
            'resultType': 'playlist',
            'browseId': 'VLPL123',
            'title': '80s Hits',
            'author': 'Someone',
            'itemCount': '50',
        },
    ]
