"""Test LRC parsing, line lookup and the lyrics fetch strategy"""

from tuneseek.exceptions import LyricsServiceError
from tuneseek.lyrics.synchronizer import (
    LyricLine,
    LyricSynchronizer,
    LyricTrack,
    find_line_index,
    parse_lrc
)

from .fakes import FakeLyricsClient

SYNCED = "[00:01.00]One more time\n[00:05.50]We're gonna celebrate"


class TestParseLrc:
    """Test LRC parsing"""

    def test_lines_are_sorted(self):
        """Test that output is sorted regardless of input order"""
        lines = parse_lrc("[00:10.00]third\n[00:01.00]first\n[00:05.25]second")
        assert [line.text for line in lines] == ["first", "second", "third"]
        assert [line.timestamp for line in lines] == [1.0, 5.25, 10.0]

    def test_repeated_tags_expand(self):
        """Test that a line with several tags appears once per tag"""
        lines = parse_lrc("[00:12.00][01:05.50]Chorus\n[00:30.00]Verse")
        assert [(line.timestamp, line.text) for line in lines] == [
            (12.0, "Chorus"),
            (30.0, "Verse"),
            (65.5, "Chorus"),
        ]

    def test_skips_metadata_and_untagged_lines(self):
        """Test that only time-tagged lines are kept"""
        text = "[ar:Daft Punk]\n[ti:One More Time]\n\nplain text\n[00:01.00]One more time"
        assert parse_lrc(text) == [LyricLine(1.0, "One more time")]

    def test_optional_fraction_and_empty_text(self):
        """Test tags without hundredths and instrumental gaps"""
        lines = parse_lrc("[01:02]No fraction\n[01:10.00]")
        assert lines == [LyricLine(62.0, "No fraction"), LyricLine(70.0, "")]

    def test_equal_timestamps_keep_source_order(self):
        """Test stable ordering for shared timestamps"""
        lines = parse_lrc("[00:02.00]b\n[00:01.00]a1\n[00:01.00]a2")
        assert [line.text for line in lines] == ["a1", "a2", "b"]

    def test_empty_input(self):
        """Test empty and missing documents"""
        assert parse_lrc(None) == []
        assert parse_lrc("") == []


class TestLineLookup:
    """Test position to line lookup"""

    def test_before_first_line(self):
        """Test the before-start sentinel"""
        lines = (LyricLine(2.0, "a"), LyricLine(4.0, "b"))
        assert find_line_index(lines, 1.99) == -1
        assert find_line_index((), 10.0) == -1

    def test_greatest_line_not_after_position(self, sample_lyrics):
        """Test exact boundaries and positions between lines"""
        assert sample_lyrics.line_index_at(0.0) == 0
        assert sample_lyrics.line_index_at(2.99) == 0
        assert sample_lyrics.line_index_at(3.0) == 1
        assert sample_lyrics.line_index_at(6.5) == 1
        assert sample_lyrics.line_index_at(100.0) == 2

    def test_lookup_is_monotonic(self, sample_lyrics):
        """Test that the index never decreases as time advances"""
        indices = [sample_lyrics.line_index_at(step * 0.25) for step in range(-8, 60)]
        assert indices == sorted(indices)
        assert indices[0] == -1 and indices[-1] == 2

    def test_line_at(self, sample_lyrics):
        """Test index to line access"""
        assert sample_lyrics.line_at(1).text == "second line"
        assert sample_lyrics.line_at(-1) is None
        assert sample_lyrics.line_at(3) is None

    def test_not_found_sentinel(self):
        """Test the empty lyric track"""
        empty = LyricTrack.not_found()
        assert empty.is_empty
        assert len(empty) == 0
        assert empty.line_index_at(5.0) == -1


class TestLyricSynchronizer:
    """Test the fetch strategy"""

    def test_search_with_normalized_keys(self):
        """Test that the first record with synced lyrics wins"""
        client = FakeLyricsClient(search_results={
            "daft punk one more time": [{'syncedLyrics': None, 'plainLyrics': 'x'}, {'syncedLyrics': SYNCED}],
        })
        lyrics = LyricSynchronizer(client=client).fetch_lyrics(
            "One More Time (Official Video)", "Daft Punk - Topic", 320)

        assert lyrics.source == "search"
        assert [line.text for line in lyrics.lines] == ["One more time", "We're gonna celebrate"]
        assert client.search_calls == ["daft punk one more time"]
        assert client.get_calls == []

    def test_split_title_retry(self):
        """Test the "Artist - Title" retry"""
        client = FakeLyricsClient(search_results={
            "daft punk one more time": [{'syncedLyrics': SYNCED}],
        })
        lyrics = LyricSynchronizer(client=client).fetch_lyrics("Daft Punk - One More Time", "Some Uploader")

        assert lyrics is not None
        assert client.search_calls == [
            "some uploader daft punk one more time",
            "daft punk one more time",
        ]

    def test_exact_lookup_without_duration(self):
        """Test the exact lookup fallback sends cleaned display names"""
        client = FakeLyricsClient(records={
            ("Daft Punk", "One More Time"): {'syncedLyrics': SYNCED},
        })
        lyrics = LyricSynchronizer(client=client).fetch_lyrics(
            "One More Time (Official Video)", "Daft Punk - Topic", 320)

        assert lyrics.source == "get"
        assert client.get_calls == [("Daft Punk", "One More Time", None)]

    def test_exact_lookup_keeps_separators(self):
        """Test "&" and case survive into the exact lookup"""
        client = FakeLyricsClient(records={
            ("Simon & Garfunkel", "The Boxer"): {'syncedLyrics': SYNCED},
        })
        lyrics = LyricSynchronizer(client=client).fetch_lyrics("The Boxer", "Simon & Garfunkel")

        assert lyrics is not None
        assert client.search_calls == ["simon garfunkel the boxer"]
        assert client.get_calls == [("Simon & Garfunkel", "The Boxer", None)]

    def test_exact_lookup_uses_original_names_after_split(self):
        """Test a failed "Artist - Title" retry does not change the exact lookup"""
        client = FakeLyricsClient()
        LyricSynchronizer(client=client).fetch_lyrics("Daft Punk - One More Time", "Some Uploader")

        assert client.get_calls == [("Some Uploader", "Daft Punk One More Time", None)]

    def test_plain_lyrics_only_is_not_found(self):
        """Test that unsynced lyrics do not count"""
        client = FakeLyricsClient(
            search_results={"daft punk one more time": [{'syncedLyrics': '', 'plainLyrics': 'words'}]},
            records={("Daft Punk", "One More Time"): {'syncedLyrics': None, 'plainLyrics': 'words'}},
        )
        assert LyricSynchronizer(client=client).fetch_lyrics("One More Time", "Daft Punk") is None

    def test_service_errors_are_not_found(self):
        """Test that every failing step degrades to not found"""
        client = FakeLyricsClient(error=LyricsServiceError("timeout"))
        lyrics = LyricSynchronizer(client=client).fetch_lyrics("Daft Punk - One More Time", "Uploader")

        assert lyrics is None
        assert len(client.search_calls) == 2
        assert len(client.get_calls) == 1
