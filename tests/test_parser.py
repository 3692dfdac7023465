# tests/test_parser.py
"""Test LRC parsing"""

import pytest

from waylrc.lyrics.models import LyricDocument, LyricLine
from waylrc.lyrics.parser import (
    clean_text,
    format_timestamp,
    parse,
    parse_timestamp,
    split_concatenated,
)


class TestParseTimestamp:
    """Test time tag parsing"""

    @pytest.mark.parametrize("tag,expected", [
        ("00:00.00", 0),
        ("01:02.50", 62500),
        ("01:02.5", 62500),
        ("00:01.005", 1005),
        ("00:05:20", 5200),
        ("03:07", 187000),
        ("100:00.00", 6_000_000),
    ])
    def test_valid_timestamps(self, tag, expected):
        """Test accepted timestamp spellings"""
        assert parse_timestamp(tag) == expected

    @pytest.mark.parametrize("tag", ["ti:Song", "aa:bb.cc", "", "1.5", "00:xx"])
    def test_invalid_timestamps(self, tag):
        """Test that non-timestamps are rejected"""
        assert parse_timestamp(tag) is None

    def test_format_timestamp(self):
        """Test millisecond formatting back into a tag body"""
        assert format_timestamp(62500) == "01:02.50"
        assert format_timestamp(0) == "00:00.00"
        assert format_timestamp(-5) == "00:00.00"


class TestParse:
    """Test whole-document parsing"""

    def test_simple_document(self):
        """Test ordinary timed lines"""
        document = parse("[00:01.00]Hello\n[00:02.50]World")

        assert document.is_timed
        assert document.lines == (LyricLine(1000, "Hello"), LyricLine(2500, "World"))

    def test_lines_are_sorted(self):
        """Test out-of-order input comes out sorted"""
        document = parse("[00:10.00]c\n[00:00.00]a\n[00:05.00]b")

        assert [line.text for line in document.lines] == ["a", "b", "c"]
        assert list(document.timestamps) == sorted(document.timestamps)

    def test_multiple_timestamps_expand(self):
        """Test a line with two tags becomes two lines with the same text"""
        document = parse("[00:01.00][00:30.00]Chorus\n[00:10.00]Verse")

        assert len(document) == 3
        chorus = [line for line in document.lines if line.text == "Chorus"]
        assert [line.timestamp_ms for line in chorus] == [1000, 30000]

    def test_malformed_tag_amid_valid_lines(self):
        """Test a broken tag does not spoil the rest of the document"""
        document = parse("[00:03.00]c\n[0a:1b]broken\n[00:01.00]a\nno tags here\n[00:02.00]b")

        assert [line.text for line in document.lines] == ["a", "b", "c"]

    def test_malformed_tag_keeps_valid_tags_on_same_line(self):
        """Test only the broken tag of a line is dropped"""
        document = parse("[00:01.00][bogus][00:04.00]Twice")

        assert [line.timestamp_ms for line in document.lines] == [1000, 4000]

    def test_metadata_tags(self):
        """Test header tags are collected with lowercase keys"""
        document = parse("[ti:Song]\n[AR: Artist ]\n[00:01.00]line")

        assert document.metadata == {"ti": "Song", "ar": "Artist"}
        assert len(document) == 1

    def test_offset_shifts_lines_earlier(self):
        """Test a positive offset shifts every line earlier, clamped at 0"""
        document = parse("[offset:+500]\n[00:00.20]first\n[00:02.00]second")

        assert [line.timestamp_ms for line in document.lines] == [0, 1500]

    def test_negative_offset(self):
        """Test a negative offset delays the lines"""
        document = parse("[offset:-1000]\n[00:01.00]line")

        assert document.lines[0].timestamp_ms == 2000

    def test_duplicate_timestamp_last_wins(self):
        """Test the line appearing last in the source wins a timestamp tie"""
        document = parse("[00:01.00]first\n[00:01.00]second")

        assert document.lines == (LyricLine(1000, "second"),)

    def test_empty_text_lines_are_kept(self):
        """Test instrumental breaks clear the display"""
        document = parse("[00:01.00]sung\n[00:05.00]\n[00:09.00]sung again")

        assert document.lines[1] == LyricLine(5000, "")

    def test_enhanced_lrc_and_singer_prefix_are_stripped(self):
        """Test word times and Walaoke prefixes are removed from text"""
        document = parse("[00:01.00]F: <00:01.00>Hello <00:01.50>there")

        assert document.lines[0].text == "Hello there"

    def test_plain_text_is_not_timed(self):
        """Test prose without tags yields an untimed, empty document"""
        document = parse("Just some words\nwithout any timing")

        assert not document.is_timed
        assert document.is_empty

    def test_metadata_only_document_is_timed(self):
        """Test an instrumental file with only headers counts as timed"""
        document = parse("[ti:Instrumental]\n[ar:Band]")

        assert document.is_timed
        assert document.is_empty

    def test_byte_order_mark(self):
        """Test a leading BOM does not hide the first tag"""
        document = parse("\ufeff[00:01.00]line")

        assert document.lines == (LyricLine(1000, "line"),)

    def test_empty_input(self):
        """Test empty text never fails"""
        document = parse("")

        assert document.is_empty
        assert not document.is_timed

    def test_clean_text(self):
        """Test text cleanup on its own"""
        assert clean_text("  M: words  ") == "words"
        assert clean_text("<00:01.00>a <00:02.00>b") == "a b"


class TestSplitConcatenated:
    """Test restoring line breaks in flattened player text"""

    def test_single_line_is_split(self):
        """Test flattened LRC is split before each tag"""
        text = "[00:01.00]One [00:02.00]Two [00:03.00]Three"

        assert split_concatenated(text) == "[00:01.00]One\n[00:02.00]Two\n[00:03.00]Three"

    def test_multiline_text_untouched(self):
        """Test text that already has line breaks is returned as is"""
        text = "[00:01.00]One [x]\n[00:02.00]Two"

        assert split_concatenated(text) == text

    def test_parse_after_split(self):
        """Test flattened text parses into separate lines"""
        document = parse(split_concatenated("[00:01.00]One [00:02.00]Two"))

        assert [line.text for line in document.lines] == ["One", "Two"]


class TestLyricDocument:
    """Test active line lookup"""

    @pytest.fixture
    def document(self):
        return LyricDocument.from_lines([
            LyricLine(0, "a"),
            LyricLine(5000, "b"),
            LyricLine(10000, "c"),
        ])

    def test_active_index(self, document):
        """Test the active line is the last one at or before the offset"""
        assert document.active_index(0) == 0
        assert document.active_index(4999) == 0
        assert document.active_index(5000) == 1
        assert document.active_index(6000) == 1
        assert document.active_index(99999) == 2

    def test_active_index_before_first_line(self):
        """Test offsets before the first line have no active line"""
        document = LyricDocument.from_lines([LyricLine(3000, "late")])

        assert document.active_index(2999) is None

    def test_active_index_empty_document(self):
        """Test an empty document never has an active line"""
        assert LyricDocument().active_index(1000) is None

    def test_next_timestamp(self, document):
        """Test lookup of the following line"""
        assert document.next_timestamp(None) == 0
        assert document.next_timestamp(0) == 5000
        assert document.next_timestamp(1) == 10000
        assert document.next_timestamp(2) is None
