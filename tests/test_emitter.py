# tests/test_emitter.py
"""Test Waybar record output"""

import io
import json

import pytest

from waylrc.core.config import OutputConfig
from waylrc.mpris.models import PlaybackStatus
from waylrc.output.emitter import OutputEmitter, build_record, escape, format_metadata
from waylrc.sync.scheduler import IDLE_DECISION, ActiveLineDecision, DecisionState


MPV = "org.mpris.MediaPlayer2.mpv"


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def emitter(stream):
    return OutputEmitter(OutputConfig(skip_metadata=("xesam:asText",)), stream=stream)


def lyrics_decision(track, index=1, text="b", status=PlaybackStatus.PLAYING, metadata=None, offset=6000):
    return ActiveLineDecision(
        DecisionState.LYRICS,
        player=MPV,
        status=status,
        track=track,
        line_index=index,
        text=text,
        offset_ms=offset,
        metadata=metadata or {"xesam:title": "Test Song"},
    )


def records(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestFormatting:
    """Test escaping and tooltip formatting"""

    def test_escape(self):
        """Test Pango markup characters are escaped"""
        assert escape("Rock & <Roll>") == "Rock &amp; &lt;Roll&gt;"
        assert escape('"quoted"') == '"quoted"'

    def test_format_metadata(self):
        """Test keys are sorted, skipped and long values summarized"""
        metadata = {
            "xesam:title": "Song",
            "xesam:artist": ["A", "B"],
            "xesam:asText": "[00:01.00]lyrics",
            "mpris:artUrl": "x" * 300,
        }

        text = format_metadata(metadata, skip=("xesam:asText",))

        assert text.splitlines() == [
            "mpris:artUrl: (300 bytes blob)",
            "xesam:artist: A; B",
            "xesam:title: Song",
        ]

    def test_empty_metadata(self):
        """Test no metadata gives an empty tooltip"""
        assert format_metadata({}) == ""


class TestBuildRecord:
    """Test record contents"""

    def test_lyrics_record(self, make_track):
        """Test text, tooltip, class and alt of a lyric line"""
        record = build_record(lyrics_decision(make_track(), text="Tom & Jerry"))

        assert record == {
            "text": "Tom &amp; Jerry",
            "tooltip": "xesam:title: Test Song",
            "class": "lyrics",
            "alt": "mpv",
        }

    def test_paused_class(self, make_track):
        """Test a paused player adds the paused class"""
        record = build_record(lyrics_decision(make_track(), status=PlaybackStatus.PAUSED))

        assert record["class"] == ["lyrics", "paused"]

    def test_idle_record(self):
        """Test the idle record has empty text and no tooltip or alt"""
        assert build_record(IDLE_DECISION) == {"text": "", "class": "idle"}


class TestOutputEmitter:
    """Test deduplicated emission"""

    def test_identical_decisions_emit_once(self, emitter, stream, make_track):
        """Test two identical evaluations produce one record"""
        track = make_track()

        assert emitter.emit(lyrics_decision(track))
        assert not emitter.emit(lyrics_decision(track))

        assert len(records(stream)) == 1

    def test_offset_only_changes_are_not_emitted(self, emitter, stream, make_track):
        """Test progress within a line does not rewrite the bar"""
        track = make_track()

        emitter.emit(lyrics_decision(track, offset=6000))
        emitter.emit(lyrics_decision(track, offset=7000))

        assert len(records(stream)) == 1

    def test_line_change_is_emitted(self, emitter, stream, make_track):
        """Test a new line writes a new record"""
        track = make_track()

        emitter.emit(lyrics_decision(track, index=1, text="b"))
        emitter.emit(lyrics_decision(track, index=2, text="c"))

        assert [r["text"] for r in records(stream)] == ["b", "c"]

    def test_one_json_object_per_line(self, emitter, stream, make_track):
        """Test every record is newline terminated and keeps non-ASCII text"""
        emitter.emit(lyrics_decision(make_track(), text="夜に駆ける"))

        output = stream.getvalue()
        assert output.endswith("\n")
        assert "夜に駆ける" in output
        assert records(stream)[0]["text"] == "夜に駆ける"
