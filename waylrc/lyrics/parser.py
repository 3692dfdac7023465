"""
LRC parser.

Turns raw LRC text into a LyricDocument. The parser never fails: anything
it cannot understand is dropped and the rest of the document survives.

Supported syntax:
    [mm:ss.xx]text              Timed line (also mm:ss, mm:ss.x, mm:ss.xxx
                                and mm:ss:xx)
    [mm:ss.xx][mm:ss.xx]text    Same text at several timestamps
    [ti:Title] [ar:Artist] ...  Header tags, kept as document metadata
    [offset:+500]               Shift every line 500 ms earlier
    <mm:ss.xx>word              Enhanced LRC word times (stripped)
    F: / M: / D:                Walaoke singer prefixes (stripped)

Usage:
    from waylrc.lyrics.parser import parse

    document = parse("[00:01.00]Hello\\n[00:02.50]World")
    document.lines[1].timestamp_ms  # 2500
"""

import re

from waylrc.core.logger import get_logger
from waylrc.lyrics.models import LyricDocument, LyricLine


logger = get_logger(__name__)


TIMESTAMP_PATTERN = re.compile(r"^\s*(\d+):(\d+)(?:[.:](\d+))?\s*$")
METADATA_PATTERN = re.compile(r"^\s*([A-Za-z][A-Za-z#]*)\s*:(.*)$", re.DOTALL)
WORD_TIME_PATTERN = re.compile(r"<\d+:\d+(?:[.:]\d+)?>\s*")
SINGER_PREFIX_PATTERN = re.compile(r"^[FMD]:\s*")

OFFSET_TAG = "offset"

# Separator of lyric text that a player flattened onto one line
CONCATENATED_SEPARATOR = " ["


def parse_timestamp(tag: str) -> int | None:
    """
    Parse the inside of a time tag into milliseconds.

    Args:
        tag: Tag content without brackets, e.g. "01:02.50".

    Returns:
        Milliseconds, or None if the tag is not a timestamp.

    Example:
        parse_timestamp("01:02.5")   # 62500
        parse_timestamp("00:05:20")  # 5200
        parse_timestamp("ti:Song")   # None
    """
    match = TIMESTAMP_PATTERN.match(tag)
    if match is None:
        return None

    minutes, seconds, fraction = match.groups()
    milliseconds = int(minutes) * 60_000 + int(seconds) * 1000
    if fraction:
        # .5 -> 500, .05 -> 50, .005 -> 5, extra digits are truncated
        milliseconds += int((fraction + "00")[:3])
    return milliseconds


def clean_text(text: str) -> str:
    """Remove word-time tags and singer prefixes from a line's text."""
    text = WORD_TIME_PATTERN.sub("", text).strip()
    return SINGER_PREFIX_PATTERN.sub("", text).strip()


def split_concatenated(text: str) -> str:
    """
    Undo players flattening LRC text onto a single line.

    Some players publish xesam:asText with the line breaks replaced by
    spaces. If the text is one physical line, a new line is started at
    every " [".

    Args:
        text: Lyric text as received from the player.

    Returns:
        The text with line breaks restored, or unchanged.
    """
    stripped = text.strip()
    if "\n" in stripped or CONCATENATED_SEPARATOR not in stripped:
        return text

    pieces = stripped.split(CONCATENATED_SEPARATOR)
    return "\n".join([pieces[0]] + ["[" + piece for piece in pieces[1:]])


def _split_tags(line: str) -> tuple[list[str], str]:
    """Separate the leading [..] tags of a line from its text."""
    tags: list[str] = []
    rest = line.strip()

    while rest.startswith("["):
        end = rest.find("]")
        if end == -1:
            break
        tags.append(rest[1:end])
        rest = rest[end + 1:]

    return tags, rest


def parse(text: str) -> LyricDocument:
    """
    Parse LRC text into a LyricDocument.

    Args:
        text: Raw LRC text.

    Returns:
        LyricDocument with lines sorted by timestamp. When two lines share a
        timestamp only the one appearing last in the source is kept.

    Behavior:
        1. Each physical line is split into its leading tags and its text
        2. Every valid time tag yields one LyricLine with the cleaned text
        3. Header tags are collected into metadata
        4. Malformed tags are dropped; a line with no valid timestamp and
           no header tag is dropped
        5. [offset:] is applied and lines are stably sorted
    """
    entries: list[tuple[int, str]] = []
    metadata: dict[str, str] = {}
    is_timed = False
    dropped_tags = 0

    for raw_line in text.lstrip("\ufeff").splitlines():
        tags, rest = _split_tags(raw_line)
        if not tags:
            continue

        timestamps: list[int] = []
        for tag in tags:
            timestamp = parse_timestamp(tag)
            if timestamp is not None:
                timestamps.append(timestamp)
                continue

            header = METADATA_PATTERN.match(tag)
            if header is not None:
                metadata[header.group(1).lower()] = header.group(2).strip()
                is_timed = True
                continue

            dropped_tags += 1

        if timestamps:
            is_timed = True
            line_text = clean_text(rest)
            entries.extend((timestamp, line_text) for timestamp in timestamps)

    if dropped_tags:
        logger.debug(f"Dropped {dropped_tags} malformed LRC tag(s)")

    offset = _parse_offset(metadata.get(OFFSET_TAG))
    if offset:
        entries = [(max(0, timestamp - offset), line_text) for timestamp, line_text in entries]

    # Stable sort keeps source order among equal timestamps; the last wins
    entries.sort(key=lambda entry: entry[0])
    lines: list[LyricLine] = []
    for timestamp, line_text in entries:
        if lines and lines[-1].timestamp_ms == timestamp:
            lines[-1] = LyricLine(timestamp, line_text)
        else:
            lines.append(LyricLine(timestamp, line_text))

    return LyricDocument(lines=tuple(lines), metadata=metadata, is_timed=is_timed)


def _parse_offset(value: str | None) -> int:
    if not value:
        return 0
    try:
        return int(value.strip())
    except ValueError:
        logger.debug(f"Ignoring malformed offset tag: {value!r}")
        return 0


def format_timestamp(milliseconds: int) -> str:
    """
    Format milliseconds as an LRC time tag body (mm:ss.xx).

    Example:
        format_timestamp(62500)  # "01:02.50"
    """
    minutes, remainder = divmod(max(0, milliseconds), 60_000)
    seconds, millis = divmod(remainder, 1000)
    return f"{minutes:02d}:{seconds:02d}.{millis // 10:02d}"
