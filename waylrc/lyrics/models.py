"""
Data models for time-synced lyrics.

Design Decisions:
    - Documents are frozen and never mutated after parsing, so a cached
      document can be shared by every evaluation without copying
    - Lines are stored sorted by timestamp, with a parallel tuple of
      timestamps for bisect lookups

Usage:
    from waylrc.lyrics.models import LyricDocument, LyricLine

    document = parse(text)
    index = document.active_index(offset_ms)
    if index is not None:
        print(document.lines[index].text)
"""

from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class LyricLine:
    """
    One timed line of lyrics.

    Attributes:
        timestamp_ms: Offset from the start of the track at which the line
                      becomes active, in milliseconds. Never negative.
        text: Display text with word-time tags and singer prefixes removed.
              May be empty (an instrumental break).
    """
    timestamp_ms: int
    text: str


@dataclass(frozen=True)
class LyricDocument:
    """
    An ordered sequence of lyric lines.

    Attributes:
        lines: Lines sorted by non-decreasing timestamp.
        metadata: Recognized header tags ([ti:], [ar:], [offset:], ...),
                  keyed by lowercase tag name.
        is_timed: True when the source text contained at least one
                  recognized tag. Plain prose parses to an untimed, empty
                  document.

    Example:
        document = LyricDocument.from_lines([LyricLine(0, "a"), LyricLine(5000, "b")])
        document.active_index(6000)  # 1
        document.active_index(-1)    # None
    """
    lines: tuple[LyricLine, ...] = ()
    metadata: dict[str, str] = field(default_factory=dict, compare=False)
    is_timed: bool = False
    timestamps: tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamps", tuple(line.timestamp_ms for line in self.lines))

    @classmethod
    def from_lines(cls, lines, metadata: dict[str, str] | None = None) -> "LyricDocument":
        """Build a timed document from already-sorted lines."""
        return cls(lines=tuple(lines), metadata=dict(metadata or {}), is_timed=True)

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def active_index(self, offset_ms: int) -> int | None:
        """
        Index of the line active at a playback offset.

        The active line is the last line whose timestamp is <= offset.

        Args:
            offset_ms: Playback offset in milliseconds.

        Returns:
            The line index, or None before the first line and for empty
            documents.
        """
        index = bisect_right(self.timestamps, offset_ms) - 1
        return index if index >= 0 else None

    def next_timestamp(self, index: int | None) -> int | None:
        """
        Timestamp of the line following index.

        Args:
            index: Current active index, None meaning "before the first line".

        Returns:
            The next line's timestamp, or None after the last line.
        """
        following = 0 if index is None else index + 1
        if following < len(self.timestamps):
            return self.timestamps[following]
        return None


class ResolutionState(str, Enum):
    """
    Cache state of a track fingerprint.

    RESOLVED: a document was found (possibly with zero lines).
    UNAVAILABLE: every source declined; durable for the process lifetime.
    IN_FLIGHT: a resolution is running.
    """
    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"
    IN_FLIGHT = "in_flight"


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of resolving lyrics for one track.

    Attributes:
        state: See ResolutionState.
        document: The lyrics, set only when RESOLVED.
        source: Which source produced them ("embedded", "sidecar", "tags",
                or a provider name), set only when RESOLVED.
    """
    state: ResolutionState
    document: LyricDocument | None = None
    source: str | None = None

    @classmethod
    def resolved(cls, document: LyricDocument, source: str) -> "Resolution":
        return cls(ResolutionState.RESOLVED, document, source)

    @property
    def is_resolved(self) -> bool:
        return self.state is ResolutionState.RESOLVED


UNAVAILABLE = Resolution(ResolutionState.UNAVAILABLE)
IN_FLIGHT = Resolution(ResolutionState.IN_FLIGHT)
