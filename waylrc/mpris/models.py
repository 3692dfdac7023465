"""
Data models for MPRIS players.

Design Decisions:
    - Track is frozen: a metadata change replaces the whole Track value, so
      a Track handed to the resolution pipeline can never change under it
    - Player is mutable but owned by PlayerRegistry, which is the only
      writer; everything else reads it
    - Positions are milliseconds, timestamps are seconds of the monotonic
      clock the daemon was built with

Usage:
    from waylrc.mpris.models import Track, Player, PlaybackStatus

    track = Track.from_metadata({"xesam:title": "Song", "xesam:artist": ["Artist"]})
    print(track.fingerprint)
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse


# MPRIS metadata keys
TITLE_KEY = "xesam:title"
ARTIST_KEY = "xesam:artist"
ALBUM_KEY = "xesam:album"
URL_KEY = "xesam:url"
AS_TEXT_KEY = "xesam:asText"
LENGTH_KEY = "mpris:length"
TRACK_ID_KEY = "mpris:trackid"

# Separator between fingerprint components (cannot appear in D-Bus strings)
FINGERPRINT_SEPARATOR = "\x00"


class PlaybackStatus(str, Enum):
    """MPRIS PlaybackStatus property values."""
    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"

    @classmethod
    def parse(cls, value: Any) -> "PlaybackStatus":
        """Parse a D-Bus value; anything unknown counts as Stopped."""
        try:
            return cls(str(value))
        except ValueError:
            return cls.STOPPED


class PlayerLifecycle(str, Enum):
    """
    Registry lifecycle of a player.

    DISCOVERING: the bus name appeared, properties not read yet.
    ACTIVE: properties known, player eligible for focus.
    GONE: the bus name vanished; the entry is about to be removed.
    """
    DISCOVERING = "discovering"
    ACTIVE = "active"
    GONE = "gone"


def local_path_from_url(url: str | None) -> Path | None:
    """
    Decode a file:// URL into a filesystem path.

    Example:
        local_path_from_url("file:///music/My%20Song.flac")  # Path("/music/My Song.flac")
        local_path_from_url("https://example.com/stream")   # None
    """
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme != "file":
        return None
    return Path(unquote(parsed.path))


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value).strip()


@dataclass(frozen=True)
class Track:
    """
    Immutable identity of what a player is playing.

    Attributes:
        title: xesam:title, empty when unknown.
        artists: xesam:artist as a tuple.
        album: xesam:album, empty when unknown.
        length_ms: mpris:length converted to milliseconds, None when unknown.
        url: xesam:url, None when unknown.
        embedded_lyrics: xesam:asText, lyric text published by the player.
        track_id: mpris:trackid object path.

    Properties:
        fingerprint: Stable key derived from title, artists, album and the
                     local file path. Identical metadata always yields the
                     same fingerprint; the track id alone never does.
        local_path: Filesystem path for file:// URLs.

    Example:
        track = Track.from_metadata(player_metadata)
        print(f"{track.display_name} ({track.length_ms} ms)")
    """
    title: str = ""
    artists: tuple[str, ...] = ()
    album: str = ""
    length_ms: int | None = None
    url: str | None = None
    embedded_lyrics: str | None = field(default=None, repr=False)
    track_id: str | None = None

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> "Track":
        """
        Create a Track from an unwrapped MPRIS Metadata dictionary.

        Args:
            metadata: Metadata with D-Bus variants already unwrapped.

        Returns:
            Track: Immutable track value.
        """
        artists = metadata.get(ARTIST_KEY) or ()
        if isinstance(artists, str):
            artists = (artists,)

        length = metadata.get(LENGTH_KEY)
        length_ms = None
        if isinstance(length, (int, float)) and length > 0:
            length_ms = int(length) // 1000

        url = metadata.get(URL_KEY)
        lyrics = metadata.get(AS_TEXT_KEY)
        if isinstance(lyrics, (list, tuple)):
            lyrics = "\n".join(str(line) for line in lyrics)
        track_id = metadata.get(TRACK_ID_KEY)

        return cls(
            title=_as_text(metadata.get(TITLE_KEY)),
            artists=tuple(str(a).strip() for a in artists if str(a).strip()),
            album=_as_text(metadata.get(ALBUM_KEY)),
            length_ms=length_ms,
            url=str(url) if url else None,
            embedded_lyrics=str(lyrics) if lyrics else None,
            track_id=str(track_id) if track_id else None,
        )

    @property
    def local_path(self) -> Path | None:
        return local_path_from_url(self.url)

    @property
    def artist(self) -> str:
        """All artists joined for display and searching."""
        return ", ".join(self.artists)

    @property
    def display_name(self) -> str:
        if self.artists:
            return f"{self.artist} - {self.title or 'Unknown'}"
        return self.title or self.url or "Unknown"

    @property
    def fingerprint(self) -> str:
        local_path = self.local_path
        parts = [
            self.title.casefold(),
            FINGERPRINT_SEPARATOR.join(a.casefold() for a in self.artists),
            self.album.casefold(),
            str(local_path) if local_path is not None else "",
        ]
        if not any(parts):
            # Nothing descriptive at all: fall back to whatever identifies it
            parts.append(self.url or self.track_id or "")
        key = FINGERPRINT_SEPARATOR.join(parts)
        return hashlib.sha1(key.encode("utf-8")).hexdigest()


@dataclass
class Player:
    """
    Current knowledge about one MPRIS player.

    Mutated only by PlayerRegistry.

    Attributes:
        name: Well-known bus name, e.g. "org.mpris.MediaPlayer2.mpv".
        lifecycle: Registry lifecycle state.
        status: Last confirmed PlaybackStatus.
        track: Current track, None when the player publishes no metadata.
        metadata: Unwrapped Metadata dictionary (for the tooltip).
        rate: Playback rate, 1.0 when the player does not publish one.
        position_ms: Last confirmed position.
        confirmed_at: Monotonic time at which position_ms was confirmed.
        playing_seq: Registry sequence number of the last transition into
                     Playing (0 = never).
        active_seq: Registry sequence number of the last status change.
    """
    name: str
    lifecycle: PlayerLifecycle = PlayerLifecycle.DISCOVERING
    status: PlaybackStatus = PlaybackStatus.STOPPED
    track: Track | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    rate: float = 1.0
    position_ms: int = 0
    confirmed_at: float = 0.0
    playing_seq: int = 0
    active_seq: int = 0

    @property
    def effective_status(self) -> PlaybackStatus:
        """PlaybackStatus with a Playing player at rate 0 treated as Paused."""
        if self.status is PlaybackStatus.PLAYING and self.rate == 0:
            return PlaybackStatus.PAUSED
        return self.status

    @property
    def is_active(self) -> bool:
        return self.lifecycle is PlayerLifecycle.ACTIVE


@dataclass(frozen=True)
class PlayerSnapshot:
    """
    Full property read of one player, as returned by Properties.GetAll.

    Attributes:
        name: Well-known bus name.
        status: PlaybackStatus.
        metadata: Unwrapped Metadata dictionary.
        position_us: Position in microseconds, None if unreadable.
        rate: Rate, None if the player does not implement it.
    """
    name: str
    status: PlaybackStatus
    metadata: dict[str, Any] = field(default_factory=dict)
    position_us: int | None = None
    rate: float | None = None
