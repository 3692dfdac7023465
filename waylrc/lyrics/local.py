"""
Local lyric sources.

Two places on disk can hold lyrics for a local file:
    1. A sidecar .lrc file next to the audio file with the same stem
       (song.flac -> song.lrc, exact name)
    2. Lyric tags inside the audio file itself, read with mutagen:
       - MP3: ID3 SYLT (millisecond timing, converted to LRC) then USLT
       - MP4/M4A: \xa9lyr
       - FLAC/Ogg/Opus: LYRICS then UNSYNCEDLYRICS Vorbis comments

All functions here do blocking file I/O; the pipeline calls them through
asyncio.to_thread().
"""

from pathlib import Path

import mutagen
from mutagen.id3 import ID3
from mutagen.mp4 import MP4

from waylrc.core.logger import get_logger
from waylrc.lyrics.parser import format_timestamp


logger = get_logger(__name__)


SIDECAR_SUFFIX = ".lrc"
VORBIS_LYRIC_KEYS = ("LYRICS", "UNSYNCEDLYRICS")
MP4_LYRIC_KEY = "\xa9lyr"

# ID3 SYLT timestamp format: 1 = MPEG frames, 2 = milliseconds
SYLT_MILLISECONDS = 2


def sidecar_path(audio_path: Path) -> Path:
    return audio_path.with_suffix(SIDECAR_SUFFIX)


def read_sidecar(audio_path: Path) -> str | None:
    """
    Read the .lrc file next to an audio file.

    Args:
        audio_path: Path of the audio file being played.

    Returns:
        The file content, or None if there is no readable sidecar.
    """
    path = sidecar_path(audio_path)
    if not path.is_file():
        return None

    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None


def sylt_to_lrc(entries) -> str:
    """
    Convert ID3 SYLT (text, milliseconds) pairs into LRC text.

    Example:
        sylt_to_lrc([("Hello", 1000), ("World", 2500)])
        # "[00:01.00]Hello\\n[00:02.50]World"
    """
    return "\n".join(f"[{format_timestamp(int(time))}]{text}" for text, time in entries)


def read_tag_lyrics(audio_path: Path) -> str | None:
    """
    Read lyrics embedded in an audio file's tags.

    Args:
        audio_path: Path of the audio file being played.

    Returns:
        Lyric text (LRC when the tag is synchronized), or None when the file
        is unreadable, of an unknown format, or carries no lyric tag.
    """
    if not audio_path.is_file():
        return None

    try:
        audio = mutagen.File(audio_path)
    except (mutagen.MutagenError, OSError) as e:
        logger.debug(f"Cannot read tags of {audio_path}: {e}")
        return None

    if audio is None or audio.tags is None:
        return None

    tags = audio.tags

    if isinstance(tags, ID3):
        for frame in tags.getall("SYLT"):
            if frame.format == SYLT_MILLISECONDS and frame.text:
                return sylt_to_lrc(frame.text)
        for frame in tags.getall("USLT"):
            if frame.text:
                return str(frame.text)
        return None

    if isinstance(audio, MP4):
        values = tags.get(MP4_LYRIC_KEY)
        return "\n".join(values) if values else None

    for key in VORBIS_LYRIC_KEYS:
        try:
            values = tags[key]
        except (KeyError, ValueError):
            continue
        if values:
            return "\n".join(str(v) for v in values)

    return None
