"""
Navidrome lyric provider (Subsonic API).

Workflow:
    1. rest/search3 with "artist title", up to 10 songs
    2. Score each song against the track (title 3, artist 2, album 1,
       duration 1.5 when both sides know them); keep the best above 0.5
    3. rest/getLyricsBySongId for the chosen song
    4. Convert the first structured lyrics entry into LRC text

Authentication uses the Subsonic token scheme: the password never leaves
the machine, only md5(password + salt) and the salt do.
"""

import hashlib
import secrets
from typing import Any

import aiohttp

from waylrc.core.config import ExternalProvider, NavidromeConfig
from waylrc.core.exceptions import ProviderError
from waylrc.core.logger import get_logger
from waylrc.lyrics.parser import format_timestamp
from waylrc.lyrics.providers.base import (
    LyricsProvider,
    is_duration_similar,
    is_similar,
)
from waylrc.mpris.models import Track


logger = get_logger(__name__)


SUBSONIC_API_VERSION = "1.16.1"
CLIENT_NAME = "waylrc"
SEARCH_SONG_COUNT = 10

TITLE_WEIGHT = 3.0
ARTIST_WEIGHT = 2.0
ALBUM_WEIGHT = 1.0
DURATION_WEIGHT = 1.5
MIN_MATCH_SCORE = 0.5

# Subsonic error codes meaning bad credentials
AUTH_ERROR_CODES = (40, 41)


def auth_params(username: str, password: str, salt: str | None = None) -> dict[str, str]:
    """
    Build Subsonic token authentication parameters.

    Args:
        username: Account name.
        password: Clear text password.
        salt: Random salt, generated when None.

    Returns:
        Query parameters u, t, s, v, c and f.
    """
    salt = salt or secrets.token_hex(6)
    token = hashlib.md5((password + salt).encode("utf-8")).hexdigest()
    return {
        "u": username,
        "t": token,
        "s": salt,
        "v": SUBSONIC_API_VERSION,
        "c": CLIENT_NAME,
        "f": "json",
    }


def match_score(track: Track, song: dict[str, Any]) -> float:
    """
    Weighted similarity between a track and a search3 song entry.

    Returns:
        Score in [0, 1].
    """
    score = 0.0
    total = 0.0

    total += TITLE_WEIGHT
    if is_similar(track.title, song.get("title")):
        score += TITLE_WEIGHT

    total += ARTIST_WEIGHT
    if song.get("artist") and is_similar(track.artist, song["artist"]):
        score += ARTIST_WEIGHT

    if track.album and song.get("album"):
        total += ALBUM_WEIGHT
        if is_similar(track.album, song["album"]):
            score += ALBUM_WEIGHT

    if track.length_ms is not None and song.get("duration"):
        total += DURATION_WEIGHT
        if is_duration_similar(track.length_ms / 1000, float(song["duration"])):
            score += DURATION_WEIGHT

    return score / total


def structured_to_lrc(lines: list[dict[str, Any]]) -> str:
    """
    Convert Subsonic structured lyric lines into LRC text.

    Lines with a start time become "[mm:ss.xx]value"; lines without one
    are kept as plain text.
    """
    output = []
    for line in lines:
        value = line.get("value", "")
        start = line.get("start")
        if start is None:
            output.append(value)
        else:
            output.append(f"[{format_timestamp(int(start))}]{value}")
    return "\n".join(output)


class NavidromeProvider(LyricsProvider):
    """
    Fetches lyrics from a Navidrome (or any Subsonic API 1.16.1) server.

    Example:
        provider = NavidromeProvider(config.providers.navidrome)
        text = await provider.fetch(track, session)
    """

    kind = ExternalProvider.NAVIDROME

    def __init__(self, config: NavidromeConfig) -> None:
        self.config = config

    def _url(self, endpoint: str) -> str:
        return f"{self.config.server_url}/rest/{endpoint}"

    async def _call(
        self,
        session: aiohttp.ClientSession,
        endpoint: str,
        params: dict[str, Any]
    ) -> dict[str, Any]:
        query = {**params, **auth_params(self.config.username, self.config.password)}
        payload = await self._get_json(session, self._url(endpoint), query)

        body = payload.get("subsonic-response") if isinstance(payload, dict) else None
        if not isinstance(body, dict):
            raise ProviderError(
                "navidrome: malformed response",
                details={"provider": self.name, "endpoint": endpoint}
            )

        if body.get("status") != "ok":
            error = body.get("error")
            if not isinstance(error, dict):
                error = {}
            code = error.get("code")
            raise ProviderError(
                f"navidrome: {error.get('message') or 'request failed'}",
                details={"provider": self.name, "endpoint": endpoint, "code": code},
                is_auth_error=code in AUTH_ERROR_CODES
            )

        return body

    async def search_song(self, track: Track, session: aiohttp.ClientSession) -> str | None:
        """Return the id of the best matching song, or None."""
        body = await self._call(session, "search3", {
            "query": f"{track.artist} {track.title}".strip(),
            "songCount": SEARCH_SONG_COUNT,
        })
        result = self._expect(body.get("searchResult3") or {}, dict, "searchResult3")
        songs = self._expect(result.get("song") or [], list, "searchResult3.song")

        best_id = None
        best_score = MIN_MATCH_SCORE
        for song in songs:
            song = self._expect(song, dict, "searchResult3.song[]")
            try:
                score = match_score(track, song)
            except (AttributeError, TypeError, ValueError) as e:
                raise ProviderError(
                    f"navidrome: malformed song entry: {e}",
                    details={"provider": self.name, "song_id": song.get("id")}
                ) from e
            logger.debug(
                f"navidrome candidate: {song.get('artist')} - {song.get('title')} "
                f"(score: {score:.2f})"
            )
            if score > best_score:
                best_id, best_score = song.get("id"), score

        return best_id

    async def fetch(self, track: Track, session: aiohttp.ClientSession) -> str | None:
        if not track.title:
            return None

        song_id = await self.search_song(track, session)
        if song_id is None:
            logger.debug(f"navidrome: no match for {track.display_name}")
            return None

        body = await self._call(session, "getLyricsBySongId", {"id": song_id})
        lyrics_list = self._expect(body.get("lyricsList") or {}, dict, "lyricsList")
        structured = self._expect(
            lyrics_list.get("structuredLyrics") or [], list, "lyricsList.structuredLyrics"
        )
        if not structured:
            return None

        first = self._expect(structured[0], dict, "structuredLyrics[0]")
        lines = self._expect(first.get("line") or [], list, "structuredLyrics[0].line")
        for line in lines:
            self._expect(line, dict, "structuredLyrics[0].line[]")

        text = structured_to_lrc(lines)
        return text if text.strip() else None
