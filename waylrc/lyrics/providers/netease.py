"""
NetEase Cloud Music lyric provider.

Uses the public web endpoints, no account required:
    - api/search/get/web   song search by "title artist"
    - api/song/lyric       LRC text for a song id

The best candidate is chosen by 0.7 * title similarity + 0.3 * artist
similarity. When the track length is known, that score is blended 70/30
with how close the candidate's duration is.
"""

from dataclasses import dataclass
from typing import Any

import aiohttp

from waylrc.core.config import ExternalProvider
from waylrc.core.exceptions import ProviderError
from waylrc.core.logger import get_logger
from waylrc.lyrics.providers.base import LyricsProvider, string_similarity
from waylrc.mpris.models import Track


logger = get_logger(__name__)


BASE_URL = "https://music.163.com"
SEARCH_URL = f"{BASE_URL}/api/search/get/web"
LYRIC_URL = f"{BASE_URL}/api/song/lyric"
SEARCH_LIMIT = 10

# Search type 1 = single songs
SEARCH_TYPE_SONG = 1

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Referer": f"{BASE_URL}/",
}

TITLE_WEIGHT = 0.7
ARTIST_WEIGHT = 0.3
SIMILARITY_WEIGHT = 0.7
DURATION_WEIGHT = 0.3

# NetEase's anti-crawler answer
RATE_LIMIT_CODE = -460


@dataclass(frozen=True)
class SearchResult:
    """
    One NetEase search hit.

    Attributes:
        song_id: NetEase song id.
        name: Song title.
        artist: Artist names joined with "/".
        album: Album name.
        duration_ms: Duration in milliseconds (0 when unknown).
        similarity: 0.7 * title + 0.3 * artist similarity to the query.
    """
    song_id: int
    name: str
    artist: str
    album: str
    duration_ms: int
    similarity: float

    @classmethod
    def from_api(cls, song: dict[str, Any], title: str, artist: str) -> "SearchResult":
        artists = "/".join(a.get("name", "") for a in song.get("artists") or [])
        name = song.get("name", "")
        return cls(
            song_id=int(song["id"]),
            name=name,
            artist=artists,
            album=(song.get("album") or {}).get("name", ""),
            duration_ms=int(song.get("duration") or 0),
            similarity=(
                string_similarity(title, name) * TITLE_WEIGHT
                + string_similarity(artist, artists) * ARTIST_WEIGHT
            ),
        )

    def score(self, length_ms: int | None) -> float:
        """Similarity blended with duration closeness when a length is known."""
        if not length_ms:
            return self.similarity
        difference = abs(self.duration_ms - length_ms)
        duration_score = 1.0 - min(difference / length_ms, 1.0)
        return self.similarity * SIMILARITY_WEIGHT + duration_score * DURATION_WEIGHT


def pick_best(results: list[SearchResult], length_ms: int | None) -> SearchResult | None:
    """Highest scoring result; the earliest one wins ties."""
    best = None
    best_score = -1.0
    for result in results:
        score = result.score(length_ms)
        if score > best_score:
            best, best_score = result, score
    return best


class NetEaseProvider(LyricsProvider):
    """
    Fetches lyrics from NetEase Cloud Music.

    Example:
        provider = NetEaseProvider()
        text = await provider.fetch(track, session)
    """

    kind = ExternalProvider.NETEASE

    def _check_code(self, payload: Any, url: str) -> dict[str, Any]:
        if not isinstance(payload, dict):
            raise ProviderError(
                "netease: malformed response",
                details={"provider": self.name, "url": url}
            )
        code = payload.get("code", 200)
        if code != 200:
            raise ProviderError(
                f"netease: API returned code {code}",
                details={"provider": self.name, "url": url, "code": code},
                is_rate_limit=code == RATE_LIMIT_CODE
            )
        return payload

    async def search(
        self,
        track: Track,
        session: aiohttp.ClientSession
    ) -> list[SearchResult]:
        params = {
            "s": f"{track.title} {track.artist}".strip(),
            "type": SEARCH_TYPE_SONG,
            "offset": 0,
            "limit": SEARCH_LIMIT,
        }
        payload = self._check_code(
            await self._get_json(session, SEARCH_URL, params, HEADERS), SEARCH_URL
        )
        result = self._expect(payload.get("result") or {}, dict, "result")
        songs = self._expect(result.get("songs") or [], list, "result.songs")

        results = []
        for song in songs:
            song = self._expect(song, dict, "result.songs[]")
            if song.get("id") is None:
                continue
            try:
                results.append(SearchResult.from_api(song, track.title, track.artist))
            except (AttributeError, TypeError, ValueError) as e:
                raise ProviderError(
                    f"netease: malformed search result: {e}",
                    details={"provider": self.name, "song_id": song.get("id")}
                ) from e
        return results

    async def fetch(self, track: Track, session: aiohttp.ClientSession) -> str | None:
        if not track.title:
            return None

        best = pick_best(await self.search(track, session), track.length_ms)
        if best is None:
            logger.debug(f"netease: no results for {track.display_name}")
            return None

        logger.debug(
            f"netease: selected '{best.name}' by '{best.artist}' "
            f"(id: {best.song_id}, similarity: {best.similarity:.2f})"
        )

        params = {"id": best.song_id, "lv": 1, "kv": 1, "tv": -1}
        payload = self._check_code(
            await self._get_json(session, LYRIC_URL, params, HEADERS), LYRIC_URL
        )
        lrc = self._expect(payload.get("lrc") or {}, dict, "lrc")
        text = self._expect(lrc.get("lyric") or "", str, "lrc.lyric")
        return text if text.strip() else None
