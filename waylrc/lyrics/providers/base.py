"""
Common ground for external lyric providers.

A provider is asked for the raw lyric text of one track and answers in one
of three ways:
    - a string: lyric text (normally LRC) to be parsed by the pipeline
    - None: the provider has nothing for this track
    - ProviderError: the provider failed (network, HTTP, auth, bad or malformed JSON)

Providers never cache and never retry; the pipeline owns both concerns.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import aiohttp
from rapidfuzz.distance import Levenshtein

from waylrc.core.config import ExternalProvider
from waylrc.core.exceptions import ProviderError
from waylrc.core.logger import get_logger
from waylrc.mpris.models import Track


logger = get_logger(__name__)


# =============================================================================
# SIMILARITY HELPERS
# =============================================================================

# Score given when one normalized string contains the other
CONTAINMENT_SCORE = 0.8

# Two durations closer than this are considered the same recording (seconds)
DURATION_TOLERANCE_SECONDS = 10


def normalize(text: str | None) -> str:
    return (text or "").casefold().strip()


def is_similar(a: str | None, b: str | None) -> bool:
    """
    Loose equality: equal or one contains the other, ignoring case.

    Example:
        is_similar("Test Song", "test")       # True
        is_similar("Completely Different", "Nothing Similar")  # False
    """
    a_normalized, b_normalized = normalize(a), normalize(b)
    if not a_normalized or not b_normalized:
        return a_normalized == b_normalized
    return a_normalized in b_normalized or b_normalized in a_normalized


def string_similarity(a: str | None, b: str | None) -> float:
    """
    Similarity in [0, 1].

    1.0 for equal strings, 0.8 when one contains the other, otherwise the
    normalized Levenshtein similarity.
    """
    a_normalized, b_normalized = normalize(a), normalize(b)
    if a_normalized == b_normalized:
        return 1.0
    if a_normalized and b_normalized and (
        a_normalized in b_normalized or b_normalized in a_normalized
    ):
        return CONTAINMENT_SCORE
    return Levenshtein.normalized_similarity(a_normalized, b_normalized)


def is_duration_similar(seconds_a: float, seconds_b: float) -> bool:
    return abs(seconds_a - seconds_b) <= DURATION_TOLERANCE_SECONDS


# =============================================================================
# PROVIDER BASE CLASS
# =============================================================================


class LyricsProvider(ABC):
    """
    Base class for external lyric providers.

    Attributes:
        kind: Which ExternalProvider this implementation serves.

    Subclasses implement fetch(); _get_json() wraps aiohttp so every
    transport failure surfaces as ProviderError.
    """

    kind: ExternalProvider

    @property
    def name(self) -> str:
        return self.kind.value

    @abstractmethod
    async def fetch(self, track: Track, session: aiohttp.ClientSession) -> str | None:
        """
        Fetch raw lyric text for a track.

        Args:
            track: The track to look up.
            session: Shared HTTP session owned by the pipeline.

        Returns:
            Lyric text, or None when the provider has nothing.

        Raises:
            ProviderError: On any failure.
        """

    def _expect(self, value: Any, expected: type, field: str) -> Any:
        """
        Return value if it has the expected JSON type.

        Raises:
            ProviderError: If the response does not have the documented shape.
        """
        if not isinstance(value, expected):
            raise ProviderError(
                f"{self.name}: malformed response ({field} is {type(value).__name__})",
                details={"provider": self.name, "field": field}
            )
        return value

    async def _get_json(
        self,
        session: aiohttp.ClientSession,
        url: str,
        params: dict[str, Any],
        headers: dict[str, str] | None = None
    ) -> Any:
        """
        GET a URL and decode its JSON body.

        Raises:
            ProviderError: On HTTP errors, timeouts, connection failures or
                           undecodable bodies.
        """
        details = {"provider": self.name, "url": url}
        try:
            async with session.get(url, params=params, headers=headers) as response:
                if response.status == 429:
                    raise ProviderError(
                        f"{self.name}: rate limited",
                        details={**details, "status": response.status},
                        is_rate_limit=True
                    )
                if response.status in (401, 403):
                    raise ProviderError(
                        f"{self.name}: access denied (HTTP {response.status})",
                        details={**details, "status": response.status},
                        is_auth_error=True
                    )
                if response.status >= 400:
                    raise ProviderError(
                        f"{self.name}: HTTP {response.status}",
                        details={**details, "status": response.status}
                    )
                # Some servers answer JSON as text/plain
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ProviderError(
                f"{self.name}: request timed out",
                details=details,
                is_timeout=True
            ) from e
        except aiohttp.ClientError as e:
            raise ProviderError(
                f"{self.name}: request failed: {e}",
                details={**details, "original_error": str(e)}
            ) from e
        except ValueError as e:
            raise ProviderError(
                f"{self.name}: invalid JSON response",
                details={**details, "original_error": str(e)}
            ) from e
