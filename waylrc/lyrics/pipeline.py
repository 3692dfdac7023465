"""
Lyric resolution pipeline.

Resolves a Track into a Resolution by trying sources in a fixed order and
stopping at the first success:
    1. Lyrics published by the player itself (xesam:asText)
    2. Local files: sidecar .lrc, then tags inside the audio file
    3. External providers, queried concurrently; the first one in configured
       order that yields at least one timed line wins

Results are cached per track fingerprint for the lifetime of the process,
including negative results. At most one resolution runs per fingerprint:
concurrent callers share the in-flight task.

Usage:
    pipeline = LyricsPipeline(providers, timeout=10.0, on_resolved=callback)

    state = pipeline.request(track)      # non-blocking, starts work if needed
    resolution = await pipeline.resolve(track)  # awaitable variant
    await pipeline.close()
"""

import asyncio
from collections.abc import Callable, Sequence
from functools import partial
from pathlib import Path

import aiohttp

from waylrc import __version__
from waylrc.core.exceptions import ProviderError
from waylrc.core.logger import get_logger, log_missing_lyrics
from waylrc.lyrics.local import read_sidecar, read_tag_lyrics
from waylrc.lyrics.models import IN_FLIGHT, UNAVAILABLE, LyricDocument, Resolution
from waylrc.lyrics.parser import parse, split_concatenated
from waylrc.lyrics.providers.base import LyricsProvider
from waylrc.mpris.models import Track


logger = get_logger(__name__)


SOURCE_EMBEDDED = "embedded"
SOURCE_SIDECAR = "sidecar"
SOURCE_TAGS = "tags"

USER_AGENT = f"waylrc/{__version__}"

ResolvedCallback = Callable[[Track, BaseException | None], None]


def parse_local_text(text: str | None) -> LyricDocument | None:
    """
    Parse lyric text found locally.

    Returns:
        The document when the text is timed LRC (even with zero lines, an
        instrumental), None for missing or plain untimed text.
    """
    if not text or not text.strip():
        return None
    document = parse(split_concatenated(text))
    return document if document.is_timed else None


def resolve_local(audio_path: Path) -> Resolution | None:
    """
    Look for lyrics next to and inside a local audio file.

    Blocking; run through asyncio.to_thread().
    """
    document = parse_local_text(read_sidecar(audio_path))
    if document is not None:
        return Resolution.resolved(document, SOURCE_SIDECAR)

    document = parse_local_text(read_tag_lyrics(audio_path))
    if document is not None:
        return Resolution.resolved(document, SOURCE_TAGS)

    return None


class LyricsPipeline:
    """
    Cascading, cached, single-flight lyric resolver.

    Attributes:
        providers: External providers in priority order.
        timeout: Seconds allowed for a single provider call.
        on_resolved: Called as on_resolved(track, error) in the event loop
                     after a resolution task finishes and the cache holds its
                     result. error is None unless the task failed unexpectedly.

    Cache entries are either a Resolution (RESOLVED or UNAVAILABLE, never
    evicted) or the asyncio.Task computing one.
    """

    def __init__(
        self,
        providers: Sequence[LyricsProvider] = (),
        timeout: float = 10.0,
        on_resolved: ResolvedCallback | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] | None = None
    ) -> None:
        self.providers = list(providers)
        self.timeout = timeout
        self.on_resolved = on_resolved
        self._session_factory = session_factory or self._default_session
        self._session: aiohttp.ClientSession | None = None
        self._cache: dict[str, Resolution | asyncio.Task] = {}

    def _default_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={"User-Agent": USER_AGENT},
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = self._session_factory()
        return self._session

    def lookup(self, track: Track) -> Resolution | None:
        """
        Read the cache without starting any work.

        Returns:
            The cached Resolution, IN_FLIGHT while a task runs, or None if the
            fingerprint was never requested.
        """
        entry = self._cache.get(track.fingerprint)
        if entry is None:
            return None
        if isinstance(entry, asyncio.Task):
            return IN_FLIGHT
        return entry

    def request(self, track: Track) -> Resolution:
        """
        Return the cached state, starting a resolution if there is none.

        Must be called from within the running event loop.
        """
        current = self.lookup(track)
        if current is not None:
            return current
        self._start(track)
        return IN_FLIGHT

    async def resolve(self, track: Track) -> Resolution:
        """
        Resolve a track, sharing any in-flight work for its fingerprint.

        Cancelling one caller does not cancel the shared resolution.
        """
        entry = self._cache.get(track.fingerprint)
        if isinstance(entry, Resolution):
            return entry

        task = entry if entry is not None else self._start(track)
        return await asyncio.shield(task)

    def _start(self, track: Track) -> asyncio.Task:
        logger.debug(f"Resolving lyrics for {track.display_name}")
        task = asyncio.get_running_loop().create_task(self._resolve_uncached(track))
        self._cache[track.fingerprint] = task
        task.add_done_callback(partial(self._finished, track))
        return task

    def _finished(self, track: Track, task: asyncio.Task) -> None:
        fingerprint = track.fingerprint

        if task.cancelled():
            # Shutdown; nothing durable is learned from a cancelled run
            self._cache.pop(fingerprint, None)
            return

        error = task.exception()
        if error is not None:
            self._cache.pop(fingerprint, None)
        else:
            resolution = task.result()
            self._cache[fingerprint] = resolution
            logger.info(
                f"Lyrics for {track.display_name}: {resolution.state.value}"
                + (f" ({resolution.source})" if resolution.source else "")
            )

        if self.on_resolved is not None:
            self.on_resolved(track, error)

    async def _resolve_uncached(self, track: Track) -> Resolution:
        document = parse_local_text(track.embedded_lyrics)
        if document is not None:
            return Resolution.resolved(document, SOURCE_EMBEDDED)

        audio_path = track.local_path
        if audio_path is not None:
            resolution = await asyncio.to_thread(resolve_local, audio_path)
            if resolution is not None:
                return resolution

        resolution = await self._resolve_external(track)
        if resolution is not None:
            return resolution

        log_missing_lyrics(logger, track)
        return UNAVAILABLE

    async def _resolve_external(self, track: Track) -> Resolution | None:
        if not self.providers:
            return None

        session = self._get_session()
        loop = asyncio.get_running_loop()
        tasks = [
            loop.create_task(self._query(provider, track, session))
            for provider in self.providers
        ]

        try:
            for provider, task in zip(self.providers, tasks):
                document = await task
                if document is not None:
                    return Resolution.resolved(document, provider.name)
            return None
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)

    async def _query(
        self,
        provider: LyricsProvider,
        track: Track,
        session: aiohttp.ClientSession
    ) -> LyricDocument | None:
        """Ask one provider; every failure counts as a decline."""
        try:
            text = await asyncio.wait_for(provider.fetch(track, session), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{provider.name}: timed out after {self.timeout:g}s")
            return None
        except ProviderError as e:
            if e.is_auth_error:
                logger.error(f"{e.message} (check credentials)")
            elif e.is_rate_limit:
                logger.warning(f"{e.message} (throttled by the server, skipped for this track)")
            elif e.is_timeout:
                logger.warning(f"{e.message} (server did not answer, skipped for this track)")
            else:
                logger.warning(e.message)
            logger.debug(f"{provider.name} error details: {e.details}")
            return None
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"{provider.name}: unexpected response shape: {e!r}")
            return None

        if not text:
            return None

        document = parse(text)
        if document.is_empty:
            logger.debug(f"{provider.name}: lyrics are not time-synced")
            return None
        return document

    async def close(self) -> None:
        """Cancel running resolutions and close the HTTP session."""
        tasks = [entry for entry in self._cache.values() if isinstance(entry, asyncio.Task)]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks)

        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
