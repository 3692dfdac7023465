"""Test configuration and fixtures"""

import asyncio

import pytest

from waylrc.core.config import ExternalProvider, load_config
from waylrc.core.exceptions import ProviderError
from waylrc.lyrics.pipeline import LyricsPipeline
from waylrc.lyrics.providers.base import LyricsProvider
from waylrc.mpris.models import PlaybackStatus, Player, PlayerLifecycle, Track


MPV = "org.mpris.MediaPlayer2.mpv"


class FakeClock:
    """Monotonic clock under test control"""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(LyricsProvider):
    """Provider answering from canned values and counting calls"""

    def __init__(self, result=None, delay: float = 0.0, error: Exception | None = None,
                 kind: ExternalProvider = ExternalProvider.NETEASE) -> None:
        self.kind = kind
        self.result = result
        self.delay = delay
        self.error = error
        self.calls = 0

    async def fetch(self, track, session):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class FakeSession:
    """Stand-in for aiohttp.ClientSession when providers never touch it"""

    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakeResponse:
    def __init__(self, status: int, payload) -> None:
        self.status = status
        self.payload = payload

    async def json(self, content_type=None):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeHttpSession:
    """aiohttp-like session answering GET requests from a URL -> (status, payload) map"""

    def __init__(self, routes: dict) -> None:
        self.routes = routes
        self.requests = []
        self.closed = False

    def get(self, url, params=None, headers=None):
        self.requests.append((url, dict(params or {})))
        status, payload = self.routes[url]
        return FakeResponse(status, payload)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    """Fake monotonic clock starting at t=1000s"""
    return FakeClock()


@pytest.fixture
def sample_metadata():
    """Unwrapped MPRIS metadata for a local file"""
    return {
        "mpris:trackid": "/org/mpv/Track/1",
        "mpris:length": 200_000_000,  # 3:20
        "xesam:title": "Test Song",
        "xesam:artist": ["Test Artist"],
        "xesam:album": "Test Album",
        "xesam:url": "file:///music/Test%20Artist/Test%20Song.flac",
    }


@pytest.fixture
def make_track():
    """Factory for Track values with sensible defaults"""
    def factory(**overrides) -> Track:
        values = {
            "title": "Test Song",
            "artists": ("Test Artist",),
            "album": "Test Album",
            "length_ms": 200_000,
        }
        values.update(overrides)
        return Track(**values)
    return factory


@pytest.fixture
def make_player(make_track):
    """Factory for ACTIVE players"""
    def factory(name: str = MPV, status: PlaybackStatus = PlaybackStatus.PLAYING,
                position_ms: int = 0, confirmed_at: float = 1000.0, rate: float = 1.0,
                track: Track | None = None) -> Player:
        return Player(
            name=name,
            lifecycle=PlayerLifecycle.ACTIVE,
            status=status,
            track=track if track is not None else make_track(),
            rate=rate,
            position_ms=position_ms,
            confirmed_at=confirmed_at,
        )
    return factory


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances"""
    return FakeProvider


@pytest.fixture
def make_pipeline():
    """Factory for pipelines whose HTTP session is a FakeSession"""
    def factory(providers=(), timeout: float = 1.0, on_resolved=None) -> LyricsPipeline:
        return LyricsPipeline(
            providers,
            timeout=timeout,
            on_resolved=on_resolved,
            session_factory=FakeSession,
        )
    return factory


@pytest.fixture
def make_http_session():
    """Factory for FakeHttpSession instances"""
    return FakeHttpSession


@pytest.fixture
def provider_error():
    return ProviderError("netease: HTTP 500", details={"status": 500})


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point $XDG_CONFIG_HOME at an empty directory"""
    home = tmp_path / "config"
    home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    return home


@pytest.fixture
def config(config_home):
    """Default configuration with show_paused enabled"""
    return load_config(overrides={"show_paused": True})
