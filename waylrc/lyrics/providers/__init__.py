"""
External lyric providers.

The set of providers is closed: ExternalProvider names every member and
build_providers() maps the configured names onto instances, keeping the
configured order.

Usage:
    from waylrc.lyrics.providers import build_providers

    providers = build_providers(config.providers)
"""

from waylrc.core.config import ExternalProvider, ProviderConfig
from waylrc.core.exceptions import ConfigError
from waylrc.lyrics.providers.base import LyricsProvider
from waylrc.lyrics.providers.navidrome import NavidromeProvider
from waylrc.lyrics.providers.netease import NetEaseProvider


def build_providers(config: ProviderConfig) -> list[LyricsProvider]:
    """
    Instantiate the enabled providers in priority order.

    Raises:
        ConfigError: If navidrome is enabled without credentials.
    """
    providers: list[LyricsProvider] = []
    for kind in config.enabled:
        if kind is ExternalProvider.NAVIDROME:
            if config.navidrome is None:
                raise ConfigError(
                    "Navidrome provider enabled without credentials",
                    details={"provider": kind.value}
                )
            providers.append(NavidromeProvider(config.navidrome))
        elif kind is ExternalProvider.NETEASE:
            providers.append(NetEaseProvider())
    return providers


__all__ = [
    "ExternalProvider",
    "LyricsProvider",
    "NavidromeProvider",
    "NetEaseProvider",
    "build_providers",
]
