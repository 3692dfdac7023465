"""
waylrc: time-synced lyrics for Waybar from any MPRIS player.

This package runs a small daemon that follows media players on the D-Bus
session bus, finds LRC lyrics for whatever is playing, and prints one JSON
record per change for a Waybar custom module.

Architecture:
    mpris/      Follow players over D-Bus
        - Discover org.mpris.MediaPlayer2.* names and probe them
        - Turn signals into events for the player registry
        - Keep one registry entry per player (status, track, position)

    lyrics/     Find lyrics for a track
        - Parse LRC text (timestamps, offsets, metadata tags)
        - Try the player's own xesam:asText, then .lrc sidecars and
          audio file tags, then Navidrome and NetEase
        - Cache every result (including "no lyrics") per track

    sync/       Decide what to show
        - Estimate the playback position between bus updates
        - Pick the focal player and its active line
        - Compute when that answer goes stale

    output/     Waybar records on stdout, deduplicated

    daemon.py   The event loop gluing all of the above together
    cli.py      Command-line interface

Usage:
    Command Line:
        waylrc
        waylrc --player mpv --player spotify
        waylrc -e navidrome --navidrome-server-url https://music.example.org \\
               --navidrome-username me

    Waybar:
        "custom/lyrics": {
            "exec": "waylrc",
            "return-type": "json",
            "escape": false
        }

Configuration:
    Optional YAML file at $XDG_CONFIG_HOME/waylrc/config.yaml; command-line
    options take precedence:

        sync:
          refresh_every: 3600
          show_paused: false
          focus: recent
        players:
          allowed: [mpv, spotify]
        providers:
          enabled: [navidrome, netease]
          timeout: 10
        logging:
          level: WARNING

Dependencies:
    - dbus-next: asyncio D-Bus client
    - aiohttp: HTTP client for lyric providers
    - mutagen: Lyrics stored in audio file tags
    - rapidfuzz: Fuzzy matching of provider search results
    - click: CLI framework
    - rich-click: CLI colors
    - pyyaml: Configuration file parsing
"""

__version__ = "0.1.0"
__author__ = "waylrc"
__license__ = "MIT"

# Convenience imports for common usage
from waylrc.core import (
    BusError,
    Config,
    ConfigError,
    InvariantError,
    ProviderError,
    WaylrcError,
    get_logger,
    load_config,
    setup_logging,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "WaylrcError",
    "ConfigError",
    "BusError",
    "ProviderError",
    "InvariantError",
]
