"""
Configuration management for waylrc.

Configuration comes from two places, merged in this order:
    1. An optional YAML file (--config, or $XDG_CONFIG_HOME/waylrc/config.yaml
       when it exists)
    2. Command line options, which win over the file

Example config.yaml:
    sync:
      refresh_every: 3600      # seconds between full player resyncs
      show_paused: false       # keep showing lyrics of a paused player
      focus: recent            # recent | priority

    output:
      skip_metadata:
        - xesam:asText

    players:
      allowed: all             # or a list: [mpv, spotify]

    providers:
      enabled: [navidrome, netease]
      timeout: 10
      navidrome:
        server_url: "https://music.example.com"
        username: "me"
        password: "secret"

    logging:
      level: WARNING
      file: ~/.cache/waylrc/waylrc.log
      missing_lyrics: ~/.cache/waylrc/missing.log
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from waylrc.core.exceptions import ConfigError


CONFIG_FILENAME = "config.yaml"
CONFIG_DIRNAME = "waylrc"

DEFAULT_REFRESH_EVERY = 3600.0
DEFAULT_PROVIDER_TIMEOUT = 10.0
DEFAULT_SKIP_METADATA = ("xesam:asText",)
DEFAULT_LOG_LEVEL = "WARNING"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Literal accepted in the player allow-list meaning "every player"
ALL_PLAYERS = "all"


class ExternalProvider(str, Enum):
    """Closed set of remote lyric providers, in the spelling used on the CLI."""
    NAVIDROME = "navidrome"
    NETEASE = "netease"


class FocusPolicy(str, Enum):
    """
    How the focal player is chosen when several are playing.

    RECENT: the player that most recently transitioned to Playing.
    PRIORITY: the first playing player in allow-list order, then RECENT.
    """
    RECENT = "recent"
    PRIORITY = "priority"


@dataclass(frozen=True)
class SyncConfig:
    """
    Scheduler behavior.

    Attributes:
        refresh_every: Seconds between full resyncs of every player's state.
        show_paused: When no player is playing, keep showing the most
                     recently active paused player instead of going idle.
        focus: Tie-break policy among simultaneously playing players.
    """
    refresh_every: float
    show_paused: bool
    focus: FocusPolicy


@dataclass(frozen=True)
class OutputConfig:
    """
    Output record settings.

    Attributes:
        skip_metadata: Metadata keys left out of the tooltip.
    """
    skip_metadata: tuple[str, ...]


@dataclass(frozen=True)
class PlayerConfig:
    """
    Player allow-list.

    Attributes:
        allowed: Short player names (the part after org.mpris.MediaPlayer2.),
                 matched case-insensitively. Empty means every player.
    """
    allowed: tuple[str, ...]

    def accepts(self, bus_name: str) -> bool:
        """Return True if the MPRIS bus name passes the allow-list."""
        if not self.allowed:
            return True
        short = short_player_name(bus_name).lower()
        return any(short == name.lower() for name in self.allowed)

    def priority_of(self, bus_name: str) -> int:
        """Position of the player in the allow-list, len(allowed) if absent."""
        short = short_player_name(bus_name).lower()
        for index, name in enumerate(self.allowed):
            if short == name.lower():
                return index
        return len(self.allowed)


@dataclass(frozen=True)
class NavidromeConfig:
    """
    Navidrome (Subsonic API) credentials.

    Attributes:
        server_url: Base URL of the server, without the /rest suffix.
        username: Account name.
        password: Account password, only ever sent as a salted md5 token.
    """
    server_url: str
    username: str
    password: str


@dataclass(frozen=True)
class ProviderConfig:
    """
    External lyric providers.

    Attributes:
        enabled: Providers in priority order.
        timeout: Seconds before a single provider request is abandoned.
        navidrome: Credentials, present when navidrome is enabled.
    """
    enabled: tuple[ExternalProvider, ...]
    timeout: float
    navidrome: NavidromeConfig | None


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    log_file: Path | None
    missing_lyrics_log: Path | None


@dataclass(frozen=True)
class Config:
    """
    Complete daemon configuration.

    Created by load_config() and treated as immutable.

    Example:
        config = load_config(overrides={"refresh_every": 60})
        print(f"Resync every {config.sync.refresh_every}s")
    """
    sync: SyncConfig
    output: OutputConfig
    players: PlayerConfig
    providers: ProviderConfig
    logging: LoggingConfig


MPRIS_BUS_PREFIX = "org.mpris.MediaPlayer2."


def short_player_name(bus_name: str) -> str:
    """Strip the MPRIS well-known prefix: org.mpris.MediaPlayer2.mpv -> mpv."""
    if bus_name.startswith(MPRIS_BUS_PREFIX):
        return bus_name[len(MPRIS_BUS_PREFIX):]
    return bus_name


def default_config_path() -> Path:
    """Return $XDG_CONFIG_HOME/waylrc/config.yaml (~/.config when unset)."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / CONFIG_DIRNAME / CONFIG_FILENAME


def load_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None
) -> Config:
    """
    Load, merge and validate the configuration.

    Args:
        config_path: Explicit path to a YAML file. If None, the default
                     location is read when it exists.
        overrides: Flat dictionary of command line values. Keys whose value
                   is None (or an empty tuple for repeatable options) were
                   not given and do not override the file.
                   Keys: refresh_every, show_paused, focus, skip_metadata,
                   players, providers, provider_timeout,
                   navidrome_server_url, navidrome_username,
                   navidrome_password, log_level, log_file,
                   missing_lyrics_log.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit file is missing, the YAML is invalid,
                     or any value fails validation.
    """
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        raw_config = _read_yaml(config_path)
    else:
        default_path = default_config_path()
        raw_config = _read_yaml(default_path) if default_path.exists() else {}

    values = _flatten(raw_config)
    for key, value in (overrides or {}).items():
        if value is None or value == ():
            continue
        values[key] = value

    return _build_config(values)


def _read_yaml(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file is an empty configuration
    if raw_config is None:
        return {}

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return raw_config


def _section(raw_config: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _flatten(raw_config: dict[str, Any]) -> dict[str, Any]:
    """Map the nested YAML layout onto the flat override keys."""
    sync = _section(raw_config, "sync")
    output = _section(raw_config, "output")
    players = _section(raw_config, "players")
    providers = _section(raw_config, "providers")
    navidrome = _section(providers, "navidrome")
    logging_section = _section(raw_config, "logging")

    mapping = {
        "refresh_every": sync.get("refresh_every"),
        "show_paused": sync.get("show_paused"),
        "focus": sync.get("focus"),
        "skip_metadata": output.get("skip_metadata"),
        "players": players.get("allowed"),
        "providers": providers.get("enabled"),
        "provider_timeout": providers.get("timeout"),
        "navidrome_server_url": navidrome.get("server_url"),
        "navidrome_username": navidrome.get("username"),
        "navidrome_password": navidrome.get("password"),
        "log_level": logging_section.get("level"),
        "log_file": logging_section.get("file"),
        "missing_lyrics_log": logging_section.get("missing_lyrics"),
    }
    return {key: value for key, value in mapping.items() if value is not None}


def _build_config(values: dict[str, Any]) -> Config:
    sync = SyncConfig(
        refresh_every=_positive_float(
            values.get("refresh_every", DEFAULT_REFRESH_EVERY), "refresh_every"
        ),
        show_paused=bool(values.get("show_paused", False)),
        focus=_parse_focus(values.get("focus", FocusPolicy.RECENT.value)),
    )
    output = OutputConfig(
        skip_metadata=_string_tuple(
            values.get("skip_metadata", DEFAULT_SKIP_METADATA), "skip_metadata"
        ),
    )
    players = PlayerConfig(allowed=_parse_players(values.get("players", ())))
    providers = _parse_providers(values)
    logging_config = _parse_logging(values)

    return Config(
        sync=sync,
        output=output,
        players=players,
        providers=providers,
        logging=logging_config,
    )


def _positive_float(value: Any, field: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"'{field}' must be a number, got {value!r}",
            details={"field": field}
        ) from e

    if number <= 0:
        raise ConfigError(
            f"'{field}' must be greater than 0, got {number}",
            details={"field": field}
        )
    return number


def _string_tuple(value: Any, field: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(
            f"'{field}' must be a list of strings",
            details={"field": field}
        )
    return tuple(v.strip() for v in value if v.strip())


def _parse_focus(value: Any) -> FocusPolicy:
    try:
        return FocusPolicy(str(value).lower())
    except ValueError as e:
        choices = ", ".join(p.value for p in FocusPolicy)
        raise ConfigError(
            f"Unknown focus policy '{value}' (expected one of: {choices})",
            details={"field": "focus"}
        ) from e


def _parse_players(value: Any) -> tuple[str, ...]:
    names = _string_tuple(value, "players")
    # "all" anywhere in the list disables filtering
    if any(name.lower() == ALL_PLAYERS for name in names):
        return ()
    return names


def _parse_providers(values: dict[str, Any]) -> ProviderConfig:
    enabled: list[ExternalProvider] = []
    for name in _string_tuple(values.get("providers", ()), "providers"):
        try:
            provider = ExternalProvider(name.lower())
        except ValueError as e:
            choices = ", ".join(p.value for p in ExternalProvider)
            raise ConfigError(
                f"Unknown lyrics provider '{name}' (expected one of: {choices})",
                details={"field": "providers", "provider": name}
            ) from e
        if provider not in enabled:
            enabled.append(provider)

    timeout = _positive_float(
        values.get("provider_timeout", DEFAULT_PROVIDER_TIMEOUT), "provider_timeout"
    )

    navidrome = None
    if ExternalProvider.NAVIDROME in enabled:
        navidrome = _parse_navidrome(values)

    return ProviderConfig(enabled=tuple(enabled), timeout=timeout, navidrome=navidrome)


def _parse_navidrome(values: dict[str, Any]) -> NavidromeConfig:
    """
    Validate Navidrome credentials.

    Raises:
        ConfigError: If any of server URL, username or password is missing.
    """
    fields = {
        "server_url": values.get("navidrome_server_url"),
        "username": values.get("navidrome_username"),
        "password": values.get("navidrome_password"),
    }

    for field, value in fields.items():
        if not isinstance(value, str) or not value.strip():
            option = "--navidrome-" + field.replace("_", "-")
            raise ConfigError(
                f"Navidrome provider requires {option}",
                details={"provider": "navidrome", "missing_field": field}
            )

    return NavidromeConfig(
        server_url=fields["server_url"].strip().rstrip("/"),
        username=fields["username"].strip(),
        password=fields["password"],
    )


def _parse_logging(values: dict[str, Any]) -> LoggingConfig:
    level = str(values.get("log_level", DEFAULT_LOG_LEVEL)).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(
            f"Unknown log level '{level}'",
            details={"field": "log_level"}
        )

    return LoggingConfig(
        level=level,
        log_file=_optional_path(values.get("log_file")),
        missing_lyrics_log=_optional_path(values.get("missing_lyrics_log")),
    )


def _optional_path(value: Any) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value)).expanduser()
