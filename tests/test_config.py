# tests/test_config.py
"""Test configuration loading"""

from pathlib import Path

import pytest

from waylrc.core.config import (
    DEFAULT_PROVIDER_TIMEOUT,
    DEFAULT_REFRESH_EVERY,
    ExternalProvider,
    FocusPolicy,
    PlayerConfig,
    default_config_path,
    load_config,
    short_player_name,
)
from waylrc.core.exceptions import ConfigError


CONFIG_YAML = """
sync:
  refresh_every: 600
  show_paused: true
  focus: priority
players:
  allowed: [mpv, Spotify]
providers:
  enabled: [netease]
  timeout: 4
logging:
  level: info
  missing_lyrics: /tmp/waylrc-missing.log
"""


def write_config(directory: Path, content: str) -> Path:
    path = directory / "waylrc" / "config.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class TestDefaults:
    """Test behavior without any configuration file"""

    def test_defaults(self, config_home):
        """Test every default value"""
        config = load_config()

        assert config.sync.refresh_every == DEFAULT_REFRESH_EVERY
        assert config.sync.show_paused is False
        assert config.sync.focus is FocusPolicy.RECENT
        assert config.output.skip_metadata == ("xesam:asText",)
        assert config.players.allowed == ()
        assert config.providers.enabled == ()
        assert config.providers.timeout == DEFAULT_PROVIDER_TIMEOUT
        assert config.providers.navidrome is None
        assert config.logging.level == "WARNING"
        assert config.logging.log_file is None

    def test_default_path(self, config_home):
        """Test the default file lives under $XDG_CONFIG_HOME"""
        assert default_config_path() == config_home / "waylrc" / "config.yaml"


class TestYamlFile:
    """Test reading config.yaml"""

    def test_default_file_is_read(self, config_home):
        """Test the file at the default location is picked up"""
        write_config(config_home, CONFIG_YAML)

        config = load_config()

        assert config.sync.refresh_every == 600.0
        assert config.sync.show_paused is True
        assert config.sync.focus is FocusPolicy.PRIORITY
        assert config.players.allowed == ("mpv", "Spotify")
        assert config.providers.enabled == (ExternalProvider.NETEASE,)
        assert config.providers.timeout == 4.0
        assert config.logging.level == "INFO"
        assert config.logging.missing_lyrics_log == Path("/tmp/waylrc-missing.log")

    def test_explicit_file(self, tmp_path, config_home):
        """Test --config points at any file"""
        path = tmp_path / "custom.yaml"
        path.write_text("sync:\n  refresh_every: 30\n", encoding="utf-8")

        assert load_config(path).sync.refresh_every == 30.0

    def test_explicit_file_missing(self, tmp_path):
        """Test a missing explicit file is an error"""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, config_home):
        """Test broken YAML is reported"""
        write_config(config_home, "sync: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config()

    def test_non_mapping(self, config_home):
        """Test the document root must be a mapping"""
        write_config(config_home, "- a\n- b\n")

        with pytest.raises(ConfigError, match="dictionary"):
            load_config()

    def test_empty_file(self, config_home):
        """Test an empty file means defaults"""
        write_config(config_home, "")

        assert load_config().sync.refresh_every == DEFAULT_REFRESH_EVERY

    def test_all_players(self, config_home):
        """Test 'all' disables the allow-list"""
        write_config(config_home, "players:\n  allowed: all\n")

        assert load_config().players.allowed == ()


class TestOverrides:
    """Test command line values over the file"""

    def test_overrides_win(self, config_home):
        """Test given options replace file values"""
        write_config(config_home, CONFIG_YAML)

        config = load_config(overrides={
            "refresh_every": 5.0,
            "players": ("firefox",),
            "show_paused": False,
        })

        assert config.sync.refresh_every == 5.0
        assert config.players.allowed == ("firefox",)
        assert config.sync.show_paused is False

    def test_unset_overrides_are_ignored(self, config_home):
        """Test None and empty tuples leave file values alone"""
        write_config(config_home, CONFIG_YAML)

        config = load_config(overrides={"refresh_every": None, "players": ()})

        assert config.sync.refresh_every == 600.0
        assert config.players.allowed == ("mpv", "Spotify")

    def test_provider_order_is_kept(self, config_home):
        """Test providers keep the order given, without duplicates"""
        config = load_config(overrides={
            "providers": ("NetEase", "navidrome", "netease"),
            "navidrome_server_url": "https://music.example.org/",
            "navidrome_username": "me",
            "navidrome_password": "secret",
        })

        assert config.providers.enabled == (ExternalProvider.NETEASE, ExternalProvider.NAVIDROME)
        assert config.providers.navidrome.server_url == "https://music.example.org"


class TestValidation:
    """Test rejected values"""

    @pytest.mark.parametrize("overrides,message", [
        ({"refresh_every": 0}, "greater than 0"),
        ({"refresh_every": "soon"}, "must be a number"),
        ({"provider_timeout": -1}, "greater than 0"),
        ({"focus": "loudest"}, "Unknown focus policy"),
        ({"providers": ("genius",)}, "Unknown lyrics provider"),
        ({"log_level": "chatty"}, "Unknown log level"),
    ])
    def test_invalid_values(self, config_home, overrides, message):
        """Test each invalid value raises ConfigError"""
        with pytest.raises(ConfigError, match=message):
            load_config(overrides=overrides)

    def test_navidrome_requires_password(self, config_home):
        """Test navidrome without a password names the missing option"""
        with pytest.raises(ConfigError, match="--navidrome-password"):
            load_config(overrides={
                "providers": ("navidrome",),
                "navidrome_server_url": "https://music.example.org",
                "navidrome_username": "me",
            })


class TestPlayerConfig:
    """Test allow-list matching"""

    def test_short_player_name(self):
        """Test the MPRIS prefix is stripped"""
        assert short_player_name("org.mpris.MediaPlayer2.mpv") == "mpv"
        assert short_player_name("mpv") == "mpv"

    def test_accepts(self):
        """Test matching is case-insensitive on the short name"""
        players = PlayerConfig(allowed=("Spotify",))

        assert players.accepts("org.mpris.MediaPlayer2.spotify")
        assert not players.accepts("org.mpris.MediaPlayer2.mpv")
        assert PlayerConfig(allowed=()).accepts("org.mpris.MediaPlayer2.anything")

    def test_priority_of(self):
        """Test allow-list position, unknown players last"""
        players = PlayerConfig(allowed=("mpv", "spotify"))

        assert players.priority_of("org.mpris.MediaPlayer2.mpv") == 0
        assert players.priority_of("org.mpris.MediaPlayer2.spotify") == 1
        assert players.priority_of("org.mpris.MediaPlayer2.vlc") == 2
