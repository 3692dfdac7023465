"""
Command-line interface for waylrc.

This module implements the CLI using Click. rich-click is used for the
help colors. The command starts the daemon and keeps it running until it
is interrupted or hits a fatal error.

Usage:
    # Follow every player, lyrics from the player and local files only
    waylrc

    # Only mpv and Spotify, with NetEase as a fallback
    waylrc -p mpv -p spotify -e netease

    # Navidrome first, then NetEase
    waylrc -e navidrome -e netease \\
        --navidrome-server-url https://music.example.org \\
        --navidrome-username me
    # the password comes from WAYLRC_NAVIDROME_PASSWORD or the config file

Exit codes:
    0    Stopped by SIGTERM, or Waybar closed the pipe
    1    Configuration error or unexpected error
    2    Session bus unreachable or lost
    3    Internal invariant violated
    4    Other waylrc error
    130  Interrupted (Ctrl-C)
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "cli": [
        {
            "name": "Players",
            "options": ["--player", "--show-paused", "--focus", "--refresh-every"],
        },
        {
            "name": "Lyrics Providers",
            "options": [
                "--external-lrc-provider",
                "--provider-timeout",
                "--navidrome-server-url",
                "--navidrome-username",
                "--navidrome-password",
            ],
        },
        {
            "name": "Output",
            "options": ["--skip-metadata"],
        },
        {
            "name": "Configuration and Logging",
            "options": ["--config", "--log-level", "--log-file", "--missing-lyrics-log"],
        },
        {
            "name": "Info",
            "options": ["--version", "--help"],
        },
    ],
}

from waylrc import __version__
from waylrc.core import (
    BusError,
    Config,
    ConfigError,
    ExternalProvider,
    FocusPolicy,
    InvariantError,
    WaylrcError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from waylrc.core.config import LOG_LEVELS
from waylrc.daemon import Daemon

logger = get_logger(__name__)


@click.command()
@click.option(
    "--refresh-every", "-r",
    type=float,
    default=None,
    metavar="<seconds>",
    help="Seconds between full player resyncs [default: 3600]"
)
@click.option(
    "--skip-metadata", "-s",
    multiple=True,
    metavar="<key>",
    help="Metadata key to leave out of the tooltip (repeatable) [default: xesam:asText]"
)
@click.option(
    "--player", "-p",
    multiple=True,
    metavar="<name>",
    help="Player to follow, e.g. mpv or spotify (repeatable, 'all' for every player)"
)
@click.option(
    "--external-lrc-provider", "-e",
    multiple=True,
    type=click.Choice([p.value for p in ExternalProvider], case_sensitive=False),
    help="External lyrics provider, queried in the order given (repeatable)"
)
@click.option(
    "--navidrome-server-url",
    default=None,
    metavar="<url>",
    help="Navidrome (Subsonic) server URL"
)
@click.option(
    "--navidrome-username",
    default=None,
    metavar="<user>",
    help="Navidrome username"
)
@click.option(
    "--navidrome-password",
    default=None,
    envvar="WAYLRC_NAVIDROME_PASSWORD",
    metavar="<password>",
    help="Navidrome password [env: WAYLRC_NAVIDROME_PASSWORD]"
)
@click.option(
    "--provider-timeout",
    type=float,
    default=None,
    metavar="<seconds>",
    help="Time allowed for each provider request [default: 10]"
)
@click.option(
    "--show-paused/--hide-paused",
    default=None,
    help="Keep showing lyrics while the focal player is paused"
)
@click.option(
    "--focus",
    type=click.Choice([p.value for p in FocusPolicy], case_sensitive=False),
    default=None,
    help="Which playing player wins: most recently started, or first in --player order"
)
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file [default: $XDG_CONFIG_HOME/waylrc/config.yaml]"
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    envvar="WAYLRC_LOG",
    help="Console log level on stderr [env: WAYLRC_LOG]"
)
@click.option(
    "--log-file", "-l",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<path>",
    help="Write a full debug log to this file"
)
@click.option(
    "--missing-lyrics-log",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<path>",
    help="Append tracks without lyrics to this file"
)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(
    ctx: click.Context,
    refresh_every: Optional[float],
    skip_metadata: tuple[str, ...],
    player: tuple[str, ...],
    external_lrc_provider: tuple[str, ...],
    navidrome_server_url: Optional[str],
    navidrome_username: Optional[str],
    navidrome_password: Optional[str],
    provider_timeout: Optional[float],
    show_paused: Optional[bool],
    focus: Optional[str],
    config_path: Optional[Path],
    log_level: Optional[str],
    log_file: Optional[Path],
    missing_lyrics_log: Optional[Path],
    version: bool
) -> None:
    """
    waylrc: time-synced lyrics for Waybar.

    Follows MPRIS players on the session bus and prints one JSON record
    per line for a Waybar custom module (return-type "json").

    \b
    LYRICS SOURCES (first hit wins):
        1. Lyrics published by the player (xesam:asText)
        2. <song>.lrc next to a local file, then lyrics in its tags
        3. External providers given with -e, in order
    """
    if version:
        click.echo(f"waylrc {__version__}")
        ctx.exit(0)

    overrides = {
        "refresh_every": refresh_every,
        "skip_metadata": skip_metadata,
        "players": player,
        "providers": external_lrc_provider,
        "navidrome_server_url": navidrome_server_url,
        "navidrome_username": navidrome_username,
        "navidrome_password": navidrome_password,
        "provider_timeout": provider_timeout,
        "show_paused": show_paused,
        "focus": focus,
        "log_level": log_level,
        "log_file": log_file,
        "missing_lyrics_log": missing_lyrics_log,
    }
    _run_daemon(config_path, overrides)


def _run_daemon(config_path: Optional[Path], overrides: dict) -> None:
    """
    Load the configuration and run the daemon until it stops.

    Exits with the status documented in the module docstring.
    """
    try:
        config = load_config(config_path, overrides)
        setup_logging(
            level=config.logging.level,
            log_file=config.logging.log_file,
            missing_lyrics_log=config.logging.missing_lyrics_log,
        )
        logger.info(f"waylrc {__version__} starting")
        _log_configuration(config)

        asyncio.run(run_daemon(config))

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except BusError as e:
        click.echo(f"D-Bus error: {e.message}", err=True)
        logger.error(f"D-Bus error: {e.message}", exc_info=True)
        sys.exit(2)

    except InvariantError as e:
        click.echo(f"Internal error: {e.message}", err=True)
        logger.error(f"Internal error: {e.message} {e.details}", exc_info=True)
        sys.exit(3)

    except WaylrcError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except BrokenPipeError:
        # Waybar went away; nothing left to write to
        logger.info("Output closed, exiting")
        _silence_stdout()
        sys.exit(0)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


async def run_daemon(config: Config) -> None:
    """Run a Daemon for config; SIGTERM stops it cleanly."""
    daemon = Daemon(config)
    task = asyncio.current_task()
    if task is not None:
        daemon.install_signal_handler(task)

    try:
        await daemon.run()
    except asyncio.CancelledError:
        logger.info("waylrc stopped")


def _silence_stdout() -> None:
    """Point stdout at /dev/null so the flush at interpreter exit cannot fail again."""
    try:
        fd = sys.stdout.fileno()
    except (AttributeError, OSError, ValueError):
        # stdout is not backed by a file descriptor
        return
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, fd)
    os.close(devnull)


def _log_configuration(config: Config) -> None:
    players = ", ".join(config.players.allowed) or "all"
    providers = ", ".join(p.value for p in config.providers.enabled) or "none"
    logger.debug(
        f"Players: {players}; providers: {providers}; "
        f"focus: {config.sync.focus.value}; show paused: {config.sync.show_paused}; "
        f"resync every {config.sync.refresh_every:g}s"
    )


if __name__ == "__main__":
    cli()
