"""
Core module for waylrc.

This module provides the foundational components used throughout the daemon:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging to stderr, an optional file and a missing-lyrics report

Usage:
    from waylrc.core import (
        Config, load_config,
        setup_logging, get_logger,
        WaylrcError, ConfigError
    )
"""

from waylrc.core.config import (
    Config,
    ExternalProvider,
    FocusPolicy,
    LoggingConfig,
    NavidromeConfig,
    OutputConfig,
    PlayerConfig,
    ProviderConfig,
    SyncConfig,
    load_config,
    short_player_name,
)
from waylrc.core.exceptions import (
    BusError,
    ConfigError,
    InvariantError,
    ProviderError,
    WaylrcError,
)
from waylrc.core.logger import (
    get_logger,
    log_missing_lyrics,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "SyncConfig",
    "OutputConfig",
    "PlayerConfig",
    "ProviderConfig",
    "NavidromeConfig",
    "LoggingConfig",
    "ExternalProvider",
    "FocusPolicy",
    "load_config",
    "short_player_name",
    # Exceptions
    "WaylrcError",
    "ConfigError",
    "BusError",
    "ProviderError",
    "InvariantError",
    # Logger
    "setup_logging",
    "get_logger",
    "log_missing_lyrics",
    "shutdown_logging",
]
