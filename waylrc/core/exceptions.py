"""
Exception classes for waylrc.

This module defines all custom exceptions used throughout the daemon.
Each exception is designed to provide a clear message for the user and to
distinguish between failures that stop the daemon and failures that are
only logged.

Exception Hierarchy:
    WaylrcError (base)
        ConfigError - Invalid command line or config.yaml values
        BusError - Session bus connection or call failures
        ProviderError - External lyric provider failures
        InvariantError - Internal logic defects
"""


class WaylrcError(Exception):
    """
    Base exception for all waylrc errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all waylrc errors with a single except
    clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (player name,
                 provider, URL, ...).

    Example:
        try:
            config = load_config(path)
        except WaylrcError as e:
            logger.error(f"Startup failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'player': MPRIS bus name involved in the error
                     - 'provider': External provider name
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(WaylrcError):
    """
    Raised when the configuration is unusable.

    This is a CRITICAL error: the daemon refuses to start.

    Common causes:
        - config.yaml has invalid YAML syntax
        - Navidrome enabled without server URL, username or password
        - Non-positive refresh interval or provider timeout
        - Unknown provider or focus policy name

    Example:
        raise ConfigError(
            "Navidrome provider requires --navidrome-password",
            details={'missing_field': 'password'}
        )
    """
    pass


class BusError(WaylrcError):
    """
    Raised when the D-Bus session bus cannot be reached or a call fails.

    CRITICAL only when connecting at startup. Failures while probing a
    single player are logged and recovered by the next resync.

    Example:
        raise BusError(
            "Timed out reading properties",
            details={'player': 'org.mpris.MediaPlayer2.mpv'}
        )
    """
    pass


class ProviderError(WaylrcError):
    """
    Raised when an external lyric provider fails.

    Never CRITICAL: the resolution pipeline catches it and treats the
    provider as having declined.

    Attributes:
        is_auth_error: True if the provider rejected the credentials.
        is_rate_limit: True if the provider throttled the request.
        is_timeout: True if the provider did not answer in time.

    Example:
        raise ProviderError(
            "Wrong username or password",
            details={'provider': 'navidrome', 'code': 40},
            is_auth_error=True
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False,
        is_timeout: bool = False
    ) -> None:
        """
        Initialize provider error with additional flags.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            is_auth_error: Set to True for authentication failures.
            is_rate_limit: Set to True for HTTP 429 style throttling.
            is_timeout: Set to True when the request timed out.
        """
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit
        self.is_timeout = is_timeout


class InvariantError(WaylrcError):
    """
    Raised when internal state contradicts itself.

    This is a CRITICAL error: it indicates a bug, so the daemon stops
    instead of emitting wrong lyrics.

    Example:
        raise InvariantError(
            "Focal player is not registered",
            details={'player': name}
        )
    """
    pass
