"""
Logging configuration for waylrc.

stdout belongs to Waybar (one JSON record per line), so every log output
goes elsewhere:
    - Console: stderr, colored when stderr is a terminal
    - Log file: Complete log of all events (optional, --log-file)
    - Missing lyrics report: Tracks for which no lyrics could be resolved
      (optional, --missing-lyrics-log)

Usage:
    from waylrc.core.logger import setup_logging, get_logger

    setup_logging("INFO", log_file=Path("/tmp/waylrc.log"))  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Player appeared")
    log_missing_lyrics(logger, track)
"""

import logging
import sys
from pathlib import Path
from typing import TextIO


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log format for plain (non-tty) console output
CONSOLE_LOG_FORMAT = "%(levelname)s: %(name)s: %(message)s"

# Chatty libraries are capped at this level regardless of --log-level
THIRD_PARTY_LOGGERS = ("aiohttp", "dbus_next", "asyncio")
THIRD_PARTY_LEVEL = logging.WARNING


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record with colors.

        Args:
            record: The log record to format.

        Returns:
            Formatted string with ANSI color codes.
        """
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        message = f"{colored_levelname}: {Colors.CYAN}{record.name}{Colors.RESET}: {record.getMessage()}"

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return message


class MissingLyricsHandler(logging.Handler):
    """
    Custom handler that records tracks without lyrics in a report file.

    This handler listens for log records that carry missing-lyrics
    information and appends them in a simple, human-readable format:

        Artist Name - Song Title (Album)
        file:///home/user/Music/song.flac

        Another Artist - Another Song
        (no url)

    The handler looks for specific extra fields in log records:
        - 'missing_lyrics_title': The track title
        - 'missing_lyrics_artist': The artist names joined for display
        - 'missing_lyrics_album': The album (optional)
        - 'missing_lyrics_url': The xesam:url of the track (optional)

    Only records containing these fields are written to the report.

    Attributes:
        report_path: Path to the report file.
        report_file: Open file handle (None until open() is called).

    Usage:
        log_missing_lyrics(logger, track)
    """

    def __init__(self, report_path: Path) -> None:
        """
        Initialize the missing lyrics handler.

        Args:
            report_path: Path to the report file. Entries are appended
                         so the report survives daemon restarts.
        """
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for appending. Called by setup_logging()."""
        self.report_path.parent.mkdir(parents=True, exist_ok=True)
        self.report_file = open(self.report_path, "a", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        """
        Append the track to the report if the record describes one.

        Args:
            record: The log record to check and potentially write.
        """
        if not hasattr(record, "missing_lyrics_title"):
            return

        if self.report_file is None:
            return

        try:
            title = getattr(record, "missing_lyrics_title", "Unknown")
            artist = getattr(record, "missing_lyrics_artist", "") or "Unknown"
            album = getattr(record, "missing_lyrics_album", None)
            url = getattr(record, "missing_lyrics_url", None)

            heading = f"{artist} - {title}"
            if album:
                heading = f"{heading} ({album})"

            self.report_file.write(f"{heading}\n")
            self.report_file.write(f"{url or '(no url)'}\n\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """
        Close the report file handle.

        Called automatically when logging is shut down.
        Safe to call multiple times.
        """
        if self.report_file is not None:
            self.report_file.close()
            self.report_file = None
        super().close()


def setup_logging(
    level: str = "WARNING",
    log_file: Path | None = None,
    missing_lyrics_log: Path | None = None,
    stream: TextIO | None = None
) -> None:
    """
    Configure the logging system for the daemon.

    This function should be called ONCE at startup, after the
    configuration is loaded but before the bus connection is opened.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path of a full log file (DEBUG and above).
        missing_lyrics_log: Optional path of the missing-lyrics report.
        stream: Console stream, defaults to sys.stderr.

    Behavior:
        1. Configure root logger level to DEBUG and drop existing handlers
        2. Console handler on stderr at the requested level, colored on a tty
        3. Full log file handler if log_file is given
        4. Missing lyrics handler if missing_lyrics_log is given
        5. Cap third-party loggers at WARNING
    """
    stream = stream if stream is not None else sys.stderr

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream)
    console_handler.setLevel(logging.getLevelName(level.upper()))
    if hasattr(stream, "isatty") and stream.isatty():
        console_handler.setFormatter(ColoredConsoleFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        full_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        full_handler.setLevel(logging.DEBUG)
        full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
        root_logger.addHandler(full_handler)

    if missing_lyrics_log is not None:
        missing_handler = MissingLyricsHandler(missing_lyrics_log)
        missing_handler.open()
        root_logger.addHandler(missing_handler)

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(THIRD_PARTY_LEVEL)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.
              This creates a hierarchy like 'waylrc.lyrics.pipeline'.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().
    """
    return logging.getLogger(name)


def log_missing_lyrics(logger: logging.Logger, track) -> None:
    """
    Log a track whose lyrics could not be resolved by any source.

    Attaches the extra fields MissingLyricsHandler picks up.

    Args:
        logger: The logger to use for the message.
        track: The waylrc.mpris.models.Track that resolved unavailable.
    """
    artist = ", ".join(track.artists)
    logger.info(
        f"No lyrics found for: {track.display_name}",
        extra={
            "missing_lyrics_title": track.title or "Unknown",
            "missing_lyrics_artist": artist,
            "missing_lyrics_album": track.album,
            "missing_lyrics_url": track.url,
        }
    )


def shutdown_logging() -> None:
    """
    Flush and close every handler on the root logger.

    Called from the CLI's finally block. After calling this function,
    logging will no longer produce output.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        handler.flush()
        handler.close()
        root_logger.removeHandler(handler)
