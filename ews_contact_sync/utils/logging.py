"""
Logging configuration module for ews_contact_sync.

Provides centralized logging configuration with support for:
- A per-run log file named after the source mailbox and the start time
- Console-only mode that routes the run log to the terminal instead
- Mailbox context and error detail carried on each record
- Colored console output for better readability (when supported)

Run log lines look like::

    18.10.2026 09:15:02 : alice@example.com: Created contact Jane Doe
    18.10.2026 09:15:03 : bob@example.com: Failed to save contact John Smith Error: ...
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, MutableMapping, Optional

# Root logger name for the package
LOGGER_NAME = "ews_contact_sync"

# Simplified format for console (less verbose)
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Verbose format (includes more details)
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)

# Date format for run log timestamps (day.month.year hour:minute:second)
DATE_FORMAT = "%d.%m.%Y %H:%M:%S"

# Timestamp pattern used in run log file names
LOG_FILE_TIMESTAMP = "%Y%m%d_%H%M%S"

# Environment variable names
ENV_LOG_LEVEL = "EWS_CONTACT_SYNC_LOG_LEVEL"
ENV_DEBUG = "EWS_CONTACT_SYNC_DEBUG"


class ColoredFormatter(logging.Formatter):
    """
    A logging formatter that adds ANSI color codes to log messages.

    Colors are only applied when output is to a terminal that supports them.
    """

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and self._supports_color()

    def _supports_color(self) -> bool:
        """Check if the terminal supports colors."""
        if not hasattr(sys.stderr, "isatty") or not sys.stderr.isatty():
            return False

        # https://no-color.org/
        if os.environ.get("NO_COLOR"):
            return False

        term = os.environ.get("TERM", "")
        return term != "dumb"

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with optional colors."""
        # Make a copy to avoid modifying the original
        record = logging.makeLogRecord(record.__dict__)

        if self.use_colors and record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]
            record.levelname = f"{color}{record.levelname}{self.RESET}"
            record.msg = f"{color}{record.msg}{self.RESET}"

        return super().format(record)


class RunLogFormatter(logging.Formatter):
    """
    Formatter for the run log.

    Renders ``<timestamp> : [<mailbox>: ]<message>[ Error: <detail>]``.
    The mailbox and error detail are read from the ``mailbox`` and ``error``
    attributes of the record, which callers set through ``extra`` or a
    :class:`MailboxLogger`.
    """

    def __init__(self, datefmt: str = DATE_FORMAT):
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record, self.datefmt)} : "

        mailbox = getattr(record, "mailbox", None)
        if mailbox:
            line += f"{mailbox}: "

        line += record.getMessage()

        error = getattr(record, "error", None)
        if error is not None and str(error):
            line += f" Error: {error}"

        if record.exc_info:
            if not record.exc_text:
                record.exc_text = self.formatException(record.exc_info)
            line += "\n" + record.exc_text

        return line


class RunLogFileHandler(logging.FileHandler):
    """
    Append-only UTF-8 file handler for the run log.

    The file, including missing parent directories, is created on the first
    record rather than at handler construction.
    """

    def __init__(self, filename: Path | str):
        super().__init__(filename, mode="a", encoding="utf-8", delay=True)

    def _open(self):  # type: ignore[no-untyped-def]
        Path(self.baseFilename).parent.mkdir(parents=True, exist_ok=True)
        return super()._open()


class MailboxLogger(logging.LoggerAdapter):
    """
    Logger adapter that tags every record with a mailbox address.

    Extra fields passed on individual calls (such as ``error``) are merged
    with the mailbox context instead of replacing it.

    Example:
        log = MailboxLogger(logger, "alice@example.com")
        log.error("Failed to save contact", extra={"error": exc})
    """

    def __init__(self, logger: logging.Logger, mailbox: str):
        super().__init__(logger, {"mailbox": mailbox})

    @property
    def mailbox(self) -> str:
        return self.extra["mailbox"]  # type: ignore[index]

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}  # type: ignore[dict-item]
        return msg, kwargs


def get_log_level_from_env() -> int:
    """
    Get the console logging level from environment variables.

    Checks EWS_CONTACT_SYNC_DEBUG and EWS_CONTACT_SYNC_LOG_LEVEL environment
    variables to determine the appropriate log level.

    Returns:
        Logging level constant (e.g., logging.DEBUG, logging.INFO)
    """
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG

    level_str = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    return level_map.get(level_str, logging.INFO)


def get_run_log_path(
    log_dir: Path, source_mailbox: str, started_at: Optional[datetime] = None
) -> Path:
    """
    Build the run log file path for a source mailbox.

    The file name is the local part of the mailbox address followed by the
    run start time, e.g. ``contacts_20261018_091500.log``.

    Args:
        log_dir: Directory that holds run logs
        source_mailbox: Source mailbox address
        started_at: Run start time (default: now)

    Returns:
        Path to the run log file
    """
    started_at = started_at or datetime.now()
    name = source_mailbox.split("@", 1)[0].strip() or "run"
    # Keep the file name portable
    name = "".join(c if c.isalnum() or c in "-_." else "_" for c in name)
    return Path(log_dir) / f"{name}_{started_at.strftime(LOG_FILE_TIMESTAMP)}.log"


def setup_logging(
    log_file: Optional[Path] = None,
    verbose: bool = False,
    level: Optional[int] = None,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure logging for a run.

    With ``log_file`` set, every record goes to that file in run log format
    and the console shows the usual short format. Without it, the run log
    format is written to the console instead and no file is created.

    Args:
        log_file: Path of the run log file, or None for console-only output.
        verbose: If True, show DEBUG records and file/line detail on the console.
        level: Console level when a log file is used. If None, determined
            from environment. The console-only run log is never filtered.
        use_colors: If True, use colored console output (when supported).

    Returns:
        The root logger for ews_contact_sync

    Example:
        # Per-run file
        setup_logging(log_file=get_run_log_path(log_dir, "contacts@example.com"))

        # Console only
        setup_logging(log_file=None)
    """
    if level is None:
        level = get_log_level_from_env()
    if verbose:
        level = logging.DEBUG

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Close handlers left over from a previous run in the same process
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Prevent propagation to root logger to avoid duplicate messages
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    if log_file is None:
        # The console carries the run log, which is never filtered
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(RunLogFormatter())
        logger.addHandler(console_handler)
        return logger

    console_format = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    console_formatter: logging.Formatter
    if use_colors:
        console_formatter = ColoredFormatter(console_format, DATE_FORMAT)
    else:
        console_formatter = logging.Formatter(console_format, DATE_FORMAT)
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    file_handler = RunLogFileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)  # The run log is never filtered
    file_handler.setFormatter(RunLogFormatter())
    logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Returns a child logger of the ews_contact_sync logger hierarchy.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Logger instance for the module
    """
    if not name.startswith(LOGGER_NAME):
        name = f"{LOGGER_NAME}.{name}"

    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "get_log_level_from_env",
    "get_run_log_path",
    "ColoredFormatter",
    "MailboxLogger",
    "RunLogFileHandler",
    "RunLogFormatter",
    "LOGGER_NAME",
    "CONSOLE_FORMAT",
    "VERBOSE_FORMAT",
    "DATE_FORMAT",
]
