"""Logging setup for bumpguard.

Library code only calls ``get_logger(__name__)``; handlers are installed by
whatever embeds the engine, usually through ``configure_logging``.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def configure_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """Send log records to stderr through a rich handler.

    Only the first call has an effect.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format_string: Optional custom format string.
        verbose: Keep third-party HTTP loggers at the requested level.
        quiet: Only show warnings and errors, overriding ``level``.
    """
    global _configured

    if _configured:
        return

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(format_string or "%(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel("WARNING" if quiet else level.upper())

    if not verbose:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a bumpguard module (pass ``__name__``)."""
    return logging.getLogger(name)


class LogContext:
    """Raise or lower a logger's level for the duration of a block."""

    def __init__(self, logger: logging.Logger, level: str) -> None:
        self.logger = logger
        self.new_level = logging.getLevelName(level.upper())
        self.original_level = logger.level

    def __enter__(self) -> "LogContext":
        self.logger.setLevel(self.new_level)
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.logger.setLevel(self.original_level)


def log_to_file(
    filepath: str,
    level: str = "DEBUG",
    format_string: Optional[str] = None,
) -> logging.FileHandler:
    """Mirror log records into a plain text file.

    Args:
        filepath: Path to the log file.
        level: Log level for the file handler.
        format_string: Optional custom format string.

    Returns:
        The handler, so callers can remove it again.
    """
    handler = logging.FileHandler(filepath)
    handler.setLevel(level.upper())
    handler.setFormatter(logging.Formatter(format_string or FILE_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler
