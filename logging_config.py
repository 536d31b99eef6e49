"""
Logging configuration with a colored console handler.

Output goes to stderr so a host speaking a protocol over stdout is never
interleaved with log lines.

Usage:
    from logging_config import get_logger
    logger = get_logger("ado")
    logger.info("Fetched changes", extra={"pr_id": 42})
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime

# ANSI color codes for console output
COLORS = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

# Module-specific colors for tags
TAG_COLORS = {
    "ado": "\033[94m",  # Blue
    "ado.http": "\033[96m",  # Cyan
    "ado.diff": "\033[95m",  # Magenta
}

# Record attributes rendered after the message when set
EXTRA_FIELDS = ("pr_id", "iteration_id", "path")


class ColoredConsoleFormatter(logging.Formatter):
    """Formatter that adds colors and matches existing tag-based style."""

    def format(self, record: logging.LogRecord) -> str:
        level_color = COLORS.get(record.levelname, "")
        reset = COLORS["RESET"]

        tag = record.name
        tag_color = TAG_COLORS.get(tag, "\033[37m")

        timestamp = datetime.now().strftime("%H:%M:%S")
        level_str = f"{level_color}{record.levelname:8}{reset}"
        tag_str = f"{tag_color}[{tag}]{reset}"

        extra_parts = []
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None and value != "":
                extra_parts.append(f"{key}={value}")

        extra_str = f" ({', '.join(extra_parts)})" if extra_parts else ""
        msg = f"{timestamp} {level_str} {tag_str} {record.getMessage()}{extra_str}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# Global state
_console_handler: logging.Handler | None = None
_initialized = False


def _get_console_level() -> int:
    """Get console log level from environment variable."""
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def init_logging(console_level: int | None = None):
    """Initialize the logging system with the console handler."""
    global _console_handler, _initialized

    if _initialized:
        return

    if console_level is None:
        console_level = _get_console_level()

    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setLevel(console_level)
    _console_handler.setFormatter(ColoredConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(_console_handler)

    # httpx logs every request at INFO; the client logs its own
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    if not _initialized:
        init_logging()
    return logging.getLogger(name)


def shutdown_logging():
    """Detach the console handler."""
    global _console_handler, _initialized
    if _console_handler:
        logging.getLogger().removeHandler(_console_handler)
        _console_handler = None
    _initialized = False
