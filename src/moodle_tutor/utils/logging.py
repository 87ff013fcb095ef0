"""Logging utilities for the Moodle tutor server."""

import logging
import sys
from pathlib import Path
from typing import TextIO

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | None = None,
    format_string: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure logging for the application.

    The console handler writes to stderr by default: the MCP stdio transport
    uses stdout for protocol messages.

    Args:
        level: Logging level (e.g., logging.INFO, logging.DEBUG)
        log_file: Optional path to log file
        format_string: Custom format string for log messages
        stream: Console stream, defaults to sys.stderr
    """
    if format_string is None:
        format_string = DEFAULT_FORMAT

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=format_string,
        handlers=handlers,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
