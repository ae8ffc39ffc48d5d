"""Logging configuration and utilities."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOGGER_NAME = "git_radar"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(
    log_file: Path | None = None,
    verbose: bool = False,
    stream: bool = False,
) -> logging.Logger:
    """Configure logging for one run.

    Args:
        log_file: Optional file receiving INFO (DEBUG when verbose) and above
        verbose: Also log every captured line of command output
        stream: Echo warnings to stderr; leave off while the live board owns the terminal

    Returns:
        The git-radar root logger
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = []

    if log_file is not None:
        log_file = log_file.expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    if stream:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        handlers.append(stream_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,  # Reset any existing configuration
    )

    logger = get_logger()
    logger.info("Starting git-radar run")
    if log_file is not None:
        logger.info("Log file: %s", log_file)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get the application logger, or one of its children."""
    logger = logging.getLogger(LOGGER_NAME)
    return logger.getChild(name) if name else logger


class RepoLoggerAdapter(logging.LoggerAdapter):
    """Prefix every message with the repository it concerns."""

    def process(self, msg, kwargs):
        return f"{self.extra['repo']}: {msg}", kwargs
