"""Logging configuration for Glossa."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers, capped at WARNING unless debugging
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "uvicorn.access")


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Get a logger that writes to stderr even before ``configure_logging``.

    Args:
        name: Logger name, typically __name__ from the calling module
        level: Optional log level override

    Returns:
        Logger with a stderr handler attached
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        logger.addHandler(handler)
        # Root would print the same record again
        logger.propagate = False

    if level is not None:
        logger.setLevel(level)

    return logger


def configure_logging(level: Optional[int | str] = None, quiet: bool = False) -> None:
    """Configure root logging for the CLI and the API server.

    Args:
        level: Level number or name ("DEBUG", "info", ...). If None, uses
            GLOSSA_LOG_LEVEL from settings.
        quiet: If True, only show warnings and errors
    """
    if level is None:
        from .config import get_settings
        level = get_settings().log_level_int
    elif isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if quiet:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
