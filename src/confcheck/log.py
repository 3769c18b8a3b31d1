"""Logging setup for confcheck.

Modules log through `logging.getLogger(__name__)`; the CLI calls
setup_logging() once to send those records to stderr through rich.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "confcheck"


def setup_logging(level: str = "WARNING", console: Console | None = None) -> logging.Logger:
    """Attach a rich handler to the confcheck logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        console: Console to write to; defaults to stderr

    Returns:
        The configured confcheck logger
    """
    logger = logging.getLogger(LOGGER_NAME)

    level_upper = level.upper()
    if level_upper not in logging.getLevelNamesMapping():
        raise ValueError(
            f"Invalid log level: {level}. "
            f"Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
        )
    logger.setLevel(level_upper)

    # Prevent duplicate handlers
    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return logger

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        log_time_format="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
    logger.addHandler(handler)
    return logger
