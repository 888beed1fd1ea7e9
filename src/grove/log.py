"""Logging configuration for grove."""

import logging

from rich.logging import RichHandler

ROOT_LOGGER = "grove"


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the grove root logger."""
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(level: str = "WARNING") -> logging.Logger:
    """Configure the grove logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)

    Raises:
        ValueError: If level is not a logging level name
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)

    # Calling this twice (e.g. once per CLI invocation in tests) must not stack handlers
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    console_handler = RichHandler(
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(numeric_level)
    logger.addHandler(console_handler)

    logger.propagate = False
    return logger
