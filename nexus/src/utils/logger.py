"""
Nexus - Logging
================
Pre-configured logger factory for consistent log output across all
Nexus modules.

Logging verbosity is driven by ``settings.ENV``:
  • ``"dev"``  → DEBUG level
  • ``"prod"`` → WARNING level

Usage:
    from nexus.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[CHAT] Stream started")
"""

import logging
import sys

from nexus.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}
_DEFAULT_LEVEL = _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Create and return a named logger with the standard formatter.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit logging level override.
               If *None*, the level is derived from ``settings.ENV``.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers if the logger already exists
    if not logger.handlers:
        logger.setLevel(resolved_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(console_handler)

        logger.propagate = False

    return logger
