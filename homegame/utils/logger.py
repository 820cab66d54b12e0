"""Logging setup for the ledger service."""
import logging
import sys
from typing import Optional

from homegame.config import config

ROOT_LOGGER = "homegame"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach the stdout handler to the package root logger (once).

    Args:
        level: Level name, defaults to config.log_level.

    Returns:
        The package root logger.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(getattr(logging, (level or config.log_level).upper(), logging.INFO))
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the package root.

    Args:
        name: Logger name, typically __name__ of the calling module.

    Returns:
        Logger that propagates to the configured package root.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        configure_logging()
    if not name or name == ROOT_LOGGER:
        return root
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
