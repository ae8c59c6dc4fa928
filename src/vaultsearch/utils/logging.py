"""
Logging utilities.

All vaultsearch modules log under the ``vaultsearch`` logger tree.
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
ROOT_LOGGER = 'vaultsearch'


def _to_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper())
    return level


def get_logger(name: str, level: int | str = logging.INFO) -> logging.Logger:
    """
    Get a logger writing to stderr.

    Args:
        name: Logger name (usually __name__)
        level: Level applied the first time the logger is configured

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(_to_level(level))

    return logger


def set_log_level(level: int | str) -> None:
    """
    Set the level of the vaultsearch logger tree.

    Applies to the tree root and to every logger already created below it.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = _to_level(level)

    logging.getLogger(ROOT_LOGGER).setLevel(level)
    for name, logger in logging.root.manager.loggerDict.items():
        if name.startswith(ROOT_LOGGER + '.') and isinstance(logger, logging.Logger):
            logger.setLevel(level)
