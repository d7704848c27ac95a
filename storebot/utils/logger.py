"""
Logging setup for storebot.

All modules log through children of the ``storebot`` logger so the level
and handler can be controlled in one place: ``LOG_LEVEL`` is read at import,
and ``configure_logging`` changes the level at runtime (the seed script
calls it for ``--log-level``).
"""
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("storebot")


def configure_logging(level: str = None) -> logging.Logger:
    """
    Attach a stdout handler to the package logger (once) and set its level.

    Args:
        level: Level name such as "DEBUG". Falls back to $LOG_LEVEL, then INFO.

    Returns:
        The package logger
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    # Avoid duplicate lines when the host app also configures the root logger
    logger.propagate = False
    return logger


configure_logging()


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Optional subsystem name (appended to 'storebot')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"storebot.{name}")
    return logger
