"""
PollutionWatch - Logging Configuration

Entry points (the API lifespan and the map export script) call
``setup_logging(settings)`` once. Library modules only create loggers.
"""

import logging
import sys
from typing import Optional

from src.core.config import Settings, get_settings

ROOT_LOGGER = "pollutionwatch"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty per-request loggers of the HTTP and upload stack
NOISY_LOGGERS = ("httpx", "httpcore", "multipart", "python_multipart")

_handler: Optional[logging.Handler] = None


def setup_logging(settings: Optional[Settings] = None, level: Optional[str] = None) -> logging.Logger:
    """
    Attach the stdout handler and apply the configured level.

    Repeated calls only update the level; the handler is installed once.

    Args:
        settings: Application settings (``log_level``, ``debug``)
        level: Explicit level name, overriding the settings

    Returns:
        The application root logger
    """
    global _handler
    settings = settings or get_settings()

    level_name = (level or settings.log_level).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    root = logging.getLogger()
    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(_handler)
    root.setLevel(numeric_level)

    noisy_level = logging.DEBUG if settings.debug and numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    app_logger = logging.getLogger(ROOT_LOGGER)
    app_logger.setLevel(numeric_level)
    return app_logger


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a script or component outside the ``src`` package tree.

    Names are placed under the ``pollutionwatch`` logger so they share
    its level.
    """
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
