import logging
from typing import Optional

from gitpod_bot.settings import LOG_LEVEL


_DEFAULT_LOGGER_NAME = "gitpod_bot"
_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Returns a configured logger instance.

    - Uses StreamHandler
    - Prevents duplicate handlers
    - Level comes from LOG_LEVEL (INFO when unset or unknown)
    - Safe to call multiple times
    """
    logger_name = name or _DEFAULT_LOGGER_NAME
    logger = logging.getLogger(logger_name)

    if not logger.handlers:
        level = logging.getLevelName(LOG_LEVEL)
        if not isinstance(level, int):
            level = logging.INFO

        logger.setLevel(level)

        handler = logging.StreamHandler()
        handler.setLevel(level)

        formatter = logging.Formatter(_LOG_FORMAT)
        handler.setFormatter(formatter)

        logger.addHandler(handler)

        # Prevent double logging if root logger is configured
        logger.propagate = False

    return logger
