"""
Logger factory for commercial_pricing.

Each module calls ``get_logger(__name__)`` once at import time. A logger gets
a single stream handler the first time it is requested; its level comes from
``Settings.log_level`` unless the caller passes one.
"""
import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """Named logger with the pipe-separated format; repeat calls reuse the handler."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

        if level is None:
            from .settings import get_settings
            level = get_settings().log_level
        logger.setLevel(level)
    elif level is not None:
        logger.setLevel(level)
    return logger
