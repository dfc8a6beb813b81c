"""Logging for the data-access layer.

Library code logs to the ``dbaccess`` logger, which carries only a
NullHandler until an application opts in with enable_logging(). The root
logger is never touched.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

LOGGER_NAME = "dbaccess"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed by enable_logging() so they can be found again
_OWNED = "_dbaccess_owned"


def get_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if not any(isinstance(h, logging.NullHandler) for h in logger.handlers):
        logger.addHandler(logging.NullHandler())
    return logger


def enable_logging(level=logging.INFO, log_file: Optional[str] = None,
                   max_bytes: int = 5 * 1024 * 1024, backup_count: int = 3) -> logging.Logger:
    """Send ``dbaccess`` records to stderr and, optionally, a rotating file.

    Calling it again replaces the handlers from the previous call. Records
    stop propagating to the root logger so they are not printed twice.
    """
    logger = get_logger()
    disable_logging()
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        )
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _OWNED, True)
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def disable_logging():
    """Remove handlers added by enable_logging() and restore propagation."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in [h for h in logger.handlers if getattr(h, _OWNED, False)]:
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
