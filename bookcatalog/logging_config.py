"""
Logging configuration for the book catalog.

Usage:
    from bookcatalog.logging_config import setup_logging

    setup_logging("INFO")   # once, at process start (API lifespan or CLI)

Modules log through ``logging.getLogger(__name__)`` as usual.
"""

import logging
import sys
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_HANDLER_NAME = "bookcatalog-console"


class _StderrHandler(logging.StreamHandler):
    """StreamHandler bound to whatever ``sys.stderr`` is at emit time."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def setup_logging(level: Union[str, int] = "INFO") -> logging.Logger:
    """Attach one console handler to the ``bookcatalog`` logger.

    Calling it again only updates the level, so repeated app start-ups in
    tests do not stack handlers.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("bookcatalog")
    logger.setLevel(level)

    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = _StderrHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    return logger
