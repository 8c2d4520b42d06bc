"""Logging setup for the komodo-op process.

Library modules only ever log through ``logging.getLogger(__name__)``
or a logger handed to them. The level and handler live on the
``komodo_op`` logger, configured once by the entry point.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

from .config import LogLevel

LOGGER_NAME = "komodo_op"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: LogLevel = LogLevel.INFO,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach a single stream handler to the ``komodo_op`` logger.

    Calling it again replaces the previous handler, so the level can
    be changed (e.g. by ``--log-level``) without duplicating output.

    Args:
        level: Verbosity; ``quiet`` only lets errors through.
        stream: Output stream. Defaults to stderr.

    Returns:
        The configured package logger.
    """
    log = logging.getLogger(LOGGER_NAME)
    for handler in list(log.handlers):
        if getattr(handler, "_komodo_op", False):
            log.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._komodo_op = True  # type: ignore[attr-defined]
    log.addHandler(handler)
    log.setLevel(level.logging_level)
    log.propagate = False
    return log

