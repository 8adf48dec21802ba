"""Process logging for the hook.

Hooks run detached from any terminal, so records go to a log file next to the
cursor state. Every module logs through ``logging.getLogger(__name__)``; this
module only attaches handlers to the package logger.
"""

import logging
import sys
from pathlib import Path

PACKAGE_LOGGER = "aichat_trace"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers attached by setup_logging(), replaced on the next call
_installed_handlers: list[logging.Handler] = []


def setup_logging(log_file: Path, debug: bool = False, echo: bool = False) -> logging.Logger:
    """Send package log records to ``log_file`` (and stderr when ``echo``).

    Safe to call more than once: handlers installed by a previous call are
    replaced rather than duplicated.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False

    while _installed_handlers:
        handler = _installed_handlers.pop()
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    _installed_handlers.append(file_handler)

    if echo:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
        _installed_handlers.append(stream_handler)

    return logger
