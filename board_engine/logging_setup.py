"""
Logging configuration for Vision Board entry points.

Engine modules only create module-level loggers. The GUI and CLI call
`configure_logging` once at startup.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "visionboard.log"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_HANDLER_MARK = "_visionboard_handler"


def configure_logging(logs_root: Path | None = None, *, verbose: bool = False) -> None:
    """
    Configure the root logger for the application.

    Parameters
    ----------
    logs_root:
        Directory for the rotating log file. If None, only stderr is used.
    verbose:
        Log at DEBUG instead of INFO.

    Notes
    -----
    Calling this again replaces the handlers installed by a previous call and
    leaves other handlers (for example pytest's capture handler) alone.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)
            handler.close()

    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    setattr(stream, _HANDLER_MARK, True)
    root.addHandler(stream)

    if logs_root is not None:
        logs_root.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            logs_root / LOG_FILE_NAME,
            maxBytes=1_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_MARK, True)
        root.addHandler(file_handler)
