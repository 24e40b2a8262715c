"""Log callback helpers.

Components report through a ``LogFn(level, message)`` callback with levels
INFO / SUCCESS / WARNING / ERROR / DEBUG.  These helpers build callbacks for
hosts that are not a log panel.
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Callable, TextIO

LogFn = Callable[[str, str], None]

LEVELS = ("DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR")

_STD_LEVELS = {
    "DEBUG":   logging.DEBUG,
    "INFO":    logging.INFO,
    "SUCCESS": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR":   logging.ERROR,
}


def null_log_fn(level: str, message: str) -> None:
    pass


def console_log_fn(stream: TextIO | None = None, min_level: str = "INFO") -> LogFn:
    """Print ``[HH:MM:SS] LEVEL   message`` lines, like the log panel."""
    out = stream or sys.stderr
    threshold = LEVELS.index(min_level)

    def log(level: str, message: str) -> None:
        if level in LEVELS and LEVELS.index(level) < threshold:
            return
        ts = datetime.now().strftime("%H:%M:%S")
        print(f"[{ts}] {level:<7} {message}", file=out)

    return log


def logging_log_fn(logger: logging.Logger | str = "craftscript") -> LogFn:
    """Forward callback messages to a stdlib logger.  SUCCESS maps to INFO."""
    target = logging.getLogger(logger) if isinstance(logger, str) else logger

    def log(level: str, message: str) -> None:
        target.log(_STD_LEVELS.get(level, logging.INFO), message)

    return log
