#!/usr/bin/env python3
"""
logger.py — logging setup for s3archiver
"""

import logging
import sys
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Optional

from s3archiver.config import Settings

ROOT_NAME = "s3archiver"
STATUS_LEVEL = 25

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s"

_LOGGER: Optional[logging.Logger] = None


def _install_status_level() -> None:
    """Add a STATUS level between INFO and WARNING and a Logger.status() helper."""
    logging.addLevelName(STATUS_LEVEL, "STATUS")

    def status(self, message, *args, **kwargs):
        if self.isEnabledFor(STATUS_LEVEL):
            self._log(STATUS_LEVEL, message, args, **kwargs)

    logging.Logger.status = status  # type: ignore[attr-defined]


# done at import so module loggers can call .status() before setup_logger()
_install_status_level()


def _file_handler(settings: Settings) -> logging.Handler:
    settings.log_path.parent.mkdir(parents=True, exist_ok=True)
    if settings.rotate_by_time:
        handler = TimedRotatingFileHandler(
            settings.log_path, when="midnight", interval=1,
            backupCount=settings.max_log_files, encoding="utf-8",
        )
    else:
        handler = RotatingFileHandler(
            settings.log_path, maxBytes=settings.max_log_size,
            backupCount=settings.max_log_files, encoding="utf-8",
        )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def setup_logger(settings: Settings) -> logging.Logger:
    """
    Configure the package logger once per process: stdout at INFO, plus a
    rotating DEBUG log file when settings.log_path is set. Later calls return
    the already configured logger.
    """
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    log = logging.getLogger(ROOT_NAME)
    log.setLevel(settings.log_level)
    log.propagate = False
    for h in list(log.handlers):
        log.removeHandler(h)

    if settings.log_path is not None:
        log.addHandler(_file_handler(settings))

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    log.addHandler(console)

    _LOGGER = log
    return log


def _child_name(name: Optional[str]) -> Optional[str]:
    # get_logger(__name__) must not produce "s3archiver.s3archiver.x"
    prefix = ROOT_NAME + "."
    if name and name.startswith(prefix):
        return name[len(prefix):]
    return name


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Child of the configured package logger, or of a stderr fallback logger
    when setup_logger() has not run yet (imports, tests).
    """
    name = _child_name(name)
    if _LOGGER is not None:
        return _LOGGER.getChild(name) if name else _LOGGER

    fallback = logging.getLogger(ROOT_NAME + ".temp")
    if not fallback.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        fallback.addHandler(handler)
        fallback.setLevel(logging.INFO)
    return fallback.getChild(name) if name else fallback
