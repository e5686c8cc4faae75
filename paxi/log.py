"""Levelled logging to the console or to a per-process log file."""

from __future__ import annotations

import logging
import os
import sys
from enum import IntEnum
from pathlib import Path


class Severity(IntEnum):
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}

_FORMAT = "[%(levelname)s] %(asctime)s.%(msecs)03d %(filename)s:%(lineno)d: %(message)s"
_DATEFMT = "%Y/%m/%d %H:%M:%S"

_logger = logging.getLogger("paxi")
_logger.propagate = False


class _ConsoleHandler(logging.Handler):
    """Writes debug and info to stdout, warnings and errors to stderr."""

    def __init__(self, errors_only: bool = False) -> None:
        super().__init__()
        self._errors_only = errors_only

    def emit(self, record: logging.LogRecord) -> None:
        if self._errors_only and record.levelno < logging.WARNING:
            return
        try:
            stream = sys.stdout if record.levelno < logging.WARNING else sys.stderr
            stream.write(self.format(record) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


def _install(*handlers: logging.Handler) -> None:
    for old in list(_logger.handlers):
        _logger.removeHandler(old)
        old.close()
    formatter = logging.Formatter(_FORMAT, _DATEFMT)
    for handler in handlers:
        handler.setFormatter(formatter)
        _logger.addHandler(handler)


_install(_ConsoleHandler())
_logger.setLevel(_LEVELS[Severity.DEBUG])


def parse_severity(value: str) -> Severity:
    """Map a level name to a Severity; unknown names give INFO."""
    try:
        return Severity[value.upper()]
    except KeyError:
        return Severity.INFO


def set_level(level: Severity | str) -> None:
    """Log at and above the given level."""
    if isinstance(level, str):
        level = parse_severity(level)
    _logger.setLevel(_LEVELS[Severity(level)])


def setup(log_dir: str | os.PathLike | None = None) -> Path:
    """Send logs to <program>.<pid>.log in log_dir; warnings also go to stderr."""
    program = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "paxi"
    path = Path(log_dir or ".") / f"{program}.{os.getpid()}.log"
    file_handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    _install(file_handler, _ConsoleHandler(errors_only=True))
    return path


def debug(msg, *args) -> None:
    _logger.debug(msg, *args, stacklevel=2)


def info(msg, *args) -> None:
    _logger.info(msg, *args, stacklevel=2)


def warning(msg, *args) -> None:
    _logger.warning(msg, *args, stacklevel=2)


def error(msg, *args) -> None:
    _logger.error(msg, *args, stacklevel=2)


def fatal(msg, *args) -> None:
    """Log an error and exit the program."""
    _logger.error(msg, *args, stacklevel=2)
    raise SystemExit(1)