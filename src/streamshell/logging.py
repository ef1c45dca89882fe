"""Diagnostics logging for streamshell.

All modules log under the "streamshell" logger via get_logger(). Nothing is
emitted until setup_logging() attaches a handler:

- a log file, from ``logging.file`` in config.yaml or the SS_LOG variable
- otherwise stderr, but only for levels below INFO and only on a terminal,
  since the interactive shell writes its own output there

Verbosity (-v on the command line, ``logging.verbose`` in config):
error(0), warning(1), info(2), verbose(3), trace(4).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from streamshell.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("streamshell")

_handlers: list[logging.Handler] = []

_LEVEL_NAMES = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_VERBOSITY = [logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE]


class _LowercaseLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level for ``config``: verbosity, then level name, then INFO."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[max(0, min(config.verbose, len(_VERBOSITY) - 1))]
    if config.level:
        return _LEVEL_NAMES.get(config.level.upper(), logging.INFO)
    return logging.INFO


def _attach(handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(
        _LowercaseLevelFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%H:%M:%S")
    )
    logger.addHandler(handler)
    _handlers.append(handler)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach handlers according to ``config``. Only the first call has any effect."""
    if _handlers:
        return

    level = resolve_level(config)
    logger.setLevel(level)

    log_path = (config.file if config else None) or os.environ.get("SS_LOG")
    if log_path:
        try:
            _attach(logging.FileHandler(os.path.expanduser(log_path), encoding="utf-8"), level)
            return
        except OSError as e:
            print(f"[streamshell] cannot open log file {log_path}: {e}", file=sys.stderr)

    if level < logging.INFO and sys.stderr.isatty():
        _attach(logging.StreamHandler(sys.stderr), level)


def reset_logging() -> None:
    """Detach and close the handlers added by setup_logging()."""
    while _handlers:
        handler = _handlers.pop()
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def get_logger(name: str | None = None) -> logging.Logger:
    """The streamshell logger, or its child ``name`` (e.g. "session")."""
    return logger.getChild(name) if name else logger
