"""
Logging setup for the daemon process.

Records go to stdout (useful under a service manager or in a terminal) and
to ``<state>/logs/daemon.log``, rotated at 500 KB with two backups. The
daemon configures logging twice: once at startup with the CLI level, then
again through ``set_log_level`` once the config file's ``log_level`` is
known.

Only handlers installed here are ever replaced or retuned; anything else
attached to the root logger is left alone.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 500 * 1024
LOG_BACKUP_COUNT = 2

# Third-party loggers kept at WARNING or above
QUIET_LOGGERS = ("asyncio",)

_HANDLER_PREFIX = "steam_animation."

Level = Union[int, str]


def coerce_level(level: Level) -> int:
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level '{level}'")
        return numeric
    return int(level)


def daemon_handlers(root: Optional[logging.Logger] = None) -> List[logging.Handler]:
    root = root or logging.getLogger()
    return [h for h in root.handlers if (h.get_name() or "").startswith(_HANDLER_PREFIX)]


def _file_handler(log_file: Union[str, Path]) -> RotatingFileHandler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )


def configure_logging(
    level: Level = logging.INFO,
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Install the daemon's console and file handlers on the root logger."""
    root = logging.getLogger()
    for handler in daemon_handlers(root):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
        handlers[-1].set_name(f"{_HANDLER_PREFIX}console")
    if log_file:
        handlers.append(_file_handler(log_file))
        handlers[-1].set_name(f"{_HANDLER_PREFIX}file")

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    set_log_level(level)


def set_log_level(level: Level) -> None:
    """Apply ``level`` to the root logger and the daemon's own handlers."""
    numeric = coerce_level(level)
    root = logging.getLogger()
    root.setLevel(numeric)
    for handler in daemon_handlers(root):
        handler.setLevel(numeric)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))


__all__ = [
    "LOG_DATEFMT",
    "LOG_FORMAT",
    "coerce_level",
    "configure_logging",
    "daemon_handlers",
    "set_log_level",
]
