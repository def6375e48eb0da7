"""Single-instance guard based on an exclusive ``flock`` on a PID file."""

from __future__ import annotations

import fcntl
import os
from pathlib import Path
from typing import IO, Optional

import psutil

from steam_animation.core.errors import InstanceConflictError
from steam_animation.core.logging_utils import get_module_logger

logger = get_module_logger("InstanceLock")


def _read_pid_text(text: str) -> Optional[int]:
    try:
        return int(text.strip().splitlines()[0])
    except (ValueError, IndexError):
        return None


class InstanceLock:
    """Hold ``lock_file`` exclusively for the lifetime of the daemon.

    The file keeps the owner's PID so the control commands can signal it.
    The lock is released by the kernel when the process dies, so a stale
    file left behind by a crash never blocks the next start.
    """

    def __init__(self, lock_file: Path):
        self.lock_file = Path(lock_file)
        self._handle: Optional[IO[str]] = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def acquire(self) -> None:
        """Take the lock or raise InstanceConflictError."""
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        handle = open(self.lock_file, "a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            handle.seek(0)
            pid = _read_pid_text(handle.read())
            handle.close()
            raise InstanceConflictError(self.lock_file, pid)

        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        logger.debug("Acquired instance lock %s", self.lock_file)

    def release(self) -> None:
        if self._handle is None:
            return
        # The file stays in place so every starter contends on the same inode
        try:
            self._handle.seek(0)
            self._handle.truncate()
            self._handle.flush()
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        finally:
            self._handle.close()
            self._handle = None
        logger.debug("Released instance lock %s", self.lock_file)

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def running_pid(lock_file: Path) -> Optional[int]:
    """PID of the live daemon holding ``lock_file``, or None."""
    lock_file = Path(lock_file)
    if not lock_file.exists():
        return None

    try:
        with open(lock_file, "r", encoding="utf-8") as handle:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_SH | fcntl.LOCK_NB)
            except OSError:
                handle.seek(0)
                pid = _read_pid_text(handle.read())
            else:
                # Nobody holds it: leftover from a crashed daemon
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
                return None
    except FileNotFoundError:
        return None

    if pid is None or not psutil.pid_exists(pid):
        return None
    return pid


__all__ = ["InstanceLock", "running_pid"]
