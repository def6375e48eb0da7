"""Error types raised by the animation engine.

Only ``InstanceConflictError`` is allowed to stop the daemon, and only at
startup. Everything else is caught by the event handlers and isolated to the
one target it concerns.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class AnimationDaemonError(RuntimeError):
    """Base class for daemon errors."""


class SourceMissingError(AnimationDaemonError):
    """A selected animation disappeared before it could be used."""

    def __init__(self, path: Path):
        super().__init__(f"Animation file not found: {path}")
        self.path = Path(path)


class TranscodeError(AnimationDaemonError):
    """The encoder is unavailable or exited unsuccessfully."""

    def __init__(self, message: str, *, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class MountError(AnimationDaemonError):
    """No attach strategy could place a file at the destination."""

    def __init__(self, destination: Path, failures: Optional[dict[str, str]] = None):
        self.destination = Path(destination)
        self.failures = dict(failures or {})
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())
        message = f"Failed to apply animation at {self.destination}"
        super().__init__(f"{message} ({detail})" if detail else message)


class InstanceConflictError(AnimationDaemonError):
    """Another daemon instance already holds the lock file."""

    def __init__(self, lock_file: Path, pid: Optional[int] = None):
        self.lock_file = Path(lock_file)
        self.pid = pid
        owner = f" (PID: {pid})" if pid else ""
        super().__init__(f"Daemon already running{owner}, lock held on {self.lock_file}")


class MonitorUnavailableError(AnimationDaemonError):
    """The suspend/resume event source could not be started."""


__all__ = [
    "AnimationDaemonError",
    "SourceMissingError",
    "TranscodeError",
    "MountError",
    "InstanceConflictError",
    "MonitorUnavailableError",
]
