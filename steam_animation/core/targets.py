"""The three override slots the Steam client reads animations from."""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class AnimationTarget(Enum):
    """Override slot, valued by the fixed filename Steam looks for."""

    BOOT = "deck_startup.webm"
    SUSPEND = "steam_os_suspend.webm"
    THROBBER = "steam_os_suspend_from_throbber.webm"  # suspend from inside a game

    @property
    def filename(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return self.name.lower()

    def destination(self, override_dir: Path) -> Path:
        return Path(override_dir) / self.filename


ALL_TARGETS = (AnimationTarget.BOOT, AnimationTarget.SUSPEND, AnimationTarget.THROBBER)
SUSPEND_TARGETS = (AnimationTarget.SUSPEND, AnimationTarget.THROBBER)

__all__ = ["AnimationTarget", "ALL_TARGETS", "SUSPEND_TARGETS"]
