"""Centralized path constants for the animation daemon."""

from __future__ import annotations

import os
from pathlib import Path

HOME = Path.home()

# Files the browse/download front-end drops animations into
PLUGIN_DATA_DIR = HOME / "homebrew" / "data" / "SDH-AnimationChanger"
ANIMATIONS_DIR = PLUGIN_DATA_DIR / "animations"
DOWNLOADS_DIR = PLUGIN_DATA_DIR / "downloads"

# Directory the Steam client reads its movie overrides from
OVERRIDE_DIR = HOME / ".steam" / "root" / "config" / "uioverrides" / "movies"

CACHE_DIR = Path("/tmp/steam-animation-cache")

# Configuration
_CONFIG_ENV = os.environ.get("STEAM_ANIMATION_CONFIG")
CONFIG_PATH = (
    Path(_CONFIG_ENV).expanduser()
    if _CONFIG_ENV
    else HOME / ".config" / "steam-animation-daemon" / "config.conf"
)

# Daemon state (lock file, staged outputs, logs)
_STATE_ENV = os.environ.get("STEAM_ANIMATION_STATE_DIR")
STATE_DIR = Path(_STATE_ENV).expanduser() if _STATE_ENV else HOME / ".steam-animation-daemon"
LOCK_FILE = STATE_DIR / "daemon.lock"
STAGING_DIR = STATE_DIR / "staged"
LOGS_DIR = STATE_DIR / "logs"
DAEMON_LOG_FILE = LOGS_DIR / "daemon.log"


def ensure_directories(*extra: Path) -> None:
    """Create the state directories plus any ``extra`` ones."""

    for directory in (STATE_DIR, STAGING_DIR, LOGS_DIR, *extra):
        Path(directory).mkdir(parents=True, exist_ok=True)


__all__ = [
    "ANIMATIONS_DIR",
    "DOWNLOADS_DIR",
    "OVERRIDE_DIR",
    "CACHE_DIR",
    "CONFIG_PATH",
    "STATE_DIR",
    "LOCK_FILE",
    "STAGING_DIR",
    "LOGS_DIR",
    "DAEMON_LOG_FILE",
    "ensure_directories",
]
