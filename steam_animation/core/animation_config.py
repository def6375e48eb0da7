"""
Typed daemon configuration and the reloadable store that owns it.

The configuration file is a plain ``key = value`` document. Every field of
``AnimationConfig`` has a default, so a missing file, a missing key or an
invalid value always yields a fully populated configuration. Reloading
builds a brand new ``AnimationConfig`` and swaps it in one assignment; the
previous value is never mutated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from steam_animation.core import paths
from steam_animation.core.config_manager import ConfigManager
from steam_animation.core.logging_utils import get_module_logger
from steam_animation.core.targets import AnimationTarget

logger = get_module_logger("ConfigStore")

MAX_DURATION_LIMIT = 30
_MB = 1024 * 1024
_DAY = 24 * 3600


class RandomizeMode(Enum):
    """How an animation is picked when none is explicitly configured."""
    DISABLED = "disabled"
    PER_BOOT = "per_boot"   # new random pick on every preparation
    PER_SET = "per_set"     # keep boot/suspend/throbber from one set directory

    @classmethod
    def parse(cls, value: str, default: "RandomizeMode") -> "RandomizeMode":
        normalized = value.strip().lower().replace("-", "_")
        for mode in cls:
            if mode.value == normalized:
                return mode
        if normalized:
            logger.warning("Unknown randomize_mode '%s', using %s", value, default.value)
        return default


@dataclass(frozen=True)
class AnimationConfig:
    current_boot: Optional[Path] = None
    current_suspend: Optional[Path] = None
    current_throbber: Optional[Path] = None

    randomize_mode: RandomizeMode = RandomizeMode.DISABLED
    shuffle_exclusions: FrozenSet[str] = field(default_factory=frozenset)

    # Transcode parameters
    max_duration: int = 5
    video_quality: int = 23
    target_width: int = 1280
    target_height: int = 720

    # Cache bounds
    max_cache_bytes: int = 500 * _MB
    cache_max_age: float = 30 * _DAY

    animations_dir: Path = paths.ANIMATIONS_DIR
    downloads_dir: Path = paths.DOWNLOADS_DIR
    override_dir: Path = paths.OVERRIDE_DIR
    cache_dir: Path = paths.CACHE_DIR

    log_level: str = "info"

    def explicit_path(self, target: AnimationTarget) -> Optional[Path]:
        return {
            AnimationTarget.BOOT: self.current_boot,
            AnimationTarget.SUSPEND: self.current_suspend,
            AnimationTarget.THROBBER: self.current_throbber,
        }[target]

    @classmethod
    def from_mapping(cls, values: Dict[str, str], manager: Optional[ConfigManager] = None) -> "AnimationConfig":
        """Build a configuration from parsed ``key -> value`` strings."""
        cm = manager or ConfigManager()
        defaults = cls()

        max_duration = cm.get_int(values, "max_duration", defaults.max_duration, minimum=1)
        if max_duration > MAX_DURATION_LIMIT:
            logger.warning(
                "Max animation duration too long (%ds), limiting to %ds",
                max_duration, MAX_DURATION_LIMIT,
            )
            max_duration = MAX_DURATION_LIMIT

        max_cache_mb = cm.get_int(values, "max_cache_mb", defaults.max_cache_bytes // _MB, minimum=1)
        cache_max_days = cm.get_int(values, "cache_max_days", int(defaults.cache_max_age // _DAY), minimum=0)

        return cls(
            current_boot=cm.get_path(values, "current_boot"),
            current_suspend=cm.get_path(values, "current_suspend"),
            current_throbber=cm.get_path(values, "current_throbber"),
            randomize_mode=RandomizeMode.parse(
                cm.get_str(values, "randomize_mode"), defaults.randomize_mode
            ),
            shuffle_exclusions=parse_exclusions(cm.get_str(values, "shuffle_exclusions")),
            max_duration=max_duration,
            video_quality=cm.get_int(values, "video_quality", defaults.video_quality, minimum=10, maximum=50),
            target_width=cm.get_int(values, "target_width", defaults.target_width, minimum=1),
            target_height=cm.get_int(values, "target_height", defaults.target_height, minimum=1),
            max_cache_bytes=max_cache_mb * _MB,
            cache_max_age=float(cache_max_days * _DAY),
            animations_dir=cm.get_path(values, "animations_dir", defaults.animations_dir),
            downloads_dir=cm.get_path(values, "downloads_dir", defaults.downloads_dir),
            override_dir=cm.get_path(values, "override_dir", defaults.override_dir),
            cache_dir=cm.get_path(values, "cache_dir", defaults.cache_dir),
            log_level=cm.get_str(values, "log_level", defaults.log_level).lower() or defaults.log_level,
        )


def parse_exclusions(raw: str) -> FrozenSet[str]:
    return frozenset(name for name in re.split(r"[\s,]+", raw.strip()) if name)


DEFAULT_CONFIG_TEMPLATE = """\
# Steam Animation Daemon configuration
# Plain key = value pairs. Lines starting with # are ignored.

# Current animation selections (absolute paths, empty for Steam defaults).
# An explicit selection always wins over randomization.
current_boot =
current_suspend =
current_throbber =

# Randomization: disabled, per_boot, per_set
# per_boot: pick a random animation every time one is prepared
# per_set: keep boot, suspend and throbber from the same animation set
randomize_mode = disabled

# Filenames skipped by randomization, separated by spaces or commas
shuffle_exclusions =

# Video processing
max_duration = 5        # seconds, clips are cut to this length (max 30)
video_quality = 23      # VP9 CRF value, lower is better quality (10-50)
target_width = 1280
target_height = 720

# Transcode cache
max_cache_mb = 500
cache_max_days = 30

log_level = info
"""


class ConfigStore:
    """Owns the current ``AnimationConfig`` and replaces it on reload."""

    def __init__(self, config_path: Path, manager: Optional[ConfigManager] = None):
        self.config_path = Path(config_path)
        self._manager = manager or ConfigManager()
        self._current = AnimationConfig()

    @property
    def current(self) -> AnimationConfig:
        return self._current

    async def load(self) -> AnimationConfig:
        """Load the file, writing the default template first if it is missing."""
        if not self.config_path.exists():
            logger.info("Config file not found at %s, creating default config", self.config_path)
            await self._manager.write_text_async(self.config_path, DEFAULT_CONFIG_TEMPLATE)

        values = await self._manager.read_config_async(self.config_path)
        config = AnimationConfig.from_mapping(values, self._manager)
        self._current = config
        logger.info(
            "Configuration loaded: randomize=%s, max_duration=%ds",
            config.randomize_mode.value, config.max_duration,
        )
        return config

    async def reload(self) -> AnimationConfig:
        logger.info("Reloading configuration from %s", self.config_path)
        return await self.load()

    def load_sync(self) -> AnimationConfig:
        """Read without creating anything; used by the status command."""
        values = self._manager.read_config(self.config_path)
        self._current = AnimationConfig.from_mapping(values, self._manager)
        return self._current


__all__ = [
    "AnimationConfig",
    "ConfigStore",
    "DEFAULT_CONFIG_TEMPLATE",
    "RandomizeMode",
    "parse_exclusions",
]
