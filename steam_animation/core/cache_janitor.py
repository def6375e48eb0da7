"""Keeps the transcode cache within its age and size limits."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Tuple

from steam_animation.core.animation_config import AnimationConfig
from steam_animation.core.logging_utils import get_module_logger

logger = get_module_logger("CacheJanitor")

_MB = 1024 * 1024


class ConfigSource(Protocol):
    @property
    def current(self) -> AnimationConfig: ...


@dataclass(frozen=True)
class SweepResult:
    removed: int
    freed_bytes: int
    remaining_bytes: int


def _entries(cache_dir: Path) -> List[Tuple[Path, int, float]]:
    entries = []
    for path in cache_dir.iterdir():
        try:
            stat = path.lstat()
        except FileNotFoundError:
            continue
        if path.is_file() and not path.is_symlink():
            entries.append((path, stat.st_size, stat.st_mtime))
    return entries


def cache_size(cache_dir: Path) -> int:
    if not cache_dir.is_dir():
        return 0
    return sum(size for _, size, _ in _entries(cache_dir))


class CacheJanitor:
    """Best-effort sweep of the cache directory.

    1. Delete every file older than ``cache_max_age``.
    2. While the directory is above ``max_cache_bytes``, delete the oldest
       remaining file and measure again.

    A file that can't be deleted is logged and skipped; the sweep goes on.
    """

    def __init__(self, config: ConfigSource, clock: Callable[[], float] = time.time):
        self._config = config
        self._clock = clock

    def sweep(self) -> SweepResult:
        config = self._config.current
        cache_dir = Path(config.cache_dir)
        if not cache_dir.is_dir():
            logger.debug("Cache directory doesn't exist, skipping cleanup")
            return SweepResult(0, 0, 0)

        removed = 0
        freed = 0
        now = self._clock()

        for path, size, mtime in _entries(cache_dir):
            if now - mtime > config.cache_max_age and self._delete(path):
                removed += 1
                freed += size

        total = cache_size(cache_dir)
        if total > config.max_cache_bytes:
            logger.info(
                "Cache size %d MB exceeds limit %d MB, cleaning up",
                total // _MB, config.max_cache_bytes // _MB,
            )
            for path, size, _ in sorted(_entries(cache_dir), key=lambda entry: entry[2]):
                if self._delete(path):
                    removed += 1
                    freed += size
                total = cache_size(cache_dir)
                if total <= config.max_cache_bytes:
                    break

        if removed:
            logger.info("Cache cleanup: removed %d files (%d MB)", removed, freed // _MB)
        else:
            logger.debug("Cache cleanup completed, nothing to remove")
        return SweepResult(removed=removed, freed_bytes=freed, remaining_bytes=total)

    @staticmethod
    def _delete(path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Failed to remove cache file %s: %s", path, e)
            return False
        logger.debug("Removed cache file: %s", path.name)
        return True


__all__ = ["CacheJanitor", "SweepResult", "cache_size"]
