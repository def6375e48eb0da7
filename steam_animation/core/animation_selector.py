"""Decides which clip should be shown next for an override target."""

from __future__ import annotations

import random
from pathlib import Path
from typing import Iterable, List, Optional

from steam_animation.core.animation_config import AnimationConfig, RandomizeMode
from steam_animation.core.logging_utils import get_module_logger
from steam_animation.core.targets import AnimationTarget

DOWNLOAD_PATTERN = "*.webm"


class AnimationSelector:
    """Resolve at most one source file for a target.

    Order of precedence:

    1. the explicitly configured path, if it exists on disk
    2. nothing, when randomization is disabled
    3. a uniform random pick among the candidates, where candidates are the
       target's fixed filename inside every animation set plus, for the boot
       target only, every downloaded clip. Excluded filenames never qualify.

    In ``per_set`` mode a previously chosen set directory (``active_set``) is
    preferred when it holds a usable clip for the target.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self.logger = get_module_logger("AnimationSelector")

    def select(
        self,
        target: AnimationTarget,
        config: AnimationConfig,
        active_set: Optional[Path] = None,
    ) -> Optional[Path]:
        explicit = config.explicit_path(target)
        if explicit is not None:
            if explicit.is_file():
                return explicit
            self.logger.warning("Configured %s animation not found: %s", target.label, explicit)

        if config.randomize_mode is RandomizeMode.DISABLED:
            return None

        candidates = self.candidates(target, config)
        if not candidates:
            self.logger.debug("No %s animations found", target.label)
            return None

        if config.randomize_mode is RandomizeMode.PER_SET and active_set is not None:
            in_set = [path for path in candidates if path.parent == active_set]
            if in_set:
                return self._rng.choice(in_set)

        return self._rng.choice(candidates)

    def candidates(self, target: AnimationTarget, config: AnimationConfig) -> List[Path]:
        found: List[Path] = []
        if target is AnimationTarget.BOOT:
            found.extend(_files(config.downloads_dir, DOWNLOAD_PATTERN))
        found.extend(_files(config.animations_dir, target.filename))

        exclusions = config.shuffle_exclusions
        return [path for path in found if path.name not in exclusions]


def _files(root: Path, pattern: str) -> Iterable[Path]:
    root = Path(root)
    if not root.is_dir():
        return []
    return sorted(path for path in root.rglob(pattern) if path.is_file())


__all__ = ["AnimationSelector"]
