"""Stand-ins for the daemon's collaborators and external tools."""

from __future__ import annotations

import stat
from pathlib import Path
from typing import Optional

from steam_animation.core.animation_config import AnimationConfig
from steam_animation.core.errors import MountError


class StaticConfig:
    """Stands in for ConfigStore: anything with a ``current`` config."""

    def __init__(self, config: AnimationConfig, reloaded: Optional[AnimationConfig] = None):
        self.current = config
        self._reloaded = reloaded
        self.reloads = 0

    async def reload(self) -> AnimationConfig:
        self.reloads += 1
        if self._reloaded is not None:
            self.current = self._reloaded
        return self.current


class RefusingStrategy:
    """Mount strategy that always fails, e.g. bind mounts without root."""

    def __init__(self, name: str = "bind"):
        self.name = name
        self.calls = 0

    async def attach(self, source: Path, destination: Path) -> None:
        self.calls += 1
        raise MountError(destination, {self.name: "permission denied"})


class ProcessToggle:
    """Callable Steam process check whose answer the test flips."""

    def __init__(self, running: bool = False):
        self.running = running

    def __call__(self) -> bool:
        return self.running


def write_clip(path: Path, payload: bytes = b"webm-bytes") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    return path


# Records its arguments, then copies the -i input to the last argument.
FAKE_FFMPEG = """#!/bin/sh
echo "$@" >> "{log}"
prev=""
src=""
for arg in "$@"; do
  if [ "$prev" = "-i" ]; then src="$arg"; fi
  prev="$arg"
done
cp "$src" "$prev"
"""

FAILING_FFMPEG = """#!/bin/sh
echo "$@" >> "{log}"
echo "Invalid data found when processing input" >&2
exit 1
"""

FAKE_FFPROBE = """#!/bin/sh
cat <<'EOF'
{payload}
EOF
"""


def write_script(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def ffmpeg_calls(log: Path) -> list[str]:
    if not log.exists():
        return []
    return log.read_text(encoding="utf-8").splitlines()
