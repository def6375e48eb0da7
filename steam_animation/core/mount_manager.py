"""
Mount Manager - Places animation files at Steam's override paths.

Attaching tries an ordered list of strategies and stops at the first that
succeeds:

1. ``bind``    - ``mount --bind`` the file over the destination (root only)
2. ``symlink`` - symlink the destination to the file
3. ``copy``    - copy the file to the destination

A destination is always torn down before anything new is attached, so it
never holds two mechanisms at once (for example a bind mount hidden under a
dangling symlink). Teardown on an empty destination is a no-op.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from collections import defaultdict
from pathlib import Path
from typing import Dict, Optional, Protocol, Sequence

import psutil

from steam_animation.core.animation_config import AnimationConfig
from steam_animation.core.errors import MountError
from steam_animation.core.logging_utils import get_module_logger
from steam_animation.core.targets import ALL_TARGETS, AnimationTarget

logger = get_module_logger("MountManager")


class ConfigSource(Protocol):
    @property
    def current(self) -> AnimationConfig: ...


class MountStrategy(Protocol):
    """Attach ``source`` at ``destination`` or raise."""

    name: str

    async def attach(self, source: Path, destination: Path) -> None: ...


async def _run_command(*cmd: str) -> tuple[int, str]:
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await process.communicate()
    return process.returncode, stderr.decode("utf-8", errors="replace").strip()


def _canonical(path: Path) -> Path:
    # Resolve the parent only: the destination itself may be one of our symlinks
    return Path(os.path.realpath(path.parent)) / path.name


def is_mount_point(path: Path) -> bool:
    candidates = {str(path), str(_canonical(path))}
    try:
        partitions = psutil.disk_partitions(all=True)
    except OSError as e:
        logger.debug("Could not list mount points: %s", e)
        return False
    return any(part.mountpoint in candidates for part in partitions)


class BindMountStrategy:
    name = "bind"

    def __init__(self, mount: str = "mount"):
        self.mount = mount

    async def attach(self, source: Path, destination: Path) -> None:
        if shutil.which(self.mount) is None:
            raise MountError(destination, {self.name: f"{self.mount} not found"})

        # mount --bind needs an existing file to cover
        destination.touch(exist_ok=True)
        try:
            returncode, stderr = await _run_command(
                self.mount, "--bind", str(source), str(destination)
            )
        except OSError as e:
            returncode, stderr = -1, str(e)

        if returncode != 0:
            destination.unlink(missing_ok=True)
            raise MountError(destination, {self.name: stderr or f"exit code {returncode}"})


class SymlinkStrategy:
    name = "symlink"

    async def attach(self, source: Path, destination: Path) -> None:
        destination.symlink_to(source.resolve())


class CopyStrategy:
    name = "copy"

    async def attach(self, source: Path, destination: Path) -> None:
        await asyncio.to_thread(shutil.copyfile, source, destination)


def default_strategies() -> list[MountStrategy]:
    return [BindMountStrategy(), SymlinkStrategy(), CopyStrategy()]


class MountManager:

    def __init__(
        self,
        config: ConfigSource,
        strategies: Optional[Sequence[MountStrategy]] = None,
        *,
        umount: str = "umount",
    ):
        self._config = config
        self.strategies: list[MountStrategy] = list(strategies) if strategies is not None else default_strategies()
        self.umount = umount
        self._locks: Dict[Path, asyncio.Lock] = defaultdict(asyncio.Lock)

    def destination(self, target: AnimationTarget) -> Path:
        return target.destination(self._config.current.override_dir)

    # ------------------------------------------------------------------
    # Path level

    async def attach(self, source: Path, destination: Path) -> str:
        """Attach ``source`` at ``destination``; returns the strategy name used.

        Raises:
            MountError: every strategy failed.
        """
        source = Path(source)
        destination = Path(destination)

        async with self._locks[destination]:
            await self._detach_unlocked(destination)
            destination.parent.mkdir(parents=True, exist_ok=True)

            failures: Dict[str, str] = {}
            for strategy in self.strategies:
                try:
                    await strategy.attach(source, destination)
                except Exception as e:
                    failures[strategy.name] = str(e)
                    logger.debug("%s failed for %s: %s", strategy.name, destination.name, e)
                    await self._remove_leftovers(destination)
                    continue

                logger.info("Applied %s via %s", destination.name, strategy.name)
                return strategy.name

            raise MountError(destination, failures)

    async def detach(self, destination: Path) -> None:
        destination = Path(destination)
        async with self._locks[destination]:
            await self._detach_unlocked(destination)

    async def _detach_unlocked(self, destination: Path) -> None:
        if is_mount_point(destination):
            try:
                returncode, stderr = await _run_command(self.umount, str(destination))
            except OSError as e:
                returncode, stderr = -1, str(e)
            if returncode == 0:
                logger.debug("Unmounted: %s", destination.name)
            else:
                logger.warning("Failed to unmount %s: %s", destination, stderr)

        await self._remove_leftovers(destination)

    @staticmethod
    async def _remove_leftovers(destination: Path) -> None:
        if not (destination.is_symlink() or destination.exists()):
            return
        try:
            destination.unlink()
            logger.debug("Removed: %s", destination.name)
        except OSError as e:
            logger.warning("Could not remove %s: %s", destination, e)

    # ------------------------------------------------------------------
    # Target level

    async def apply(self, target: AnimationTarget, source: Path) -> str:
        return await self.attach(source, self.destination(target))

    async def teardown(self, target: AnimationTarget) -> None:
        await self.detach(self.destination(target))

    async def teardown_all(self) -> None:
        logger.debug("Unmounting all animations")
        for target in ALL_TARGETS:
            try:
                await self.teardown(target)
            except Exception as e:
                logger.warning("Failed to clean up %s animation: %s", target.label, e)

    def describe(self, target: AnimationTarget) -> Optional[str]:
        """Which mechanism currently occupies a target, judged from disk."""
        destination = self.destination(target)
        if is_mount_point(destination):
            return BindMountStrategy.name
        if destination.is_symlink():
            return SymlinkStrategy.name
        if destination.exists():
            return CopyStrategy.name
        return None


__all__ = [
    "BindMountStrategy",
    "CopyStrategy",
    "MountManager",
    "MountStrategy",
    "SymlinkStrategy",
    "default_strategies",
    "is_mount_point",
]
