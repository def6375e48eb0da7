"""
Event Monitor - The daemon's only active driver.

Three producers feed one queue:

- a ticker that posts ``TICK`` once per second (Steam process polling and
  the five-minute cache maintenance),
- a ``journalctl -f`` listener that posts ``SUSPEND``/``RESUME``,
- signal handlers that post ``RELOAD``/``STOP``.

A single consumer takes events off the queue and runs each handler to
completion before looking at the next one, so ``DaemonState`` is never
touched by two handlers at once. Handler failures are logged and the loop
carries on; only ``STOP`` ends it, after all three targets are torn down.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Optional, Sequence

import psutil

from steam_animation.core import paths
from steam_animation.core.animation_config import ConfigStore, RandomizeMode
from steam_animation.core.animation_selector import AnimationSelector
from steam_animation.core.asyncio_utils import cancel_and_wait, create_logged_task
from steam_animation.core.cache_janitor import CacheJanitor
from steam_animation.core.errors import MonitorUnavailableError, MountError, SourceMissingError
from steam_animation.core.logging_utils import get_module_logger
from steam_animation.core.mount_manager import MountManager
from steam_animation.core.targets import ALL_TARGETS, SUSPEND_TARGETS, AnimationTarget
from steam_animation.core.transcoder import Transcoder

logger = get_module_logger("EventMonitor")

TICK_INTERVAL = 1.0
MAINTENANCE_TICKS = 300  # five minutes of ticks

JOURNAL_COMMAND = (
    "journalctl", "-f", "-n", "0",
    "-u", "systemd-suspend.service",
    "-u", "systemd-hibernate.service",
    "--no-pager",
)
# Resume keywords ignore case; suspend keywords are matched as written.
RESUME_KEYWORDS = ("resume", "resuming")
SUSPEND_KEYWORDS = ("suspend", "Suspending")

STEAM_PROCESS_NAMES = frozenset({"steam"})


class DaemonEvent(Enum):
    TICK = "tick"
    SUSPEND = "suspend"
    RESUME = "resume"
    RELOAD = "reload"
    STOP = "stop"


@dataclass
class DaemonState:
    """Everything the daemon knows about what it has done so far."""
    steam_running: bool = False
    was_suspended: bool = False
    mounted: Dict[AnimationTarget, Optional[Path]] = field(
        default_factory=lambda: {target: None for target in ALL_TARGETS}
    )
    active_set: Optional[Path] = None
    ticks: int = 0

    def applied_targets(self) -> list[AnimationTarget]:
        return [target for target, source in self.mounted.items() if source is not None]


def classify_journal_line(line: str) -> Optional[DaemonEvent]:
    """Map a journal line to SUSPEND/RESUME, or None if it is neither."""
    lowered = line.lower()
    if any(keyword in lowered for keyword in RESUME_KEYWORDS):
        return DaemonEvent.RESUME
    if any(keyword in line for keyword in SUSPEND_KEYWORDS):
        return DaemonEvent.SUSPEND
    return None


def is_process_running(names: FrozenSet[str] = STEAM_PROCESS_NAMES) -> bool:
    """True if a process other than this one is named like ``names``."""
    own_pid = os.getpid()
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        try:
            if proc.info["pid"] == own_pid:
                continue
            if proc.info.get("name") in names:
                return True
            cmdline = proc.info.get("cmdline") or []
            if cmdline and os.path.basename(cmdline[0]) in names:
                return True
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
    return False


class EventMonitor:

    def __init__(
        self,
        store: ConfigStore,
        selector: AnimationSelector,
        transcoder: Transcoder,
        mounts: MountManager,
        janitor: CacheJanitor,
        *,
        steam_check: Callable[[], bool] = is_process_running,
        journal_command: Optional[Sequence[str]] = JOURNAL_COMMAND,
        staging_dir: Path = paths.STAGING_DIR,
        tick_interval: float = TICK_INTERVAL,
        maintenance_ticks: int = MAINTENANCE_TICKS,
    ):
        self.store = store
        self.selector = selector
        self.transcoder = transcoder
        self.mounts = mounts
        self.janitor = janitor
        self.steam_check = steam_check
        self.journal_command = tuple(journal_command) if journal_command else None
        self.staging_dir = Path(staging_dir)
        self.tick_interval = tick_interval
        self.maintenance_ticks = maintenance_ticks

        self.state = DaemonState()
        self._queue: asyncio.Queue[DaemonEvent] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._tick_pending = False

    # =========================================================================
    # Event intake
    # =========================================================================

    def post(self, event: DaemonEvent) -> None:
        self._queue.put_nowait(event)

    def request_reload(self) -> None:
        logger.info("Reload requested")
        self.post(DaemonEvent.RELOAD)

    def request_stop(self) -> None:
        logger.info("Shutdown requested")
        self.post(DaemonEvent.STOP)

    def post_tick(self) -> bool:
        """Queue a TICK unless one is still waiting; True if one was queued."""
        if self._tick_pending:
            return False
        self._tick_pending = True
        self.post(DaemonEvent.TICK)
        return True

    async def _ticker(self) -> None:
        while True:
            self.post_tick()
            await asyncio.sleep(self.tick_interval)

    async def _journal_listener(self) -> None:
        try:
            await self._follow_journal()
        except MonitorUnavailableError as e:
            logger.warning("%s - system event monitoring disabled", e)

    async def _follow_journal(self) -> None:
        if not self.journal_command:
            raise MonitorUnavailableError("No journal command configured")
        if shutil.which(self.journal_command[0]) is None:
            raise MonitorUnavailableError(f"{self.journal_command[0]} not available")

        try:
            process = await asyncio.create_subprocess_exec(
                *self.journal_command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise MonitorUnavailableError(f"Could not start {self.journal_command[0]}: {e}") from e

        logger.debug("Following system sleep log: %s", " ".join(self.journal_command))
        try:
            while True:
                raw = await process.stdout.readline()
                if not raw:
                    break
                event = classify_journal_line(raw.decode("utf-8", errors="replace"))
                if event is not None:
                    await self._queue.put(event)
        finally:
            if process.returncode is None:
                process.terminate()
                await process.wait()

        raise MonitorUnavailableError(
            f"{self.journal_command[0]} exited with code {process.returncode}"
        )

    # =========================================================================
    # Main loop
    # =========================================================================

    async def run(self) -> None:
        """Process events until STOP, then tear everything down."""
        logger.info("Starting main daemon loop")
        create_logged_task(self._ticker(), logger=logger, context="ticker", pending=self._tasks)
        create_logged_task(
            self._journal_listener(), logger=logger, context="journal-listener", pending=self._tasks
        )

        try:
            while True:
                event = await self._queue.get()
                if event is DaemonEvent.STOP:
                    break
                if event is DaemonEvent.TICK:
                    self._tick_pending = False
                await self.dispatch(event)
        finally:
            for task in list(self._tasks):
                await cancel_and_wait(task)
            await self.shutdown()

    async def dispatch(self, event: DaemonEvent) -> None:
        handlers = {
            DaemonEvent.TICK: self.on_tick,
            DaemonEvent.SUSPEND: self.on_suspend,
            DaemonEvent.RESUME: self.on_resume,
            DaemonEvent.RELOAD: self.on_reload,
        }
        try:
            await handlers[event]()
        except Exception:
            logger.exception("Error while handling %s event", event.value)

    async def shutdown(self) -> None:
        logger.info("Shutting down, removing applied animations")
        await self.mounts.teardown_all()
        self.state.mounted = {target: None for target in ALL_TARGETS}

    # =========================================================================
    # Handlers
    # =========================================================================

    async def on_tick(self) -> None:
        await self.poll_process()

        self.state.ticks += 1
        if self.state.ticks >= self.maintenance_ticks:
            self.state.ticks = 0
            await self.run_maintenance()

    async def poll_process(self) -> None:
        running = await asyncio.to_thread(self.steam_check)
        was_running = self.state.steam_running
        self.state.steam_running = running

        if running and not was_running:
            logger.info("Steam started - preparing boot animation")
            await self.on_steam_started()
        elif was_running and not running:
            logger.info("Steam stopped - cleaning up")
            await self.on_steam_stopped()

    async def on_steam_started(self) -> None:
        await self.prepare(AnimationTarget.BOOT)

    async def on_steam_stopped(self) -> None:
        await self.mounts.teardown_all()
        self.state.mounted = {target: None for target in ALL_TARGETS}
        self.state.active_set = None

    async def on_suspend(self) -> None:
        logger.info("System suspend detected")
        self.state.was_suspended = True
        for target in SUSPEND_TARGETS:
            await self.prepare(target)

    async def on_resume(self) -> None:
        if not self.state.was_suspended:
            logger.debug("Resume without a preceding suspend, ignoring")
            return
        logger.info("System resume detected")
        self.state.was_suspended = False
        await self.prepare(AnimationTarget.BOOT)

    async def on_reload(self) -> None:
        await self.store.reload()
        for target in self.state.applied_targets():
            await self.prepare(target, clear_when_unselected=True)

    async def run_maintenance(self) -> None:
        logger.debug("Running periodic maintenance")
        try:
            await asyncio.to_thread(self.janitor.sweep)
        except Exception:
            logger.exception("Cache maintenance failed")

    # =========================================================================
    # Selection -> transcode -> mount
    # =========================================================================

    async def prepare(self, target: AnimationTarget, *, clear_when_unselected: bool = False) -> bool:
        """Apply the animation the selector picks for ``target``.

        Returns True when something was mounted. Every failure is contained
        here so the other targets are still prepared.
        """
        config = self.store.current
        source = self.selector.select(target, config, self.state.active_set)

        if source is None:
            if clear_when_unselected and self.state.mounted.get(target) is not None:
                await self.mounts.teardown(target)
                self.state.mounted[target] = None
                logger.info("No %s animation selected anymore, restored Steam default", target.label)
            else:
                logger.info("No %s animation configured, using Steam default", target.label)
            return False

        logger.info("Preparing %s animation: %s", target.label, source.name)
        staged = self.staging_dir / target.filename
        try:
            result = await self.transcoder.transcode(source, staged)
        except SourceMissingError as e:
            logger.warning("Skipping %s animation: %s", target.label, e)
            return False
        except OSError as e:
            logger.error("Failed to stage %s animation %s: %s", target.label, source.name, e)
            return False

        if not result.optimized:
            logger.warning("Using original %s for %s, duration cap not applied", source.name, target.label)

        try:
            mechanism = await self.mounts.apply(target, result.path)
        except (MountError, OSError) as e:
            logger.error("Failed to apply %s animation: %s", target.label, e)
            self.state.mounted[target] = None
            return False

        self.state.mounted[target] = source
        if target is AnimationTarget.BOOT and config.randomize_mode is RandomizeMode.PER_SET:
            self.state.active_set = source.parent
        logger.info("Applied %s animation %s (%s)", target.label, source.name, mechanism)
        return True


__all__ = [
    "DaemonEvent",
    "DaemonState",
    "EventMonitor",
    "classify_journal_line",
    "is_process_running",
]
