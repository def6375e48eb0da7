import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

import psutil

from steam_animation.cli.common import add_common_cli_arguments, resolve_log_level
from steam_animation.core import (
    ALL_TARGETS,
    AnimationSelector,
    CacheJanitor,
    ConfigStore,
    EventMonitor,
    InstanceConflictError,
    InstanceLock,
    MountManager,
    Transcoder,
    running_pid,
)
from steam_animation.core.logging_config import configure_logging, set_log_level
from steam_animation.core.logging_utils import get_module_logger
from steam_animation.core.paths import LOCK_FILE, STAGING_DIR, ensure_directories


logger = get_module_logger("Daemon")

COMMANDS = ("start", "stop", "status", "reload")
STOP_TIMEOUT = 10.0


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="steam-animation-daemon",
        description="Steam Animation Daemon - swaps Steam boot and suspend animations",
    )

    parser.add_argument(
        "command",
        nargs="?",
        choices=COMMANDS,
        default="start",
        help="start (default), stop, status or reload",
    )

    parser.add_argument(
        "--lock-file",
        type=Path,
        default=LOCK_FILE,
        help="Single-instance lock file holding the daemon PID (default: %(default)s)",
    )

    parser.add_argument(
        "--encoder-timeout",
        type=float,
        default=None,
        help="Give up on an ffmpeg run after this many seconds (default: no limit)",
    )

    add_common_cli_arguments(parser)

    return parser.parse_args(argv)


# =============================================================================
# start
# =============================================================================

def build_monitor(store: ConfigStore, args: argparse.Namespace) -> EventMonitor:
    return EventMonitor(
        store,
        AnimationSelector(),
        Transcoder(store, encoder_timeout=args.encoder_timeout),
        MountManager(store),
        CacheJanitor(store),
        staging_dir=STAGING_DIR,
    )


async def serve(args: argparse.Namespace) -> int:
    """Run the daemon in the foreground until SIGTERM/SIGINT."""
    ensure_directories()
    configure_logging(
        args.log_level or "info",
        console=args.console_output,
        log_file=args.log_file,
    )

    lock = InstanceLock(args.lock_file)
    try:
        lock.acquire()
    except InstanceConflictError as e:
        logger.error("%s", e)
        return 1

    try:
        store = ConfigStore(args.config)
        config = await store.load()
        set_log_level(resolve_log_level(args.log_level, config.log_level))
        ensure_directories(config.cache_dir)

        logger.info("=" * 60)
        logger.info("Steam Animation Daemon starting")
        logger.info("=" * 60)
        logger.info("Config file: %s", args.config)
        logger.info("Animations: %s", config.animations_dir)
        logger.info("Overrides: %s", config.override_dir)
        logger.info("Cache: %s", config.cache_dir)

        monitor = build_monitor(store, args)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, monitor.request_stop)
        loop.add_signal_handler(signal.SIGHUP, monitor.request_reload)

        try:
            await monitor.run()
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
                loop.remove_signal_handler(sig)
    finally:
        lock.release()

    logger.info("Steam Animation Daemon stopped")
    return 0


# =============================================================================
# stop / status / reload
# =============================================================================

def stop_daemon(lock_file: Path, timeout: float = STOP_TIMEOUT) -> int:
    pid = running_pid(lock_file)
    if pid is None:
        print("Daemon not running")
        return 1

    print(f"Stopping daemon (PID: {pid})")
    try:
        process = psutil.Process(pid)
        process.terminate()
        try:
            process.wait(timeout=timeout)
        except psutil.TimeoutExpired:
            print("Daemon did not exit in time, killing it")
            process.kill()
            process.wait(timeout=timeout)
    except psutil.NoSuchProcess:
        pass

    print("Daemon stopped")
    return 0


def show_status(lock_file: Path, config_path: Path) -> int:
    pid = running_pid(lock_file)
    if pid is None:
        print("Daemon not running")
    else:
        print(f"Daemon running (PID: {pid})")

    store = ConfigStore(config_path)
    config = store.load_sync()
    mounts = MountManager(store)

    print(f"Config file: {config_path}")
    print(f"Randomize mode: {config.randomize_mode.value}")
    for target in ALL_TARGETS:
        selection = config.explicit_path(target)
        applied = mounts.describe(target) or "default"
        print(f"  {target.label:<9} {selection or '(none)'} [{applied}]")

    return 0 if pid is not None else 1


def reload_daemon(lock_file: Path) -> int:
    pid = running_pid(lock_file)
    if pid is None:
        print("Daemon not running")
        return 1

    try:
        psutil.Process(pid).send_signal(signal.SIGHUP)
    except psutil.NoSuchProcess:
        print("Daemon not running")
        return 1

    print(f"Reload signal sent to daemon (PID: {pid})")
    return 0


def run(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    if args.command == "stop":
        return stop_daemon(args.lock_file)
    if args.command == "status":
        return show_status(args.lock_file, args.config)
    if args.command == "reload":
        return reload_daemon(args.lock_file)

    try:
        return asyncio.run(serve(args))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


def main() -> None:
    raise SystemExit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
