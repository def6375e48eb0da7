from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from steam_animation.core.paths import CONFIG_PATH, DAEMON_LOG_FILE


LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def add_common_cli_arguments(
    parser: argparse.ArgumentParser,
    *,
    default_config: Path | str = CONFIG_PATH,
    default_log_file: Optional[Path] = DAEMON_LOG_FILE,
    include_console_control: bool = True,
    default_console_output: bool = True,
) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(default_config),
        help="Configuration file (default: %(default)s)",
    )

    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS.keys()),
        default=None,
        help="Logging verbosity (default: log_level from the config file)",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=default_log_file,
        help="Rotating log file (default: %(default)s)",
    )

    if include_console_control:
        console_group = parser.add_mutually_exclusive_group()
        console_group.add_argument(
            "--console",
            dest="console_output",
            action="store_true",
            default=default_console_output,
            help="Also log to console (in addition to file)",
        )
        console_group.add_argument(
            "--no-console",
            dest="console_output",
            action="store_false",
            help="Log to file only (no console output)",
        )


def resolve_log_level(cli_level: Optional[str], config_level: str, default: str = "info") -> str:
    """CLI wins over the config file; unknown names fall back to ``default``."""
    for candidate in (cli_level, config_level):
        if candidate and candidate.lower() in LOG_LEVELS:
            return candidate.lower()
    return default


__all__ = ["LOG_LEVELS", "add_common_cli_arguments", "resolve_log_level"]
