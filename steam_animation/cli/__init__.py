"""Command-line helpers shared by the daemon entry points."""

from .common import LOG_LEVELS, add_common_cli_arguments, resolve_log_level

__all__ = ["LOG_LEVELS", "add_common_cli_arguments", "resolve_log_level"]
