"""Top-level package for the Steam animation daemon."""

from __future__ import annotations

from importlib import metadata

from .app.daemon import main, run

try:
    __version__ = metadata.version("steam-animation-daemon")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


__all__ = ["__version__", "main", "run"]
