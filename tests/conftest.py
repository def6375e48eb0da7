"""Shared pytest configuration and fixtures for the animation daemon test suite."""

import sys
from dataclasses import replace
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def daemon_dirs(tmp_path: Path) -> dict:
    """Fresh animation/download/override/cache/staging directories."""
    dirs = {
        "animations_dir": tmp_path / "animations",
        "downloads_dir": tmp_path / "downloads",
        "override_dir": tmp_path / "uioverrides" / "movies",
        "cache_dir": tmp_path / "cache",
        "staging_dir": tmp_path / "staged",
    }
    for path in dirs.values():
        path.mkdir(parents=True)
    return dirs


@pytest.fixture
def make_config(daemon_dirs):
    """Factory for an AnimationConfig rooted in the test directories."""
    from steam_animation.core.animation_config import AnimationConfig

    def _make(**overrides):
        base = AnimationConfig(
            animations_dir=daemon_dirs["animations_dir"],
            downloads_dir=daemon_dirs["downloads_dir"],
            override_dir=daemon_dirs["override_dir"],
            cache_dir=daemon_dirs["cache_dir"],
        )
        return replace(base, **overrides)

    return _make


@pytest.fixture
def config_source(make_config):
    from tests.infrastructure.mocks.daemon_mocks import StaticConfig
    return StaticConfig(make_config())


# =============================================================================
# External tool fixtures
# =============================================================================

@pytest.fixture
def fake_ffmpeg(tmp_path: Path):
    """Executable stand-in for ffmpeg; returns (script path, call log path)."""
    from tests.infrastructure.mocks.daemon_mocks import FAKE_FFMPEG, write_script

    log = tmp_path / "ffmpeg_calls.log"
    script = write_script(tmp_path / "ffmpeg", FAKE_FFMPEG.format(log=log))
    return script, log


@pytest.fixture
def failing_ffmpeg(tmp_path: Path):
    """ffmpeg stand-in that always exits 1."""
    from tests.infrastructure.mocks.daemon_mocks import FAILING_FFMPEG, write_script

    log = tmp_path / "ffmpeg_calls.log"
    script = write_script(tmp_path / "ffmpeg-broken", FAILING_FFMPEG.format(log=log))
    return script, log
