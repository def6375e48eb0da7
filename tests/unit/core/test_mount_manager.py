"""Unit tests for MountManager and its attach strategies."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from steam_animation.core.errors import MountError
from steam_animation.core.mount_manager import (
    BindMountStrategy,
    CopyStrategy,
    MountManager,
    SymlinkStrategy,
)
from steam_animation.core.targets import AnimationTarget
from tests.infrastructure.mocks.daemon_mocks import RefusingStrategy, write_clip


@pytest.fixture
def staged(daemon_dirs) -> Path:
    return write_clip(daemon_dirs["staging_dir"] / "deck_startup.webm", b"staged clip")


@pytest.fixture
def manager(config_source):
    return MountManager(config_source, [RefusingStrategy("bind"), SymlinkStrategy(), CopyStrategy()])


class TestAttach:

    @pytest.mark.asyncio
    async def test_falls_back_to_symlink_without_bind(self, manager, staged, daemon_dirs):
        mechanism = await manager.apply(AnimationTarget.BOOT, staged)

        destination = daemon_dirs["override_dir"] / "deck_startup.webm"
        assert mechanism == "symlink"
        assert destination.is_symlink()
        assert destination.resolve() == staged.resolve()
        assert manager.describe(AnimationTarget.BOOT) == "symlink"

    @pytest.mark.asyncio
    async def test_falls_back_to_copy_when_symlink_fails(self, config_source, staged, daemon_dirs):
        manager = MountManager(
            config_source,
            [RefusingStrategy("bind"), RefusingStrategy("symlink"), CopyStrategy()],
        )

        mechanism = await manager.apply(AnimationTarget.SUSPEND, staged)

        destination = daemon_dirs["override_dir"] / "steam_os_suspend.webm"
        assert mechanism == "copy"
        assert not destination.is_symlink()
        assert destination.read_bytes() == b"staged clip"
        assert manager.describe(AnimationTarget.SUSPEND) == "copy"

    @pytest.mark.asyncio
    async def test_all_strategies_failing_raises_for_that_destination(
        self, config_source, staged, daemon_dirs
    ):
        manager = MountManager(config_source, [RefusingStrategy("bind"), RefusingStrategy("copy")])

        with pytest.raises(MountError) as excinfo:
            await manager.apply(AnimationTarget.THROBBER, staged)

        error = excinfo.value
        assert error.destination == daemon_dirs["override_dir"] / "steam_os_suspend_from_throbber.webm"
        assert set(error.failures) == {"bind", "copy"}
        assert not error.destination.exists()

    @pytest.mark.asyncio
    async def test_reapply_replaces_previous_attachment(self, manager, daemon_dirs):
        first = write_clip(daemon_dirs["staging_dir"] / "first.webm", b"one")
        second = write_clip(daemon_dirs["staging_dir"] / "second.webm", b"two")

        await manager.apply(AnimationTarget.BOOT, first)
        await manager.apply(AnimationTarget.BOOT, second)

        destination = daemon_dirs["override_dir"] / "deck_startup.webm"
        assert destination.read_bytes() == b"two"

    @pytest.mark.asyncio
    async def test_creates_missing_override_directory(self, config_source, make_config, staged, tmp_path):
        config_source.current = make_config(override_dir=tmp_path / "fresh" / "movies")
        manager = MountManager(config_source, [SymlinkStrategy()])

        await manager.apply(AnimationTarget.BOOT, staged)

        assert (tmp_path / "fresh" / "movies" / "deck_startup.webm").is_symlink()


class TestTeardown:

    @pytest.mark.asyncio
    async def test_apply_then_teardown_restores_absent_destination(self, manager, staged, daemon_dirs):
        destination = daemon_dirs["override_dir"] / "deck_startup.webm"
        assert not destination.exists()

        await manager.apply(AnimationTarget.BOOT, staged)
        await manager.teardown(AnimationTarget.BOOT)

        assert not destination.exists()
        assert not destination.is_symlink()
        assert staged.read_bytes() == b"staged clip"
        assert manager.describe(AnimationTarget.BOOT) is None

    @pytest.mark.asyncio
    async def test_teardown_of_empty_destination_is_noop(self, manager, daemon_dirs):
        await manager.teardown(AnimationTarget.SUSPEND)
        assert list(daemon_dirs["override_dir"].iterdir()) == []

    @pytest.mark.asyncio
    async def test_teardown_removes_dangling_symlink(self, manager, staged, daemon_dirs):
        await manager.apply(AnimationTarget.BOOT, staged)
        staged.unlink()

        await manager.teardown(AnimationTarget.BOOT)

        assert not (daemon_dirs["override_dir"] / "deck_startup.webm").is_symlink()

    @pytest.mark.asyncio
    async def test_teardown_all_clears_every_target(self, manager, staged, daemon_dirs):
        for target in AnimationTarget:
            await manager.apply(target, staged)

        await manager.teardown_all()

        assert list(daemon_dirs["override_dir"].iterdir()) == []

    @pytest.mark.asyncio
    async def test_mounted_destination_is_unmounted(self, config_source, daemon_dirs):
        manager = MountManager(config_source, [CopyStrategy()], umount="umount")
        destination = write_clip(daemon_dirs["override_dir"] / "deck_startup.webm")

        with patch("steam_animation.core.mount_manager.is_mount_point", return_value=True), \
                patch("steam_animation.core.mount_manager._run_command", new=AsyncMock(return_value=(0, ""))) as run:
            await manager.teardown(AnimationTarget.BOOT)

        run.assert_awaited_once_with("umount", str(destination))
        assert not destination.exists()


class TestBindMountStrategy:

    @pytest.mark.asyncio
    async def test_failed_bind_leaves_no_placeholder(self, tmp_path):
        source = write_clip(tmp_path / "clip.webm")
        destination = tmp_path / "deck_startup.webm"
        strategy = BindMountStrategy()

        with patch("steam_animation.core.mount_manager.shutil.which", return_value="/bin/mount"), \
                patch(
                    "steam_animation.core.mount_manager._run_command",
                    new=AsyncMock(return_value=(32, "mount: only root can use --bind")),
                ):
            with pytest.raises(MountError) as excinfo:
                await strategy.attach(source, destination)

        assert "only root" in excinfo.value.failures["bind"]
        assert not destination.exists()

    @pytest.mark.asyncio
    async def test_successful_bind_runs_mount(self, tmp_path):
        source = write_clip(tmp_path / "clip.webm")
        destination = tmp_path / "deck_startup.webm"
        strategy = BindMountStrategy(mount="mount")

        with patch("steam_animation.core.mount_manager.shutil.which", return_value="/bin/mount"), \
                patch(
                    "steam_animation.core.mount_manager._run_command",
                    new=AsyncMock(return_value=(0, "")),
                ) as run:
            await strategy.attach(source, destination)

        run.assert_awaited_once_with("mount", "--bind", str(source), str(destination))
        assert destination.exists()

    @pytest.mark.asyncio
    async def test_missing_mount_binary(self, tmp_path):
        strategy = BindMountStrategy(mount=str(tmp_path / "no-mount"))
        with pytest.raises(MountError):
            await strategy.attach(tmp_path / "clip.webm", tmp_path / "dest.webm")
