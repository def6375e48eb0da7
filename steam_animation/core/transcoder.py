"""
Transcoder - Duration-capped, resolution-normalized copies of animation clips.

Every clip Steam plays from the override directory goes through here first:
it is cut to ``max_duration`` seconds, scaled into ``target_width x
target_height`` with black letterbox padding, and re-encoded as VP9/Opus
WebM. Results are cached under a key derived from the source path and its
modification time, so an unchanged source is only ever encoded once.

If ffmpeg is missing or fails, the original file is used as the output and
the result is flagged ``optimized=False``. The caller still mounts it; the
duration cap just doesn't hold for that clip.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from steam_animation.core.animation_config import AnimationConfig
from steam_animation.core.errors import SourceMissingError, TranscodeError
from steam_animation.core.logging_utils import get_module_logger
from steam_animation.core.media_info import read_video_info

CACHE_KEY_LENGTH = 16
CACHE_SUFFIX = ".webm"


class ConfigSource(Protocol):
    @property
    def current(self) -> AnimationConfig: ...


@dataclass(frozen=True)
class TranscodeResult:
    path: Path
    cache_hit: bool
    optimized: bool


def cache_key(source: Path) -> str:
    """Stable key for ``source`` at its current modification time."""
    stat = source.stat()
    digest = hashlib.sha256()
    digest.update(str(source.resolve()).encode("utf-8"))
    digest.update(str(stat.st_mtime_ns).encode("ascii"))
    return digest.hexdigest()[:CACHE_KEY_LENGTH]


def _copy_atomic(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    partial = dst.with_name(f".{dst.name}.partial")
    shutil.copyfile(src, partial)
    os.replace(partial, dst)


class Transcoder:

    def __init__(
        self,
        config: ConfigSource,
        *,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        encoder_timeout: Optional[float] = None,
    ):
        self._config = config
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.encoder_timeout = encoder_timeout
        self.logger = get_module_logger("Transcoder")

    def cache_path_for(self, source: Path, config: Optional[AnimationConfig] = None) -> Path:
        config = config or self._config.current
        return Path(config.cache_dir) / f"{cache_key(source)}{CACHE_SUFFIX}"

    @staticmethod
    def build_command(ffmpeg: str, source: Path, output: Path, config: AnimationConfig) -> list[str]:
        width, height = config.target_width, config.target_height
        return [
            ffmpeg,
            "-y",
            "-i", str(source),
            "-t", str(config.max_duration),
            "-vf", (
                f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
                f"pad={width}:{height}:-1:-1:black"
            ),
            "-c:v", "libvpx-vp9",
            "-crf", str(config.video_quality),
            "-speed", "4",
            "-row-mt", "1",
            "-tile-columns", "2",
            "-c:a", "libopus",
            "-b:a", "64k",
            "-f", "webm",
            str(output),
        ]

    async def transcode(self, source: Path, output: Path) -> TranscodeResult:
        """Write an optimized version of ``source`` to ``output``.

        Raises:
            SourceMissingError: ``source`` does not exist (anymore).
        """
        source = Path(source)
        output = Path(output)
        config = self._config.current

        if not await asyncio.to_thread(source.is_file):
            raise SourceMissingError(source)

        cached = self.cache_path_for(source, config)
        if await asyncio.to_thread(cached.is_file):
            self.logger.debug("Using cached optimized video: %s", cached)
            await asyncio.to_thread(_copy_atomic, cached, output)
            return TranscodeResult(path=output, cache_hit=True, optimized=True)

        self.logger.info("Optimizing video: %s", source.name)
        try:
            await self._encode(source, output, config)
        except TranscodeError as e:
            self.logger.warning("Optimization failed for %s, using original: %s", source.name, e)
            await asyncio.to_thread(_copy_atomic, source, output)
            return TranscodeResult(path=output, cache_hit=False, optimized=False)

        try:
            await asyncio.to_thread(_copy_atomic, output, cached)
        except OSError as e:
            self.logger.warning("Could not store %s in cache: %s", cached.name, e)
        else:
            self.logger.info("Video optimized and cached: %s -> %s", source.name, cached.name)

        await self._check_duration(output, config)
        return TranscodeResult(path=output, cache_hit=False, optimized=True)

    async def _encode(self, source: Path, output: Path, config: AnimationConfig) -> None:
        if shutil.which(self.ffmpeg) is None:
            raise TranscodeError(f"{self.ffmpeg} not found")

        await asyncio.to_thread(output.parent.mkdir, parents=True, exist_ok=True)
        partial = output.with_name(f".{output.stem}.partial{CACHE_SUFFIX}")
        cmd = self.build_command(self.ffmpeg, source, partial, config)
        self.logger.debug("Running ffmpeg command: %s", " ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(f"Failed to execute {self.ffmpeg}: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.encoder_timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            partial.unlink(missing_ok=True)
            raise TranscodeError(f"Encoding timed out after {self.encoder_timeout}s")

        if process.returncode != 0:
            partial.unlink(missing_ok=True)
            tail = stderr.decode("utf-8", errors="replace").strip().splitlines()[-3:]
            raise TranscodeError(
                f"ffmpeg exited with {process.returncode}: {' | '.join(tail)}",
                returncode=process.returncode,
            )

        if not partial.is_file() or partial.stat().st_size == 0:
            partial.unlink(missing_ok=True)
            raise TranscodeError("Output video file is empty")

        os.replace(partial, output)

    async def _check_duration(self, output: Path, config: AnimationConfig) -> None:
        info = await read_video_info(output, self.ffprobe)
        if info is None:
            return
        self.logger.debug(
            "Encoded %s: %.2fs %dx%d %s",
            output.name, info.duration, info.width, info.height, info.codec,
        )
        if info.duration > config.max_duration + 0.5:
            self.logger.warning(
                "Encoded %s runs %.2fs, longer than the %ds cap",
                output.name, info.duration, config.max_duration,
            )


__all__ = ["Transcoder", "TranscodeResult", "cache_key"]
