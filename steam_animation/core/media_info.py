"""ffprobe wrapper used to check what the encoder actually produced."""

from __future__ import annotations

import asyncio
import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from steam_animation.core.logging_utils import get_module_logger

logger = get_module_logger("MediaInfo")


@dataclass(frozen=True)
class VideoInfo:
    duration: float
    width: int
    height: int
    codec: str


def parse_ffprobe_output(payload: str) -> Optional[VideoInfo]:
    """Turn ``ffprobe -of json -show_format -show_streams`` output into VideoInfo."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return None

    stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "video"),
        None,
    )
    if stream is None:
        return None

    try:
        duration = float(data.get("format", {}).get("duration", 0.0))
    except (TypeError, ValueError):
        duration = 0.0

    return VideoInfo(
        duration=duration,
        width=int(stream.get("width") or 0),
        height=int(stream.get("height") or 0),
        codec=str(stream.get("codec_name", "")),
    )


async def read_video_info(path: Path, ffprobe: str = "ffprobe") -> Optional[VideoInfo]:
    """Return stream information for ``path``, or None if it can't be read."""
    if shutil.which(ffprobe) is None:
        return None

    cmd = [
        ffprobe,
        "-v", "quiet",
        "-show_format",
        "-show_streams",
        "-of", "json",
        str(path),
    ]
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        stdout, _ = await process.communicate()
    except OSError as e:
        logger.debug("ffprobe could not run on %s: %s", path, e)
        return None

    if process.returncode != 0:
        return None
    return parse_ffprobe_output(stdout.decode("utf-8", errors="replace"))


__all__ = ["VideoInfo", "parse_ffprobe_output", "read_video_info"]
