"""Unit tests for the ffprobe wrapper."""

import json

import pytest

from steam_animation.core.media_info import VideoInfo, parse_ffprobe_output, read_video_info
from tests.infrastructure.mocks.daemon_mocks import FAKE_FFPROBE, write_script


SAMPLE = {
    "format": {"duration": "4.96"},
    "streams": [
        {"codec_type": "audio", "codec_name": "opus"},
        {"codec_type": "video", "codec_name": "vp9", "width": 1280, "height": 720},
    ],
}


def test_parse_picks_video_stream():
    assert parse_ffprobe_output(json.dumps(SAMPLE)) == VideoInfo(4.96, 1280, 720, "vp9")


def test_parse_without_video_stream():
    payload = {"format": {"duration": "3"}, "streams": [{"codec_type": "audio"}]}
    assert parse_ffprobe_output(json.dumps(payload)) is None


def test_parse_garbage():
    assert parse_ffprobe_output("not json") is None


def test_parse_missing_duration():
    payload = {"streams": [{"codec_type": "video", "codec_name": "h264", "width": 640, "height": 480}]}
    assert parse_ffprobe_output(json.dumps(payload)).duration == 0.0


@pytest.mark.asyncio
async def test_probe_runs_ffprobe(tmp_path):
    ffprobe = write_script(tmp_path / "ffprobe", FAKE_FFPROBE.format(payload=json.dumps(SAMPLE)))

    info = await read_video_info(tmp_path / "clip.webm", str(ffprobe))

    assert info.codec == "vp9"
    assert info.duration == pytest.approx(4.96)


@pytest.mark.asyncio
async def test_probe_without_ffprobe(tmp_path):
    assert await read_video_info(tmp_path / "clip.webm", str(tmp_path / "missing")) is None
