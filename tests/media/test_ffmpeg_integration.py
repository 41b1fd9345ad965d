"""Integration tests against real ffmpeg/ffprobe binaries.

Skipped when the tools are not installed.
"""

import shutil
import subprocess

import pytest

from tubely.modules.media.errors import ProbeFailure
from tubely.modules.media.probe import AspectClassification, MediaProber
from tubely.modules.media.remux import FastStartRemuxer

pytestmark = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


def make_clip(path, width, height) -> str:
    subprocess.run(
        [
            "ffmpeg", "-y", "-loglevel", "error",
            "-f", "lavfi", "-i", f"testsrc=size={width}x{height}:rate=10",
            "-t", "1",
            "-pix_fmt", "yuv420p",
            str(path),
        ],
        check=True,
    )
    return str(path)


def atom_offset(data: bytes, atom: bytes) -> int:
    return data.find(atom)


class TestRealTools:
    """Probe and remux real files."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "width,height,expected",
        [
            (320, 180, AspectClassification.LANDSCAPE),
            (180, 320, AspectClassification.PORTRAIT),
            (240, 240, AspectClassification.OTHER),
        ],
    )
    async def test_probe_classifies_generated_clip(self, tmp_path, width, height, expected) -> None:
        clip = make_clip(tmp_path / "clip.mp4", width, height)
        assert await MediaProber(ffprobe_path="ffprobe", timeout=30).classify(clip) == expected

    @pytest.mark.asyncio
    async def test_probe_rejects_non_video(self, tmp_path) -> None:
        path = tmp_path / "notes.mp4"
        path.write_bytes(b"definitely not an mp4 container")

        with pytest.raises(ProbeFailure):
            await MediaProber(ffprobe_path="ffprobe", timeout=30).classify(str(path))

    @pytest.mark.asyncio
    async def test_remux_moves_index_to_front(self, tmp_path) -> None:
        clip = make_clip(tmp_path / "clip.mp4", 320, 180)

        output = await FastStartRemuxer(ffmpeg_path="ffmpeg", timeout=60).remux(clip)

        data = open(output, "rb").read()
        assert atom_offset(data, b"moov") < atom_offset(data, b"mdat")
