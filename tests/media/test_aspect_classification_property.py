"""Property-based tests for aspect-ratio classification.

**Feature: video-ingestion, Property 2: Aspect Classification**
"""

import json

import pytest
from hypothesis import given, settings, strategies as st

from tubely.modules.media.errors import ProbeFailure
from tubely.modules.media.probe import (
    LANDSCAPE_RATIO,
    PORTRAIT_RATIO,
    RATIO_TOLERANCE,
    AspectClassification,
    MediaProber,
    classify_aspect_ratio,
    parse_dimensions,
)
from tubely.modules.media.process import CommandResult, CommandSpawnError, CommandTimeout

dimension_strategy = st.integers(min_value=1, max_value=10000)
scale_strategy = st.integers(min_value=1, max_value=400)


def ffprobe_output(width, height) -> str:
    return json.dumps({"programs": [], "streams": [{"width": width, "height": height}]})


class TestClassifyAspectRatio:
    """Property tests for classify_aspect_ratio."""

    @given(scale=scale_strategy)
    @settings(max_examples=100)
    def test_exact_16_9_is_landscape(self, scale: int) -> None:
        """**Feature: video-ingestion, Property 2: Aspect Classification**

        Any exact multiple of 16x9 SHALL classify as landscape.
        """
        assert classify_aspect_ratio(16 * scale, 9 * scale) == AspectClassification.LANDSCAPE

    @given(scale=scale_strategy)
    @settings(max_examples=100)
    def test_exact_9_16_is_portrait(self, scale: int) -> None:
        assert classify_aspect_ratio(9 * scale, 16 * scale) == AspectClassification.PORTRAIT

    @given(side=dimension_strategy)
    @settings(max_examples=100)
    def test_square_is_other(self, side: int) -> None:
        assert classify_aspect_ratio(side, side) == AspectClassification.OTHER

    @given(width=dimension_strategy, height=dimension_strategy, scale=st.integers(min_value=1, max_value=8))
    @settings(max_examples=100)
    def test_classification_depends_only_on_ratio(self, width: int, height: int, scale: int) -> None:
        assert classify_aspect_ratio(width, height) == classify_aspect_ratio(width * scale, height * scale)

    @given(width=dimension_strategy, height=dimension_strategy)
    @settings(max_examples=200)
    def test_classification_matches_tolerance_band(self, width: int, height: int) -> None:
        ratio = width / height
        result = classify_aspect_ratio(width, height)

        if result == AspectClassification.LANDSCAPE:
            assert abs(ratio - LANDSCAPE_RATIO) < RATIO_TOLERANCE
        elif result == AspectClassification.PORTRAIT:
            assert abs(ratio - PORTRAIT_RATIO) < RATIO_TOLERANCE
        else:
            assert abs(ratio - LANDSCAPE_RATIO) >= RATIO_TOLERANCE
            assert abs(ratio - PORTRAIT_RATIO) >= RATIO_TOLERANCE

    @pytest.mark.parametrize(
        "width,height,expected",
        [
            (1920, 1080, AspectClassification.LANDSCAPE),
            (1366, 768, AspectClassification.LANDSCAPE),
            (1080, 1920, AspectClassification.PORTRAIT),
            (1000, 1000, AspectClassification.OTHER),
            (1080, 1350, AspectClassification.OTHER),
            (2560, 1080, AspectClassification.OTHER),
        ],
    )
    def test_common_frame_sizes(self, width, height, expected) -> None:
        assert classify_aspect_ratio(width, height) == expected

    @pytest.mark.parametrize("width,height", [(0, 1080), (1920, 0), (-16, 9)])
    def test_non_positive_dimensions_rejected(self, width, height) -> None:
        with pytest.raises(ValueError):
            classify_aspect_ratio(width, height)


class TestParseDimensions:
    """Tests for reading ffprobe JSON output."""

    def test_reads_first_stream(self) -> None:
        output = json.dumps({"streams": [{"width": 1280, "height": 720}, {"width": 1, "height": 1}]})
        assert parse_dimensions(output) == (1280, 720)

    @pytest.mark.parametrize(
        "output",
        [
            "",
            "not json",
            json.dumps([]),
            json.dumps({}),
            json.dumps({"streams": []}),
            json.dumps({"streams": ["video"]}),
        ],
    )
    def test_missing_stream_is_probe_failure(self, output) -> None:
        with pytest.raises(ProbeFailure):
            parse_dimensions(output)

    @pytest.mark.parametrize(
        "width,height",
        [
            (0, 1080),
            (1920, 0),
            (-1920, 1080),
            (None, 1080),
            ("1920", 1080),
            (1920.5, 1080),
            (True, 1080),
        ],
    )
    def test_unusable_dimensions_are_probe_failure(self, width, height) -> None:
        with pytest.raises(ProbeFailure):
            parse_dimensions(ffprobe_output(width, height))

    def test_absent_dimension_keys_are_probe_failure(self) -> None:
        with pytest.raises(ProbeFailure):
            parse_dimensions(json.dumps({"streams": [{"codec_name": "h264"}]}))


class TestMediaProber:
    """Tests for MediaProber against a substituted command runner."""

    @pytest.fixture
    def calls(self):
        return []

    def patch_runner(self, monkeypatch, calls, result=None, error=None):
        async def fake_run_command(args, timeout=None, name=None):
            calls.append({"args": list(args), "timeout": timeout, "name": name})
            if error is not None:
                raise error
            return result

        monkeypatch.setattr("tubely.modules.media.probe.run_command", fake_run_command)

    def test_probe_command_targets_first_video_stream(self) -> None:
        prober = MediaProber(ffprobe_path="/usr/bin/ffprobe", timeout=5)
        assert prober.build_probe_command("/tmp/a.mp4") == [
            "/usr/bin/ffprobe",
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "json",
            "/tmp/a.mp4",
        ]

    @pytest.mark.asyncio
    async def test_classify_success(self, monkeypatch, calls) -> None:
        result = CommandResult(
            args=[], exit_code=0, stdout=ffprobe_output(1080, 1920), stderr="", duration=0.1
        )
        self.patch_runner(monkeypatch, calls, result=result)

        prober = MediaProber(ffprobe_path="ffprobe", timeout=7)
        assert await prober.classify("/tmp/a.mp4") == AspectClassification.PORTRAIT
        assert calls[0]["timeout"] == 7
        assert calls[0]["name"] == "ffprobe"
        assert calls[0]["args"][-1] == "/tmp/a.mp4"

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_probe_failure(self, monkeypatch, calls) -> None:
        result = CommandResult(
            args=[], exit_code=1, stdout="", stderr="moov atom not found\n", duration=0.1
        )
        self.patch_runner(monkeypatch, calls, result=result)

        with pytest.raises(ProbeFailure) as exc_info:
            await MediaProber().classify("/tmp/a.mp4")

        assert exc_info.value.exit_code == 1
        assert "moov atom not found" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_timeout_is_probe_failure(self, monkeypatch, calls) -> None:
        self.patch_runner(monkeypatch, calls, error=CommandTimeout("ffprobe timed out after 1s", ["ffprobe"]))

        with pytest.raises(ProbeFailure, match="timed out"):
            await MediaProber().classify("/tmp/a.mp4")

    @pytest.mark.asyncio
    async def test_missing_binary_is_probe_failure(self, monkeypatch, calls) -> None:
        self.patch_runner(
            monkeypatch, calls, error=CommandSpawnError("ffprobe could not be started", ["ffprobe"])
        )

        with pytest.raises(ProbeFailure):
            await MediaProber().classify("/tmp/a.mp4")
