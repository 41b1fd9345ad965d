"""Aspect-ratio classification from stream metadata.

Uses ffprobe restricted to the first video stream and buckets the
width/height ratio into landscape (16:9), portrait (9:16) or other.
"""

import json
import logging
from enum import Enum
from typing import Optional

from tubely.core.config import settings
from tubely.modules.media.errors import ProbeFailure
from tubely.modules.media.process import CommandError, run_command

logger = logging.getLogger(__name__)

LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16
RATIO_TOLERANCE = 0.05


class AspectClassification(str, Enum):
    """Coarse aspect-ratio bucket of a video."""

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


def classify_aspect_ratio(width: int, height: int) -> AspectClassification:
    """Bucket a frame size into an aspect classification.

    Real encodes rarely hit 16:9 exactly (e.g. 1366x768), so a ratio within
    ``RATIO_TOLERANCE`` of the target counts.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Dimensions must be positive, got {width}x{height}")

    ratio = width / height
    if abs(ratio - LANDSCAPE_RATIO) < RATIO_TOLERANCE:
        return AspectClassification.LANDSCAPE
    if abs(ratio - PORTRAIT_RATIO) < RATIO_TOLERANCE:
        return AspectClassification.PORTRAIT
    return AspectClassification.OTHER


def _positive_int(value: object) -> Optional[int]:
    # bool is an int subclass; JSON true must not read as 1
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def parse_dimensions(output: str) -> tuple[int, int]:
    """Extract ``(width, height)`` of the first stream from ffprobe JSON.

    Raises:
        ProbeFailure: If the output isn't JSON or lacks positive integer dimensions
    """
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise ProbeFailure(f"ffprobe output is not valid JSON: {e}") from e

    streams = data.get("streams") if isinstance(data, dict) else None
    if not isinstance(streams, list) or not streams or not isinstance(streams[0], dict):
        raise ProbeFailure("ffprobe output has no video stream")

    width = _positive_int(streams[0].get("width"))
    height = _positive_int(streams[0].get("height"))
    if width is None or height is None:
        raise ProbeFailure(
            f"ffprobe output has no usable dimensions "
            f"(width={streams[0].get('width')!r}, height={streams[0].get('height')!r})"
        )

    return width, height


class MediaProber:
    """Classifies local video files with ffprobe."""

    def __init__(self, ffprobe_path: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize prober.

        Args:
            ffprobe_path: Path to ffprobe binary
            timeout: Seconds before the probe is abandoned
        """
        self.ffprobe_path = ffprobe_path or settings.FFPROBE_PATH
        self.timeout = timeout if timeout is not None else settings.FFPROBE_TIMEOUT_SECONDS

    def build_probe_command(self, file_path: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "json",
            file_path,
        ]

    async def get_dimensions(self, file_path: str) -> tuple[int, int]:
        """Read the frame size of the first video stream.

        Raises:
            ProbeFailure: On launch failure, timeout, non-zero exit, or bad output
        """
        try:
            result = await run_command(
                self.build_probe_command(file_path),
                timeout=self.timeout,
                name="ffprobe",
            )
        except CommandError as e:
            raise ProbeFailure(e.message) from e

        if not result.ok:
            raise ProbeFailure(
                f"ffprobe failed with exit code {result.exit_code}: {result.stderr.strip()}",
                stderr=result.stderr,
                exit_code=result.exit_code,
            )

        return parse_dimensions(result.stdout)

    async def classify(self, file_path: str) -> AspectClassification:
        """Classify the aspect ratio of ``file_path``.

        Raises:
            ProbeFailure: If the file can't be probed
        """
        width, height = await self.get_dimensions(file_path)
        classification = classify_aspect_ratio(width, height)
        logger.info(
            f"Probed {width}x{height} as {classification.value}",
            extra={"width": width, "height": height, "classification": classification.value},
        )
        return classification
