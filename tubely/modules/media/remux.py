"""Fast-start remuxing.

Moves the MP4 index (moov atom) ahead of the media data so playback can
start before the whole file has downloaded. Streams are copied, never
re-encoded, and container metadata is kept.
"""

import logging
from typing import Optional

from tubely.core.config import settings
from tubely.modules.media.errors import RemuxFailure
from tubely.modules.media.process import CommandError, run_command

logger = logging.getLogger(__name__)

PROCESSED_SUFFIX = ".processed"


def remuxed_path_for(input_path: str) -> str:
    """Output path for a remux of ``input_path``; never equal to the input."""
    return input_path + PROCESSED_SUFFIX


class FastStartRemuxer:
    """Rewrites MP4 files for progressive playback with ffmpeg."""

    def __init__(self, ffmpeg_path: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize remuxer.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            timeout: Seconds before the remux is abandoned
        """
        self.ffmpeg_path = ffmpeg_path or settings.FFMPEG_PATH
        self.timeout = timeout if timeout is not None else settings.FFMPEG_TIMEOUT_SECONDS

    def build_remux_command(self, input_path: str, output_path: str) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",  # Overwrite a leftover output from a crashed attempt
            "-i", input_path,
            "-movflags", "faststart",
            "-map_metadata", "0",
            "-codec", "copy",
            "-f", "mp4",
            output_path,
        ]

    async def remux(self, input_path: str) -> str:
        """Produce a fast-start copy of ``input_path``.

        Returns:
            Path of the remuxed file

        Raises:
            RemuxFailure: On launch failure, timeout, or non-zero exit
        """
        output_path = remuxed_path_for(input_path)

        try:
            result = await run_command(
                self.build_remux_command(input_path, output_path),
                timeout=self.timeout,
                name="ffmpeg",
            )
        except CommandError as e:
            raise RemuxFailure(e.message) from e

        if not result.ok:
            raise RemuxFailure(
                f"ffmpeg failed with exit code {result.exit_code}: {result.stderr.strip()}",
                stderr=result.stderr,
                exit_code=result.exit_code,
            )

        logger.info("Remuxed for fast start", extra={"output_path": output_path})
        return output_path
