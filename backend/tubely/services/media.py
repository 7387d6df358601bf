"""
Media inspection and remuxing for uploaded videos.

This module wraps the two external tools the pipeline depends on:

- ``FFprobeInspector`` reads the frame size of the first stream of a file
  (``ffprobe -v error -print_format json -show_streams``)
- ``FFmpegRemuxer`` rewrites a file with its index atom at the front
  (``ffmpeg -c copy -movflags faststart``) so players can start before the
  whole file has downloaded

Both run as child processes via ``asyncio.create_subprocess_exec`` with a
configurable timeout; a process that outlives it is killed. The ingestion
service depends only on the ``MediaInspector`` and ``MediaRemuxer``
protocols, so tests substitute fakes without spawning anything.

``classify_layout`` turns a probed frame size into a coarse layout bucket.
"""

import asyncio
import json
import logging

from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

from tubely.config import Settings
from tubely.core.errors import NoStreams, ProbeFailed, RemuxFailed
from tubely.models.video import StreamDimensions, VideoLayout


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16
RATIO_TOLERANCE = 0.1

PROCESSING_SUFFIX = ".processing"

# Longest stderr excerpt copied into logs
STDERR_LOG_LIMIT = 500


# =============================================================================
# PROTOCOLS
# =============================================================================


class MediaInspector(Protocol):
    async def probe(self, path: Path) -> StreamDimensions: ...


class MediaRemuxer(Protocol):
    async def remux(self, path: Path) -> Path: ...


# =============================================================================
# FFPROBE OUTPUT MODELS
# =============================================================================


class FFprobeStream(BaseModel):
    # Audio and data streams carry no frame size
    width: int = 0
    height: int = 0


class FFprobeOutput(BaseModel):
    streams: list[FFprobeStream] = []


# =============================================================================
# CLASSIFICATION
# =============================================================================


def classify_layout(width: int, height: int) -> VideoLayout:
    """
    Bucket a frame size into landscape, portrait or other.

    The ratio ``width / height`` is compared against 16:9 first and 9:16
    second, each with an absolute tolerance of 0.1. Anything else, including
    a zero height, is ``other``.

    Examples:
        >>> classify_layout(1920, 1080)
        <VideoLayout.LANDSCAPE: 'landscape'>
        >>> classify_layout(1080, 1920)
        <VideoLayout.PORTRAIT: 'portrait'>
        >>> classify_layout(1000, 1000)
        <VideoLayout.OTHER: 'other'>
    """
    if width <= 0 or height <= 0:
        return VideoLayout.OTHER

    ratio = width / height
    if abs(ratio - LANDSCAPE_RATIO) < RATIO_TOLERANCE:
        return VideoLayout.LANDSCAPE
    if abs(ratio - PORTRAIT_RATIO) < RATIO_TOLERANCE:
        return VideoLayout.PORTRAIT
    return VideoLayout.OTHER


# =============================================================================
# SUBPROCESS HELPER
# =============================================================================


async def run_tool(cmd: list[str], timeout: float) -> tuple[int, bytes, bytes]:
    """
    Run an external command and collect its output.

    Returns:
        (returncode, stdout, stderr)

    Raises:
        TimeoutError: If the process does not finish within ``timeout``.
            The process is killed and reaped first.
        OSError: If the executable cannot be started.
    """
    process = await asyncio.create_subprocess_exec(
        *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    return process.returncode, stdout, stderr


def _stderr_excerpt(stderr: bytes) -> str:
    return stderr.decode("utf-8", errors="ignore")[:STDERR_LOG_LIMIT]


# =============================================================================
# FFPROBE
# =============================================================================


class FFprobeInspector:
    """Reads the frame size of a file's first stream using ffprobe."""

    def __init__(self, settings: Settings) -> None:
        self.binary = settings.ffprobe_binary
        self.timeout = settings.media_tool_timeout_seconds

    async def probe(self, path: Path) -> StreamDimensions:
        """
        Probe ``path`` and return the width and height of its first stream.

        Raises:
            ProbeFailed: If ffprobe cannot be started, exits non-zero, times
                out, or prints output that is not the expected JSON.
            NoStreams: If the file has no streams at all.
        """
        cmd = [self.binary, "-v", "error", "-print_format", "json", "-show_streams", str(path)]

        try:
            returncode, stdout, stderr = await run_tool(cmd, self.timeout)
        except TimeoutError as e:
            logger.error("ffprobe timed out after %.0fs on %s", self.timeout, path)
            raise ProbeFailed from e
        except OSError as e:
            logger.exception("Could not start ffprobe (%s)", self.binary)
            raise ProbeFailed from e

        if returncode != 0:
            logger.error(
                "ffprobe exited with status %d",
                returncode,
                extra={"path": str(path), "stderr": _stderr_excerpt(stderr)},
            )
            raise ProbeFailed

        try:
            output = FFprobeOutput.model_validate(json.loads(stdout))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.exception("Could not parse ffprobe output for %s", path)
            raise ProbeFailed from e

        if not output.streams:
            logger.warning("ffprobe found no streams in %s", path)
            raise NoStreams

        first = output.streams[0]
        dimensions = StreamDimensions(width=max(first.width, 0), height=max(first.height, 0))
        logger.debug("Probed %s: %dx%d", path, dimensions.width, dimensions.height)
        return dimensions


# =============================================================================
# FFMPEG
# =============================================================================


class FFmpegRemuxer:
    """Copies a file's streams into a faststart MP4 next to the source."""

    def __init__(self, settings: Settings) -> None:
        self.binary = settings.ffmpeg_binary
        self.timeout = settings.media_tool_timeout_seconds

    async def remux(self, path: Path) -> Path:
        """
        Write ``<path>.processing`` with the moov atom moved to the front.

        The source file is left in place; the caller owns both files.

        Raises:
            RemuxFailed: If ffmpeg cannot be started, exits non-zero or times out.
        """
        output_path = path.with_name(path.name + PROCESSING_SUFFIX)
        cmd = [
            self.binary,
            "-y",
            "-i",
            str(path),
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            str(output_path),
        ]

        try:
            returncode, _, stderr = await run_tool(cmd, self.timeout)
        except TimeoutError as e:
            logger.error("ffmpeg timed out after %.0fs on %s", self.timeout, path)
            raise RemuxFailed from e
        except OSError as e:
            logger.exception("Could not start ffmpeg (%s)", self.binary)
            raise RemuxFailed from e

        if returncode != 0:
            logger.error(
                "ffmpeg exited with status %d",
                returncode,
                extra={"path": str(path), "stderr": _stderr_excerpt(stderr)},
            )
            raise RemuxFailed

        logger.debug("Remuxed %s -> %s", path, output_path)
        return output_path
