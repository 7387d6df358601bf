"""
Tests for aspect classification and the ffprobe/ffmpeg wrappers.

The external tools are never executed: ``asyncio.create_subprocess_exec`` is
patched to return a fake process whose output and exit status each test sets.
"""

import asyncio

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from conftest import ffprobe_json, make_process
from tubely.config import Settings
from tubely.core.errors import NoStreams, ProbeFailed, RemuxFailed
from tubely.models.video import VideoLayout
from tubely.services.media import FFmpegRemuxer, FFprobeInspector, classify_layout


# =============================================================================
# Classification
# =============================================================================


class TestClassifyLayout:
    @pytest.mark.parametrize(
        ("width", "height"),
        [(1920, 1080), (1280, 720), (3840, 2160), (854, 480)],
    )
    def test_sixteen_by_nine_is_landscape(self, width: int, height: int) -> None:
        assert classify_layout(width, height) == VideoLayout.LANDSCAPE

    @pytest.mark.parametrize(("width", "height"), [(1080, 1920), (720, 1280)])
    def test_nine_by_sixteen_is_portrait(self, width: int, height: int) -> None:
        assert classify_layout(width, height) == VideoLayout.PORTRAIT

    @pytest.mark.parametrize(("width", "height"), [(1000, 1000), (640, 480), (2560, 1080)])
    def test_other_ratios(self, width: int, height: int) -> None:
        assert classify_layout(width, height) == VideoLayout.OTHER

    def test_tolerance_boundary(self) -> None:
        # 16/9 + 0.09 is inside the tolerance, 16/9 + 0.11 is not
        assert classify_layout(int(1000 * (16 / 9 + 0.09)), 1000) == VideoLayout.LANDSCAPE
        assert classify_layout(int(1000 * (16 / 9 + 0.11)), 1000) == VideoLayout.OTHER

    def test_zero_height_is_other(self) -> None:
        assert classify_layout(0, 0) == VideoLayout.OTHER
        assert classify_layout(1920, 0) == VideoLayout.OTHER


# =============================================================================
# FFprobe
# =============================================================================


class TestFFprobeInspector:
    async def test_probe_reads_first_stream(self, mock_settings: Settings) -> None:
        process = make_process(
            stdout=ffprobe_json(
                {"codec_type": "video", "width": 1080, "height": 1920},
                {"codec_type": "audio"},
            )
        )
        with patch(
            "tubely.services.media.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ) as spawn:
            dimensions = await FFprobeInspector(mock_settings).probe(Path("/tmp/clip.mp4"))

        assert (dimensions.width, dimensions.height) == (1080, 1920)
        args = spawn.call_args.args
        assert list(args) == [
            "ffprobe",
            "-v",
            "error",
            "-print_format",
            "json",
            "-show_streams",
            "/tmp/clip.mp4",
        ]

    async def test_audio_first_stream_has_zero_dimensions(self, mock_settings: Settings) -> None:
        process = make_process(stdout=ffprobe_json({"codec_type": "audio"}))
        with patch(
            "tubely.services.media.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ):
            dimensions = await FFprobeInspector(mock_settings).probe(Path("/tmp/a.mp4"))

        assert (dimensions.width, dimensions.height) == (0, 0)
        assert classify_layout(dimensions.width, dimensions.height) == VideoLayout.OTHER

    async def test_no_streams(self, mock_settings: Settings) -> None:
        process = make_process(stdout=ffprobe_json())
        with (
            patch(
                "tubely.services.media.asyncio.create_subprocess_exec",
                AsyncMock(return_value=process),
            ),
            pytest.raises(NoStreams),
        ):
            await FFprobeInspector(mock_settings).probe(Path("/tmp/empty.mp4"))

    async def test_nonzero_exit(self, mock_settings: Settings) -> None:
        process = make_process(stderr=b"Invalid data found", returncode=1)
        with (
            patch(
                "tubely.services.media.asyncio.create_subprocess_exec",
                AsyncMock(return_value=process),
            ),
            pytest.raises(ProbeFailed),
        ):
            await FFprobeInspector(mock_settings).probe(Path("/tmp/bad.mp4"))

    async def test_unparsable_output(self, mock_settings: Settings) -> None:
        process = make_process(stdout=b"not json")
        with (
            patch(
                "tubely.services.media.asyncio.create_subprocess_exec",
                AsyncMock(return_value=process),
            ),
            pytest.raises(ProbeFailed),
        ):
            await FFprobeInspector(mock_settings).probe(Path("/tmp/bad.mp4"))

    async def test_missing_binary(self, mock_settings: Settings) -> None:
        with (
            patch(
                "tubely.services.media.asyncio.create_subprocess_exec",
                AsyncMock(side_effect=FileNotFoundError("ffprobe")),
            ),
            pytest.raises(ProbeFailed),
        ):
            await FFprobeInspector(mock_settings).probe(Path("/tmp/clip.mp4"))

    async def test_timeout_kills_process(self, mock_settings: Settings) -> None:
        async def hang() -> tuple[bytes, bytes]:
            await asyncio.sleep(10)
            return b"", b""

        process = make_process()
        process.communicate = AsyncMock(side_effect=hang)
        settings = mock_settings.model_copy(update={"media_tool_timeout_seconds": 0.01})

        with (
            patch(
                "tubely.services.media.asyncio.create_subprocess_exec",
                AsyncMock(return_value=process),
            ),
            pytest.raises(ProbeFailed),
        ):
            await FFprobeInspector(settings).probe(Path("/tmp/slow.mp4"))

        process.kill.assert_called_once()
        process.wait.assert_awaited()


# =============================================================================
# FFmpeg
# =============================================================================


class TestFFmpegRemuxer:
    async def test_remux_writes_processing_sibling(self, mock_settings: Settings) -> None:
        process = make_process()
        source = Path("/tmp/tubely-upload123.mp4")

        with patch(
            "tubely.services.media.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ) as spawn:
            output = await FFmpegRemuxer(mock_settings).remux(source)

        assert output == Path("/tmp/tubely-upload123.mp4.processing")
        assert list(spawn.call_args.args) == [
            "ffmpeg",
            "-y",
            "-i",
            "/tmp/tubely-upload123.mp4",
            "-c",
            "copy",
            "-movflags",
            "faststart",
            "-f",
            "mp4",
            "/tmp/tubely-upload123.mp4.processing",
        ]

    async def test_nonzero_exit(self, mock_settings: Settings) -> None:
        process = make_process(stderr=b"moov atom not found", returncode=1)
        with (
            patch(
                "tubely.services.media.asyncio.create_subprocess_exec",
                AsyncMock(return_value=process),
            ),
            pytest.raises(RemuxFailed),
        ):
            await FFmpegRemuxer(mock_settings).remux(Path("/tmp/bad.mp4"))

    async def test_configured_binary(self, mock_settings: Settings) -> None:
        settings = mock_settings.model_copy(update={"ffmpeg_binary": "/opt/ffmpeg/bin/ffmpeg"})
        with patch(
            "tubely.services.media.asyncio.create_subprocess_exec",
            AsyncMock(return_value=make_process()),
        ) as spawn:
            await FFmpegRemuxer(settings).remux(Path("/tmp/clip.mp4"))

        assert spawn.call_args.args[0] == "/opt/ffmpeg/bin/ffmpeg"
