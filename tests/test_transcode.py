"""Tests for biliaudio.transcode.ffmpeg module."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import pytest

from biliaudio.config import EncoderSettings
from biliaudio.exceptions import StreamError, TranscodeError
from biliaudio.transcode.ffmpeg import (
    PIPE_INPUT,
    build_command,
    transcode_file,
    transcode_stream,
)

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="fake encoder needs a POSIX shell")

FAILING_BODY = """
printf 'partial' > "$output"
echo "invalid data" >&2
exit 1
"""

WARNING_BODY = """
cat "$input" > "$output"
echo "Guessed Channel Layout for Input Stream #0.0 : stereo" >&2
"""


async def chunks(*parts: bytes):
    for part in parts:
        await asyncio.sleep(0)
        yield part


async def broken_source():
    yield b"first"
    raise StreamError("Transfer interrupted after 5 bytes")


class TestBuildCommand:
    def test_default_command(self, tmp_path: Path) -> None:
        output = tmp_path / "out.mp3"
        cmd = build_command("in.m4s", output, EncoderSettings())
        assert cmd == [
            "ffmpeg",
            "-hide_banner",
            "-loglevel",
            "warning",
            "-y",
            "-i",
            "in.m4s",
            "-q:a",
            "0",
            str(output),
        ]

    def test_pipe_input_and_no_overwrite(self, tmp_path: Path) -> None:
        settings = EncoderSettings(overwrite=False, quality_args=["-b:a", "192k"])
        cmd = build_command(PIPE_INPUT, tmp_path / "out.mp3", settings)
        assert "-n" in cmd
        assert cmd[cmd.index("-i") + 1] == "pipe:0"
        assert cmd[-3:-1] == ["-b:a", "192k"]


class TestTranscodeFile:
    def test_success_creates_output(self, tmp_path: Path, encoder_settings: EncoderSettings) -> None:
        source = tmp_path / "Intro.m4s"
        source.write_bytes(b"raw audio")
        output = tmp_path / "nested" / "Intro.mp3"

        result = asyncio.run(transcode_file(source, output, encoder_settings))

        assert result.returncode == 0
        assert result.output_path == output
        assert output.read_bytes() == b"raw audio"

    def test_missing_input_raises(self, tmp_path: Path, encoder_settings: EncoderSettings) -> None:
        with pytest.raises(TranscodeError, match="not found"):
            asyncio.run(
                transcode_file(tmp_path / "missing.m4s", tmp_path / "out.mp3", encoder_settings)
            )

    def test_failure_carries_diagnostics(self, tmp_path: Path, make_encoder) -> None:
        settings = EncoderSettings(binary=str(make_encoder(FAILING_BODY, name="bad-ffmpeg")))
        source = tmp_path / "Intro.m4s"
        source.write_bytes(b"raw audio")
        output = tmp_path / "Intro.mp3"

        with pytest.raises(TranscodeError) as exc_info:
            asyncio.run(transcode_file(source, output, settings))

        assert exc_info.value.returncode == 1
        assert "invalid data" in exc_info.value.diagnostics
        assert "invalid data" in str(exc_info.value)
        assert output.read_bytes() == b"partial"

    def test_spawn_failure_raises(self, tmp_path: Path) -> None:
        source = tmp_path / "Intro.m4s"
        source.write_bytes(b"raw audio")
        settings = EncoderSettings(binary=str(tmp_path / "no-such-ffmpeg"))

        with pytest.raises(TranscodeError, match="Failed to start encoder"):
            asyncio.run(transcode_file(source, tmp_path / "out.mp3", settings))

    def test_diagnostics_logged_as_warnings(
        self, tmp_path: Path, make_encoder, caplog: pytest.LogCaptureFixture
    ) -> None:
        settings = EncoderSettings(binary=str(make_encoder(WARNING_BODY, name="chatty-ffmpeg")))
        source = tmp_path / "Intro.m4s"
        source.write_bytes(b"raw audio")

        with caplog.at_level(logging.WARNING, logger="biliaudio"):
            result = asyncio.run(transcode_file(source, tmp_path / "Intro.mp3", settings))

        assert result.returncode == 0
        assert "Guessed Channel Layout" in result.diagnostics
        assert any("Guessed Channel Layout" in r.getMessage() for r in caplog.records)
        assert all(r.levelno == logging.WARNING for r in caplog.records)


class TestTranscodeStream:
    def test_stream_end_closes_encoder_input(
        self, tmp_path: Path, encoder_settings: EncoderSettings
    ) -> None:
        output = tmp_path / "BV1" / "Intro.mp3"
        source = chunks(b"abc", b"def" * 50_000, b"ghi")

        result = asyncio.run(
            asyncio.wait_for(transcode_stream(source, output, encoder_settings), timeout=30)
        )

        assert result.returncode == 0
        assert result.bytes_fed == 6 + 150_000
        assert output.read_bytes() == b"abc" + b"def" * 50_000 + b"ghi"

    def test_empty_stream_still_terminates(
        self, tmp_path: Path, encoder_settings: EncoderSettings
    ) -> None:
        output = tmp_path / "Empty.mp3"

        result = asyncio.run(
            asyncio.wait_for(transcode_stream(chunks(), output, encoder_settings), timeout=30)
        )

        assert result.bytes_fed == 0
        assert output.read_bytes() == b""

    def test_encoder_failure_raises(self, tmp_path: Path, make_encoder) -> None:
        settings = EncoderSettings(binary=str(make_encoder(FAILING_BODY, name="bad-ffmpeg")))

        with pytest.raises(TranscodeError) as exc_info:
            asyncio.run(
                asyncio.wait_for(
                    transcode_stream(chunks(b"x" * 1000), tmp_path / "out.mp3", settings),
                    timeout=30,
                )
            )

        assert exc_info.value.returncode == 1
        assert "invalid data" in exc_info.value.diagnostics

    def test_source_failure_raises_stream_error(
        self, tmp_path: Path, encoder_settings: EncoderSettings
    ) -> None:
        with pytest.raises(StreamError):
            asyncio.run(
                asyncio.wait_for(
                    transcode_stream(broken_source(), tmp_path / "out.mp3", encoder_settings),
                    timeout=30,
                )
            )
