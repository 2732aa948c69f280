"""
biliaudio.transcode.ffmpeg - FFmpeg audio transcoding.

Bridges one input to one encoder process producing one output file:
- File mode: the encoder reads a completed file from disk
- Pipe mode: a live ByteStream is copied into the encoder's stdin and
  stdin is closed at end of stream so the encoder can finish

The encoder's stderr is captured. It becomes the diagnostics of a
TranscodeError on failure and is logged as warnings on success.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable
from pathlib import Path

from pydantic import BaseModel

from biliaudio.config import EncoderSettings
from biliaudio.exceptions import StreamError, TranscodeError
from biliaudio.logging import logger
from biliaudio.utils import ensure_parent_dir

PIPE_INPUT = "pipe:0"


class TranscodeResult(BaseModel):
    """Outcome of one successful encoder run."""

    output_path: Path
    returncode: int
    diagnostics: str = ""
    bytes_fed: int | None = None


def build_command(input_spec: str, output_path: Path, settings: EncoderSettings) -> list[str]:
    """Build the encoder argument list.

    Args:
        input_spec: Input file path, or PIPE_INPUT to read stdin
        output_path: Output audio file
        settings: Encoder settings

    Returns:
        Argument list suitable for create_subprocess_exec
    """
    return [
        settings.binary,
        "-hide_banner",
        "-loglevel",
        settings.loglevel,
        "-y" if settings.overwrite else "-n",
        "-i",
        input_spec,
        *settings.quality_args,
        str(output_path),
    ]


async def _spawn(cmd: list[str], stdin: int) -> asyncio.subprocess.Process:
    logger.debug("Running %s", " ".join(cmd))
    try:
        return await asyncio.create_subprocess_exec(
            *cmd,
            stdin=stdin,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise TranscodeError(f"Failed to start encoder '{cmd[0]}': {e}") from e


def _finish(
    output_path: Path,
    returncode: int,
    stderr: bytes,
    bytes_fed: int | None = None,
) -> TranscodeResult:
    diagnostics = stderr.decode("utf-8", errors="replace")

    if returncode != 0:
        raise TranscodeError(
            f"Encoder exited with status {returncode} for {output_path.name}",
            returncode=returncode,
            diagnostics=diagnostics,
        )

    for line in diagnostics.splitlines():
        if line.strip():
            logger.warning("ffmpeg (%s): %s", output_path.name, line.strip())

    return TranscodeResult(
        output_path=output_path,
        returncode=returncode,
        diagnostics=diagnostics,
        bytes_fed=bytes_fed,
    )


async def transcode_file(
    input_path: Path,
    output_path: Path,
    settings: EncoderSettings,
) -> TranscodeResult:
    """Transcode a completed file on disk.

    Args:
        input_path: Fully written input media file
        output_path: Output audio file (parent created if absent)
        settings: Encoder settings

    Returns:
        TranscodeResult

    Raises:
        TranscodeError: If the input is missing, the encoder cannot be
            started, or it exits non-zero
    """
    if not input_path.is_file():
        raise TranscodeError(f"Input file not found: {input_path}")

    ensure_parent_dir(output_path)
    cmd = build_command(str(input_path), output_path, settings)

    process = await _spawn(cmd, stdin=asyncio.subprocess.DEVNULL)
    _, stderr = await process.communicate()

    return _finish(output_path, process.returncode, stderr)


async def _feed(process: asyncio.subprocess.Process, stream: AsyncIterable[bytes]) -> int:
    """Copy stream into the process stdin, then close it."""
    stdin = process.stdin
    fed = 0
    try:
        async for chunk in stream:
            stdin.write(chunk)
            await stdin.drain()
            fed += len(chunk)
    except (BrokenPipeError, ConnectionResetError):
        logger.debug("Encoder closed its input after %d bytes", fed)
    finally:
        stdin.close()
        try:
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError):
            pass
    return fed


async def transcode_stream(
    stream: AsyncIterable[bytes],
    output_path: Path,
    settings: EncoderSettings,
) -> TranscodeResult:
    """Transcode a live byte stream piped into the encoder's stdin.

    Stderr is drained concurrently with feeding so the encoder never stalls
    on a full pipe. End of stream closes stdin, which the encoder sees as
    end of input.

    Args:
        stream: Source chunks, consumed exactly once
        output_path: Output audio file (parent created if absent)
        settings: Encoder settings

    Returns:
        TranscodeResult with bytes_fed set

    Raises:
        StreamError: If the source stream fails; the encoder is killed
        TranscodeError: If the encoder cannot be started or exits non-zero
    """
    ensure_parent_dir(output_path)
    cmd = build_command(PIPE_INPUT, output_path, settings)

    process = await _spawn(cmd, stdin=asyncio.subprocess.PIPE)
    stderr_task = asyncio.create_task(process.stderr.read())

    try:
        fed = await _feed(process, stream)
    except StreamError:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
        await stderr_task
        raise

    stderr = await stderr_task
    returncode = await process.wait()

    return _finish(output_path, returncode, stderr, bytes_fed=fed)
