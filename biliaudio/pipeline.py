"""
biliaudio.pipeline - Per-part download orchestration.

Runs locate → fetch → transcode for each part of a video under one of two
policies:
- sequential: parts in order, the first failure skips the rest
- concurrent: every part starts at once, failures stay isolated

Either way every part ends with an outcome and the run returns a
DownloadReport.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
from pydantic import BaseModel

from biliaudio.api.client import BiliClient
from biliaudio.api.parts import Part, resolve_parts
from biliaudio.api.playurl import locate_audio
from biliaudio.config import BiliAudioConfig
from biliaudio.exceptions import BiliAudioError, NotFoundError
from biliaudio.fetch.stream import download_to_file, open_stream
from biliaudio.logging import logger
from biliaudio.transcode.ffmpeg import transcode_file, transcode_stream

SUCCEEDED = "succeeded"
FAILED = "failed"
SKIPPED = "skipped"


class PlannedPart(BaseModel):
    """A part together with its derived output paths."""

    part: Part
    raw_path: Path
    audio_path: Path


class PartOutcome(BaseModel):
    """Result of one part's pipeline."""

    part: Part
    status: str
    audio_path: Path | None = None
    error_type: str | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED


class DownloadReport(BaseModel):
    """Aggregated outcomes of one download run."""

    video_id: str
    mode: str
    concurrency: str
    outcomes: list[PartOutcome]

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def ok(self) -> bool:
        return all(o.succeeded for o in self.outcomes)


def output_dir(video_id: str, config: BiliAudioConfig) -> Path:
    return config.download_dir / video_id


def plan_outputs(video_id: str, parts: list[Part], config: BiliAudioConfig) -> list[PlannedPart]:
    """Derive raw and audio paths for each part.

    Paths are <download_dir>/<video_id>/<name>.<ext>. With on_collision
    "overwrite", parts sharing a sanitized name share a path and the last
    writer wins. With "index", later duplicates are suffixed with their page
    number.
    """
    directory = output_dir(video_id, config)
    used: set[str] = set()
    planned = []

    for part in parts:
        stem = part.display_name
        if config.on_collision == "index":
            # compared case-insensitively
            taken = {name.casefold() for name in used}
            if stem.casefold() in taken:
                stem = f"{part.display_name} ({part.page})"
            counter = 2
            while stem.casefold() in taken:
                stem = f"{part.display_name} ({part.page}-{counter})"
                counter += 1
        elif stem in used:
            logger.warning("Part %d shares the name '%s'; its output overwrites", part.page, stem)
        used.add(stem)

        planned.append(
            PlannedPart(
                part=part,
                raw_path=directory / f"{stem}.{config.raw_extension}",
                audio_path=directory / f"{stem}.{config.audio_extension}",
            )
        )

    return planned


async def process_part(
    client: BiliClient,
    video_id: str,
    planned: PlannedPart,
    config: BiliAudioConfig,
    console=None,
) -> Path:
    """Run locate → fetch → transcode for one part.

    Args:
        client: API client
        video_id: BV identifier
        planned: Part with its output paths
        config: Run configuration (mode, selection, encoder)
        console: Optional rich console for output

    Returns:
        Path of the transcoded audio file

    Raises:
        RemoteError, NotFoundError, StreamError, TranscodeError
    """
    part = planned.part
    label = f"P{part.page} {part.display_name}"

    location = await locate_audio(client, video_id, part.media_id, config.audio_selection)

    if config.mode == "buffered":
        if console:
            console.print(f"[dim]  {label}: downloading...[/dim]")
        size = await download_to_file(client, location.url, planned.raw_path)
        logger.info("%s: downloaded %d bytes to %s", label, size, planned.raw_path)

        if console:
            console.print(f"[dim]  {label}: transcoding...[/dim]")
        await transcode_file(planned.raw_path, planned.audio_path, config.encoder)

        if not config.keep_raw:
            planned.raw_path.unlink(missing_ok=True)
    else:
        if console:
            console.print(f"[dim]  {label}: streaming into encoder...[/dim]")
        async with open_stream(client, location.url) as stream:
            result = await transcode_stream(stream, planned.audio_path, config.encoder)
        logger.info("%s: piped %s bytes into encoder", label, result.bytes_fed)

    return planned.audio_path


def _remove_partial(planned: PlannedPart) -> None:
    for path in (planned.audio_path, planned.raw_path):
        if path.exists():
            logger.debug("Removing partial file %s", path)
            path.unlink()


async def run_part(
    client: BiliClient,
    video_id: str,
    planned: PlannedPart,
    config: BiliAudioConfig,
    console=None,
) -> PartOutcome:
    """Run one part's pipeline and capture its failure as an outcome."""
    part = planned.part
    try:
        audio_path = await process_part(client, video_id, planned, config, console=console)
    except Exception as e:
        if isinstance(e, (BiliAudioError, OSError)):
            logger.error("P%d %s failed: %s", part.page, part.display_name, e)
        else:
            logger.exception("P%d %s failed unexpectedly", part.page, part.display_name)
        if not config.keep_partial:
            _remove_partial(planned)
        return PartOutcome(
            part=part,
            status=FAILED,
            error_type=type(e).__name__,
            error=str(e),
        )

    if console:
        console.print(f"[green]✓[/green] P{part.page} {part.display_name}")
    return PartOutcome(part=part, status=SUCCEEDED, audio_path=audio_path)


async def run_sequential(
    client: BiliClient,
    video_id: str,
    planned_parts: list[PlannedPart],
    config: BiliAudioConfig,
    console=None,
) -> list[PartOutcome]:
    """Process parts one at a time; the first failure skips the rest."""
    outcomes: list[PartOutcome] = []
    failed = False

    for planned in planned_parts:
        if failed:
            outcomes.append(PartOutcome(part=planned.part, status=SKIPPED))
            continue
        outcome = await run_part(client, video_id, planned, config, console=console)
        outcomes.append(outcome)
        failed = not outcome.succeeded

    return outcomes


async def run_concurrent(
    client: BiliClient,
    video_id: str,
    planned_parts: list[PlannedPart],
    config: BiliAudioConfig,
    console=None,
) -> list[PartOutcome]:
    """Start every part at once and collect all outcomes in part order."""
    tasks = [
        asyncio.create_task(run_part(client, video_id, planned, config, console=console))
        for planned in planned_parts
    ]
    return list(await asyncio.gather(*tasks))


def select_pages(parts: list[Part], pages: list[int] | None) -> list[Part]:
    """Keep only the requested page numbers, preserving API order."""
    if not pages:
        return parts
    wanted = set(pages)
    selected = [p for p in parts if p.page in wanted]
    missing = wanted - {p.page for p in selected}
    if missing:
        raise NotFoundError(f"No such page(s): {', '.join(str(p) for p in sorted(missing))}")
    return selected


async def download_video(
    video_id: str,
    config: BiliAudioConfig,
    pages: list[int] | None = None,
    console=None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DownloadReport:
    """Download and transcode the audio of a video's parts.

    Args:
        video_id: BV identifier
        config: Run configuration
        pages: Optional page numbers to restrict the run to
        console: Optional rich console for output
        transport: Optional httpx transport (used by tests)

    Returns:
        DownloadReport with one outcome per selected part

    Raises:
        RemoteError: If the part list cannot be resolved
        NotFoundError: If the video or a requested page has no parts
    """
    async with BiliClient(config, transport=transport) as client:
        parts = select_pages(await resolve_parts(client, video_id), pages)
        planned_parts = plan_outputs(video_id, parts, config)

        if console:
            console.print(
                f"[cyan]{video_id}: {len(planned_parts)} part(s), "
                f"{config.mode} mode, {config.concurrency}[/cyan]"
            )

        if config.concurrency == "concurrent":
            outcomes = await run_concurrent(client, video_id, planned_parts, config, console)
        else:
            outcomes = await run_sequential(client, video_id, planned_parts, config, console)

    return DownloadReport(
        video_id=video_id,
        mode=config.mode,
        concurrency=config.concurrency,
        outcomes=outcomes,
    )
