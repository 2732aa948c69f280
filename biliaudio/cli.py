"""
biliaudio.cli - Typer CLI entry point.

Provides the download, parts, init and doctor commands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from biliaudio import __version__
from biliaudio.config import BiliAudioConfig, create_default_config, load_config, write_config
from biliaudio.exceptions import BiliAudioError
from biliaudio.logging import configure_logging
from biliaudio.utils import format_duration, format_size

app = typer.Typer(
    name="biliaudio",
    help="Download the audio of Bilibili videos.\n\n"
    "Resolves every part of a video, fetches its DASH audio stream and "
    "transcodes it with FFmpeg.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"biliaudio {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """biliaudio - Bilibili audio downloader."""
    pass


def _load_config(config_path: str | None, cookie: str | None) -> BiliAudioConfig:
    config = load_config(Path(config_path) if config_path else None)
    if cookie:
        config = config.model_copy(update={"cookie": cookie})
    return config


def _resolve_video_id(value: str | None) -> str:
    from biliaudio.validation import normalize_video_id, validate_video_id

    if not value:
        value = typer.prompt("BVID")
    video_id = normalize_video_id(value)
    for warning in validate_video_id(video_id)["warnings"]:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    return video_id


@app.command("download")
def download(
    video: str | None = typer.Argument(None, help="BV id or video URL (prompted if omitted)"),
    mode: str | None = typer.Option(
        None, "--mode", "-m", help="buffered (download then transcode) or piped"
    ),
    concurrent: bool | None = typer.Option(
        None,
        "--concurrent/--sequential",
        help="Process all parts at once, or one after another",
    ),
    pages: list[int] | None = typer.Option(
        None, "--page", "-p", help="Only download this page number (repeatable)"
    ),
    output: str | None = typer.Option(None, "--output", "-o", help="Download directory"),
    selection: str | None = typer.Option(
        None, "--selection", help="Audio stream choice: first or highest_bandwidth"
    ),
    config_path: str | None = typer.Option(None, "--config", "-c", help="Config file"),
    cookie: str | None = typer.Option(None, "--cookie", help="Session cookie"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Download and transcode the audio of a video's parts."""
    configure_logging(verbose)

    from biliaudio.pipeline import FAILED, SKIPPED, SUCCEEDED, download_video

    try:
        config = _load_config(config_path, cookie)
        overrides = {
            "mode": mode,
            "download_dir": output,
            "audio_selection": selection,
        }
        if concurrent is not None:
            overrides["concurrency"] = "concurrent" if concurrent else "sequential"
        overrides = {k: v for k, v in overrides.items() if v is not None}
        if overrides:
            config = BiliAudioConfig(**{**config.model_dump(), **overrides})
        video_id = _resolve_video_id(video)
    except (BiliAudioError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not config.cookie:
        console.print("[yellow]Warning: no cookie configured; audio quality may be limited[/yellow]")

    try:
        report = asyncio.run(download_video(video_id, config, pages=pages, console=console))
    except BiliAudioError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Audio Download: {video_id}")
    table.add_column("Page", style="cyan")
    table.add_column("Part", style="cyan")
    table.add_column("Size", style="green")
    table.add_column("Status", style="yellow")

    for outcome in report.outcomes:
        part = outcome.part
        if outcome.status == SUCCEEDED:
            status = "[green]✓ Done[/green]"
            size = format_size(outcome.audio_path)
        elif outcome.status == FAILED:
            status = f"[red]{outcome.error_type}: {outcome.error}[/red]"
            size = "-"
        else:
            status = "[dim]Skipped[/dim]"
            size = "-"
        table.add_row(str(part.page), part.display_name, size, status)

    console.print(table)
    console.print(
        f"\n[green]✓[/green] Succeeded {report.count(SUCCEEDED)}, "
        f"failed {report.count(FAILED)}, skipped {report.count(SKIPPED)}"
    )

    if not report.ok:
        raise typer.Exit(1)


@app.command("parts")
def list_parts(
    video: str = typer.Argument(..., help="BV id or video URL"),
    config_path: str | None = typer.Option(None, "--config", "-c", help="Config file"),
    cookie: str | None = typer.Option(None, "--cookie", help="Session cookie"),
) -> None:
    """List the parts of a video."""
    from biliaudio.api.client import BiliClient
    from biliaudio.api.parts import resolve_parts

    async def _resolve(video_id: str, config: BiliAudioConfig):
        async with BiliClient(config) as client:
            return await resolve_parts(client, video_id)

    try:
        config = _load_config(config_path, cookie)
        video_id = _resolve_video_id(video)
        parts = asyncio.run(_resolve(video_id, config))
    except BiliAudioError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Parts: {video_id}")
    table.add_column("Page", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("CID")
    table.add_column("Duration")

    for part in parts:
        duration = (
            format_duration(part.duration_seconds) if part.duration_seconds is not None else "-"
        )
        table.add_row(str(part.page), part.display_name, part.media_id, duration)

    console.print(table)


@app.command("init")
def init_config(
    path: str = typer.Option("biliaudio.yaml", "--path", "-d", help="Config file to create"),
    cookie: str = typer.Option("", "--cookie", help="Session cookie to store"),
) -> None:
    """Write a starter configuration file."""
    config_file = Path(path)
    if config_file.exists():
        console.print(f"[red]Error: '{config_file}' already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(cookie), config_file)
    console.print(f"[green]✓[/green] Created {config_file}")
    if not cookie:
        console.print("[dim]  Add your session cookie under 'cookie:'[/dim]")


@app.command("doctor")
def run_doctor(
    config_path: str | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Check dependencies and configuration."""
    console.print("[cyan]Running preflight checks...[/cyan]\n")

    from biliaudio.exceptions import DependencyError
    from biliaudio.validation import check_encoder

    table = Table(title="Dependency Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Version/Details")

    all_passed = True

    try:
        config = _load_config(config_path, None)
    except BiliAudioError as e:
        table.add_row("Config", "✗ Invalid", str(e))
        console.print(table)
        raise typer.Exit(1)

    source = str(config.config_path) if config.config_path else "defaults"
    table.add_row("Config", "✓ Loaded", source)

    try:
        versions = check_encoder(config.encoder)
        table.add_row("FFmpeg", "✓ Installed", f"{versions['version']} ({versions['path']})")
    except DependencyError as e:
        table.add_row("FFmpeg", "✗ Missing", e.install_hint or "")
        all_passed = False

    if config.cookie:
        table.add_row("Cookie", "✓ Set", f"{len(config.cookie)} characters")
    else:
        table.add_row("Cookie", "✗ Not set", "Requests run without a session")
        all_passed = False

    console.print(table)

    if all_passed:
        console.print("\n[green]✓ All checks passed[/green]")
    else:
        console.print("\n[yellow]⚠ Some checks failed[/yellow]")
        raise typer.Exit(1)
