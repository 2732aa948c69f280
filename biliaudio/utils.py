"""
biliaudio.utils - Shared utility functions.

Filename sanitizing and directory handling shared by the fetcher,
the transcoder and the orchestrator.
"""

from __future__ import annotations

import re
from pathlib import Path

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]+')


def sanitize_filename(name: str) -> str:
    """Replace filesystem-reserved characters with underscores.

    A run of reserved characters collapses into a single underscore, so the
    result never contains a reserved character and sanitizing twice is a no-op.

    Args:
        name: Raw part title

    Returns:
        Name safe to use as a file name component
    """
    return INVALID_FILENAME_CHARS.sub("_", name)


def ensure_parent_dir(path: Path) -> Path:
    """Create the parent directory of path (recursively) if absent."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def format_size(path: Path) -> str:
    """Format file size in human-readable format."""
    if not path.exists():
        return "-"
    size = path.stat().st_size
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS or MM:SS.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (HH:MM:SS if >= 1 hour, otherwise MM:SS)
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
