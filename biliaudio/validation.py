"""
biliaudio.validation - Dependency checks and input validation.

Validates the encoder installation and the video identifiers given on the
command line before any request is made.
"""

from __future__ import annotations

import re
import shutil
import subprocess
from typing import Any

from biliaudio.config import EncoderSettings
from biliaudio.exceptions import DependencyError, ValidationError

BVID_PATTERN = re.compile(r"BV[0-9A-Za-z]{10}")
CANONICAL_BVID = re.compile(r"^BV[0-9A-Za-z]{10}$")
ENCODER_VERSION = re.compile(r"version (\S+)")


def check_encoder(settings: EncoderSettings) -> dict[str, str]:
    """Locate the configured encoder and read its version banner.

    Raises:
        DependencyError: If the encoder binary cannot be found
    """
    path = shutil.which(settings.binary)
    if not path:
        raise DependencyError(
            settings.binary,
            "Encoder not found",
            "Install FFmpeg (brew install ffmpeg / apt install ffmpeg) "
            "or set encoder.binary in biliaudio.yaml",
        )

    try:
        proc = subprocess.run([path, "-version"], capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired):
        return {"path": path, "version": "unknown"}

    match = ENCODER_VERSION.search(proc.stdout)
    return {"path": path, "version": match.group(1) if match else "unknown"}


def normalize_video_id(value: str) -> str:
    """Turn user input into a video id usable as a directory name.

    Accepts a bare id or a video page URL containing a BV id.

    Raises:
        ValidationError: If the id is empty or not a safe path component
    """
    value = value.strip()
    if "/" in value:
        match = BVID_PATTERN.search(value)
        if match:
            return match.group(0)

    if not value:
        raise ValidationError("Video id must not be empty")
    if "/" in value or "\\" in value or value in {".", ".."}:
        raise ValidationError(f"Invalid video id: {value}")
    return value


def validate_video_id(video_id: str) -> dict[str, Any]:
    """Validate a normalized video id.

    Returns:
        Dict with 'valid' and 'warnings'
    """
    result: dict[str, Any] = {"valid": True, "warnings": []}

    if not CANONICAL_BVID.match(video_id):
        result["warnings"].append(
            f"'{video_id}' does not look like a BV id (BV followed by 10 characters)"
        )

    return result
