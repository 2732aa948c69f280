"""
biliaudio.config - YAML config loading and validation.

Handles loading biliaudio.yaml (or a legacy miaoConfig.json) from the working
directory, applying defaults, and validating all parameters. The session
cookie and browser headers live here and are handed to the API client
explicitly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from biliaudio.exceptions import ConfigError

CONFIG_FILENAMES = ("biliaudio.yaml", "miaoConfig.json")

DEFAULT_HEADERS: dict[str, str] = {
    "accept": "application/json, text/plain, */*",
    "accept-language": "zh-CN,zh;q=0.9,en;q=0.8,en-GB;q=0.7,en-US;q=0.6",
    "cache-control": "no-cache",
    "dnt": "1",
    "origin": "https://www.bilibili.com",
    "pragma": "no-cache",
    "priority": "u=1, i",
    "referer": "https://www.bilibili.com/",
    "sec-ch-ua": '"Chromium";v="128", "Not;A=Brand";v="24", "Microsoft Edge";v="128"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-site",
    "user-agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/128.0.0.0 Safari/537.36 Edg/128.0.0.0"
    ),
}


class EncoderSettings(BaseModel):
    """External encoder invocation settings."""

    binary: str = "ffmpeg"
    quality_args: list[str] = Field(default_factory=lambda: ["-q:a", "0"])
    loglevel: str = "warning"
    overwrite: bool = True

    @field_validator("binary")
    @classmethod
    def validate_binary(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("encoder binary must not be empty")
        return v


class BiliAudioConfig(BaseModel):
    """Resolved configuration for a download run."""

    cookie: str = ""
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))

    api_base: str = "https://api.bilibili.com"
    fnval: int = Field(default=4048, ge=0)
    timeout: float | None = Field(default=None, gt=0.0)

    download_dir: Path = Path("download")
    raw_extension: str = "m4s"
    audio_extension: str = "mp3"

    mode: str = "buffered"
    concurrency: str = "sequential"
    audio_selection: str = "first"
    on_collision: str = "overwrite"

    keep_partial: bool = True
    keep_raw: bool = True

    encoder: EncoderSettings = Field(default_factory=EncoderSettings)

    config_path: Path | None = None

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        valid = {"buffered", "piped"}
        if v not in valid:
            raise ValueError(f"mode must be one of: {valid}")
        return v

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: str) -> str:
        valid = {"sequential", "concurrent"}
        if v not in valid:
            raise ValueError(f"concurrency must be one of: {valid}")
        return v

    @field_validator("audio_selection")
    @classmethod
    def validate_audio_selection(cls, v: str) -> str:
        valid = {"first", "highest_bandwidth"}
        if v not in valid:
            raise ValueError(f"audio_selection must be one of: {valid}")
        return v

    @field_validator("on_collision")
    @classmethod
    def validate_on_collision(cls, v: str) -> str:
        valid = {"overwrite", "index"}
        if v not in valid:
            raise ValueError(f"on_collision must be one of: {valid}")
        return v

    @field_validator("raw_extension", "audio_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        v = v.lstrip(".")
        if not v:
            raise ValueError("extension must not be empty")
        return v

    def request_headers(self) -> dict[str, str]:
        """Headers sent with every API and media request."""
        headers = dict(self.headers)
        if self.cookie:
            headers["cookie"] = self.cookie
        return headers


def find_config_file(directory: Path | None = None) -> Path | None:
    """Find the first known config file in directory (default: cwd)."""
    directory = directory or Path.cwd()
    for name in CONFIG_FILENAMES:
        candidate = directory / name
        if candidate.exists():
            return candidate
    return None


def load_config(path: Path | None = None) -> BiliAudioConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file; when omitted the working directory is
            searched and defaults are used if nothing is found

    Returns:
        Validated BiliAudioConfig

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    if path is None:
        path = find_config_file()
        if path is None:
            return BiliAudioConfig()
    elif not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"{path} must contain a mapping")

    return build_config(raw_config, config_path=path)


def build_config(raw_config: dict[str, Any], config_path: Path | None = None) -> BiliAudioConfig:
    """Validate a raw config mapping, merging user headers over the defaults."""
    merged = {k: v for k, v in raw_config.items() if v is not None}
    if isinstance(merged.get("headers"), dict):
        headers = dict(DEFAULT_HEADERS)
        headers.update({str(k).lower(): str(v) for k, v in merged["headers"].items()})
        merged["headers"] = headers
    merged["config_path"] = config_path

    try:
        return BiliAudioConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def create_default_config(cookie: str = "") -> dict[str, Any]:
    """Create a default config for a new working directory."""
    return {
        "cookie": cookie,
        "download_dir": "download",
        "mode": "buffered",
        "concurrency": "sequential",
        "audio_selection": "first",
        "on_collision": "overwrite",
        "keep_partial": True,
        "keep_raw": True,
        "encoder": {
            "binary": "ffmpeg",
            "quality_args": ["-q:a", "0"],
        },
    }


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
