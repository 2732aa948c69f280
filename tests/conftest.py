"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import stat
from pathlib import Path

import httpx
import pytest

from biliaudio.config import BiliAudioConfig, EncoderSettings

ENCODER_ARGS = """#!/bin/sh
input=""
output=""
while [ $# -gt 0 ]; do
  case "$1" in
    -i) input="$2"; shift 2 ;;
    *) output="$1"; shift ;;
  esac
done
"""

COPY_BODY = """
if [ "$input" = "pipe:0" ]; then
  cat > "$output"
else
  cat "$input" > "$output"
fi
"""


class InterruptedStream(httpx.AsyncByteStream):
    """Response body that fails after its first chunk."""

    def __init__(self, head: bytes) -> None:
        self.head = head

    async def __aiter__(self):
        yield self.head
        raise httpx.ReadError("connection reset by peer")


class FakeBilibili:
    """In-memory stand-in for the page list, play URL and media endpoints."""

    def __init__(self) -> None:
        self.pages: dict[str, list[dict]] = {}
        self.audio: dict[str, list[dict]] = {}
        self.media: dict[str, bytes | httpx.AsyncByteStream] = {}
        self.requests: list[httpx.Request] = []

    def add_part(
        self,
        video_id: str,
        cid: str,
        name: str,
        url: str | None,
        body: bytes | httpx.AsyncByteStream = b"",
    ) -> None:
        entries = self.pages.setdefault(video_id, [])
        entries.append(
            {"cid": int(cid) if cid.isdigit() else cid, "page": len(entries) + 1, "part": name}
        )
        self.audio[cid] = []
        if url is not None:
            self.audio[cid].append({"id": 30280, "baseUrl": url, "bandwidth": 128000})
            self.media[url] = body

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/x/player/pagelist":
            video_id = request.url.params.get("bvid")
            if video_id not in self.pages:
                return httpx.Response(200, json={"code": -404, "message": "not found"})
            return httpx.Response(
                200, json={"code": 0, "message": "0", "data": self.pages[video_id]}
            )

        if path == "/x/player/wbi/playurl":
            cid = request.url.params.get("cid")
            data = {"dash": {"audio": self.audio.get(cid, [])}}
            return httpx.Response(200, json={"code": 0, "message": "0", "data": data})

        body = self.media.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        if isinstance(body, httpx.AsyncByteStream):
            return httpx.Response(200, stream=body)
        return httpx.Response(200, content=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def media_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if not r.url.path.startswith("/x/player/")]


@pytest.fixture
def fake_api() -> FakeBilibili:
    return FakeBilibili()


@pytest.fixture
def make_encoder(tmp_path: Path):
    """Create an executable fake encoder with the given shell body."""

    def _make(body: str = COPY_BODY, name: str = "fake-ffmpeg") -> Path:
        script = tmp_path / "bin" / name
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text(ENCODER_ARGS + body)
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _make


@pytest.fixture
def encoder_settings(make_encoder) -> EncoderSettings:
    return EncoderSettings(binary=str(make_encoder()))


@pytest.fixture
def make_config(tmp_path: Path, encoder_settings: EncoderSettings):
    """Build a config writing under tmp_path with the fake encoder."""

    def _make(**overrides) -> BiliAudioConfig:
        values = {
            "download_dir": tmp_path / "download",
            "encoder": encoder_settings,
        }
        values.update(overrides)
        return BiliAudioConfig(**values)

    return _make
