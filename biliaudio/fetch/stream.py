"""
biliaudio.fetch.stream - Streaming media download.

Wraps an open httpx response as a ByteStream and provides the buffered
download used before file-mode transcoding.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx

from biliaudio.api.client import BiliClient
from biliaudio.exceptions import RemoteError, StreamError
from biliaudio.logging import logger
from biliaudio.utils import ensure_parent_dir


class ByteStream:
    """Single-consumer async iterator over a media response body."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self.url = str(response.request.url)
        self.bytes_read = 0
        self._consumed = False

    @property
    def content_length(self) -> int | None:
        value = self._response.headers.get("content-length")
        return int(value) if value and value.isdigit() else None

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise StreamError(f"Stream for {self.url} was already consumed")
        self._consumed = True

        try:
            async for chunk in self._response.aiter_bytes():
                self.bytes_read += len(chunk)
                yield chunk
        except httpx.HTTPError as e:
            raise StreamError(
                f"Transfer interrupted after {self.bytes_read} bytes: {e}"
            ) from e


@asynccontextmanager
async def open_stream(client: BiliClient, url: str) -> AsyncIterator[ByteStream]:
    """Open url as a ByteStream positioned at the start of the resource.

    Raises:
        RemoteError: If the connection fails or the server answers non-2xx
    """
    try:
        response = await client.open(url)
    except httpx.HTTPError as e:
        raise RemoteError(f"Cannot open media stream: {e}") from e

    try:
        if response.is_error:
            raise RemoteError(f"Media server returned HTTP {response.status_code}")
        yield ByteStream(response)
    finally:
        await response.aclose()


async def download_to_file(client: BiliClient, url: str, path: Path) -> int:
    """Drain the media at url into path.

    The parent directory is created if needed. Returns only after every byte
    has been flushed and synced to disk. A partially written file is left in
    place when the transfer fails.

    Args:
        client: API client (carries the request headers)
        url: Direct media URL
        path: Destination file

    Returns:
        Number of bytes written

    Raises:
        RemoteError: If the stream cannot be opened
        StreamError: If the transfer is interrupted
    """
    ensure_parent_dir(path)

    async with open_stream(client, url) as stream:
        with open(path, "wb") as f:
            async for chunk in stream:
                f.write(chunk)
            f.flush()
            await asyncio.to_thread(os.fsync, f.fileno())

    logger.debug("Wrote %d bytes to %s", stream.bytes_read, path)
    return stream.bytes_read
