"""
biliaudio.api.parts - Video id to part list resolution.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, ValidationError

from biliaudio.api.client import BiliClient
from biliaudio.exceptions import NotFoundError, RemoteError
from biliaudio.utils import sanitize_filename

PAGELIST_PATH = "/x/player/pagelist"


class Part(BaseModel):
    """One independently downloadable page of a video."""

    model_config = ConfigDict(frozen=True)

    media_id: str
    display_name: str
    page: int = 1
    duration_seconds: int | None = None


async def resolve_parts(client: BiliClient, video_id: str) -> list[Part]:
    """Resolve a video id into its ordered parts.

    Args:
        client: API client
        video_id: BV identifier

    Returns:
        Parts in the order the API lists them, with sanitized display names

    Raises:
        RemoteError: If the request fails or the payload is malformed
        NotFoundError: If the video has no parts
    """
    data = await client.get_json(PAGELIST_PATH, params={"bvid": video_id})

    if not isinstance(data, list):
        raise RemoteError(f"Malformed page list for {video_id}")
    if not data:
        raise NotFoundError(f"No parts found for {video_id}")

    parts = []
    for index, entry in enumerate(data, start=1):
        try:
            cid = entry["cid"]
            title = entry["part"]
        except (KeyError, TypeError) as e:
            raise RemoteError(f"Malformed page entry {index} for {video_id}") from e

        try:
            part = Part(
                media_id=str(cid),
                display_name=sanitize_filename(str(title)) or f"P{index}",
                page=entry.get("page") or index,
                duration_seconds=entry.get("duration"),
            )
        except ValidationError as e:
            fields = ", ".join(str(error["loc"][0]) for error in e.errors())
            raise RemoteError(
                f"Malformed page entry {index} for {video_id}: bad {fields}"
            ) from e
        parts.append(part)

    return parts
