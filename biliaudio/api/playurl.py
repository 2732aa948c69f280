"""
biliaudio.api.playurl - Part to direct audio URL resolution.

Requests the DASH play URL of a part and picks one of the audio
representations it lists. The returned URL is short-lived and signed;
it is used once and never cached.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from biliaudio.api.client import BiliClient
from biliaudio.exceptions import NotFoundError, RemoteError
from biliaudio.logging import logger

PLAYURL_PATH = "/x/player/wbi/playurl"


class AudioCandidate(BaseModel):
    """One DASH audio representation."""

    quality_id: int | None = None
    url: str
    backup_urls: list[str] = Field(default_factory=list)
    bandwidth: int = 0
    codecs: str | None = None


class MediaLocation(BaseModel):
    """Direct URL of the selected audio representation."""

    model_config = ConfigDict(frozen=True)

    url: str
    quality_id: int | None = None
    bandwidth: int = 0
    codecs: str | None = None


def parse_candidates(data: Any) -> list[AudioCandidate]:
    """Extract audio candidates from a play URL payload.

    Raises:
        RemoteError: If the payload or one of its candidates is malformed
        NotFoundError: If it carries no usable audio representation
    """
    if not isinstance(data, dict):
        raise RemoteError("Malformed play URL payload")

    dash = data.get("dash")
    if not isinstance(dash, dict):
        raise NotFoundError("No DASH streams in play URL response")

    audio = dash.get("audio") or []
    if not isinstance(audio, list):
        raise RemoteError("Malformed audio list in play URL response")

    candidates = []
    for index, entry in enumerate(audio, start=1):
        if not isinstance(entry, dict):
            continue
        url = entry.get("baseUrl") or entry.get("base_url")
        if not url:
            continue
        try:
            candidate = AudioCandidate(
                quality_id=entry.get("id"),
                url=url,
                backup_urls=entry.get("backupUrl") or entry.get("backup_url") or [],
                bandwidth=entry.get("bandwidth") or 0,
                codecs=entry.get("codecs"),
            )
        except ValidationError as e:
            fields = ", ".join(str(error["loc"][0]) for error in e.errors())
            raise RemoteError(f"Malformed audio candidate {index}: bad {fields}") from e
        candidates.append(candidate)

    if not candidates:
        raise NotFoundError("No audio stream in play URL response")
    return candidates


def select_candidate(candidates: list[AudioCandidate], selection: str = "first") -> AudioCandidate:
    """Pick one audio representation.

    Args:
        candidates: Non-empty list in response order
        selection: "first" keeps the API's ordering; "highest_bandwidth"
            takes the largest bandwidth, earliest on ties

    Returns:
        The selected candidate
    """
    if not candidates:
        raise NotFoundError("No audio candidates to select from")
    if selection == "first":
        return candidates[0]
    if selection == "highest_bandwidth":
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.bandwidth > best.bandwidth:
                best = candidate
        return best
    raise ValueError(f"Unknown audio selection policy: {selection}")


async def locate_audio(
    client: BiliClient,
    video_id: str,
    media_id: str,
    selection: str = "first",
) -> MediaLocation:
    """Resolve a part's media id into a direct audio URL.

    Args:
        client: API client
        video_id: BV identifier
        media_id: Part cid
        selection: Candidate selection policy

    Returns:
        MediaLocation of the selected audio stream

    Raises:
        RemoteError: If the request fails or the payload is malformed
        NotFoundError: If the response lists no audio stream
    """
    params = {
        "fnval": client.config.fnval,
        "bvid": video_id,
        "cid": media_id,
    }
    data = await client.get_json(PLAYURL_PATH, params=params)

    candidates = parse_candidates(data)
    chosen = select_candidate(candidates, selection)
    logger.debug(
        "cid %s: %d audio candidates, selected id=%s bandwidth=%s",
        media_id,
        len(candidates),
        chosen.quality_id,
        chosen.bandwidth,
    )

    return MediaLocation(
        url=chosen.url,
        quality_id=chosen.quality_id,
        bandwidth=chosen.bandwidth,
        codecs=chosen.codecs,
    )
