"""
biliaudio.api.client - HTTP client wrapper using httpx.

Every request carries the configured cookie and browser headers. Responses
use the platform envelope {"code", "message", "data"}; a non-zero code is
reported as a RemoteError.
"""

from __future__ import annotations

from typing import Any

import httpx

from biliaudio.config import BiliAudioConfig
from biliaudio.exceptions import RemoteError
from biliaudio.logging import logger


class BiliClient:
    """Async API client bound to one configuration."""

    def __init__(
        self,
        config: BiliAudioConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.api_base = config.api_base.rstrip("/")
        self._client = httpx.AsyncClient(
            headers=config.request_headers(),
            timeout=config.timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> BiliClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.api_base}{path}"

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET an API endpoint and return the envelope's data field.

        Args:
            path: Endpoint path relative to api_base, or an absolute URL
            params: Query parameters

        Returns:
            The "data" member of the response envelope

        Raises:
            RemoteError: On transport failure, non-2xx status, malformed JSON
                or a non-zero envelope code
        """
        url = self._url(path)
        logger.debug("GET %s %s", url, params or {})

        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise RemoteError(f"Request to {url} failed: {e}") from e

        if response.is_error:
            raise RemoteError(f"{url} returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteError(f"{url} returned malformed JSON") from e

        if not isinstance(payload, dict):
            raise RemoteError(f"{url} returned an unexpected payload")

        code = payload.get("code", 0)
        if code != 0:
            message = payload.get("message") or "unknown error"
            raise RemoteError(f"API error {code}: {message}", code=code)

        return payload.get("data")

    async def open(self, url: str) -> httpx.Response:
        """Send a streaming GET; the caller must close the response."""
        logger.debug("GET (stream) %s", url)
        request = self._client.build_request("GET", url)
        return await self._client.send(request, stream=True)
