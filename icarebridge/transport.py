"""Host transport: fetch a resource by URI."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import unquote, urlsplit

import httpx

from icarebridge.utils.exceptions import ResourceFetchError, sanitize_error_message

USER_AGENT = "icarebridge/1.0"
_REQUEST_TIMEOUT = 30.0


class ResourceTransport(ABC):
    """Byte fetch-by-URI primitive. Any failure raises ResourceFetchError."""

    @abstractmethod
    async def fetch(self, uri: str) -> bytes:
        """Return the content at ``uri``."""

    async def aclose(self) -> None:
        """Release transport resources."""


class HttpTransport(ResourceTransport):
    """Fetch http(s) URIs with httpx; file:// URIs and bare paths are read from disk."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = _REQUEST_TIMEOUT,
        user_agent: str = USER_AGENT,
        follow_redirects: bool = True,
        max_redirects: int = 5,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            follow_redirects=follow_redirects,
            max_redirects=max_redirects,
        )

    async def fetch(self, uri: str) -> bytes:
        try:
            scheme = urlsplit(uri).scheme.lower()
        except ValueError as e:
            raise ResourceFetchError(uri, f"Invalid URL: {e}") from e
        if scheme in ("http", "https"):
            return await self._fetch_http(uri)
        if scheme in ("", "file"):
            return await self._read_local(uri)
        raise ResourceFetchError(uri, f"Unsupported scheme '{scheme}'")

    async def _fetch_http(self, uri: str) -> bytes:
        try:
            r = await self._client.get(uri)
        except httpx.TimeoutException as e:
            raise ResourceFetchError(uri, "request timed out") from e
        except httpx.InvalidURL as e:
            raise ResourceFetchError(uri, f"Invalid URL: {e}") from e
        except httpx.HTTPError as e:
            raise ResourceFetchError(uri, sanitize_error_message(str(e)) or type(e).__name__) from e
        if not r.is_success:
            raise ResourceFetchError(uri, f"HTTP {r.status_code}", status_code=r.status_code)
        return r.content

    async def _read_local(self, uri: str) -> bytes:
        parts = urlsplit(uri)
        path = Path(unquote(parts.path)) if parts.scheme else Path(uri)
        try:
            return await asyncio.to_thread(path.expanduser().read_bytes)
        except OSError as e:
            raise ResourceFetchError(uri, e.strerror or str(e)) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
