"""BlobFetcher — download an object through a signed URL with httpx."""

from __future__ import annotations

import logging

import httpx

from cumulus.exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 10.0


class BlobFetcher:
    """Fetches blob bytes over HTTP with a short, fixed timeout.

    Pass *client* to reuse a configured ``httpx.AsyncClient`` (tests pass
    one built on ``httpx.MockTransport``); otherwise one is created and
    owned by the fetcher.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout

    async def fetch(self, url: str) -> bytes:
        """Return the body at *url*; raise ``StorageError`` on any failure."""
        try:
            resp = await self._client.get(url, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to download blob: {e}") from e
        if resp.status_code != 200:
            logger.warning("Blob fetch returned HTTP %d", resp.status_code)
            raise StorageError(f"Failed to download blob: HTTP {resp.status_code}")
        return resp.content

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
