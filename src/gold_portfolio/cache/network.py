"""Network side of the cache router: one bounded fetch per intercepted request."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, runtime_checkable

import httpx

from gold_portfolio.cache.models import InterceptedRequest, StoredResponse
from gold_portfolio.core.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

# Headers that describe one hop or are recomputed by httpx/Starlette
_HOP_BY_HOP = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
    "accept-encoding",
    "content-encoding",
})


@runtime_checkable
class Network(Protocol):
    """Fetches a request from the origin, bounded by ``timeout`` seconds."""

    async def fetch(
        self, request: InterceptedRequest, *, timeout: float, no_store: bool = False
    ) -> StoredResponse: ...


def _forwardable(headers: dict[str, str]) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in _HOP_BY_HOP}


class HttpNetwork:
    """httpx-backed Network.

    Each fetch carries its own deadline covering connect, send and the full
    body read. On expiry the request is cancelled and reported as
    ``UpstreamUnavailable``. The default client sets no timeout of its own,
    so that deadline is the only one. HTTP error statuses are not failures:
    they are returned like any other response.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(follow_redirects=True, timeout=None)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(
        self, request: InterceptedRequest, *, timeout: float, no_store: bool = False
    ) -> StoredResponse:
        headers = _forwardable(request.headers)
        if no_store:
            headers["cache-control"] = "no-store"
            headers["pragma"] = "no-cache"

        try:
            response = await asyncio.wait_for(
                self._client.request(
                    request.method,
                    request.url,
                    headers=headers,
                    content=request.body or None,
                ),
                timeout,
            )
        except TimeoutError as e:
            raise UpstreamUnavailable(
                f"Timed out after {timeout:g}s: {request.url}",
                context={"url": request.url, "error": "timeout"},
            ) from e
        except httpx.RequestError as e:
            raise UpstreamUnavailable(
                f"Network error for {request.url}: {e}",
                context={"url": request.url, "error": str(e)},
            ) from e

        return StoredResponse(
            status=response.status_code,
            headers=_forwardable(dict(response.headers)),
            body=response.content,
        )
