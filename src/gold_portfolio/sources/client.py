"""Rate-limited async HTTP client for upstream quote and rate sources."""

from __future__ import annotations

import asyncio
import logging

import httpx
from aiolimiter import AsyncLimiter

from gold_portfolio.core.config import SourcesConfig
from gold_portfolio.core.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

# Retry budget per logical request
_MAX_ATTEMPTS = 4
_MAX_RETRIES_429 = 3
_DEFAULT_RETRY_AFTER = 12
_RETRYABLE_STATUS = frozenset({500, 502, 503})
_MAX_RETRIES_SERVER = 3
_MAX_RETRIES_CONNECTION = 2
_CONNECTION_RETRY_DELAY = 2.0


class SourceClient:
    """Read-only async client shared by the quote and reference-rate adapters.

    Every request identifies the updater via User-Agent, states acceptable
    content types, and disables transport caching so a run always sees what
    the source publishes right now.

    Use via `async with SourceClient(...) as client:`.
    """

    def __init__(
        self,
        config: SourcesConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0)
        self._client = httpx.AsyncClient(
            headers={
                "User-Agent": config.user_agent,
                "Accept": config.accept,
                "Accept-Language": config.accept_language,
                "Cache-Control": "no-cache",
                "Pragma": "no-cache",
            },
            timeout=httpx.Timeout(config.request_timeout),
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> SourceClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def get_text(self, url: str) -> str:
        """Fetch a document and return its decoded body.

        Raises:
            UpstreamUnavailable: Network error, timeout, or non-200 status.
        """
        response = await self._rate_limited_request("GET", url)
        return response.text

    async def _rate_limited_request(self, method: str, url: str) -> httpx.Response:
        """One logical request, rate-limited and retried on transient failures.

        | Outcome              | Retries | Delay                     |
        |----------------------|---------|---------------------------|
        | HTTP 429             | 3       | Retry-After, default 12s  |
        | HTTP 500/502/503     | 3       | 1s, 2s, 4s                |
        | Connect error        | 2       | 2s                        |
        | Timeout, other error | none    |                           |
        | Any other non-200    | none    |                           |

        Raises:
            UpstreamUnavailable: The source did not deliver a 200 response.
        """
        connect_failures = 0
        for attempt in range(_MAX_ATTEMPTS):
            await self._limiter.acquire()
            try:
                response = await self._client.request(method, url)
            except httpx.ConnectError as e:
                connect_failures += 1
                if connect_failures > _MAX_RETRIES_CONNECTION:
                    raise UpstreamUnavailable(
                        f"Could not connect to {url}",
                        context={"url": url, "error": str(e)},
                    ) from e
                delay: float = _CONNECTION_RETRY_DELAY
                cause = "connect error"
            except httpx.TimeoutException as e:
                raise UpstreamUnavailable(
                    f"Timed out fetching {url}",
                    context={"url": url, "error": str(e)},
                ) from e
            except httpx.RequestError as e:
                raise UpstreamUnavailable(
                    f"Request failed for {url}: {e}",
                    context={"url": url, "error": str(e)},
                ) from e
            else:
                if response.status_code == 200:
                    return response
                retry_in = _retry_delay(response, attempt)
                if retry_in is None:
                    raise UpstreamUnavailable(
                        f"HTTP {response.status_code} from {url}",
                        context={"url": url, "status_code": response.status_code},
                    )
                delay = retry_in
                cause = f"HTTP {response.status_code}"

            logger.warning(
                "%s on %s, retry %d in %gs", cause, url, attempt + 1, delay
            )
            await asyncio.sleep(delay)

        raise UpstreamUnavailable(
            f"Gave up on {url} after {_MAX_ATTEMPTS} attempts", context={"url": url}
        )


def _retry_delay(response: httpx.Response, attempt: int) -> float | None:
    """Seconds to wait before retrying, or None when the response is final."""
    status = response.status_code
    if status == 429 and attempt < _MAX_RETRIES_429:
        return _parse_retry_after(response)
    if status in _RETRYABLE_STATUS and attempt < _MAX_RETRIES_SERVER:
        return 2**attempt
    return None


def _parse_retry_after(response: httpx.Response) -> int:
    """Seconds from a Retry-After header; HTTP-date values fall back to the default."""
    try:
        return max(0, int(response.headers.get("Retry-After", _DEFAULT_RETRY_AFTER)))
    except ValueError:
        return _DEFAULT_RETRY_AFTER
