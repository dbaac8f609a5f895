"""Cache router: classify each request, then run one of three strategies.

| Class        | Predicate                                    | Strategy                    |
|--------------|----------------------------------------------|-----------------------------|
| live data    | path ends with a snapshot/history path       | network only, cache fallback|
| markup       | Accept wants HTML, or path is /, */, *.html  | network first               |
| static asset | anything else (same-origin GET)              | cache first                 |

Non-GET and cross-origin requests are not intercepted and go straight to
the network.

Strategies are plain coroutines taking ``(request, cache, network,
timeout)``. A network attempt yields either a response or the
``UpstreamUnavailable`` that stopped it, and each strategy branches on that
value to decide whether to fall back to the cache.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from urllib.parse import urlsplit

from gold_portfolio.cache.models import (
    InterceptedRequest,
    RequestClass,
    RequestIdentity,
    StoredResponse,
)
from gold_portfolio.cache.network import Network
from gold_portfolio.cache.store import CacheHandle, VersionedCacheStore
from gold_portfolio.core.config import CacheConfig
from gold_portfolio.core.exceptions import StoreUnavailable, UpstreamUnavailable

logger = logging.getLogger(__name__)

NetworkOutcome = StoredResponse | UpstreamUnavailable
Strategy = Callable[
    [InterceptedRequest, CacheHandle, Network, float], Awaitable[StoredResponse]
]


def classify(
    request: InterceptedRequest, origin: str, live_data_paths: Iterable[str]
) -> RequestClass:
    """Pick the delivery strategy for a request."""
    if request.method.upper() != "GET":
        return RequestClass.PASSTHROUGH
    base = urlsplit(origin)
    if request.origin != f"{base.scheme}://{base.netloc}".lower():
        return RequestClass.PASSTHROUGH

    path = request.path
    if any(path.endswith(live) for live in live_data_paths):
        return RequestClass.LIVE_DATA
    if (
        "text/html" in request.accept
        or path in ("", "/")
        or path.endswith("/")
        or path.endswith(".html")
    ):
        return RequestClass.MARKUP
    return RequestClass.STATIC_ASSET


# --- Network & store helpers ---


async def _attempt(
    network: Network, request: InterceptedRequest, timeout: float, no_store: bool = False
) -> NetworkOutcome:
    try:
        return await network.fetch(request, timeout=timeout, no_store=no_store)
    except UpstreamUnavailable as e:
        return e


async def _lookup(
    cache: CacheHandle, identity: RequestIdentity, ignore_query: bool
) -> StoredResponse | None:
    try:
        return await cache.match(identity, ignore_query=ignore_query)
    except StoreUnavailable as e:
        logger.warning("Cache lookup skipped for %s: %s", identity.url, e)
        return None


async def _remember(
    cache: CacheHandle, identity: RequestIdentity, response: StoredResponse
) -> None:
    try:
        await cache.put(identity, response)
    except StoreUnavailable as e:
        logger.warning("Cache write skipped for %s: %s", identity.url, e)


async def _fall_back(
    cache: CacheHandle, request: InterceptedRequest, failure: UpstreamUnavailable
) -> StoredResponse:
    cached = await _lookup(cache, request.identity, ignore_query=True)
    if cached is None:
        raise failure
    logger.info("Offline, serving cached copy of %s", request.url)
    return cached


# --- Strategies ---


async def network_only_with_fallback(
    request: InterceptedRequest, cache: CacheHandle, network: Network, timeout: float
) -> StoredResponse:
    """Live data: always the network, never stored; cache only when offline."""
    outcome = await _attempt(network, request, timeout, no_store=True)
    if isinstance(outcome, UpstreamUnavailable):
        return await _fall_back(cache, request, outcome)
    return outcome


async def network_first(
    request: InterceptedRequest, cache: CacheHandle, network: Network, timeout: float
) -> StoredResponse:
    """Markup: the network when reachable (stored if OK), else the cached shell."""
    outcome = await _attempt(network, request, timeout, no_store=True)
    if isinstance(outcome, UpstreamUnavailable):
        return await _fall_back(cache, request, outcome)
    if outcome.ok:
        await _remember(cache, request.identity, outcome)
    return outcome


async def cache_first(
    request: InterceptedRequest, cache: CacheHandle, network: Network, timeout: float
) -> StoredResponse:
    """Static assets: exact cache hit, else the network (stored if OK)."""
    cached = await _lookup(cache, request.identity, ignore_query=False)
    if cached is not None:
        return cached

    outcome = await _attempt(network, request, timeout)
    if isinstance(outcome, UpstreamUnavailable):
        raise outcome
    if outcome.ok:
        await _remember(cache, request.identity, outcome)
    return outcome


STRATEGIES: dict[RequestClass, Strategy] = {
    RequestClass.LIVE_DATA: network_only_with_fallback,
    RequestClass.MARKUP: network_first,
    RequestClass.STATIC_ASSET: cache_first,
}


class CacheRouter:
    """Intercepts requests for one app origin.

    Lifecycle: ``install()`` populates the configured generation with the
    app shell, ``activate()`` purges every other generation and starts
    intercepting. Until activation every request goes straight to the
    network.

    Parameters
    ----------
    store : VersionedCacheStore
        Shared store; a handle is opened per request.
    network : Network
        Fetches from the origin.
    config : CacheConfig
        Generation, app shell, live-data paths and per-class timeouts.
    origin : str
        Base URL of the app (``scheme://host[:port]/base/``).
    """

    def __init__(
        self,
        store: VersionedCacheStore,
        network: Network,
        config: CacheConfig,
        origin: str,
    ) -> None:
        self._store = store
        self._network = network
        self._config = config
        self._origin = origin if origin.endswith("/") else origin + "/"
        self._active: str | None = None

    @property
    def generation(self) -> str:
        return self._config.generation

    @property
    def active_generation(self) -> str | None:
        return self._active

    def resolve(self, path: str) -> str:
        """Absolute origin URL for an app-relative path such as ``./index.html``."""
        relative = path[2:] if path.startswith("./") else path.lstrip("/")
        return self._origin + relative

    def classify(self, request: InterceptedRequest) -> RequestClass:
        return classify(request, self._origin, self._config.live_data_paths)

    def _timeout_for(self, kind: RequestClass) -> float:
        if kind is RequestClass.LIVE_DATA:
            return self._config.live_timeout
        if kind is RequestClass.MARKUP:
            return self._config.markup_timeout
        return self._config.asset_timeout

    # --- Lifecycle ---

    async def install(self) -> int:
        """Populate the new generation with the app shell.

        Individual failures are logged and skipped. Returns the number of
        shell entries stored.

        Raises:
            StoreUnavailable: The generation itself could not be opened.
        """
        cache = await self._store.open(self.generation)
        results = await asyncio.gather(
            *(self._install_one(cache, path) for path in self._config.app_shell)
        )
        stored = sum(results)
        logger.info(
            "Installed generation %s: %d/%d shell entries",
            self.generation, stored, len(self._config.app_shell),
        )
        return stored

    async def _install_one(self, cache: CacheHandle, path: str) -> bool:
        request = InterceptedRequest(url=self.resolve(path))
        outcome = await _attempt(self._network, request, self._config.asset_timeout)
        if isinstance(outcome, UpstreamUnavailable):
            logger.warning("Shell entry %s not cached: %s", path, outcome)
            return False
        if not outcome.ok:
            logger.warning("Shell entry %s not cached: HTTP %d", path, outcome.status)
            return False
        try:
            await cache.put(request.identity, outcome)
        except StoreUnavailable as e:
            logger.warning("Shell entry %s not cached: %s", path, e)
            return False
        return True

    async def activate(self) -> set[str]:
        """Purge every other generation and start intercepting immediately.

        Returns the purged generation ids.
        """
        purged = await self._store.purge_all_except(self.generation)
        self._active = self.generation
        logger.info("Activated generation %s", self.generation)
        return purged

    # --- Request handling ---

    async def handle(self, request: InterceptedRequest) -> StoredResponse:
        """Deliver a response for ``request``.

        Raises:
            UpstreamUnavailable: The network failed and no usable cache entry
                exists for this request's class.
        """
        kind = self.classify(request)
        timeout = self._timeout_for(kind)
        if kind is RequestClass.PASSTHROUGH or self._active is None:
            return await self._network.fetch(request, timeout=timeout)

        try:
            cache = await self._store.open(self._active)
        except StoreUnavailable as e:
            logger.warning("Cache store unavailable, passing %s through: %s", request.url, e)
            return await self._network.fetch(
                request, timeout=timeout, no_store=kind is not RequestClass.STATIC_ASSET
            )

        logger.debug("%s %s -> %s", request.method, request.url, kind)
        return await STRATEGIES[kind](request, cache, self._network, timeout)
