"""FastAPI application factory for the offline-capable gateway."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gold_portfolio.api.deps import AppState
from gold_portfolio.api.routes import router
from gold_portfolio.cache.network import HttpNetwork
from gold_portfolio.cache.router import CacheRouter
from gold_portfolio.cache.store import VersionedCacheStore
from gold_portfolio.core.config import PortfolioConfig, load_config
from gold_portfolio.core.exceptions import (
    GoldPortfolioError,
    StoreUnavailable,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store, install and activate the configured generation."""
    config = app.state._pending_config or load_config()
    network = app.state._pending_network or HttpNetwork()
    store = VersionedCacheStore(config.cache)
    cache_router = CacheRouter(store, network, config.cache, origin=config.gateway.origin)

    try:
        await store.initialize()
        await cache_router.install()
        await cache_router.activate()
    except StoreUnavailable as e:
        logger.warning("Cache store unavailable, serving straight from the network: %s", e)

    app.state.app_state = AppState(
        config=config, store=store, network=network, cache_router=cache_router
    )

    yield

    await store.close()
    await network.close()


def create_app(
    config: PortfolioConfig | None = None,
    network: HttpNetwork | None = None,
) -> FastAPI:
    """Create and configure the gateway application."""
    import gold_portfolio

    app = FastAPI(
        title="Gold Portfolio Gateway",
        description="Offline-capable front for the Gold Portfolio web app",
        version=gold_portfolio.__version__,
        lifespan=lifespan,
    )

    # Stash overrides so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_network = network

    app.include_router(router)

    @app.exception_handler(GoldPortfolioError)
    async def portfolio_exception_handler(request: Request, exc: GoldPortfolioError):
        status_map = {
            UpstreamUnavailable: 504,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return app
