"""Dependency injection for the gateway routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from gold_portfolio.cache.network import HttpNetwork
from gold_portfolio.cache.router import CacheRouter
from gold_portfolio.cache.store import VersionedCacheStore
from gold_portfolio.core.config import PortfolioConfig


@dataclass
class AppState:
    """Shared gateway state, attached to app.state during lifespan."""

    config: PortfolioConfig
    store: VersionedCacheStore
    network: HttpNetwork
    cache_router: CacheRouter


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_cache_router(request: Request) -> CacheRouter:
    """Dependency: retrieve the cache router."""
    return request.app.state.app_state.cache_router
