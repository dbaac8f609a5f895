"""Offline cache: versioned store, network fetcher, and request router."""

from gold_portfolio.cache.models import (
    InterceptedRequest,
    RequestClass,
    RequestIdentity,
    StoredResponse,
)
from gold_portfolio.cache.network import HttpNetwork, Network
from gold_portfolio.cache.router import (
    STRATEGIES,
    CacheRouter,
    cache_first,
    classify,
    network_first,
    network_only_with_fallback,
)
from gold_portfolio.cache.store import CacheHandle, VersionedCacheStore, create_cache_store

__all__ = [
    # Models
    "InterceptedRequest",
    "RequestClass",
    "RequestIdentity",
    "StoredResponse",
    # Store
    "CacheHandle",
    "VersionedCacheStore",
    "create_cache_store",
    # Network
    "Network",
    "HttpNetwork",
    # Router
    "CacheRouter",
    "classify",
    "cache_first",
    "network_first",
    "network_only_with_fallback",
    "STRATEGIES",
]
