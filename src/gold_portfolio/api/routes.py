"""Gateway routes: a health probe, then every other path through the cache router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

import gold_portfolio
from gold_portfolio.api.deps import AppState, get_app_state, get_cache_router
from gold_portfolio.cache.models import InterceptedRequest
from gold_portfolio.cache.router import CacheRouter
from gold_portfolio.core.exceptions import StoreUnavailable

router = APIRouter()

HEALTH_PATH = "/api/health"


@router.get(HEALTH_PATH)
async def health_check(state: AppState = Depends(get_app_state)):
    """Gateway version, origin and cache generations."""
    try:
        generations = sorted(await state.store.list_generations())
    except StoreUnavailable:
        generations = []
    return {
        "status": "ok",
        "version": gold_portfolio.__version__,
        "origin": state.config.gateway.origin,
        "active_generation": state.cache_router.active_generation,
        "generations": generations,
    }


@router.api_route(
    "/{path:path}",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)
async def intercept(
    request: Request,
    cache_router: CacheRouter = Depends(get_cache_router),
):
    """Map the request onto the app origin and let the router answer it.

    The path is taken still percent-encoded, so an escaped ``?`` or ``/``
    names the same resource upstream as it did here.
    """
    url = cache_router.resolve(_raw_target(request))

    intercepted = InterceptedRequest(
        url=url,
        method=request.method,
        headers=dict(request.headers),
        body=await request.body(),
    )
    delivered = await cache_router.handle(intercepted)
    return Response(
        content=delivered.body,
        status_code=delivered.status,
        headers=delivered.headers,
    )


def _raw_target(request: Request) -> str:
    """Request path and query exactly as the client sent them."""
    raw_path = request.scope.get("raw_path") or request.scope["path"].encode()
    target = raw_path.split(b"?", 1)[0].decode("latin-1")
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{target}?{query}" if query else target
