"""Offline gateway: FastAPI front hosting the cache router."""

from gold_portfolio.api.app import create_app

__all__ = ["create_app"]
