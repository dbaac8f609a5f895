"""Shared pytest fixtures for gold-portfolio."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from pathlib import Path

import pytest

from gold_portfolio.core.config import CacheConfig, PipelineConfig, SourcesConfig
from gold_portfolio.core.models import Quote


@pytest.fixture
def sources_config() -> SourcesConfig:
    return SourcesConfig(
        quote_page_url="https://stooq.test/q/?s={symbol}",
        series_url="https://stooq.test/q/d/l/?s={symbol}&i=d",
        reference_rates_url="https://ecb.test/eurofxref-daily.xml",
        rate_limit=100,
        request_timeout=5,
    )


@pytest.fixture
def pipeline_config(tmp_path: Path) -> PipelineConfig:
    return PipelineConfig(data_dir=str(tmp_path / "data"))


@pytest.fixture
def cache_config(tmp_path: Path) -> CacheConfig:
    return CacheConfig(sqlite_path=str(tmp_path / "cache.db"))


@pytest.fixture
def primary_quote() -> Quote:
    return Quote(value=Decimal("4189.555"), date=date(2026, 2, 6), time=time(22, 0, 20))


@pytest.fixture
def check_quote() -> Quote:
    return Quote(value=Decimal("4510.00"), date=date(2026, 2, 6), time=time(22, 0, 18))
