"""Foundation types, config, and exceptions."""

from gold_portfolio.core.config import (
    CacheConfig,
    GatewayConfig,
    PipelineConfig,
    PortfolioConfig,
    SourcesConfig,
    load_config,
)
from gold_portfolio.core.exceptions import (
    ConfigError,
    GoldPortfolioError,
    ParseFailure,
    PersistenceError,
    StaleUpstreamData,
    StoreUnavailable,
    UpstreamUnavailable,
)
from gold_portfolio.core.models import (
    MIDNIGHT,
    CheckQuote,
    HistoryRecord,
    ParseResult,
    ParseStrategy,
    PriceSnapshot,
    PrimaryQuote,
    Quote,
    format_timestamp,
    round_price,
)

__all__ = [
    # Enums
    "ParseStrategy",
    # Quote models
    "Quote",
    "ParseResult",
    "MIDNIGHT",
    # Snapshot models
    "PrimaryQuote",
    "CheckQuote",
    "PriceSnapshot",
    "HistoryRecord",
    "round_price",
    "format_timestamp",
    # Config
    "PortfolioConfig",
    "SourcesConfig",
    "PipelineConfig",
    "CacheConfig",
    "GatewayConfig",
    "load_config",
    # Exceptions
    "GoldPortfolioError",
    "ConfigError",
    "UpstreamUnavailable",
    "ParseFailure",
    "StaleUpstreamData",
    "StoreUnavailable",
    "PersistenceError",
]
