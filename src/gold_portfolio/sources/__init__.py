"""Upstream sources: HTTP client, quote parsers, and adapters."""

from gold_portfolio.sources.client import SourceClient
from gold_portfolio.sources.ecb import EcbReferenceRateSource
from gold_portfolio.sources.parsers import (
    QuoteParser,
    ScrapeQuoteParser,
    TabularQuoteParser,
    parse_reference_rates,
)
from gold_portfolio.sources.stooq import StooqQuoteSource

__all__ = [
    "SourceClient",
    "QuoteParser",
    "ScrapeQuoteParser",
    "TabularQuoteParser",
    "parse_reference_rates",
    "StooqQuoteSource",
    "EcbReferenceRateSource",
]
