"""Upstream quote source adapter for Stooq summary pages and daily series."""

from __future__ import annotations

import logging

from gold_portfolio.core.config import SourcesConfig
from gold_portfolio.core.exceptions import ParseFailure
from gold_portfolio.core.models import ParseResult, Quote
from gold_portfolio.sources.client import SourceClient
from gold_portfolio.sources.parsers import ScrapeQuoteParser, TabularQuoteParser

logger = logging.getLogger(__name__)


class StooqQuoteSource:
    """Fetches one quote per symbol, scrape first, tabular series second.

    Parameters
    ----------
    client : SourceClient
        Shared upstream HTTP client.
    config : SourcesConfig
        Supplies the page and series URL templates.
    """

    def __init__(self, client: SourceClient, config: SourcesConfig) -> None:
        self._client = client
        self._page_url = config.quote_page_url
        self._series_url = config.series_url
        self._scrape = ScrapeQuoteParser()
        self._tabular = TabularQuoteParser()

    async def fetch_quote(self, symbol: str) -> Quote:
        """Return the latest quote for ``symbol``.

        Raises:
            UpstreamUnavailable: A document could not be fetched.
            ParseFailure: Neither the page nor the series held a usable quote.
        """
        page = await self._client.get_text(self._page_url.format(symbol=symbol))
        result = self._scrape.parse(page)
        if result.ok:
            return result.quote

        logger.warning(
            "Scrape parse failed for %s (%s), falling back to daily series",
            symbol, result.reason,
        )
        series = await self._client.get_text(self._series_url.format(symbol=symbol))
        fallback = self._tabular.parse(series)
        if fallback.ok:
            return fallback.quote

        raise _parse_failure(symbol, [result, fallback])


def _parse_failure(symbol: str, results: list[ParseResult]) -> ParseFailure:
    reasons = [f"{r.strategy}: {r.reason}" for r in results]
    return ParseFailure(
        f"Could not parse a quote for {symbol} ({'; '.join(reasons)})",
        context={"symbol": symbol, "reasons": reasons},
    )
