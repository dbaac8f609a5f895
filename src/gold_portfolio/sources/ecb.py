"""Reference rate adapter for the ECB daily euro foreign exchange table."""

from __future__ import annotations

import logging
from decimal import Decimal

from gold_portfolio.core.config import SourcesConfig
from gold_portfolio.core.exceptions import ParseFailure
from gold_portfolio.sources.client import SourceClient
from gold_portfolio.sources.parsers import parse_reference_rates

logger = logging.getLogger(__name__)

# Every rate in the ECB table is quoted against the euro
_TABLE_BASE = "EUR"


class EcbReferenceRateSource:
    """Fetches the daily reference table and extracts one exchange rate."""

    def __init__(self, client: SourceClient, config: SourcesConfig) -> None:
        self._client = client
        self._url = config.reference_rates_url

    async def fetch_rate(self, base_currency: str, quote_currency: str) -> Decimal:
        """Units of ``quote_currency`` per one ``base_currency``.

        ``fetch_rate("EUR", "USD")`` is USD per EUR. Pairs not involving the
        euro are crossed through it.

        Raises:
            UpstreamUnavailable: The table could not be fetched.
            ParseFailure: The table lacks a positive rate for either currency.
        """
        document = await self._client.get_text(self._url)
        rates = parse_reference_rates(document)
        rates[_TABLE_BASE] = Decimal(1)

        base = base_currency.upper()
        quote = quote_currency.upper()
        for currency in (base, quote):
            if currency not in rates:
                raise ParseFailure(
                    f"Reference rate for {currency} not found in table",
                    context={"currency": currency, "reasons": ["currency missing"]},
                )

        rate = rates[quote] / rates[base]
        logger.debug("Reference rate %s/%s = %s", base, quote, rate)
        return rate
