"""Price acquisition pipeline: fetch, validate, cross-check, persist."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Protocol, runtime_checkable

from gold_portfolio.core.config import PipelineConfig, PortfolioConfig
from gold_portfolio.core.exceptions import StaleUpstreamData
from gold_portfolio.core.models import (
    CheckQuote,
    PriceSnapshot,
    PrimaryQuote,
    Quote,
    round_price,
)
from gold_portfolio.pipeline.writer import SnapshotWriter
from gold_portfolio.sources.client import SourceClient
from gold_portfolio.sources.ecb import EcbReferenceRateSource
from gold_portfolio.sources.stooq import StooqQuoteSource

logger = logging.getLogger(__name__)


@runtime_checkable
class QuoteSource(Protocol):
    """Anything that can produce the latest Quote for a symbol."""

    async def fetch_quote(self, symbol: str) -> Quote: ...


@runtime_checkable
class ReferenceRateSource(Protocol):
    """Anything that can produce a quote_currency-per-base_currency rate."""

    async def fetch_rate(self, base_currency: str, quote_currency: str) -> Decimal: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def quote_age_days(quote_date: date, now: datetime) -> int:
    """Whole days between a quote's date and ``now`` (UTC calendar)."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return (now.date() - quote_date).days


class PriceAcquisitionPipeline:
    """Produces one cross-checked PriceSnapshot per run.

    All upstream data is fetched and validated before anything is written:
    a failed run leaves the previous snapshot and history untouched.

    Parameters
    ----------
    config : PipelineConfig
        Symbols, source labels, currency pair, staleness threshold.
    quotes : QuoteSource
        Provides both the primary and the cross-check quote.
    rates : ReferenceRateSource
        Provides the reference exchange rate.
    writer : SnapshotWriter
        Persists the snapshot and the history line.
    clock : Callable[[], datetime] | None
        Returns "now" in UTC. Defaults to the system clock.
    """

    def __init__(
        self,
        config: PipelineConfig,
        quotes: QuoteSource,
        rates: ReferenceRateSource,
        writer: SnapshotWriter,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._quotes = quotes
        self._rates = rates
        self._writer = writer
        self._clock = clock or _utcnow

    async def run(self) -> PriceSnapshot:
        """Fetch, validate, compose and persist.

        Raises:
            UpstreamUnavailable: A source could not be reached.
            ParseFailure: A source returned unrecognizable content.
            StaleUpstreamData: Both quotes are older than the threshold.
            PersistenceError: The snapshot or history could not be written.
        """
        primary, check, rate = await self._fetch_all()
        now = self._clock()
        self._check_staleness(now, primary, check)

        snapshot = self.compose(now, primary, check, rate)
        self._writer.persist(snapshot)

        logger.info(
            "OK: %s primary %s %s EUR/oz, check %s %s EUR/oz (USD/EUR %s)",
            snapshot.as_of.isoformat(),
            self._config.primary_symbol, snapshot.primary.eur_per_oz,
            self._config.check_symbol, snapshot.check.eur_per_oz,
            snapshot.check.usd_per_eur,
        )
        return snapshot

    async def _fetch_all(self) -> tuple[Quote, Quote, Decimal]:
        """Issue the three upstream fetches concurrently.

        A failure in one does not cancel the others; all three settle and
        the first failure (in primary, check, rate order) is raised.
        """
        cfg = self._config
        results = await asyncio.gather(
            self._quotes.fetch_quote(cfg.primary_symbol),
            self._quotes.fetch_quote(cfg.check_symbol),
            self._rates.fetch_rate(cfg.base_currency, cfg.quote_currency),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        primary, check, rate = results
        return primary, check, rate

    def _check_staleness(self, now: datetime, primary: Quote, check: Quote) -> None:
        threshold = self._config.stale_after_days
        ages = {
            self._config.primary_symbol: quote_age_days(primary.date, now),
            self._config.check_symbol: quote_age_days(check.date, now),
        }
        if all(age > threshold for age in ages.values()):
            raise StaleUpstreamData(
                "Upstream data seems stale: "
                + ", ".join(f"{sym} {age}d" for sym, age in ages.items()),
                context={"ages": ages, "threshold_days": threshold},
            )
        for symbol, age in ages.items():
            if age > threshold:
                logger.warning("%s quote is %d days old, other source is fresh", symbol, age)

    def compose(
        self, now: datetime, primary: Quote, check: Quote, usd_per_eur: Decimal
    ) -> PriceSnapshot:
        """Build the snapshot. Only the primary value is rounded."""
        return PriceSnapshot(
            as_of=now,
            primary=PrimaryQuote(
                source=self._config.primary_source,
                eur_per_oz=round_price(primary.value),
                quote_date=primary.date,
                quote_time=primary.time,
            ),
            check=CheckQuote(
                source=self._config.check_source,
                eur_per_oz=check.value / usd_per_eur,
                usd_per_eur=usd_per_eur,
                usd_per_oz_raw=check.value,
                quote_date=check.date,
                quote_time=check.time,
            ),
        )


async def run_update(config: PortfolioConfig) -> PriceSnapshot:
    """Run the pipeline once against the configured live sources."""
    async with SourceClient(config.sources) as client:
        pipeline = PriceAcquisitionPipeline(
            config=config.pipeline,
            quotes=StooqQuoteSource(client, config.sources),
            rates=EcbReferenceRateSource(client, config.sources),
            writer=SnapshotWriter.from_config(config.pipeline),
        )
        return await pipeline.run()
