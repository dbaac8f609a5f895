"""Tests for gold_portfolio.pipeline.acquisition."""

from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from gold_portfolio.core.config import PipelineConfig
from gold_portfolio.core.exceptions import (
    ParseFailure,
    StaleUpstreamData,
    UpstreamUnavailable,
)
from gold_portfolio.core.models import Quote
from gold_portfolio.pipeline.acquisition import (
    PriceAcquisitionPipeline,
    quote_age_days,
)
from gold_portfolio.pipeline.writer import SnapshotWriter
from tests.support import RUN_TIME

USD_PER_EUR = Decimal("1.0766")


# --- Fakes ---


class FakeQuotes:
    """Returns (or raises) a preset value per symbol and records every call."""

    def __init__(self, results: dict[str, Quote | Exception]) -> None:
        self.results = results
        self.calls: list[str] = []

    async def fetch_quote(self, symbol: str) -> Quote:
        await asyncio.sleep(0)
        self.calls.append(symbol)
        result = self.results[symbol]
        if isinstance(result, Exception):
            raise result
        return result


class FakeRates:
    def __init__(self, result: Decimal | Exception = USD_PER_EUR) -> None:
        self.result = result
        self.calls: list[tuple[str, str]] = []

    async def fetch_rate(self, base_currency: str, quote_currency: str) -> Decimal:
        await asyncio.sleep(0)
        self.calls.append((base_currency, quote_currency))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def _quote(value: str, days_old: int = 1, quote_time: time = time(22, 0)) -> Quote:
    return Quote(
        value=Decimal(value),
        date=RUN_TIME.date() - timedelta(days=days_old),
        time=quote_time,
    )


@pytest.fixture
def writer(pipeline_config: PipelineConfig) -> SnapshotWriter:
    return SnapshotWriter.from_config(pipeline_config)


def _pipeline(
    config: PipelineConfig,
    writer: SnapshotWriter,
    primary: Quote | Exception,
    check: Quote | Exception,
    rate: Decimal | Exception = USD_PER_EUR,
) -> tuple[PriceAcquisitionPipeline, FakeQuotes, FakeRates]:
    quotes = FakeQuotes({config.primary_symbol: primary, config.check_symbol: check})
    rates = FakeRates(rate)
    pipeline = PriceAcquisitionPipeline(
        config=config, quotes=quotes, rates=rates, writer=writer, clock=lambda: RUN_TIME
    )
    return pipeline, quotes, rates


# --- quote_age_days ---


class TestQuoteAgeDays:
    def test_same_day(self):
        assert quote_age_days(RUN_TIME.date(), RUN_TIME) == 0

    def test_counts_utc_calendar_days(self):
        late_evening = datetime(2026, 2, 7, 23, 59, tzinfo=timezone.utc)
        assert quote_age_days(date(2026, 2, 6), late_evening) == 1

    def test_converts_to_utc(self):
        berlin = timezone(timedelta(hours=1))
        just_after_midnight = datetime(2026, 2, 8, 0, 30, tzinfo=berlin)
        assert quote_age_days(date(2026, 2, 6), just_after_midnight) == 1


# --- Successful runs ---


class TestRun:
    async def test_composes_snapshot(self, pipeline_config, writer, primary_quote, check_quote):
        pipeline, quotes, rates = _pipeline(pipeline_config, writer, primary_quote, check_quote)
        snapshot = await pipeline.run()

        assert snapshot.as_of == RUN_TIME
        assert snapshot.primary.source == "stooq-xaueur"
        assert snapshot.primary.eur_per_oz == Decimal("4189.56")
        assert snapshot.primary.quote_date == date(2026, 2, 6)
        assert snapshot.primary.quote_time == time(22, 0, 20)

        assert snapshot.check.source == "stooq-xauusd + ecb-usd-per-eur"
        assert snapshot.check.usd_per_eur == USD_PER_EUR
        assert snapshot.check.usd_per_oz_raw == Decimal("4510.00")
        assert snapshot.check.eur_per_oz == Decimal("4510.00") / USD_PER_EUR

        assert sorted(quotes.calls) == ["xaueur", "xauusd"]
        assert rates.calls == [("EUR", "USD")]

    async def test_check_value_not_rounded(
        self, pipeline_config, writer, primary_quote, check_quote
    ):
        pipeline, _, _ = _pipeline(pipeline_config, writer, primary_quote, check_quote)
        snapshot = await pipeline.run()
        assert snapshot.check.eur_per_oz != snapshot.check.eur_per_oz.quantize(Decimal("0.01"))

    async def test_persists_snapshot_and_history(
        self, pipeline_config, writer, primary_quote, check_quote
    ):
        pipeline, _, _ = _pipeline(pipeline_config, writer, primary_quote, check_quote)
        await pipeline.run()

        doc = json.loads(pipeline_config.snapshot_path.read_text(encoding="utf-8"))
        assert doc["asOf"] == "2026-02-07T08:30:00Z"
        assert doc["primary"]["eurPerOz"] == 4189.56

        lines = pipeline_config.history_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["eurPerOz_primary"] == 4189.56

    async def test_each_run_appends_one_history_line(
        self, pipeline_config, writer, primary_quote, check_quote
    ):
        pipeline, _, _ = _pipeline(pipeline_config, writer, primary_quote, check_quote)
        for expected in (1, 2, 3):
            await pipeline.run()
            assert len(writer.read_history()) == expected

    async def test_primary_wins_even_when_sources_diverge(self, pipeline_config, writer):
        pipeline, _, _ = _pipeline(
            pipeline_config, writer, _quote("4189.55"), _quote("9000.00")
        )
        snapshot = await pipeline.run()
        assert snapshot.primary.eur_per_oz == Decimal("4189.55")

    async def test_custom_labels_and_pair(self, tmp_path, primary_quote, check_quote):
        config = PipelineConfig(
            data_dir=str(tmp_path),
            primary_symbol="xauchf",
            primary_source="stooq-xauchf",
            check_source="alt",
            base_currency="CHF",
            quote_currency="USD",
        )
        writer = SnapshotWriter.from_config(config)
        pipeline, quotes, rates = _pipeline(config, writer, primary_quote, check_quote)
        snapshot = await pipeline.run()
        assert snapshot.primary.source == "stooq-xauchf"
        assert snapshot.check.source == "alt"
        assert "xauchf" in quotes.calls
        assert rates.calls == [("CHF", "USD")]


# --- Staleness ---


class TestStaleness:
    async def test_both_stale_aborts(self, pipeline_config, writer):
        pipeline, _, _ = _pipeline(
            pipeline_config, writer, _quote("4189.55", 11), _quote("4510.00", 12)
        )
        with pytest.raises(StaleUpstreamData) as exc_info:
            await pipeline.run()
        assert exc_info.value.context["ages"] == {"xaueur": 11, "xauusd": 12}
        assert exc_info.value.context["threshold_days"] == 10
        assert not pipeline_config.snapshot_path.exists()
        assert not pipeline_config.history_path.exists()

    async def test_exactly_threshold_is_fresh(self, pipeline_config, writer):
        pipeline, _, _ = _pipeline(
            pipeline_config, writer, _quote("4189.55", 10), _quote("4510.00", 10)
        )
        await pipeline.run()
        assert pipeline_config.snapshot_path.exists()

    @pytest.mark.parametrize("primary_age, check_age", [(30, 1), (1, 30)])
    async def test_one_stale_source_still_succeeds(
        self, pipeline_config, writer, primary_age, check_age, caplog
    ):
        pipeline, _, _ = _pipeline(
            pipeline_config,
            writer,
            _quote("4189.55", primary_age),
            _quote("4510.00", check_age),
        )
        with caplog.at_level("WARNING"):
            await pipeline.run()
        assert pipeline_config.snapshot_path.exists()
        assert "30 days old" in caplog.text

    async def test_threshold_is_configurable(self, tmp_path):
        config = PipelineConfig(data_dir=str(tmp_path), stale_after_days=2)
        writer = SnapshotWriter.from_config(config)
        pipeline, _, _ = _pipeline(config, writer, _quote("1", 3), _quote("1", 3))
        with pytest.raises(StaleUpstreamData):
            await pipeline.run()


# --- Failures ---


class TestFailures:
    async def test_primary_unreachable_writes_nothing(
        self, pipeline_config, writer, check_quote
    ):
        pipeline, _, _ = _pipeline(
            pipeline_config, writer, UpstreamUnavailable("HTTP 503"), check_quote
        )
        with pytest.raises(UpstreamUnavailable):
            await pipeline.run()
        assert not pipeline_config.snapshot_path.exists()
        assert not pipeline_config.history_path.exists()

    async def test_rate_parse_failure_writes_nothing(
        self, pipeline_config, writer, primary_quote, check_quote
    ):
        pipeline, _, _ = _pipeline(
            pipeline_config, writer, primary_quote, check_quote, ParseFailure("no USD")
        )
        with pytest.raises(ParseFailure):
            await pipeline.run()
        assert not pipeline_config.snapshot_path.exists()

    async def test_previous_snapshot_survives_failure(
        self, pipeline_config, writer, primary_quote, check_quote
    ):
        pipeline, _, _ = _pipeline(pipeline_config, writer, primary_quote, check_quote)
        await pipeline.run()
        before = pipeline_config.snapshot_path.read_text(encoding="utf-8")

        failing, _, _ = _pipeline(
            pipeline_config, writer, primary_quote, ParseFailure("markup changed")
        )
        with pytest.raises(ParseFailure):
            await failing.run()

        assert pipeline_config.snapshot_path.read_text(encoding="utf-8") == before
        assert len(writer.read_history()) == 1

    async def test_failure_does_not_cancel_other_fetches(
        self, pipeline_config, writer, check_quote
    ):
        pipeline, quotes, rates = _pipeline(
            pipeline_config, writer, UpstreamUnavailable("down"), check_quote
        )
        with pytest.raises(UpstreamUnavailable):
            await pipeline.run()
        assert sorted(quotes.calls) == ["xaueur", "xauusd"]
        assert rates.calls == [("EUR", "USD")]

    async def test_first_failure_in_fetch_order_wins(self, pipeline_config, writer):
        pipeline, _, _ = _pipeline(
            pipeline_config,
            writer,
            ParseFailure("primary broken"),
            UpstreamUnavailable("check down"),
            UpstreamUnavailable("rates down"),
        )
        with pytest.raises(ParseFailure, match="primary broken"):
            await pipeline.run()
