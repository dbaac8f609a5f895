"""Tests for gold_portfolio.core.models."""

from __future__ import annotations

import json
from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

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


def _snapshot() -> PriceSnapshot:
    return PriceSnapshot(
        as_of=datetime(2026, 2, 7, 8, 30, 0, tzinfo=timezone.utc),
        primary=PrimaryQuote(
            source="stooq-xaueur",
            eur_per_oz=Decimal("4189.56"),
            quote_date=date(2026, 2, 6),
            quote_time=time(22, 0, 20),
        ),
        check=CheckQuote(
            source="stooq-xauusd + ecb-usd-per-eur",
            eur_per_oz=Decimal("4510.00") / Decimal("1.0766"),
            usd_per_eur=Decimal("1.0766"),
            usd_per_oz_raw=Decimal("4510.00"),
            quote_date=date(2026, 2, 6),
            quote_time=MIDNIGHT,
        ),
    )


class TestRoundPrice:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("4189.555", "4189.56"),
            ("4189.554", "4189.55"),
            ("4189.5", "4189.50"),
            ("0.005", "0.01"),
        ],
    )
    def test_half_up_to_cents(self, raw, expected):
        assert round_price(Decimal(raw)) == Decimal(expected)


class TestFormatTimestamp:
    def test_utc_second_precision(self):
        moment = datetime(2026, 2, 7, 8, 30, 5, 123456, tzinfo=timezone.utc)
        assert format_timestamp(moment) == "2026-02-07T08:30:05Z"


class TestQuote:
    def test_valid(self):
        q = Quote(value=Decimal("4189.55"), date=date(2026, 2, 6), time=time(22, 0, 20))
        assert q.value == Decimal("4189.55")

    @pytest.mark.parametrize("value", ["0", "-1", "NaN", "Infinity"])
    def test_rejects_non_positive_or_non_finite(self, value):
        with pytest.raises(ValidationError):
            Quote(value=Decimal(value), date=date(2026, 2, 6), time=MIDNIGHT)

    def test_frozen(self):
        q = Quote(value=Decimal("1"), date=date(2026, 2, 6), time=MIDNIGHT)
        with pytest.raises(ValidationError):
            q.value = Decimal("2")


class TestParseResult:
    def test_success(self):
        q = Quote(value=Decimal("1"), date=date(2026, 2, 6), time=MIDNIGHT)
        result = ParseResult.success(ParseStrategy.TABULAR, q)
        assert result.ok
        assert result.quote == q
        assert result.reason is None

    def test_failure(self):
        result = ParseResult.failure(ParseStrategy.SCRAPE, "pattern not found")
        assert not result.ok
        assert result.reason == "pattern not found"

    def test_requires_exactly_one_outcome(self):
        with pytest.raises(ValidationError):
            ParseResult(strategy=ParseStrategy.SCRAPE)


class TestPriceSnapshot:
    def test_json_shape(self):
        doc = json.loads(_snapshot().to_json())
        assert doc["asOf"] == "2026-02-07T08:30:00Z"
        assert doc["primary"] == {
            "source": "stooq-xaueur",
            "eurPerOz": 4189.56,
            "quoteDate": "2026-02-06",
            "quoteTime": "22:00:20",
        }
        assert doc["check"]["source"] == "stooq-xauusd + ecb-usd-per-eur"
        assert doc["check"]["usdPerEur"] == 1.0766
        assert doc["check"]["usdPerOzRaw"] == 4510.0
        assert doc["check"]["quoteTime"] == "00:00:00"

    def test_check_value_not_rounded(self):
        doc = json.loads(_snapshot().to_json())
        assert doc["check"]["eurPerOz"] == pytest.approx(4510.00 / 1.0766)
        assert doc["check"]["eurPerOz"] != round(doc["check"]["eurPerOz"], 2)

    def test_pretty_printed_with_trailing_newline(self):
        text = _snapshot().to_json()
        assert text.endswith("}\n")
        assert '\n  "primary"' in text

    def test_reads_back(self):
        snap = _snapshot()
        restored = PriceSnapshot.model_validate_json(snap.to_json())
        assert float(restored.primary.eur_per_oz) == 4189.56
        assert restored.as_of == snap.as_of


class TestHistoryRecord:
    def test_from_snapshot(self):
        record = _snapshot().history_record()
        assert record.eur_per_oz_primary == Decimal("4189.56")
        assert record.eur_per_oz_check == Decimal("4510.00") / Decimal("1.0766")

    def test_json_line(self):
        line = _snapshot().history_record().to_json_line()
        assert "\n" not in line
        doc = json.loads(line)
        assert list(doc) == ["asOf", "eurPerOz_primary", "eurPerOz_check"]
        assert doc["asOf"] == "2026-02-07T08:30:00Z"
        assert doc["eurPerOz_primary"] == 4189.56

    def test_reads_back(self):
        line = _snapshot().history_record().to_json_line()
        record = HistoryRecord.model_validate_json(line)
        assert record.as_of == datetime(2026, 2, 7, 8, 30, 0, tzinfo=timezone.utc)
