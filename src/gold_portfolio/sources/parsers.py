"""Quote and reference-rate parsers for semi-structured upstream documents.

Quote parsing comes in two interchangeable strategies behind the
``QuoteParser`` protocol:

- ``ScrapeQuoteParser`` reads the HTML summary page. It carries an intraday
  timestamp but breaks whenever the markup changes.
- ``TabularQuoteParser`` reads the daily CSV series. It is stable but only
  has a date, so the time is the midnight sentinel.

Parsers never raise: each returns a ``ParseResult`` tagged with its
strategy, so the fallback order stays visible in the caller.
"""

from __future__ import annotations

import csv
import io
import re
from datetime import date, time
from decimal import Decimal, InvalidOperation
from typing import Protocol, runtime_checkable

from bs4 import BeautifulSoup

from gold_portfolio.core.exceptions import ParseFailure
from gold_portfolio.core.models import MIDNIGHT, ParseResult, ParseStrategy, Quote

# "Last 4189.55 €/ozt Date 2026-02-06 22:00:20" once tags are stripped
_SCRAPE_PATTERN = re.compile(
    r"Last\s+([0-9]+(?:\.[0-9]+)?)\s+.*?"
    r"Date\s+(\d{4}-\d{2}-\d{2})\s+(\d{2}:\d{2}:\d{2})",
    re.IGNORECASE,
)

# Column aliases for the daily series (English and Polish Stooq exports)
_DATE_ALIASES = {"date", "Date", "DATE", "Data"}
_CLOSE_ALIASES = {"close", "Close", "CLOSE", "Zamkniecie"}


@runtime_checkable
class QuoteParser(Protocol):
    """Turns one upstream document into a tagged ParseResult."""

    strategy: ParseStrategy

    def parse(self, document: str) -> ParseResult: ...


def normalize_text(html: str) -> str:
    """Strip markup and collapse every whitespace run to a single space."""
    text = BeautifulSoup(html, "lxml").get_text(" ")
    return " ".join(text.split())


def _find_column(headers: list[str], aliases: set[str]) -> str | None:
    """Find the first header that matches any alias."""
    for h in headers:
        if h.strip() in aliases:
            return h
    return None


def _build_quote(
    strategy: ParseStrategy, value_text: str, date_text: str, quote_time: time | str
) -> ParseResult:
    """Validate raw fields into a Quote, or a failure naming the bad field."""
    try:
        value = Decimal(value_text.strip())
    except InvalidOperation:
        return ParseResult.failure(strategy, f"value is not a number: {value_text!r}")
    try:
        quote_date = date.fromisoformat(date_text.strip())
    except ValueError:
        return ParseResult.failure(strategy, f"invalid date: {date_text!r}")
    if isinstance(quote_time, str):
        try:
            quote_time = time.fromisoformat(quote_time)
        except ValueError:
            return ParseResult.failure(strategy, f"invalid time: {quote_time!r}")
    try:
        quote = Quote(value=value, date=quote_date, time=quote_time)
    except ValueError:
        return ParseResult.failure(
            strategy, f"value must be finite and positive: {value_text!r}"
        )
    return ParseResult.success(strategy, quote)


class ScrapeQuoteParser:
    """Parses the HTML quote summary page."""

    strategy = ParseStrategy.SCRAPE

    def parse(self, document: str) -> ParseResult:
        match = _SCRAPE_PATTERN.search(normalize_text(document))
        if match is None:
            return ParseResult.failure(
                self.strategy, "Last/Date/Time pattern not found"
            )
        value_text, date_text, time_text = match.groups()
        return _build_quote(self.strategy, value_text, date_text, time_text)


class TabularQuoteParser:
    """Parses the last row of the daily CSV series as (date, close)."""

    strategy = ParseStrategy.TABULAR

    def parse(self, document: str) -> ParseResult:
        reader = csv.DictReader(io.StringIO(document.strip()))
        headers = reader.fieldnames or []
        date_col = _find_column(headers, _DATE_ALIASES)
        close_col = _find_column(headers, _CLOSE_ALIASES)
        if date_col is None or close_col is None:
            return ParseResult.failure(
                self.strategy, f"date/close columns not found in headers: {headers}"
            )

        last_row = None
        for row in reader:
            if row.get(date_col) and row.get(close_col):
                last_row = row
        if last_row is None:
            return ParseResult.failure(self.strategy, "series has no data rows")

        return _build_quote(
            self.strategy, last_row[close_col], last_row[date_col], MIDNIGHT
        )


def parse_reference_rates(document: str) -> dict[str, Decimal]:
    """Extract ``{currency: rate}`` from a daily reference-rate XML table.

    Rates are located by element structure (``Cube`` elements carrying
    ``currency`` and ``rate`` attributes), never by position.

    Raises:
        ParseFailure: If no usable rate entries are present.
    """
    soup = BeautifulSoup(document, "lxml-xml")
    rates: dict[str, Decimal] = {}
    for cube in soup.find_all("Cube"):
        currency = cube.get("currency")
        raw_rate = cube.get("rate")
        if not currency or not raw_rate:
            continue
        try:
            rate = Decimal(raw_rate.strip())
        except InvalidOperation:
            continue
        if rate.is_finite() and rate > 0:
            rates[currency.strip().upper()] = rate

    if not rates:
        raise ParseFailure(
            "No reference rates found in table",
            context={"reasons": ["no Cube elements with currency and rate"]},
        )
    return rates
