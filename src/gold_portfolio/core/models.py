"""Pydantic data models for quotes, snapshots and history records."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_serializer,
    field_validator,
    model_validator,
)

# Decimals stay exact in Python and are written as JSON numbers.
JsonDecimal = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]

MIDNIGHT = time(0, 0, 0)
_CENT = Decimal("0.01")


def round_price(value: Decimal) -> Decimal:
    """Round a price to 2 decimal places, halves away from zero."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with second precision, e.g. 2026-02-06T22:00:20Z."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


# --- Enumerations ---


class ParseStrategy(StrEnum):
    """The two ways a quote document can be parsed."""

    SCRAPE = "scrape"
    TABULAR = "tabular"


# --- Quote Models ---


class Quote(BaseModel):
    """A single parsed quote from an upstream source."""

    model_config = ConfigDict(frozen=True)

    value: Decimal
    date: date
    time: time

    @field_validator("value")
    @classmethod
    def value_finite_positive(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v <= 0:
            raise ValueError(f"quote value must be finite and positive, got {v}")
        return v


class ParseResult(BaseModel):
    """Tagged outcome of one parse strategy: a Quote or a failure reason."""

    model_config = ConfigDict(frozen=True)

    strategy: ParseStrategy
    quote: Quote | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def exactly_one_outcome(self) -> ParseResult:
        if (self.quote is None) == (self.reason is None):
            raise ValueError("ParseResult needs exactly one of quote or reason")
        return self

    @property
    def ok(self) -> bool:
        return self.quote is not None

    @classmethod
    def success(cls, strategy: ParseStrategy, quote: Quote) -> ParseResult:
        return cls(strategy=strategy, quote=quote)

    @classmethod
    def failure(cls, strategy: ParseStrategy, reason: str) -> ParseResult:
        return cls(strategy=strategy, reason=reason)


# --- Snapshot Models ---


class PrimaryQuote(BaseModel):
    """The published price: primary source value rounded to cents."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str
    eur_per_oz: JsonDecimal = Field(alias="eurPerOz")
    quote_date: date = Field(alias="quoteDate")
    quote_time: time = Field(alias="quoteTime")


class CheckQuote(BaseModel):
    """Independent cross-check derived from a second symbol and a reference rate.

    ``eur_per_oz`` is ``usd_per_oz_raw / usd_per_eur`` at full precision.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str
    eur_per_oz: JsonDecimal = Field(alias="eurPerOz")
    usd_per_eur: JsonDecimal = Field(alias="usdPerEur")
    usd_per_oz_raw: JsonDecimal = Field(alias="usdPerOzRaw")
    quote_date: date = Field(alias="quoteDate")
    quote_time: time = Field(alias="quoteTime")


class HistoryRecord(BaseModel):
    """One line of the append-only history log."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    as_of: datetime = Field(alias="asOf")
    eur_per_oz_primary: JsonDecimal = Field(alias="eurPerOz_primary")
    eur_per_oz_check: JsonDecimal = Field(alias="eurPerOz_check")

    @field_serializer("as_of")
    def _serialize_as_of(self, v: datetime) -> str:
        return format_timestamp(v)

    def to_json_line(self) -> str:
        """Compact single-line JSON, without the trailing newline."""
        return self.model_dump_json(by_alias=True)


class PriceSnapshot(BaseModel):
    """The single current price record, replaced wholesale on every run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    as_of: datetime = Field(alias="asOf")
    primary: PrimaryQuote
    check: CheckQuote

    @field_serializer("as_of")
    def _serialize_as_of(self, v: datetime) -> str:
        return format_timestamp(v)

    def to_json(self) -> str:
        """Pretty-printed JSON document with a trailing newline."""
        return self.model_dump_json(by_alias=True, indent=2) + "\n"

    def history_record(self) -> HistoryRecord:
        return HistoryRecord(
            as_of=self.as_of,
            eur_per_oz_primary=self.primary.eur_per_oz,
            eur_per_oz_check=self.check.eur_per_oz,
        )
