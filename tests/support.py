"""Document builders and fakes shared by the test suite."""

from __future__ import annotations

from datetime import datetime, timezone

from gold_portfolio.cache.models import InterceptedRequest, StoredResponse
from gold_portfolio.core.exceptions import UpstreamUnavailable

RUN_TIME = datetime(2026, 2, 7, 8, 30, 0, tzinfo=timezone.utc)


def stooq_page(value: str, quote_date: str, quote_time: str, symbol: str = "xaueur") -> str:
    """Minimal Stooq-like summary page."""
    return f"""<html><head><title>{symbol.upper()} - Stooq</title></head><body>
<table id="t1">
  <tr><td>Last</td>
      <td><b><span id="aq_{symbol}_c2">{value}</span></b>&nbsp;€/ozt</td></tr>
  <tr><td>Date</td>
      <td><span id="aq_{symbol}_d2">{quote_date}</span>
          <span id="aq_{symbol}_t2">{quote_time}</span></td></tr>
</table></body></html>"""


def stooq_series(*rows: tuple[str, str]) -> str:
    """Daily CSV series with (date, close) rows."""
    lines = ["Date,Open,High,Low,Close"]
    for day, close in rows:
        lines.append(f"{day},{close},{close},{close},{close}")
    return "\n".join(lines) + "\n"


def ecb_table(rates: dict[str, str], rate_date: str = "2026-02-06") -> str:
    """ECB eurofxref-daily.xml shaped document."""
    cubes = "\n".join(
        f"\t\t\t<Cube currency='{cur}' rate='{rate}'/>" for cur, rate in rates.items()
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<gesmes:Envelope xmlns:gesmes="http://www.gesmes.org/xml/2002-08-01" xmlns="http://www.ecb.int/vocabulary/2002-08-01/eurofxref">
\t<gesmes:subject>Reference rates</gesmes:subject>
\t<gesmes:Sender><gesmes:name>European Central Bank</gesmes:name></gesmes:Sender>
\t<Cube>
\t\t<Cube time='{rate_date}'>
{cubes}
\t\t</Cube>
\t</Cube>
</gesmes:Envelope>
"""


def ok(body: bytes, content_type: str = "text/plain") -> StoredResponse:
    return StoredResponse(status=200, headers={"content-type": content_type}, body=body)


class FakeNetwork:
    """In-memory stand-in for HttpNetwork.

    Unknown URLs answer 404. Setting ``offline`` makes every fetch fail.
    """

    def __init__(self, responses: dict[str, StoredResponse] | None = None) -> None:
        self.responses = dict(responses or {})
        self.offline = False
        self.calls: list[tuple[str, float, bool]] = []
        self.closed = False

    async def fetch(
        self, request: InterceptedRequest, *, timeout: float, no_store: bool = False
    ) -> StoredResponse:
        self.calls.append((request.url, timeout, no_store))
        if self.offline:
            raise UpstreamUnavailable(
                f"offline: {request.url}", context={"url": request.url}
            )
        return self.responses.get(request.url, StoredResponse(status=404))

    async def close(self) -> None:
        self.closed = True
