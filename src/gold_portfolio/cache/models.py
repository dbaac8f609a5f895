"""Request and response types for the cache router and store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from urllib.parse import urlsplit, urlunsplit


class RequestClass(StrEnum):
    """Delivery strategy chosen for an intercepted request."""

    LIVE_DATA = "live_data"
    MARKUP = "markup"
    STATIC_ASSET = "static_asset"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class RequestIdentity:
    """Normalized cache key: upper-case method + URL without fragment."""

    method: str
    url: str

    @classmethod
    def of(cls, method: str, url: str) -> RequestIdentity:
        scheme, netloc, path, query, _ = urlsplit(url)
        return cls(method=method.upper(), url=urlunsplit((scheme, netloc, path or "/", query, "")))

    @property
    def url_without_query(self) -> str:
        scheme, netloc, path, _, _ = urlsplit(self.url)
        return urlunsplit((scheme, netloc, path, "", ""))


@dataclass(frozen=True)
class InterceptedRequest:
    """A request as seen by the router. Header names are lower-case."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def identity(self) -> RequestIdentity:
        return RequestIdentity.of(self.method, self.url)

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}".lower()

    @property
    def accept(self) -> str:
        return self.headers.get("accept", "")


@dataclass(frozen=True)
class StoredResponse:
    """A complete response body plus headers, as delivered or cached."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300
