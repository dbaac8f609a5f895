"""Custom exception hierarchy for gold-portfolio."""

from typing import Any


class GoldPortfolioError(Exception):
    """Base exception for all gold-portfolio errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(GoldPortfolioError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field (str): the config field that failed validation
        value (Any): the invalid value
    """


class UpstreamUnavailable(GoldPortfolioError):
    """A source or origin could not be reached (network error, timeout, bad status).

    Policy: fatal to a pipeline run. The router treats it as expected and
    falls back to the cache for live-data and markup requests.

    Context keys:
        url (str): the URL that was being fetched
        status_code (int | None): HTTP status if a response arrived
        error (str | None): transport error description
    """


class ParseFailure(GoldPortfolioError):
    """A source was reachable but its content was not recognized.

    Policy: fatal to a pipeline run. Previous snapshot stays authoritative.

    Context keys:
        symbol (str): the instrument being parsed (quotes)
        currency (str): the currency being looked up (reference rates)
        reasons (list[str]): why each parse strategy failed
    """


class StaleUpstreamData(GoldPortfolioError):
    """Every quote source reports a date older than the staleness threshold.

    Policy: fatal to a pipeline run. Nothing is written.

    Context keys:
        ages (dict[str, int]): age in days per symbol
        threshold_days (int): the configured threshold
    """


class StoreUnavailable(GoldPortfolioError):
    """The cache store could not be opened, read or written.

    Policy: non-fatal. The router degrades to direct network passthrough.

    Context keys:
        operation (str): "open", "match", "put", "purge", etc.
        generation (str | None): the generation involved
    """


class PersistenceError(GoldPortfolioError):
    """Writing or reading back the snapshot or history file failed.

    Policy: raise immediately. Exit status reports the failure.

    Context keys:
        path (str): the file that could not be written or read
        line (int): the malformed history line, when reading
    """
