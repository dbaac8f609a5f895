"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from gold_portfolio.core.exceptions import ConfigError

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Gold-Portfolio-Updater; +https://github.com/konradclos/Gold)"
)


class SourcesConfig(BaseModel):
    """Upstream quote and reference-rate source configuration."""

    model_config = ConfigDict(frozen=True)

    user_agent: str = _DEFAULT_USER_AGENT
    accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
    accept_language: str = "en,de;q=0.9"
    request_timeout: float = 20.0
    rate_limit: int = 4
    quote_page_url: str = "https://stooq.com/q/?s={symbol}"
    series_url: str = "https://stooq.com/q/d/l/?s={symbol}&i=d"
    reference_rates_url: str = (
        "https://www.ecb.europa.eu/stats/eurofxref/eurofxref-daily.xml"
    )

    @field_validator("quote_page_url", "series_url")
    @classmethod
    def url_has_symbol_placeholder(cls, v: str) -> str:
        if "{symbol}" not in v:
            raise ValueError("source URL templates must contain '{symbol}'")
        return v

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate_limit must be >= 1")
        return v


class PipelineConfig(BaseModel):
    """Price acquisition settings."""

    model_config = ConfigDict(frozen=True)

    primary_symbol: str = "xaueur"
    check_symbol: str = "xauusd"
    primary_source: str = "stooq-xaueur"
    check_source: str = "stooq-xauusd + ecb-usd-per-eur"
    base_currency: str = "EUR"
    quote_currency: str = "USD"
    stale_after_days: int = 10
    data_dir: str = "./data"
    snapshot_file: str = "price.json"
    history_file: str = "history.jsonl"

    @field_validator("stale_after_days")
    @classmethod
    def stale_threshold_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("stale_after_days must be >= 1")
        return v

    @property
    def snapshot_path(self) -> Path:
        return Path(self.data_dir) / self.snapshot_file

    @property
    def history_path(self) -> Path:
        return Path(self.data_dir) / self.history_file


class CacheConfig(BaseModel):
    """Versioned cache store and router configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/cache.db"
    namespace: str = "gold-portfolio"
    generation: str = "v4"
    app_shell: tuple[str, ...] = (
        "./",
        "./index.html",
        "./manifest.json",
        "./service-worker.js",
        "./icon-192.png",
        "./icon-512.png",
    )
    live_data_paths: tuple[str, ...] = ("/data/price.json", "/data/history.jsonl")
    live_timeout: float = 12.0
    markup_timeout: float = 8.0
    asset_timeout: float = 30.0

    @field_validator("live_timeout", "markup_timeout", "asset_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v


class GatewayConfig(BaseModel):
    """Offline gateway server configuration."""

    model_config = ConfigDict(frozen=True)

    origin: str = "http://localhost:8080/"
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator("origin")
    @classmethod
    def origin_is_http(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("origin must be an http(s) URL")
        return v if v.endswith("/") else v + "/"


class PortfolioConfig(BaseModel):
    """Root configuration for the entire gold-portfolio system."""

    model_config = ConfigDict(frozen=True)

    sources: SourcesConfig = SourcesConfig()
    pipeline: PipelineConfig = PipelineConfig()
    cache: CacheConfig = CacheConfig()
    gateway: GatewayConfig = GatewayConfig()


ENV_PREFIX = "GOLD_PORTFOLIO_"
CONFIG_ENV_VAR = ENV_PREFIX + "CONFIG"
DEFAULT_CONFIG_FILE = "gold-portfolio.yml"

_BOOLEANS = {"true": True, "false": False}


def load_config(
    config_path: str | None = None,
    env_prefix: str = ENV_PREFIX,
) -> PortfolioConfig:
    """Build the configuration from defaults, a YAML file and the environment.

    Later sources win:

    1. Built-in defaults
    2. YAML file (explicit path, else $GOLD_PORTFOLIO_CONFIG, else
       ./gold-portfolio.yml when present)
    3. Environment variables, ``__`` separating nesting levels:
       GOLD_PORTFOLIO_PIPELINE__STALE_AFTER_DAYS=5 sets pipeline.stale_after_days

    Raises:
        ConfigError: Missing or malformed file, or a value failing validation.
    """
    try:
        path = _resolve_config_path(config_path)
        settings = _load_yaml(path) if path is not None else {}
        return PortfolioConfig.model_validate(_merge_env_vars(settings, env_prefix))
    except ConfigError:
        raise
    except Exception as e:
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    candidates = (
        ("config_path", explicit),
        (CONFIG_ENV_VAR, os.environ.get(CONFIG_ENV_VAR)),
    )
    for field, candidate in candidates:
        if not candidate:
            continue
        path = Path(candidate)
        if not path.exists():
            raise ConfigError(
                f"Config file not found: {candidate}",
                context={"field": field, "value": candidate},
            )
        return path

    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.exists() else None


def _load_yaml(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {path}: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file must hold a mapping, got {type(data).__name__}",
            context={"field": "config_file", "value": str(path)},
        )
    return data


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay ``<prefix>SECTION__KEY`` variables onto the file settings."""
    merged = dict(base)
    for name, raw in os.environ.items():
        if not name.startswith(prefix) or name == CONFIG_ENV_VAR:
            continue
        *sections, key = name[len(prefix) :].lower().split("__")
        node = merged
        for section in sections:
            child = node.get(section)
            node[section] = child = dict(child) if isinstance(child, dict) else {}
            node = child
        node[key] = _auto_cast(raw)
    return merged


def _auto_cast(value: str) -> str | int | float | bool:
    """Env values arrive as strings: give booleans and numbers their types."""
    if value.lower() in _BOOLEANS:
        return _BOOLEANS[value.lower()]
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value
