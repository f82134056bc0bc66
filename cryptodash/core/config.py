from __future__ import annotations

import os
from pathlib import Path

import tomli as tomllib
from pydantic import BaseModel, Field, ValidationError


class MarketDataConfig(BaseModel):
    base_url: str = "https://api.coingecko.com/api/v3"
    api_key_env: str = "COINGECKO_API_KEY"
    vs_currency: str = "usd"
    markets_per_page: int = Field(default=100, ge=1, le=250)
    timeout_s: float = 10.0


class TickPriceConfig(BaseModel):
    base_url: str = "https://min-api.cryptocompare.com/data"
    api_key_env: str = "CRYPTOCOMPARE_API_KEY"
    quote: str = "USD"
    timeout_s: float = 10.0


class CompletionConfig(BaseModel):
    api_key_env: str = "ANTHROPIC_API_KEY"
    model: str = "claude-3-5-haiku-latest"
    temperature: float = Field(default=0.4, ge=0.0, le=1.0)
    max_tokens: int = Field(default=300, ge=1)


class PollingConfig(BaseModel):
    interval_ms: int = Field(default=1000, ge=100)
    max_history_points: int = Field(default=60, ge=1)


class CacheConfig(BaseModel):
    detail_ttl_seconds: int = Field(default=120, ge=0)


class RetryConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    base_delay_s: float = Field(default=2.0, ge=0.0)


class SelectionConfig(BaseModel):
    max_tracked: int = Field(default=5, ge=1)


class StorageConfig(BaseModel):
    tracked_coins_path: Path = Path("data/tracked_coins.json")


class ApiConfig(BaseModel):
    token_env: str = "CRYPTODASH_API_TOKEN"
    host: str = "127.0.0.1"
    port: int = 8000


class AppConfig(BaseModel):
    log_level: str = "INFO"
    market_data: MarketDataConfig = Field(default_factory=MarketDataConfig)
    tick_prices: TickPriceConfig = Field(default_factory=TickPriceConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)


def _load_env_file(path: Path = Path(".env")) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        entry = line.strip()
        if not entry or entry.startswith("#") or "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def load_config(path: Path | str = "config.toml") -> AppConfig:
    _load_env_file()
    config_path = Path(path)
    if not config_path.exists():
        return AppConfig()
    with config_path.open("rb") as f:
        data = tomllib.load(f)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid config at {config_path}: {exc}") from exc


def api_key_from_env(env_name: str) -> str:
    return os.getenv(env_name, "").strip()
