from __future__ import annotations

from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CACHE_DIR = PROJECT_ROOT / ".cache"


class AppSettings(BaseSettings):
    coingecko_api_key: str = ""
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_timeout_seconds: float = 10.0

    rate_cache_ttl_seconds: int = 60
    rate_refresh_interval_seconds: int = 15 * 60
    rates_file: Path = CACHE_DIR / "rates.json"
    default_currency: str = "usd"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()
