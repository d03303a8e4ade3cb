"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Upstream providers
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: Optional[str] = None
    binance_base_url: str = "https://api.binance.com/api/v3"
    binance_enabled: bool = True

    # Per-provider request timeout (seconds)
    provider_timeout_seconds: float = 8.0

    # Upper bound a caller waits on another caller's in-flight fetch.
    # The initiating caller is bounded by provider timeouts instead.
    fetch_wait_timeout_seconds: float = 10.0

    # Background revalidation pool
    revalidation_workers: int = 4

    # Periodic sweep of entries past every ceiling
    cache_sweep_interval_seconds: int = 300
    cache_sweep_max_age_seconds: int = 7200

    # Freshness windows (fresh / stale / max stale) per resource kind
    coin_detail_fresh_seconds: int = 60
    coin_detail_stale_seconds: int = 300
    coin_detail_max_stale_seconds: int = 1800

    market_chart_fresh_seconds: int = 60
    market_chart_stale_seconds: int = 300
    market_chart_max_stale_seconds: int = 1800

    markets_fresh_seconds: int = 60
    markets_stale_seconds: int = 300
    markets_max_stale_seconds: int = 1800

    global_stats_fresh_seconds: int = 60
    global_stats_stale_seconds: int = 300
    global_stats_max_stale_seconds: int = 1800

    trending_fresh_seconds: int = 300
    trending_stale_seconds: int = 1800
    trending_max_stale_seconds: int = 7200

    prices_fresh_seconds: int = 180
    prices_stale_seconds: int = 1800
    prices_max_stale_seconds: int = 7200

    # Conversion rates are single-tier: no stale window
    conversion_fresh_seconds: int = 30
    conversion_stale_seconds: int = 30
    conversion_max_stale_seconds: int = 300

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
