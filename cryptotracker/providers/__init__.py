"""
Upstream market-data providers and the fallback chain that fronts them.

Primary: CoinGecko. Fallback: Binance (subset of coins, no market cap).
Trending falls back to a static popular-coins list.
"""
import logging
from typing import Optional

from config.settings import Settings, settings as default_settings

from .base import DataProvider, HTTPDataProvider, ProviderAttempt, ProviderResult
from .binance import BinanceProvider
from .chain import ProviderChain
from .coingecko import CoinGeckoProvider
from .static import StaticTrendingProvider

logger = logging.getLogger("providers")

__all__ = [
    "DataProvider",
    "HTTPDataProvider",
    "ProviderAttempt",
    "ProviderResult",
    "ProviderChain",
    "CoinGeckoProvider",
    "BinanceProvider",
    "StaticTrendingProvider",
    "build_default_chain",
]


def build_default_chain(config: Optional[Settings] = None) -> ProviderChain:
    """
    Build the configured provider chain.

    CoinGecko is always first. Binance is added unless disabled in
    settings, and the static trending list is always last.
    """
    config = config or default_settings
    providers = [
        CoinGeckoProvider(
            base_url=config.coingecko_base_url,
            api_key=config.coingecko_api_key,
        )
    ]
    if config.binance_enabled:
        providers.append(BinanceProvider(base_url=config.binance_base_url))
    else:
        logger.info("Binance fallback disabled")
    providers.append(StaticTrendingProvider())

    logger.info(f"Provider chain: {[p.provider_id for p in providers]}")
    return ProviderChain(providers, timeout=config.provider_timeout_seconds)
