"""
Static last-resort provider for the trending list.

Neither upstream has a trending equivalent to fall back on, so a fixed
list of popular coins is served when CoinGecko is down.
"""
from typing import Any, Dict, List

from ..resources import ResourceDescriptor, ResourceKind
from .base import DataProvider

POPULAR_COINS: List[Dict[str, Any]] = [
    {"id": "bitcoin", "name": "Bitcoin", "symbol": "BTC", "market_cap_rank": 1},
    {"id": "ethereum", "name": "Ethereum", "symbol": "ETH", "market_cap_rank": 2},
    {"id": "ripple", "name": "XRP", "symbol": "XRP", "market_cap_rank": 3},
    {"id": "binancecoin", "name": "BNB", "symbol": "BNB", "market_cap_rank": 4},
    {"id": "solana", "name": "Solana", "symbol": "SOL", "market_cap_rank": 5},
    {"id": "cardano", "name": "Cardano", "symbol": "ADA", "market_cap_rank": 8},
    {"id": "dogecoin", "name": "Dogecoin", "symbol": "DOGE", "market_cap_rank": 9},
]


class StaticTrendingProvider(DataProvider):
    """Serves a fixed trending list in the CoinGecko /search/trending shape."""

    @property
    def provider_id(self) -> str:
        return "static"

    def supports(self, descriptor: ResourceDescriptor) -> bool:
        return descriptor.kind == ResourceKind.TRENDING

    def fetch(self, descriptor: ResourceDescriptor, timeout: float) -> Any:
        return {"coins": [{"item": dict(coin)} for coin in POPULAR_COINS]}
