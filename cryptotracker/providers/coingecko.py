"""
CoinGecko provider - primary source for every resource kind.
"""
import logging
from typing import Any, Dict, Optional

import requests

from ..errors import ProviderError
from ..resources import ResourceDescriptor, ResourceKind
from .base import HTTPDataProvider

logger = logging.getLogger("providers.coingecko")


class CoinGeckoProvider(HTTPDataProvider):
    """REST adapter for the CoinGecko v3 API."""

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        headers = {"x-cg-demo-api-key": api_key} if api_key else None
        super().__init__(base_url, session=session, headers=headers)

    @property
    def provider_id(self) -> str:
        return "coingecko"

    def supports(self, descriptor: ResourceDescriptor) -> bool:
        return True

    def fetch(self, descriptor: ResourceDescriptor, timeout: float) -> Any:
        kind = descriptor.kind

        if kind == ResourceKind.COIN_DETAIL:
            data = self._get_json(
                f"coins/{descriptor.coin_id}",
                {"localization": "false", "tickers": "false", "market_data": "true"},
                timeout,
            )
            if not isinstance(data, dict) or "id" not in data:
                raise self._malformed("coin details")
            return data

        if kind == ResourceKind.MARKET_CHART:
            data = self._get_json(
                f"coins/{descriptor.coin_id}/market_chart",
                {"vs_currency": descriptor.vs_currency, "days": descriptor.days},
                timeout,
            )
            if not isinstance(data, dict) or not isinstance(data.get("prices"), list):
                raise self._malformed("market chart")
            return data

        if kind == ResourceKind.MARKETS:
            data = self._get_json(
                "coins/markets",
                {
                    "vs_currency": descriptor.vs_currency,
                    "order": "market_cap_desc",
                    "per_page": descriptor.per_page,
                    "page": descriptor.page,
                    "sparkline": "false",
                },
                timeout,
            )
            if not isinstance(data, list):
                raise self._malformed("market listing")
            return data

        if kind == ResourceKind.GLOBAL_STATS:
            data = self._get_json("global", timeout=timeout)
            if not isinstance(data, dict) or "data" not in data:
                raise self._malformed("global stats")
            return data

        if kind == ResourceKind.TRENDING:
            data = self._get_json("search/trending", timeout=timeout)
            if not isinstance(data, dict) or not isinstance(data.get("coins"), list):
                raise self._malformed("trending list")
            return data

        if kind in (ResourceKind.PRICES, ResourceKind.CONVERSION):
            vs_currency = descriptor.vs_currency
            data = self._get_json(
                "simple/price",
                {"ids": ",".join(descriptor.ids), "vs_currencies": vs_currency},
                timeout,
            )
            return self._parse_simple_prices(data, vs_currency)

        raise ProviderError(f"Unsupported resource kind: {kind.value}", provider_id=self.provider_id)

    def _parse_simple_prices(self, data: Any, vs_currency: str) -> Dict[str, float]:
        """{"bitcoin": {"usd": 1.0}} -> {"bitcoin": 1.0}"""
        if not isinstance(data, dict):
            raise self._malformed("price map")
        prices: Dict[str, float] = {}
        for coin_id, quote in data.items():
            if isinstance(quote, dict) and quote.get(vs_currency) is not None:
                try:
                    prices[coin_id] = float(quote[vs_currency])
                except (TypeError, ValueError):
                    raise self._malformed(f"price for {coin_id}")
        return prices

    def ping(self, timeout: float = 5.0) -> bool:
        try:
            self._get_json("ping", timeout=timeout)
            return True
        except ProviderError as e:
            logger.info(f"CoinGecko health check failed: {e}")
            return False
