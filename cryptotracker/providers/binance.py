"""
Binance provider - secondary source used when CoinGecko fails.

Binance only knows exchange symbols, so coins are mapped from CoinGecko ids
and responses are reshaped into the CoinGecko format. Binance has no market
cap data; those fields are reported as 0.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..errors import ProviderError
from ..resources import ResourceDescriptor, ResourceKind
from .base import HTTPDataProvider

logger = logging.getLogger("providers.binance")

# CoinGecko id -> Binance USDT pair
COINGECKO_TO_BINANCE: Dict[str, str] = {
    "bitcoin": "BTCUSDT",
    "ethereum": "ETHUSDT",
    "binancecoin": "BNBUSDT",
    "ripple": "XRPUSDT",
    "cardano": "ADAUSDT",
    "solana": "SOLUSDT",
    "polkadot": "DOTUSDT",
    "dogecoin": "DOGEUSDT",
    "avalanche-2": "AVAXUSDT",
    "shiba-inu": "SHIBUSDT",
    "matic-network": "MATICUSDT",
    "litecoin": "LTCUSDT",
    "chainlink": "LINKUSDT",
    "uniswap": "UNIUSDT",
    "cosmos": "ATOMUSDT",
    "stellar": "XLMUSDT",
    "algorand": "ALGOUSDT",
    "vechain": "VETUSDT",
    "filecoin": "FILUSDT",
    "tron": "TRXUSDT",
    "wrapped-bitcoin": "WBTCUSDT",
    "near": "NEARUSDT",
    "internet-computer": "ICPUSDT",
    "aptos": "APTUSDT",
    "aave": "AAVEUSDT",
    "the-graph": "GRTUSDT",
    "the-sandbox": "SANDUSDT",
    "decentraland": "MANAUSDT",
    "axie-infinity": "AXSUSDT",
    "maker": "MKRUSDT",
    "optimism": "OPUSDT",
    "arbitrum": "ARBUSDT",
    "sui": "SUIUSDT",
    "pepe": "PEPEUSDT",
    "immutable-x": "IMXUSDT",
    "injective-protocol": "INJUSDT",
    "render-token": "RENDERUSDT",
    "celestia": "TIAUSDT",
    "sei-network": "SEIUSDT",
    "bonk": "BONKUSDT",
    "starknet": "STRKUSDT",
    "the-open-network": "TONUSDT",
    "bitcoin-cash": "BCHUSDT",
    "ethereum-classic": "ETCUSDT",
    "hedera-hashgraph": "HBARUSDT",
    "lido-dao": "LDOUSDT",
    "fetch-ai": "FETUSDT",
    "theta-token": "THETAUSDT",
    "chiliz": "CHZUSDT",
    "curve-dao-token": "CRVUSDT",
    "zcash": "ZECUSDT",
    "dash": "DASHUSDT",
    "neo": "NEOUSDT",
}

BINANCE_TO_COINGECKO: Dict[str, str] = {v: k for k, v in COINGECKO_TO_BINANCE.items()}

# Binance prices are quoted in USDT, treated as USD
SUPPORTED_VS_CURRENCIES = {"usd"}

_SUPPORTED_KINDS = {
    ResourceKind.COIN_DETAIL,
    ResourceKind.MARKET_CHART,
    ResourceKind.MARKETS,
    ResourceKind.PRICES,
    ResourceKind.CONVERSION,
}


def get_binance_symbol(coin_id: str) -> Optional[str]:
    """Get Binance symbol from CoinGecko ID."""
    return COINGECKO_TO_BINANCE.get(coin_id.lower())


def calculate_chart_params(days: int) -> Tuple[str, int]:
    """
    Pick a kline interval and candle count covering the requested days.

    Returns:
        (interval, limit)
    """
    if days <= 1:
        return "15m", 96
    if days <= 3:
        return "1h", min(72, days * 24)
    if days <= 7:
        return "2h", min(84, days * 12)
    if days <= 30:
        return "4h", min(180, days * 6)
    if days <= 90:
        return "1d", min(90, days)
    return "1d", min(1000, days)


def _coin_name(coin_id: str) -> str:
    """'shiba-inu' -> 'Shiba Inu'"""
    return " ".join(word.capitalize() for word in coin_id.split("-"))


def _image_urls(coin_id: str) -> Dict[str, str]:
    base = "https://assets.coingecko.com/coins/images/1"
    return {size: f"{base}/{size}/{coin_id}.png" for size in ("large", "small", "thumb")}


class BinanceProvider(HTTPDataProvider):
    """REST adapter for the Binance spot market API."""

    def __init__(
        self,
        base_url: str = "https://api.binance.com/api/v3",
        session: Optional[requests.Session] = None,
    ):
        super().__init__(base_url, session=session)

    @property
    def provider_id(self) -> str:
        return "binance"

    def supports(self, descriptor: ResourceDescriptor) -> bool:
        if descriptor.kind not in _SUPPORTED_KINDS:
            return False
        if descriptor.vs_currency not in SUPPORTED_VS_CURRENCIES:
            return False
        if descriptor.kind in (ResourceKind.COIN_DETAIL, ResourceKind.MARKET_CHART):
            return get_binance_symbol(descriptor.coin_id or "") is not None
        if descriptor.kind == ResourceKind.CONVERSION:
            return all(get_binance_symbol(i) for i in descriptor.ids)
        if descriptor.kind == ResourceKind.PRICES:
            return any(get_binance_symbol(i) for i in descriptor.ids)
        return True

    def fetch(self, descriptor: ResourceDescriptor, timeout: float) -> Any:
        if not self.supports(descriptor):
            raise ProviderError(
                f"Binance cannot serve {descriptor.cache_key}",
                provider_id=self.provider_id,
            )
        kind = descriptor.kind

        if kind == ResourceKind.COIN_DETAIL:
            return self._coin_detail(descriptor.coin_id, timeout)
        if kind == ResourceKind.MARKET_CHART:
            return self._market_chart(descriptor.coin_id, descriptor.days or 30, timeout)
        if kind == ResourceKind.MARKETS:
            return self._markets(descriptor.page or 1, descriptor.per_page or 20, timeout)
        return self._prices(descriptor.ids, timeout)

    def _ticker(self, symbol: str, timeout: float) -> Dict[str, Any]:
        data = self._get_json("ticker/24hr", {"symbol": symbol}, timeout)
        if not isinstance(data, dict) or "lastPrice" not in data:
            raise self._malformed("24hr ticker")
        return data

    def _coin_detail(self, coin_id: str, timeout: float) -> Dict[str, Any]:
        symbol = get_binance_symbol(coin_id)
        ticker = self._ticker(symbol, timeout)
        try:
            high = float(ticker["highPrice"])
            market_data = {
                "current_price": {"usd": float(ticker["lastPrice"])},
                "price_change_percentage_24h": float(ticker["priceChangePercent"]),
                "market_cap": {"usd": 0},
                "market_cap_rank": 0,
                "high_24h": {"usd": high},
                "low_24h": {"usd": float(ticker["lowPrice"])},
                "total_volume": {"usd": float(ticker.get("quoteVolume", 0))},
                "circulating_supply": 0,
                "total_supply": None,
                "ath": {"usd": high},
            }
        except (KeyError, TypeError, ValueError):
            raise self._malformed("24hr ticker")

        logger.info(f"Using Binance fallback details for {coin_id}")
        return {
            "id": coin_id,
            "symbol": symbol.replace("USDT", "").lower(),
            "name": _coin_name(coin_id),
            "image": _image_urls(coin_id),
            "market_data": market_data,
            "description": {"en": "Price data from Binance. Full details unavailable."},
            "links": {"homepage": [], "blockchain_site": []},
        }

    def _market_chart(self, coin_id: str, days: int, timeout: float) -> Dict[str, Any]:
        symbol = get_binance_symbol(coin_id)
        interval, limit = calculate_chart_params(days)
        klines = self._get_json(
            "klines",
            {"symbol": symbol, "interval": interval, "limit": limit},
            timeout,
        )
        if not isinstance(klines, list):
            raise self._malformed("klines")
        try:
            # [openTime, open, high, low, close, volume, closeTime, ...]
            prices = [[k[6], float(k[4])] for k in klines]
            volumes = [[k[6], float(k[5])] for k in klines]
        except (IndexError, TypeError, ValueError):
            raise self._malformed("klines")

        logger.info(
            f"Using Binance chart fallback for {coin_id} ({interval}, {len(klines)} candles)"
        )
        return {
            "prices": prices,
            "market_caps": [[ts, 0] for ts, _ in prices],
            "total_volumes": volumes,
        }

    def _markets(self, page: int, per_page: int, timeout: float) -> List[Dict[str, Any]]:
        symbols = json.dumps(list(COINGECKO_TO_BINANCE.values()), separators=(",", ":"))
        tickers = self._get_json("ticker/24hr", {"symbols": symbols}, timeout)
        if not isinstance(tickers, list):
            raise self._malformed("24hr tickers")

        rows = []
        try:
            for ticker in tickers:
                coin_id = BINANCE_TO_COINGECKO.get(ticker.get("symbol", ""))
                if coin_id is None:
                    continue
                rows.append((float(ticker["quoteVolume"]), coin_id, ticker))
        except (KeyError, TypeError, ValueError, AttributeError):
            raise self._malformed("24hr tickers")

        # Volume stands in for market cap ranking
        rows.sort(key=lambda row: row[0], reverse=True)
        start = (page - 1) * per_page
        results = []
        for rank, (_, coin_id, ticker) in enumerate(rows[start:start + per_page], start=start + 1):
            results.append({
                "id": coin_id,
                "symbol": ticker["symbol"].replace("USDT", "").lower(),
                "name": _coin_name(coin_id),
                "image": _image_urls(coin_id)["small"],
                "current_price": float(ticker["lastPrice"]),
                "market_cap": 0,
                "market_cap_rank": rank,
                "price_change_percentage_24h": float(ticker["priceChangePercent"]),
                "high_24h": float(ticker["highPrice"]),
                "low_24h": float(ticker["lowPrice"]),
                "total_volume": float(ticker["volume"]),
            })
        return results

    def _prices(self, coin_ids: Tuple[str, ...], timeout: float) -> Dict[str, float]:
        id_to_symbol = {i: get_binance_symbol(i) for i in coin_ids if get_binance_symbol(i)}
        symbols = json.dumps(sorted(set(id_to_symbol.values())), separators=(",", ":"))
        data = self._get_json("ticker/price", {"symbols": symbols}, timeout)
        if not isinstance(data, list):
            raise self._malformed("price list")

        by_symbol: Dict[str, float] = {}
        try:
            for item in data:
                by_symbol[item["symbol"]] = float(item["price"])
        except (KeyError, TypeError, ValueError):
            raise self._malformed("price list")

        return {
            coin_id: by_symbol[symbol]
            for coin_id, symbol in id_to_symbol.items()
            if symbol in by_symbol
        }

    def ping(self, timeout: float = 5.0) -> bool:
        try:
            data = self._get_json("time", timeout=timeout)
            return bool(isinstance(data, dict) and data.get("serverTime"))
        except ProviderError as e:
            logger.info(f"Binance health check failed: {e}")
            return False
