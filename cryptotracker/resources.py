"""
Resource descriptors: what a market-data request asks for, and the
cache key that identifies it.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import InvalidRequestError

MAX_PER_PAGE = 250
MAX_BATCH_IDS = 250


class ResourceKind(Enum):
    """Kinds of upstream resources with their own caching behavior."""
    COIN_DETAIL = "coin_detail"
    MARKET_CHART = "market_chart"
    MARKETS = "markets"
    GLOBAL_STATS = "global_stats"
    TRENDING = "trending"
    PRICES = "prices"
    CONVERSION = "conversion"


def _normalize_id(coin_id: Optional[str]) -> Optional[str]:
    if coin_id is None:
        return None
    return coin_id.strip().lower()


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Provider-agnostic description of a requested resource.

    Build instances with the classmethod constructors, which normalize ids.
    """
    kind: ResourceKind
    coin_id: Optional[str] = None
    ids: Tuple[str, ...] = ()
    days: Optional[int] = None
    page: Optional[int] = None
    per_page: Optional[int] = None
    vs_currency: str = "usd"
    from_id: Optional[str] = None
    to_id: Optional[str] = None

    @classmethod
    def coin_detail(cls, coin_id: str) -> "ResourceDescriptor":
        return cls(ResourceKind.COIN_DETAIL, coin_id=_normalize_id(coin_id))

    @classmethod
    def market_chart(cls, coin_id: str, days: int = 30, vs_currency: str = "usd") -> "ResourceDescriptor":
        return cls(
            ResourceKind.MARKET_CHART,
            coin_id=_normalize_id(coin_id),
            days=days,
            vs_currency=vs_currency.lower(),
        )

    @classmethod
    def markets(cls, page: int = 1, per_page: int = 20, vs_currency: str = "usd") -> "ResourceDescriptor":
        return cls(ResourceKind.MARKETS, page=page, per_page=per_page, vs_currency=vs_currency.lower())

    @classmethod
    def global_stats(cls) -> "ResourceDescriptor":
        return cls(ResourceKind.GLOBAL_STATS)

    @classmethod
    def trending(cls) -> "ResourceDescriptor":
        return cls(ResourceKind.TRENDING)

    @classmethod
    def prices(cls, ids: Iterable[str], vs_currency: str = "usd") -> "ResourceDescriptor":
        unique = sorted({_normalize_id(i) for i in ids if i and i.strip()})
        return cls(ResourceKind.PRICES, ids=tuple(unique), vs_currency=vs_currency.lower())

    @classmethod
    def conversion(cls, from_id: str, to_id: str) -> "ResourceDescriptor":
        from_id = _normalize_id(from_id)
        to_id = _normalize_id(to_id)
        pair = tuple(sorted(i for i in (from_id, to_id) if i))
        return cls(ResourceKind.CONVERSION, ids=pair, from_id=from_id, to_id=to_id)

    def validate(self) -> "ResourceDescriptor":
        """
        Reject requests with missing or malformed parameters.

        Raises:
            InvalidRequestError: describing the first problem found
        """
        kind = self.kind
        if kind in (ResourceKind.COIN_DETAIL, ResourceKind.MARKET_CHART) and not self.coin_id:
            raise InvalidRequestError("Coin ID is required")
        if kind == ResourceKind.MARKET_CHART and (self.days is None or self.days < 1):
            raise InvalidRequestError("days must be a positive integer")
        if kind == ResourceKind.MARKETS:
            if self.page is None or self.page < 1:
                raise InvalidRequestError("page must be a positive integer")
            if self.per_page is None or not 1 <= self.per_page <= MAX_PER_PAGE:
                raise InvalidRequestError(f"per_page must be between 1 and {MAX_PER_PAGE}")
        if kind == ResourceKind.PRICES:
            if not self.ids:
                raise InvalidRequestError("No valid coin IDs provided")
            if len(self.ids) > MAX_BATCH_IDS:
                raise InvalidRequestError(f"At most {MAX_BATCH_IDS} coin IDs per request")
        if kind == ResourceKind.CONVERSION and (not self.from_id or not self.to_id):
            raise InvalidRequestError("Missing from or to parameter")
        return self

    def params(self) -> Dict[str, Any]:
        """Parameters that distinguish this request within its kind."""
        params: Dict[str, Any] = {}
        if self.kind in (ResourceKind.COIN_DETAIL, ResourceKind.MARKET_CHART):
            params["id"] = self.coin_id
        if self.kind == ResourceKind.MARKET_CHART:
            params["days"] = self.days
            params["vs"] = self.vs_currency
        if self.kind == ResourceKind.MARKETS:
            params["page"] = self.page
            params["per_page"] = self.per_page
            params["vs"] = self.vs_currency
        if self.kind == ResourceKind.PRICES:
            params["ids"] = ",".join(self.ids)
            params["vs"] = self.vs_currency
        if self.kind == ResourceKind.CONVERSION:
            # Sorted pair: A->B and B->A share one entry
            params["pair"] = ",".join(self.ids)
        return params

    @property
    def cache_key(self) -> str:
        """Deterministic cache key for kind + sorted params."""
        sorted_params = sorted((k, v) for k, v in self.params().items() if v is not None)
        if not sorted_params:
            return self.kind.value
        return self.kind.value + ":" + "&".join(f"{k}={v}" for k, v in sorted_params)
