"""
Market data service: binds each resource kind to the cache and the
provider chain.

Every public method builds a ResourceDescriptor, validates it, and asks
the CacheManager for it with a fetcher bound to the provider chain and
the kind's freshness windows.
"""
import logging
from typing import Dict, Iterable, Optional

from config.settings import Settings, settings as default_settings

from .cache import CacheManager, CacheResult, FreshnessWindows, build_windows
from .errors import NotFoundError
from .providers import ProviderChain, build_default_chain
from .resources import ResourceDescriptor, ResourceKind

logger = logging.getLogger("market_service")


class MarketDataService:
    """Cached, provider-agnostic access to market data."""

    def __init__(
        self,
        cache: CacheManager,
        chain: ProviderChain,
        windows: Optional[Dict[ResourceKind, FreshnessWindows]] = None,
    ):
        self.cache = cache
        self.chain = chain
        self.windows = windows or build_windows()

    def get(self, descriptor: ResourceDescriptor) -> CacheResult:
        """
        Fetch any resource through the cache.

        Raises:
            InvalidRequestError: for malformed descriptors
            AllProvidersFailedError: when no provider answered and nothing usable is cached
        """
        descriptor.validate()
        return self.cache.get_or_fetch(
            descriptor.cache_key,
            lambda: self.chain.fetch(descriptor),
            self.windows[descriptor.kind],
        )

    def coin_detail(self, coin_id: str) -> CacheResult:
        return self.get(ResourceDescriptor.coin_detail(coin_id))

    def market_chart(self, coin_id: str, days: int = 30, vs_currency: str = "usd") -> CacheResult:
        return self.get(ResourceDescriptor.market_chart(coin_id, days, vs_currency))

    def markets(self, page: int = 1, per_page: int = 20, vs_currency: str = "usd") -> CacheResult:
        return self.get(ResourceDescriptor.markets(page, per_page, vs_currency))

    def global_stats(self) -> CacheResult:
        return self.get(ResourceDescriptor.global_stats())

    def trending(self) -> CacheResult:
        return self.get(ResourceDescriptor.trending())

    def prices(self, ids: Iterable[str]) -> CacheResult:
        return self.get(ResourceDescriptor.prices(ids))

    def conversion(self, from_id: str, to_id: str) -> Dict:
        """
        Conversion rate between two coins, priced in USD.

        Both directions share one cached price pair; the rate is derived
        per request.

        Returns:
            {"rate", "fromPrice", "toPrice", "from", "to", "result"}
            where result is the CacheResult (None for identical ids)

        Raises:
            NotFoundError: if a price is missing for either coin
        """
        descriptor = ResourceDescriptor.conversion(from_id, to_id).validate()
        from_id, to_id = descriptor.from_id, descriptor.to_id

        if from_id == to_id:
            return {
                "rate": 1.0,
                "fromPrice": 1.0,
                "toPrice": 1.0,
                "from": from_id,
                "to": to_id,
                "result": None,
            }

        result = self.get(descriptor)
        prices = result.data or {}
        from_price = prices.get(from_id)
        to_price = prices.get(to_id)
        if not from_price or not to_price:
            missing = [cid for cid, price in ((from_id, from_price), (to_id, to_price)) if not price]
            logger.error(f"Missing prices for conversion {from_id}->{to_id}: {missing}")
            raise NotFoundError(f"Could not fetch prices for: {', '.join(missing)}")

        return {
            "rate": from_price / to_price,
            "fromPrice": from_price,
            "toPrice": to_price,
            "from": from_id,
            "to": to_id,
            "result": result,
        }

    def provider_health(self) -> Dict[str, bool]:
        return self.chain.health()


def create_market_service(config: Optional[Settings] = None) -> MarketDataService:
    """Build the cache manager, provider chain and service from settings."""
    config = config or default_settings
    cache = CacheManager(
        max_revalidation_workers=config.revalidation_workers,
        fetch_wait_timeout=config.fetch_wait_timeout_seconds,
        sweep_max_age=config.cache_sweep_max_age_seconds,
    )
    return MarketDataService(
        cache=cache,
        chain=build_default_chain(config),
        windows=build_windows(config),
    )
