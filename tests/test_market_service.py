"""
Tests for the market data service wiring and settings-driven windows.
"""
import logging

import pytest

from config.settings import Settings
from cryptotracker.cache import CacheManager, Provenance, build_windows
from cryptotracker.errors import InvalidRequestError, NotFoundError
from cryptotracker.market_service import MarketDataService, create_market_service
from cryptotracker.providers import ProviderChain
from cryptotracker.resources import ResourceKind

from fakes import FakeClock, FakeProvider


@pytest.fixture
def provider():
    return FakeProvider("coingecko", payload={"bitcoin": 50000.0, "tether": 1.0})


@pytest.fixture
def service(provider):
    service = MarketDataService(
        cache=CacheManager(clock=FakeClock()),
        chain=ProviderChain([provider]),
    )
    yield service
    service.cache.shutdown()


def test_windows_follow_settings():
    windows = build_windows(Settings(trending_fresh_seconds=120, trending_stale_seconds=600))

    assert windows[ResourceKind.TRENDING].fresh_seconds == 120
    assert windows[ResourceKind.TRENDING].stale_seconds == 600
    assert windows[ResourceKind.CONVERSION].fresh_seconds == windows[ResourceKind.CONVERSION].stale_seconds
    assert set(windows) == set(ResourceKind)


def test_default_windows_have_ceilings_past_stale():
    for kind, windows in build_windows(Settings()).items():
        assert windows.ceiling_seconds >= windows.stale_seconds, kind


def test_conversion_rate(service):
    conversion = service.conversion("BITCOIN", "tether")

    assert conversion["rate"] == 50000.0
    assert conversion["from"] == "bitcoin"
    assert conversion["result"].provenance == Provenance.MISS


def test_conversion_missing_price(service):
    with pytest.raises(NotFoundError):
        service.conversion("bitcoin", "dogecoin")


def test_invalid_request_never_reaches_provider(service, provider):
    with pytest.raises(InvalidRequestError):
        service.market_chart("", days=7)
    assert provider.call_count == 0


def test_create_market_service_from_settings():
    service = create_market_service(Settings(binance_enabled=False, provider_timeout_seconds=2))
    try:
        assert [p.provider_id for p in service.chain.providers] == ["coingecko", "static"]
        assert service.windows[ResourceKind.PRICES].fresh_seconds == 180
    finally:
        service.cache.shutdown()


def test_default_chain_logs_under_providers_logger(caplog):
    caplog.set_level(logging.INFO, logger="providers")

    service = create_market_service(Settings())
    service.cache.shutdown()

    assert any(
        record.name == "providers" and "Provider chain" in record.getMessage()
        for record in caplog.records
    )
