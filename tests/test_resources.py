"""
Tests for resource descriptors and cache key derivation.
"""
import pytest

from cryptotracker.errors import InvalidRequestError
from cryptotracker.resources import MAX_PER_PAGE, ResourceDescriptor, ResourceKind


def test_cache_key_is_kind_plus_sorted_params():
    key = ResourceDescriptor.market_chart("Bitcoin", days=7).cache_key
    assert key == "market_chart:days=7&id=bitcoin&vs=usd"


def test_parameterless_kinds_use_bare_key():
    assert ResourceDescriptor.global_stats().cache_key == "global_stats"
    assert ResourceDescriptor.trending().cache_key == "trending"


def test_conversion_key_is_symmetric():
    forward = ResourceDescriptor.conversion("bitcoin", "ethereum")
    backward = ResourceDescriptor.conversion("ethereum", "bitcoin")
    assert forward.cache_key == backward.cache_key == "conversion:pair=bitcoin,ethereum"
    # Direction is still kept on the descriptor
    assert forward.from_id == "bitcoin"
    assert backward.from_id == "ethereum"


def test_price_ids_are_deduplicated_and_sorted():
    descriptor = ResourceDescriptor.prices(["solana", "Bitcoin", " bitcoin ", ""])
    assert descriptor.ids == ("bitcoin", "solana")
    assert descriptor.cache_key == "prices:ids=bitcoin,solana&vs=usd"


def test_distinct_requests_get_distinct_keys():
    keys = {
        ResourceDescriptor.coin_detail("bitcoin").cache_key,
        ResourceDescriptor.coin_detail("ethereum").cache_key,
        ResourceDescriptor.market_chart("bitcoin", days=1).cache_key,
        ResourceDescriptor.market_chart("bitcoin", days=30).cache_key,
        ResourceDescriptor.markets(page=1, per_page=20).cache_key,
        ResourceDescriptor.markets(page=2, per_page=20).cache_key,
    }
    assert len(keys) == 6


@pytest.mark.parametrize("descriptor", [
    ResourceDescriptor(ResourceKind.COIN_DETAIL),
    ResourceDescriptor.coin_detail("  "),
    ResourceDescriptor.market_chart("bitcoin", days=0),
    ResourceDescriptor.markets(page=0),
    ResourceDescriptor.markets(per_page=MAX_PER_PAGE + 1),
    ResourceDescriptor.prices([]),
    ResourceDescriptor.prices([" ", ""]),
    ResourceDescriptor.conversion("bitcoin", ""),
])
def test_invalid_descriptors_are_rejected(descriptor):
    with pytest.raises(InvalidRequestError):
        descriptor.validate()


def test_valid_descriptor_returns_itself():
    descriptor = ResourceDescriptor.markets(page=2, per_page=50)
    assert descriptor.validate() is descriptor
