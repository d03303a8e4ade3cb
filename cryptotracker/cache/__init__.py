"""
Caching module with tiered freshness, request coalescing, and stale-while-revalidate.
"""
from .core import (
    CacheEntry,
    CacheResult,
    Freshness,
    FreshnessWindows,
    Provenance,
    classify,
)
from .store import CacheStore
from .ttl_policies import (
    TTL_CONFIG,
    build_ttl_config,
    build_windows,
    get_windows_for_kind,
)
from .coalescer import RequestCoalescer
from .manager import CacheManager

__all__ = [
    # Core types
    "CacheEntry",
    "CacheResult",
    "Freshness",
    "FreshnessWindows",
    "Provenance",
    "classify",
    # Store
    "CacheStore",
    # TTL policies
    "TTL_CONFIG",
    "build_ttl_config",
    "build_windows",
    "get_windows_for_kind",
    # Coalescing
    "RequestCoalescer",
    # Manager
    "CacheManager",
]
