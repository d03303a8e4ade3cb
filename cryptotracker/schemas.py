"""
Pydantic schemas for API responses
Market data routes return upstream payloads as-is; these cover the service routes
"""
from pydantic import BaseModel
from typing import Any, Dict, List


# ===== SERVICE SCHEMAS =====

class HealthStatus(BaseModel):
    """Liveness response"""
    status: str
    name: str
    version: str


class InvalidationResult(BaseModel):
    """Number of cache entries dropped"""
    removed: int


# ===== CACHE SCHEMAS =====

class CacheEntryStat(BaseModel):
    """One cached key with its age and serving provider"""
    key: str
    age_seconds: float
    source: str


class CacheStats(BaseModel):
    """Cache contents and counters"""
    entry_count: int
    in_flight_count: int
    entries: List[CacheEntryStat]
    hits_fresh: int
    hits_stale: int
    misses: int
    error_stale: int
    revalidations: int
    revalidation_failures: int
    hit_rate_percent: float
    coalescer: Dict[str, Any]


# ===== PROVIDER SCHEMAS =====

class ProviderStatus(BaseModel):
    """Reachability of one upstream"""
    status: str
    available: bool


class ProviderHealth(BaseModel):
    """Reachability of every upstream in the chain"""
    status: str
    services: Dict[str, ProviderStatus]
    fallbackEnabled: bool
    message: str
