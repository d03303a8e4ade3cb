"""
Core cache data structures and the freshness policy.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Freshness(Enum):
    """Age classification of a cached entry."""
    FRESH = "fresh"       # Within fresh window, served with no network activity
    STALE = "stale"       # Past fresh window, served while revalidating
    EXPIRED = "expired"   # Past stale window, must be refetched


class Provenance(Enum):
    """How a response was produced."""
    HIT = "hit"
    STALE = "stale"
    MISS = "miss"
    ERROR_STALE = "error-stale"


def classify(
    now: float,
    fetched_at: float,
    fresh_seconds: float,
    stale_seconds: float,
) -> Freshness:
    """
    Classify an entry by age.

    Args:
        now: Current clock reading
        fetched_at: Clock reading when the entry was fetched
        fresh_seconds: Length of the fresh window
        stale_seconds: End of the stale window (measured from fetch time)

    Returns:
        FRESH, STALE or EXPIRED
    """
    age = now - fetched_at
    if age < fresh_seconds:
        return Freshness.FRESH
    if age < stale_seconds:
        return Freshness.STALE
    return Freshness.EXPIRED


@dataclass(frozen=True)
class FreshnessWindows:
    """
    Freshness configuration for one resource kind.

    All windows are measured from fetch time. fresh == stale means the
    resource has no stale tier. max_stale_seconds is the absolute ceiling
    past which cached data is never served, even when upstream is down.
    """
    fresh_seconds: float
    stale_seconds: float
    max_stale_seconds: Optional[float] = None

    def __post_init__(self):
        if self.fresh_seconds < 0:
            raise ValueError("fresh_seconds must be non-negative")
        if self.stale_seconds < self.fresh_seconds:
            raise ValueError(
                f"stale_seconds ({self.stale_seconds}) must be >= "
                f"fresh_seconds ({self.fresh_seconds})"
            )
        if self.max_stale_seconds is not None and self.max_stale_seconds < self.stale_seconds:
            raise ValueError(
                f"max_stale_seconds ({self.max_stale_seconds}) must be >= "
                f"stale_seconds ({self.stale_seconds})"
            )

    @property
    def ceiling_seconds(self) -> float:
        """Absolute ceiling for error-stale serving."""
        if self.max_stale_seconds is None:
            return self.stale_seconds
        return self.max_stale_seconds

    @property
    def has_stale_tier(self) -> bool:
        return self.stale_seconds > self.fresh_seconds

    def classify(self, now: float, fetched_at: float) -> Freshness:
        return classify(now, fetched_at, self.fresh_seconds, self.stale_seconds)

    def cache_control(self) -> str:
        """Cache-Control header value matching these windows."""
        value = f"public, s-maxage={int(self.fresh_seconds)}"
        if self.has_stale_tier:
            value += f", stale-while-revalidate={int(self.stale_seconds)}"
        return value


@dataclass
class CacheEntry:
    """
    Last successfully fetched payload for a key.

    Only created or replaced on a successful fetch.
    """
    data: Any
    fetched_at: float
    source: str = "unknown"

    def age_seconds(self, now: float) -> float:
        return max(0.0, now - self.fetched_at)


# Cache-Control for responses served from the error-stale path
ERROR_STALE_CACHE_CONTROL = "public, s-maxage=30"


@dataclass
class CacheResult:
    """
    Result of a cache access, with provenance metadata for responses.
    """
    data: Any
    provenance: Provenance
    source: str
    age_seconds: float = 0.0
    coalesced: bool = False
    windows: Optional[FreshnessWindows] = field(default=None, repr=False)

    @property
    def x_cache(self) -> str:
        """X-Cache header value."""
        if self.provenance == Provenance.MISS and self.coalesced:
            return "PENDING"
        return self.provenance.value.upper()

    def headers(self) -> Dict[str, str]:
        """Response headers describing how this result was produced."""
        headers = {
            "X-Cache": self.x_cache,
            "X-Data-Source": self.source,
        }
        if self.provenance == Provenance.ERROR_STALE:
            headers["Cache-Control"] = ERROR_STALE_CACHE_CONTROL
        elif self.windows is not None:
            headers["Cache-Control"] = self.windows.cache_control()
        return headers

    def to_meta(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "cacheSource": self.provenance.value,
            "dataSource": self.source,
            "age": round(self.age_seconds, 1),
            "coalesced": self.coalesced,
        }
