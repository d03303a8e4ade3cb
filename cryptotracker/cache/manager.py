"""
Main cache orchestration with tiered freshness and stale-while-revalidate.
"""
import re
import threading
import time
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Pattern, Tuple, Union

from .core import CacheEntry, CacheResult, Freshness, FreshnessWindows, Provenance
from .coalescer import RequestCoalescer
from .store import CacheStore
from ..errors import InvalidRequestError

logger = logging.getLogger("cache.manager")

UNKNOWN_SOURCE = "unknown"


def _unwrap(result: Any) -> Tuple[Any, str]:
    """Split a fetcher result into (payload, provider id)."""
    if hasattr(result, "payload") and hasattr(result, "provider_id"):
        return result.payload, result.provider_id
    return result, UNKNOWN_SOURCE


class CacheManager:
    """
    Main cache orchestration with:
    - Fresh / stale / expired classification per resource windows
    - Request coalescing for concurrent duplicate requests
    - Stale-while-revalidate with background refresh
    - Stale fallback on upstream failure, up to an absolute ceiling
    - Periodic sweep of old entries

    One instance is created at process start and handed to every
    request path.
    """

    def __init__(
        self,
        max_revalidation_workers: int = 4,
        fetch_wait_timeout: float = 10.0,
        sweep_max_age: float = 7200.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache manager.

        Args:
            max_revalidation_workers: Thread pool size for background revalidation
            fetch_wait_timeout: Timeout for waiting on a shared fetch
            sweep_max_age: Default age at which sweep() drops entries
            clock: Monotonic time source
        """
        self._store = CacheStore()
        self._coalescer = RequestCoalescer(timeout=fetch_wait_timeout)
        self._clock = clock
        self._sweep_max_age = sweep_max_age

        # Background revalidation
        self._revalidation_pool = ThreadPoolExecutor(
            max_workers=max_revalidation_workers,
            thread_name_prefix="cache-revalidate",
        )

        # Periodic sweep
        self._sweeper: Optional[threading.Thread] = None
        self._stop = threading.Event()

        # Stats tracking
        self._stats_lock = threading.Lock()
        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "misses": 0,
            "error_stale": 0,
            "revalidations": 0,
            "revalidation_failures": 0,
        }

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def coalescer(self) -> RequestCoalescer:
        return self._coalescer

    def get_or_fetch(
        self,
        cache_key: str,
        fetcher: Callable[[], Any],
        windows: FreshnessWindows,
    ) -> CacheResult:
        """
        Get data from cache or fetch from upstream.

        Args:
            cache_key: Unique cache key
            fetcher: Function to fetch data if needed. May return a
                ProviderResult, whose provider id becomes the entry source.
            windows: Freshness windows for this resource

        Returns:
            CacheResult with data and provenance

        Raises:
            Exception: the fetcher's error when nothing usable is cached
        """
        now = self._clock()
        entry = self._store.lookup(cache_key)

        # Cache miss
        if entry is None:
            logger.info(f"CACHE MISS: {cache_key}")
            return self._fetch_blocking(cache_key, fetcher, windows)

        age = entry.age_seconds(now)
        freshness = windows.classify(now, entry.fetched_at)

        if freshness == Freshness.FRESH:
            logger.debug(f"CACHE HIT (fresh): {cache_key} [age={age:.1f}s]")
            self._incr("hits_fresh")
            return CacheResult(entry.data, Provenance.HIT, entry.source, age, windows=windows)

        if freshness == Freshness.STALE:
            logger.info(f"CACHE HIT (stale, revalidating): {cache_key} [age={age:.1f}s]")
            self._trigger_background_revalidate(cache_key, fetcher)
            self._incr("hits_stale")
            return CacheResult(entry.data, Provenance.STALE, entry.source, age, windows=windows)

        # Expired - must refetch
        logger.info(f"CACHE EXPIRED: {cache_key} [age={age:.1f}s]")
        try:
            return self._fetch_blocking(cache_key, fetcher, windows)
        except Exception as e:
            age = entry.age_seconds(self._clock())
            if age < windows.ceiling_seconds:
                logger.warning(
                    f"Fetch failed, serving stale data: {cache_key} "
                    f"[age={age:.1f}s] - {e}"
                )
                self._incr("error_stale")
                return CacheResult(
                    entry.data, Provenance.ERROR_STALE, entry.source, age, windows=windows
                )
            logger.error(
                f"Fetch failed and cached data is past its ceiling: {cache_key} "
                f"[age={age:.1f}s, ceiling={windows.ceiling_seconds}s]"
            )
            raise

    def _fetch_blocking(
        self,
        cache_key: str,
        fetcher: Callable[[], Any],
        windows: FreshnessWindows,
    ) -> CacheResult:
        future, created = self._coalescer.get_or_create(
            cache_key, lambda: self._fetch_and_store(cache_key, fetcher)
        )
        entry = self._coalescer.wait(cache_key, future)
        self._incr("misses")
        return CacheResult(
            entry.data,
            Provenance.MISS,
            entry.source,
            0.0,
            coalesced=not created,
            windows=windows,
        )

    def _fetch_and_store(self, cache_key: str, fetcher: Callable[[], Any]) -> CacheEntry:
        """Run the fetcher and store its result. Failures leave the store untouched."""
        data, source = _unwrap(fetcher())
        entry = CacheEntry(data=data, fetched_at=self._clock(), source=source)
        self._store.store(cache_key, entry)
        return entry

    def _trigger_background_revalidate(
        self,
        cache_key: str,
        fetcher: Callable[[], Any],
    ) -> None:
        """Trigger background refresh without blocking."""
        try:
            future, created = self._coalescer.get_or_create(
                cache_key,
                lambda: self._fetch_and_store(cache_key, fetcher),
                executor=self._revalidation_pool,
            )
        except RuntimeError as e:
            logger.warning(f"Background revalidation not scheduled: {cache_key} - {e}")
            return

        if not created:
            logger.debug(f"Already fetching: {cache_key}")
            return

        def on_done(done: Future) -> None:
            error = done.exception()
            if error is not None:
                self._incr("revalidation_failures")
                logger.warning(f"Background revalidation failed: {cache_key} - {error}")
            else:
                self._incr("revalidations")
                logger.debug(f"Background revalidation complete: {cache_key}")

        future.add_done_callback(on_done)

    def _incr(self, counter: str) -> None:
        with self._stats_lock:
            self._stats[counter] += 1

    def invalidate(self, cache_key: str) -> bool:
        """
        Invalidate a specific cache entry.

        Returns:
            True if entry was found and removed
        """
        removed = self._store.remove(cache_key)
        if removed:
            logger.info(f"Invalidated cache: {cache_key}")
        return removed

    def invalidate_pattern(self, pattern: Union[str, Pattern]) -> int:
        """
        Invalidate all cache entries whose key matches a regular expression.

        Returns:
            Number of entries invalidated

        Raises:
            InvalidRequestError: if pattern is not a valid regular expression
        """
        if isinstance(pattern, str):
            try:
                regex = re.compile(pattern)
            except re.error as e:
                raise InvalidRequestError(f"Invalid pattern: {e}") from e
        else:
            regex = pattern
        count = self._store.remove_matching(lambda key: regex.search(key) is not None)
        if count:
            logger.info(f"Invalidated {count} entries matching '{regex.pattern}'")
        return count

    def clear(self) -> int:
        """
        Clear all cache entries and forget in-flight requests.

        Returns:
            Number of entries cleared
        """
        count = self._store.clear()
        self._coalescer.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def sweep(self, max_age: Optional[float] = None) -> int:
        """Remove entries older than max_age (defaults to the configured sweep age)."""
        max_age = self._sweep_max_age if max_age is None else max_age
        return self._store.sweep(self._clock(), max_age)

    def start_sweeper(self, interval: float = 300.0) -> None:
        """Run sweep() every interval seconds on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()

        def loop():
            while not self._stop.wait(interval):
                try:
                    self.sweep()
                except Exception:
                    logger.exception("Cache sweep failed")

        self._sweeper = threading.Thread(target=loop, name="cache-sweeper", daemon=True)
        self._sweeper.start()
        logger.info(f"Cache sweeper started (interval={interval}s, max_age={self._sweep_max_age}s)")

    def shutdown(self) -> None:
        """Stop the sweeper and abandon pending background refreshes."""
        self._stop.set()
        self._revalidation_pool.shutdown(wait=False, cancel_futures=True)
        # Cancelled refreshes never run, so their waiters are failed here
        self._coalescer.abandon_all()
        logger.info("Cache manager shut down")

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        ages = self._store.ages(self._clock())
        with self._stats_lock:
            counters = dict(self._stats)
        total_hits = counters["hits_fresh"] + counters["hits_stale"]
        total_requests = total_hits + counters["misses"] + counters["error_stale"]
        hit_rate = (total_hits / total_requests * 100) if total_requests > 0 else 0

        return {
            "entry_count": len(ages),
            "in_flight_count": self._coalescer.active_requests,
            "entries": [
                {"key": key, "age_seconds": round(age, 1), "source": source}
                for key, age, source in ages
            ],
            **counters,
            "hit_rate_percent": round(hit_rate, 1),
            "coalescer": self._coalescer.get_stats(),
        }
