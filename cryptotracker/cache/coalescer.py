"""
Single-flight coalescing of upstream fetches per cache key.

Blocking misses and background refreshes for one key share a single
Future; its outcome (value or error) is delivered to every waiter.
"""
import threading
import time
import logging
from concurrent.futures import Executor, Future, InvalidStateError
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger("cache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks an in-progress upstream request."""
    future: Future = field(default_factory=Future)
    started_at: float = field(default_factory=time.monotonic)
    waiter_count: int = 0


class RequestCoalescer:
    """
    Ensures concurrent requests for the same cache key share one upstream call.

    Pattern:
    - First request for a key registers a Future and runs the fetch
    - Subsequent requests for the same key join that Future
    - The key is unregistered before the Future settles, so the next
      caller after settlement starts a fresh fetch
    - A failure is delivered identically to every waiter

    Usage:
        coalescer = RequestCoalescer()
        result = coalescer.get_or_fetch(
            cache_key="coin_detail:bitcoin",
            fetch_fn=lambda: chain.fetch(descriptor),
        )
    """

    def __init__(self, timeout: float = 10.0):
        """
        Initialize the coalescer.

        Args:
            timeout: Max seconds to wait for an in-flight request
        """
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._lock = threading.Lock()
        self._timeout = timeout

    def get_or_create(
        self,
        cache_key: str,
        factory: Callable[[], Any],
        executor: Optional[Executor] = None,
    ) -> Tuple[Future, bool]:
        """
        Join the in-flight fetch for a key, or start one.

        Args:
            cache_key: Unique key for this request
            factory: Function performing the fetch
            executor: Run the fetch on this executor instead of the
                calling thread

        Returns:
            (future, created) where created is True if this call started
            the fetch
        """
        with self._lock:
            in_flight = self._in_flight.get(cache_key)
            if in_flight is not None:
                in_flight.waiter_count += 1
                logger.debug(
                    f"Coalescing request for {cache_key} "
                    f"(waiters: {in_flight.waiter_count})"
                )
                return in_flight.future, False
            in_flight = InFlightRequest()
            self._in_flight[cache_key] = in_flight
            logger.debug(f"Initiating fetch for {cache_key}")

        if executor is None:
            self._run(cache_key, in_flight, factory)
        else:
            try:
                executor.submit(self._run, cache_key, in_flight, factory)
            except RuntimeError as e:
                # Executor already shut down
                self._settle(cache_key, in_flight, error=e)
                raise

        return in_flight.future, True

    def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: Callable[[], Any],
    ) -> Any:
        """
        Either join an existing in-flight request or initiate a new one.

        Raises:
            TimeoutError: If waiting for in-flight request times out
            Exception: Any error from fetch_fn is propagated
        """
        future, _ = self.get_or_create(cache_key, fetch_fn)
        return self.wait(cache_key, future)

    def wait(self, cache_key: str, future: Future) -> Any:
        """Wait for a shared fetch, bounded by the coalescer timeout."""
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeoutError:
            logger.error(f"Timeout waiting for coalesced request: {cache_key}")
            raise TimeoutError(f"Request for {cache_key} timed out after {self._timeout}s")

    def _run(
        self,
        cache_key: str,
        in_flight: InFlightRequest,
        factory: Callable[[], Any],
    ) -> None:
        try:
            result = factory()
        except BaseException as e:
            logger.warning(f"Fetch failed for {cache_key}: {e!r}")
            self._settle(cache_key, in_flight, error=e)
            if not isinstance(e, Exception):
                raise
        else:
            self._settle(cache_key, in_flight, result=result)

    def _settle(
        self,
        cache_key: str,
        in_flight: InFlightRequest,
        result: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        # Unregister first so late callers start a new fetch
        with self._lock:
            if self._in_flight.get(cache_key) is in_flight:
                del self._in_flight[cache_key]
        try:
            if error is not None:
                in_flight.future.set_exception(error)
            else:
                in_flight.future.set_result(result)
        except InvalidStateError:
            # Already failed by abandon_all()
            logger.debug(f"Fetch for {cache_key} finished after being abandoned")

    def is_in_flight(self, cache_key: str) -> bool:
        with self._lock:
            return cache_key in self._in_flight

    def clear(self) -> int:
        """Forget all in-flight requests. Running fetches still settle their waiters."""
        with self._lock:
            count = len(self._in_flight)
            self._in_flight.clear()
            return count

    def abandon_all(self, reason: str = "Cache shut down") -> int:
        """
        Forget all in-flight requests and fail their waiters.

        Used at shutdown, when queued background fetches are cancelled
        and would otherwise never settle.

        Returns:
            Number of requests abandoned
        """
        with self._lock:
            pending = list(self._in_flight.items())
            self._in_flight.clear()
        for cache_key, in_flight in pending:
            try:
                in_flight.future.set_exception(
                    RuntimeError(f"{reason} while fetching {cache_key}")
                )
            except InvalidStateError:
                # Settled concurrently by its own fetch
                pass
        if pending:
            logger.info(f"Abandoned {len(pending)} in-flight requests")
        return len(pending)

    @property
    def active_requests(self) -> int:
        """Number of currently in-flight requests."""
        with self._lock:
            return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        now = time.monotonic()
        with self._lock:
            return {
                "active_requests": len(self._in_flight),
                "active_keys": list(self._in_flight.keys()),
                "oldest_age_seconds": round(
                    max((now - r.started_at for r in self._in_flight.values()), default=0.0), 1
                ),
            }
