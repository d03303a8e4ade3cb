"""
Test doubles shared across test modules: a controllable clock and an
in-memory data provider.
"""
import threading
import time
from typing import Any, Callable, Iterable, List, Optional

from cryptotracker.providers.base import DataProvider
from cryptotracker.resources import ResourceDescriptor, ResourceKind


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(DataProvider):
    """
    Provider returning a canned payload (or raising a canned error).

    payload may be a callable taking the descriptor.
    """

    def __init__(
        self,
        provider_id: str,
        payload: Any = None,
        error: Optional[Exception] = None,
        kinds: Optional[Iterable[ResourceKind]] = None,
        healthy: bool = True,
    ):
        self._provider_id = provider_id
        self.payload = payload
        self.error = error
        self.kinds = set(kinds) if kinds is not None else None
        self.healthy = healthy
        self.calls: List[ResourceDescriptor] = []
        self._lock = threading.Lock()

    @property
    def provider_id(self) -> str:
        return self._provider_id

    def supports(self, descriptor: ResourceDescriptor) -> bool:
        return self.kinds is None or descriptor.kind in self.kinds

    def fetch(self, descriptor: ResourceDescriptor, timeout: float) -> Any:
        with self._lock:
            self.calls.append(descriptor)
        if self.error is not None:
            raise self.error
        if callable(self.payload):
            return self.payload(descriptor)
        return self.payload

    def ping(self, timeout: float = 5.0) -> bool:
        return self.healthy

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll predicate until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()
