"""
Tests for single-flight request coalescing.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from cryptotracker.cache.coalescer import RequestCoalescer

from fakes import wait_until

N_CALLERS = 8


def _waiters(coalescer: RequestCoalescer, key: str) -> int:
    in_flight = coalescer._in_flight.get(key)
    return in_flight.waiter_count if in_flight else -1


def test_concurrent_callers_share_one_fetch():
    """N concurrent callers on one key run the fetch exactly once."""
    coalescer = RequestCoalescer(timeout=5)
    release = threading.Event()
    calls = []

    def fetch():
        calls.append(1)
        release.wait(5)
        return {"bitcoin": 65000.0}

    results = []
    threads = [
        threading.Thread(target=lambda: results.append(coalescer.get_or_fetch("k", fetch)))
        for _ in range(N_CALLERS)
    ]
    for t in threads:
        t.start()

    assert wait_until(lambda: _waiters(coalescer, "k") == N_CALLERS - 1)
    release.set()
    for t in threads:
        t.join(5)

    assert len(calls) == 1
    assert len(results) == N_CALLERS
    assert all(r is results[0] for r in results)
    assert coalescer.active_requests == 0


def test_failure_propagates_to_every_waiter():
    coalescer = RequestCoalescer(timeout=5)
    release = threading.Event()
    boom = RuntimeError("upstream down")

    def fetch():
        release.wait(5)
        raise boom

    errors = []

    def worker():
        try:
            coalescer.get_or_fetch("k", fetch)
        except RuntimeError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    assert wait_until(lambda: _waiters(coalescer, "k") == 3)
    release.set()
    for t in threads:
        t.join(5)

    assert errors == [boom] * 4
    assert not coalescer.is_in_flight("k")


def test_settled_key_starts_a_new_fetch():
    coalescer = RequestCoalescer()
    calls = []

    def fetch():
        calls.append(1)
        return len(calls)

    assert coalescer.get_or_fetch("k", fetch) == 1
    assert coalescer.get_or_fetch("k", fetch) == 2


def test_different_keys_do_not_coalesce():
    coalescer = RequestCoalescer()
    assert coalescer.get_or_fetch("a", lambda: "A") == "A"
    assert coalescer.get_or_fetch("b", lambda: "B") == "B"


def test_waiter_times_out():
    coalescer = RequestCoalescer(timeout=0.05)
    release = threading.Event()
    initiator = threading.Thread(
        target=lambda: coalescer.get_or_fetch("k", lambda: release.wait(5))
    )
    initiator.start()
    assert wait_until(lambda: coalescer.is_in_flight("k"))

    with pytest.raises(TimeoutError):
        coalescer.get_or_fetch("k", lambda: "never called")

    release.set()
    initiator.join(5)


def test_get_or_create_on_executor():
    coalescer = RequestCoalescer()
    with ThreadPoolExecutor(max_workers=1) as executor:
        future, created = coalescer.get_or_create("k", lambda: 42, executor=executor)
        assert created is True
        assert future.result(timeout=2) == 42


def test_get_or_create_joins_existing():
    coalescer = RequestCoalescer()
    release = threading.Event()
    with ThreadPoolExecutor(max_workers=1) as executor:
        first, created_first = coalescer.get_or_create("k", lambda: release.wait(5) and "done", executor=executor)
        second, created_second = coalescer.get_or_create("k", lambda: "other")
        release.set()

        assert created_first is True
        assert created_second is False
        assert second is first
        assert first.result(timeout=2) == "done"


def test_stats():
    coalescer = RequestCoalescer()
    stats = coalescer.get_stats()
    assert stats["active_requests"] == 0
    assert stats["active_keys"] == []


class Interrupted(BaseException):
    """Stands in for KeyboardInterrupt / SystemExit raised inside a fetch."""


def test_base_exception_still_unregisters_key():
    coalescer = RequestCoalescer(timeout=0.5)

    def fetch():
        raise Interrupted()

    with pytest.raises(Interrupted):
        coalescer.get_or_fetch("k", fetch)

    assert not coalescer.is_in_flight("k")
    assert coalescer.get_or_fetch("k", lambda: "fresh") == "fresh"


def test_base_exception_reaches_joined_waiters():
    coalescer = RequestCoalescer(timeout=5)
    release = threading.Event()

    def fetch():
        release.wait(5)
        raise Interrupted()

    with ThreadPoolExecutor(max_workers=1) as executor:
        future, _ = coalescer.get_or_create("k", fetch, executor=executor)
        joined, created = coalescer.get_or_create("k", lambda: "unused")
        release.set()

        assert created is False
        with pytest.raises(Interrupted):
            joined.result(timeout=2)
    assert not coalescer.is_in_flight("k")


def test_abandon_all_fails_queued_fetches():
    coalescer = RequestCoalescer(timeout=5)
    release = threading.Event()
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        running, _ = coalescer.get_or_create("a", lambda: release.wait(5) and "a", executor=executor)
        queued, _ = coalescer.get_or_create("b", lambda: "b", executor=executor)
        executor.shutdown(wait=False, cancel_futures=True)

        assert coalescer.abandon_all() == 2
        assert coalescer.active_requests == 0
        with pytest.raises(RuntimeError):
            queued.result(timeout=0.5)
        with pytest.raises(RuntimeError):
            running.result(timeout=0.5)
    finally:
        release.set()
