"""
In-memory cache entry store.
"""
import threading
import logging
from typing import Callable, Dict, List, Optional, Tuple

from .core import CacheEntry

logger = logging.getLogger("cache.store")


class CacheStore:
    """
    Mapping from cache key to the last successful CacheEntry.

    Writes replace the whole entry under a lock, so readers see either
    the old or the new entry for a key.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    def lookup(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def store(self, key: str, entry: CacheEntry) -> None:
        """Replace any prior entry for key unconditionally."""
        with self._lock:
            self._entries[key] = entry

    def remove(self, key: str) -> bool:
        """
        Remove a single entry.

        Returns:
            True if entry was found and removed
        """
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                return True
            return False

    def remove_matching(self, predicate: Callable[[str], bool]) -> int:
        """
        Remove all entries whose key satisfies predicate.

        Returns:
            Number of entries removed
        """
        with self._lock:
            to_delete = [k for k in self._entries if predicate(k)]
            for key in to_delete:
                del self._entries[key]
            return len(to_delete)

    def sweep(self, now: float, max_age: float) -> int:
        """
        Remove all entries with age >= max_age.

        Returns:
            Number of entries removed
        """
        with self._lock:
            to_delete = [
                k for k, entry in self._entries.items()
                if now - entry.fetched_at >= max_age
            ]
            for key in to_delete:
                del self._entries[key]
        if to_delete:
            logger.info(f"Swept {len(to_delete)} entries older than {max_age}s")
        return len(to_delete)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def ages(self, now: float) -> List[Tuple[str, float, str]]:
        """(key, age_seconds, source) for every entry."""
        with self._lock:
            return [
                (key, entry.age_seconds(now), entry.source)
                for key, entry in self._entries.items()
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
