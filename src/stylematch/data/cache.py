"""
In-process caches for StyleMatch
TTL-bounded LRU store used for user profiles and product feature blocks
"""

import logging
import threading
import time
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with its storage time and validity stamp"""
    value: T
    stored_at: float = field(default_factory=time.monotonic)
    stamp: Any = None

    def is_expired(self, ttl_seconds: float, now: float) -> bool:
        return now - self.stored_at > ttl_seconds


@dataclass
class _KeyLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class TTLCache(Generic[T]):
    """
    Thread-safe TTL cache with an LRU size bound

    Values are replaced, never mutated in place: update() builds a new value
    from the current one and swaps it in. Builds and updates for one key are
    serialized by a per-key lock, so concurrent requests for the same key
    build once. An optional stamp stored with each entry lets a caller
    invalidate an entry when its inputs change (e.g. the product snapshot).

    Usage:
        profiles = TTLCache(ttl_seconds=900, max_entries=10000, name="profiles")
        profile = profiles.get_or_build("user_1", lambda: build_profile("user_1"))
        profiles.update("user_1", lambda p: apply_event(p, event))
    """

    def __init__(self,
                 ttl_seconds: float = 900.0,
                 max_entries: int = 10000,
                 name: str = "cache",
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize cache

        Args:
            ttl_seconds: Age after which an entry is rebuilt
            max_entries: Least recently used entries are evicted past this size
            name: Label used in log messages
            clock: Monotonic time source, injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, int(max_entries))
        self.name = name
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: "OrderedDict[Hashable, CacheEntry[T]]" = OrderedDict()
        self._key_locks: Dict[Hashable, _KeyLock] = {}
        self.hits = 0
        self.misses = 0

    @contextmanager
    def _key_lock(self, key: Hashable):
        """
        Hold the lock for one key

        A key lock lives while any thread holds or waits on it, independent of
        whether the entry itself is still cached, so eviction and clear() never
        hand a second builder a fresh lock.
        """
        with self._lock:
            slot = self._key_locks.get(key)
            if slot is None:
                slot = self._key_locks[key] = _KeyLock()
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._lock:
                slot.users -= 1
                if slot.users == 0 and self._key_locks.get(key) is slot:
                    del self._key_locks[key]

    def _lookup(self, key: Hashable, stamp: Any = _MISSING):
        """Live value for key, or _MISSING; drops expired or stale entries"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return _MISSING
            if entry.is_expired(self.ttl_seconds, self._clock()) or (stamp is not _MISSING and entry.stamp != stamp):
                del self._entries[key]
                return _MISSING
            self._entries.move_to_end(key)
            return entry.value

    def get(self, key: Hashable) -> Optional[T]:
        """
        Get a cached value

        Returns:
            The value, or None if missing or expired
        """
        value = self._lookup(key)
        return None if value is _MISSING else value

    def put(self, key: Hashable, value: T, stamp: Any = None):
        """Store a value, evicting the least recently used entries past max_entries"""
        with self._lock:
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock(), stamp=stamp)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def get_or_build(self, key: Hashable, builder: Callable[[], T], stamp: Any = None) -> T:
        """
        Get a cached value, building and storing it when missing

        Args:
            key: Cache key
            builder: Called with no arguments to produce the value
            stamp: Validity stamp; an entry stored with a different stamp is rebuilt

        Returns:
            Cached or freshly built value
        """
        value = self._lookup(key, stamp)
        if value is not _MISSING:
            self.hits += 1
            return value

        with self._key_lock(key):
            # Another thread may have built it while we waited
            value = self._lookup(key, stamp)
            if value is not _MISSING:
                self.hits += 1
                return value

            self.misses += 1
            value = builder()
            self.put(key, value, stamp)
            return value

    def update(self, key: Hashable, updater: Callable[[T], T], builder: Optional[Callable[[], T]] = None) -> Optional[T]:
        """
        Replace a value with updater(current)

        Args:
            key: Cache key
            updater: Returns the new value from the current one; must not mutate it
            builder: Produces the current value when the key is not cached

        Returns:
            The new value, or None when the key is missing and no builder is given
        """
        with self._key_lock(key):
            current = self._lookup(key)
            if current is _MISSING:
                if builder is None:
                    return None
                current = builder()

            value = updater(current)
            self.put(key, value)
            return value

    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry; returns True if it was cached"""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self):
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared {count} entries from {self.name} cache")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self._lookup(key) is not _MISSING

    def get_stats(self) -> Dict:
        """Cache statistics"""
        with self._lock:
            return {
                'name': self.name,
                'entries': len(self._entries),
                'max_entries': self.max_entries,
                'ttl_seconds': self.ttl_seconds,
                'hits': self.hits,
                'misses': self.misses,
            }
