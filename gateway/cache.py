"""
Response cache with per-entry TTL and an LRU bound on entry count.
"""
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Generic, Hashable, Optional, Tuple, TypeVar

from gateway.backoff import Clock


K = TypeVar('K', bound=Hashable)
V = TypeVar('V')


@dataclass(frozen=True)
class CacheEntry(Generic[K, V]):
    key: K
    value: V
    stored_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now > self.stored_at + self.ttl


class ResponseCache(Generic[K, V]):
    """
    Key -> value store where each entry expires ``ttl`` seconds after it was stored.

    Entries are never mutated in place; ``set`` replaces the whole entry.
    Expired entries are dropped on read and are never returned. When more than
    ``max_entries`` are held, the least recently used entry is evicted.
    Values are shared with callers and must be treated as read-only.
    """

    def __init__(self, default_ttl: float, max_entries: int = 512, clock: Clock = time.monotonic):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[K, CacheEntry[K, V]]" = OrderedDict()
        self.lock = Lock()

    def get(self, key: K) -> Tuple[Optional[V], bool]:
        """
        Look up a key.

        Returns:
            (value, True) on a hit, (None, False) on a miss or an expired entry
        """
        with self.lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            if entry.expired(self.clock()):
                del self._entries[key]
                return None, False
            self._entries.move_to_end(key)
            return entry.value, True

    def set(self, key: K, value: V, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(
            key=key,
            value=value,
            stored_at=self.clock(),
            ttl=self.default_ttl if ttl is None else ttl
        )
        with self.lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, key: K) -> None:
        with self.lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self.lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)
