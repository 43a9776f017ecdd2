"""Fixed-capacity cache with insertion-order eviction."""

import hashlib
import logging
from collections import OrderedDict
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


def content_hash(text: str) -> str:
    """Stable content hash used as a cache key for source text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class BoundedCache(Generic[V]):
    """Map with a fixed capacity that evicts the oldest inserted entry first.

    Lookups do not refresh an entry's position; re-inserting a key moves it
    to the back of the queue.
    """

    def __init__(self, capacity: int = 100, on_evict: Optional[Callable[[V], None]] = None):
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[str, V]" = OrderedDict()
        self._on_evict = on_evict

    def get(self, key: str) -> Optional[V]:
        return self._entries.get(key)

    def put(self, key: str, value: V) -> None:
        if key in self._entries:
            self._release(self._entries.pop(key))
        while len(self._entries) >= self.capacity:
            oldest_key, oldest = self._entries.popitem(last=False)
            logger.debug(f"Evicting cache entry {oldest_key}")
            self._release(oldest)
        self._entries[key] = value

    def discard(self, key: str) -> bool:
        """Remove and release a single entry. Returns True if it was present."""
        if key not in self._entries:
            return False
        self._release(self._entries.pop(key))
        return True

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        count = len(self._entries)
        for value in self._entries.values():
            self._release(value)
        self._entries.clear()
        return count

    def stats(self) -> dict:
        return {"size": len(self._entries), "keys": self.keys()}

    def _release(self, value: V) -> None:
        if self._on_evict is not None:
            self._on_evict(value)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
