"""
Process-local read cache for the portal's list and settings endpoints.

Services cache whole query results under namespaced keys
(``settings:all``, ``investment_requests:pending:all:0:100``) and drop a
namespace with :meth:`TTLCache.invalidate` after every write.  Within one
process a read therefore never trails the last write; across replicas an
entry lives at most ``CACHE_TTL`` seconds, which is shorter than the
portal's polling interval.

A full cache evicts its least recently read entry.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Optional

from investor_portal.core.config import settings

logger = logging.getLogger(__name__)


class CacheEntry:
    """A cached value and the monotonic time after which it is stale."""

    __slots__ = ("value", "expires_at")

    def __init__(self, value: Any, ttl: float):
        self.value = value
        self.expires_at = time.monotonic() + ttl

    @property
    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class TTLCache:
    """
    LRU cache whose entries expire ``ttl`` seconds after being stored.

    ``enabled=False`` turns every operation into a no-op (``CACHE_ENABLED``).
    """

    def __init__(self, ttl: float = 30.0, max_size: int = 1000, enabled: bool = True):
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._ttl = ttl
        self._max_size = max_size
        self._enabled = enabled
        self._stats = {"hits": 0, "misses": 0, "evictions": 0}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        """The value stored under ``key``, or ``None`` if absent or stale."""
        if not self._enabled:
            return None

        entry = self._entries.get(key)
        if entry is not None and entry.is_expired:
            del self._entries[key]
            entry = None
        if entry is None:
            self._stats["misses"] += 1
            return None

        self._entries.move_to_end(key)
        self._stats["hits"] += 1
        return entry.value

    def set(self, key: str, value: Any) -> None:
        if not self._enabled:
            return

        self._entries[key] = CacheEntry(value, self._ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            self._stats["evictions"] += 1
            logger.debug("Cache evicted %s", evicted)

    def invalidate(self, *prefixes: str) -> int:
        """Drop every key in the given namespaces; returns how many went."""
        stale = [key for key in self._entries if key.startswith(prefixes)]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Cache invalidated %d entries under %s", len(stale), ", ".join(prefixes))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> dict:
        """Snapshot for ``/health``."""
        lookups = self._stats["hits"] + self._stats["misses"]
        return {
            "enabled": self._enabled,
            "size": len(self._entries),
            "max_size": self._max_size,
            "ttl_seconds": self._ttl,
            **self._stats,
            "hit_rate": round(self._stats["hits"] / lookups, 3) if lookups else None,
        }


cache = TTLCache(
    ttl=settings.CACHE_TTL,
    max_size=settings.CACHE_MAX_SIZE,
    enabled=settings.CACHE_ENABLED,
)
