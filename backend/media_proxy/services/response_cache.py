"""
Audiomosh Proxy — Response Cache
=================================

What:  In-memory store of successful upstream JSON bodies with a TTL.
Why:   Search pages are re-requested constantly by the browser client
       (pagination back/forward, re-renders). Serving repeats locally saves
       upstream quota and latency.
How:   Dict of key → CacheEntry(body, stored_at). Reads compare the entry's
       age to the TTL; writes replace the entry wholesale.
Who:   ProxyService (lookup before the upstream call, store after it),
       /api/cache/* and /health (stats, clear).

Key Derivation:
    "<METHOD>:<path>?<raw query>" exactly as received. Query parameters are
    NOT reordered: `?a=1&b=2` and `?b=2&a=1` are two entries.

Staleness:
    get() treats an entry as a miss once `now - stored_at >= ttl`, but does
    not delete it. Stale entries linger until the same key is stored again,
    clear() runs, or size-bounded eviction picks them.

Bounded Size:
    With max_entries > 0, storing a NEW key into a full cache first drops
    every stale entry, then (if still full) the entry with the oldest
    stored_at.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


def cache_key(method: str, path: str, query: str = "") -> str:
    """Build the cache key for a request; `query` is the raw query string."""
    key = f"{method.upper()}:{path}"
    if query:
        key = f"{key}?{query}"
    return key


@dataclass(frozen=True)
class CacheEntry:
    key: str
    body: Any
    stored_at: float


class ResponseCache:
    """
    TTL cache for decoded JSON bodies.

    Thread Safety:
        All access to the entry dict happens under one lock, so two requests
        populating the same key simply leave the later body in place.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, now: Optional[float] = None) -> Optional[Any]:
        """Return the cached body for `key`, or None if absent or stale."""
        if now is None:
            now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        if now - entry.stored_at >= self.ttl_seconds:
            return None
        return entry.body

    def put(self, key: str, body: Any, now: Optional[float] = None) -> None:
        """Store `body` under `key`, replacing any previous entry."""
        if now is None:
            now = self._clock()
        with self._lock:
            if (
                self.max_entries
                and key not in self._entries
                and len(self._entries) >= self.max_entries
            ):
                self._evict_locked(now)
            self._entries[key] = CacheEntry(key=key, body=body, stored_at=now)

    def _evict_locked(self, now: float) -> None:
        stale = [
            key
            for key, entry in self._entries.items()
            if now - entry.stored_at >= self.ttl_seconds
        ]
        for key in stale:
            del self._entries[key]

        evicted = len(stale)
        while len(self._entries) >= self.max_entries:
            oldest = min(self._entries.values(), key=lambda e: e.stored_at)
            del self._entries[oldest.key]
            evicted += 1
        logger.debug("Evicted %d cache entries (%d stale)", evicted, len(stale))

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
        return cleared

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def stats(self, sample: Optional[int] = None) -> Dict[str, Any]:
        """Size plus the stored keys (first `sample` of them, if given)."""
        keys = self.keys()
        if sample is not None:
            keys = keys[:sample]
        return {"size": len(self), "keys": keys}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
