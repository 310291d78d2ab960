"""
In-Memory TTL + LRU Cache with Request Coalescing.

============================================================
PURPOSE
============================================================
Protects upstream providers from duplicate calls:

- Values expire at an absolute time (created + ttl)
- Capacity pressure evicts the least-recently-used entry first,
  regardless of TTL
- get_or_fetch() coalesces concurrent misses for the same key onto a
  single in-flight fetch
- Failures are never cached

============================================================
CONCURRENCY
============================================================
All mutation happens on the event loop thread. The in-flight marker
is registered before the first await, so a second caller arriving
while the first fetch is pending always finds it.

In-flight fetches run as their own tasks and are shielded from caller
cancellation: an abandoned caller does not stop the fetch, which still
populates the cache for whoever asks next.

============================================================
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from core.clock import ClockProtocol, SystemClock


logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with its absolute expiry."""
    key: str
    value: Any
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class CacheStore:
    """
    TTL cache with LRU eviction and request coalescing.

    Usage:
        cache = CacheStore(capacity=500, default_ttl=300)
        value = await cache.get_or_fetch(key, 600, lambda: fetch(...))
    """

    def __init__(
        self,
        capacity: int = 1000,
        default_ttl: float = 300,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.capacity = capacity
        self.default_ttl = default_ttl
        self._clock = clock or SystemClock()
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._in_flight: Dict[str, "asyncio.Task[Any]"] = {}

        self._stats = {
            "hits": 0,
            "misses": 0,
            "coalesced": 0,
            "fetches": 0,
            "fetch_failures": 0,
            "evictions": 0,
            "expirations": 0,
        }

    # ─────────────────────────────────────────────────────────────
    # Synchronous API
    # ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[Any]:
        """Get value if present and not expired. Refreshes recency."""
        entry = self._lookup(key)
        if entry is None:
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value; counts as both a write and an access."""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        now = self._clock.now()
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )
        self._entries.move_to_end(key)

        while len(self._entries) > self.capacity:
            evicted_key, _ = self._entries.popitem(last=False)
            self._stats["evictions"] += 1
            logger.debug(f"Evicted least-recently-used key {evicted_key}")

    def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if key in self._entries:
            del self._entries[key]
            return True
        return False

    def clear(self) -> None:
        """Clear all entries. In-flight fetches are left running."""
        self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were dropped."""
        now = self._clock.now()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self._stats["expirations"] += len(expired)
        return len(expired)

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    # ─────────────────────────────────────────────────────────────
    # Coalescing fetch
    # ─────────────────────────────────────────────────────────────

    async def get_or_fetch(
        self,
        key: str,
        ttl: Optional[float],
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value, or fetch it exactly once.

        Concurrent callers for the same key share one pending fetch.
        On failure nothing is stored and every waiter receives the error;
        the next call starts a fresh fetch.
        """
        entry = self._lookup(key)
        if entry is not None:
            self._stats["hits"] += 1
            return entry.value

        task = self._in_flight.get(key)
        if task is None:
            self._stats["misses"] += 1
            task = asyncio.ensure_future(self._run_fetch(key, ttl, fetch_fn))
            self._in_flight[key] = task
            task.add_done_callback(self._on_fetch_done)
        else:
            self._stats["coalesced"] += 1
            logger.debug(f"Coalesced request for in-flight key {key}")

        return await asyncio.shield(task)

    async def _run_fetch(
        self,
        key: str,
        ttl: Optional[float],
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        self._stats["fetches"] += 1
        try:
            value = await fetch_fn()
        except BaseException:
            self._stats["fetch_failures"] += 1
            raise
        else:
            self.set(key, value, ttl)
            return value
        finally:
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    @staticmethod
    def _on_fetch_done(task: "asyncio.Task[Any]") -> None:
        # Retrieve the exception so abandoned fetches don't warn at GC time
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Fetch failed and was not cached: {task.exception()}")

    # ─────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock.now()):
            del self._entries[key]
            self._stats["expirations"] += 1
            return None
        self._entries.move_to_end(key)
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not entry.is_expired(self._clock.now())

    def stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "default_ttl": self.default_ttl,
            "in_flight": len(self._in_flight),
            **self._stats,
        }
