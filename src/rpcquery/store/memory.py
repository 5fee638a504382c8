"""QueryCache: in-memory query cache with request coalescing."""

import asyncio
import logging
import math
import time
from collections.abc import MutableMapping
from typing import Any, Callable, Literal

from cachetools import LFUCache, LRUCache

from rpcquery.keys import QueryKey, key_digest
from rpcquery.store.base import CacheEntry, CacheStore, Fetcher, Listener

logger = logging.getLogger(__name__)

CachePolicy = Literal["unbounded", "lru", "lfu"]


def _create_cache(
    max_size: int,
    cache: Literal["lru", "lfu"],
) -> MutableMapping[str, CacheEntry]:
    """Create a cachetools cache."""
    if cache == "lfu":
        return LFUCache(maxsize=max_size)
    return LRUCache(maxsize=max_size)


class QueryCache(CacheStore):
    """In-memory cache of query entries shared by every binding of one setup.

    Entries live in a plain dict or a cachetools cache; eviction is entirely
    up to that mapping. Default is cache="lru" with max_size=1000. Use
    cache="unbounded" for a plain dict, cache="lfu" for
    least-frequently-used eviction, or pass any MutableMapping instance
    (e.g. cachetools.TTLCache).

    Must be used from a single asyncio event loop.
    """

    def __init__(
        self,
        cache: CachePolicy | MutableMapping[str, Any] = "lru",
        max_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the query cache.

        Args:
            cache: "unbounded" (plain dict), "lru", "lfu", or a MutableMapping
                instance. Default "lru".
            max_size: Maximum number of entries. Default 1000 when cache is
                "lru" or "lfu". Ignored for "unbounded". Must be None for a
                cache instance.
            clock: Monotonic time source used for staleness.

        Raises:
            ValueError: Invalid combination of cache and max_size.
        """
        super().__init__()
        self.clock = clock
        self._listeners: dict[str, list[Listener]] = {}
        self._in_flight: dict[str, asyncio.Task[CacheEntry]] = {}

        if isinstance(cache, MutableMapping):
            if max_size is not None:
                raise ValueError(
                    "max_size must not be set when cache is a cache instance"
                )
            self._entries: MutableMapping[str, CacheEntry] = cache
            return

        if cache == "unbounded":
            self._entries = {}
            return

        if cache in ("lru", "lfu"):
            size = max_size if max_size is not None else 1000
            if size < 1:
                raise ValueError("max_size must be at least 1")
            if isinstance(size, float) and math.isinf(size):
                raise ValueError("max_size cannot be infinity")
            self._entries = _create_cache(size, cache)
            return

        raise ValueError(
            f"cache must be 'unbounded', 'lru', 'lfu', or a MutableMapping; got {cache!r}"
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return key_digest(key) in self._entries

    def get(self, key: QueryKey) -> CacheEntry | None:
        """Return the entry for ``key``, or None."""
        entry = self._entries.get(key_digest(key))
        if entry is None:
            self.stats.misses += 1
        else:
            self.stats.hits += 1
        return entry

    def get_data(self, key: QueryKey) -> Any:
        """Return the raw cached value for ``key``.

        Raises:
            KeyError: If the key has no data.
        """
        entry = self._entries.get(key_digest(key))
        if entry is None or not entry.has_data:
            raise KeyError(f"No cached data for key {key!r}")
        return entry.data

    def ensure(self, key: QueryKey) -> CacheEntry:
        """Return the entry for ``key``, creating an idle one if needed."""
        digest = key_digest(key)
        entry = self._entries.get(digest)
        if entry is None:
            entry = CacheEntry(key=tuple(key), digest=digest)
            self._entries[digest] = entry
        return entry

    def is_stale(self, entry: CacheEntry, stale_time: float) -> bool:
        """Whether ``entry`` needs fetching under the given stale_time."""
        if not entry.has_data or entry.is_invalidated or entry.updated_at is None:
            return True
        return self.clock() - entry.updated_at >= stale_time

    def set_data(self, key: QueryKey, data: Any, observed: bool = True) -> CacheEntry:
        """Store a successful raw value for ``key`` and notify listeners."""
        entry = self.ensure(key)
        entry.status = "success"
        entry.data = data
        entry.error = None
        entry.updated_at = self.clock()
        entry.is_invalidated = False
        entry.observed = entry.observed or observed
        entry.revision += 1
        self.stats.puts += 1
        self._notify(entry)
        return entry

    def in_flight(self, key: QueryKey) -> "asyncio.Task[CacheEntry] | None":
        """Return the pending fetch task for ``key``, if any."""
        return self._in_flight.get(key_digest(key))

    def fetch(self, key: QueryKey, fetcher: Fetcher) -> "asyncio.Task[CacheEntry]":
        """Run ``fetcher`` for ``key`` unless a fetch is already in flight.

        Concurrent callers for one key share a single task, so the
        fetcher runs at most once at a time per key.

        Raises:
            RuntimeError: If called without a running event loop.
        """
        digest = key_digest(key)
        pending = self._in_flight.get(digest)
        if pending is not None:
            self.stats.deduped += 1
            logger.debug("Joining in-flight fetch for %r", key)
            return pending

        entry = self.ensure(key)
        task = asyncio.get_running_loop().create_task(self._run(entry, fetcher))
        self._in_flight[digest] = task
        self.stats.fetches += 1
        logger.debug("Fetching %r", key)

        entry.is_fetching = True
        if not entry.has_data:
            entry.status = "loading"
        self._notify(entry)
        return task

    async def _run(self, entry: CacheEntry, fetcher: Fetcher) -> CacheEntry:
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            entry.is_fetching = False
            if not entry.has_data:
                entry.status = "idle"
            self._in_flight.pop(entry.digest, None)
            raise
        except Exception as exc:
            logger.debug("Fetch for %r failed: %r", entry.key, exc)
            entry.status = "error"
            entry.error = exc
        else:
            entry.status = "success"
            entry.data = data
            entry.error = None
            entry.updated_at = self.clock()

        # Settled either way; a failed refetch is not retried
        entry.is_fetching = False
        entry.is_invalidated = False
        entry.revision += 1
        self._in_flight.pop(entry.digest, None)
        # The entry may have been evicted while in flight
        self._entries[entry.digest] = entry
        self._notify(entry)
        return entry

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """Register a change listener for ``key``; returns an unsubscribe callable."""
        digest = key_digest(key)
        listeners = self._listeners.setdefault(digest, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            current = self._listeners.get(digest)
            if current is None or listener not in current:
                return
            current.remove(listener)
            if not current:
                del self._listeners[digest]

        return unsubscribe

    def observer_count(self, key: QueryKey) -> int:
        """Number of listeners attached to ``key``."""
        return len(self._listeners.get(key_digest(key), ()))

    def invalidate(self, prefix: QueryKey | None = None) -> int:
        """Mark entries stale so their observers refetch.

        Args:
            prefix: Only entries whose key starts with this tuple are
                invalidated, e.g. ``("getUser",)`` for every getUser call.
                None invalidates everything.

        Returns:
            The number of entries invalidated.
        """
        matched = [
            entry
            for entry in list(self._entries.values())
            if prefix is None or entry.key[: len(prefix)] == tuple(prefix)
        ]
        for entry in matched:
            entry.is_invalidated = True
        for entry in matched:
            self._notify(entry)
        return len(matched)

    def remove(self, key: QueryKey) -> bool:
        """Drop the entry for ``key``. Returns True if one existed."""
        return self._entries.pop(key_digest(key), None) is not None

    def clear(self) -> None:
        """Drop all entries and reset statistics (mainly for testing)."""
        self._entries.clear()
        self.reset_stats()

    def _notify(self, entry: CacheEntry) -> None:
        for listener in list(self._listeners.get(entry.digest, ())):
            listener(entry)
