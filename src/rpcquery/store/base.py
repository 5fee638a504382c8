"""Base class and entry record for query cache implementations."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

from rpcquery.keys import QueryKey

Status = Literal["idle", "loading", "success", "error"]
Fetcher = Callable[[], Awaitable[Any]]


class _Missing:
    """Sentinel type for entries that hold no data yet."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass
class CacheEntry:
    """State of one cached query key.

    ``data`` holds the raw wire value exactly as the client (or a prefetch)
    produced it; observers deserialize it on read. Data from the last
    success is kept while a refetch is in flight or after a failed refetch.
    """

    key: QueryKey
    digest: str
    status: Status = "idle"
    data: Any = MISSING
    error: BaseException | None = None
    updated_at: float | None = None
    is_fetching: bool = False
    is_invalidated: bool = False
    observed: bool = False  # False until a live observer attaches
    revision: int = 0  # bumped every time the entry settles

    @property
    def has_data(self) -> bool:
        return self.data is not MISSING


@dataclass
class CacheStats:
    """Cache statistics tracking hits, misses, fetches, and puts."""

    hits: int = 0  # get() found an entry
    misses: int = 0  # get() found nothing
    fetches: int = 0  # fetch() started a new request
    deduped: int = 0  # fetch() joined an in-flight request
    puts: int = 0  # set_data() was called


Listener = Callable[[CacheEntry], None]


class CacheStore(ABC):
    """Abstract base class for the shared query cache.

    Stores entries by query key, coalesces concurrent fetches of one key,
    and notifies listeners whenever an entry changes.
    """

    def __init__(self) -> None:
        """Initialize the store with cache statistics."""
        self.stats = CacheStats()

    def reset_stats(self) -> None:
        """Reset cache statistics to zero."""
        self.stats = CacheStats()

    @abstractmethod
    def get(self, key: QueryKey) -> CacheEntry | None:
        """Return the entry for ``key``, or None if there is none."""
        ...

    @abstractmethod
    def ensure(self, key: QueryKey) -> CacheEntry:
        """Return the entry for ``key``, creating an idle one if needed."""
        ...

    @abstractmethod
    def set_data(self, key: QueryKey, data: Any, observed: bool = True) -> CacheEntry:
        """Store a successful raw value for ``key`` and notify listeners.

        Args:
            key: The query key.
            data: The raw wire value.
            observed: False for prefetch writes that no live observer has
                requested yet.
        """
        ...

    @abstractmethod
    def fetch(self, key: QueryKey, fetcher: Fetcher) -> "asyncio.Task[CacheEntry]":
        """Run ``fetcher`` for ``key`` unless a fetch is already in flight.

        Returns:
            A task resolving to the settled entry. Fetch failures are
            recorded on the entry rather than raised from the task.
        """
        ...

    @abstractmethod
    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """Register a change listener for ``key``; returns an unsubscribe callable."""
        ...

    @abstractmethod
    def remove(self, key: QueryKey) -> bool:
        """Drop the entry for ``key``. Returns True if one existed."""
        ...
