"""Query cache backends."""

from rpcquery.store.base import MISSING, CacheEntry, CacheStats, CacheStore
from rpcquery.store.memory import QueryCache

__all__ = [
    "MISSING",
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "QueryCache",
]
