"""QueryObserver: a live, deserialized view of one cached query key."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from rpcquery.errors import PipelineError
from rpcquery.keys import QueryKey
from rpcquery.options import QueryOptions
from rpcquery.store.base import MISSING, CacheEntry, Fetcher, Status
from rpcquery.store.memory import QueryCache
from rpcquery.transformer import Transformer, deserialize_result

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryResult:
    """Snapshot of a query as seen by one observer.

    ``data`` is the deserialized value, or None while nothing has loaded.
    """

    status: Status
    data: Any
    error: BaseException | None
    updated_at: float | None
    is_fetching: bool
    is_stale: bool

    @property
    def is_idle(self) -> bool:
        return self.status == "idle"

    @property
    def is_loading(self) -> bool:
        return self.status == "loading"

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @property
    def is_error(self) -> bool:
        return self.status == "error"


ResultListener = Callable[[QueryResult], None]


class QueryObserver:
    """Observes one key in a QueryCache and exposes its deserialized result.

    Attaching starts a fetch when the entry has no data, is stale, or was
    invalidated. An entry written by a prefetch that no observer has seen
    yet counts as fresh, so hydrated data is used without a round trip.

    Deserialization runs once per distinct raw value: the decoded data is
    memoized against the identity of the cached wire value.
    """

    def __init__(
        self,
        cache: QueryCache,
        key: QueryKey,
        fetcher: Fetcher,
        transformer: Transformer,
        options: QueryOptions | None = None,
    ) -> None:
        self.key = key
        self.options = options or QueryOptions()
        self._cache = cache
        self._fetcher = fetcher
        self._transformer = transformer
        self._listeners: list[ResultListener] = []
        self._destroyed = False

        self._raw: Any = MISSING
        self._data: Any = None
        self._pipeline_error: PipelineError | None = None

        self._entry = cache.ensure(key)
        self._revision = self._entry.revision
        self._unsubscribe = cache.subscribe(key, self._on_entry_change)

        hydrated = self._entry.has_data and not self._entry.observed
        self._entry.observed = True
        if self.options.enabled and not hydrated:
            if cache.is_stale(self._entry, self.options.stale_time):
                self._start_fetch()

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def result(self) -> QueryResult:
        """The current result, built from the cached entry."""
        entry = self._entry
        data = self._read_data(entry)
        status: Status = entry.status
        error = entry.error
        if self._pipeline_error is not None:
            status = "error"
            error = self._pipeline_error
        return QueryResult(
            status=status,
            data=data,
            error=error,
            updated_at=entry.updated_at,
            is_fetching=entry.is_fetching,
            is_stale=self._cache.is_stale(entry, self.options.stale_time),
        )

    def _read_data(self, entry: CacheEntry) -> Any:
        raw = entry.data
        if raw is MISSING:
            return None
        if raw is not self._raw:
            self._raw = raw
            try:
                self._data = deserialize_result(self._transformer, raw)
                self._pipeline_error = None
            except PipelineError as exc:
                logger.debug("Could not deserialize data for %r: %s", self.key, exc)
                self._data = None
                self._pipeline_error = exc
        return self._data

    async def wait(self) -> QueryResult:
        """Wait for any in-flight fetch of this key, then return the result."""
        task = self._cache.in_flight(self.key)
        if task is not None:
            await asyncio.shield(task)
        return self.result

    async def refetch(self) -> QueryResult:
        """Fetch the key now, joining a fetch already in flight, and return the result."""
        await asyncio.shield(self._start_fetch())
        return self.result

    def subscribe(self, listener: ResultListener) -> Callable[[], None]:
        """Call ``listener`` with the new result whenever it changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def destroy(self) -> None:
        """Stop observing. An in-flight request is left to finish for other observers."""
        if self._destroyed:
            return
        self._destroyed = True
        self._unsubscribe()
        self._listeners.clear()

    def _start_fetch(self) -> "asyncio.Task[CacheEntry]":
        return self._cache.fetch(self.key, self._fetcher)

    def _on_entry_change(self, entry: CacheEntry) -> None:
        if self._destroyed:
            return
        self._entry = entry

        if entry.is_invalidated and not entry.is_fetching and self.options.enabled:
            # fetch() notifies again with is_fetching set
            self._start_fetch()
            return

        result = self.result
        if entry.revision != self._revision and not entry.is_fetching:
            self._revision = entry.revision
            self._run_callbacks(result)

        for listener in list(self._listeners):
            listener(result)

    def _run_callbacks(self, result: QueryResult) -> None:
        options = self.options
        if result.is_success and options.on_success is not None:
            options.on_success(result.data)
        elif result.is_error and options.on_error is not None:
            options.on_error(result.error)
        if options.on_settled is not None and (result.is_success or result.is_error):
            options.on_settled(result.data, result.error)
