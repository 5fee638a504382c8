"""Bindings: cache-backed query, mutation and subscription operations.

One ``create_bindings`` call fixes the RPC client, query cache and
transformer. Every observer it hands out shares that one cache, so two
observers of the same (path, args) see the same entry and a single
in-flight request.
"""

import functools
import logging
from typing import Any

from rpcquery.client import Request, RPCClient
from rpcquery.keys import QueryKey, derive_key
from rpcquery.mutation import MutationObserver
from rpcquery.observer import QueryObserver
from rpcquery.options import MutationOptions, QueryOptions
from rpcquery.router import EndpointRegistry, Kind, Router
from rpcquery.store.base import Fetcher
from rpcquery.store.memory import QueryCache
from rpcquery.transformer import (
    IDENTITY,
    Transformer,
    deserialize_result,
    serialize_args,
    serialize_value,
)

logger = logging.getLogger(__name__)


class Bindings:
    """The operations exposed to UI code, closed over one client and cache."""

    def __init__(
        self,
        client: RPCClient,
        cache: QueryCache,
        transformer: Transformer,
        registry: EndpointRegistry | None = None,
        default_query_options: QueryOptions | None = None,
    ) -> None:
        """Initialize Bindings.

        Args:
            client: Transport used for every live call.
            cache: The query cache shared by all observers.
            transformer: Applied to arguments on the way out and results on
                the way back.
            registry: Optional endpoint registry. When set, unknown paths
                are rejected before anything is fetched.
            default_query_options: Options every query and subscription
                starts from; per-call options are merged on top.
        """
        self.client = client
        self.transformer = transformer
        self.registry = registry
        self.default_query_options = default_query_options or QueryOptions()
        self._cache = cache

    @property
    def cache(self) -> QueryCache:
        """The shared query cache."""
        return self._cache

    def _check_endpoint(self, kind: Kind, path: str) -> None:
        if self.registry is not None:
            self.registry.get(kind, path)

    def query(
        self, path: str, *args: Any, options: QueryOptions | None = None
    ) -> QueryObserver:
        """Observe the query ``path`` called with ``args``.

        Args are serialized immediately, so a failing transformer raises
        here. The returned observer starts fetching if the cache has no
        fresh entry for the key.

        Raises:
            UnknownEndpointError: If a registry is set and path is not a query.
            PipelineError: If an argument cannot be serialized.
        """
        self._check_endpoint("query", path)
        wire_args = serialize_args(self.transformer, args)
        fetcher = functools.partial(
            self.client.request, Request(kind="query", path=path, args=wire_args)
        )
        return self._observe(derive_key(path, args), fetcher, options)

    def subscription(
        self, path: str, *args: Any, options: QueryOptions | None = None
    ) -> QueryObserver:
        """Observe one value of the subscription ``path``.

        Fetched once through ``subscription_once`` and cached exactly like a
        query under ``(path, *args)``.
        """
        self._check_endpoint("subscription", path)
        wire_args = serialize_args(self.transformer, args)
        fetcher = functools.partial(self.client.subscription_once, path, *wire_args)
        return self._observe(derive_key(path, args), fetcher, options)

    def _observe(
        self, key: QueryKey, fetcher: Fetcher, options: QueryOptions | None
    ) -> QueryObserver:
        return QueryObserver(
            self._cache,
            key,
            fetcher,
            self.transformer,
            self.default_query_options.merge(options),
        )

    def mutation(
        self, path: str, options: MutationOptions | None = None
    ) -> MutationObserver:
        """Bind the mutation ``path``.

        The observer's ``mutate_async`` resolves with the deserialized
        result; callbacks and ``data`` see the same deserialized value.

        Raises:
            UnknownEndpointError: If a registry is set and path is not a mutation.
        """
        self._check_endpoint("mutation", path)

        async def run(*args: Any) -> Any:
            wire_args = serialize_args(self.transformer, args)
            raw = await self.client.request(
                Request(kind="mutation", path=path, args=wire_args)
            )
            return deserialize_result(self.transformer, raw)

        return MutationObserver(run, options)

    async def prefetch(self, router: Router, path: str, ctx: Any, *args: Any) -> None:
        """Run a query on ``router`` directly and cache its wire-form result.

        The entry lands under the same key a live query would use, so an
        observer created afterwards reports success without a request.
        If the resolver raises, the error propagates and the cache is left
        untouched.

        Raises:
            UnknownEndpointError: If path is not a query on the router.
            PipelineError: If the arguments or the result cannot be serialized.
        """
        key = derive_key(path, args)
        wire_args = serialize_args(self.transformer, args)
        output = await router.invoke_query(ctx)(path, *wire_args)
        wire = serialize_value(self.transformer, output)
        self._cache.set_data(key, wire, observed=False)
        logger.debug("Prefetched %r", key)

    def invalidate(self, path: str | None = None, *args: Any) -> int:
        """Mark cached queries stale; observed ones refetch right away.

        Args:
            path: Restrict to this path (and, with args, to keys starting
                with those arguments). None invalidates every entry.

        Returns:
            The number of entries invalidated.
        """
        prefix = derive_key(path, args) if path is not None else None
        return self._cache.invalidate(prefix)


def create_bindings(
    client: RPCClient,
    cache: QueryCache | None = None,
    transformer: Transformer | None = None,
    registry: EndpointRegistry | None = None,
    default_query_options: QueryOptions | None = None,
) -> Bindings:
    """Create the bindings for one client and one shared cache.

    Args:
        client: Transport used for every live call.
        cache: Shared query cache. A new default QueryCache when None.
        transformer: Payload transformer. IDENTITY when None.
        registry: Optional registry used to reject unknown endpoints.
        default_query_options: Defaults for queries and subscriptions.
    """
    return Bindings(
        client=client,
        cache=cache if cache is not None else QueryCache(),
        transformer=transformer or IDENTITY,
        registry=registry,
        default_query_options=default_query_options,
    )
