"""rpcquery: cache-backed bindings between RPC endpoints and reactive UIs."""

from importlib.metadata import PackageNotFoundError, version

from rpcquery.bindings import Bindings, create_bindings
from rpcquery.client import LocalClient, Request, RPCClient
from rpcquery.codec import BINARY
from rpcquery.errors import (
    ClientError,
    PipelineError,
    RPCQueryError,
    UnknownEndpointError,
)
from rpcquery.keys import derive_key, key_digest
from rpcquery.mutation import MutationObserver, MutationResult
from rpcquery.observer import QueryObserver, QueryResult
from rpcquery.options import MutationOptions, QueryOptions
from rpcquery.router import EndpointRegistry, Router
from rpcquery.store import CacheEntry, QueryCache
from rpcquery.transformer import IDENTITY, Transformer

try:
    __version__ = version("rpcquery")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

__all__ = [
    "BINARY",
    "Bindings",
    "CacheEntry",
    "ClientError",
    "EndpointRegistry",
    "IDENTITY",
    "LocalClient",
    "MutationObserver",
    "MutationOptions",
    "MutationResult",
    "PipelineError",
    "QueryCache",
    "QueryObserver",
    "QueryOptions",
    "QueryResult",
    "RPCClient",
    "RPCQueryError",
    "Request",
    "Router",
    "Transformer",
    "UnknownEndpointError",
    "create_bindings",
    "derive_key",
    "key_digest",
    "__version__",
]
