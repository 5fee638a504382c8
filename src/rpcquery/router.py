"""Endpoint registry and router: the server-side view of an endpoint set."""

import functools
import inspect
import types
from typing import Any, Awaitable, Callable, Literal

from rpcquery.errors import UnknownEndpointError
from rpcquery.transformer import IDENTITY, Transformer, deserialize_result

Kind = Literal["query", "mutation", "subscription"]
KINDS: tuple[Kind, ...] = ("query", "mutation", "subscription")

# Resolvers are called as resolver(ctx, *args), sync or async
Resolver = Callable[..., Any]

# Type alias for endpoint packages: dict mapping short names to resolvers
EndpointPackage = dict[str, Resolver]


class EndpointRegistry:
    """Maps (kind, path) to resolvers.

    Each kind has its own namespace, so one path string may be registered
    as a query and as a mutation independently.
    """

    def __init__(self) -> None:
        self._endpoints: dict[str, dict[str, Resolver]] = {kind: {} for kind in KINDS}

    def _namespace(self, kind: str) -> dict[str, Resolver]:
        if kind not in self._endpoints:
            raise ValueError(f"Endpoint kind must be one of {KINDS}, got {kind!r}")
        return self._endpoints[kind]

    def register(self, kind: Kind, path: str, resolver: Resolver) -> None:
        """Register a resolver.

        Raises:
            ValueError: If kind is unknown, path is empty, or path is already
                registered for this kind.
        """
        namespace = self._namespace(kind)
        if not path:
            raise ValueError("Endpoint path cannot be empty")
        if path in namespace:
            raise ValueError(f"{kind.capitalize()} '{path}' is already registered")
        namespace[path] = resolver

    def get(self, kind: Kind, path: str) -> Resolver:
        """Get a resolver.

        Raises:
            UnknownEndpointError: If nothing is registered at path.
        """
        namespace = self._namespace(kind)
        if path not in namespace:
            raise UnknownEndpointError(kind, path)
        return namespace[path]

    def has(self, kind: Kind, path: str) -> bool:
        return path in self._namespace(kind)

    def paths(self, kind: Kind) -> list[str]:
        return sorted(self._namespace(kind))

    def clear(self) -> None:
        """Clear all registered endpoints (mainly for testing)."""
        for namespace in self._endpoints.values():
            namespace.clear()

    def register_package(
        self, prefix: str, kind: Kind, endpoints: EndpointPackage | Any
    ) -> None:
        """Register every resolver of a package as ``"<prefix>.<name>"``.

        Args:
            prefix: The namespace prefix (e.g. "users").
            kind: The kind every endpoint in the package is registered as.
            endpoints: Either a dict mapping short names to resolvers, or a
                module (or any object) with an ENDPOINTS dict attribute.

        Raises:
            ValueError: If prefix is empty, endpoints is invalid, or any
                path is already registered.
            AttributeError: If endpoints is a module without ENDPOINTS.
        """
        if not prefix:
            raise ValueError("Package prefix cannot be empty")

        package: EndpointPackage
        if isinstance(endpoints, dict):
            package = endpoints
        elif isinstance(endpoints, types.ModuleType) and not hasattr(
            endpoints, "ENDPOINTS"
        ):
            raise AttributeError(
                f"Module {endpoints.__name__} does not have an ENDPOINTS attribute"
            )
        elif hasattr(endpoints, "ENDPOINTS"):
            package = endpoints.ENDPOINTS
            if not isinstance(package, dict):
                raise ValueError(
                    f"ENDPOINTS attribute must be a dict, got {type(package)}"
                )
        else:
            raise ValueError(
                f"endpoints must be a dict or module with ENDPOINTS attribute, "
                f"got {type(endpoints)}"
            )

        for name, resolver in package.items():
            self.register(kind, f"{prefix}.{name}", resolver)


class Router:
    """A set of endpoints plus the entry points used to invoke them directly.

    Resolvers are registered with the ``query``, ``mutation`` and
    ``subscription`` decorators and receive the request context first::

        router = Router()

        @router.query("getUser")
        async def get_user(ctx, user_id):
            ...

    Arguments arrive in wire form and are deserialized with the router's
    transformer before the resolver runs; outputs are returned as-is.
    Subscription resolvers may return an async iterator; invoking one
    directly yields its first item.
    """

    def __init__(
        self,
        registry: EndpointRegistry | None = None,
        transformer: Transformer | None = None,
    ) -> None:
        self.registry = registry or EndpointRegistry()
        self.transformer = transformer or IDENTITY

    def _decorator(self, kind: Kind, path: str) -> Callable[[Resolver], Resolver]:
        def register(resolver: Resolver) -> Resolver:
            self.registry.register(kind, path, resolver)
            return resolver

        return register

    def query(self, path: str) -> Callable[[Resolver], Resolver]:
        return self._decorator("query", path)

    def mutation(self, path: str) -> Callable[[Resolver], Resolver]:
        return self._decorator("mutation", path)

    def subscription(self, path: str) -> Callable[[Resolver], Resolver]:
        return self._decorator("subscription", path)

    def merge(self, prefix: str, other: "Router") -> "Router":
        """Copy every endpoint of ``other`` into this router under ``prefix``.

        Returns:
            This router, for chaining.
        """
        for kind in KINDS:
            package = {
                path: other.registry.get(kind, path)
                for path in other.registry.paths(kind)
            }
            self.registry.register_package(prefix, kind, package)
        return self

    async def invoke(self, kind: Kind, ctx: Any, path: str, *args: Any) -> Any:
        """Call the resolver registered at (kind, path) with ``ctx`` and args.

        Raises:
            UnknownEndpointError: If nothing is registered at path.
            PipelineError: If an argument cannot be deserialized.
            ValueError: If a subscription ends without producing a value.
        """
        resolver = self.registry.get(kind, path)
        inputs = [deserialize_result(self.transformer, arg) for arg in args]
        output = resolver(ctx, *inputs)
        if inspect.isawaitable(output):
            output = await output
        if kind == "subscription" and hasattr(output, "__anext__"):
            output = await _first_item(path, output)
        return output

    def invoke_query(self, ctx: Any) -> Callable[..., Awaitable[Any]]:
        """Return ``async (path, *args)`` that runs queries with ``ctx``."""
        return functools.partial(self.invoke, "query", ctx)

    def invoke_mutation(self, ctx: Any) -> Callable[..., Awaitable[Any]]:
        return functools.partial(self.invoke, "mutation", ctx)

    def invoke_subscription(self, ctx: Any) -> Callable[..., Awaitable[Any]]:
        return functools.partial(self.invoke, "subscription", ctx)


async def _first_item(path: str, stream: Any) -> Any:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        raise ValueError(
            f"Subscription '{path}' ended without producing a value"
        ) from None
    finally:
        if hasattr(stream, "aclose"):
            await stream.aclose()
