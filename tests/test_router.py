"""Tests for EndpointRegistry and Router."""

import types

import pytest

from rpcquery.errors import UnknownEndpointError
from rpcquery.router import EndpointRegistry, Router


@pytest.fixture
def registry():
    """Create a fresh EndpointRegistry."""
    return EndpointRegistry()


def _resolver(ctx, *args):
    return args


class TestEndpointRegistry:
    """Tests for EndpointRegistry."""

    def test_register_and_get(self, registry):
        """Test registering and getting a resolver."""
        registry.register("query", "getUser", _resolver)
        assert registry.has("query", "getUser")
        assert registry.get("query", "getUser") is _resolver

    def test_kinds_are_separate_namespaces(self, registry):
        """Test one path may be a query and a mutation independently."""
        registry.register("query", "user", _resolver)
        registry.register("mutation", "user", print)
        assert registry.get("query", "user") is _resolver
        assert registry.get("mutation", "user") is print
        assert not registry.has("subscription", "user")

    def test_register_empty_path(self, registry):
        """Test that registering with an empty path raises ValueError."""
        with pytest.raises(ValueError, match="cannot be empty"):
            registry.register("query", "", _resolver)

    def test_register_duplicate(self, registry):
        """Test that registering a path twice raises ValueError."""
        registry.register("query", "getUser", _resolver)
        with pytest.raises(ValueError, match="already registered"):
            registry.register("query", "getUser", _resolver)

    def test_unknown_kind(self, registry):
        """Test unknown kinds are refused."""
        with pytest.raises(ValueError, match="kind must be one of"):
            registry.register("event", "x", _resolver)

    def test_get_unknown(self, registry):
        """Test getting an unregistered path raises UnknownEndpointError."""
        with pytest.raises(UnknownEndpointError, match="No query endpoint"):
            registry.get("query", "missing")

    def test_paths_and_clear(self, registry):
        """Test paths() lists sorted paths and clear() empties every kind."""
        registry.register("query", "b", _resolver)
        registry.register("query", "a", _resolver)
        registry.register("mutation", "c", _resolver)
        assert registry.paths("query") == ["a", "b"]
        registry.clear()
        assert registry.paths("query") == []
        assert registry.paths("mutation") == []

    def test_register_package_dict(self, registry):
        """Test registering a dict package under a prefix."""
        registry.register_package("users", "query", {"get": _resolver, "list": _resolver})
        assert registry.paths("query") == ["users.get", "users.list"]

    def test_register_package_module(self, registry):
        """Test registering a module with an ENDPOINTS attribute."""
        module = types.ModuleType("user_endpoints")
        module.ENDPOINTS = {"create": _resolver}
        registry.register_package("users", "mutation", module)
        assert registry.has("mutation", "users.create")

    def test_register_package_module_without_endpoints(self, registry):
        """Test a module without ENDPOINTS raises AttributeError."""
        with pytest.raises(AttributeError, match="ENDPOINTS"):
            registry.register_package("x", "query", types.ModuleType("empty"))

    def test_register_package_invalid(self, registry):
        """Test invalid packages are refused."""
        with pytest.raises(ValueError, match="cannot be empty"):
            registry.register_package("", "query", {})
        with pytest.raises(ValueError, match="must be a dict"):
            registry.register_package("x", "query", 42)


class TestRouter:
    """Tests for Router."""

    async def test_invoke_query_async_resolver(self, router):
        """Test invoke_query passes ctx and args to an async resolver."""
        user = await router.invoke_query({"user": "admin"})("getUser", 42)
        assert user == {"id": 42, "name": "Ada"}

    async def test_invoke_query_sync_resolver(self, router):
        """Test sync resolvers work too."""
        assert await router.invoke_query(None)("listUsers") == [42]

    async def test_ctx_is_passed(self):
        """Test the context reaches the resolver."""
        router = Router()

        @router.query("whoami")
        def whoami(ctx):
            return ctx["user"]

        assert await router.invoke_query({"user": "ada"})("whoami") == "ada"

    async def test_invoke_mutation(self, router):
        """Test invoke_mutation runs mutation resolvers."""
        user = await router.invoke_mutation(None)("createUser", "Grace")
        assert user == {"id": 43, "name": "Grace"}

    async def test_invoke_subscription_first_item(self, router):
        """Test a subscription resolver's first yielded value is returned."""
        assert await router.invoke_subscription(None)("onUserCount") == 1

    async def test_empty_subscription(self):
        """Test a subscription that yields nothing raises ValueError."""
        router = Router()

        @router.subscription("never")
        async def never(ctx):
            return
            yield

        with pytest.raises(ValueError, match="ended without producing"):
            await router.invoke_subscription(None)("never")

    async def test_invoke_unknown(self, router):
        """Test invoking an unregistered path raises UnknownEndpointError."""
        with pytest.raises(UnknownEndpointError):
            await router.invoke_query(None)("createUser", "Ada")

    async def test_merge(self, router):
        """Test merging a router under a prefix."""
        root = Router().merge("users", router)
        assert root.registry.paths("query") == ["users.getUser", "users.listUsers"]
        assert root.registry.has("mutation", "users.createUser")
        assert await root.invoke_query(None)("users.getUser", 42) == {
            "id": 42,
            "name": "Ada",
        }
