"""Pytest configuration and fixtures."""

import asyncio

import pytest

from rpcquery.bindings import create_bindings
from rpcquery.client import Request
from rpcquery.errors import ClientError
from rpcquery.router import Router
from rpcquery.store.memory import QueryCache


class RecordingClient:
    """RPC client double that records every call and replays canned results.

    ``responses`` maps (kind, path) to a value, an exception to raise, or a
    callable receiving the wire args. Each call yields to the event loop
    once, so concurrent callers genuinely overlap.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.requests: list[Request] = []
        self.subscriptions: list[tuple] = []

    def _respond(self, kind, path, args):
        if (kind, path) not in self.responses:
            raise ClientError("NOT_FOUND", f"No {kind} endpoint registered at '{path}'")
        response = self.responses[(kind, path)]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(*args)
        return response

    async def request(self, request):
        self.requests.append(request)
        await asyncio.sleep(0)
        return self._respond(request.kind, request.path, request.args)

    async def subscription_once(self, path, *args):
        self.subscriptions.append((path, *args))
        await asyncio.sleep(0)
        return self._respond("subscription", path, args)


@pytest.fixture
def client():
    """Create an empty RecordingClient."""
    return RecordingClient()


@pytest.fixture
def cache():
    """Create an unbounded QueryCache."""
    return QueryCache(cache="unbounded")


@pytest.fixture
def bindings(client, cache):
    """Create bindings over the recording client and a fresh cache."""
    return create_bindings(client, cache=cache)


@pytest.fixture
def router():
    """Create a small user-directory router."""
    router = Router()
    users = {42: {"id": 42, "name": "Ada"}}

    @router.query("getUser")
    async def get_user(ctx, user_id):
        if user_id not in users:
            raise ClientError("E_NOT_FOUND", f"User {user_id} not found")
        return users[user_id]

    @router.query("listUsers")
    def list_users(ctx):
        return sorted(users)

    @router.mutation("createUser")
    async def create_user(ctx, name):
        user_id = max(users) + 1
        users[user_id] = {"id": user_id, "name": name}
        return users[user_id]

    @router.subscription("onUserCount")
    async def on_user_count(ctx):
        yield len(users)
        yield len(users) + 1

    return router
