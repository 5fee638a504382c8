"""Example: Prefetch on the server, then render without a round trip.

This example builds a tiny user-directory router, prefetches one user into
the query cache the way a server render would, and then mounts a live query
for the same user. The live query finds the prefetched entry, so the
transport is never called. A mutation and an invalidation follow to show
the refetch path.
"""

import argparse
import asyncio

from rpcquery import BINARY, IDENTITY, LocalClient, Router, create_bindings


class CountingClient(LocalClient):
    """LocalClient that counts how many requests went over the 'wire'."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = 0

    async def request(self, request):
        self.calls += 1
        return await super().request(request)


def build_router(transformer) -> Router:
    router = Router(transformer=transformer)
    users = {1: {"id": 1, "name": "Ada"}, 2: {"id": 2, "name": "Grace"}}

    @router.query("getUser")
    async def get_user(ctx, user_id):
        return users[user_id]

    @router.query("listUsers")
    def list_users(ctx):
        return [users[user_id]["name"] for user_id in sorted(users)]

    @router.mutation("createUser")
    async def create_user(ctx, name):
        user_id = max(users) + 1
        users[user_id] = {"id": user_id, "name": name}
        return users[user_id]

    return router


async def run(user_id: int, new_name: str, transformer_name: str) -> None:
    transformer = BINARY if transformer_name == "binary" else IDENTITY
    router = build_router(transformer)
    client = CountingClient(router, ctx={"user": "example"})
    bindings = create_bindings(client, transformer=transformer)

    await bindings.prefetch(router, "getUser", {"user": "ssr"}, user_id)
    await bindings.prefetch(router, "listUsers", {"user": "ssr"})
    print(f"Prefetched getUser({user_id}) and listUsers")

    user = bindings.query("getUser", user_id).result
    print(f"getUser status: {user.status}")
    print(f"getUser data: {user.data}")
    print(f"Requests after first render: {client.calls}")

    users = bindings.query("listUsers")
    created = await bindings.mutation("createUser").mutate_async(new_name)
    print(f"Created: {created}")

    bindings.invalidate("listUsers")
    result = await users.wait()
    print(f"listUsers after invalidate: {result.data}")
    print(f"Requests total: {client.calls}")


def main():
    parser = argparse.ArgumentParser(
        description="Demonstrate prefetching into the query cache"
    )
    parser.add_argument(
        "--user-id",
        type=int,
        default=1,
        help="User to prefetch (default: 1)",
    )
    parser.add_argument(
        "--name",
        type=str,
        default="Hedy",
        help="Name of the user to create (default: Hedy)",
    )
    parser.add_argument(
        "--transformer",
        type=str,
        choices=["identity", "binary"],
        default="identity",
        help="Payload transformer (default: identity)",
    )
    args = parser.parse_args()
    asyncio.run(run(args.user_id, args.name, args.transformer))


if __name__ == "__main__":
    main()
