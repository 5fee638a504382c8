"""RPC client contract and an in-process client backed by a Router."""

import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from rpcquery.errors import ClientError, PipelineError, UnknownEndpointError
from rpcquery.router import Kind, Router
from rpcquery.transformer import serialize_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Request:
    """One outbound call. ``args`` are already in wire form."""

    kind: Kind
    path: str
    args: tuple[Any, ...] = ()


@runtime_checkable
class RPCClient(Protocol):
    """What the bindings need from a transport.

    Both methods return the raw wire value and raise ClientError on
    transport, protocol or application failures.
    """

    async def request(self, request: Request) -> Any:
        """Execute a query or mutation."""
        ...

    async def subscription_once(self, path: str, *args: Any) -> Any:
        """Fetch the next value of a subscription."""
        ...


class LocalClient:
    """RPCClient that calls a Router in the same process.

    The router's transformer plays the server side: it decodes the wire
    arguments, and its serialize encodes the output on the way back.
    Every failure reaches the caller as a ClientError.
    """

    def __init__(self, router: Router, ctx: Any = None) -> None:
        self.router = router
        self.ctx = ctx

    async def request(self, request: Request) -> Any:
        if request.kind not in ("query", "mutation"):
            raise ValueError(
                f"request() handles queries and mutations, got {request.kind!r}; "
                f"use subscription_once() for subscriptions"
            )
        return await self._call(request.kind, request.path, request.args)

    async def subscription_once(self, path: str, *args: Any) -> Any:
        return await self._call("subscription", path, args)

    async def _call(self, kind: Kind, path: str, args: tuple[Any, ...]) -> Any:
        logger.debug("Invoking %s '%s'", kind, path)
        try:
            output = await self.router.invoke(kind, self.ctx, path, *args)
        except ClientError:
            raise
        except UnknownEndpointError as exc:
            raise ClientError("NOT_FOUND", str(exc)) from exc
        except PipelineError as exc:
            raise ClientError("BAD_REQUEST", f"Could not read arguments: {exc}") from exc
        except Exception as exc:
            raise ClientError(
                "INTERNAL_SERVER_ERROR", str(exc), {"type": type(exc).__name__}
            ) from exc

        try:
            return serialize_value(self.router.transformer, output)
        except PipelineError as exc:
            raise ClientError(
                "INTERNAL_SERVER_ERROR", f"Could not write result: {exc}"
            ) from exc
