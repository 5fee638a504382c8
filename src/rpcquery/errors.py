"""Error types raised and relayed by rpcquery."""

from typing import Any


class RPCQueryError(Exception):
    """Base class for all rpcquery errors."""


class ClientError(RPCQueryError):
    """An error produced by the RPC client or router.

    Carries a machine-readable ``code`` alongside the human-readable message.
    Bindings relay it unchanged into observer state (queries, subscriptions)
    or re-raise it from ``mutate_async`` (mutations).
    """

    def __init__(
        self, code: str, message: str, data: dict[str, Any] | None = None
    ) -> None:
        self.code = code
        self.message = message
        self.data = data or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"ClientError(code={self.code!r}, message={self.message!r})"


class PipelineError(RPCQueryError):
    """A transformer raised while serializing or deserializing a value."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(
            f"Transformer failed to {stage} value: {type(cause).__name__}: {cause}"
        )


class UnknownEndpointError(RPCQueryError, KeyError):
    """No endpoint is registered for the given kind and path."""

    def __init__(self, kind: str, path: str) -> None:
        self.kind = kind
        self.path = path
        super().__init__(f"No {kind} endpoint registered at '{path}'")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])
