"""MutationObserver: tracks the in-flight state of one mutation call site."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from rpcquery.options import MutationOptions
from rpcquery.store.base import Status

logger = logging.getLogger(__name__)

MutationFn = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class MutationResult:
    """Snapshot of a mutation call site."""

    status: Status
    data: Any
    error: BaseException | None

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


class MutationObserver:
    """Runs a mutation function and records its lifecycle.

    Mutations are never cached or coalesced: every call runs the mutation
    function again. When calls overlap, the state reflects whichever call
    settled last.
    """

    def __init__(
        self, mutation_fn: MutationFn, options: MutationOptions | None = None
    ) -> None:
        self.options = options or MutationOptions()
        self._mutation_fn = mutation_fn
        self._listeners: list[Callable[[MutationResult], None]] = []
        self._pending: set[asyncio.Task[Any]] = set()
        self.status: Status = "idle"
        self.data: Any = None
        self.error: BaseException | None = None

    @property
    def result(self) -> MutationResult:
        return MutationResult(status=self.status, data=self.data, error=self.error)

    async def mutate_async(self, *args: Any) -> Any:
        """Run the mutation and return its data.

        Raises:
            Exception: Whatever the mutation function raised, after the
                error state and callbacks have been applied.
        """
        self._set_state("loading", None, None)
        try:
            data = await self._mutation_fn(*args)
        except Exception as exc:
            self._set_state("error", None, exc)
            if self.options.on_error is not None:
                self.options.on_error(exc)
            if self.options.on_settled is not None:
                self.options.on_settled(None, exc)
            raise

        self._set_state("success", data, None)
        if self.options.on_success is not None:
            self.options.on_success(data)
        if self.options.on_settled is not None:
            self.options.on_settled(data, None)
        return data

    def mutate(self, *args: Any) -> "asyncio.Task[Any]":
        """Fire-and-forget variant of mutate_async.

        The returned task resolves to the data, or to None when the mutation
        fails; the failure is still recorded in ``error`` and passed to
        ``on_error``.
        """
        task = asyncio.get_running_loop().create_task(self._mutate_logged(args))
        # The loop only keeps weak references to tasks
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        """Number of fire-and-forget mutations still running."""
        return len(self._pending)

    async def _mutate_logged(self, args: tuple[Any, ...]) -> Any:
        try:
            return await self.mutate_async(*args)
        except Exception as exc:
            logger.warning("Mutation failed: %r", exc)
            return None

    def reset(self) -> None:
        """Return to the idle state."""
        self._set_state("idle", None, None)

    def subscribe(self, listener: Callable[[MutationResult], None]) -> Callable[[], None]:
        """Call ``listener`` with the new result on every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(
        self, status: Status, data: Any, error: BaseException | None
    ) -> None:
        self.status = status
        self.data = data
        self.error = error
        result = self.result
        for listener in list(self._listeners):
            listener(result)
