"""Per-call configuration for query, subscription and mutation bindings."""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable

SuccessCallback = Callable[[Any], None]
ErrorCallback = Callable[[BaseException], None]
SettledCallback = Callable[[Any, "BaseException | None"], None]


class _Unset:
    """Marks a QueryOptions field the caller did not pass."""

    def __repr__(self) -> str:
        return "UNSET"


_UNSET: Any = _Unset()

_QUERY_DEFAULTS: dict[str, Any] = {
    "enabled": True,
    "stale_time": 0.0,
    "on_success": None,
    "on_error": None,
    "on_settled": None,
}


@dataclass(frozen=True)
class QueryOptions:
    """Options for query and subscription observers.

    Fields left out of the constructor take the defaults below, and
    ``explicit`` records the ones that were passed so ``merge`` can tell an
    override apart from a default.

    Attributes:
        enabled: When False, the observer never fetches on its own; call
            ``refetch()`` to fetch explicitly. Default True.
        stale_time: Seconds a successful result stays fresh. 0 (default)
            means the data is stale as soon as it arrives; ``math.inf``
            means never.
        on_success: Called with the deserialized data after each successful
            fetch of the observed key.
        on_error: Called with the error after each failed fetch.
        on_settled: Called with ``(data, error)`` after either outcome.
    """

    enabled: bool = _UNSET
    stale_time: float = _UNSET
    on_success: SuccessCallback | None = _UNSET
    on_error: ErrorCallback | None = _UNSET
    on_settled: SettledCallback | None = _UNSET
    explicit: frozenset[str] = field(
        default=frozenset(), init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        explicit = set()
        for name, default in _QUERY_DEFAULTS.items():
            if getattr(self, name) is _UNSET:
                object.__setattr__(self, name, default)
            else:
                explicit.add(name)
        object.__setattr__(self, "explicit", frozenset(explicit))

        if self.stale_time < 0 or math.isnan(self.stale_time):
            raise ValueError(f"stale_time must be >= 0, got {self.stale_time!r}")

    def merge(self, overrides: "QueryOptions | None") -> "QueryOptions":
        """Layer the fields passed explicitly to ``overrides`` on top of these."""
        if overrides is None:
            return self
        changes = {name: getattr(overrides, name) for name in overrides.explicit}
        return replace(self, **changes)


@dataclass(frozen=True)
class MutationOptions:
    """Callbacks for mutation observers.

    Each callback sees the deserialized data, never the raw wire value.
    """

    on_success: SuccessCallback | None = None
    on_error: ErrorCallback | None = None
    on_settled: SettledCallback | None = None
