"""Transform pipeline: the serialize/deserialize pair applied to every payload.

Arguments are serialized on the way out, results are deserialized on the way
back in. The pipeline is synchronous and never touches the cache or the
network. Whatever the configured transformer raises is re-raised as
PipelineError, so a misbehaving transformer is never mistaken for a
transport failure.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable

from rpcquery.errors import PipelineError


@dataclass(frozen=True)
class Transformer:
    """A pair of total functions mapping values to wire form and back.

    For every value exchanged, ``deserialize(serialize(v))`` should be
    equivalent to ``v``. This is not checked at runtime.
    """

    serialize: Callable[[Any], Any]
    deserialize: Callable[[Any], Any]


def _identity(value: Any) -> Any:
    return value


IDENTITY = Transformer(serialize=_identity, deserialize=_identity)


def serialize_value(transformer: Transformer, value: Any) -> Any:
    """Serialize a single value to its wire form."""
    try:
        return transformer.serialize(value)
    except Exception as exc:
        raise PipelineError("serialize", exc) from exc


def serialize_args(transformer: Transformer, args: Iterable[Any]) -> tuple[Any, ...]:
    """Serialize call arguments element-wise, preserving order and arity.

    Raises:
        PipelineError: If the transformer raises for any argument.
    """
    return tuple(serialize_value(transformer, arg) for arg in args)


def deserialize_result(transformer: Transformer, wire: Any) -> Any:
    """Deserialize a single wire payload.

    Raises:
        PipelineError: If the transformer raises.
    """
    try:
        return transformer.deserialize(wire)
    except Exception as exc:
        raise PipelineError("deserialize", exc) from exc
