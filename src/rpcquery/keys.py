"""Cache key derivation for (path, args) pairs.

A query key is the tuple ``(path, *args)``. Argument values are kept as-is
(before any transformer runs), so two calls with equal paths and equal
argument sequences address the same cache entry.

Arguments may be unhashable (dicts, lists), so the cache addresses entries
by ``key_digest(key)``: a recursive, type-tagged SHA-256 digest. Type tags
keep ``1``, ``"1"``, ``True`` and ``1.0`` apart, and sequences hash in order.
"""

import dataclasses
import datetime
import hashlib
from collections.abc import Mapping, Sequence, Set
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

QueryKey = tuple[Any, ...]


def derive_key(path: str, args: Sequence[Any] = ()) -> QueryKey:
    """Build the cache key for a call to ``path`` with ``args``.

    Args:
        path: The endpoint path. Must be a non-empty string.
        args: Argument values in call order.

    Returns:
        A tuple whose first element is the path, followed by the arguments.

    Raises:
        ValueError: If path is empty or not a string.
    """
    if not isinstance(path, str) or not path:
        raise ValueError(f"Endpoint path must be a non-empty string, got {path!r}")
    return (path, *args)


def _tagged(tag: str, payload: bytes = b"") -> str:
    hasher = hashlib.sha256()
    hasher.update(tag.encode("utf-8"))
    hasher.update(b"\x00")
    hasher.update(payload)
    return hasher.hexdigest()


def _type_name(value: Any) -> str:
    cls = type(value)
    return f"{cls.__module__}.{cls.__qualname__}"


def hash_value(value: Any) -> str:
    """Recursively hash a value to a deterministic, type-tagged SHA-256 digest.

    None, bool, int, float, Decimal, str, bytes, mappings, sets and sequences
    are hashed structurally (list and tuple hash differently, as they compare
    unequal). Enum members, dates and times, UUIDs and dataclass instances
    are hashed by type and value. Any other object is hashed by its type and
    ``repr``, so it must have a value-based ``repr`` to share cache entries.
    """
    if value is None:
        return _tagged("none")

    # Before bool and int: IntEnum and IntFlag members are ints
    if isinstance(value, Enum):
        return _tagged(f"enum:{_type_name(value)}", hash_value(value.value).encode())

    # bool before int: bool is a subclass of int
    if isinstance(value, bool):
        return _tagged("bool", b"\x01" if value else b"\x00")

    if isinstance(value, int):
        return _tagged("int", str(value).encode("utf-8"))

    if isinstance(value, float):
        # -0.0 == 0.0, so both must address the same entry
        if value == 0.0:
            value = 0.0
        return _tagged("float", repr(value).encode("utf-8"))

    if isinstance(value, Decimal):
        return _tagged("decimal", str(value).encode("utf-8"))

    if isinstance(value, str):
        return _tagged("str", value.encode("utf-8"))

    if isinstance(value, (bytes, bytearray)):
        return _tagged("bytes", bytes(value))

    if isinstance(value, Mapping):
        # Key order never matters for mappings
        items = sorted((hash_value(k), hash_value(v)) for k, v in value.items())
        payload = "".join(k + v for k, v in items)
        return _tagged("map", payload.encode("utf-8"))

    if isinstance(value, Set):
        payload = "".join(sorted(hash_value(item) for item in value))
        return _tagged("set", payload.encode("utf-8"))

    if isinstance(value, Sequence):
        tag = "tuple" if isinstance(value, tuple) else "list"
        payload = f"{len(value)}:" + "".join(hash_value(item) for item in value)
        return _tagged(tag, payload.encode("utf-8"))

    if isinstance(value, (datetime.date, datetime.time, datetime.timedelta)):
        # datetime is a date subclass; the type tag keeps them apart
        return _tagged(f"time:{_type_name(value)}", str(value).encode("utf-8"))

    if isinstance(value, UUID):
        return _tagged("uuid", value.bytes)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return _tagged(f"dataclass:{_type_name(value)}", hash_value(fields).encode())

    return _tagged(f"repr:{_type_name(value)}", repr(value).encode("utf-8"))


def key_digest(key: QueryKey) -> str:
    """Digest a query key into the string the cache store is addressed by."""
    return hash_value(tuple(key))
