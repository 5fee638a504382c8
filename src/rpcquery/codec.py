"""Tagged binary codec usable as a wire transformer.

Unlike JSON, the encoding keeps Decimal, tuple, bytes and bool values intact,
so ``decode(encode(v)) == v`` with the same types on both sides.

Supported values (recursive for containers):
  - None, bool, int, float, Decimal, str, bytes
  - dict[str, value], list[value], tuple[value, ...]

Every value is written as a 4-byte type tag followed by its payload.
Variable-length payloads are prefixed with an 8-byte big-endian length.
"""

import struct
from decimal import Decimal
from io import BytesIO
from typing import Any

from rpcquery.transformer import Transformer

_LENGTH_BYTES = 8


def encode(value: Any) -> bytes:
    """Encode a value to bytes.

    Raises:
        TypeError: If value (or a nested value) has an unsupported type,
            or a dict has a non-string key.
    """
    stream = BytesIO()
    _encode_value(value, stream)
    return stream.getvalue()


def decode(data: bytes) -> Any:
    """Decode bytes produced by encode().

    Raises:
        TypeError: If data is not bytes.
        ValueError: If data is truncated, carries trailing bytes, or uses an
            unknown type tag.
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(f"Expected bytes to decode, got {type(data).__name__}")
    stream = BytesIO(data)
    value = _decode_value(stream)
    if stream.read(1):
        raise ValueError("Invalid encoding: trailing bytes after value")
    return value


BINARY = Transformer(serialize=encode, deserialize=decode)


def _write_sized(stream: BytesIO, payload: bytes) -> None:
    stream.write(len(payload).to_bytes(_LENGTH_BYTES, byteorder="big", signed=False))
    stream.write(payload)


def _write_length(stream: BytesIO, length: int) -> None:
    stream.write(length.to_bytes(_LENGTH_BYTES, byteorder="big", signed=False))


def _encode_value(value: Any, stream: BytesIO) -> None:
    if value is None:
        stream.write(b"none")
        return

    # bool before int: bool is a subclass of int
    if isinstance(value, bool):
        stream.write(b"bool")
        stream.write(b"\x01" if value else b"\x00")
        return

    if isinstance(value, int):
        # Arbitrary precision: store the decimal text
        stream.write(b"int_")
        _write_sized(stream, str(value).encode("ascii"))
        return

    if isinstance(value, float):
        stream.write(b"flt_")
        stream.write(struct.pack(">d", value))
        return

    if isinstance(value, Decimal):
        stream.write(b"decm")
        _write_sized(stream, str(value).encode("ascii"))
        return

    if isinstance(value, str):
        stream.write(b"str_")
        _write_sized(stream, value.encode("utf-8"))
        return

    if isinstance(value, (bytes, bytearray)):
        stream.write(b"byts")
        _write_sized(stream, bytes(value))
        return

    if isinstance(value, dict):
        stream.write(b"dict")
        _write_length(stream, len(value))
        # Insertion order is preserved so round-trips compare equal
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(
                    f"Dict keys must be str to encode, got {type(key).__name__}"
                )
            _write_sized(stream, key.encode("utf-8"))
            _encode_value(item, stream)
        return

    if isinstance(value, (list, tuple)):
        stream.write(b"tupl" if isinstance(value, tuple) else b"list")
        _write_length(stream, len(value))
        for item in value:
            _encode_value(item, stream)
        return

    raise TypeError(f"Unsupported type for encoding: {type(value).__name__}")


def _read_exact(stream: BytesIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ValueError(f"Invalid encoding: truncated {what}")
    return data


def _read_length(stream: BytesIO, what: str) -> int:
    raw = _read_exact(stream, _LENGTH_BYTES, f"{what} length")
    return int.from_bytes(raw, byteorder="big", signed=False)


def _read_sized(stream: BytesIO, what: str) -> bytes:
    return _read_exact(stream, _read_length(stream, what), what)


def _decode_value(stream: BytesIO) -> Any:
    tag = _read_exact(stream, 4, "type tag")

    if tag == b"none":
        return None

    if tag == b"bool":
        return _read_exact(stream, 1, "bool") == b"\x01"

    if tag == b"int_":
        return int(_read_sized(stream, "int").decode("ascii"))

    if tag == b"flt_":
        return struct.unpack(">d", _read_exact(stream, 8, "float"))[0]

    if tag == b"decm":
        return Decimal(_read_sized(stream, "decimal").decode("ascii"))

    if tag == b"str_":
        return _read_sized(stream, "str").decode("utf-8")

    if tag == b"byts":
        return _read_sized(stream, "bytes")

    if tag == b"dict":
        result = {}
        for _ in range(_read_length(stream, "dict")):
            key = _read_sized(stream, "dict key").decode("utf-8")
            result[key] = _decode_value(stream)
        return result

    if tag in (b"list", b"tupl"):
        what = "list" if tag == b"list" else "tuple"
        items = [_decode_value(stream) for _ in range(_read_length(stream, what))]
        return tuple(items) if tag == b"tupl" else items

    raise ValueError(f"Unknown type tag: {tag!r}")
