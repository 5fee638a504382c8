"""Tests for cache key derivation."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum, IntEnum
from uuid import UUID

import pytest

from rpcquery.keys import derive_key, hash_value, key_digest


class TestDeriveKey:
    """Tests for derive_key()."""

    def test_path_then_args(self):
        """Test the key is the path followed by the args in call order."""
        assert derive_key("getUser", [42]) == ("getUser", 42)
        assert derive_key("search", ("ada", 2, {"limit": 10})) == (
            "search",
            "ada",
            2,
            {"limit": 10},
        )

    def test_stable_across_derivations(self):
        """Test equal inputs derive equal keys and digests."""
        k1 = derive_key("getUser", [{"id": 1, "tags": ["a", "b"]}])
        k2 = derive_key("getUser", [{"tags": ["a", "b"], "id": 1}])
        assert k1 == k2
        assert key_digest(k1) == key_digest(k2)

    def test_zero_args_is_path_only(self):
        """Test a zero-argument call derives a one-element key."""
        key = derive_key("listUsers")
        assert key == ("listUsers",)
        assert len(key) == 1

    def test_zero_arg_paths_are_distinct(self):
        """Test zero-argument keys of different paths never collide."""
        assert key_digest(derive_key("listUsers")) != key_digest(
            derive_key("listPosts")
        )

    def test_arg_order_matters(self):
        """Test swapping arguments changes the key."""
        assert key_digest(derive_key("add", [1, 2])) != key_digest(
            derive_key("add", [2, 1])
        )

    def test_arity_matters(self):
        """Test an extra argument changes the key."""
        assert key_digest(derive_key("page", [1])) != key_digest(
            derive_key("page", [1, None])
        )

    def test_path_and_arg_boundaries(self):
        """Test moving a value between path and args changes the key."""
        assert key_digest(derive_key("a", ["b"])) != key_digest(derive_key("ab"))

    def test_empty_path_rejected(self):
        """Test an empty path is refused."""
        with pytest.raises(ValueError, match="non-empty string"):
            derive_key("", [1])

    def test_key_is_immutable(self):
        """Test the key is a tuple."""
        assert isinstance(derive_key("getUser", [42]), tuple)


class TestHashValue:
    """Tests for hash_value()."""

    def test_digest_shape(self):
        """Test digests are 64-character hex strings."""
        h = hash_value("hello")
        assert len(h) == 64
        int(h, 16)

    @pytest.mark.parametrize(
        "a,b",
        [
            (1, "1"),
            (1, True),
            (1, 1.0),
            (0, False),
            (None, "None"),
            ([1, 2], (1, 2)),
            (Decimal("1.5"), 1.5),
            (b"x", "x"),
        ],
    )
    def test_types_are_tagged(self, a, b):
        """Test values of different types never share a digest."""
        assert hash_value(a) != hash_value(b)

    def test_nested_list_boundaries(self):
        """Test nesting is part of the digest."""
        assert hash_value([[1], 2]) != hash_value([1, [2]])

    def test_mapping_order_ignored(self):
        """Test mapping key order does not matter."""
        assert hash_value({"a": 1, "b": 2}) == hash_value({"b": 2, "a": 1})

    def test_set_order_ignored(self):
        """Test set iteration order does not matter."""
        assert hash_value({3, 1, 2}) == hash_value(frozenset([1, 2, 3]))

    def test_negative_zero_equals_zero(self):
        """Test -0.0 and 0.0 compare equal and share a digest."""
        assert hash_value(-0.0) == hash_value(0.0)
        assert key_digest(derive_key("at", [-0.0])) == key_digest(
            derive_key("at", [0.0])
        )

    def test_dates_hash_by_value(self):
        """Test equal dates share a digest and date differs from datetime."""
        assert hash_value(date(2024, 1, 1)) == hash_value(date(2024, 1, 1))
        assert hash_value(date(2024, 1, 1)) != hash_value(date(2024, 1, 2))
        assert hash_value(date(2024, 1, 1)) != hash_value(datetime(2024, 1, 1))
        assert hash_value(date(2024, 1, 1)) != hash_value("2024-01-01")

    def test_enums_hash_by_type_and_value(self):
        """Test enum members are tagged by their class."""
        assert hash_value(Color.RED) == hash_value(Color.RED)
        assert hash_value(Color.RED) != hash_value(Color.BLUE)
        assert hash_value(Color.RED) != hash_value("red")
        assert hash_value(Level.LOW) != hash_value(1)

    def test_uuid_hash_by_value(self):
        """Test equal UUIDs share a digest."""
        text = "12345678-1234-5678-1234-567812345678"
        assert hash_value(UUID(text)) == hash_value(UUID(text))
        assert hash_value(UUID(text)) != hash_value(text)

    def test_dataclasses_hash_by_fields(self):
        """Test equal dataclass instances share a digest."""
        assert hash_value(Point(1, 2)) == hash_value(Point(1, 2))
        assert hash_value(Point(1, 2)) != hash_value(Point(2, 1))
        assert hash_value(Point(1, 2)) != hash_value({"x": 1, "y": 2})

    def test_other_objects_hash_by_repr(self):
        """Test objects of other types hash by type and repr."""
        assert hash_value(Tag("a")) == hash_value(Tag("a"))
        assert hash_value(Tag("a")) != hash_value(Tag("b"))
        assert hash_value(Tag("a")) != hash_value("Tag('a')")


class Color(Enum):
    RED = "red"
    BLUE = "blue"


class Level(IntEnum):
    LOW = 1


@dataclass(frozen=True)
class Point:
    x: int
    y: int


class Tag:
    def __init__(self, name):
        self.name = name

    def __repr__(self):
        return f"Tag({self.name!r})"
