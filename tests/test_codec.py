"""
Tests for the big-endian binary codec.
"""

import enum
import struct
from dataclasses import dataclass, field
from typing import Optional

import pytest

from todostore.codec import BIG_ENDIAN, I64, Codec, decode, encode
from todostore.models.entry import Entry
from todostore.models.exceptions import DecodeError, EncodeError
from todostore.models.todo import Todo


class Priority(enum.IntEnum):
    LOW = 10
    HIGH = 20


@dataclass
class Tagged:
    name: str
    tags: list[str]
    due: Optional[int] = None
    priority: Priority = Priority.LOW
    weights: dict[str, float] = field(default_factory=dict)


class Point:
    def __init__(self, x: int, y: int):
        self.x = x
        self.y = y

    def __bytes__(self) -> bytes:
        return struct.pack(">hh", self.x, self.y)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Point":
        return cls(*struct.unpack(">hh", data))

    def __eq__(self, other):
        return isinstance(other, Point) and (self.x, self.y) == (other.x, other.y)


@dataclass
class Marker:
    pass


@dataclass
class Nested:
    todo: Todo
    parent: Optional["Nested"] = None


class TestCodecLayout:
    """Tests for the exact byte layout."""

    def test_todo_layout(self):
        """Test the documented encoding of a fresh todo."""
        assert encode(Todo(id=0, title="test")) == b"\x00\x04test\x00"

    def test_completed_todo_layout(self):
        assert encode(Todo(id=1, title="a", completed=True)) == b"\x01\x01a\x01"

    @pytest.mark.parametrize(
        "value, expected",
        [
            (0, b"\x00"),
            (250, b"\xfa"),
            (251, b"\xfb\x00\xfb"),
            (258, b"\xfb\x01\x02"),
            (65535, b"\xfb\xff\xff"),
            (65536, b"\xfc\x00\x01\x00\x00"),
            (2**32, b"\xfd\x00\x00\x00\x01\x00\x00\x00\x00"),
            (2**64 - 1, b"\xfd" + b"\xff" * 8),
        ],
    )
    def test_varint_boundaries(self, value, expected):
        """Test each varint width at its boundary."""
        assert encode(value) == expected
        assert decode(expected, int) == value

    def test_little_endian_differs(self):
        """Test that byte order only affects multi-byte widths."""
        little = Codec(byte_order="little")
        assert little.encode(258) == b"\xfb\x02\x01"
        assert little.encode(7) == BIG_ENDIAN.encode(7)

    def test_i64_zigzag(self):
        assert encode(-1, I64) == b"\x01"
        assert encode(1, I64) == b"\x02"
        assert decode(b"\x03", I64) == -2

    def test_float(self):
        assert encode(1.0) == b"\x3f\xf0" + b"\x00" * 6

    def test_bool(self):
        assert encode(True) == b"\x01"
        assert encode(False) == b"\x00"

    def test_optional(self):
        assert encode(None, Optional[int]) == b"\x00"
        assert encode(5, Optional[int]) == b"\x01\x05"
        assert encode(5, int | None) == b"\x01\x05"

    def test_enum_uses_variant_position(self):
        """Test that IntEnum members encode by position, not value."""
        assert encode(Priority.HIGH) == b"\x01"
        assert decode(b"\x00", Priority) is Priority.LOW

    def test_fixed_tuple_has_no_header(self):
        assert encode((1, "a"), tuple[int, str]) == b"\x01\x01a"

    def test_encoding_is_deterministic(self):
        todo = Todo(id=300, title="write tests")
        assert encode(todo) == encode(Todo(id=300, title="write tests"))


class TestCodecRoundTrip:
    """Tests for decoding what was encoded."""

    def test_nested_dataclass(self):
        """Test a record containing containers, options and enums."""
        value = Tagged(
            name="chores",
            tags=["home", "weekly"],
            due=1_700_000_000,
            priority=Priority.HIGH,
            weights={"dishes": 0.5, "laundry": 1.25},
        )
        assert decode(encode(value), Tagged) == value

    def test_recursive_dataclass(self):
        value = Nested(todo=Todo(0, "child"), parent=Nested(todo=Todo(1, "root")))
        assert decode(encode(value), Nested) == value

    def test_bytes_capability(self):
        """Test types exposing __bytes__ and from_bytes."""
        point = Point(3, -4)
        raw = encode(point)

        assert raw == b"\x04\x00\x03\xff\xfc"
        assert decode(raw, Point) == point

    def test_zero_width_items(self):
        """Test sequences whose items encode to nothing."""
        assert encode([None] * 3, list[None]) == b"\x03"
        assert decode(b"\x03", list[None]) == [None, None, None]
        assert decode(encode([(), ()], list[tuple[()]]), list[tuple[()]]) == [(), ()]
        assert decode(encode([Marker()] * 2, list[Marker]), list[Marker]) == [Marker(), Marker()]

    def test_empty_tuple_type(self):
        assert encode((), tuple[()]) == b""
        assert decode(b"", tuple[()]) == ()
        assert encode(()) == b"\x00"

    def test_dataclass_with_bytes_uses_fields(self):
        """Test that dataclasses encode field by field even with __bytes__."""
        entry = Entry.put(b"payload")
        assert encode(entry) == b"\x01\x07payload\x00"
        assert decode(encode(entry), Entry) == entry


class TestCodecErrors:
    """Tests for rejected inputs."""

    @pytest.mark.parametrize("value", [-1, 2**64])
    def test_int_out_of_range(self, value):
        with pytest.raises(EncodeError):
            encode(value)

    def test_i64_out_of_range(self):
        with pytest.raises(EncodeError):
            encode(2**63, I64)

    def test_unsupported_type(self):
        with pytest.raises(EncodeError):
            encode({1, 2})

    def test_wrong_field_type(self):
        with pytest.raises(EncodeError):
            encode(Todo(id="zero", title="test"))

    def test_invalid_bool(self):
        with pytest.raises(DecodeError):
            decode(b"\x00\x04test\x02", Todo)

    def test_trailing_bytes(self):
        with pytest.raises(DecodeError):
            decode(b"\x00\x04test\x00\x00", Todo)

    def test_short_input(self):
        with pytest.raises(DecodeError):
            decode(b"\x00\x04te", Todo)

    def test_empty_input(self):
        with pytest.raises(DecodeError):
            decode(b"", int)

    def test_truncated_varint(self):
        with pytest.raises(DecodeError):
            decode(b"\xfc\x00\x01", int)

    def test_invalid_utf8(self):
        with pytest.raises(DecodeError):
            decode(b"\x00\x02\xff\xfe\x00", Todo)

    def test_invalid_option_tag(self):
        with pytest.raises(DecodeError):
            decode(b"\x02\x05", Optional[int])

    def test_oversized_length(self):
        """Test that a length larger than the input is rejected up front."""
        with pytest.raises(DecodeError):
            decode(b"\xfd\x00\x00\x00\x01\x00\x00\x00\x00", list[int])

    def test_oversized_length_with_sized_items(self):
        """Test that the length check still applies when any item has a size."""
        with pytest.raises(DecodeError):
            decode(b"\x05", list[tuple[None, bool]])
        with pytest.raises(DecodeError):
            decode(b"\x05", dict[None, int])

    def test_unknown_enum_variant(self):
        with pytest.raises(DecodeError):
            decode(b"\x05", Priority)

    def test_u128_rejected_for_int(self):
        with pytest.raises(DecodeError):
            decode(b"\xfe" + b"\x01" + b"\x00" * 15, int)
