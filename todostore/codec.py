"""
Codec - deterministic binary serialization with a fixed byte order.

The layout mirrors bincode's default options, with every multi-byte
integer written big-endian:

- unsigned int: varint. Values below 251 take one byte; larger values
  take a marker byte (251 = u16, 252 = u32, 253 = u64, 254 = u128)
  followed by the fixed-width value. Plain ``int`` means u64.
- I64: zigzag-mapped, then written as an unsigned varint
- bool: one byte, 0 or 1
- float: 8-byte IEEE-754 double
- str / bytes: varint length, then the raw (UTF-8) bytes
- Optional[T]: tag byte 0 (None) or 1 followed by T
- list[T] / tuple[T, ...] / dict[K, V]: varint length, then the items
- tuple[A, B, ...] and dataclasses: fields in order, no header
- IntEnum: variant position as a varint
- any type with ``__bytes__`` and a ``from_bytes`` classmethod: its bytes,
  length-prefixed like ``bytes``

Decoding is type-directed and strict: short input, bad tag bytes, invalid
UTF-8 and trailing bytes all raise DecodeError.
"""

import dataclasses
import enum
import functools
import struct
import types
import typing
from typing import Any, Literal, NewType, TypeVar, Union

from todostore.models.exceptions import DecodeError, EncodeError

T = TypeVar("T")

I64 = NewType("I64", int)

U16_MARKER = 251
U32_MARKER = 252
U64_MARKER = 253
U128_MARKER = 254
SINGLE_BYTE_MAX = 250

U64_MAX = (1 << 64) - 1
I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1

_NONE_TYPE = type(None)


@functools.lru_cache(maxsize=None)
def _dataclass_fields(cls: type) -> tuple[tuple[str, Any], ...]:
    hints = typing.get_type_hints(cls)
    return tuple((f.name, hints[f.name]) for f in dataclasses.fields(cls) if f.init)


def _generic_args(tp: Any) -> tuple:
    if tp is typing.Tuple:
        return (Any, ...)
    args = typing.get_args(tp)
    # Older interpreters report tuple[()] as ((),)
    return () if args == ((),) else args


def _is_zero_width(tp: Any) -> bool:
    """True for types whose encoding is always empty."""
    if tp is None or tp is _NONE_TYPE:
        return True
    if typing.get_origin(tp) is tuple:
        args = _generic_args(tp)
        if args and args[-1] is Ellipsis:
            return False
        return all(_is_zero_width(arg) for arg in args)
    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        return all(_is_zero_width(field_type) for _, field_type in _dataclass_fields(tp))
    return False


def _is_union(tp: Any) -> bool:
    origin = typing.get_origin(tp)
    return origin is Union or origin is types.UnionType


def _has_bytes_capability(tp: Any) -> bool:
    return (
        isinstance(tp, type)
        and not issubclass(tp, (int, bytes, bytearray, str))
        and callable(getattr(tp, "from_bytes", None))
        and hasattr(tp, "__bytes__")
    )


class _Reader:
    """Bounds-checked cursor over the input bytes."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(bytes(data))
        self.pos = 0

    def remaining(self) -> int:
        return len(self._data) - self.pos

    def read(self, size: int) -> bytes:
        if size > self.remaining():
            raise DecodeError(
                f"Unexpected end of input: need {size} bytes at offset {self.pos}, "
                f"have {self.remaining()}"
            )
        chunk = self._data[self.pos : self.pos + size].tobytes()
        self.pos += size
        return chunk

    def read_byte(self) -> int:
        return self.read(1)[0]


@dataclasses.dataclass(frozen=True)
class Codec:
    """
    Immutable serialization scheme.

    The byte order must never change for the lifetime of a database file;
    the store uses BIG_ENDIAN throughout.
    """

    byte_order: Literal["big", "little"] = "big"

    @property
    def _float_format(self) -> str:
        return ">d" if self.byte_order == "big" else "<d"

    # Encoding

    def encode(self, value: Any, type_: Any = None) -> bytes:
        """
        Serialize `value`.

        Args:
            value: The value to encode.
            type_: Declared type guiding the encoding (e.g. ``Optional[int]``).
                Defaults to the value's runtime type.

        Raises:
            EncodeError: If the value is not representable.
        """
        out = bytearray()
        self._encode(value, type(value) if type_ is None else type_, out)
        return bytes(out)

    def _encode(self, value: Any, tp: Any, out: bytearray) -> None:
        if tp is None:
            tp = _NONE_TYPE
        if tp is Any or tp is object:
            tp = type(value)

        if _is_union(tp):
            self._encode_optional(value, tp, out)
            return

        origin = typing.get_origin(tp)
        if origin is not None:
            self._encode_generic(value, origin, _generic_args(tp), out)
            return

        if tp is _NONE_TYPE:
            if value is not None:
                raise EncodeError(f"Expected None, got {type(value).__name__}")
            return

        if tp is bool:
            if not isinstance(value, bool):
                raise EncodeError(f"Expected bool, got {type(value).__name__}")
            out.append(1 if value else 0)
        elif tp is I64:
            self._encode_i64(value, out)
        elif isinstance(tp, type) and issubclass(tp, enum.IntEnum):
            members = list(tp)
            try:
                position = members.index(tp(value))
            except ValueError as exc:
                raise EncodeError(f"{value!r} is not a member of {tp.__name__}") from exc
            self._write_varint(position, out)
        elif tp is int:
            if not isinstance(value, int) or isinstance(value, bool):
                raise EncodeError(f"Expected int, got {type(value).__name__}")
            if value < 0 or value > U64_MAX:
                raise EncodeError(f"{value} does not fit in an unsigned 64-bit integer")
            self._write_varint(value, out)
        elif tp is float:
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise EncodeError(f"Expected float, got {type(value).__name__}")
            out += struct.pack(self._float_format, float(value))
        elif tp is str:
            if not isinstance(value, str):
                raise EncodeError(f"Expected str, got {type(value).__name__}")
            try:
                raw = value.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise EncodeError(f"String is not encodable as UTF-8: {exc}") from exc
            self._write_bytes(raw, out)
        elif tp in (bytes, bytearray, memoryview):
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise EncodeError(f"Expected bytes, got {type(value).__name__}")
            self._write_bytes(bytes(value), out)
        elif dataclasses.is_dataclass(tp):
            if not isinstance(value, tp):
                raise EncodeError(f"Expected {tp.__name__}, got {type(value).__name__}")
            for name, field_type in _dataclass_fields(tp):
                self._encode(getattr(value, name), field_type, out)
        elif _has_bytes_capability(tp):
            self._write_bytes(bytes(value), out)
        elif tp is list:
            self._encode_generic(value, list, (Any,), out)
        elif tp is tuple:
            self._encode_generic(value, tuple, (Any, ...), out)
        elif tp is dict:
            self._encode_generic(value, dict, (), out)
        else:
            raise EncodeError(f"Unsupported type: {getattr(tp, '__name__', tp)!r}")

    def _encode_optional(self, value: Any, tp: Any, out: bytearray) -> None:
        args = typing.get_args(tp)
        inner = [a for a in args if a is not _NONE_TYPE]
        if len(inner) != 1 or len(args) != 2:
            raise EncodeError(f"Only Optional[T] unions are supported, got {tp!r}")
        if value is None:
            out.append(0)
        else:
            out.append(1)
            self._encode(value, inner[0], out)

    def _encode_generic(self, value: Any, origin: Any, args: tuple, out: bytearray) -> None:
        if origin is list or (origin is tuple and args and args[-1] is Ellipsis):
            if not isinstance(value, (list, tuple)):
                raise EncodeError(f"Expected a sequence, got {type(value).__name__}")
            item_type = args[0] if args else Any
            self._write_varint(len(value), out)
            for item in value:
                self._encode(item, item_type, out)
        elif origin is tuple:
            if not isinstance(value, tuple) or len(value) != len(args):
                raise EncodeError(f"Expected a {len(args)}-tuple, got {value!r}")
            for item, item_type in zip(value, args):
                self._encode(item, item_type, out)
        elif origin is dict:
            if not isinstance(value, dict):
                raise EncodeError(f"Expected dict, got {type(value).__name__}")
            key_type, value_type = args if args else (Any, Any)
            self._write_varint(len(value), out)
            for k, v in value.items():
                self._encode(k, key_type, out)
                self._encode(v, value_type, out)
        else:
            raise EncodeError(f"Unsupported generic type: {origin!r}")

    def _encode_i64(self, value: Any, out: bytearray) -> None:
        if not isinstance(value, int) or isinstance(value, bool):
            raise EncodeError(f"Expected int, got {type(value).__name__}")
        if value < I64_MIN or value > I64_MAX:
            raise EncodeError(f"{value} does not fit in a signed 64-bit integer")
        self._write_varint(((value << 1) ^ (value >> 63)) & U64_MAX, out)

    def _write_varint(self, value: int, out: bytearray) -> None:
        order = self.byte_order
        if value <= SINGLE_BYTE_MAX:
            out.append(value)
        elif value < 1 << 16:
            out.append(U16_MARKER)
            out += value.to_bytes(2, order)
        elif value < 1 << 32:
            out.append(U32_MARKER)
            out += value.to_bytes(4, order)
        elif value < 1 << 64:
            out.append(U64_MARKER)
            out += value.to_bytes(8, order)
        else:
            out.append(U128_MARKER)
            out += value.to_bytes(16, order)

    def _write_bytes(self, raw: bytes, out: bytearray) -> None:
        self._write_varint(len(raw), out)
        out += raw

    # Decoding

    def decode(self, data: bytes, type_: type[T] | Any) -> T:
        """
        Deserialize `data` as an instance of `type_`.

        Raises:
            DecodeError: If the bytes do not match the type's layout or are
                followed by trailing bytes.
        """
        reader = _Reader(data)
        value = self._decode(reader, type_)
        if reader.remaining():
            raise DecodeError(
                f"{reader.remaining()} trailing bytes after decoding "
                f"{getattr(type_, '__name__', type_)}"
            )
        return value

    def _decode(self, reader: _Reader, tp: Any) -> Any:
        if tp is None:
            tp = _NONE_TYPE
        if _is_union(tp):
            args = typing.get_args(tp)
            inner = [a for a in args if a is not _NONE_TYPE]
            if len(inner) != 1 or len(args) != 2:
                raise DecodeError(f"Only Optional[T] unions are supported, got {tp!r}")
            tag = reader.read_byte()
            if tag == 0:
                return None
            if tag == 1:
                return self._decode(reader, inner[0])
            raise DecodeError(f"Invalid Option tag {tag} at offset {reader.pos - 1}")

        origin = typing.get_origin(tp)
        if origin is not None:
            return self._decode_generic(reader, origin, _generic_args(tp))

        if tp is _NONE_TYPE:
            return None
        if tp is bool:
            flag = reader.read_byte()
            if flag > 1:
                raise DecodeError(f"Invalid bool byte {flag} at offset {reader.pos - 1}")
            return flag == 1
        if tp is I64:
            raw = self._read_varint(reader)
            return (raw >> 1) ^ -(raw & 1)
        if isinstance(tp, type) and issubclass(tp, enum.IntEnum):
            position = self._read_varint(reader)
            members = list(tp)
            if position >= len(members):
                raise DecodeError(f"Unknown {tp.__name__} variant {position}")
            return members[position]
        if tp is int:
            value = self._read_varint(reader)
            if value > U64_MAX:
                raise DecodeError(f"{value} does not fit in an unsigned 64-bit integer")
            return value
        if tp is float:
            return struct.unpack(self._float_format, reader.read(8))[0]
        if tp is str:
            raw = self._read_bytes(reader)
            try:
                return raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise DecodeError(f"Invalid UTF-8 in string: {exc}") from exc
        if tp in (bytes, bytearray, memoryview):
            return self._read_bytes(reader)
        if dataclasses.is_dataclass(tp):
            kwargs = {
                name: self._decode(reader, field_type)
                for name, field_type in _dataclass_fields(tp)
            }
            try:
                return tp(**kwargs)
            except (TypeError, ValueError) as exc:
                raise DecodeError(f"Cannot construct {tp.__name__}: {exc}") from exc
        if _has_bytes_capability(tp):
            raw = self._read_bytes(reader)
            try:
                return tp.from_bytes(raw)
            except DecodeError:
                raise
            except Exception as exc:
                raise DecodeError(f"{tp.__name__}.from_bytes failed: {exc}") from exc
        raise DecodeError(f"Unsupported type: {getattr(tp, '__name__', tp)!r}")

    def _decode_generic(self, reader: _Reader, origin: Any, args: tuple) -> Any:
        if origin is list or (origin is tuple and args and args[-1] is Ellipsis):
            if not args:
                raise DecodeError("Sequences need an item type to decode")
            count = self._read_length(reader, (args[0],))
            items = [self._decode(reader, args[0]) for _ in range(count)]
            return items if origin is list else tuple(items)
        if origin is tuple:
            return tuple(self._decode(reader, item_type) for item_type in args)
        if origin is dict:
            if not args:
                raise DecodeError("Maps need key and value types to decode")
            key_type, value_type = args
            count = self._read_length(reader, (key_type, value_type))
            result = {}
            for _ in range(count):
                k = self._decode(reader, key_type)
                result[k] = self._decode(reader, value_type)
            return result
        raise DecodeError(f"Unsupported generic type: {origin!r}")

    def _read_varint(self, reader: _Reader) -> int:
        order = self.byte_order
        marker = reader.read_byte()
        if marker <= SINGLE_BYTE_MAX:
            return marker
        if marker == U16_MARKER:
            return int.from_bytes(reader.read(2), order)
        if marker == U32_MARKER:
            return int.from_bytes(reader.read(4), order)
        if marker == U64_MARKER:
            return int.from_bytes(reader.read(8), order)
        if marker == U128_MARKER:
            return int.from_bytes(reader.read(16), order)
        raise DecodeError(f"Invalid varint marker {marker} at offset {reader.pos - 1}")

    def _read_length(self, reader: _Reader, item_types: tuple = ()) -> int:
        length = self._read_varint(reader)
        if item_types and all(_is_zero_width(tp) for tp in item_types):
            return length
        # Each encoded element takes at least one byte
        if length > reader.remaining():
            raise DecodeError(
                f"Length {length} exceeds the {reader.remaining()} bytes left in the input"
            )
        return length

    def _read_bytes(self, reader: _Reader) -> bytes:
        return reader.read(self._read_length(reader))


BIG_ENDIAN = Codec(byte_order="big")


def encode(value: Any, type_: Any = None) -> bytes:
    """Encode with the store's big-endian codec."""
    return BIG_ENDIAN.encode(value, type_)


def decode(data: bytes, type_: type[T] | Any) -> T:
    """Decode with the store's big-endian codec."""
    return BIG_ENDIAN.decode(data, type_)
