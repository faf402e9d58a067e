"""Wire primitives for the protobuf binary encoding.

Scalar type names used here ("int32", "sfixed64", "string", ...) match the
values of :class:`protoreflect.descriptor.Kind`, so descriptor kinds can be
passed straight to :func:`encode_scalar` and :func:`read_scalar`.
"""

import struct
from enum import IntEnum
from typing import Any


class WireError(RuntimeError):
    """Base exception for binary encoding errors."""


class EncodeError(WireError):
    """Raised when a value cannot be encoded."""


class DecodeError(WireError):
    """Raised when a buffer cannot be decoded."""


class WireType(IntEnum):
    """The 3-bit tag suffix selecting how a payload is framed."""

    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    FIXED32 = 5


MAX_FIELD_NUMBER = 536_870_911
RECURSION_LIMIT = 100

_UINT32_MASK = (1 << 32) - 1
_UINT64_MASK = (1 << 64) - 1
_MAX_VARINT_LENGTH = 10

# Fixed-width scalars and their little-endian struct formats
FIXED_FORMATS: dict[str, str] = {
    "fixed32": "<I",
    "sfixed32": "<i",
    "float": "<f",
    "fixed64": "<Q",
    "sfixed64": "<q",
    "double": "<d",
}

SCALAR_WIRE_TYPES: dict[str, WireType] = {
    "double": WireType.FIXED64,
    "float": WireType.FIXED32,
    "int32": WireType.VARINT,
    "int64": WireType.VARINT,
    "uint32": WireType.VARINT,
    "uint64": WireType.VARINT,
    "sint32": WireType.VARINT,
    "sint64": WireType.VARINT,
    "fixed32": WireType.FIXED32,
    "fixed64": WireType.FIXED64,
    "sfixed32": WireType.FIXED32,
    "sfixed64": WireType.FIXED64,
    "bool": WireType.VARINT,
    "enum": WireType.VARINT,
    "string": WireType.LENGTH_DELIMITED,
    "bytes": WireType.LENGTH_DELIMITED,
}

PACKABLE_TYPES = frozenset(
    name for name, wire_type in SCALAR_WIRE_TYPES.items() if wire_type != WireType.LENGTH_DELIMITED
)


def encode_varint(value: int) -> bytes:
    """Encode an integer as a base-128 varint.

    Negative values are sign-extended to 64 bits and always take ten bytes.
    """
    value &= _UINT64_MASK
    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            out.append(0x80 | bits)
        else:
            out.append(bits)
            return bytes(out)


def zigzag_encode(value: int) -> int:
    return (value << 1) ^ (value >> 63)


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def encode_tag(number: int, wire_type: WireType) -> bytes:
    return encode_varint((number << 3) | wire_type)


def _to_signed(value: int, bits: int) -> int:
    if value >> (bits - 1):
        return value - (1 << bits)
    return value


def encode_scalar(type_name: str, value: Any) -> bytes:
    """Encode a scalar payload, without its tag."""
    try:
        if type_name in FIXED_FORMATS:
            return struct.pack(FIXED_FORMATS[type_name], value)
        if type_name in ("int32", "int64", "uint32", "uint64", "enum"):
            return encode_varint(value)
        if type_name in ("sint32", "sint64"):
            return encode_varint(zigzag_encode(value))
        if type_name == "bool":
            return b"\x01" if value else b"\x00"
        if type_name == "string":
            data = value.encode("utf-8")
            return encode_varint(len(data)) + data
        if type_name == "bytes":
            return encode_varint(len(value)) + bytes(value)
    except (struct.error, OverflowError, UnicodeEncodeError, TypeError) as exc:
        raise EncodeError(f"Cannot encode {value!r} as {type_name}: {exc}") from exc

    raise EncodeError(f"Unknown scalar type {type_name}")


class Reader:
    """Cursor over a protobuf-encoded buffer.

    Every read checks the remaining length, so truncated or adversarial input
    surfaces as :class:`DecodeError` rather than an ``IndexError``.
    """

    __slots__ = ("data", "pos", "end")

    def __init__(self, data: bytes, pos: int = 0, end: int | None = None) -> None:
        self.data = data
        self.pos = pos
        self.end = len(data) if end is None else end

    def at_end(self) -> bool:
        return self.pos >= self.end

    def slice(self, start: int, end: int) -> bytes:
        return self.data[start:end]

    def read_varint(self) -> int:
        result = 0
        shift = 0
        for _ in range(_MAX_VARINT_LENGTH):
            if self.pos >= self.end:
                raise DecodeError("Unexpected end of input while reading varint")
            byte = self.data[self.pos]
            self.pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result & _UINT64_MASK
            shift += 7
        raise DecodeError("Invalid varint: more than ten bytes")

    def read_tag(self) -> tuple[int, WireType]:
        key = self.read_varint()
        number = key >> 3
        if number < 1 or number > MAX_FIELD_NUMBER:
            raise DecodeError(f"Invalid field number {number}")
        try:
            wire_type = WireType(key & 0x07)
        except ValueError:
            raise DecodeError(f"Invalid wire type {key & 0x07}") from None
        return number, wire_type

    def read_bytes(self, length: int) -> bytes:
        if length > self.end - self.pos:
            raise DecodeError("Unexpected end of input")
        start = self.pos
        self.pos += length
        return self.data[start : self.pos]

    def read_length_delimited(self) -> bytes:
        length = self.read_varint()
        if length > self.end - self.pos:
            raise DecodeError("Length-delimited field exceeds the remaining input")
        return self.read_bytes(length)

    def skip_field(self, number: int, wire_type: WireType, depth: int = 0) -> None:
        """Advance past a field's payload."""
        if wire_type == WireType.VARINT:
            self.read_varint()
        elif wire_type == WireType.FIXED64:
            self.read_bytes(8)
        elif wire_type == WireType.FIXED32:
            self.read_bytes(4)
        elif wire_type == WireType.LENGTH_DELIMITED:
            self.read_length_delimited()
        elif wire_type == WireType.START_GROUP:
            if depth >= RECURSION_LIMIT:
                raise DecodeError("Recursion limit exceeded while skipping group")
            while True:
                inner_number, inner_type = self.read_tag()
                if inner_type == WireType.END_GROUP:
                    if inner_number != number:
                        raise DecodeError(f"Mismatched end group tag for field {number}")
                    return
                self.skip_field(inner_number, inner_type, depth + 1)
        else:
            raise DecodeError(f"Unexpected end group tag for field {number}")


def read_scalar(reader: Reader, type_name: str) -> Any:
    """Read one scalar payload of the given type."""
    if type_name in FIXED_FORMATS:
        fmt = FIXED_FORMATS[type_name]
        return struct.unpack(fmt, reader.read_bytes(struct.calcsize(fmt)))[0]

    if type_name == "string":
        raw = reader.read_length_delimited()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("Invalid UTF-8 in string field") from exc

    if type_name == "bytes":
        return reader.read_length_delimited()

    value = reader.read_varint()
    if type_name in ("int32", "enum"):
        return _to_signed(value & _UINT32_MASK, 32)
    if type_name == "int64":
        return _to_signed(value, 64)
    if type_name == "uint32":
        return value & _UINT32_MASK
    if type_name == "uint64":
        return value
    if type_name == "sint32":
        return zigzag_decode(value & _UINT32_MASK)
    if type_name == "sint64":
        return zigzag_decode(value)
    if type_name == "bool":
        return value != 0

    raise DecodeError(f"Unknown scalar type {type_name}")
