"""The tagged value type held by dynamic message fields."""

import math
import struct
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from ..descriptor.types import FieldDescriptor, Kind

if TYPE_CHECKING:
    from .message import DynamicMessage


class ValueType(StrEnum):
    BOOL = "bool"
    I32 = "i32"
    I64 = "i64"
    U32 = "u32"
    U64 = "u64"
    F32 = "f32"
    F64 = "f64"
    STRING = "string"
    BYTES = "bytes"
    ENUM = "enum"
    MESSAGE = "message"
    LIST = "list"
    MAP = "map"


KIND_VALUE_TYPES: dict[Kind, ValueType] = {
    Kind.DOUBLE: ValueType.F64,
    Kind.FLOAT: ValueType.F32,
    Kind.INT32: ValueType.I32,
    Kind.SINT32: ValueType.I32,
    Kind.SFIXED32: ValueType.I32,
    Kind.INT64: ValueType.I64,
    Kind.SINT64: ValueType.I64,
    Kind.SFIXED64: ValueType.I64,
    Kind.UINT32: ValueType.U32,
    Kind.FIXED32: ValueType.U32,
    Kind.UINT64: ValueType.U64,
    Kind.FIXED64: ValueType.U64,
    Kind.BOOL: ValueType.BOOL,
    Kind.STRING: ValueType.STRING,
    Kind.BYTES: ValueType.BYTES,
    Kind.ENUM: ValueType.ENUM,
    Kind.MESSAGE: ValueType.MESSAGE,
}

INT_RANGES: dict[ValueType, tuple[int, int]] = {
    ValueType.I32: (-(2**31), 2**31 - 1),
    ValueType.I64: (-(2**63), 2**63 - 1),
    ValueType.U32: (0, 2**32 - 1),
    ValueType.U64: (0, 2**64 - 1),
    ValueType.ENUM: (-(2**31), 2**31 - 1),
}

_SCALAR_TYPES = frozenset(ValueType) - {ValueType.MESSAGE, ValueType.LIST, ValueType.MAP}


def _check_int(value_type: ValueType, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Expected an integer for {value_type}, got {type(value).__name__}")
    low, high = INT_RANGES[value_type]
    if not low <= value <= high:
        raise ValueError(f"{value} is out of range for {value_type}")
    return value


def round_f32(value: float) -> float:
    """Round a Python float to the nearest single-precision value."""
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError as exc:
        raise ValueError(f"{value} is out of range for f32") from exc


class Value:
    """A single field value tagged with its type.

    Build values with the named constructors (``Value.i32(5)``,
    ``Value.string("hi")``, ...), which check ranges and Python types.
    Scalar values are hashable so they can be used as map keys.
    """

    __slots__ = ("type", "data")

    def __init__(self, type: ValueType, data: Any) -> None:
        self.type = type
        self.data = data

    @classmethod
    def bool_(cls, value: bool) -> "Value":
        if not isinstance(value, bool):
            raise TypeError(f"Expected a bool, got {type(value).__name__}")
        return cls(ValueType.BOOL, value)

    @classmethod
    def i32(cls, value: int) -> "Value":
        return cls(ValueType.I32, _check_int(ValueType.I32, value))

    @classmethod
    def i64(cls, value: int) -> "Value":
        return cls(ValueType.I64, _check_int(ValueType.I64, value))

    @classmethod
    def u32(cls, value: int) -> "Value":
        return cls(ValueType.U32, _check_int(ValueType.U32, value))

    @classmethod
    def u64(cls, value: int) -> "Value":
        return cls(ValueType.U64, _check_int(ValueType.U64, value))

    @classmethod
    def f32(cls, value: float) -> "Value":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Expected a float, got {type(value).__name__}")
        return cls(ValueType.F32, round_f32(float(value)))

    @classmethod
    def f64(cls, value: float) -> "Value":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Expected a float, got {type(value).__name__}")
        return cls(ValueType.F64, float(value))

    @classmethod
    def string(cls, value: str) -> "Value":
        if not isinstance(value, str):
            raise TypeError(f"Expected a str, got {type(value).__name__}")
        return cls(ValueType.STRING, value)

    @classmethod
    def bytes_(cls, value: bytes | bytearray | memoryview) -> "Value":
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise TypeError(f"Expected bytes, got {type(value).__name__}")
        return cls(ValueType.BYTES, bytes(value))

    @classmethod
    def enum_number(cls, value: int) -> "Value":
        return cls(ValueType.ENUM, _check_int(ValueType.ENUM, value))

    @classmethod
    def message(cls, value: "DynamicMessage") -> "Value":
        from .message import DynamicMessage

        if not isinstance(value, DynamicMessage):
            raise TypeError(f"Expected a DynamicMessage, got {type(value).__name__}")
        return cls(ValueType.MESSAGE, value)

    @classmethod
    def list_(cls, values: Iterable["Value"] = ()) -> "Value":
        items = list(values)
        for item in items:
            if not isinstance(item, Value):
                raise TypeError(f"List items must be Value, got {type(item).__name__}")
        return cls(ValueType.LIST, items)

    @classmethod
    def map_(cls, entries: Mapping["Value", "Value"] | Iterable[tuple["Value", "Value"]] = ()) -> "Value":
        pairs = entries.items() if isinstance(entries, Mapping) else entries
        result: dict[Value, Value] = {}
        for key, value in pairs:
            if not isinstance(key, Value) or not isinstance(value, Value):
                raise TypeError("Map keys and values must be Value")
            if key.type not in (ValueType.BOOL, ValueType.STRING) and key.type not in INT_RANGES:
                raise TypeError(f"{key.type} values cannot be map keys")
            result[key] = value
        return cls(ValueType.MAP, result)

    @classmethod
    def from_kind(cls, kind: Kind, data: Any) -> "Value":
        """Wrap a plain Python value as the value type of a field kind."""
        value_type = KIND_VALUE_TYPES[kind]
        if value_type == ValueType.BOOL:
            return cls.bool_(data)
        if value_type in INT_RANGES:
            return cls(value_type, _check_int(value_type, data))
        if value_type == ValueType.F32:
            return cls.f32(data)
        if value_type == ValueType.F64:
            return cls.f64(data)
        if value_type == ValueType.STRING:
            return cls.string(data)
        if value_type == ValueType.BYTES:
            return cls.bytes_(data)
        return cls.message(data)

    @classmethod
    def default_for(cls, field: FieldDescriptor) -> "Value":
        """The value an unset field reads as."""
        if field.is_map:
            return cls.map_()
        if field.is_list:
            return cls.list_()
        if field.kind == Kind.MESSAGE:
            from .message import DynamicMessage

            assert field.message_type is not None
            return cls.message(DynamicMessage(field.message_type))
        return cls.from_kind(field.kind, field.default_value)

    def is_valid_for_field(self, field: FieldDescriptor) -> bool:
        """Whether this value may be stored in the given field."""
        if field.is_map:
            if self.type != ValueType.MAP:
                return False
            assert field.message_type is not None
            key_field = field.message_type.map_entry_key_field
            value_field = field.message_type.map_entry_value_field
            return all(
                key._is_valid_single(key_field) and value._is_valid_single(value_field)
                for key, value in self.data.items()
            )
        if field.is_list:
            return self.type == ValueType.LIST and all(item._is_valid_single(field) for item in self.data)
        return self._is_valid_single(field)

    def _is_valid_single(self, field: FieldDescriptor) -> bool:
        if self.type != KIND_VALUE_TYPES[field.kind]:
            return False
        if self.type == ValueType.MESSAGE:
            return self.data.descriptor is field.message_type
        return True

    @property
    def is_scalar(self) -> bool:
        return self.type in _SCALAR_TYPES

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self.type == other.type and self.data == other.data

    def __hash__(self) -> int:
        if self.type not in _SCALAR_TYPES:
            raise TypeError(f"Unhashable value type: {self.type}")
        return hash((self.type, self.data))

    def __repr__(self) -> str:
        constructor = {
            ValueType.BOOL: "bool_",
            ValueType.BYTES: "bytes_",
            ValueType.ENUM: "enum_number",
            ValueType.LIST: "list_",
            ValueType.MAP: "map_",
        }.get(self.type, self.type.value)
        return f"Value.{constructor}({self.data!r})"

    def _get(self, *types: ValueType) -> Any:
        return self.data if self.type in types else None

    def as_bool(self) -> bool | None:
        return self._get(ValueType.BOOL)

    def as_i32(self) -> int | None:
        return self._get(ValueType.I32)

    def as_i64(self) -> int | None:
        return self._get(ValueType.I64)

    def as_u32(self) -> int | None:
        return self._get(ValueType.U32)

    def as_u64(self) -> int | None:
        return self._get(ValueType.U64)

    def as_f32(self) -> float | None:
        return self._get(ValueType.F32)

    def as_f64(self) -> float | None:
        return self._get(ValueType.F64)

    def as_str(self) -> str | None:
        return self._get(ValueType.STRING)

    def as_bytes(self) -> bytes | None:
        return self._get(ValueType.BYTES)

    def as_enum_number(self) -> int | None:
        return self._get(ValueType.ENUM)

    def as_message(self) -> "DynamicMessage | None":
        return self._get(ValueType.MESSAGE)

    def as_list(self) -> list["Value"] | None:
        return self._get(ValueType.LIST)

    def as_map(self) -> dict["Value", "Value"] | None:
        return self._get(ValueType.MAP)
