"""Canonical JSON mapping for dynamic messages.

Messages convert to and from plain Python objects (dicts, lists, str, int,
float, bool, None) that :mod:`json` can dump. Well-known types use their
special-case mappings from :mod:`protoreflect.dynamic.well_known`.
"""

import base64
import binascii
import json
import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from ..descriptor.types import (
    EnumDescriptor,
    FieldDescriptor,
    Kind,
    MessageDescriptor,
    OneofDescriptor,
)
from .message import DynamicMessage
from .value import INT_RANGES, KIND_VALUE_TYPES, Value, ValueType, round_f32

NULL_VALUE = "google.protobuf.NullValue"
VALUE = "google.protobuf.Value"

_FLOAT_PATTERN = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


class JsonError(RuntimeError):
    """Raised when a message cannot be converted to or from JSON."""


@dataclass(frozen=True, slots=True)
class SerializeOptions:
    """Options for rendering messages as JSON.

    Attributes:
        emit_defaults: Also render fields without presence that hold their
            default value, and empty lists and maps.
        use_enum_numbers: Render enum values as numbers instead of names.
        use_proto_field_name: Use the declared field names instead of the
            lowerCamelCase JSON names.
        stringify_64_bit_integers: Render 64-bit integers as JSON strings.
    """

    emit_defaults: bool = False
    use_enum_numbers: bool = False
    use_proto_field_name: bool = False
    stringify_64_bit_integers: bool = True


@dataclass(frozen=True, slots=True)
class DeserializeOptions:
    """Options for parsing messages from JSON.

    Attributes:
        deny_unknown_fields: Reject object keys that name no field.
    """

    deny_unknown_fields: bool = True


def to_json(message: DynamicMessage, options: SerializeOptions | None = None) -> Any:
    return Serializer(options or SerializeOptions()).message(message)


def to_json_string(message: DynamicMessage, options: SerializeOptions | None = None, *, indent: int | None = None) -> str:
    obj = to_json(message, options)
    if indent is None:
        return json.dumps(obj, allow_nan=False, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(obj, allow_nan=False, ensure_ascii=False, indent=indent)


def from_json(
    descriptor: MessageDescriptor,
    data: str | bytes | Any,
    options: DeserializeOptions | None = None,
) -> DynamicMessage:
    """Parse a message from JSON text, or from already-loaded JSON objects."""
    if isinstance(data, (str, bytes, bytearray)):
        data = loads(data)
    try:
        return Deserializer(options or DeserializeOptions()).message(descriptor, data)
    except RecursionError as exc:
        raise JsonError("Recursion limit exceeded") from exc


def loads(text: str | bytes | bytearray) -> Any:
    """Load JSON text, rejecting duplicate object keys."""
    try:
        return json.loads(text, object_pairs_hook=_reject_duplicate_keys)
    except json.JSONDecodeError as exc:
        raise JsonError(f"Invalid JSON: {exc}") from exc
    except (RecursionError, UnicodeDecodeError, ValueError) as exc:
        raise JsonError(f"Invalid JSON: {exc}") from exc


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise JsonError(f"Duplicate key {key!r} in JSON object")
        result[key] = value
    return result


def describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "a boolean"
    if isinstance(value, (int, float)):
        return "a number"
    if isinstance(value, str):
        return "a string"
    if isinstance(value, list):
        return "an array"
    if isinstance(value, dict):
        return "an object"
    return type(value).__name__


def format_float(value: float, value_type: ValueType) -> float | str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value_type == ValueType.F32:
        # Shortest decimal that reads back as the same single-precision value
        for precision in range(1, 10):
            candidate = float(f"{value:.{precision}g}")
            if round_f32(candidate) == value:
                return candidate
    return value


class Serializer:
    def __init__(self, options: SerializeOptions) -> None:
        from .well_known import SERIALIZERS

        self.options = options
        self._special = SERIALIZERS

    def message(self, message: DynamicMessage) -> Any:
        special = self._special.get(message.descriptor.full_name)
        if special is not None:
            return special(self, message)
        return self.fields(message)

    def fields(self, message: DynamicMessage) -> dict[str, Any]:
        entries: list[tuple[FieldDescriptor, Value]] = []
        for field in message.descriptor.fields:
            if message.has_field(field):
                entries.append((field, message.get_field(field)))
            elif self.options.emit_defaults and not field.supports_presence:
                entries.append((field, message.get_field(field)))
        entries.extend(message.extensions())
        entries.sort(key=lambda entry: entry[0].number)

        out: dict[str, Any] = {}
        for field, value in entries:
            if field.is_extension or not self.options.use_proto_field_name:
                name = field.json_name
            else:
                name = field.name
            out[name] = self.field_value(field, value)
        return out

    def field_value(self, field: FieldDescriptor, value: Value) -> Any:
        if field.is_map:
            assert field.message_type is not None
            value_field = field.message_type.map_entry_value_field
            return {self.map_key(key): self.single(value_field, item) for key, item in value.data.items()}
        if field.is_list:
            return [self.single(field, item) for item in value.data]
        return self.single(field, value)

    @staticmethod
    def map_key(key: Value) -> str:
        if key.type == ValueType.BOOL:
            return "true" if key.data else "false"
        return str(key.data)

    def single(self, field: FieldDescriptor, value: Value) -> Any:
        if value.type == ValueType.MESSAGE:
            return self.message(value.data)
        if value.type == ValueType.ENUM:
            assert field.enum_type is not None
            return self.enum(field.enum_type, value.data)
        return self.scalar(value)

    def enum(self, enum_type: EnumDescriptor, number: int) -> Any:
        if enum_type.full_name == NULL_VALUE:
            return None
        if self.options.use_enum_numbers:
            return number
        enum_value = enum_type.get_value(number)
        # Numbers without a name are kept and rendered as numbers
        return enum_value.name if enum_value is not None else number

    def scalar(self, value: Value) -> Any:
        if value.type in (ValueType.I64, ValueType.U64):
            return str(value.data) if self.options.stringify_64_bit_integers else value.data
        if value.type in (ValueType.F32, ValueType.F64):
            return format_float(value.data, value.type)
        if value.type == ValueType.BYTES:
            return base64.b64encode(value.data).decode("ascii")
        return value.data


class Deserializer:
    def __init__(self, options: DeserializeOptions) -> None:
        from .well_known import DESERIALIZERS

        self.options = options
        self._special = DESERIALIZERS

    def message(self, descriptor: MessageDescriptor, value: Any) -> DynamicMessage:
        message = DynamicMessage(descriptor)
        special = self._special.get(descriptor.full_name)
        if special is not None:
            special(self, message, value)
            return message
        if not isinstance(value, dict):
            raise JsonError(f"Expected an object for {descriptor.full_name}, got {describe(value)}")
        self.fields(message, value)
        return message

    def fields(self, message: DynamicMessage, obj: dict[str, Any], skip: tuple[str, ...] = ()) -> None:
        descriptor = message.descriptor
        seen: dict[FieldDescriptor, str] = {}
        oneofs: dict[OneofDescriptor, str] = {}

        for key, item in obj.items():
            if key in skip:
                continue
            field: FieldDescriptor | None = descriptor.get_field_by_json_name(key) or descriptor.get_field_by_name(key)
            if field is None and key.startswith("[") and key.endswith("]"):
                field = descriptor.get_extension_by_json_name(key)
            if field is None:
                if self.options.deny_unknown_fields:
                    raise JsonError(f"Unknown field {key!r} in {descriptor.full_name}")
                continue

            if field in seen:
                raise JsonError(f"Field {field.full_name} is given twice, as {seen[field]!r} and {key!r}")
            seen[field] = key

            if item is None and not _accepts_null(field):
                continue

            oneof = field.containing_oneof
            if oneof is not None and not oneof.is_synthetic:
                if oneof in oneofs:
                    raise JsonError(f"Fields {oneofs[oneof]!r} and {key!r} of oneof {oneof.full_name} are both set")
                oneofs[oneof] = key

            try:
                value = self.field_value(field, item)
            except JsonError as exc:
                raise JsonError(f"{field.full_name}: {exc}") from exc
            message.set_field(field, value)

    def field_value(self, field: FieldDescriptor, item: Any) -> Value:
        if field.is_map:
            if not isinstance(item, dict):
                raise JsonError(f"Expected an object for map field, got {describe(item)}")
            assert field.message_type is not None
            key_field = field.message_type.map_entry_key_field
            value_field = field.message_type.map_entry_value_field
            return Value.map_({self.map_key(key_field, key): self.single(value_field, entry) for key, entry in item.items()})
        if field.is_list:
            if not isinstance(item, list):
                raise JsonError(f"Expected an array for repeated field, got {describe(item)}")
            return Value.list_([self.single(field, entry) for entry in item])
        return self.single(field, item)

    def map_key(self, key_field: FieldDescriptor, key: str) -> Value:
        if key_field.kind == Kind.BOOL:
            if key not in ("true", "false"):
                raise JsonError(f"Invalid bool map key {key!r}")
            return Value.bool_(key == "true")
        if key_field.kind == Kind.STRING:
            return Value.string(key)
        return self.integer(key_field.kind, key)

    def single(self, field: FieldDescriptor, item: Any) -> Value:
        if field.kind == Kind.MESSAGE:
            assert field.message_type is not None
            return Value.message(self.message(field.message_type, item))
        if field.kind == Kind.ENUM:
            assert field.enum_type is not None
            return Value.enum_number(self.enum(field.enum_type, item))
        return self.scalar(field.kind, item)

    def enum(self, enum_type: EnumDescriptor, item: Any) -> int:
        if item is None and enum_type.full_name == NULL_VALUE:
            return 0
        if isinstance(item, str):
            enum_value = enum_type.get_value_by_name(item)
            if enum_value is None:
                raise JsonError(f"Unknown value {item!r} for enum {enum_type.full_name}")
            return enum_value.number
        if isinstance(item, int) and not isinstance(item, bool):
            low, high = INT_RANGES[ValueType.ENUM]
            if not low <= item <= high:
                raise JsonError(f"Enum number {item} is out of range")
            return item
        raise JsonError(f"Expected a string or integer for enum {enum_type.full_name}, got {describe(item)}")

    def scalar(self, kind: Kind, item: Any) -> Value:
        if kind == Kind.BOOL:
            if not isinstance(item, bool):
                raise JsonError(f"Expected a boolean, got {describe(item)}")
            return Value.bool_(item)
        if kind == Kind.STRING:
            if not isinstance(item, str):
                raise JsonError(f"Expected a string, got {describe(item)}")
            return Value.string(item)
        if kind == Kind.BYTES:
            if not isinstance(item, str):
                raise JsonError(f"Expected a base64 string, got {describe(item)}")
            return Value.bytes_(decode_base64(item))
        if kind in (Kind.FLOAT, Kind.DOUBLE):
            return self.floating(kind, item)
        return self.integer(kind, item)

    @staticmethod
    def integer(kind: Kind, item: Any) -> Value:
        value_type = KIND_VALUE_TYPES[kind]
        if isinstance(item, bool):
            raise JsonError("Expected an integer, got a boolean")
        if isinstance(item, int):
            number = item
        elif isinstance(item, float):
            if not item.is_integer():
                raise JsonError(f"Expected an integer, got {item}")
            number = int(item)
        elif isinstance(item, str):
            try:
                parsed = Decimal(item)
            except InvalidOperation as exc:
                raise JsonError(f"Invalid integer {item!r}") from exc
            if not parsed.is_finite():
                raise JsonError(f"Invalid integer {item!r}")
            # 64-bit values never need more than 20 digits
            if not parsed.is_zero() and parsed.adjusted() > 20:
                raise JsonError(f"Integer {item!r} is out of range for {kind}")
            if parsed != parsed.to_integral_value():
                raise JsonError(f"Invalid integer {item!r}")
            number = 0 if parsed.is_zero() else int(parsed)
        else:
            raise JsonError(f"Expected an integer, got {describe(item)}")

        low, high = INT_RANGES[value_type]
        if not low <= number <= high:
            raise JsonError(f"Integer {number} is out of range for {kind}")
        return Value(value_type, number)

    @staticmethod
    def floating(kind: Kind, item: Any) -> Value:
        if isinstance(item, bool):
            raise JsonError("Expected a number, got a boolean")
        if isinstance(item, (int, float)):
            try:
                number = float(item)
            except OverflowError as exc:
                raise JsonError(f"Number {item} is out of range") from exc
        elif isinstance(item, str):
            if item == "NaN":
                number = math.nan
            elif item == "Infinity":
                number = math.inf
            elif item == "-Infinity":
                number = -math.inf
            elif _FLOAT_PATTERN.fullmatch(item):
                number = float(item)
            else:
                raise JsonError(f"Invalid number {item!r}")
        else:
            raise JsonError(f"Expected a number, got {describe(item)}")

        if kind == Kind.DOUBLE:
            return Value.f64(number)
        try:
            return Value.f32(number)
        except ValueError as exc:
            raise JsonError(str(exc)) from exc


def decode_base64(text: str) -> bytes:
    """Decode standard or URL-safe base64, with or without padding."""
    normalized = text.replace("-", "+").replace("_", "/")
    normalized += "=" * (-len(normalized) % 4)
    try:
        return base64.b64decode(normalized, validate=True)
    except binascii.Error as exc:
        raise JsonError(f"Invalid base64 {text!r}") from exc


def _accepts_null(field: FieldDescriptor) -> bool:
    if field.is_list:
        return False
    if field.kind == Kind.MESSAGE:
        return field.message_type is not None and field.message_type.full_name == VALUE
    if field.kind == Kind.ENUM:
        return field.enum_type is not None and field.enum_type.full_name == NULL_VALUE
    return False
