"""Special-case JSON mappings for the ``google.protobuf`` well-known types."""

import math
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from ..descriptor.types import FieldDescriptor
from ..descriptor.well_known import WRAPPER_TYPES
from ..wire import DecodeError
from .binary import decode_message, encode_message
from .json_format import Deserializer, JsonError, Serializer, describe
from .message import DynamicMessage
from .value import Value

MAX_DURATION_SECONDS = 315_576_000_000
MIN_TIMESTAMP_SECONDS = -62_135_596_800  # 0001-01-01T00:00:00Z
MAX_TIMESTAMP_SECONDS = 253_402_300_799  # 9999-12-31T23:59:59Z
NANOS_PER_SECOND = 1_000_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DURATION_PATTERN = re.compile(r"(-)?([0-9]{1,12})(?:\.([0-9]{1,9}))?s")
_TIMESTAMP_PATTERN = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})[Tt]([0-9]{2}):([0-9]{2}):([0-9]{2})(?:\.([0-9]{1,9}))?([Zz]|[+-][0-9]{2}:[0-9]{2})"
)
_FIELD_MASK_PATH = re.compile(r"[a-z0-9_.]*")


def _field(message: DynamicMessage, name: str) -> FieldDescriptor:
    field = message.descriptor.get_field_by_name(name)
    if field is None:
        raise JsonError(f"{message.descriptor.full_name} has no field {name!r}")
    return field


def _get(message: DynamicMessage, name: str) -> Any:
    return message.get_field(_field(message, name)).data


def _format_nanos(nanos: int) -> str:
    """Render a fraction with 0, 3, 6 or 9 digits, whichever is shortest exact."""
    if nanos == 0:
        return ""
    if nanos % 1_000_000 == 0:
        return f".{nanos // 1_000_000:03d}"
    if nanos % 1_000 == 0:
        return f".{nanos // 1_000:06d}"
    return f".{nanos:09d}"


def _parse_nanos(fraction: str | None) -> int:
    return int(fraction.ljust(9, "0")) if fraction else 0


# Any


def any_to_json(serializer: Serializer, message: DynamicMessage) -> Any:
    type_url = _get(message, "type_url")
    payload = _get(message, "value")
    if not type_url:
        if payload:
            raise JsonError("google.protobuf.Any has a value but no type URL")
        return {}

    descriptor = message.descriptor.parent_pool.get_message_by_type_url(type_url)
    if descriptor is None:
        raise JsonError(f"Cannot resolve the Any type URL {type_url!r}")
    try:
        inner = decode_message(descriptor, payload)
    except DecodeError as exc:
        raise JsonError(f"Invalid payload for Any of type {descriptor.full_name}: {exc}") from exc

    rendered = serializer.message(inner)
    if descriptor.full_name in SERIALIZERS:
        return {"@type": type_url, "value": rendered}
    return {"@type": type_url, **rendered}


def any_from_json(deserializer: Deserializer, message: DynamicMessage, value: Any) -> None:
    if not isinstance(value, dict):
        raise JsonError(f"Expected an object for google.protobuf.Any, got {describe(value)}")
    if not value:
        return
    type_url = value.get("@type")
    if not isinstance(type_url, str):
        raise JsonError("google.protobuf.Any is missing its '@type' URL")

    descriptor = message.descriptor.parent_pool.get_message_by_type_url(type_url)
    if descriptor is None:
        raise JsonError(f"Cannot resolve the Any type URL {type_url!r}")

    if descriptor.full_name in DESERIALIZERS:
        if "value" not in value:
            raise JsonError(f"Any of type {descriptor.full_name} is missing its 'value'")
        extra = set(value) - {"@type", "value"}
        if extra and deserializer.options.deny_unknown_fields:
            raise JsonError(f"Unknown fields in Any: {', '.join(sorted(extra))}")
        inner = deserializer.message(descriptor, value["value"])
    else:
        inner = DynamicMessage(descriptor)
        deserializer.fields(inner, value, skip=("@type",))

    message.set_field(_field(message, "type_url"), Value.string(type_url))
    message.set_field(_field(message, "value"), Value.bytes_(encode_message(inner)))


# Duration


def _check_duration(seconds: int, nanos: int) -> None:
    if not -MAX_DURATION_SECONDS <= seconds <= MAX_DURATION_SECONDS:
        raise JsonError(f"Duration seconds {seconds} out of range")
    if not -NANOS_PER_SECOND < nanos < NANOS_PER_SECOND:
        raise JsonError(f"Duration nanos {nanos} out of range")
    if (seconds < 0 < nanos) or (nanos < 0 < seconds):
        raise JsonError("Duration seconds and nanos have different signs")


def duration_to_json(serializer: Serializer, message: DynamicMessage) -> str:
    seconds = _get(message, "seconds")
    nanos = _get(message, "nanos")
    _check_duration(seconds, nanos)
    sign = "-" if seconds < 0 or nanos < 0 else ""
    return f"{sign}{abs(seconds)}{_format_nanos(abs(nanos))}s"


def duration_from_json(deserializer: Deserializer, message: DynamicMessage, value: Any) -> None:
    if not isinstance(value, str):
        raise JsonError(f"Expected a string for google.protobuf.Duration, got {describe(value)}")
    match = _DURATION_PATTERN.fullmatch(value)
    if match is None:
        raise JsonError(f"Invalid duration {value!r}")
    negative, whole, fraction = match.groups()
    seconds = int(whole)
    nanos = _parse_nanos(fraction)
    if negative:
        seconds, nanos = -seconds, -nanos
    _check_duration(seconds, nanos)
    message.set_field(_field(message, "seconds"), Value.i64(seconds))
    message.set_field(_field(message, "nanos"), Value.i32(nanos))


# Timestamp


def timestamp_to_json(serializer: Serializer, message: DynamicMessage) -> str:
    seconds = _get(message, "seconds")
    nanos = _get(message, "nanos")
    if not MIN_TIMESTAMP_SECONDS <= seconds <= MAX_TIMESTAMP_SECONDS:
        raise JsonError(f"Timestamp seconds {seconds} out of range")
    if not 0 <= nanos < NANOS_PER_SECOND:
        raise JsonError(f"Timestamp nanos {nanos} out of range")
    moment = _EPOCH + timedelta(seconds=seconds)
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}{_format_nanos(nanos)}Z"
    )


def timestamp_from_json(deserializer: Deserializer, message: DynamicMessage, value: Any) -> None:
    if not isinstance(value, str):
        raise JsonError(f"Expected a string for google.protobuf.Timestamp, got {describe(value)}")
    match = _TIMESTAMP_PATTERN.fullmatch(value)
    if match is None:
        raise JsonError(f"Invalid timestamp {value!r}")
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    try:
        moment = datetime(int(year), int(month), int(day), int(hour), int(minute), int(second), tzinfo=timezone.utc)
    except ValueError as exc:
        raise JsonError(f"Invalid timestamp {value!r}: {exc}") from exc

    seconds = (moment - _EPOCH) // timedelta(seconds=1)
    if offset not in ("Z", "z"):
        offset_hours, offset_minutes = int(offset[1:3]), int(offset[4:6])
        shift = offset_hours * 3600 + offset_minutes * 60
        seconds -= shift if offset[0] == "+" else -shift
    if not MIN_TIMESTAMP_SECONDS <= seconds <= MAX_TIMESTAMP_SECONDS:
        raise JsonError(f"Timestamp {value!r} out of range")

    message.set_field(_field(message, "seconds"), Value.i64(seconds))
    message.set_field(_field(message, "nanos"), Value.i32(_parse_nanos(fraction)))


# Wrappers


def wrapper_to_json(serializer: Serializer, message: DynamicMessage) -> Any:
    field = _field(message, "value")
    return serializer.single(field, message.get_field(field))


def wrapper_from_json(deserializer: Deserializer, message: DynamicMessage, value: Any) -> None:
    field = _field(message, "value")
    message.set_field(field, deserializer.single(field, value))


# Struct, Value and ListValue


def struct_to_json(serializer: Serializer, message: DynamicMessage) -> dict[str, Any]:
    return {key.data: value_to_json(serializer, item.data) for key, item in _get(message, "fields").items()}


def struct_from_json(deserializer: Deserializer, message: DynamicMessage, value: Any) -> None:
    if not isinstance(value, dict):
        raise JsonError(f"Expected an object for google.protobuf.Struct, got {describe(value)}")
    field = _field(message, "fields")
    message.set_field(field, deserializer.field_value(field, value))


def value_to_json(serializer: Serializer, message: DynamicMessage) -> Any:
    for field, item in message.fields():
        if field.name == "null_value":
            return None
        if field.name == "number_value":
            if not math.isfinite(item.data):
                raise JsonError(f"google.protobuf.Value cannot hold {item.data}")
            if item.data.is_integer() and abs(item.data) < 2**53:
                return int(item.data)
            return item.data
        if field.name in ("string_value", "bool_value"):
            return item.data
        return serializer.message(item.data)
    raise JsonError("google.protobuf.Value has no kind set")


def value_from_json(deserializer: Deserializer, message: DynamicMessage, value: Any) -> None:
    if value is None:
        message.set_field(_field(message, "null_value"), Value.enum_number(0))
    elif isinstance(value, bool):
        message.set_field(_field(message, "bool_value"), Value.bool_(value))
    elif isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError as exc:
            raise JsonError(f"Number {value} is too large") from exc
        message.set_field(_field(message, "number_value"), Value.f64(number))
    elif isinstance(value, str):
        message.set_field(_field(message, "string_value"), Value.string(value))
    elif isinstance(value, dict):
        field = _field(message, "struct_value")
        message.set_field(field, deserializer.single(field, value))
    elif isinstance(value, list):
        field = _field(message, "list_value")
        message.set_field(field, deserializer.single(field, value))
    else:
        raise JsonError(f"Unsupported JSON value {value!r}")


def list_value_to_json(serializer: Serializer, message: DynamicMessage) -> list[Any]:
    return [value_to_json(serializer, item.data) for item in _get(message, "values")]


def list_value_from_json(deserializer: Deserializer, message: DynamicMessage, value: Any) -> None:
    if not isinstance(value, list):
        raise JsonError(f"Expected an array for google.protobuf.ListValue, got {describe(value)}")
    field = _field(message, "values")
    message.set_field(field, deserializer.field_value(field, value))


# FieldMask


def _camel_case(path: str) -> str:
    parts = path.split("_")
    return parts[0] + "".join(part[:1].upper() + part[1:] for part in parts[1:])


def _snake_case(path: str) -> str:
    return "".join(f"_{ch.lower()}" if ch.isupper() else ch for ch in path)


def field_mask_to_json(serializer: Serializer, message: DynamicMessage) -> str:
    paths = []
    for item in _get(message, "paths"):
        path = item.data
        if not _FIELD_MASK_PATH.fullmatch(path) or "__" in path or path.endswith("_") or "_." in path:
            raise JsonError(f"Field mask path {path!r} has no JSON form")
        paths.append(_camel_case(path))
    return ",".join(paths)


def field_mask_from_json(deserializer: Deserializer, message: DynamicMessage, value: Any) -> None:
    if not isinstance(value, str):
        raise JsonError(f"Expected a string for google.protobuf.FieldMask, got {describe(value)}")
    paths = []
    for path in value.split(",") if value else ():
        if "_" in path:
            raise JsonError(f"Field mask path {path!r} must be lowerCamelCase")
        paths.append(Value.string(_snake_case(path)))
    message.set_field(_field(message, "paths"), Value.list_(paths))


SERIALIZERS: dict[str, Callable[[Serializer, DynamicMessage], Any]] = {
    "google.protobuf.Any": any_to_json,
    "google.protobuf.Duration": duration_to_json,
    "google.protobuf.Timestamp": timestamp_to_json,
    "google.protobuf.Struct": struct_to_json,
    "google.protobuf.Value": value_to_json,
    "google.protobuf.ListValue": list_value_to_json,
    "google.protobuf.FieldMask": field_mask_to_json,
}

DESERIALIZERS: dict[str, Callable[[Deserializer, DynamicMessage, Any], None]] = {
    "google.protobuf.Any": any_from_json,
    "google.protobuf.Duration": duration_from_json,
    "google.protobuf.Timestamp": timestamp_from_json,
    "google.protobuf.Struct": struct_from_json,
    "google.protobuf.Value": value_from_json,
    "google.protobuf.ListValue": list_value_from_json,
    "google.protobuf.FieldMask": field_mask_from_json,
}

for _name in WRAPPER_TYPES:
    SERIALIZERS[_name] = wrapper_to_json
    DESERIALIZERS[_name] = wrapper_from_json
