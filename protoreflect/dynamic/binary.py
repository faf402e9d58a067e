"""Binary wire codec for dynamic messages."""

import logging

from ..descriptor.types import FieldDescriptor, Kind, MessageDescriptor
from ..wire import (
    RECURSION_LIMIT,
    DecodeError,
    EncodeError,
    Reader,
    WireType,
    encode_scalar,
    encode_tag,
    encode_varint,
    read_scalar,
)
from .message import DynamicMessage, UnknownField
from .value import KIND_VALUE_TYPES, Value

logger = logging.getLogger(__name__)


def encode_message(message: DynamicMessage) -> bytes:
    """Encode a message; known fields and extensions in number order, then unknown fields."""
    buf = bytearray()
    _write_message(buf, message)
    return bytes(buf)


def encode_length_delimited(message: DynamicMessage) -> bytes:
    data = encode_message(message)
    return encode_varint(len(data)) + data


def decode_message(descriptor: MessageDescriptor, data: bytes) -> DynamicMessage:
    message = DynamicMessage(descriptor)
    merge_message(message, data)
    return message


def decode_length_delimited(descriptor: MessageDescriptor, data: bytes) -> tuple[DynamicMessage, int]:
    """Decode a varint-length-prefixed message from the start of ``data``.

    Returns:
        The message and the number of bytes consumed, prefix included.
    """
    reader = Reader(bytes(data))
    payload = reader.read_length_delimited()
    return decode_message(descriptor, payload), reader.pos


def merge_message(message: DynamicMessage, data: bytes) -> None:
    """Decode ``data`` into an existing message.

    Singular scalars are overwritten, lists are appended to and singular
    message fields are merged recursively.
    """
    _read_message(Reader(bytes(data)), message, 0)


def _write_message(buf: bytearray, message: DynamicMessage) -> None:
    for oneof in message.descriptor.oneofs:
        set_members = [field.name for field in oneof.fields if message.has_field(field)]
        if len(set_members) > 1:
            raise EncodeError(f"Oneof {oneof.full_name} has more than one field set: {', '.join(set_members)}")

    for field, value in message.set_fields_and_extensions():
        if not value.is_valid_for_field(field):
            raise EncodeError(f"Value {value!r} does not match field {field.full_name}")
        _write_field(buf, field, value)

    for unknown in message.unknown_fields():
        buf.extend(unknown.data)


def _write_field(buf: bytearray, field: FieldDescriptor, value: Value) -> None:
    if field.is_map:
        assert field.message_type is not None
        key_field = field.message_type.map_entry_key_field
        value_field = field.message_type.map_entry_value_field
        for key, item in value.data.items():
            entry = bytearray()
            _write_single(entry, key_field, key)
            _write_single(entry, value_field, item)
            buf.extend(encode_tag(field.number, WireType.LENGTH_DELIMITED))
            buf.extend(encode_varint(len(entry)))
            buf.extend(entry)
    elif field.is_list:
        if field.is_packed:
            payload = b"".join(encode_scalar(field.kind.value, item.data) for item in value.data)
            buf.extend(encode_tag(field.number, WireType.LENGTH_DELIMITED))
            buf.extend(encode_varint(len(payload)))
            buf.extend(payload)
        else:
            for item in value.data:
                _write_single(buf, field, item)
    else:
        _write_single(buf, field, value)


def _write_single(buf: bytearray, field: FieldDescriptor, value: Value) -> None:
    if field.kind != Kind.MESSAGE:
        buf.extend(encode_tag(field.number, field.kind.wire_type))
        buf.extend(encode_scalar(field.kind.value, value.data))
    elif field.is_group:
        buf.extend(encode_tag(field.number, WireType.START_GROUP))
        _write_message(buf, value.data)
        buf.extend(encode_tag(field.number, WireType.END_GROUP))
    else:
        payload = encode_message(value.data)
        buf.extend(encode_tag(field.number, WireType.LENGTH_DELIMITED))
        buf.extend(encode_varint(len(payload)))
        buf.extend(payload)


def _expect(field: FieldDescriptor, actual: WireType, expected: WireType) -> None:
    if actual != expected:
        raise DecodeError(f"Invalid wire type {actual.name} for field {field.full_name}, expected {expected.name}")


def _read_message(reader: Reader, message: DynamicMessage, depth: int, group_number: int | None = None) -> None:
    if depth > RECURSION_LIMIT:
        raise DecodeError("Recursion limit exceeded")

    descriptor = message.descriptor
    while not reader.at_end():
        start = reader.pos
        number, wire_type = reader.read_tag()
        if wire_type == WireType.END_GROUP:
            if number != group_number:
                raise DecodeError(f"Unexpected end group tag for field {number}")
            return

        field: FieldDescriptor | None = descriptor.get_field(number)
        if field is None:
            field = descriptor.get_extension(number)
        if field is None:
            reader.skip_field(number, wire_type, depth)
            message.add_unknown_field(UnknownField(number, wire_type, reader.slice(start, reader.pos)))
            logger.debug("Retaining unknown field %d (%s) of %s", number, wire_type.name, descriptor.full_name)
            continue

        _read_field(reader, message, field, wire_type, depth)

    if group_number is not None:
        raise DecodeError(f"Missing end group tag for field {group_number}")


def _read_field(reader: Reader, message: DynamicMessage, field: FieldDescriptor, wire_type: WireType, depth: int) -> None:
    if field.is_map:
        _expect(field, wire_type, WireType.LENGTH_DELIMITED)
        assert field.message_type is not None
        key, value = _read_map_entry(Reader(reader.read_length_delimited()), field.message_type, depth + 1)
        # Later entries replace earlier ones with the same key
        message.get_field_mut(field).data[key] = value
    elif field.is_list:
        items = message.get_field_mut(field).data
        if wire_type == WireType.LENGTH_DELIMITED and field.kind.is_packable:
            packed = Reader(reader.read_length_delimited())
            while not packed.at_end():
                items.append(_read_scalar(packed, field, field.kind.wire_type))
        elif field.kind == Kind.MESSAGE:
            assert field.message_type is not None
            item = DynamicMessage(field.message_type)
            _read_submessage(reader, item, field, wire_type, depth)
            items.append(Value.message(item))
        else:
            items.append(_read_scalar(reader, field, wire_type))
    elif field.kind == Kind.MESSAGE:
        # Repeated occurrences of a singular message are merged
        _read_submessage(reader, message.get_field_mut(field).data, field, wire_type, depth)
    else:
        message.set_field(field, _read_scalar(reader, field, wire_type))


def _read_scalar(reader: Reader, field: FieldDescriptor, wire_type: WireType) -> Value:
    _expect(field, wire_type, field.kind.wire_type)
    return Value(KIND_VALUE_TYPES[field.kind], read_scalar(reader, field.kind.value))


def _read_submessage(reader: Reader, target: DynamicMessage, field: FieldDescriptor, wire_type: WireType, depth: int) -> None:
    if field.is_group:
        _expect(field, wire_type, WireType.START_GROUP)
        _read_message(reader, target, depth + 1, group_number=field.number)
    else:
        _expect(field, wire_type, WireType.LENGTH_DELIMITED)
        _read_message(Reader(reader.read_length_delimited()), target, depth + 1)


def _read_map_entry(reader: Reader, entry: MessageDescriptor, depth: int) -> tuple[Value, Value]:
    key_field = entry.map_entry_key_field
    value_field = entry.map_entry_value_field
    key: Value | None = None
    value: Value | None = None

    while not reader.at_end():
        number, wire_type = reader.read_tag()
        if number == 1:
            key = _read_scalar(reader, key_field, wire_type)
        elif number == 2 and value_field.kind == Kind.MESSAGE:
            if value is None:
                assert value_field.message_type is not None
                value = Value.message(DynamicMessage(value_field.message_type))
            _read_submessage(reader, value.data, value_field, wire_type, depth)
        elif number == 2:
            value = _read_scalar(reader, value_field, wire_type)
        else:
            reader.skip_field(number, wire_type, depth)

    if key is None:
        key = Value.default_for(key_field)
    if value is None:
        value = Value.default_for(value_field)
    return key, value
