"""Raw descriptor records for the schema-description messages.

These dataclasses mirror the parts of ``google/protobuf/descriptor.proto``
that a descriptor pool needs. Every field declares its wire metadata with
:func:`proto_field`, and :class:`ProtoRecord` packs and unpacks any record
generically from that metadata. A pool cannot decode its own schema format
before it exists, so schema bytes are read through these records.

Example:
    @dataclass
    class ReservedRange(ProtoRecord):
        start: int | None = proto_field(1, "int32")
        end: int | None = proto_field(2, "int32")
"""

from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any, Self

from dataclasses_json import DataClassJsonMixin

from ..wire import (
    PACKABLE_TYPES,
    RECURSION_LIMIT,
    SCALAR_WIRE_TYPES,
    DecodeError,
    Reader,
    WireType,
    encode_scalar,
    encode_tag,
    encode_varint,
    read_scalar,
)


class FieldType(IntEnum):
    """``FieldDescriptorProto.Type``."""

    DOUBLE = 1
    FLOAT = 2
    INT64 = 3
    UINT64 = 4
    INT32 = 5
    FIXED64 = 6
    FIXED32 = 7
    BOOL = 8
    STRING = 9
    GROUP = 10
    MESSAGE = 11
    BYTES = 12
    UINT32 = 13
    ENUM = 14
    SFIXED32 = 15
    SFIXED64 = 16
    SINT32 = 17
    SINT64 = 18


class FieldLabel(IntEnum):
    """``FieldDescriptorProto.Label``."""

    OPTIONAL = 1
    REQUIRED = 2
    REPEATED = 3


@dataclass(frozen=True)
class ProtoFieldInfo:
    """Wire metadata for a record field."""

    number: int
    type: str  # scalar type name, or the name of another ProtoRecord class
    repeated: bool = False


def proto_field(number: int, type: str, *, repeated: bool = False) -> Any:
    """Define a record field with wire metadata attached.

    Args:
        number: The protobuf field number.
        type: A scalar type name (e.g. "int32", "string") or the class name
            of a nested record.
        repeated: Whether the field holds a list.

    Returns:
        A dataclass field; singular fields default to None (unset), repeated
        fields to an empty list.
    """
    metadata = {"proto": ProtoFieldInfo(number, type, repeated)}
    if repeated:
        return field(default_factory=list, metadata=metadata)
    return field(default=None, metadata=metadata)


_RECORD_TYPES: dict[str, type["ProtoRecord"]] = {}
_FIELD_TABLES: dict[type, dict[int, tuple[str, ProtoFieldInfo]]] = {}


def _field_table(cls: type) -> dict[int, tuple[str, ProtoFieldInfo]]:
    table = _FIELD_TABLES.get(cls)
    if table is None:
        entries = [(f.metadata["proto"], f.name) for f in fields(cls) if "proto" in f.metadata]
        entries.sort(key=lambda entry: entry[0].number)
        table = {info.number: (name, info) for info, name in entries}
        _FIELD_TABLES[cls] = table
    return table


class ProtoRecord(DataClassJsonMixin):
    """Base class for descriptor records.

    Subclasses are registered by class name so that nested record types can
    be referenced by name before they are defined.
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        _RECORD_TYPES[cls.__name__] = cls

    def pack(self) -> bytes:
        """Pack this record to protobuf binary."""
        buf = bytearray()
        for name, info in _field_table(type(self)).values():
            value = getattr(self, name)
            if info.repeated:
                for item in value:
                    _pack_one(buf, info, item)
            elif value is not None:
                _pack_one(buf, info, value)
        return bytes(buf)

    @classmethod
    def unpack(cls, data: bytes | bytearray | memoryview) -> Self:
        """Unpack a record from protobuf binary.

        Unknown fields are skipped. Raises DecodeError on malformed input.
        """
        return cls._read(Reader(bytes(data)), 0)

    @classmethod
    def _read(cls, reader: Reader, depth: int) -> Self:
        if depth > RECURSION_LIMIT:
            raise DecodeError("Recursion limit exceeded")

        table = _field_table(cls)
        values: dict[str, Any] = {}

        while not reader.at_end():
            number, wire_type = reader.read_tag()
            entry = table.get(number)
            if entry is None:
                reader.skip_field(number, wire_type)
                continue

            name, info = entry
            record_type = _RECORD_TYPES.get(info.type)

            if record_type is not None:
                _expect_wire_type(cls, name, wire_type, WireType.LENGTH_DELIMITED)
                item: Any = record_type._read(Reader(reader.read_length_delimited()), depth + 1)
            elif (
                info.repeated
                and wire_type == WireType.LENGTH_DELIMITED
                and info.type in PACKABLE_TYPES
            ):
                packed = Reader(reader.read_length_delimited())
                items = values.setdefault(name, [])
                while not packed.at_end():
                    items.append(read_scalar(packed, info.type))
                continue
            else:
                _expect_wire_type(cls, name, wire_type, SCALAR_WIRE_TYPES[info.type])
                item = read_scalar(reader, info.type)

            if info.repeated:
                values.setdefault(name, []).append(item)
            else:
                values[name] = item

        return cls(**values)


def _expect_wire_type(cls: type, name: str, actual: WireType, expected: WireType) -> None:
    if actual != expected:
        raise DecodeError(f"Invalid wire type {actual.name} for {cls.__name__}.{name}")


def _pack_one(buf: bytearray, info: ProtoFieldInfo, value: Any) -> None:
    if info.type in _RECORD_TYPES:
        data = value.pack()
        buf.extend(encode_tag(info.number, WireType.LENGTH_DELIMITED))
        buf.extend(encode_varint(len(data)))
        buf.extend(data)
    else:
        buf.extend(encode_tag(info.number, SCALAR_WIRE_TYPES[info.type]))
        buf.extend(encode_scalar(info.type, value))


@dataclass
class FileOptions(ProtoRecord):
    java_package: str | None = proto_field(1, "string")
    java_outer_classname: str | None = proto_field(8, "string")
    go_package: str | None = proto_field(11, "string")
    deprecated: bool | None = proto_field(23, "bool")


@dataclass
class MessageOptions(ProtoRecord):
    message_set_wire_format: bool | None = proto_field(1, "bool")
    deprecated: bool | None = proto_field(3, "bool")
    map_entry: bool | None = proto_field(7, "bool")


@dataclass
class FieldOptions(ProtoRecord):
    packed: bool | None = proto_field(2, "bool")
    deprecated: bool | None = proto_field(3, "bool")
    lazy: bool | None = proto_field(5, "bool")
    jstype: int | None = proto_field(6, "enum")
    weak: bool | None = proto_field(10, "bool")


@dataclass
class OneofOptions(ProtoRecord):
    pass


@dataclass
class EnumOptions(ProtoRecord):
    allow_alias: bool | None = proto_field(2, "bool")
    deprecated: bool | None = proto_field(3, "bool")


@dataclass
class EnumValueOptions(ProtoRecord):
    deprecated: bool | None = proto_field(1, "bool")


@dataclass
class ServiceOptions(ProtoRecord):
    deprecated: bool | None = proto_field(33, "bool")


@dataclass
class MethodOptions(ProtoRecord):
    deprecated: bool | None = proto_field(33, "bool")


@dataclass
class FieldDescriptorProto(ProtoRecord):
    name: str | None = proto_field(1, "string")
    extendee: str | None = proto_field(2, "string")
    number: int | None = proto_field(3, "int32")
    label: int | None = proto_field(4, "enum")
    type: int | None = proto_field(5, "enum")
    type_name: str | None = proto_field(6, "string")
    default_value: str | None = proto_field(7, "string")
    options: FieldOptions | None = proto_field(8, "FieldOptions")
    oneof_index: int | None = proto_field(9, "int32")
    json_name: str | None = proto_field(10, "string")
    proto3_optional: bool | None = proto_field(17, "bool")


@dataclass
class OneofDescriptorProto(ProtoRecord):
    name: str | None = proto_field(1, "string")
    options: OneofOptions | None = proto_field(2, "OneofOptions")


@dataclass
class ExtensionRange(ProtoRecord):
    """``DescriptorProto.ExtensionRange``; ``end`` is exclusive."""

    start: int | None = proto_field(1, "int32")
    end: int | None = proto_field(2, "int32")


@dataclass
class ReservedRange(ProtoRecord):
    """``DescriptorProto.ReservedRange``; ``end`` is exclusive."""

    start: int | None = proto_field(1, "int32")
    end: int | None = proto_field(2, "int32")


@dataclass
class DescriptorProto(ProtoRecord):
    name: str | None = proto_field(1, "string")
    field: list[FieldDescriptorProto] = proto_field(2, "FieldDescriptorProto", repeated=True)
    nested_type: list["DescriptorProto"] = proto_field(3, "DescriptorProto", repeated=True)
    enum_type: list["EnumDescriptorProto"] = proto_field(4, "EnumDescriptorProto", repeated=True)
    extension_range: list[ExtensionRange] = proto_field(5, "ExtensionRange", repeated=True)
    extension: list[FieldDescriptorProto] = proto_field(6, "FieldDescriptorProto", repeated=True)
    options: MessageOptions | None = proto_field(7, "MessageOptions")
    oneof_decl: list[OneofDescriptorProto] = proto_field(8, "OneofDescriptorProto", repeated=True)
    reserved_range: list[ReservedRange] = proto_field(9, "ReservedRange", repeated=True)
    reserved_name: list[str] = proto_field(10, "string", repeated=True)


@dataclass
class EnumValueDescriptorProto(ProtoRecord):
    name: str | None = proto_field(1, "string")
    number: int | None = proto_field(2, "int32")
    options: EnumValueOptions | None = proto_field(3, "EnumValueOptions")


@dataclass
class EnumReservedRange(ProtoRecord):
    """``EnumDescriptorProto.EnumReservedRange``; ``end`` is inclusive."""

    start: int | None = proto_field(1, "int32")
    end: int | None = proto_field(2, "int32")


@dataclass
class EnumDescriptorProto(ProtoRecord):
    name: str | None = proto_field(1, "string")
    value: list[EnumValueDescriptorProto] = proto_field(2, "EnumValueDescriptorProto", repeated=True)
    options: EnumOptions | None = proto_field(3, "EnumOptions")
    reserved_range: list[EnumReservedRange] = proto_field(4, "EnumReservedRange", repeated=True)
    reserved_name: list[str] = proto_field(5, "string", repeated=True)


@dataclass
class MethodDescriptorProto(ProtoRecord):
    name: str | None = proto_field(1, "string")
    input_type: str | None = proto_field(2, "string")
    output_type: str | None = proto_field(3, "string")
    options: MethodOptions | None = proto_field(4, "MethodOptions")
    client_streaming: bool | None = proto_field(5, "bool")
    server_streaming: bool | None = proto_field(6, "bool")


@dataclass
class ServiceDescriptorProto(ProtoRecord):
    name: str | None = proto_field(1, "string")
    method: list[MethodDescriptorProto] = proto_field(2, "MethodDescriptorProto", repeated=True)
    options: ServiceOptions | None = proto_field(3, "ServiceOptions")


@dataclass
class FileDescriptorProto(ProtoRecord):
    name: str | None = proto_field(1, "string")
    package: str | None = proto_field(2, "string")
    dependency: list[str] = proto_field(3, "string", repeated=True)
    message_type: list[DescriptorProto] = proto_field(4, "DescriptorProto", repeated=True)
    enum_type: list[EnumDescriptorProto] = proto_field(5, "EnumDescriptorProto", repeated=True)
    service: list[ServiceDescriptorProto] = proto_field(6, "ServiceDescriptorProto", repeated=True)
    extension: list[FieldDescriptorProto] = proto_field(7, "FieldDescriptorProto", repeated=True)
    options: FileOptions | None = proto_field(8, "FileOptions")
    public_dependency: list[int] = proto_field(10, "int32", repeated=True)
    weak_dependency: list[int] = proto_field(11, "int32", repeated=True)
    syntax: str | None = proto_field(12, "string")


@dataclass
class FileDescriptorSet(ProtoRecord):
    file: list[FileDescriptorProto] = proto_field(1, "FileDescriptorProto", repeated=True)
