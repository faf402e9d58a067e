"""Built-in schemas for the well-known types under ``google.protobuf``."""

from .proto import (
    DescriptorProto,
    EnumDescriptorProto,
    EnumValueDescriptorProto,
    FieldDescriptorProto,
    FieldLabel,
    FieldType,
    FileDescriptorProto,
    MessageOptions,
    OneofDescriptorProto,
)

PACKAGE = "google.protobuf"


def _field(
    name: str,
    number: int,
    type: FieldType,
    type_name: str | None = None,
    *,
    repeated: bool = False,
    oneof_index: int | None = None,
) -> FieldDescriptorProto:
    return FieldDescriptorProto(
        name=name,
        number=number,
        label=FieldLabel.REPEATED if repeated else FieldLabel.OPTIONAL,
        type=type,
        type_name=type_name,
        oneof_index=oneof_index,
    )


def _file(name: str, *messages: DescriptorProto, enums: tuple[EnumDescriptorProto, ...] = ()) -> FileDescriptorProto:
    return FileDescriptorProto(
        name=f"google/protobuf/{name}",
        package=PACKAGE,
        message_type=list(messages),
        enum_type=list(enums),
        syntax="proto3",
    )


def _seconds_and_nanos(name: str) -> DescriptorProto:
    return DescriptorProto(
        name=name,
        field=[
            _field("seconds", 1, FieldType.INT64),
            _field("nanos", 2, FieldType.INT32),
        ],
    )


_WRAPPERS = (
    ("DoubleValue", FieldType.DOUBLE),
    ("FloatValue", FieldType.FLOAT),
    ("Int64Value", FieldType.INT64),
    ("UInt64Value", FieldType.UINT64),
    ("Int32Value", FieldType.INT32),
    ("UInt32Value", FieldType.UINT32),
    ("BoolValue", FieldType.BOOL),
    ("StringValue", FieldType.STRING),
    ("BytesValue", FieldType.BYTES),
)

WRAPPER_TYPES = frozenset(f"{PACKAGE}.{name}" for name, _ in _WRAPPERS)


def _struct_file() -> FileDescriptorProto:
    fields_entry = DescriptorProto(
        name="FieldsEntry",
        field=[
            _field("key", 1, FieldType.STRING),
            _field("value", 2, FieldType.MESSAGE, ".google.protobuf.Value"),
        ],
        options=MessageOptions(map_entry=True),
    )
    struct = DescriptorProto(
        name="Struct",
        field=[_field("fields", 1, FieldType.MESSAGE, ".google.protobuf.Struct.FieldsEntry", repeated=True)],
        nested_type=[fields_entry],
    )
    value = DescriptorProto(
        name="Value",
        field=[
            _field("null_value", 1, FieldType.ENUM, ".google.protobuf.NullValue", oneof_index=0),
            _field("number_value", 2, FieldType.DOUBLE, oneof_index=0),
            _field("string_value", 3, FieldType.STRING, oneof_index=0),
            _field("bool_value", 4, FieldType.BOOL, oneof_index=0),
            _field("struct_value", 5, FieldType.MESSAGE, ".google.protobuf.Struct", oneof_index=0),
            _field("list_value", 6, FieldType.MESSAGE, ".google.protobuf.ListValue", oneof_index=0),
        ],
        oneof_decl=[OneofDescriptorProto(name="kind")],
    )
    list_value = DescriptorProto(
        name="ListValue",
        field=[_field("values", 1, FieldType.MESSAGE, ".google.protobuf.Value", repeated=True)],
    )
    null_value = EnumDescriptorProto(
        name="NullValue",
        value=[EnumValueDescriptorProto(name="NULL_VALUE", number=0)],
    )
    return _file("struct.proto", struct, value, list_value, enums=(null_value,))


def well_known_files() -> list[FileDescriptorProto]:
    """Fresh records for every built-in well-known schema file."""
    return [
        _file(
            "any.proto",
            DescriptorProto(
                name="Any",
                field=[
                    _field("type_url", 1, FieldType.STRING),
                    _field("value", 2, FieldType.BYTES),
                ],
            ),
        ),
        _file("duration.proto", _seconds_and_nanos("Duration")),
        _file("timestamp.proto", _seconds_and_nanos("Timestamp")),
        _file("empty.proto", DescriptorProto(name="Empty")),
        _file(
            "field_mask.proto",
            DescriptorProto(name="FieldMask", field=[_field("paths", 1, FieldType.STRING, repeated=True)]),
        ),
        _file(
            "wrappers.proto",
            *(DescriptorProto(name=name, field=[_field("value", 1, type)]) for name, type in _WRAPPERS),
        ),
        _struct_file(),
    ]
