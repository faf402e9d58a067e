import pytest

from protoreflect.descriptor import DescriptorPool, FileDescriptorProto, FileDescriptorSet
from protoreflect.descriptor.proto import (
    DescriptorProto,
    EnumDescriptorProto,
    EnumOptions,
    EnumValueDescriptorProto,
    ExtensionRange,
    FieldDescriptorProto,
    FieldLabel,
    FieldOptions,
    FieldType,
    MessageOptions,
    MethodDescriptorProto,
    OneofDescriptorProto,
    ServiceDescriptorProto,
)

SCALAR_FIELDS = [
    ("double", FieldType.DOUBLE),
    ("float", FieldType.FLOAT),
    ("int32", FieldType.INT32),
    ("int64", FieldType.INT64),
    ("uint32", FieldType.UINT32),
    ("uint64", FieldType.UINT64),
    ("sint32", FieldType.SINT32),
    ("sint64", FieldType.SINT64),
    ("fixed32", FieldType.FIXED32),
    ("fixed64", FieldType.FIXED64),
    ("sfixed32", FieldType.SFIXED32),
    ("sfixed64", FieldType.SFIXED64),
    ("bool", FieldType.BOOL),
    ("string", FieldType.STRING),
    ("bytes", FieldType.BYTES),
]


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    terminal.TerminalReporter.showfspath = False


def field(name, number, type, type_name=None, *, label=FieldLabel.OPTIONAL, **kwargs):
    return FieldDescriptorProto(name=name, number=number, type=type, type_name=type_name, label=label, **kwargs)


def map_entry(name, key_type, value_type, value_type_name=None):
    return DescriptorProto(
        name=name,
        field=[field("key", 1, key_type), field("value", 2, value_type, value_type_name)],
        options=MessageOptions(map_entry=True),
    )


def enum(name, *values, **kwargs):
    return EnumDescriptorProto(
        name=name,
        value=[EnumValueDescriptorProto(name=value_name, number=number) for value_name, number in values],
        **kwargs,
    )


def wkt(name):
    return f".google.protobuf.{name}"


def make_test_file():
    repeated = FieldLabel.REPEATED
    scalars = DescriptorProto(
        name="Scalars",
        field=[field(name, number, type) for number, (name, type) in enumerate(SCALAR_FIELDS, start=1)],
    )
    scalar_arrays = DescriptorProto(
        name="ScalarArrays",
        field=[
            *(field(name, number, type, label=repeated) for number, (name, type) in enumerate(SCALAR_FIELDS, start=1)),
            field("unpacked_int32", 16, FieldType.INT32, label=repeated, options=FieldOptions(packed=False)),
        ],
    )
    simple = DescriptorProto(
        name="Simple",
        field=[field("a", 1, FieldType.INT32), field("b", 2, FieldType.STRING)],
    )
    name_test = DescriptorProto(name="NameTest", field=[field("foo_bar", 1, FieldType.INT32)])
    complex_type = DescriptorProto(
        name="ComplexType",
        field=[
            field("string_map", 1, FieldType.MESSAGE, ".test.ComplexType.StringMapEntry", label=repeated),
            field("int_map", 2, FieldType.MESSAGE, ".test.ComplexType.IntMapEntry", label=repeated),
            field("nested", 3, FieldType.MESSAGE, ".test.Simple"),
            field("nested_list", 4, FieldType.MESSAGE, ".test.Simple", label=repeated),
            field("my_enum", 5, FieldType.ENUM, ".test.MyEnum"),
            field("enum_list", 6, FieldType.ENUM, ".test.MyEnum", label=repeated),
            field("oneof_int", 7, FieldType.INT32, oneof_index=0),
            field("oneof_string", 8, FieldType.STRING, oneof_index=0),
            field("oneof_message", 9, FieldType.MESSAGE, ".test.Simple", oneof_index=0),
            field("bool_map", 10, FieldType.MESSAGE, ".test.ComplexType.BoolMapEntry", label=repeated),
            field("optional_int", 11, FieldType.INT32, oneof_index=1, proto3_optional=True),
        ],
        nested_type=[
            map_entry("StringMapEntry", FieldType.STRING, FieldType.MESSAGE, ".test.Scalars"),
            map_entry("IntMapEntry", FieldType.INT32, FieldType.STRING),
            map_entry("BoolMapEntry", FieldType.BOOL, FieldType.INT64),
        ],
        oneof_decl=[OneofDescriptorProto(name="choice"), OneofDescriptorProto(name="_optional_int")],
    )
    node = DescriptorProto(
        name="Node",
        field=[field("child", 1, FieldType.MESSAGE, ".test.Node"), field("value", 2, FieldType.INT32)],
    )
    well_known_types = DescriptorProto(
        name="WellKnownTypes",
        field=[
            field("any", 1, FieldType.MESSAGE, wkt("Any")),
            field("duration", 2, FieldType.MESSAGE, wkt("Duration")),
            field("timestamp", 3, FieldType.MESSAGE, wkt("Timestamp")),
            field("struct", 4, FieldType.MESSAGE, wkt("Struct")),
            field("value", 5, FieldType.MESSAGE, wkt("Value")),
            field("list_value", 6, FieldType.MESSAGE, wkt("ListValue")),
            field("mask", 7, FieldType.MESSAGE, wkt("FieldMask")),
            field("int32_wrapper", 8, FieldType.MESSAGE, wkt("Int32Value")),
            field("int64_wrapper", 9, FieldType.MESSAGE, wkt("Int64Value")),
            field("string_wrapper", 10, FieldType.MESSAGE, wkt("StringValue")),
            field("bool_wrapper", 11, FieldType.MESSAGE, wkt("BoolValue")),
            field("empty", 12, FieldType.MESSAGE, wkt("Empty")),
            field("double_wrapper", 13, FieldType.MESSAGE, wkt("DoubleValue")),
            field("bytes_wrapper", 14, FieldType.MESSAGE, wkt("BytesValue")),
        ],
    )
    service = ServiceDescriptorProto(
        name="TestService",
        method=[
            MethodDescriptorProto(name="Echo", input_type=".test.Simple", output_type=".test.Simple"),
            MethodDescriptorProto(
                name="Stream", input_type=".test.Simple", output_type=".test.Simple", server_streaming=True
            ),
        ],
    )
    return FileDescriptorProto(
        name="test.proto",
        package="test",
        dependency=[
            "google/protobuf/any.proto",
            "google/protobuf/duration.proto",
            "google/protobuf/timestamp.proto",
            "google/protobuf/struct.proto",
            "google/protobuf/field_mask.proto",
            "google/protobuf/wrappers.proto",
            "google/protobuf/empty.proto",
        ],
        message_type=[scalars, scalar_arrays, simple, name_test, complex_type, node, well_known_types],
        enum_type=[enum("MyEnum", ("MY_ZERO", 0), ("MY_ONE", 1), ("MY_TWO", 2))],
        service=[service],
        syntax="proto3",
    )


def make_test2_file():
    extendable = DescriptorProto(
        name="Extendable",
        field=[
            field("base", 1, FieldType.INT32),
            field("with_default", 2, FieldType.INT32, default_value="7"),
            field("greeting", 3, FieldType.STRING, default_value="hello"),
            field("packed_ints", 4, FieldType.INT32, label=FieldLabel.REPEATED, options=FieldOptions(packed=True)),
            field("mygroup", 5, FieldType.GROUP, ".test2.Extendable.MyGroup"),
            field("color", 7, FieldType.ENUM, ".test2.Color"),
        ],
        nested_type=[DescriptorProto(name="MyGroup", field=[field("x", 6, FieldType.INT32)])],
        extension_range=[ExtensionRange(start=100, end=200)],
    )
    return FileDescriptorProto(
        name="test2.proto",
        package="test2",
        message_type=[extendable],
        enum_type=[enum("Color", ("RED", 0), ("CRIMSON", 0), ("BLUE", 1), options=EnumOptions(allow_alias=True))],
        extension=[
            field("ext_int", 100, FieldType.INT32, extendee=".test2.Extendable"),
            field("ext_string", 101, FieldType.STRING, extendee=".test2.Extendable"),
            field("ext_list", 102, FieldType.INT32, extendee=".test2.Extendable", label=FieldLabel.REPEATED),
        ],
        syntax="proto2",
    )


@pytest.fixture(scope="session")
def pool():
    return DescriptorPool([make_test_file(), make_test2_file()])


@pytest.fixture
def schema_bytes():
    return FileDescriptorSet(file=[make_test_file(), make_test2_file()]).pack()
