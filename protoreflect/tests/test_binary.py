"""Tests for the binary wire codec"""

# pylint: disable=redefined-outer-name,unused-variable,expression-not-assigned,singleton-comparison

from pytest import raises

from protoreflect.dynamic import DynamicMessage, Value
from protoreflect.wire import DecodeError, EncodeError, WireType, encode_varint


def message_of(pool, name, **values):
    message = DynamicMessage(pool.get_message_by_name(name))
    for field_name, value in values.items():
        message.set_field_by_name(field_name, value)
    return message


def describe_encode():
    def test_simple(expect, pool):
        message = message_of(pool, "test.Simple", a=Value.i32(5), b=Value.string("hi"))
        expect(message.encode()) == bytes.fromhex("08 05 12 02 68 69")

    def test_defaults_are_omitted(expect, pool):
        message = message_of(pool, "test.Scalars", int32=Value.i32(0), string=Value.string(""))
        expect(message.encode()) == b""

    def test_negative_int32(expect, pool):
        message = message_of(pool, "test.Scalars", int32=Value.i32(-1))
        expect(message.encode()) == b"\x18" + b"\xff" * 9 + b"\x01"

    def test_zigzag_and_fixed(expect, pool):
        message = message_of(pool, "test.Scalars", sint32=Value.i32(-1), fixed32=Value.u32(1))
        expect(message.encode()) == bytes.fromhex("38 01 4d 01 00 00 00")

    def test_double(expect, pool):
        message = message_of(pool, "test.Scalars", double=Value.f64(1.0))
        expect(message.encode()) == bytes.fromhex("09 00 00 00 00 00 00 f0 3f")

    def test_packed_by_default_in_proto3(expect, pool):
        message = message_of(pool, "test.ScalarArrays", int32=Value.list_([Value.i32(1), Value.i32(2)]))
        expect(message.encode()) == bytes.fromhex("1a 02 01 02")

    def test_unpacked_option(expect, pool):
        message = message_of(pool, "test.ScalarArrays", unpacked_int32=Value.list_([Value.i32(1), Value.i32(2)]))
        expect(message.encode()) == bytes.fromhex("80 01 01 80 01 02")

    def test_repeated_strings_are_never_packed(expect, pool):
        message = message_of(pool, "test.ScalarArrays", string=Value.list_([Value.string("a"), Value.string("")]))
        expect(message.encode()) == bytes.fromhex("72 01 61 72 00")

    def test_proto2_packed_option(expect, pool):
        message = message_of(pool, "test2.Extendable", packed_ints=Value.list_([Value.i32(1), Value.i32(2)]))
        expect(message.encode()) == bytes.fromhex("22 02 01 02")

    def test_proto2_default_is_written_when_set(expect, pool):
        message = message_of(pool, "test2.Extendable", with_default=Value.i32(7))
        expect(message.encode()) == bytes.fromhex("10 07")

    def test_map_entries_include_defaults(expect, pool):
        message = message_of(pool, "test.ComplexType", int_map=Value.map_({Value.i32(0): Value.string("")}))
        expect(message.encode()) == bytes.fromhex("12 04 08 00 12 00")

    def test_nested_message(expect, pool):
        nested = message_of(pool, "test.Simple", a=Value.i32(1))
        message = message_of(pool, "test.ComplexType", nested=Value.message(nested))
        expect(message.encode()) == bytes.fromhex("1a 02 08 01")

    def test_empty_nested_message_is_written(expect, pool):
        nested = message_of(pool, "test.Simple")
        message = message_of(pool, "test.ComplexType", nested=Value.message(nested))
        expect(message.encode()) == bytes.fromhex("1a 00")

    def test_group(expect, pool):
        group = message_of(pool, "test2.Extendable.MyGroup", x=Value.i32(3))
        message = message_of(pool, "test2.Extendable", mygroup=Value.message(group))
        expect(message.encode()) == bytes.fromhex("2b 30 03 2c")

    def test_extension(expect, pool):
        message = message_of(pool, "test2.Extendable")
        message.set_extension(pool.get_extension_by_name("test2.ext_int"), Value.i32(42))
        expect(message.encode()) == bytes.fromhex("a0 06 2a")

    def test_repeated_extension(expect, pool):
        message = message_of(pool, "test2.Extendable")
        message.set_extension(pool.get_extension_by_name("test2.ext_list"), Value.list_([Value.i32(1), Value.i32(2)]))
        expect(message.encode()) == bytes.fromhex("b0 06 01 b0 06 02")

    def test_unknown_enum_number(expect, pool):
        message = message_of(pool, "test.ComplexType", my_enum=Value.enum_number(7))
        expect(message.encode()) == bytes.fromhex("28 07")

    def test_length_delimited(expect, pool):
        message = message_of(pool, "test.Simple", a=Value.i32(5), b=Value.string("hi"))
        expect(message.encode_length_delimited()) == bytes.fromhex("06 08 05 12 02 68 69")

    def test_invalid_value_in_list(expect, pool):
        message = message_of(pool, "test.ScalarArrays")
        message.get_field_by_name_mut("int32").data.append(Value.string("oops"))
        with raises(EncodeError):
            message.encode()


def describe_decode():
    def test_simple(expect, pool):
        message = DynamicMessage.decode(pool.get_message_by_name("test.Simple"), bytes.fromhex("08 05 12 02 68 69"))
        expect(message.get_field_by_name("a")) == Value.i32(5)
        expect(message.get_field_by_name("b")) == Value.string("hi")

    def test_all_scalars(expect, pool):
        descriptor = pool.get_message_by_name("test.Scalars")
        message = message_of(
            pool,
            "test.Scalars",
            double=Value.f64(-2.5),
            float=Value.f32(0.5),
            int64=Value.i64(-(2**63)),
            uint64=Value.u64(2**64 - 1),
            sint64=Value.i64(-3),
            fixed64=Value.u64(9),
            sfixed32=Value.i32(-4),
            sfixed64=Value.i64(-5),
            bool=Value.bool_(True),
            bytes=Value.bytes_(b"\x00\xff"),
        )
        expect(DynamicMessage.decode(descriptor, message.encode())) == message

    def test_unknown_fields_are_kept(expect, pool):
        data = bytes.fromhex("08 05 12 02 68 69 18 96 01 22 01 ff")
        message = DynamicMessage.decode(pool.get_message_by_name("test.Simple"), data)
        unknown = message.unknown_fields()
        expect([field.number for field in unknown]) == [3, 4]
        expect(unknown[0].wire_type) == WireType.VARINT
        expect(unknown[1].data) == bytes.fromhex("22 01 ff")
        expect(message.encode()) == data

    def test_unknown_group_is_kept(expect, pool):
        data = bytes.fromhex("2b 30 03 2c")
        message = DynamicMessage.decode(pool.get_message_by_name("test.Simple"), data)
        expect(message.unknown_fields()[0].wire_type) == WireType.START_GROUP
        expect(message.encode()) == data

    def test_last_oneof_member_wins(expect, pool):
        message = DynamicMessage.decode(pool.get_message_by_name("test.ComplexType"), bytes.fromhex("38 01 42 01 78"))
        expect(message.has_field_by_name("oneof_int")) == False
        expect(message.get_field_by_name("oneof_string")) == Value.string("x")

    def test_last_map_entry_wins(expect, pool):
        data = bytes.fromhex("12 05 08 01 12 01 61 12 05 08 01 12 01 62")
        message = DynamicMessage.decode(pool.get_message_by_name("test.ComplexType"), data)
        expect(message.get_field_by_name("int_map")) == Value.map_({Value.i32(1): Value.string("b")})

    def test_map_entry_with_missing_parts(expect, pool):
        message = DynamicMessage.decode(pool.get_message_by_name("test.ComplexType"), bytes.fromhex("0a 00"))
        string_map = message.get_field_by_name("string_map").as_map()
        expect(list(string_map)) == [Value.string("")]
        expect(string_map[Value.string("")].as_message().descriptor.full_name) == "test.Scalars"

    def test_packed_and_unpacked_are_both_accepted(expect, pool):
        descriptor = pool.get_message_by_name("test.ScalarArrays")
        expected = Value.list_([Value.i32(1), Value.i32(2)])
        packed = DynamicMessage.decode(descriptor, bytes.fromhex("1a 02 01 02"))
        unpacked = DynamicMessage.decode(descriptor, bytes.fromhex("18 01 18 02"))
        expect(packed.get_field_by_name("int32")) == expected
        expect(unpacked.get_field_by_name("int32")) == expected

    def test_singular_messages_merge(expect, pool):
        data = bytes.fromhex("1a 02 08 01 1a 03 12 01 61")
        message = DynamicMessage.decode(pool.get_message_by_name("test.ComplexType"), data)
        nested = message.get_field_by_name("nested").as_message()
        expect(nested.get_field_by_name("a")) == Value.i32(1)
        expect(nested.get_field_by_name("b")) == Value.string("a")

    def test_repeated_messages_append(expect, pool):
        data = bytes.fromhex("22 02 08 01 22 02 08 02")
        message = DynamicMessage.decode(pool.get_message_by_name("test.ComplexType"), data)
        items = message.get_field_by_name("nested_list").as_list()
        expect([item.as_message().get_field_by_name("a") for item in items]) == [Value.i32(1), Value.i32(2)]

    def test_unknown_enum_number(expect, pool):
        message = DynamicMessage.decode(pool.get_message_by_name("test.ComplexType"), bytes.fromhex("28 07"))
        expect(message.get_field_by_name("my_enum")) == Value.enum_number(7)

    def test_group(expect, pool):
        message = DynamicMessage.decode(pool.get_message_by_name("test2.Extendable"), bytes.fromhex("2b 30 03 2c"))
        group = message.get_field_by_name("mygroup").as_message()
        expect(group.get_field_by_name("x")) == Value.i32(3)

    def test_extension(expect, pool):
        message = DynamicMessage.decode(pool.get_message_by_name("test2.Extendable"), bytes.fromhex("a0 06 2a"))
        expect(message.get_extension(pool.get_extension_by_name("test2.ext_int"))) == Value.i32(42)
        expect(message.unknown_fields()) == ()

    def test_length_delimited(expect, pool):
        data = bytes.fromhex("06 08 05 12 02 68 69") + b"rest"
        message, consumed = DynamicMessage.decode_length_delimited(pool.get_message_by_name("test.Simple"), data)
        expect(consumed) == 7
        expect(message.get_field_by_name("b")) == Value.string("hi")

    def test_merge(expect, pool):
        message = message_of(pool, "test.Simple", a=Value.i32(1), b=Value.string("x"))
        message.merge(bytes.fromhex("08 02"))
        expect(message.get_field_by_name("a")) == Value.i32(2)
        expect(message.get_field_by_name("b")) == Value.string("x")


def describe_decode_errors():
    def test_truncated_varint(expect, pool):
        with raises(DecodeError):
            DynamicMessage.decode(pool.get_message_by_name("test.Simple"), b"\x80")

    def test_truncated_length(expect, pool):
        with raises(DecodeError):
            DynamicMessage.decode(pool.get_message_by_name("test.Simple"), bytes.fromhex("12 05 68"))

    def test_invalid_utf8(expect, pool):
        with raises(DecodeError):
            DynamicMessage.decode(pool.get_message_by_name("test.Scalars"), bytes.fromhex("72 01 ff"))

    def test_wrong_wire_type(expect, pool):
        with raises(DecodeError):
            DynamicMessage.decode(pool.get_message_by_name("test.Scalars"), bytes.fromhex("0a 00"))

    def test_field_number_zero(expect, pool):
        with raises(DecodeError):
            DynamicMessage.decode(pool.get_message_by_name("test.Simple"), bytes.fromhex("00 01"))

    def test_unterminated_group(expect, pool):
        with raises(DecodeError):
            DynamicMessage.decode(pool.get_message_by_name("test2.Extendable"), bytes.fromhex("2b 30 03"))

    def test_stray_end_group(expect, pool):
        with raises(DecodeError):
            DynamicMessage.decode(pool.get_message_by_name("test.Simple"), bytes.fromhex("2c"))

    def test_recursion_limit(expect, pool):
        data = b""
        for _ in range(150):
            data = b"\x0a" + encode_varint(len(data)) + data
        with raises(DecodeError, match="Recursion"):
            DynamicMessage.decode(pool.get_message_by_name("test.Node"), data)

    def test_nesting_within_limit(expect, pool):
        data = b"\x10\x01"
        for _ in range(50):
            data = b"\x0a" + encode_varint(len(data)) + data
        message = DynamicMessage.decode(pool.get_message_by_name("test.Node"), data)
        expect(message.encode()) == data
