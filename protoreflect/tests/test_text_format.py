"""Tests for the text format"""

# pylint: disable=redefined-outer-name,unused-variable,expression-not-assigned,singleton-comparison

import math

from pytest import raises

from protoreflect.dynamic import DynamicMessage, ParseError, Value


def parse(pool, name, text):
    return DynamicMessage.parse_text_format(pool.get_message_by_name(name), text)


def describe_parse():
    def test_simple(expect, pool):
        message = parse(pool, "test.Simple", 'a: 5 b: "hi"')
        expect(message.get_field_by_name("a")) == Value.i32(5)
        expect(message.get_field_by_name("b")) == Value.string("hi")

    def test_separators_and_comments(expect, pool):
        text = """
        # leading comment
        a: 5;  # trailing comment
        b: 'single' "concatenated",
        """
        message = parse(pool, "test.Simple", text)
        expect(message.get_field_by_name("b")) == Value.string("singleconcatenated")

    def test_escapes(expect, pool):
        message = parse(pool, "test.Scalars", r'string: "a\n\"b\"é" bytes: "\000\xff"')
        expect(message.get_field_by_name("string")) == Value.string('a\n"b"é')
        expect(message.get_field_by_name("bytes")) == Value.bytes_(b"\x00\xff")

    def test_numbers(expect, pool):
        text = "int32: -0x10 uint32: 010 int64: -9223372036854775808 float: 1.5f double: -inf bool: t"
        message = parse(pool, "test.Scalars", text)
        expect(message.get_field_by_name("int32")) == Value.i32(-16)
        expect(message.get_field_by_name("uint32")) == Value.u32(8)
        expect(message.get_field_by_name("int64")) == Value.i64(-(2**63))
        expect(message.get_field_by_name("float")) == Value.f32(1.5)
        expect(message.get_field_by_name("double")) == Value.f64(-math.inf)
        expect(message.get_field_by_name("bool")) == Value.bool_(True)

    def test_nan(expect, pool):
        message = parse(pool, "test.Scalars", "double: nan")
        expect(math.isnan(message.get_field_by_name("double").data)) == True

    def test_nested_and_repeated(expect, pool):
        text = """
        nested { a: 1 }
        nested_list [{ a: 1 }, < a: 2 >]
        nested_list: { a: 3 }
        my_enum: MY_ONE
        enum_list: [MY_TWO, 0]
        int_map { key: 1 value: "x" }
        int_map { key: 2 value: "y" }
        """
        message = parse(pool, "test.ComplexType", text)
        expect(message.get_field_by_name("nested").as_message().get_field_by_name("a")) == Value.i32(1)
        items = message.get_field_by_name("nested_list").as_list()
        expect([item.as_message().get_field_by_name("a").data for item in items]) == [1, 2, 3]
        expect(message.get_field_by_name("my_enum")) == Value.enum_number(1)
        expect(message.get_field_by_name("enum_list")) == Value.list_([Value.enum_number(2), Value.enum_number(0)])
        expect(message.get_field_by_name("int_map")) == Value.map_(
            {Value.i32(1): Value.string("x"), Value.i32(2): Value.string("y")}
        )

    def test_extensions_and_groups(expect, pool):
        message = parse(pool, "test2.Extendable", "[test2.ext_int]: 42 MyGroup { x: 3 }")
        expect(message.get_extension(pool.get_extension_by_name("test2.ext_int"))) == Value.i32(42)
        group = message.get_field_by_name("mygroup").as_message()
        expect(group.get_field_by_name("x")) == Value.i32(3)

    def test_empty_input(expect, pool):
        expect(parse(pool, "test.Simple", "  # nothing\n")) == DynamicMessage(pool.get_message_by_name("test.Simple"))


def describe_parse_errors():
    def test_unknown_field(expect, pool):
        with raises(ParseError):
            parse(pool, "test.Simple", "c: 1")

    def test_unknown_extension(expect, pool):
        with raises(ParseError):
            parse(pool, "test2.Extendable", "[test2.nope]: 1")

    def test_missing_colon_before_scalar(expect, pool):
        with raises(ParseError):
            parse(pool, "test.Simple", "a 5")

    def test_syntax_error(expect, pool):
        with raises(ParseError):
            parse(pool, "test.ComplexType", "nested { a: 1")

    def test_duplicate_singular_field(expect, pool):
        with raises(ParseError):
            parse(pool, "test.Simple", "a: 1 a: 2")

    def test_list_for_singular_field(expect, pool):
        with raises(ParseError):
            parse(pool, "test.Simple", "a: [1, 2]")

    def test_oneof_conflict(expect, pool):
        with raises(ParseError):
            parse(pool, "test.ComplexType", 'oneof_int: 1 oneof_string: "x"')

    def test_bad_values(expect, pool):
        for text in ('int32: "1"', "int32: 2147483648", "uint32: -1", "bool: yes", "string: 5", "int32: 1.5"):
            with raises(ParseError):
                parse(pool, "test.Scalars", text)

    def test_unknown_enum_name(expect, pool):
        with raises(ParseError):
            parse(pool, "test.ComplexType", "my_enum: MY_NINE")

    def test_bad_escape(expect, pool):
        with raises(ParseError):
            parse(pool, "test.Simple", r'b: "\q"')

    def test_oversized_numbers(expect, pool):
        for text in ("double: 0x" + "f" * 300, "int64: " + "1" * 5000, "float: 1e39"):
            with raises(ParseError):
                parse(pool, "test.Scalars", text)

    def test_recursion_limit(expect, pool):
        for depth in (101, 3000):
            with raises(ParseError):
                parse(pool, "test.Node", "child { " * depth + "}" * depth)

    def test_nesting_within_limit(expect, pool):
        message = parse(pool, "test.Node", "child { " * 20 + "value: 1" + " }" * 20)
        for _ in range(20):
            message = message.get_field_by_name("child").as_message()
        expect(message.get_field_by_name("value")) == Value.i32(1)


def describe_print():
    def test_simple(expect, pool):
        message = parse(pool, "test.Simple", 'a: 5 b: "hi"')
        expect(message.to_text_format()) == 'a: 5\nb: "hi"\n'
        expect(message.to_text_format(indent=None)) == 'a: 5 b: "hi"'

    def test_nested(expect, pool):
        message = parse(pool, "test.ComplexType", 'nested { a: 1 } int_map { key: 1 value: "x" } my_enum: MY_TWO')
        expect(message.to_text_format()) == (
            'int_map {\n  key: 1\n  value: "x"\n}\n'
            "nested {\n  a: 1\n}\n"
            "my_enum: MY_TWO\n"
        )

    def test_scalars(expect, pool):
        text = r'double: -inf float: 0.1 bool: true string: "a\"b\n" bytes: "\001z"'
        message = parse(pool, "test.Scalars", text)
        expect(message.to_text_format(indent=None)) == text

    def test_unknown_enum_number(expect, pool):
        message = DynamicMessage.decode(pool.get_message_by_name("test.ComplexType"), bytes.fromhex("28 07"))
        expect(message.to_text_format()) == "my_enum: 7\n"

    def test_extensions_and_groups(expect, pool):
        message = parse(pool, "test2.Extendable", "MyGroup { x: 3 } [test2.ext_list]: [1, 2]")
        expect(message.to_text_format(indent=None)) == "MyGroup { x: 3 } [test2.ext_list]: 1 [test2.ext_list]: 2"

    def test_unknown_fields_are_skipped(expect, pool):
        data = bytes.fromhex("08 05 18 96 01")
        message = DynamicMessage.decode(pool.get_message_by_name("test.Simple"), data)
        expect(message.to_text_format()) == "a: 5\n"

    def test_round_trip(expect, pool):
        descriptor = pool.get_message_by_name("test.ComplexType")
        text = 'string_map { key: "k" value { int32: 1 string: "s" } } nested_list { b: "x" } enum_list: MY_ONE'
        message = DynamicMessage.parse_text_format(descriptor, text)
        expect(DynamicMessage.parse_text_format(descriptor, message.to_text_format())) == message
