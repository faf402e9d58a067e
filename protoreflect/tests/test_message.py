"""Tests for dynamic messages"""

# pylint: disable=redefined-outer-name,unused-variable,expression-not-assigned,singleton-comparison

import pytest
from pytest import raises

from protoreflect.dynamic import DynamicMessage, UnknownField, Value
from protoreflect.wire import WireType


@pytest.fixture
def simple(pool):
    return DynamicMessage(pool.get_message_by_name("test.Simple"))


@pytest.fixture
def complex_message(pool):
    return DynamicMessage(pool.get_message_by_name("test.ComplexType"))


def describe_fields():
    def test_get_unset_returns_default(expect, simple):
        expect(simple.get_field_by_name("a")) == Value.i32(0)
        expect(simple.get_field_by_name("b")) == Value.string("")
        expect(simple.has_field_by_name("a")) == False

    def test_set_and_get(expect, simple):
        simple.set_field_by_name("a", Value.i32(5))
        simple.set_field_by_number(2, Value.string("hi"))
        expect(simple.get_field_by_number(1)) == Value.i32(5)
        expect(simple.get_field_by_name("b")) == Value.string("hi")
        expect(simple.has_field_by_name("a")) == True

    def test_set_invalid_value(expect, simple):
        simple.set_field_by_name("a", Value.i32(5))
        with raises(TypeError):
            simple.set_field_by_name("a", Value.string("five"))
        with raises(TypeError):
            simple.set_field_by_name("a", 5)
        expect(simple.get_field_by_name("a")) == Value.i32(5)

    def test_clear(expect, simple):
        simple.set_field_by_name("a", Value.i32(5))
        simple.clear_field_by_name("a")
        expect(simple.has_field_by_name("a")) == False
        simple.set_field_by_name("b", Value.string("x"))
        simple.add_unknown_field(UnknownField(9, WireType.VARINT, b"\x48\x01"))
        simple.clear()
        expect(list(simple.fields())) == []
        expect(simple.unknown_fields()) == ()

    def test_unknown_names_and_numbers(expect, simple):
        with raises(KeyError):
            simple.get_field_by_name("missing")
        with raises(KeyError):
            simple.set_field_by_number(99, Value.i32(1))

    def test_field_of_another_message(expect, simple, complex_message):
        other = complex_message.descriptor.get_field_by_name("oneof_int")
        with raises(ValueError):
            simple.get_field(other)

    def test_implicit_presence(expect, simple):
        simple.set_field_by_name("a", Value.i32(0))
        expect(simple.has_field_by_name("a")) == False
        expect(list(simple.fields())) == []

    def test_explicit_presence(expect, complex_message):
        complex_message.set_field_by_name("optional_int", Value.i32(0))
        expect(complex_message.has_field_by_name("optional_int")) == True
        complex_message.set_field_by_name("nested", Value.default_for(complex_message.descriptor.get_field(3)))
        expect(complex_message.has_field_by_name("nested")) == True

    def test_proto2_presence(expect, pool):
        message = DynamicMessage(pool.get_message_by_name("test2.Extendable"))
        expect(message.get_field_by_name("with_default")) == Value.i32(7)
        expect(message.has_field_by_name("with_default")) == False
        message.set_field_by_name("with_default", Value.i32(7))
        expect(message.has_field_by_name("with_default")) == True

    def test_fields_in_number_order(expect, simple):
        simple.set_field_by_name("b", Value.string("x"))
        simple.set_field_by_name("a", Value.i32(1))
        expect([field.name for field, _ in simple.fields()]) == ["a", "b"]


def describe_oneofs():
    def test_setting_a_member_clears_the_others(expect, complex_message):
        complex_message.set_field_by_name("oneof_int", Value.i32(1))
        complex_message.set_field_by_name("oneof_string", Value.string("x"))
        expect(complex_message.has_field_by_name("oneof_int")) == False
        expect(complex_message.get_field_by_name("oneof_string")) == Value.string("x")

    def test_zero_member_is_set(expect, complex_message):
        complex_message.set_field_by_name("oneof_int", Value.i32(0))
        expect(complex_message.has_field_by_name("oneof_int")) == True


def describe_mutable_access():
    def test_list_append(expect, complex_message):
        complex_message.get_field_by_name_mut("enum_list").data.append(Value.enum_number(1))
        expect(complex_message.get_field_by_name("enum_list")) == Value.list_([Value.enum_number(1)])

    def test_map_insert(expect, complex_message):
        complex_message.get_field_by_name_mut("int_map").data[Value.i32(1)] = Value.string("a")
        expect(complex_message.has_field_by_name("int_map")) == True

    def test_nested_message(expect, complex_message):
        nested = complex_message.get_field_by_name_mut("nested").as_message()
        nested.set_field_by_name("a", Value.i32(3))
        expect(complex_message.get_field_by_name("nested").as_message().get_field_by_name("a")) == Value.i32(3)

    def test_get_field_does_not_store(expect, complex_message):
        complex_message.get_field_by_name("nested").as_message().set_field_by_name("a", Value.i32(3))
        expect(complex_message.has_field_by_name("nested")) == False


def describe_extensions():
    def test_set_and_get(expect, pool):
        message = DynamicMessage(pool.get_message_by_name("test2.Extendable"))
        ext = pool.get_extension_by_name("test2.ext_int")
        expect(message.has_extension(ext)) == False
        expect(message.get_extension(ext)) == Value.i32(0)
        message.set_extension(ext, Value.i32(42))
        expect(message.has_extension(ext)) == True
        expect(list(message.extensions())) == [(ext, Value.i32(42))]
        message.clear_extension(ext)
        expect(message.has_extension(ext)) == False

    def test_repeated_extension(expect, pool):
        message = DynamicMessage(pool.get_message_by_name("test2.Extendable"))
        ext = pool.get_extension_by_name("test2.ext_list")
        message.get_extension_mut(ext).data.extend([Value.i32(1), Value.i32(2)])
        expect(message.get_extension(ext).as_list()) == [Value.i32(1), Value.i32(2)]

    def test_extension_of_another_message(expect, pool, simple):
        with raises(ValueError):
            simple.set_extension(pool.get_extension_by_name("test2.ext_int"), Value.i32(1))

    def test_fields_and_extensions_together(expect, pool):
        message = DynamicMessage(pool.get_message_by_name("test2.Extendable"))
        message.set_extension(pool.get_extension_by_name("test2.ext_string"), Value.string("x"))
        message.set_field_by_name("base", Value.i32(1))
        expect([field.number for field, _ in message.set_fields_and_extensions()]) == [1, 101]


def describe_equality():
    def test_equal_messages(expect, pool):
        one = DynamicMessage(pool.get_message_by_name("test.Simple"))
        two = DynamicMessage(pool.get_message_by_name("test.Simple"))
        one.set_field_by_name("a", Value.i32(1))
        expect(one == two) == False
        two.set_field_by_name("a", Value.i32(1))
        expect(one == two) == True

    def test_default_values_compare_as_unset(expect, pool):
        one = DynamicMessage(pool.get_message_by_name("test.Simple"))
        two = DynamicMessage(pool.get_message_by_name("test.Simple"))
        one.set_field_by_name("a", Value.i32(0))
        expect(one == two) == True

    def test_different_types(expect, pool):
        one = DynamicMessage(pool.get_message_by_name("test.Simple"))
        two = DynamicMessage(pool.get_message_by_name("test.NameTest"))
        expect(one == two) == False

    def test_not_hashable(expect, simple):
        with raises(TypeError):
            hash(simple)

    def test_repr(expect, simple):
        simple.set_field_by_name("a", Value.i32(5))
        expect(repr(simple)) == "DynamicMessage(test.Simple, a=Value.i32(5))"
