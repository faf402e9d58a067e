"""Protobuf text format, parsed with Lark."""

import math
import os
import re
from dataclasses import dataclass
from typing import Any

from lark import Lark, Token
from lark.exceptions import LarkError, VisitError
from lark.visitors import Transformer

from ..descriptor.types import FLOAT_KINDS, INTEGER_KINDS, FieldDescriptor, Kind, MessageDescriptor, OneofDescriptor
from ..escaping import escape_bytes, escape_text, unescape
from ..wire import RECURSION_LIMIT
from .json_format import format_float
from .message import DynamicMessage
from .value import Value, ValueType

_g_parser: Lark | None = None

_OCTAL_PATTERN = re.compile(r"[-+]?0[0-7]+")
_HEX_PATTERN = re.compile(r"[-+]?0[xX][0-9a-fA-F]+")
_INTEGER_PATTERN = re.compile(r"[-+]?[0-9]+")

_TRUE = ("true", "True", "t")
_FALSE = ("false", "False", "f")
_INFINITY = ("inf", "infinity")


class ParseError(RuntimeError):
    """Raised when text format input cannot be parsed into a message."""


@dataclass
class _Scalar:
    kind: str  # "string", "number" or "identifier"
    value: Any


@dataclass
class _Block:
    fields: list["_Field"]


@dataclass
class _List:
    items: list[Any]


@dataclass
class _Field:
    name: str
    is_extension: bool
    has_colon: bool
    value: Any
    line: int | None = None


@dataclass
class _Name:
    value: str
    is_extension: bool
    line: int | None = None


class TreeTransformer(Transformer):
    """Transform the parse tree into plain field records."""

    def start(self, args: list[Any]) -> list[_Field]:
        return list(args)

    def field(self, args: list[Any]) -> _Field:
        name = args[0]
        has_colon = isinstance(args[1], Token) and args[1].type == "COLON"
        return _Field(
            name=name.value,
            is_extension=name.is_extension,
            has_colon=has_colon,
            value=args[-1],
            line=name.line,
        )

    def field_name(self, args: list[Any]) -> _Name:
        return _Name(value=str(args[0]), is_extension=False, line=args[0].line)

    def extension_name(self, args: list[Any]) -> _Name:
        return _Name(value=".".join(str(part) for part in args), is_extension=True, line=args[0].line)

    def block(self, args: list[Any]) -> _Block:
        return _Block(fields=list(args))

    def list_value(self, args: list[Any]) -> _List:
        return _List(items=list(args))

    def string(self, args: list[Any]) -> _Scalar:
        return _Scalar(kind="string", value=b"".join(unescape(str(token)[1:-1]) for token in args))

    def number(self, args: list[Any]) -> _Scalar:
        return _Scalar(kind="number", value=str(args[0]))

    def identifier(self, args: list[Any]) -> _Scalar:
        return _Scalar(kind="identifier", value=str(args[0]))

    def neg_identifier(self, args: list[Any]) -> _Scalar:
        return _Scalar(kind="identifier", value=f"-{args[0]}")


def _get_parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/textformat.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_parser = Lark(grammar, parser="lalr")
    return _g_parser


def parse_text_format(descriptor: MessageDescriptor, text: str) -> DynamicMessage:
    """Parse text format input into a new message of the given type."""
    try:
        tree = _get_parser().parse(text)
        fields = TreeTransformer().transform(tree)
    except VisitError as exc:
        raise ParseError(f"Invalid text format: {exc.orig_exc}") from exc
    except LarkError as exc:
        raise ParseError(f"Invalid text format: {exc}") from exc
    except RecursionError as exc:
        raise ParseError("Recursion limit exceeded") from exc

    message = DynamicMessage(descriptor)
    _merge_fields(message, fields, 0)
    return message


def _find_field(descriptor: MessageDescriptor, entry: _Field) -> FieldDescriptor:
    if entry.is_extension:
        extension = descriptor.parent_pool.get_extension_by_name(entry.name)
        if extension is None or extension.containing_message is not descriptor:
            raise ParseError(f"Unknown extension [{entry.name}] of {descriptor.full_name}")
        return extension

    field = descriptor.get_field_by_name(entry.name)
    if field is None:
        # Groups are written using their type name
        for candidate in descriptor.fields:
            if candidate.is_group and candidate.message_type is not None and candidate.message_type.name == entry.name:
                return candidate
        raise ParseError(f"Unknown field {entry.name!r} in {descriptor.full_name} (line {entry.line})")
    return field


def _merge_fields(message: DynamicMessage, entries: list[_Field], depth: int) -> None:
    if depth > RECURSION_LIMIT:
        raise ParseError("Recursion limit exceeded")
    descriptor = message.descriptor
    seen: set[FieldDescriptor] = set()
    oneofs: dict[OneofDescriptor, FieldDescriptor] = {}

    for entry in entries:
        field = _find_field(descriptor, entry)

        if isinstance(entry.value, _List):
            if not field.is_list:
                raise ParseError(f"Field {field.full_name} is not repeated and cannot take a list")
            items = entry.value.items
        else:
            items = [entry.value]

        if not field.is_list:
            if field in seen:
                raise ParseError(f"Non-repeated field {field.full_name} is given more than once")
            seen.add(field)
            oneof = field.containing_oneof
            if oneof is not None:
                other = oneofs.get(oneof)
                if other is not None:
                    raise ParseError(f"Fields {other.name} and {field.name} of oneof {oneof.name} are both set")
                oneofs[oneof] = field

        for item in items:
            _merge_item(message, field, entry, item, depth)


def _merge_item(message: DynamicMessage, field: FieldDescriptor, entry: _Field, item: Any, depth: int) -> None:
    if field.kind == Kind.MESSAGE:
        if not isinstance(item, _Block):
            raise ParseError(f"Expected a {{ ... }} block for field {field.full_name}")
        assert field.message_type is not None
        sub = DynamicMessage(field.message_type)
        _merge_fields(sub, item.fields, depth + 1)

        if field.is_map:
            key_field = field.message_type.map_entry_key_field
            value_field = field.message_type.map_entry_value_field
            message.get_field_mut(field).data[sub.get_field(key_field)] = sub.get_field(value_field)
        elif field.is_list:
            message.get_field_mut(field).data.append(Value.message(sub))
        else:
            message.set_field(field, Value.message(sub))
        return

    if not entry.has_colon:
        raise ParseError(f"Expected ':' after scalar field {field.name}")
    if not isinstance(item, _Scalar):
        raise ParseError(f"Expected a scalar value for field {field.full_name}")

    try:
        value = _scalar_value(field, item)
    except (ValueError, OverflowError) as exc:
        raise ParseError(f"Invalid value for field {field.full_name}: {exc}") from exc

    if field.is_list:
        message.get_field_mut(field).data.append(value)
    else:
        message.set_field(field, value)


def _parse_integer(text: str) -> int:
    if _HEX_PATTERN.fullmatch(text):
        return int(text, 16)
    if _OCTAL_PATTERN.fullmatch(text):
        return int(text, 8)
    if _INTEGER_PATTERN.fullmatch(text):
        return int(text)
    raise ValueError(f"{text!r} is not an integer")


def _scalar_value(field: FieldDescriptor, item: _Scalar) -> Value:
    kind = field.kind

    if kind in (Kind.STRING, Kind.BYTES):
        if item.kind != "string":
            raise ValueError("expected a quoted string")
        if kind == Kind.BYTES:
            return Value.bytes_(item.value)
        try:
            return Value.string(item.value.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise ValueError("string is not valid UTF-8") from exc

    if item.kind == "string":
        raise ValueError("unexpected quoted string")

    if kind == Kind.ENUM:
        assert field.enum_type is not None
        if item.kind == "identifier":
            enum_value = field.enum_type.get_value_by_name(item.value)
            if enum_value is None:
                raise ValueError(f"no value named {item.value} in {field.enum_type.full_name}")
            return Value.enum_number(enum_value.number)
        return Value.enum_number(_parse_integer(item.value))

    if kind == Kind.BOOL:
        if item.value in _TRUE or item.value == "1":
            return Value.bool_(True)
        if item.value in _FALSE or item.value == "0":
            return Value.bool_(False)
        raise ValueError(f"{item.value!r} is not a boolean")

    if kind in FLOAT_KINDS:
        if item.kind == "identifier":
            negative = item.value.startswith("-")
            word = item.value.lstrip("-").lower()
            if word in _INFINITY:
                number = -math.inf if negative else math.inf
            elif word == "nan":
                number = math.nan
            else:
                raise ValueError(f"{item.value!r} is not a number")
        elif _HEX_PATTERN.fullmatch(item.value):
            number = float(int(item.value, 16))
        else:
            number = float(item.value.rstrip("fF"))
        return Value.from_kind(kind, number)

    assert kind in INTEGER_KINDS
    if item.kind != "number":
        raise ValueError(f"{item.value!r} is not an integer")
    return Value.from_kind(kind, _parse_integer(item.value))


def to_text_format(message: DynamicMessage, indent: int | None = 2) -> str:
    """Render a message in text format.

    Args:
        message: The message to print. Unknown fields are not printed.
        indent: Spaces per nesting level, or None for a single line.
    """
    lines: list[tuple[int, str]] = []
    _print_message(message, lines, 0)
    if indent is None:
        return " ".join(text for _, text in lines)
    return "".join(f"{' ' * (indent * depth)}{text}\n" for depth, text in lines)


def _print_message(message: DynamicMessage, lines: list[tuple[int, str]], depth: int) -> None:
    for field, value in message.set_fields_and_extensions():
        if field.is_extension:
            name = f"[{field.full_name}]"
        elif field.is_group and field.message_type is not None:
            name = field.message_type.name
        else:
            name = field.name

        if field.is_map:
            assert field.message_type is not None
            key_field = field.message_type.map_entry_key_field
            value_field = field.message_type.map_entry_value_field
            for key, item in value.data.items():
                lines.append((depth, f"{name} {{"))
                _print_single(lines, depth + 1, "key", key_field, key)
                _print_single(lines, depth + 1, "value", value_field, item)
                lines.append((depth, "}"))
        elif field.is_list:
            for item in value.data:
                _print_single(lines, depth, name, field, item)
        else:
            _print_single(lines, depth, name, field, value)


def _print_single(lines: list[tuple[int, str]], depth: int, name: str, field: FieldDescriptor, value: Value) -> None:
    if value.type == ValueType.MESSAGE:
        lines.append((depth, f"{name} {{"))
        _print_message(value.data, lines, depth + 1)
        lines.append((depth, "}"))
    else:
        lines.append((depth, f"{name}: {_format_scalar(field, value)}"))


def _format_scalar(field: FieldDescriptor, value: Value) -> str:
    if value.type == ValueType.ENUM:
        enum_value = field.enum_type.get_value(value.data) if field.enum_type is not None else None
        return enum_value.name if enum_value is not None else str(value.data)
    if value.type == ValueType.BOOL:
        return "true" if value.data else "false"
    if value.type == ValueType.STRING:
        return f'"{escape_text(value.data)}"'
    if value.type == ValueType.BYTES:
        return f'"{escape_bytes(value.data)}"'
    if value.type in (ValueType.F32, ValueType.F64):
        if math.isnan(value.data):
            return "nan"
        if math.isinf(value.data):
            return "inf" if value.data > 0 else "-inf"
        return repr(format_float(value.data, value.type))
    return str(value.data)
