"""A message value bound to a descriptor at run time."""

import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Self

from ..descriptor.types import ExtensionDescriptor, FieldDescriptor, MessageDescriptor
from ..wire import WireType
from .value import Value, ValueType

if TYPE_CHECKING:
    from .json_format import DeserializeOptions, SerializeOptions


@dataclass(frozen=True, slots=True)
class UnknownField:
    """A field the descriptor does not declare, kept for re-encoding.

    ``data`` holds the complete encoding of the field, tag included.
    """

    number: int
    wire_type: WireType
    data: bytes


def is_default_value(field: FieldDescriptor, value: Value) -> bool:
    """Whether a stored value equals what the unset field would read as."""
    if value.type in (ValueType.LIST, ValueType.MAP):
        return not value.data
    if value.type == ValueType.MESSAGE:
        return False
    default = field.default_value
    if value.type in (ValueType.F32, ValueType.F64):
        # -0.0 and NaN payloads are distinct from the default
        if math.isnan(value.data) or math.isnan(default):
            return math.isnan(value.data) and math.isnan(default)
        return value.data == default and math.copysign(1.0, value.data) == math.copysign(1.0, default)
    return value.data == default


class DynamicMessage:
    """A protobuf message whose type is known only through its descriptor.

    Fields are read and written as :class:`Value` instances. Setting a member
    of a oneof clears the other members. Fields the descriptor does not know
    about are kept as :class:`UnknownField` entries and written back out by
    :meth:`encode`.
    """

    __slots__ = ("_descriptor", "_fields", "_extensions", "_unknown_fields")

    def __init__(self, descriptor: MessageDescriptor) -> None:
        self._descriptor = descriptor
        self._fields: dict[int, Value] = {}
        self._extensions: dict[ExtensionDescriptor, Value] = {}
        self._unknown_fields: list[UnknownField] = []

    @property
    def descriptor(self) -> MessageDescriptor:
        return self._descriptor

    # Field access

    def _check_field(self, field: FieldDescriptor) -> None:
        if field.containing_message is not self._descriptor:
            raise ValueError(f"Field {field.full_name} does not belong to {self._descriptor.full_name}")

    def _lookup_name(self, name: str) -> FieldDescriptor:
        field = self._descriptor.get_field_by_name(name)
        if field is None:
            raise KeyError(f"No field named {name!r} in {self._descriptor.full_name}")
        return field

    def _lookup_number(self, number: int) -> FieldDescriptor:
        field = self._descriptor.get_field(number)
        if field is None:
            raise KeyError(f"No field numbered {number} in {self._descriptor.full_name}")
        return field

    def _stored(self, field: FieldDescriptor) -> Value | None:
        if isinstance(field, ExtensionDescriptor):
            return self._extensions.get(field)
        return self._fields.get(field.number)

    def _store(self, field: FieldDescriptor, value: Value) -> None:
        if isinstance(field, ExtensionDescriptor):
            self._extensions[field] = value
            return
        oneof = field.containing_oneof
        if oneof is not None:
            for sibling in oneof.fields:
                if sibling is not field:
                    self._fields.pop(sibling.number, None)
        self._fields[field.number] = value

    def has_field(self, field: FieldDescriptor) -> bool:
        """Whether the field is set.

        For fields without explicit presence, a field holding its default
        value (or an empty list or map) counts as unset.
        """
        self._check_field(field)
        value = self._stored(field)
        if value is None:
            return False
        if field.supports_presence:
            return True
        return not is_default_value(field, value)

    def get_field(self, field: FieldDescriptor) -> Value:
        """The field's value, or its default if unset."""
        self._check_field(field)
        value = self._stored(field)
        if value is None:
            return Value.default_for(field)
        return value

    def get_field_mut(self, field: FieldDescriptor) -> Value:
        """The field's stored value, storing the default first if unset.

        Lists, maps and messages in the returned value can be changed in place.
        """
        self._check_field(field)
        value = self._stored(field)
        if value is None:
            value = Value.default_for(field)
            self._store(field, value)
        return value

    def set_field(self, field: FieldDescriptor, value: Value) -> None:
        """Store a value, clearing any other member of the field's oneof.

        Raises:
            TypeError: if the value does not match the field's type; the
                message is left unchanged.
        """
        self._check_field(field)
        if not isinstance(value, Value) or not value.is_valid_for_field(field):
            raise TypeError(f"Invalid value {value!r} for field {field.full_name}")
        self._store(field, value)

    def clear_field(self, field: FieldDescriptor) -> None:
        self._check_field(field)
        if isinstance(field, ExtensionDescriptor):
            self._extensions.pop(field, None)
        else:
            self._fields.pop(field.number, None)

    def has_field_by_name(self, name: str) -> bool:
        return self.has_field(self._lookup_name(name))

    def get_field_by_name(self, name: str) -> Value:
        return self.get_field(self._lookup_name(name))

    def get_field_by_name_mut(self, name: str) -> Value:
        return self.get_field_mut(self._lookup_name(name))

    def set_field_by_name(self, name: str, value: Value) -> None:
        self.set_field(self._lookup_name(name), value)

    def clear_field_by_name(self, name: str) -> None:
        self.clear_field(self._lookup_name(name))

    def has_field_by_number(self, number: int) -> bool:
        return self.has_field(self._lookup_number(number))

    def get_field_by_number(self, number: int) -> Value:
        return self.get_field(self._lookup_number(number))

    def get_field_by_number_mut(self, number: int) -> Value:
        return self.get_field_mut(self._lookup_number(number))

    def set_field_by_number(self, number: int, value: Value) -> None:
        self.set_field(self._lookup_number(number), value)

    def clear_field_by_number(self, number: int) -> None:
        self.clear_field(self._lookup_number(number))

    def clear(self) -> None:
        """Remove every field, extension and unknown field."""
        self._fields.clear()
        self._extensions.clear()
        self._unknown_fields.clear()

    def fields(self) -> Iterator[tuple[FieldDescriptor, Value]]:
        """Iterate the set fields (not extensions) in field-number order."""
        for number in sorted(self._fields):
            field = self._descriptor.get_field(number)
            assert field is not None
            if self.has_field(field):
                yield field, self._fields[number]

    # Extensions

    def has_extension(self, extension: ExtensionDescriptor) -> bool:
        return self.has_field(extension)

    def get_extension(self, extension: ExtensionDescriptor) -> Value:
        return self.get_field(extension)

    def get_extension_mut(self, extension: ExtensionDescriptor) -> Value:
        return self.get_field_mut(extension)

    def set_extension(self, extension: ExtensionDescriptor, value: Value) -> None:
        self.set_field(extension, value)

    def clear_extension(self, extension: ExtensionDescriptor) -> None:
        self.clear_field(extension)

    def extensions(self) -> Iterator[tuple[ExtensionDescriptor, Value]]:
        """Iterate the set extensions in field-number order."""
        for extension in sorted(self._extensions, key=lambda ext: ext.number):
            if self.has_field(extension):
                yield extension, self._extensions[extension]

    def set_fields_and_extensions(self) -> list[tuple[FieldDescriptor, Value]]:
        """Set fields and extensions together, in field-number order."""
        entries: list[tuple[FieldDescriptor, Value]] = [*self.fields(), *self.extensions()]
        entries.sort(key=lambda entry: entry[0].number)
        return entries

    # Unknown fields

    def unknown_fields(self) -> tuple[UnknownField, ...]:
        return tuple(self._unknown_fields)

    def add_unknown_field(self, field: UnknownField) -> None:
        self._unknown_fields.append(field)

    def clear_unknown_fields(self) -> None:
        self._unknown_fields.clear()

    # Codecs

    def encode(self) -> bytes:
        """Encode to protobuf binary."""
        from .binary import encode_message

        return encode_message(self)

    def encode_length_delimited(self) -> bytes:
        """Encode to protobuf binary, prefixed with its length as a varint."""
        from .binary import encode_length_delimited

        return encode_length_delimited(self)

    @classmethod
    def decode(cls, descriptor: MessageDescriptor, data: bytes) -> Self:
        from .binary import decode_message

        return decode_message(descriptor, data)

    @classmethod
    def decode_length_delimited(cls, descriptor: MessageDescriptor, data: bytes) -> tuple[Self, int]:
        """Decode a length-prefixed message; returns it and the bytes consumed."""
        from .binary import decode_length_delimited

        return decode_length_delimited(descriptor, data)

    def merge(self, data: bytes) -> None:
        """Decode binary data into this message, merging with its contents."""
        from .binary import merge_message

        merge_message(self, data)

    def to_json(self, options: "SerializeOptions | None" = None) -> Any:
        """Convert to the canonical JSON mapping, as plain Python objects."""
        from .json_format import to_json

        return to_json(self, options)

    def to_json_string(self, options: "SerializeOptions | None" = None, indent: int | None = None) -> str:
        from .json_format import to_json_string

        return to_json_string(self, options, indent=indent)

    @classmethod
    def from_json(
        cls,
        descriptor: MessageDescriptor,
        data: str | bytes | Any,
        options: "DeserializeOptions | None" = None,
    ) -> Self:
        """Parse canonical JSON, given as text or as already-loaded objects."""
        from .json_format import from_json

        return from_json(descriptor, data, options)

    def to_text_format(self, indent: int | None = 2) -> str:
        from .text_format import to_text_format

        return to_text_format(self, indent=indent)

    @classmethod
    def parse_text_format(cls, descriptor: MessageDescriptor, text: str) -> Self:
        from .text_format import parse_text_format

        return parse_text_format(descriptor, text)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DynamicMessage):
            return NotImplemented
        return (
            self._descriptor is other._descriptor
            and dict(self.fields()) == dict(other.fields())
            and dict(self.extensions()) == dict(other.extensions())
            and self._unknown_fields == other._unknown_fields
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        parts = [self._descriptor.full_name]
        parts.extend(f"{field.name}={value!r}" for field, value in self.fields())
        parts.extend(f"[{ext.full_name}]={value!r}" for ext, value in self.extensions())
        return f"DynamicMessage({', '.join(parts)})"
