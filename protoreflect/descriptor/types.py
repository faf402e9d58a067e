"""Read-only views over the entries of a :class:`DescriptorPool`.

Views are created and linked by the pool; they are never constructed
directly. Every cross reference (field type, containing oneof, map entry,
extendee) points at the shared view object inside the same pool, so
recursive message types are represented without copying.
"""

import math
import struct
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from ..escaping import unescape
from ..wire import PACKABLE_TYPES, SCALAR_WIRE_TYPES, WireType
from .proto import (
    DescriptorProto,
    EnumDescriptorProto,
    EnumValueDescriptorProto,
    FieldDescriptorProto,
    FieldLabel,
    FieldType,
    FileDescriptorProto,
    MethodDescriptorProto,
    OneofDescriptorProto,
    ServiceDescriptorProto,
)

if TYPE_CHECKING:
    from .pool import DescriptorPool


class DescriptorError(RuntimeError):
    """Raised when a descriptor pool cannot be built."""


class Kind(StrEnum):
    """The declared type of a field's values."""

    DOUBLE = "double"
    FLOAT = "float"
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"
    MESSAGE = "message"
    ENUM = "enum"

    @classmethod
    def from_field_type(cls, field_type: int) -> "Kind":
        if field_type in (FieldType.MESSAGE, FieldType.GROUP):
            return cls.MESSAGE
        return cls(FieldType(field_type).name.lower())

    @property
    def wire_type(self) -> WireType:
        return SCALAR_WIRE_TYPES.get(self.value, WireType.LENGTH_DELIMITED)

    @property
    def is_packable(self) -> bool:
        return self.value in PACKABLE_TYPES


INTEGER_KINDS = frozenset(
    {
        Kind.INT32,
        Kind.INT64,
        Kind.UINT32,
        Kind.UINT64,
        Kind.SINT32,
        Kind.SINT64,
        Kind.FIXED32,
        Kind.FIXED64,
        Kind.SFIXED32,
        Kind.SFIXED64,
    }
)
FLOAT_KINDS = frozenset({Kind.FLOAT, Kind.DOUBLE})

_INTEGER_RANGES = {
    Kind.INT32: (-(2**31), 2**31 - 1),
    Kind.SINT32: (-(2**31), 2**31 - 1),
    Kind.SFIXED32: (-(2**31), 2**31 - 1),
    Kind.INT64: (-(2**63), 2**63 - 1),
    Kind.SINT64: (-(2**63), 2**63 - 1),
    Kind.SFIXED64: (-(2**63), 2**63 - 1),
    Kind.UINT32: (0, 2**32 - 1),
    Kind.FIXED32: (0, 2**32 - 1),
    Kind.UINT64: (0, 2**64 - 1),
    Kind.FIXED64: (0, 2**64 - 1),
}

# Valid map key kinds
MAP_KEY_KINDS = INTEGER_KINDS | {Kind.BOOL, Kind.STRING}


class Cardinality(StrEnum):
    OPTIONAL = "optional"
    REQUIRED = "required"
    REPEATED = "repeated"


def to_json_name(name: str) -> str:
    """Derive the lowerCamelCase JSON name of a field, as protoc does."""
    out = []
    capitalize_next = False
    for ch in name:
        if ch == "_":
            capitalize_next = True
        elif capitalize_next:
            out.append(ch.upper())
            capitalize_next = False
        else:
            out.append(ch)
    return "".join(out)


def _join(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


class FileDescriptor:
    """A single schema file in a pool."""

    __slots__ = (
        "_pool",
        "_proto",
        "_dependencies",
        "_messages",
        "_enums",
        "_extensions",
        "_services",
    )

    def __init__(self, pool: "DescriptorPool", proto: FileDescriptorProto) -> None:
        self._pool = pool
        self._proto = proto
        self._dependencies: tuple[FileDescriptor, ...] = ()
        self._messages: list[MessageDescriptor] = []
        self._enums: list[EnumDescriptor] = []
        self._extensions: list[ExtensionDescriptor] = []
        self._services: list[ServiceDescriptor] = []

    def __repr__(self) -> str:
        return f"<FileDescriptor {self.name}>"

    @property
    def parent_pool(self) -> "DescriptorPool":
        return self._pool

    @property
    def name(self) -> str:
        return self._proto.name or ""

    @property
    def package(self) -> str:
        return self._proto.package or ""

    @property
    def syntax(self) -> str:
        """Either "proto2" or "proto3"."""
        return self._proto.syntax or "proto2"

    @property
    def is_proto3(self) -> bool:
        return self.syntax == "proto3"

    @property
    def dependencies(self) -> tuple["FileDescriptor", ...]:
        return self._dependencies

    @property
    def messages(self) -> tuple["MessageDescriptor", ...]:
        """Top-level messages, in declaration order."""
        return tuple(self._messages)

    @property
    def enums(self) -> tuple["EnumDescriptor", ...]:
        return tuple(self._enums)

    @property
    def extensions(self) -> tuple["ExtensionDescriptor", ...]:
        return tuple(self._extensions)

    @property
    def services(self) -> tuple["ServiceDescriptor", ...]:
        return tuple(self._services)

    @property
    def file_descriptor_proto(self) -> FileDescriptorProto:
        return self._proto


class MessageDescriptor:
    """A message type in a pool."""

    __slots__ = (
        "_file",
        "_parent",
        "_proto",
        "_full_name",
        "_fields",
        "_fields_by_number",
        "_fields_by_name",
        "_fields_by_json_name",
        "_oneofs",
        "_messages",
        "_enums",
        "_extensions",
    )

    def __init__(
        self,
        file: FileDescriptor,
        parent: "MessageDescriptor | None",
        proto: DescriptorProto,
        full_name: str,
    ) -> None:
        self._file = file
        self._parent = parent
        self._proto = proto
        self._full_name = full_name
        self._fields: list[FieldDescriptor] = []
        self._fields_by_number: dict[int, FieldDescriptor] = {}
        self._fields_by_name: dict[str, FieldDescriptor] = {}
        self._fields_by_json_name: dict[str, FieldDescriptor] = {}
        self._oneofs: list[OneofDescriptor] = []
        self._messages: list[MessageDescriptor] = []
        self._enums: list[EnumDescriptor] = []
        self._extensions: list[ExtensionDescriptor] = []

    def __repr__(self) -> str:
        return f"<MessageDescriptor {self._full_name}>"

    def _add_field(self, field: "FieldDescriptor") -> None:
        self._fields.append(field)
        self._fields_by_number[field.number] = field
        self._fields_by_name[field.name] = field
        self._fields_by_json_name.setdefault(field.json_name, field)

    @property
    def parent_pool(self) -> "DescriptorPool":
        return self._file.parent_pool

    @property
    def parent_file(self) -> FileDescriptor:
        return self._file

    @property
    def parent_message(self) -> "MessageDescriptor | None":
        return self._parent

    @property
    def name(self) -> str:
        return self._proto.name or ""

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def package_name(self) -> str:
        return self._file.package

    @property
    def descriptor_proto(self) -> DescriptorProto:
        return self._proto

    @property
    def fields(self) -> tuple["FieldDescriptor", ...]:
        """Fields in declaration order."""
        return tuple(self._fields)

    def get_field(self, number: int) -> "FieldDescriptor | None":
        return self._fields_by_number.get(number)

    def get_field_by_name(self, name: str) -> "FieldDescriptor | None":
        return self._fields_by_name.get(name)

    def get_field_by_json_name(self, json_name: str) -> "FieldDescriptor | None":
        return self._fields_by_json_name.get(json_name)

    @property
    def oneofs(self) -> tuple["OneofDescriptor", ...]:
        return tuple(self._oneofs)

    @property
    def child_messages(self) -> tuple["MessageDescriptor", ...]:
        return tuple(self._messages)

    @property
    def child_enums(self) -> tuple["EnumDescriptor", ...]:
        return tuple(self._enums)

    @property
    def child_extensions(self) -> tuple["ExtensionDescriptor", ...]:
        """Extensions declared lexically inside this message."""
        return tuple(self._extensions)

    @property
    def extensions(self) -> tuple["ExtensionDescriptor", ...]:
        """All extensions in the pool that extend this message."""
        return self.parent_pool.extension_registry.extensions_of(self._full_name)

    def get_extension(self, number: int) -> "ExtensionDescriptor | None":
        return self.parent_pool.extension_registry.get(self._full_name, number)

    def get_extension_by_json_name(self, json_name: str) -> "ExtensionDescriptor | None":
        return self.parent_pool.extension_registry.get_by_json_name(self._full_name, json_name)

    @property
    def is_map_entry(self) -> bool:
        options = self._proto.options
        return bool(options and options.map_entry)

    @property
    def map_entry_key_field(self) -> "FieldDescriptor":
        if not self.is_map_entry:
            raise TypeError(f"{self._full_name} is not a map entry")
        return self._fields_by_number[1]

    @property
    def map_entry_value_field(self) -> "FieldDescriptor":
        if not self.is_map_entry:
            raise TypeError(f"{self._full_name} is not a map entry")
        return self._fields_by_number[2]

    @property
    def extension_ranges(self) -> tuple[range, ...]:
        return tuple(range(r.start or 0, r.end or 0) for r in self._proto.extension_range)

    @property
    def reserved_ranges(self) -> tuple[range, ...]:
        return tuple(range(r.start or 0, r.end or 0) for r in self._proto.reserved_range)

    @property
    def reserved_names(self) -> tuple[str, ...]:
        return tuple(self._proto.reserved_name)

    def is_extension_number(self, number: int) -> bool:
        return any(number in r for r in self.extension_ranges)


class FieldDescriptor:
    """A field of a message type."""

    __slots__ = (
        "_file",
        "_parent",
        "_proto",
        "_full_name",
        "_json_name",
        "_kind",
        "_message_type",
        "_enum_type",
        "_oneof",
        "_default",
    )

    def __init__(
        self,
        file: FileDescriptor,
        parent: MessageDescriptor | None,
        proto: FieldDescriptorProto,
        full_name: str,
    ) -> None:
        self._file = file
        self._parent = parent
        self._proto = proto
        self._full_name = full_name
        self._json_name = proto.json_name if proto.json_name is not None else to_json_name(proto.name or "")
        self._kind: Kind | None = None
        self._message_type: MessageDescriptor | None = None
        self._enum_type: EnumDescriptor | None = None
        self._oneof: OneofDescriptor | None = None
        self._default: Any = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._full_name}>"

    @property
    def parent_file(self) -> FileDescriptor:
        return self._file

    @property
    def parent_message(self) -> MessageDescriptor | None:
        return self._parent

    @property
    def containing_message(self) -> MessageDescriptor:
        """The message whose field-number space this field belongs to."""
        assert self._parent is not None
        return self._parent

    @property
    def is_extension(self) -> bool:
        return False

    @property
    def name(self) -> str:
        return self._proto.name or ""

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def json_name(self) -> str:
        return self._json_name

    @property
    def number(self) -> int:
        return self._proto.number or 0

    @property
    def field_descriptor_proto(self) -> FieldDescriptorProto:
        return self._proto

    @property
    def kind(self) -> Kind:
        assert self._kind is not None
        return self._kind

    @property
    def message_type(self) -> MessageDescriptor | None:
        return self._message_type

    @property
    def enum_type(self) -> "EnumDescriptor | None":
        return self._enum_type

    @property
    def cardinality(self) -> Cardinality:
        label = self._proto.label
        if label == FieldLabel.REPEATED:
            return Cardinality.REPEATED
        if label == FieldLabel.REQUIRED:
            return Cardinality.REQUIRED
        return Cardinality.OPTIONAL

    @property
    def is_list(self) -> bool:
        """True for repeated fields, including maps."""
        return self.cardinality == Cardinality.REPEATED

    @property
    def is_map(self) -> bool:
        return self.is_list and self._message_type is not None and self._message_type.is_map_entry

    @property
    def is_group(self) -> bool:
        return self._proto.type == FieldType.GROUP

    @property
    def is_packed(self) -> bool:
        if not self.is_list or not self.kind.is_packable:
            return False
        options = self._proto.options
        if options is not None and options.packed is not None:
            return options.packed
        return self._file.is_proto3

    @property
    def supports_presence(self) -> bool:
        """Whether "set to the default" is distinguishable from "unset"."""
        if self.is_list:
            return False
        if self._oneof is not None or self.kind == Kind.MESSAGE:
            return True
        return not self._file.is_proto3

    @property
    def containing_oneof(self) -> "OneofDescriptor | None":
        return self._oneof

    @property
    def default_value(self) -> Any:
        """The Python value an unset singular scalar or enum field reads as.

        None for message, list and map fields.
        """
        return self._default

    def _resolve_default(self) -> None:
        if self.is_list or self.kind == Kind.MESSAGE:
            self._default = None
            return
        text = self._proto.default_value
        if text is None:
            self._default = _zero_value(self.kind, self._enum_type)
            return
        try:
            self._default = _parse_default(self.kind, text, self._enum_type)
        except ValueError as exc:
            raise DescriptorError(f"Invalid default value {text!r} for field {self._full_name}: {exc}") from exc


class ExtensionDescriptor(FieldDescriptor):
    """A field declared outside the message it extends."""

    __slots__ = ("_extendee",)

    def __init__(
        self,
        file: FileDescriptor,
        parent: MessageDescriptor | None,
        proto: FieldDescriptorProto,
        full_name: str,
    ) -> None:
        super().__init__(file, parent, proto, full_name)
        self._json_name = f"[{full_name}]"
        self._extendee: MessageDescriptor | None = None

    @property
    def is_extension(self) -> bool:
        return True

    @property
    def containing_message(self) -> MessageDescriptor:
        """The extended message type."""
        assert self._extendee is not None
        return self._extendee

    @property
    def supports_presence(self) -> bool:
        return not self.is_list


class OneofDescriptor:
    """A group of fields of which at most one is set."""

    __slots__ = ("_parent", "_proto", "_index", "_fields")

    def __init__(self, parent: MessageDescriptor, proto: OneofDescriptorProto, index: int) -> None:
        self._parent = parent
        self._proto = proto
        self._index = index
        self._fields: list[FieldDescriptor] = []

    def __repr__(self) -> str:
        return f"<OneofDescriptor {self.full_name}>"

    @property
    def parent_message(self) -> MessageDescriptor:
        return self._parent

    @property
    def name(self) -> str:
        return self._proto.name or ""

    @property
    def full_name(self) -> str:
        return _join(self._parent.full_name, self.name)

    @property
    def index(self) -> int:
        return self._index

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(self._fields)

    @property
    def is_synthetic(self) -> bool:
        """True for the implicit oneof wrapping a proto3 ``optional`` field."""
        return len(self._fields) == 1 and bool(self._fields[0].field_descriptor_proto.proto3_optional)


class EnumDescriptor:
    """An enum type in a pool."""

    __slots__ = ("_file", "_parent", "_proto", "_full_name", "_values", "_by_number", "_by_name")

    def __init__(
        self,
        file: FileDescriptor,
        parent: MessageDescriptor | None,
        proto: EnumDescriptorProto,
        full_name: str,
    ) -> None:
        self._file = file
        self._parent = parent
        self._proto = proto
        self._full_name = full_name
        self._values: list[EnumValueDescriptor] = []
        self._by_number: dict[int, EnumValueDescriptor] = {}
        self._by_name: dict[str, EnumValueDescriptor] = {}

    def __repr__(self) -> str:
        return f"<EnumDescriptor {self._full_name}>"

    def _add_value(self, value: "EnumValueDescriptor") -> None:
        self._values.append(value)
        # First declared name wins for aliased numbers
        self._by_number.setdefault(value.number, value)
        self._by_name[value.name] = value

    @property
    def parent_pool(self) -> "DescriptorPool":
        return self._file.parent_pool

    @property
    def parent_file(self) -> FileDescriptor:
        return self._file

    @property
    def parent_message(self) -> MessageDescriptor | None:
        return self._parent

    @property
    def name(self) -> str:
        return self._proto.name or ""

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def package_name(self) -> str:
        return self._file.package

    @property
    def enum_descriptor_proto(self) -> EnumDescriptorProto:
        return self._proto

    @property
    def values(self) -> tuple["EnumValueDescriptor", ...]:
        return tuple(self._values)

    def get_value(self, number: int) -> "EnumValueDescriptor | None":
        return self._by_number.get(number)

    def get_value_by_name(self, name: str) -> "EnumValueDescriptor | None":
        return self._by_name.get(name)

    @property
    def default_value(self) -> "EnumValueDescriptor":
        return self._values[0]

    @property
    def allows_alias(self) -> bool:
        options = self._proto.options
        return bool(options and options.allow_alias)

    @property
    def reserved_ranges(self) -> tuple[range, ...]:
        # Enum reserved ranges are inclusive
        return tuple(range(r.start or 0, (r.end or 0) + 1) for r in self._proto.reserved_range)

    @property
    def reserved_names(self) -> tuple[str, ...]:
        return tuple(self._proto.reserved_name)


class EnumValueDescriptor:
    __slots__ = ("_enum", "_proto", "_index")

    def __init__(self, enum: EnumDescriptor, proto: EnumValueDescriptorProto, index: int) -> None:
        self._enum = enum
        self._proto = proto
        self._index = index

    def __repr__(self) -> str:
        return f"<EnumValueDescriptor {self.full_name}={self.number}>"

    @property
    def parent_enum(self) -> EnumDescriptor:
        return self._enum

    @property
    def name(self) -> str:
        return self._proto.name or ""

    @property
    def full_name(self) -> str:
        # Enum values are siblings of their enum type, not children
        scope, _, _ = self._enum.full_name.rpartition(".")
        return _join(scope, self.name)

    @property
    def number(self) -> int:
        return self._proto.number or 0

    @property
    def index(self) -> int:
        return self._index


class ServiceDescriptor:
    __slots__ = ("_file", "_proto", "_full_name", "_methods")

    def __init__(self, file: FileDescriptor, proto: ServiceDescriptorProto, full_name: str) -> None:
        self._file = file
        self._proto = proto
        self._full_name = full_name
        self._methods: list[MethodDescriptor] = []

    def __repr__(self) -> str:
        return f"<ServiceDescriptor {self._full_name}>"

    @property
    def parent_pool(self) -> "DescriptorPool":
        return self._file.parent_pool

    @property
    def parent_file(self) -> FileDescriptor:
        return self._file

    @property
    def name(self) -> str:
        return self._proto.name or ""

    @property
    def full_name(self) -> str:
        return self._full_name

    @property
    def service_descriptor_proto(self) -> ServiceDescriptorProto:
        return self._proto

    @property
    def methods(self) -> tuple["MethodDescriptor", ...]:
        return tuple(self._methods)

    def get_method_by_name(self, name: str) -> "MethodDescriptor | None":
        for method in self._methods:
            if method.name == name:
                return method
        return None


class MethodDescriptor:
    __slots__ = ("_service", "_proto", "_input", "_output")

    def __init__(
        self,
        service: ServiceDescriptor,
        proto: MethodDescriptorProto,
        input: MessageDescriptor,
        output: MessageDescriptor,
    ) -> None:
        self._service = service
        self._proto = proto
        self._input = input
        self._output = output

    def __repr__(self) -> str:
        return f"<MethodDescriptor {self.full_name}>"

    @property
    def parent_service(self) -> ServiceDescriptor:
        return self._service

    @property
    def name(self) -> str:
        return self._proto.name or ""

    @property
    def full_name(self) -> str:
        return _join(self._service.full_name, self.name)

    @property
    def input(self) -> MessageDescriptor:
        return self._input

    @property
    def output(self) -> MessageDescriptor:
        return self._output

    @property
    def is_client_streaming(self) -> bool:
        return bool(self._proto.client_streaming)

    @property
    def is_server_streaming(self) -> bool:
        return bool(self._proto.server_streaming)

    @property
    def method_descriptor_proto(self) -> MethodDescriptorProto:
        return self._proto


def _zero_value(kind: Kind, enum_type: EnumDescriptor | None) -> Any:
    if kind in FLOAT_KINDS:
        return 0.0
    if kind in INTEGER_KINDS:
        return 0
    if kind == Kind.BOOL:
        return False
    if kind == Kind.STRING:
        return ""
    if kind == Kind.BYTES:
        return b""
    if kind == Kind.ENUM:
        assert enum_type is not None
        return enum_type.default_value.number
    return None


def _parse_default(kind: Kind, text: str, enum_type: EnumDescriptor | None) -> Any:
    if kind in FLOAT_KINDS:
        lowered = text.lower()
        if lowered in ("inf", "+inf", "infinity"):
            return math.inf
        if lowered in ("-inf", "-infinity"):
            return -math.inf
        number = float(text)
        if kind == Kind.FLOAT and math.isfinite(number):
            try:
                struct.pack("<f", number)
            except OverflowError as exc:
                raise ValueError(f"{number} is out of range for float") from exc
        return number
    if kind in INTEGER_KINDS:
        number = int(text, 0)
        low, high = _INTEGER_RANGES[kind]
        if not low <= number <= high:
            raise ValueError(f"{number} is out of range for {kind}")
        return number
    if kind == Kind.BOOL:
        if text not in ("true", "false"):
            raise ValueError("expected true or false")
        return text == "true"
    if kind == Kind.STRING:
        return text
    if kind == Kind.BYTES:
        return unescape(text)
    if kind == Kind.ENUM:
        assert enum_type is not None
        value = enum_type.get_value_by_name(text)
        if value is None:
            raise ValueError(f"no value named {text} in {enum_type.full_name}")
        return value.number
    raise ValueError(f"fields of kind {kind} cannot declare a default")
