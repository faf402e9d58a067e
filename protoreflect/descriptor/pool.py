"""The descriptor pool: an immutable, fully linked schema model.

A pool is built in two phases. The first interns every declared name into a
view object; the second resolves every type reference against the interned
views and validates the result. Once built, the pool never changes; adding
files returns a new pool.
"""

import logging
from collections.abc import Iterable

from ..wire import MAX_FIELD_NUMBER, DecodeError
from .extensions import ExtensionRegistry
from .proto import (
    DescriptorProto,
    EnumDescriptorProto,
    FieldDescriptorProto,
    FieldLabel,
    FileDescriptorProto,
    FileDescriptorSet,
)
from .types import (
    MAP_KEY_KINDS,
    DescriptorError,
    EnumDescriptor,
    EnumValueDescriptor,
    ExtensionDescriptor,
    FieldDescriptor,
    FileDescriptor,
    Kind,
    MessageDescriptor,
    MethodDescriptor,
    OneofDescriptor,
    ServiceDescriptor,
)
from .well_known import well_known_files

logger = logging.getLogger(__name__)

RESERVED_NUMBERS = range(19000, 20000)
SUPPORTED_SYNTAXES = ("", "proto2", "proto3")


def _join(scope: str, name: str) -> str:
    return f"{scope}.{name}" if scope else name


class DescriptorPool:
    """A set of linked schema files.

    Args:
        files: Raw file records. Files may be given in any order. Built-in
            well-known files are added unless a file of the same name is
            supplied.

    Raises:
        DescriptorError: if the files do not form a consistent schema.
    """

    def __init__(self, files: Iterable[FileDescriptorProto] = ()) -> None:
        self._files: dict[str, FileDescriptor] = {}
        self._types: dict[str, MessageDescriptor | EnumDescriptor] = {}
        self._symbols: dict[str, str] = {}
        self._messages: list[MessageDescriptor] = []
        self._enums: list[EnumDescriptor] = []
        self._extensions: dict[str, ExtensionDescriptor] = {}
        self._services: dict[str, ServiceDescriptor] = {}
        self._registry = ExtensionRegistry()
        self._seeded: set[str] = set()

        protos = self._collect(files, self._seeded)
        for proto in protos:
            self._intern_file(proto)
        for file in self._files.values():
            self._link_file(file)
        self._validate()
        self._registry.freeze()

        logger.debug(
            "Built descriptor pool: %d files, %d messages, %d enums, %d extensions",
            len(self._files),
            len(self._messages),
            len(self._enums),
            len(self._extensions),
        )

    @classmethod
    def decode(cls, data: bytes) -> "DescriptorPool":
        """Build a pool from serialized ``FileDescriptorSet`` bytes."""
        return cls(_decode_file_descriptor_set(data))

    @classmethod
    def from_file_descriptor_protos(cls, files: Iterable[FileDescriptorProto]) -> "DescriptorPool":
        return cls(files)

    def add_file_descriptor_set(self, data: bytes) -> "DescriptorPool":
        """Return a new pool with the files of a serialized set added."""
        return self.add_file_descriptor_protos(_decode_file_descriptor_set(data))

    def add_file_descriptor_protos(self, files: Iterable[FileDescriptorProto]) -> "DescriptorPool":
        """Return a new pool with these files added; this pool is unchanged.

        Adding a file identical to one already present has no effect; adding a
        different file under an existing name raises DescriptorError.
        """
        existing = [file.file_descriptor_proto for file in self._files.values() if file.name not in self._seeded]
        return DescriptorPool([*existing, *files])

    def encode(self) -> bytes:
        """Serialize every file in the pool as a ``FileDescriptorSet``.

        Files are written from their parsed records, so anything the records do
        not model (custom options, ``source_code_info``) is not included.
        """
        return FileDescriptorSet(file=[file.file_descriptor_proto for file in self._files.values()]).pack()

    @property
    def extension_registry(self) -> ExtensionRegistry:
        return self._registry

    def files(self) -> tuple[FileDescriptor, ...]:
        return tuple(self._files.values())

    def all_messages(self) -> tuple[MessageDescriptor, ...]:
        return tuple(self._messages)

    def all_enums(self) -> tuple[EnumDescriptor, ...]:
        return tuple(self._enums)

    def all_extensions(self) -> tuple[ExtensionDescriptor, ...]:
        return tuple(self._extensions.values())

    def services(self) -> tuple[ServiceDescriptor, ...]:
        return tuple(self._services.values())

    def get_file_by_name(self, name: str) -> FileDescriptor | None:
        return self._files.get(name)

    def get_message_by_name(self, name: str) -> MessageDescriptor | None:
        found = self._types.get(name.removeprefix("."))
        return found if isinstance(found, MessageDescriptor) else None

    def get_enum_by_name(self, name: str) -> EnumDescriptor | None:
        found = self._types.get(name.removeprefix("."))
        return found if isinstance(found, EnumDescriptor) else None

    def get_extension_by_name(self, name: str) -> ExtensionDescriptor | None:
        return self._extensions.get(name.removeprefix("."))

    def get_service_by_name(self, name: str) -> ServiceDescriptor | None:
        return self._services.get(name.removeprefix("."))

    def get_message_by_type_url(self, type_url: str) -> MessageDescriptor | None:
        """Resolve an ``Any`` type URL such as ``type.googleapis.com/pkg.Msg``."""
        _, slash, name = type_url.rpartition("/")
        if not slash or not name:
            return None
        return self.get_message_by_name(name)

    # Construction

    @staticmethod
    def _collect(files: Iterable[FileDescriptorProto], seeded: set[str]) -> list[FileDescriptorProto]:
        by_name: dict[str, FileDescriptorProto] = {}
        for proto in files:
            if not proto.name:
                raise DescriptorError("File descriptor has no name")
            existing = by_name.get(proto.name)
            if existing is not None:
                if existing != proto:
                    raise DescriptorError(f"File {proto.name} was added twice with different contents")
                continue
            by_name[proto.name] = proto

        for proto in well_known_files():
            name = proto.name or ""
            if name not in by_name:
                by_name[name] = proto
                seeded.add(name)

        return list(by_name.values())

    def _add_symbol(self, full_name: str, what: str, file: FileDescriptor) -> None:
        existing = self._symbols.get(full_name)
        if existing is not None:
            raise DescriptorError(f"Duplicate name {full_name} in {file.name} (already defined as {existing})")
        self._symbols[full_name] = what

    def _intern_file(self, proto: FileDescriptorProto) -> None:
        syntax = proto.syntax or ""
        if syntax not in SUPPORTED_SYNTAXES:
            raise DescriptorError(f"File {proto.name} uses unsupported syntax {syntax!r}")

        file = FileDescriptor(self, proto)
        self._files[file.name] = file
        package = proto.package or ""

        for message_proto in proto.message_type:
            file._messages.append(self._intern_message(file, None, package, message_proto))
        for enum_proto in proto.enum_type:
            file._enums.append(self._intern_enum(file, None, package, enum_proto))
        for field_proto in proto.extension:
            file._extensions.append(self._intern_extension(file, None, package, field_proto))
        for service_proto in proto.service:
            if not service_proto.name:
                raise DescriptorError(f"Service in {file.name} has no name")
            full_name = _join(package, service_proto.name)
            self._add_symbol(full_name, "service", file)
            service = ServiceDescriptor(file, service_proto, full_name)
            self._services[full_name] = service
            file._services.append(service)

    def _intern_message(
        self,
        file: FileDescriptor,
        parent: MessageDescriptor | None,
        scope: str,
        proto: DescriptorProto,
    ) -> MessageDescriptor:
        if not proto.name:
            raise DescriptorError(f"Message in {scope or file.name} has no name")
        full_name = _join(scope, proto.name)
        self._add_symbol(full_name, "message", file)

        message = MessageDescriptor(file, parent, proto, full_name)
        self._types[full_name] = message
        self._messages.append(message)

        for index, oneof_proto in enumerate(proto.oneof_decl):
            oneof = OneofDescriptor(message, oneof_proto, index)
            self._add_symbol(oneof.full_name, "oneof", file)
            message._oneofs.append(oneof)
        for nested_proto in proto.nested_type:
            message._messages.append(self._intern_message(file, message, full_name, nested_proto))
        for enum_proto in proto.enum_type:
            message._enums.append(self._intern_enum(file, message, full_name, enum_proto))
        for field_proto in proto.extension:
            message._extensions.append(self._intern_extension(file, message, full_name, field_proto))
        return message

    def _intern_enum(
        self,
        file: FileDescriptor,
        parent: MessageDescriptor | None,
        scope: str,
        proto: EnumDescriptorProto,
    ) -> EnumDescriptor:
        if not proto.name:
            raise DescriptorError(f"Enum in {scope or file.name} has no name")
        full_name = _join(scope, proto.name)
        self._add_symbol(full_name, "enum", file)

        enum = EnumDescriptor(file, parent, proto, full_name)
        self._types[full_name] = enum
        self._enums.append(enum)

        if not proto.value:
            raise DescriptorError(f"Enum {full_name} has no values")
        for index, value_proto in enumerate(proto.value):
            value = EnumValueDescriptor(enum, value_proto, index)
            if not value_proto.name or value_proto.number is None:
                raise DescriptorError(f"Enum value in {full_name} is missing its name or number")
            self._add_symbol(value.full_name, "enum value", file)
            enum._add_value(value)
        return enum

    def _intern_extension(
        self,
        file: FileDescriptor,
        parent: MessageDescriptor | None,
        scope: str,
        proto: FieldDescriptorProto,
    ) -> ExtensionDescriptor:
        if not proto.name:
            raise DescriptorError(f"Extension in {scope or file.name} has no name")
        full_name = _join(scope, proto.name)
        self._add_symbol(full_name, "extension", file)
        extension = ExtensionDescriptor(file, parent, proto, full_name)
        self._extensions[full_name] = extension
        return extension

    def _resolve(self, name: str, scope: str, context: str) -> MessageDescriptor | EnumDescriptor:
        """Resolve a type name, searching from the innermost scope outward."""
        if name.startswith("."):
            found = self._types.get(name[1:])
        else:
            found = None
            parts = scope.split(".") if scope else []
            while True:
                found = self._types.get(".".join([*parts, name]))
                if found is not None or not parts:
                    break
                parts.pop()

        if found is None:
            raise DescriptorError(f"Unresolved type name {name!r} referenced by {context}")
        return found

    def _link_file(self, file: FileDescriptor) -> None:
        dependencies = []
        for name in file.file_descriptor_proto.dependency:
            dependency = self._files.get(name)
            if dependency is None:
                raise DescriptorError(f"File {file.name} imports {name}, which is not in the pool")
            dependencies.append(dependency)
        file._dependencies = tuple(dependencies)

        for message in file._messages:
            self._link_message(message)
        for extension in file._extensions:
            self._link_extension(extension, file.package)
        for service in file._services:
            self._link_service(service)

    def _link_message(self, message: MessageDescriptor) -> None:
        proto = message.descriptor_proto
        for field_proto in proto.field:
            if not field_proto.name:
                raise DescriptorError(f"Field in {message.full_name} has no name")
            field = FieldDescriptor(message.parent_file, message, field_proto, _join(message.full_name, field_proto.name))
            self._add_symbol(field.full_name, "field", message.parent_file)
            self._check_number(field)
            if message.get_field(field.number) is not None:
                raise DescriptorError(f"Field number {field.number} is used twice in {message.full_name}")
            self._link_field_type(field, message.full_name)

            if field_proto.oneof_index is not None:
                if not 0 <= field_proto.oneof_index < len(message._oneofs):
                    raise DescriptorError(f"Field {field.full_name} has an out of range oneof index")
                if field.is_list:
                    raise DescriptorError(f"Repeated field {field.full_name} cannot be in a oneof")
                oneof = message._oneofs[field_proto.oneof_index]
                field._oneof = oneof
                oneof._fields.append(field)

            message._add_field(field)

        for oneof in message._oneofs:
            if not oneof._fields:
                raise DescriptorError(f"Oneof {oneof.full_name} has no fields")

        for nested in message._messages:
            self._link_message(nested)
        for extension in message._extensions:
            self._link_extension(extension, message.full_name)

    def _check_number(self, field: FieldDescriptor) -> None:
        number = field.field_descriptor_proto.number
        if number is None or not 1 <= number <= MAX_FIELD_NUMBER:
            raise DescriptorError(f"Field {field.full_name} has invalid number {number}")
        if number in RESERVED_NUMBERS:
            raise DescriptorError(f"Field {field.full_name} uses number {number}, which is reserved for the implementation")

    def _link_field_type(self, field: FieldDescriptor, scope: str) -> None:
        proto = field.field_descriptor_proto
        target: MessageDescriptor | EnumDescriptor | None = None
        if proto.type_name:
            target = self._resolve(proto.type_name, scope, field.full_name)

        if proto.type is None:
            if target is None:
                raise DescriptorError(f"Field {field.full_name} has neither a type nor a type name")
            kind = Kind.MESSAGE if isinstance(target, MessageDescriptor) else Kind.ENUM
        else:
            try:
                kind = Kind.from_field_type(proto.type)
            except ValueError:
                raise DescriptorError(f"Field {field.full_name} has unknown type {proto.type}") from None

        if kind == Kind.MESSAGE:
            if not isinstance(target, MessageDescriptor):
                raise DescriptorError(f"Field {field.full_name} must refer to a message type")
            field._message_type = target
        elif kind == Kind.ENUM:
            if not isinstance(target, EnumDescriptor):
                raise DescriptorError(f"Field {field.full_name} must refer to an enum type")
            field._enum_type = target
        field._kind = kind

    def _link_extension(self, extension: ExtensionDescriptor, scope: str) -> None:
        proto = extension.field_descriptor_proto
        self._check_number(extension)
        if not proto.extendee:
            raise DescriptorError(f"Extension {extension.full_name} has no extendee")
        extendee = self._resolve(proto.extendee, scope, extension.full_name)
        if not isinstance(extendee, MessageDescriptor):
            raise DescriptorError(f"Extension {extension.full_name} extends {extendee.full_name}, which is not a message")
        if not extendee.is_extension_number(extension.number):
            raise DescriptorError(
                f"Extension {extension.full_name} uses number {extension.number}, "
                f"which is outside the extension ranges of {extendee.full_name}"
            )
        if proto.label == FieldLabel.REQUIRED:
            raise DescriptorError(f"Extension {extension.full_name} cannot be required")
        extension._extendee = extendee
        self._link_field_type(extension, scope)
        self._registry.register(extension)

    def _link_service(self, service: ServiceDescriptor) -> None:
        scope = service.parent_file.package
        for method_proto in service.service_descriptor_proto.method:
            context = _join(service.full_name, method_proto.name or "")
            input = self._resolve(method_proto.input_type or "", scope, context)
            output = self._resolve(method_proto.output_type or "", scope, context)
            if not isinstance(input, MessageDescriptor) or not isinstance(output, MessageDescriptor):
                raise DescriptorError(f"Method {context} must take and return message types")
            service._methods.append(MethodDescriptor(service, method_proto, input, output))

    def _validate(self) -> None:
        for message in self._messages:
            if message.is_map_entry:
                self._validate_map_entry(message)
            for field in message._fields:
                if field.kind == Kind.MESSAGE and field.message_type.is_map_entry and not field.is_list:
                    raise DescriptorError(f"Map entry field {field.full_name} must be repeated")
                field._resolve_default()

        for extension in self._extensions.values():
            extension._resolve_default()

        for enum in self._enums:
            seen: set[int] = set()
            for value in enum.values:
                if value.number in seen and not enum.allows_alias:
                    raise DescriptorError(
                        f"Enum {enum.full_name} reuses number {value.number} without allow_alias"
                    )
                seen.add(value.number)
            if enum.parent_file.is_proto3 and enum.values[0].number != 0:
                raise DescriptorError(f"The first value of proto3 enum {enum.full_name} must be zero")

    @staticmethod
    def _validate_map_entry(message: MessageDescriptor) -> None:
        fields = {field.number: field for field in message._fields}
        key = fields.get(1)
        value = fields.get(2)
        if len(fields) != 2 or key is None or value is None or key.name != "key" or value.name != "value":
            raise DescriptorError(f"Map entry {message.full_name} must have exactly the fields key = 1 and value = 2")
        if key.kind not in MAP_KEY_KINDS:
            raise DescriptorError(f"Map entry {message.full_name} has an invalid key type {key.kind}")
        if key.is_list or value.is_list:
            raise DescriptorError(f"Map entry {message.full_name} cannot have repeated fields")


def _decode_file_descriptor_set(data: bytes) -> list[FileDescriptorProto]:
    try:
        return FileDescriptorSet.unpack(data).file
    except DecodeError as exc:
        raise DescriptorError(f"Malformed descriptor bytes: {exc}") from exc
