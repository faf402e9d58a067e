"""protoreflect - Dynamic protobuf messages driven by run-time descriptors."""

from importlib.metadata import PackageNotFoundError, version

from .descriptor import (
    Cardinality,
    DescriptorError,
    DescriptorPool,
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
from .dynamic import (
    DeserializeOptions,
    DynamicMessage,
    JsonError,
    ParseError,
    SerializeOptions,
    UnknownField,
    Value,
    ValueType,
)
from .wire import DecodeError, EncodeError, WireError

try:
    __version__ = version("protoreflect")
except PackageNotFoundError:
    __version__ = "(local)"

__all__ = [
    "Cardinality",
    "DecodeError",
    "DescriptorError",
    "DescriptorPool",
    "DeserializeOptions",
    "DynamicMessage",
    "EncodeError",
    "EnumDescriptor",
    "EnumValueDescriptor",
    "ExtensionDescriptor",
    "FieldDescriptor",
    "FileDescriptor",
    "JsonError",
    "Kind",
    "MessageDescriptor",
    "MethodDescriptor",
    "OneofDescriptor",
    "ParseError",
    "SerializeOptions",
    "ServiceDescriptor",
    "UnknownField",
    "Value",
    "ValueType",
    "WireError",
]
