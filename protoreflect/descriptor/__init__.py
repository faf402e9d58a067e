from .extensions import ExtensionRegistry
from .pool import DescriptorPool
from .proto import FileDescriptorProto, FileDescriptorSet
from .types import (
    Cardinality,
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

__all__ = [
    "Cardinality",
    "DescriptorError",
    "DescriptorPool",
    "EnumDescriptor",
    "EnumValueDescriptor",
    "ExtensionDescriptor",
    "ExtensionRegistry",
    "FieldDescriptor",
    "FileDescriptor",
    "FileDescriptorProto",
    "FileDescriptorSet",
    "Kind",
    "MessageDescriptor",
    "MethodDescriptor",
    "OneofDescriptor",
    "ServiceDescriptor",
]
