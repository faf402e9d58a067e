from .json_format import DeserializeOptions, JsonError, SerializeOptions
from .message import DynamicMessage, UnknownField
from .text_format import ParseError
from .value import Value, ValueType

__all__ = [
    "DeserializeOptions",
    "DynamicMessage",
    "JsonError",
    "ParseError",
    "SerializeOptions",
    "UnknownField",
    "Value",
    "ValueType",
]
