"""Execution runtime: type reflection, hot reload and the runtime handle."""

from muncli.runtime.types import (
    NATIVE_RETURN_TYPES,
    FunctionDefinition,
    NativeType,
    TypeInfo,
    UnsupportedType,
    decodable_type,
)

__all__ = [
    "NATIVE_RETURN_TYPES",
    "FunctionDefinition",
    "NativeType",
    "TypeInfo",
    "UnsupportedType",
    "decodable_type",
]
