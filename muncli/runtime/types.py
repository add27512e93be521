"""
Mun Runtime Type Reflection

Type-identity tokens, function descriptors and the set of native return
types an entry point may be decoded as.
"""

import ctypes
import hashlib
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Tuple, Union


def type_guid(name: str) -> bytes:
    """Stable type-identity token: the MD5 digest of the fully-qualified type name."""
    return hashlib.md5(name.encode("utf-8")).digest()


@dataclass(frozen=True)
class TypeInfo:
    """A type as seen by the runtime: its name and its identity token."""
    name: str
    guid: bytes = field(repr=False)

    @classmethod
    def of(cls, name: str) -> "TypeInfo":
        return cls(name=name, guid=type_guid(name))


@dataclass(frozen=True)
class FunctionDefinition:
    """Signature of a function exported by a compiled library."""
    name: str
    arg_types: Tuple[TypeInfo, ...] = ()
    return_type: Optional[TypeInfo] = None


def _format_bool(value: Any) -> str:
    return "true" if value else "false"


def _format_f64(value: Any) -> str:
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_i64(value: Any) -> str:
    return str(int(value))


class NativeType(Enum):
    """
    Return types an entry point can be decoded as.

    Member order is the matching priority. Each member knows its type name,
    its ctypes representation and its canonical text form.
    """
    BOOL = ("core::bool", ctypes.c_bool, _format_bool)
    F64 = ("core::f64", ctypes.c_double, _format_f64)
    I64 = ("core::i64", ctypes.c_int64, _format_i64)

    def __init__(self, type_name: str, ctype: Any, formatter: Any) -> None:
        self.type_name = type_name
        self.ctype = ctype
        self._formatter = formatter

    @property
    def type_info(self) -> TypeInfo:
        return TypeInfo.of(self.type_name)

    def format(self, value: Any) -> str:
        """Render a decoded value in canonical text form."""
        return self._formatter(value)


NATIVE_RETURN_TYPES: Tuple[NativeType, ...] = tuple(NativeType)


@dataclass(frozen=True)
class UnsupportedType:
    """A return type outside the native set."""
    name: str


Decodable = Union[NativeType, UnsupportedType]


def decodable_type(type_info: TypeInfo) -> Decodable:
    """Match a type's identity token against the native return types, in priority order."""
    for native in NATIVE_RETURN_TYPES:
        if native.type_info.guid == type_info.guid:
            return native
    return UnsupportedType(type_info.name)
