"""
Closed grammar of argument types accepted for embedded transactions.

Every ABI input type is parsed into one of these tagged variants; ``str``
of a tag is its canonical Solidity spelling.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

from ..errors import MalformedInterface

_ARRAY = re.compile(r"^(.+)\[(\d*)\]$")
_SIZED = re.compile(r"^(uint|int|bytes)(\d+)$")


@dataclass(frozen=True)
class UIntType:
    bits: int = 256

    def __str__(self) -> str:
        return f"uint{self.bits}"

    @property
    def max_value(self) -> int:
        return 2**self.bits - 1


@dataclass(frozen=True)
class IntType:
    bits: int = 256

    def __str__(self) -> str:
        return f"int{self.bits}"

    @property
    def min_value(self) -> int:
        return -(2 ** (self.bits - 1))

    @property
    def max_value(self) -> int:
        return 2 ** (self.bits - 1) - 1


@dataclass(frozen=True)
class AddressType:
    def __str__(self) -> str:
        return "address"


@dataclass(frozen=True)
class BoolType:
    def __str__(self) -> str:
        return "bool"


@dataclass(frozen=True)
class StringType:
    def __str__(self) -> str:
        return "string"


@dataclass(frozen=True)
class BytesType:
    """``bytes`` when ``size`` is None, otherwise ``bytes<size>``."""

    size: Optional[int] = None

    def __str__(self) -> str:
        return "bytes" if self.size is None else f"bytes{self.size}"


@dataclass(frozen=True)
class ArrayType:
    """``T[]`` when ``length`` is None, otherwise ``T[length]``."""

    element: "TypeTag"
    length: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.element}[{'' if self.length is None else self.length}]"


TypeTag = Union[UIntType, IntType, AddressType, BoolType, StringType, BytesType, ArrayType]

_SIMPLE: dict[str, TypeTag] = {
    "uint": UIntType(256),
    "int": IntType(256),
    "address": AddressType(),
    "bool": BoolType(),
    "string": StringType(),
    "bytes": BytesType(),
}


def parse_type(text: str) -> TypeTag:
    """
    Parse a Solidity type string.

    Raises:
        MalformedInterface: The type is outside the supported grammar
            (tuples, fixed-point, malformed widths).
    """
    value = text.strip()

    array = _ARRAY.match(value)
    if array:
        element = parse_type(array.group(1))
        length = int(array.group(2)) if array.group(2) else None
        if length == 0:
            raise MalformedInterface(f"Zero-length array type: {text}")
        return ArrayType(element=element, length=length)

    if value in _SIMPLE:
        return _SIMPLE[value]

    sized = _SIZED.match(value)
    if sized:
        kind, width = sized.group(1), int(sized.group(2))
        if kind == "bytes":
            if 1 <= width <= 32:
                return BytesType(width)
        elif 8 <= width <= 256 and width % 8 == 0:
            return UIntType(width) if kind == "uint" else IntType(width)

    raise MalformedInterface(f"Unsupported type: {text}")


def as_type(value: Union[TypeTag, str]) -> TypeTag:
    return parse_type(value) if isinstance(value, str) else value
