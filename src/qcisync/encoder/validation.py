from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from .types import (
    AddressType,
    ArrayType,
    BoolType,
    BytesType,
    IntType,
    StringType,
    TypeTag,
    UIntType,
    as_type,
)

_UNSIGNED = re.compile(r"[0-9]+")
_SIGNED = re.compile(r"-?[0-9]+")
_ADDRESS = re.compile(r"0x[0-9a-fA-F]{40}")
_HEX = re.compile(r"0x[0-9a-fA-F]*")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    parsed: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, parsed: Any) -> "ValidationResult":
        return cls(valid=True, parsed=parsed)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


def validate_input(raw: str, type_: Union[TypeTag, str]) -> ValidationResult:
    """
    Validate free-text user input against an argument type.

    ``parsed`` holds the coerced value ready for ABI encoding: ``int`` for
    integers, ``bool``, ``bytes`` for byte types, the original string for
    addresses and strings, and a list for arrays.
    """
    tag = as_type(type_)

    if isinstance(tag, ArrayType):
        return _validate_array(raw, tag)
    if isinstance(tag, (UIntType, IntType)):
        return _validate_integer(raw, tag)
    if isinstance(tag, AddressType):
        if not _ADDRESS.fullmatch(raw):
            return ValidationResult.fail("Invalid address format (must be 0x followed by 40 hex characters)")
        return ValidationResult.ok(raw)
    if isinstance(tag, BoolType):
        if raw not in ("true", "false"):
            return ValidationResult.fail('Value must be "true" or "false"')
        return ValidationResult.ok(raw == "true")
    if isinstance(tag, StringType):
        return ValidationResult.ok(raw)
    if isinstance(tag, BytesType):
        return _validate_bytes(raw, tag)
    raise TypeError(f"Unhandled type tag: {tag!r}")


def _validate_integer(raw: str, tag: Union[UIntType, IntType]) -> ValidationResult:
    if isinstance(tag, UIntType):
        if not _UNSIGNED.fullmatch(raw):
            if _SIGNED.fullmatch(raw):
                return ValidationResult.fail("Unsigned integer cannot be negative")
            return ValidationResult.fail(f"Invalid number format for {tag}: {raw!r}")
        value = int(raw, 10)
        if value > tag.max_value:
            return ValidationResult.fail(f"Value out of range for {tag} (max {tag.max_value})")
        return ValidationResult.ok(value)

    if not _SIGNED.fullmatch(raw):
        return ValidationResult.fail(f"Invalid number format for {tag}: {raw!r}")
    value = int(raw, 10)
    if not tag.min_value <= value <= tag.max_value:
        return ValidationResult.fail(f"Value out of range for {tag} ({tag.min_value} to {tag.max_value})")
    return ValidationResult.ok(value)


def _validate_bytes(raw: str, tag: BytesType) -> ValidationResult:
    if not _HEX.fullmatch(raw):
        return ValidationResult.fail(f"{tag} must start with 0x followed by hex characters")
    digits = raw[2:]
    if tag.size is not None and len(digits) != tag.size * 2:
        return ValidationResult.fail(
            f"{tag} must be exactly {2 + tag.size * 2} characters (0x + {tag.size * 2} hex chars)"
        )
    if len(digits) % 2:
        return ValidationResult.fail(f"{tag} must have an even number of hex characters")
    return ValidationResult.ok(bytes.fromhex(digits))


def _element_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def split_top_level(text: str) -> list[str]:
    """Split on commas that are not nested inside brackets or braces."""
    parts: list[str] = []
    current = ""
    depth = 0
    for char in text:
        if char in "[{":
            depth += 1
        elif char in "]}":
            depth -= 1
        if char == "," and depth == 0:
            parts.append(current.strip())
            current = ""
        else:
            current += char
    if current.strip():
        parts.append(current.strip())
    return parts


def _validate_array(raw: str, tag: ArrayType) -> ValidationResult:
    text = raw.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            return ValidationResult.fail('Invalid array format. Use ["item1", "item2"] or item1,item2')
        if not isinstance(decoded, list):
            return ValidationResult.fail("Value must be an array")
        elements = [_element_text(v) for v in decoded]
    else:
        elements = split_top_level(text)

    if tag.length is not None and len(elements) != tag.length:
        return ValidationResult.fail(f"Array must have exactly {tag.length} elements, got {len(elements)}")

    parsed = []
    for index, element in enumerate(elements):
        result = validate_input(element, tag.element)
        if not result.valid:
            return ValidationResult.fail(f"Element {index}: {result.error}")
        parsed.append(result.parsed)
    return ValidationResult.ok(parsed)


def describe_type(type_: Union[TypeTag, str]) -> str:
    """Short hint shown next to an argument input field."""
    tag = as_type(type_)
    if isinstance(tag, ArrayType):
        inner = describe_type(tag.element)
        if tag.length is None:
            return f"Array of {inner}"
        return f"Fixed array of {tag.length} {inner}"
    if isinstance(tag, UIntType):
        return f"Positive integer (0 to 2^{tag.bits}-1)"
    if isinstance(tag, IntType):
        return f"Integer (-2^{tag.bits - 1} to 2^{tag.bits - 1}-1)"
    if isinstance(tag, AddressType):
        return "Ethereum address (0x...)"
    if isinstance(tag, BoolType):
        return "Boolean (true/false)"
    if isinstance(tag, StringType):
        return "Text string"
    if tag.size is None:
        return "Hex bytes (0x...)"
    return f"{tag.size}-byte hex string (0x... with {tag.size * 2} hex chars)"
