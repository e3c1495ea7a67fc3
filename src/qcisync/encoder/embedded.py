"""
Embedded transactions.

A proposal can carry on-chain actions as single-line strings. The
canonical form is compact, key-sorted, ASCII-only JSON:

    {"args":["0x…","1000"],"chain":"Base","function":"transfer",
     "signature":"transfer(address,uint256)","to":"0x…"}

When ``signature`` is present, integers are written as decimal strings and
bytes as 0x-hex, and both are restored to ``int``/``bytes`` on decode.
The older ``chain:address:function:[arg,arg]`` form is still accepted by
``decode``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from eth_abi import encode as abi_encode
from eth_abi.exceptions import EncodingError
from eth_utils import to_checksum_address

from ..chain.abi import function_selector
from ..errors import MalformedError, MalformedInterface, MalformedTransaction
from ..utils import to_hex
from .abi_parser import ParsedFunction
from .types import AddressType, ArrayType, BoolType, IntType, StringType, TypeTag, UIntType, parse_type
from .validation import split_top_level, validate_input

_SIGNATURE = re.compile(r"([A-Za-z_$][A-Za-z0-9_$]*)\((.*)\)")
_LEGACY = re.compile(r"^([^:]+):([^:]+):([^:]+):\[(.*)\]$")

CHAIN_NAMES = {
    1: "Ethereum",
    10: "Optimism",
    56: "BSC",
    137: "Polygon",
    1088: "Metis",
    8453: "Base",
    42161: "Arbitrum",
    43114: "Avalanche",
}


def signature_types(signature: str) -> tuple[str, tuple[TypeTag, ...]]:
    if not isinstance(signature, str):
        raise MalformedTransaction(f"Invalid function signature: {signature!r}")
    match = _SIGNATURE.fullmatch(signature.replace(" ", ""))
    if not match:
        raise MalformedTransaction(f"Invalid function signature: {signature!r}")
    name, params = match.groups()
    try:
        types = tuple(parse_type(t) for t in params.split(",")) if params else ()
    except MalformedInterface as exc:
        raise MalformedTransaction(str(exc)) from exc
    return name, types


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return to_hex(bytes(value))
    if isinstance(value, str):
        return value
    return None


def _coerce(value: Any, tag: Optional[TypeTag]) -> Any:
    """Normalise a value to its canonical in-memory form, checked against ``tag``."""
    if tag is None:
        if isinstance(value, (bytes, bytearray)):
            return to_hex(bytes(value))
        if isinstance(value, (list, tuple)):
            return tuple(_coerce(v, None) for v in value)
        return value
    if isinstance(tag, ArrayType):
        if not isinstance(value, (list, tuple)):
            raise MalformedTransaction(f"Expected an array for {tag}, got {value!r}")
        if tag.length is not None and len(value) != tag.length:
            raise MalformedTransaction(f"Expected {tag.length} elements for {tag}, got {len(value)}")
        items = []
        for index, item in enumerate(value):
            try:
                items.append(_coerce(item, tag.element))
            except MalformedTransaction as exc:
                raise MalformedTransaction(f"Element {index}: {exc}") from exc
        return tuple(items)
    if isinstance(tag, BoolType):
        if not isinstance(value, bool):
            raise MalformedTransaction(f"Expected a boolean, got {value!r}")
        return value
    if isinstance(tag, StringType):
        if not isinstance(value, str):
            raise MalformedTransaction(f"Expected a string, got {value!r}")
        return value

    text = _as_text(value)
    if text is None:
        raise MalformedTransaction(f"Unsupported value for {tag}: {value!r}")
    result = validate_input(text, tag)
    if not result.valid:
        raise MalformedTransaction(result.error or f"Invalid value for {tag}")
    return result.parsed


def _to_json(value: Any, tag: Optional[TypeTag]) -> Any:
    if isinstance(value, tuple):
        element = tag.element if isinstance(tag, ArrayType) else None
        return [_to_json(v, element) for v in value]
    if isinstance(tag, (UIntType, IntType)):
        return str(value)
    if isinstance(value, bytes):
        return to_hex(value)
    return value


@dataclass(frozen=True)
class EmbeddedTransaction:
    chain: str
    to: str
    function: str
    args: tuple[Any, ...] = ()
    signature: Optional[str] = None

    def __post_init__(self) -> None:
        types = self.types
        if types is None:
            args = tuple(_coerce(a, None) for a in self.args)
        else:
            if len(types) != len(self.args):
                raise MalformedTransaction(
                    f"{self.signature} takes {len(types)} arguments, got {len(self.args)}"
                )
            coerced = []
            for index, (arg, tag) in enumerate(zip(self.args, types)):
                try:
                    coerced.append(_coerce(arg, tag))
                except MalformedTransaction as exc:
                    raise MalformedTransaction(
                        f"Argument {index} ({tag}): {exc}", errors={f"arg{index}": str(exc)}
                    ) from exc
            args = tuple(coerced)
        object.__setattr__(self, "args", args)

    @property
    def types(self) -> Optional[tuple[TypeTag, ...]]:
        if self.signature is None:
            return None
        name, types = signature_types(self.signature)
        if name != self.function:
            raise MalformedTransaction(f"Signature {self.signature!r} does not match function {self.function!r}")
        return types

    def to_dict(self) -> dict[str, Any]:
        types = self.types or (None,) * len(self.args)
        payload: dict[str, Any] = {
            "chain": self.chain,
            "to": self.to,
            "function": self.function,
            "args": [_to_json(a, t) for a, t in zip(self.args, types)],
        }
        if self.signature is not None:
            payload["signature"] = self.signature
        return payload


def encode(tx: EmbeddedTransaction) -> str:
    return json.dumps(tx.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def _from_dict(data: dict[str, Any]) -> EmbeddedTransaction:
    chain = data.get("chain")
    chain_id = data.get("chainId")
    if chain is None and isinstance(chain_id, int):
        chain = CHAIN_NAMES.get(chain_id, f"Chain {chain_id}")
    to = data.get("to") or data.get("address") or data.get("contractAddress")
    function = data.get("function") or data.get("functionName")
    if not chain or not to or not function:
        raise MalformedTransaction("Transaction JSON needs chain, to and function")
    signature = data.get("signature")
    fields = {"chain": chain, "to": to, "function": function}
    if signature is not None:
        fields["signature"] = signature
    for key, value in fields.items():
        if not isinstance(value, str):
            raise MalformedTransaction(f"Transaction {key} must be a string, got {value!r}")
    args = data.get("args", [])
    if not isinstance(args, list):
        raise MalformedTransaction("Transaction args must be a list")
    return EmbeddedTransaction(
        chain=chain,
        to=to,
        function=function,
        args=tuple(args),
        signature=signature,
    )


def _legacy_arg(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return text


def decode(text: str) -> EmbeddedTransaction:
    """
    Parse an embedded transaction string.

    Raises:
        MalformedTransaction: Neither the JSON nor the legacy form matches.
    """
    value = text.strip()
    try:
        data = json.loads(value)
    except (json.JSONDecodeError, RecursionError):
        data = None
    if isinstance(data, dict):
        return _from_dict(data)

    match = _LEGACY.match(value)
    if not match:
        raise MalformedTransaction(f"Invalid transaction format: {text[:80]!r}")
    chain, to, function, raw_args = match.groups()
    args = tuple(_legacy_arg(a) for a in split_top_level(raw_args))
    return EmbeddedTransaction(chain=chain, to=to, function=function, args=args)


def build_transaction(
    chain: str,
    address: str,
    function: ParsedFunction,
    raw_args: Sequence[str],
) -> EmbeddedTransaction:
    """
    Validate free-text arguments against ``function`` and build the value.

    Raises:
        MalformedError: With ``errors`` mapping each offending field (the
            input name, or ``arg<index>`` for unnamed inputs) to its message.
    """
    errors: dict[str, str] = {}
    target = validate_input(address, AddressType())
    if not target.valid:
        errors["to"] = target.error or "invalid"
    if len(raw_args) != len(function.inputs):
        errors["args"] = f"{function.name} takes {len(function.inputs)} arguments, got {len(raw_args)}"

    parsed: list[Any] = []
    for index, (raw, param) in enumerate(zip(raw_args, function.inputs)):
        result = validate_input(raw, param.type)
        if result.valid:
            parsed.append(result.parsed)
        else:
            errors[param.name or f"arg{index}"] = result.error or "invalid"

    if errors:
        raise MalformedError(f"Invalid arguments for {function.signature}", errors=errors)
    return EmbeddedTransaction(
        chain=chain,
        to=address,
        function=function.name,
        args=tuple(parsed),
        signature=function.signature,
    )


def _abi_value(value: Any, tag: TypeTag) -> Any:
    if isinstance(tag, ArrayType):
        return [_abi_value(v, tag.element) for v in value]
    if isinstance(tag, AddressType):
        return to_checksum_address(value)
    return value


def calldata(tx: EmbeddedTransaction) -> str:
    """4-byte selector followed by the ABI-encoded arguments, as 0x-hex."""
    types = tx.types
    if types is None:
        raise MalformedTransaction("Calldata needs the function signature")
    try:
        body = abi_encode([str(t) for t in types], [_abi_value(a, t) for a, t in zip(tx.args, types)])
    except EncodingError as exc:
        raise MalformedTransaction(f"Cannot encode arguments for {tx.signature}: {exc}") from exc
    return to_hex(function_selector(tx.signature or "") + body)
