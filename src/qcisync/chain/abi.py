"""
ABI Loader and call codec.

Contract ABIs ship as package data under qcisync/abis/*.json and are the
single source of truth for the registry call surface.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

from eth_abi import decode, encode

from ..errors import MalformedInterface
from ..utils import from_hex, keccak256

ABI_DIR = Path(__file__).resolve().parent.parent / "abis"


@lru_cache(maxsize=16)
def load_abi(contract_name: str) -> tuple[dict[str, Any], ...]:
    """
    Load a bundled contract ABI.

    Args:
        contract_name: Contract name (e.g., "QCIRegistry")

    Returns:
        ABI entries as a tuple of dicts

    Raises:
        FileNotFoundError: If the ABI file is not bundled
    """
    abi_path = ABI_DIR / f"{contract_name}.json"
    if not abi_path.exists():
        raise FileNotFoundError(f"ABI not found: {abi_path}")

    with abi_path.open("r", encoding="utf-8") as f:
        return tuple(json.load(f))


def registry_abi() -> tuple[dict[str, Any], ...]:
    """Load the QCIRegistry ABI."""
    return load_abi("QCIRegistry")


def abi_type(param: dict[str, Any]) -> str:
    """Render an ABI parameter as an eth-abi type string, expanding tuples."""
    kind = param["type"]
    if kind.startswith("tuple"):
        inner = ",".join(abi_type(c) for c in param.get("components", []))
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def find_function(abi: Sequence[dict[str, Any]], function_name: str) -> dict[str, Any]:
    for entry in abi:
        if entry.get("type") == "function" and entry.get("name") == function_name:
            return entry
    raise MalformedInterface(f"Function {function_name} not found in ABI")


def function_signature(entry: dict[str, Any]) -> str:
    types = ",".join(abi_type(p) for p in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256 over the canonical signature."""
    return keccak256(signature.encode("utf-8"))[:4]


def event_topic(entry: dict[str, Any]) -> str:
    return "0x" + keccak256(function_signature(entry).encode("utf-8")).hex()


def encode_function_call(abi: Sequence[dict[str, Any]], function_name: str, args: Sequence[Any]) -> str:
    """
    ABI-encode a function call.

    Returns:
        0x-prefixed hex encoded calldata
    """
    func = find_function(abi, function_name)
    input_types = [abi_type(p) for p in func.get("inputs", [])]
    selector = function_selector(function_signature(func))
    encoded_args = encode(input_types, list(args)) if input_types else b""
    return "0x" + selector.hex() + encoded_args.hex()


def decode_function_result(abi: Sequence[dict[str, Any]], function_name: str, data: str | bytes) -> Any:
    """
    ABI-decode return data.

    Returns:
        A single value when the function has one output, otherwise a tuple.
    """
    func = find_function(abi, function_name)
    output_types = [abi_type(p) for p in func.get("outputs", [])]
    if not output_types:
        return None

    raw = from_hex(data) if isinstance(data, str) else data
    decoded = decode(output_types, raw)
    if len(decoded) == 1:
        return decoded[0]
    return decoded
