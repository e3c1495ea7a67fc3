from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Optional

import jsonschema

from ..errors import MalformedInterface
from ..observability import get_logger
from .types import TypeTag, parse_type

log = get_logger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "schemas" / "abi.schema.json"

READ_ONLY = frozenset({"pure", "view"})


@dataclass(frozen=True)
class ParsedInput:
    name: str
    type: TypeTag


@dataclass(frozen=True)
class ParsedFunction:
    name: str
    inputs: tuple[ParsedInput, ...]
    state_mutability: str = "nonpayable"
    fragment: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(str(i.type) for i in self.inputs)})"

    @property
    def read_only(self) -> bool:
        return self.state_mutability in READ_ONLY


@dataclass(frozen=True)
class FunctionGroups:
    read_only: tuple[ParsedFunction, ...]
    state_changing: tuple[ParsedFunction, ...]

    def __len__(self) -> int:
        return len(self.read_only) + len(self.state_changing)


@lru_cache(maxsize=1)
def _validator() -> jsonschema.Validator:
    with SCHEMA_PATH.open("r", encoding="utf-8") as f:
        schema = json.load(f)
    validator_cls = jsonschema.validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _format_error(error: jsonschema.ValidationError) -> str:
    return "/".join(str(part) for part in error.path) or "<root>"


def _mutability(entry: dict[str, Any]) -> str:
    if "stateMutability" in entry:
        return entry["stateMutability"]
    # Pre-0.4.16 ABIs only carry the constant/payable flags
    if entry.get("constant"):
        return "view"
    if entry.get("payable"):
        return "payable"
    return "nonpayable"


def parse_interface(json_text: str) -> list[ParsedFunction]:
    """
    Parse ABI JSON text into its callable functions.

    A single object is treated as a one-entry ABI. Entries without a
    ``type`` are functions. Functions using types outside the supported
    grammar (tuples) are skipped.

    Raises:
        MalformedInterface: Invalid JSON, a document that is neither a list
            nor an object, or a function missing ``name``/``inputs``.
    """
    try:
        document = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise MalformedInterface(f"Invalid ABI JSON: {exc.msg} (line {exc.lineno})") from exc

    if isinstance(document, dict):
        document = [document]
    if not isinstance(document, list):
        raise MalformedInterface("ABI must be a JSON array or a single function object")

    errors = sorted(_validator().iter_errors(document), key=lambda e: [str(p) for p in e.path])
    if errors:
        raise MalformedInterface(
            "ABI failed structural validation",
            errors={_format_error(e): e.message for e in errors},
        )

    functions: list[ParsedFunction] = []
    for entry in document:
        if entry.get("type", "function") != "function":
            continue
        try:
            inputs = tuple(
                ParsedInput(name=param.get("name", ""), type=parse_type(param["type"]))
                for param in entry["inputs"]
            )
        except MalformedInterface as exc:
            log.info("abi_function_skipped", function=entry["name"], reason=str(exc))
            continue
        functions.append(
            ParsedFunction(
                name=entry["name"],
                inputs=inputs,
                state_mutability=_mutability(entry),
                fragment=entry,
            )
        )
    return functions


def classify(functions: Iterable[ParsedFunction]) -> FunctionGroups:
    read_only: list[ParsedFunction] = []
    state_changing: list[ParsedFunction] = []
    for function in functions:
        (read_only if function.read_only else state_changing).append(function)
    return FunctionGroups(read_only=tuple(read_only), state_changing=tuple(state_changing))


def find_parsed(functions: Iterable[ParsedFunction], name: str) -> Optional[ParsedFunction]:
    """Look a function up by name or full signature."""
    for function in functions:
        if function.name == name or function.signature == name:
            return function
    return None
