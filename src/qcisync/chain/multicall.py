"""
Multicall3 batching.

Bundles several independent eth_call reads into one ``aggregate3`` round
trip. Per-call failures come back as ``(False, b"")`` when
``allow_failure`` is set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from eth_abi import decode, encode

from ..utils import from_hex, to_hex
from .abi import function_selector
from .rpc import RpcTransport

AGGREGATE3_SIGNATURE = "aggregate3((address,bool,bytes)[])"


@dataclass(frozen=True)
class Call:
    target: str
    calldata: str


def encode_aggregate3(calls: Sequence[Call], allow_failure: bool = True) -> str:
    payload = [(c.target, allow_failure, from_hex(c.calldata)) for c in calls]
    body = encode(["(address,bool,bytes)[]"], [payload])
    return to_hex(function_selector(AGGREGATE3_SIGNATURE) + body)


def decode_aggregate3(data: str) -> list[tuple[bool, bytes]]:
    (results,) = decode(["(bool,bytes)[]"], from_hex(data))
    return [(bool(ok), bytes(ret)) for ok, ret in results]


class Multicall:
    def __init__(self, transport: RpcTransport, address: str) -> None:
        self.transport = transport
        self.address = address

    async def aggregate(self, calls: Sequence[Call], allow_failure: bool = True) -> list[tuple[bool, bytes]]:
        if not calls:
            return []
        data = encode_aggregate3(calls, allow_failure=allow_failure)
        result: Any = await self.transport.eth_call(self.address, data)
        return decode_aggregate3(result)
