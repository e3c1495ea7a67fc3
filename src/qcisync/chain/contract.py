from __future__ import annotations

from typing import Any, Sequence

from eth_utils import to_checksum_address

from .abi import decode_function_result, encode_function_call
from .multicall import Call
from .rpc import RpcTransport


class ContractReader:
    """Read-only view calls against one contract."""

    def __init__(self, transport: RpcTransport, address: str, abi: Sequence[dict[str, Any]]) -> None:
        self.transport = transport
        self.address = to_checksum_address(address)
        self.abi = abi

    def prepare(self, function_name: str, *args: Any) -> Call:
        return Call(target=self.address, calldata=encode_function_call(self.abi, function_name, args))

    def decode(self, function_name: str, data: str | bytes) -> Any:
        return decode_function_result(self.abi, function_name, data)

    async def call(self, function_name: str, *args: Any) -> Any:
        call = self.prepare(function_name, *args)
        result = await self.transport.eth_call(call.target, call.calldata)
        return self.decode(function_name, result)
