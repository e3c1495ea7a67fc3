"""
Transaction Builder - Build, sign, and send registry transactions.

Uses eth-account for signing and the async JSON-RPC transport for
sending. All gas is paid by the signing EOA.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from ..errors import RpcError
from ..observability import get_logger
from ..utils import to_hex
from .abi import encode_function_call
from .rpc import RpcTransport

log = get_logger(__name__)

GAS_BUFFER_PERCENT = 120


class ContractWriter:
    """Signs and submits state-changing calls against one contract."""

    def __init__(
        self,
        transport: RpcTransport,
        contract_address: str,
        abi: Sequence[dict[str, Any]],
        private_key: str,
        chain_id: Optional[int] = None,
    ) -> None:
        self.transport = transport
        self.contract_address = to_checksum_address(contract_address)
        self.abi = abi
        self.account: LocalAccount = Account.from_key(private_key)
        self.chain_id = chain_id

    @property
    def address(self) -> str:
        return self.account.address

    async def build(self, function_name: str, args: Sequence[Any], value: int = 0) -> dict[str, Any]:
        """
        Build an unsigned transaction with a buffered gas estimate.

        Estimation doubles as simulation: a call that would revert fails here
        with the node's error, before anything is signed.
        """
        calldata = encode_function_call(self.abi, function_name, args)
        call = {
            "from": self.account.address,
            "to": self.contract_address,
            "data": calldata,
            "value": hex(value),
        }
        estimated = await self.transport.estimate_gas(call)
        chain_id = self.chain_id or await self.transport.get_chain_id()

        return {
            "to": self.contract_address,
            "data": calldata,
            "value": value,
            "nonce": await self.transport.get_nonce(self.account.address),
            "gas": estimated * GAS_BUFFER_PERCENT // 100,
            "gasPrice": await self.transport.get_gas_price(),
            "chainId": chain_id,
        }

    async def send(
        self,
        function_name: str,
        args: Sequence[Any],
        value: int = 0,
        wait: bool = True,
        timeout: float = 120.0,
    ) -> dict[str, Any]:
        """
        Build, sign, and send a contract call.

        Returns:
            Dict with tx_hash and, when waiting, receipt and status

        Raises:
            RpcError: The node rejected the call or the transaction reverted.
        """
        tx = await self.build(function_name, args, value=value)
        signed = self.account.sign_transaction(tx)
        raw_tx = to_hex(bytes(signed.raw_transaction))

        tx_hash = await self.transport.send_raw_transaction(raw_tx)
        log.info("tx_sent", function=function_name, tx_hash=tx_hash)
        result: dict[str, Any] = {"tx_hash": tx_hash}

        if wait:
            receipt = await self.transport.wait_for_receipt(tx_hash, timeout=timeout)
            status = int(receipt.get("status", "0x0"), 16)
            result["receipt"] = receipt
            result["status"] = status
            if status != 1:
                raise RpcError(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)

        return result
