"""
Async JSON-RPC transport for Base.

Lightweight alternative to web3.py: httpx for HTTP, round-robin load
balancing over several endpoints, and capped exponential backoff for
transient failures. JSON-RPC error objects are never retried.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx

from ..errors import RpcError, TransientNetworkError
from ..observability import get_logger

log = get_logger(__name__)

RETRYABLE_STATUS = {408, 425, 429, 500, 502, 503, 504}


class RpcTransport:
    """
    Load-balanced, retrying JSON-RPC client.

    The transport holds no proposal state and is meant to be long-lived and
    shared between the sync engine, the registry client and the writer.
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        timeout: float = 30.0,
        max_retries: int = 3,
        base_delay: float = 0.25,
        max_delay: float = 4.0,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if not endpoints:
            raise ValueError("At least one RPC endpoint is required")
        self.endpoints = list(endpoints)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._sleep = sleep
        self._cursor = itertools.cycle(range(len(self.endpoints)))
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "RpcTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def backoff(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt), self.max_delay)

    def _next_endpoint(self) -> str:
        return self.endpoints[next(self._cursor)]

    async def request(self, method: str, params: list[Any]) -> Any:
        """
        Make a JSON-RPC call, rotating endpoints between retries.

        Raises:
            RpcError: The node answered with a JSON-RPC error object.
            TransientNetworkError: Every attempt failed at the HTTP layer.
        """
        payload = {"jsonrpc": "2.0", "method": method, "params": params, "id": next(self._ids)}
        last_exc: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            url = self._next_endpoint()
            try:
                response = await self._client.post(url, json=payload)
                if response.status_code in RETRYABLE_STATUS:
                    raise TransientNetworkError(f"HTTP {response.status_code} from {url}")
                response.raise_for_status()
                data = response.json()
            except (httpx.TransportError, TransientNetworkError) as exc:
                last_exc = exc
            except (httpx.HTTPStatusError, ValueError) as exc:
                raise RpcError(f"Invalid RPC response from {url}: {exc}") from exc
            else:
                if "error" in data:
                    err = data["error"] or {}
                    raise RpcError(
                        err.get("message", "RPC error"),
                        code=err.get("code"),
                        data=err.get("data"),
                    )
                return data.get("result")

            if attempt < self.max_retries:
                delay = self.backoff(attempt)
                log.warning(
                    "rpc_retry",
                    method=method,
                    endpoint=url,
                    attempt=attempt + 1,
                    delay=delay,
                    error=str(last_exc),
                )
                await self._sleep(delay)

        raise TransientNetworkError(f"RPC {method} failed after {self.max_retries + 1} attempts: {last_exc}")

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        return await self.request("eth_call", [{"to": to, "data": data}, block])

    async def get_chain_id(self) -> int:
        return int(await self.request("eth_chainId", []), 16)

    async def get_nonce(self, address: str) -> int:
        return int(await self.request("eth_getTransactionCount", [address, "pending"]), 16)

    async def get_gas_price(self) -> int:
        return int(await self.request("eth_gasPrice", []), 16)

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        return int(await self.request("eth_estimateGas", [tx]), 16)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        return await self.request("eth_sendRawTransaction", [raw_tx])

    async def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: float = 120.0,
        poll_interval: float = 2.0,
    ) -> dict[str, Any]:
        """
        Poll for a transaction receipt.

        Raises:
            TransientNetworkError: If the receipt is not found within ``timeout``.
        """
        start = time.monotonic()
        while time.monotonic() - start < timeout:
            receipt = await self.request("eth_getTransactionReceipt", [tx_hash])
            if receipt is not None:
                return receipt
            await self._sleep(poll_interval)

        raise TransientNetworkError(f"Transaction {tx_hash} not confirmed within {timeout}s")
