"""
Minimal EVM JSON-RPC provider for reads and receipt polling.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .base import Provider
from ..config import Settings, settings as default_settings
from ..core.errors import ReceiptTimeoutError, RpcError, UnsupportedChainError
from ..core.models import Call, Receipt
from ..core.tx_builder import TransactionBuilder, decode_uint256


logger = logging.getLogger(__name__)


class EvmRpcProvider(Provider):
    name = "rpc"
    timeout_s = 30

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        *,
        timeout_s: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.chain_id = chain_id
        self.rpc_url = rpc_url
        if timeout_s is not None:
            self.timeout_s = timeout_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    async def ready(self) -> bool:
        return bool(self.rpc_url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "RPC URL not configured"}

        try:
            result = await self._rpc_call("eth_chainId", [])
            return {"status": "healthy", "chainId": int(result, 16)}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def get_balance(self, address: str) -> int:
        result = await self._rpc_call("eth_getBalance", [address, "latest"])
        return decode_uint256(result)

    async def get_gas_price(self) -> int:
        result = await self._rpc_call("eth_gasPrice", [])
        return decode_uint256(result)

    async def call(self, call: Call) -> str:
        result = await self._rpc_call(
            "eth_call",
            [{"to": call.to, "data": call.data}, "latest"],
        )
        return result or "0x"

    async def read_allowance(self, token_address: str, owner: str, spender: str) -> int:
        call = TransactionBuilder.build_allowance_call(token_address, owner, spender)
        return decode_uint256(await self.call(call))

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
        if not receipt:
            return None

        # 0x1 = success, 0x0 = revert
        status = int(receipt.get("status", "0x1"), 16)
        block = receipt.get("blockNumber")
        return Receipt(
            tx_hash=tx_hash,
            status="success" if status == 1 else "reverted",
            block_number=int(block, 16) if block else None,
        )

    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: float = 180,
        poll_interval: float = 2.0,
    ) -> Receipt:
        """Poll until a receipt exists or the timeout passes."""
        deadline = time.monotonic() + timeout

        while True:
            try:
                receipt = await self.get_transaction_receipt(tx_hash)
            except (httpx.HTTPError, RpcError) as exc:
                logger.warning(f"Error checking receipt for {tx_hash}: {exc}")
                receipt = None

            if receipt is not None:
                return receipt
            if time.monotonic() >= deadline:
                raise ReceiptTimeoutError(tx_hash, timeout)
            await asyncio.sleep(poll_interval)

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)

        self._request_id += 1
        response = await self._client.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
        )
        response.raise_for_status()
        payload = response.json()
        if payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RpcError(f"RPC error on chain {self.chain_id}: {message}")
        return payload.get("result")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()


# One client per chain ID, reused across calls.
_rpc_clients: Dict[int, EvmRpcProvider] = {}


def get_rpc_client(chain_id: int, config: Optional[Settings] = None) -> EvmRpcProvider:
    client = _rpc_clients.get(chain_id)
    if client is not None:
        return client

    cfg = config or default_settings
    rpc_url = cfg.rpc_urls.get(chain_id)
    if not rpc_url:
        raise UnsupportedChainError(chain_id)

    client = EvmRpcProvider(chain_id, rpc_url, timeout_s=cfg.request_timeout_seconds)
    _rpc_clients[chain_id] = client
    return client


def reset_rpc_clients() -> None:
    """Forget memoized clients (tests, settings reloads)."""
    _rpc_clients.clear()
