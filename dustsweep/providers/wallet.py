"""
Wallet access for signing, batching and chain reads.

`WalletClient` is the seam the orchestrators depend on. Signing goes to the
wallet; reads (allowance, balance, receipts) go to the chain's JSON-RPC node
by default.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence

import httpx

from .base import Provider
from .rpc import EvmRpcProvider, get_rpc_client
from ..config import Settings, settings as default_settings
from ..core.constants import MAX_UINT256
from ..core.errors import USER_REJECTION_CODES, UserRejectedError, WalletRpcError
from ..core.models import Call, Receipt
from ..core.tx_builder import TransactionBuilder


logger = logging.getLogger(__name__)


class WalletClient(ABC):
    """Connected wallet as seen by the sweep and revoke flows."""

    def __init__(self, config: Optional[Settings] = None) -> None:
        self.config = config or default_settings

    @abstractmethod
    async def get_capabilities(self, address: str) -> Dict[str, Any]:
        """EIP-5792 capability map keyed by hex chain ID."""

    @abstractmethod
    async def send_calls(self, calls: Sequence[Call], owner: str, chain_id: int) -> str:
        """Submit an ordered call list as one batch; returns the batch reference."""

    @abstractmethod
    async def send_transaction(self, call: Call, owner: str, chain_id: int) -> str:
        """Sign and broadcast one call; returns the transaction hash."""

    def _chain(self, chain_id: int) -> EvmRpcProvider:
        return get_rpc_client(chain_id, self.config)

    async def read_allowance(self, token_address: str, owner: str, spender: str, chain_id: int) -> int:
        return await self._chain(chain_id).read_allowance(token_address, owner, spender)

    async def get_balance(self, address: str, chain_id: int) -> int:
        return await self._chain(chain_id).get_balance(address)

    async def wait_for_receipt(
        self,
        tx_hash: str,
        chain_id: int,
        timeout: Optional[float] = None,
    ) -> Receipt:
        return await self._chain(chain_id).wait_for_transaction_receipt(
            tx_hash,
            timeout=timeout if timeout is not None else self.config.receipt_timeout_seconds,
            poll_interval=self.config.receipt_poll_interval_seconds,
        )

    async def approve(
        self,
        token_address: str,
        spender: str,
        owner: str,
        chain_id: int,
        amount: int = MAX_UINT256,
    ) -> str:
        call = TransactionBuilder.build_erc20_approve(token_address, spender, amount)
        return await self.send_transaction(call, owner, chain_id)


class Eip1193Wallet(WalletClient, Provider):
    """Wallet reached over EIP-1193 JSON-RPC (Frame, a local signer, a bridge)."""

    name = "wallet"
    timeout_s = 120  # Signing waits on a human

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(config)
        self.url = url or self.config.wallet_rpc_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    async def ready(self) -> bool:
        return bool(self.url)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "disabled", "reason": "Wallet endpoint not configured"}

        try:
            accounts = await self._rpc_call("eth_accounts", [])
            return {"status": "healthy", "accounts": len(accounts or [])}
        except Exception as exc:
            return {"status": "error", "reason": str(exc)}

    async def get_capabilities(self, address: str) -> Dict[str, Any]:
        result = await self._rpc_call("wallet_getCapabilities", [address])
        return result or {}

    async def send_calls(self, calls: Sequence[Call], owner: str, chain_id: int) -> str:
        result = await self._rpc_call(
            "wallet_sendCalls",
            [{
                "version": "1.0",
                "chainId": hex(chain_id),
                "from": owner,
                "calls": [call.to_rpc() for call in calls],
            }],
        )
        # v1 wallets return the id string, later ones {"id": ...}, some a list
        if isinstance(result, dict):
            return str(result.get("id", ""))
        if isinstance(result, list):
            return str(result[0]) if result else ""
        return str(result)

    async def send_transaction(self, call: Call, owner: str, chain_id: int) -> str:
        tx = {"from": owner, "chainId": hex(chain_id), **call.to_rpc()}
        return await self._rpc_call("eth_sendTransaction", [tx])

    async def _rpc_call(self, method: str, params: list[Any]) -> Any:
        if not self._client or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)

        self._request_id += 1
        response = await self._client.post(
            self.url,
            json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
        )
        response.raise_for_status()
        payload = response.json()

        error = payload.get("error")
        if error:
            if not isinstance(error, dict):
                raise WalletRpcError(str(error))
            code = error.get("code")
            message = error.get("message") or f"Wallet error {code}"
            if isinstance(code, (int, str)) and code in USER_REJECTION_CODES:
                raise UserRejectedError(code=code)
            logger.warning(f"Wallet {method} failed: {code} {message}")
            raise WalletRpcError(message, code=code, data=error.get("data"))

        return payload.get("result")

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
