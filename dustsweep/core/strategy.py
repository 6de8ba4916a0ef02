"""
Execution strategy detection from EIP-5792 wallet capabilities.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from .models import ExecutionStrategy
from ..providers.wallet import WalletClient
from ..state.wallet import WalletSession


logger = logging.getLogger(__name__)

_ATOMIC_READY = ("supported", "ready")


def _chain_capabilities(capabilities: Dict[Any, Any], chain_id: int) -> Dict[str, Any]:
    # "0x0" carries chain-agnostic capabilities (5792 v2)
    for key in (hex(chain_id), str(chain_id), chain_id, "0x0"):
        caps = capabilities.get(key)
        if isinstance(caps, dict):
            return caps
    return {}


def supports_atomic_batch(capabilities: Any, chain_id: int) -> bool:
    """True if the wallet reports atomic batching for this chain (5792 v1 or v2)."""
    if not isinstance(capabilities, dict):
        return False
    caps = _chain_capabilities(capabilities, chain_id)

    atomic_batch = caps.get("atomicBatch")
    if isinstance(atomic_batch, dict) and atomic_batch.get("supported") is True:
        return True

    atomic = caps.get("atomic")
    return isinstance(atomic, dict) and atomic.get("status") in _ATOMIC_READY


class StrategyDetector:
    """Probes the wallet once per (address, chain) and remembers the answer."""

    def __init__(self, wallet: WalletClient, session: Optional[WalletSession] = None):
        self.wallet = wallet
        self.session = session or WalletSession()
        self._cache: Dict[Tuple[str, int], ExecutionStrategy] = {}

    async def detect_strategy(self, address: str, chain_id: int) -> ExecutionStrategy:
        """Never raises; any capability failure means LEGACY."""
        key = (address.lower(), chain_id)
        cached = self._cache.get(key)
        if cached is not None:
            self.session.set_strategy(cached)
            return cached

        self.session.is_detecting_strategy = True
        try:
            capabilities = await self.wallet.get_capabilities(address)
            supported = supports_atomic_batch(capabilities, chain_id)
        except Exception as exc:
            logger.info(f"Capability query failed, using legacy execution: {exc}")
            supported = False
        finally:
            self.session.is_detecting_strategy = False

        strategy = ExecutionStrategy.STANDARD_BATCH if supported else ExecutionStrategy.LEGACY
        self._cache[key] = strategy
        self.session.set_strategy(strategy)
        logger.info(f"Detected {strategy.value} execution for chain {chain_id}")
        return strategy

    def invalidate(self) -> None:
        """Forget cached answers (wallet or chain changed)."""
        self._cache.clear()


def describe_strategy(strategy: ExecutionStrategy) -> str:
    if strategy == ExecutionStrategy.SMART_BATCH:
        return "Smart Batch (EIP-7702) - Single signature for multiple swaps with delegation"
    if strategy == ExecutionStrategy.STANDARD_BATCH:
        return "Standard Batch (EIP-5792) - Multiple approvals and swaps in one transaction"
    if strategy == ExecutionStrategy.LEGACY:
        return "Legacy - Sequential transactions (approve + swap for each token)"
    return "Unknown strategy"


def estimate_transaction_count(strategy: ExecutionStrategy, token_count: int) -> int:
    """Signatures the user will be asked for (worst case for legacy)."""
    if strategy in (ExecutionStrategy.SMART_BATCH, ExecutionStrategy.STANDARD_BATCH):
        return 1
    return token_count * 2
