"""Rough USD gas estimates for a planned sweep."""

import logging
from typing import Optional

from .constants import get_native_price_usd
from .models import ExecutionStrategy
from ..config import Settings
from ..providers.rpc import get_rpc_client


logger = logging.getLogger(__name__)

APPROVE_GAS = 50_000
SWAP_GAS = 180_000
BATCH_OVERHEAD_GAS = 100_000


def estimate_gas_units(strategy: ExecutionStrategy, token_count: int) -> int:
    if token_count <= 0:
        return 0
    if strategy == ExecutionStrategy.LEGACY:
        return (APPROVE_GAS + SWAP_GAS) * token_count
    return BATCH_OVERHEAD_GAS + SWAP_GAS * token_count


async def estimate_gas_cost_usd(
    chain_id: int,
    strategy: ExecutionStrategy,
    token_count: int,
    config: Optional[Settings] = None,
) -> float:
    """Gas units x node gas price x static native price; 0.0 when unknown."""
    units = estimate_gas_units(strategy, token_count)
    if not units:
        return 0.0

    try:
        gas_price = await get_rpc_client(chain_id, config).get_gas_price()
    except Exception as exc:
        logger.error(f"Gas estimation failed on chain {chain_id}: {exc}")
        return 0.0

    cost_usd = units * gas_price / 10**18 * get_native_price_usd(chain_id)
    logger.debug(f"Gas estimate [{chain_id}]: {token_count} tokens = {cost_usd:.4f} USD")
    return cost_usd
