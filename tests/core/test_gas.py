"""Tests for sweep gas estimates."""

import pytest

from dustsweep.core import gas
from dustsweep.core.gas import APPROVE_GAS, BATCH_OVERHEAD_GAS, SWAP_GAS, estimate_gas_cost_usd, estimate_gas_units
from dustsweep.core.models import ExecutionStrategy


class StubRpc:
    def __init__(self, gas_price=None, error=None):
        self.gas_price = gas_price
        self.error = error

    async def get_gas_price(self):
        if self.error:
            raise self.error
        return self.gas_price


def test_gas_units():
    assert estimate_gas_units(ExecutionStrategy.LEGACY, 2) == 2 * (APPROVE_GAS + SWAP_GAS)
    assert estimate_gas_units(ExecutionStrategy.STANDARD_BATCH, 2) == BATCH_OVERHEAD_GAS + 2 * SWAP_GAS
    assert estimate_gas_units(ExecutionStrategy.LEGACY, 0) == 0


@pytest.mark.asyncio
async def test_cost_in_usd(monkeypatch):
    monkeypatch.setattr(gas, "get_rpc_client", lambda chain_id, config=None: StubRpc(gas_price=10**9))
    cost = await estimate_gas_cost_usd(1, ExecutionStrategy.STANDARD_BATCH, 1)
    # 280k gas at 1 gwei, ETH at 3300
    assert cost == pytest.approx(280_000 * 10**9 / 10**18 * 3300.0)


@pytest.mark.asyncio
async def test_rpc_failure_is_zero(monkeypatch):
    monkeypatch.setattr(gas, "get_rpc_client", lambda chain_id, config=None: StubRpc(error=RuntimeError("down")))
    assert await estimate_gas_cost_usd(1, ExecutionStrategy.LEGACY, 3) == 0.0
