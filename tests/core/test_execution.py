"""
Tests for the sweep execution orchestrator.
"""

import pytest

from conftest import OWNER, ROUTER, TOKEN_A, TOKEN_B, TOKEN_C, FakeWallet, StubQuotes, make_quote, make_token, tx_hash
from dustsweep.core.constants import NATIVE_TOKEN_ADDRESS, TOKEN_ADDRESSES
from dustsweep.core.errors import UnsupportedChainError, UserRejectedError, ValidationError, WalletRpcError
from dustsweep.core.execution import (
    INSUFFICIENT_GAS_MESSAGE,
    NO_ROUTES_MESSAGE,
    USER_REJECTED_MESSAGE,
    ExecutionOrchestrator,
    is_target_token,
    resolve_output_token,
)
from dustsweep.core.models import BatchStatus, ExecutionStrategy, RiskLevel, TargetToken
from dustsweep.core.tx_builder import ERC20_APPROVE_SELECTOR


def orchestrator(wallet, quotes, fast_settings):
    return ExecutionOrchestrator(wallet, quote_client=quotes, config=fast_settings)


class StatusLog(list):
    def __call__(self, status):
        self.append(status)


# =============================================================================
# Output token resolution
# =============================================================================

class TestResolveOutputToken:

    def test_eth_is_native(self):
        assert resolve_output_token(1, TargetToken.ETH) == NATIVE_TOKEN_ADDRESS

    def test_stablecoin_per_chain(self):
        assert resolve_output_token(8453, "USDC") == TOKEN_ADDRESSES[8453]["USDC"]

    def test_unknown_chain(self):
        with pytest.raises(UnsupportedChainError):
            resolve_output_token(999, TargetToken.ETH)

    def test_unknown_target(self):
        with pytest.raises(ValidationError):
            resolve_output_token(1, "DOGE")

    def test_target_token_matching(self):
        assert is_target_token(make_token(symbol="WETH"), TargetToken.ETH, 1)
        assert is_target_token(make_token(symbol="wbnb"), TargetToken.ETH, 56)
        assert is_target_token(make_token(symbol="USDC"), TargetToken.USDC, 1)
        assert not is_target_token(make_token(symbol="USDC"), TargetToken.ETH, 1)


# =============================================================================
# Preconditions
# =============================================================================

class TestPreconditions:

    @pytest.mark.asyncio
    async def test_zero_native_balance_fails_before_quoting(self, wallet, fast_settings):
        wallet.native_balance = 0
        quotes = StubQuotes({TOKEN_A: make_quote(make_token())})
        statuses = StatusLog()

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 1, on_status=statuses
        )

        assert result.success is False
        assert result.error == INSUFFICIENT_GAS_MESSAGE
        assert result.tx_hashes == ()
        assert quotes.requests == []
        assert statuses == [BatchStatus.FAILED]

    @pytest.mark.asyncio
    async def test_tax_token_blocks_everything(self, wallet, fast_settings):
        quotes = StubQuotes()
        tokens = [make_token(), make_token(TOKEN_B, "TAX", is_tax_token=True)]

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            tokens, ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )

        assert result.success is False
        assert result.error.startswith("EXECUTION BLOCKED")
        assert "TAX" in result.error
        assert quotes.requests == []
        assert wallet.sent_batches == [] and wallet.sent_transactions == []

    @pytest.mark.asyncio
    async def test_critical_risk_blocks(self, wallet, fast_settings):
        result = await orchestrator(wallet, StubQuotes(), fast_settings).execute_batch(
            [make_token(risk_level=RiskLevel.CRITICAL)], ExecutionStrategy.LEGACY, OWNER, 1
        )
        assert result.success is False
        assert "CRITICAL" in result.error

    @pytest.mark.asyncio
    async def test_invalid_owner(self, wallet, fast_settings):
        result = await orchestrator(wallet, StubQuotes(), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, "0x1234", 1
        )
        assert result.success is False
        assert result.error == "Invalid owner address"

    @pytest.mark.asyncio
    async def test_unsupported_chain(self, wallet, fast_settings):
        result = await orchestrator(wallet, StubQuotes(), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 31337
        )
        assert result.success is False
        assert "31337" in result.error

    @pytest.mark.asyncio
    async def test_only_target_tokens_selected(self, wallet, fast_settings):
        result = await orchestrator(wallet, StubQuotes(), fast_settings).execute_batch(
            [make_token(symbol="WETH")], ExecutionStrategy.LEGACY, OWNER, 1
        )
        assert result.success is False
        assert "cannot swap target asset for itself" in result.error

    @pytest.mark.asyncio
    async def test_failing_status_callback_is_ignored(self, wallet, fast_settings):
        wallet.native_balance = 0

        def broken(status):
            raise RuntimeError("ui went away")

        result = await orchestrator(wallet, StubQuotes(), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 1, on_status=broken
        )
        assert result.error == INSUFFICIENT_GAS_MESSAGE


# =============================================================================
# LEGACY
# =============================================================================

class TestLegacyExecution:

    @pytest.mark.asyncio
    async def test_approve_then_swap_per_token(self, wallet, fast_settings):
        a, b = make_token(), make_token(TOKEN_B, "BBB")
        quotes = StubQuotes({TOKEN_A: make_quote(a, amount_out=100), TOKEN_B: make_quote(b, amount_out=50)})
        wallet.allowances[(TOKEN_B, ROUTER)] = 10**30
        statuses = StatusLog()

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [a, b], ExecutionStrategy.LEGACY, OWNER, 1, on_status=statuses
        )

        assert result.success is True
        assert result.error is None
        # approve A, swap A, swap B (B already approved)
        assert result.tx_hashes == (tx_hash(1), tx_hash(2), tx_hash(3))
        assert wallet.sent_transactions[0].to == TOKEN_A
        assert wallet.sent_transactions[0].data.startswith(ERC20_APPROVE_SELECTOR)
        assert wallet.sent_transactions[1].to == ROUTER
        assert result.successful_tokens == ("AAA", "BBB")
        assert result.total_swapped == 2 * 10**18
        assert result.estimated_output == 150
        assert statuses == [
            BatchStatus.ANALYZING,
            BatchStatus.APPROVING,
            BatchStatus.SWAPPING,
            BatchStatus.SWAPPING,
            BatchStatus.COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_two_liquid_tokens_already_approved(self, wallet, fast_settings):
        a, b = make_token(), make_token(TOKEN_B, "BBB")
        quotes = StubQuotes({TOKEN_A: make_quote(a), TOKEN_B: make_quote(b)})
        wallet.allowances[(TOKEN_A, ROUTER)] = 10**30
        wallet.allowances[(TOKEN_B, ROUTER)] = 10**30

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [a, b], ExecutionStrategy.LEGACY, OWNER, 1
        )

        assert result.success is True
        assert result.tx_hashes == (tx_hash(1), tx_hash(2))
        assert result.failed_tokens == ()
        assert result.successful_tokens == ("AAA", "BBB")
        assert all(call.to == ROUTER for call in wallet.sent_transactions)

    @pytest.mark.asyncio
    async def test_price_impact_over_ceiling_is_not_sent(self, wallet, fast_settings):
        a, b = make_token(), make_token(TOKEN_B, "BBB")
        quotes = StubQuotes({TOKEN_A: make_quote(a, price_impact=15.01), TOKEN_B: make_quote(b)})
        wallet.allowances[(TOKEN_B, ROUTER)] = 10**30

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [a, b], ExecutionStrategy.LEGACY, OWNER, 1
        )

        assert result.success is True
        assert result.tx_hashes == (tx_hash(1),)
        assert result.failed_tokens == ("AAA",)
        assert "Price impact too high" in result.error
        assert [call.to for call in wallet.sent_transactions] == [ROUTER]

    @pytest.mark.asyncio
    async def test_zero_output_is_not_sent(self, wallet, fast_settings):
        quotes = StubQuotes({TOKEN_A: make_quote(make_token(), amount_out=0, price_impact=40.0)})

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 1
        )

        assert result.success is False
        assert result.error.startswith("Execution Failed")
        assert wallet.sent_transactions == []

    @pytest.mark.asyncio
    async def test_zero_output_blocks_at_normal_impact(self, wallet, fast_settings):
        quotes = StubQuotes({TOKEN_A: make_quote(make_token(), amount_out=0)})

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 1
        )

        assert result.success is False
        assert "zero output amount" in result.error
        assert wallet.sent_transactions == []

    @pytest.mark.asyncio
    async def test_node_error_does_not_stop_the_queue(self, wallet, fast_settings):
        a, b = make_token(), make_token(TOKEN_B, "BBB")
        quotes = StubQuotes({TOKEN_A: make_quote(a), TOKEN_B: make_quote(b)})
        wallet.allowances[(TOKEN_A, ROUTER)] = 10**30
        wallet.allowances[(TOKEN_B, ROUTER)] = 10**30
        wallet.tx_errors[0] = WalletRpcError("tx rejected by txpool", code=-32000)

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [a, b], ExecutionStrategy.LEGACY, OWNER, 1
        )

        assert result.success is True
        assert result.tx_hashes == (tx_hash(2),)
        assert result.failed_tokens == ("AAA",)
        assert USER_REJECTED_MESSAGE not in result.error
        assert len(quotes.requests) == 2

    @pytest.mark.asyncio
    async def test_approval_amount_is_the_balance(self, wallet, fast_settings):
        a = make_token(balance=12345)
        await orchestrator(wallet, StubQuotes({TOKEN_A: make_quote(a)}), fast_settings).execute_batch(
            [a], ExecutionStrategy.LEGACY, OWNER, 1
        )
        approve = wallet.sent_transactions[0]
        assert int(approve.data[-64:], 16) == 12345

    @pytest.mark.asyncio
    async def test_illiquid_token_is_skipped(self, wallet, fast_settings):
        a, b = make_token(), make_token(TOKEN_B, "BBB")
        quotes = StubQuotes({TOKEN_A: make_quote(a)})

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [a, b], ExecutionStrategy.LEGACY, OWNER, 1
        )

        assert result.success is True
        assert result.successful_tokens == ("AAA",)
        assert result.failed_tokens == ("BBB",)
        assert "BBB: No route found" in result.error

    @pytest.mark.asyncio
    async def test_no_routes_at_all(self, wallet, fast_settings):
        result = await orchestrator(wallet, StubQuotes(), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 1
        )
        assert result.success is False
        assert result.error.startswith("Execution Failed")

    @pytest.mark.asyncio
    async def test_nothing_attempted_uses_no_routes_message(self, wallet, fast_settings):
        orch = orchestrator(wallet, StubQuotes(), fast_settings)
        result = await orch._execute_legacy([], NATIVE_TOKEN_ADDRESS, OWNER, 1, None)
        assert result.error == NO_ROUTES_MESSAGE

    @pytest.mark.asyncio
    async def test_user_rejects_second_token(self, wallet, fast_settings):
        a, b, c = make_token(), make_token(TOKEN_B, "BBB"), make_token(TOKEN_C, "CCC")
        quotes = StubQuotes({t.address: make_quote(t) for t in (a, b, c)})
        for token in (a, b, c):
            wallet.allowances[(token.address, ROUTER)] = 10**30
        wallet.tx_errors[1] = UserRejectedError()

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [a, b, c], ExecutionStrategy.LEGACY, OWNER, 1
        )

        assert result.success is True
        assert result.tx_hashes == (tx_hash(1),)
        assert result.successful_tokens == ("AAA",)
        assert result.failed_tokens == ("BBB",)
        assert USER_REJECTED_MESSAGE in result.error
        # CCC is never attempted
        assert len(quotes.requests) == 2

    @pytest.mark.asyncio
    async def test_rejection_on_first_token(self, wallet, fast_settings):
        wallet.tx_errors[0] = WalletRpcError("User denied transaction signature", code=4001)
        result = await orchestrator(wallet, StubQuotes({TOKEN_A: make_quote(make_token())}), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 1
        )
        assert result.success is False
        assert result.error == USER_REJECTED_MESSAGE

    @pytest.mark.asyncio
    async def test_reverted_swap_records_failure(self, wallet, fast_settings):
        wallet.allowances[(TOKEN_A, ROUTER)] = 10**30
        wallet.reverted.add(tx_hash(1))

        result = await orchestrator(wallet, StubQuotes({TOKEN_A: make_quote(make_token())}), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 1
        )

        # The hash was broadcast, so the run reports it even though it reverted
        assert result.success is True
        assert result.tx_hashes == (tx_hash(1),)
        assert result.failed_tokens == ("AAA",)
        assert "Swap transaction failed" in result.error

    @pytest.mark.asyncio
    async def test_smart_batch_runs_legacy(self, wallet, fast_settings):
        wallet.allowances[(TOKEN_A, ROUTER)] = 10**30
        result = await orchestrator(wallet, StubQuotes({TOKEN_A: make_quote(make_token())}), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.SMART_BATCH, OWNER, 1
        )
        assert result.success is True
        assert wallet.sent_batches == []
        assert len(wallet.sent_transactions) == 1

    @pytest.mark.asyncio
    async def test_quote_without_calldata_is_skipped(self, wallet, fast_settings):
        quotes = StubQuotes({TOKEN_A: make_quote(make_token(), data="0x")})
        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.LEGACY, OWNER, 1
        )
        assert result.success is False
        assert "Invalid quote - no transaction data" in result.error


# =============================================================================
# STANDARD_BATCH
# =============================================================================

class TestStandardBatch:

    @pytest.mark.asyncio
    async def test_approvals_precede_their_swaps(self, wallet, fast_settings):
        a, b = make_token(), make_token(TOKEN_B, "BBB")
        quotes = StubQuotes({TOKEN_A: make_quote(a, amount_out=7), TOKEN_B: make_quote(b, amount_out=3)})
        wallet.allowances[(TOKEN_B, ROUTER)] = 10**30
        statuses = StatusLog()

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [a, b], ExecutionStrategy.STANDARD_BATCH, OWNER, 1, on_status=statuses
        )

        assert result.success is True
        assert result.tx_hashes == ("batch-1",)
        assert result.estimated_output == 10
        [calls] = wallet.sent_batches
        assert [c.to for c in calls] == [TOKEN_A, ROUTER, ROUTER]
        assert calls[0].data.startswith(ERC20_APPROVE_SELECTOR)
        assert wallet.sent_transactions == []
        assert statuses == [BatchStatus.ANALYZING, BatchStatus.SWAPPING, BatchStatus.COMPLETED]

    @pytest.mark.asyncio
    async def test_partial_batch(self, wallet, fast_settings):
        a, b = make_token(), make_token(TOKEN_B, "BBB")
        result = await orchestrator(wallet, StubQuotes({TOKEN_A: make_quote(a)}), fast_settings).execute_batch(
            [a, b], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )
        assert result.success is True
        assert result.error.startswith("Partial:")
        assert result.failed_tokens == ("BBB",)

    @pytest.mark.asyncio
    async def test_nothing_to_batch(self, wallet, fast_settings):
        result = await orchestrator(wallet, StubQuotes(), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )
        assert result.success is False
        assert result.error.startswith("No valid swaps to execute.")
        assert wallet.sent_batches == []

    @pytest.mark.asyncio
    async def test_rejected_batch_does_not_fall_back(self, wallet, fast_settings):
        wallet.batch_error = UserRejectedError()
        result = await orchestrator(wallet, StubQuotes({TOKEN_A: make_quote(make_token())}), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )
        assert result.success is False
        assert result.error == USER_REJECTED_MESSAGE
        assert wallet.sent_transactions == []

    @pytest.mark.asyncio
    async def test_unsupported_batch_falls_back_to_legacy(self, wallet, fast_settings):
        wallet.batch_error = WalletRpcError("Method not supported", code=-32601)
        quotes = StubQuotes({TOKEN_A: make_quote(make_token())})

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )

        assert result.success is True
        assert len(wallet.sent_batches) == 1
        assert result.tx_hashes == (tx_hash(1), tx_hash(2))
        # Requoted on the legacy path
        assert len(quotes.requests) == 2

    @pytest.mark.asyncio
    async def test_hash_reference_is_confirmed(self, wallet, fast_settings):
        wallet.batch_reference = tx_hash(99)
        await orchestrator(wallet, StubQuotes({TOKEN_A: make_quote(make_token())}), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )
        assert wallet.receipt_waits == [tx_hash(99)]

    @pytest.mark.asyncio
    async def test_opaque_reference_is_not_polled(self, wallet, fast_settings):
        await orchestrator(wallet, StubQuotes({TOKEN_A: make_quote(make_token())}), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )
        assert wallet.receipt_waits == []

    @pytest.mark.asyncio
    async def test_zero_spender_uses_quote_target(self, wallet, fast_settings):
        quote = make_quote(make_token(), spender=NATIVE_TOKEN_ADDRESS)
        await orchestrator(wallet, StubQuotes({TOKEN_A: quote}), fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )
        approve = wallet.sent_batches[0][0]
        assert approve.data[10:74].endswith(ROUTER[2:])

    @pytest.mark.asyncio
    async def test_price_impact_over_ceiling_left_out_of_batch(self, wallet, fast_settings):
        a, b = make_token(), make_token(TOKEN_B, "BBB")
        quotes = StubQuotes({TOKEN_A: make_quote(a, price_impact=15.01), TOKEN_B: make_quote(b)})
        wallet.allowances[(TOKEN_B, ROUTER)] = 10**30

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [a, b], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )

        assert result.success is True
        assert result.failed_tokens == ("AAA",)
        assert "Price impact too high" in result.error
        [calls] = wallet.sent_batches
        assert [c.to for c in calls] == [ROUTER]

    @pytest.mark.asyncio
    async def test_zero_output_left_out_of_batch(self, wallet, fast_settings):
        quotes = StubQuotes({TOKEN_A: make_quote(make_token(), amount_out=0)})

        result = await orchestrator(wallet, quotes, fast_settings).execute_batch(
            [make_token()], ExecutionStrategy.STANDARD_BATCH, OWNER, 1
        )

        assert result.success is False
        assert result.error.startswith("No valid swaps to execute.")
        assert "zero output amount" in result.error
        assert wallet.sent_batches == []
