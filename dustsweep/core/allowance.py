"""
ERC20 allowance checks ahead of swaps.

Every failure mode resolves to "approval needed": approving again costs one
extra transaction, skipping a needed approval makes the swap revert.
"""

import asyncio
import logging
from typing import List, Sequence, Tuple

from .constants import MAX_UINT256
from .models import AllowanceCheckResult, Call, Token
from .tx_builder import TransactionBuilder
from ..providers.wallet import WalletClient
from ..services.address import is_valid_address


logger = logging.getLogger(__name__)

AllowanceEntry = Tuple[Token, int, str]  # (token, amount, spender)


class AllowanceChecker:
    def __init__(self, wallet: WalletClient):
        self.wallet = wallet

    async def check_allowance(
        self,
        token: Token,
        amount: int,
        spender: str,
        owner: str,
    ) -> AllowanceCheckResult:
        """Compare the on-chain allowance against `amount`."""

        def approval_needed() -> AllowanceCheckResult:
            return AllowanceCheckResult(
                needs_approval=True,
                current_allowance=0,
                required_amount=amount,
                token=token,
                spender=spender,
            )

        if not (is_valid_address(spender) and is_valid_address(owner)):
            logger.warning(f"Invalid address in allowance check for {token.symbol}")
            return approval_needed()

        if token.is_native:
            return AllowanceCheckResult(
                needs_approval=False,
                current_allowance=MAX_UINT256,
                required_amount=amount,
                token=token,
                spender=spender,
            )

        if not is_valid_address(token.address):
            logger.warning(f"Invalid token address in allowance check for {token.symbol}")
            return approval_needed()

        try:
            current = await self.wallet.read_allowance(token.address, owner, spender, token.chain_id)
        except Exception as exc:
            logger.error(f"Failed to check allowance for {token.symbol}: {exc}")
            return approval_needed()

        return AllowanceCheckResult(
            needs_approval=current < amount,
            current_allowance=current,
            required_amount=amount,
            token=token,
            spender=spender,
        )

    async def check_multiple_allowances(
        self,
        entries: Sequence[AllowanceEntry],
        owner: str,
    ) -> List[AllowanceCheckResult]:
        """Check entries concurrently.

        Entries with a malformed token or spender address are dropped up front,
        so the result can be shorter than the input.
        """
        valid = [
            (token, amount, spender)
            for token, amount, spender in entries
            if (token.is_native or is_valid_address(token.address)) and is_valid_address(spender)
        ]
        if len(valid) != len(entries):
            logger.warning(f"Dropped {len(entries) - len(valid)} invalid allowance entries")

        return list(
            await asyncio.gather(
                *(self.check_allowance(token, amount, spender, owner) for token, amount, spender in valid)
            )
        )

    @staticmethod
    def build_approval_call(token: Token, amount: int, spender: str) -> Call:
        return TransactionBuilder.build_erc20_approve(token.address, spender, amount)
