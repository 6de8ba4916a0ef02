"""
Revoke Orchestrator

Zeroes ERC20 allowances and clears NFT operator approvals, batched through
wallet_sendCalls when the wallet supports it and one transaction at a time
otherwise.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from .constants import MAX_UINT256
from .errors import ValidationError, WalletRpcError, is_user_rejection
from .models import (
    ApprovalType,
    Call,
    ExecutionStrategy,
    RevokeBatchResult,
    RevokeItem,
    SingleRevokeResult,
)
from .tx_builder import TransactionBuilder
from ..config import Settings, settings as default_settings
from ..providers.wallet import WalletClient


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

USER_REJECTED_MESSAGE = "Transaction rejected by user"


def build_revoke_call(item: RevokeItem) -> Call:
    if item.type == ApprovalType.ERC20:
        return TransactionBuilder.build_erc20_revoke(item.token_address, item.spender_address)
    return TransactionBuilder.build_nft_revoke(item.token_address, item.spender_address)


def build_partial_revoke_call(item: RevokeItem, new_allowance: int) -> Call:
    return TransactionBuilder.build_erc20_approve(item.token_address, item.spender_address, new_allowance)


def _error_text(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


class RevokeOrchestrator:
    def __init__(self, wallet: WalletClient, config: Optional[Settings] = None):
        self.wallet = wallet
        self.config = config or default_settings

    async def execute_revoke(
        self,
        items: Sequence[RevokeItem],
        owner: str,
        chain_id: int,
        strategy: ExecutionStrategy = ExecutionStrategy.LEGACY,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RevokeBatchResult:
        if not items:
            return RevokeBatchResult(success=False, errors=("No items selected for this chain",))
        if strategy == ExecutionStrategy.STANDARD_BATCH:
            return await self.execute_batch_revoke(items, owner, chain_id, on_progress)
        return await self.execute_legacy_revoke(items, owner, chain_id, on_progress)

    async def execute_batch_revoke(
        self,
        items: Sequence[RevokeItem],
        owner: str,
        chain_id: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RevokeBatchResult:
        """One wallet_sendCalls for every item; legacy on non-rejection failure."""
        logger.info(f"Starting batch revoke for {len(items)} approvals on chain {chain_id}")

        calls: List[Call] = []
        built: List[RevokeItem] = []
        errors: List[str] = []
        for item in items:
            try:
                calls.append(build_revoke_call(item))
                built.append(item)
            except ValueError as exc:
                logger.error(f"Failed to build revoke for {item.token_symbol}: {exc}")
                errors.append(f"{item.token_symbol}: {exc}")

        if not calls:
            return RevokeBatchResult(
                success=False,
                failed_count=len(items),
                errors=tuple(errors) or ("No valid revoke transactions to execute",),
            )

        try:
            reference = await self.wallet.send_calls(calls, owner, chain_id)
            if not reference:
                raise WalletRpcError("Wallet returned no batch reference")
        except Exception as exc:
            if is_user_rejection(exc):
                return RevokeBatchResult(
                    success=False,
                    failed_count=len(items),
                    errors=(USER_REJECTED_MESSAGE,),
                )
            logger.warning(f"Batch revoke failed, falling back to sequential: {_error_text(exc)}")
            return await self.execute_legacy_revoke(items, owner, chain_id, on_progress)

        logger.info(f"Batch revoke submitted: {reference}")
        if reference.startswith("0x") and len(reference) == 66:
            try:
                receipt = await self.wallet.wait_for_receipt(
                    reference, chain_id, timeout=self.config.batch_receipt_timeout_seconds
                )
                logger.info(f"Batch revoke confirmed: {receipt.status}")
            except Exception as exc:
                logger.info(f"Could not wait for batch revoke receipt: {_error_text(exc)}")

        if on_progress is not None:
            on_progress(len(items), len(items))

        return RevokeBatchResult(
            success=True,
            tx_hashes=(reference,),
            revoked_count=len(built),
            failed_count=len(errors),
            errors=tuple(errors),
            revoked_ids=tuple(item.id for item in built),
        )

    async def execute_legacy_revoke(
        self,
        items: Sequence[RevokeItem],
        owner: str,
        chain_id: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RevokeBatchResult:
        """One transaction per item; a rejection ends the queue."""
        tx_hashes: List[str] = []
        errors: List[str] = []
        revoked: List[str] = []

        for index, item in enumerate(items):
            if index:
                await asyncio.sleep(self.config.revoke_delay_seconds)
            if on_progress is not None:
                on_progress(index + 1, len(items))

            try:
                tx_hash = await self.wallet.send_transaction(build_revoke_call(item), owner, chain_id)
                tx_hashes.append(tx_hash)
                receipt = await self.wallet.wait_for_receipt(tx_hash, chain_id)
                if not receipt.is_success:
                    raise WalletRpcError("Transaction failed")
                revoked.append(item.id)
                logger.info(f"Revoked {item.token_symbol} -> {item.spender_display}")
            except Exception as exc:
                if is_user_rejection(exc):
                    return RevokeBatchResult(
                        success=False,
                        tx_hashes=tuple(tx_hashes),
                        revoked_count=len(revoked),
                        failed_count=len(items) - len(revoked),
                        errors=(USER_REJECTED_MESSAGE,),
                        revoked_ids=tuple(revoked),
                    )
                logger.error(f"Failed to revoke {item.token_symbol}: {_error_text(exc)}")
                errors.append(f"{item.token_symbol}: {_error_text(exc)}")

        logger.info(f"Legacy revoke complete: {len(revoked)} revoked, {len(errors)} failed")
        return RevokeBatchResult(
            success=bool(revoked),
            tx_hashes=tuple(tx_hashes),
            revoked_count=len(revoked),
            failed_count=len(errors),
            errors=tuple(errors),
            revoked_ids=tuple(revoked),
        )

    async def execute_single_revoke(self, item: RevokeItem, owner: str, chain_id: int) -> SingleRevokeResult:
        return await self._send_one(build_revoke_call, item, owner, chain_id)

    async def execute_partial_revoke(
        self,
        item: RevokeItem,
        new_allowance: int,
        owner: str,
        chain_id: int,
    ) -> SingleRevokeResult:
        """Lower an ERC20 allowance instead of zeroing it."""
        if item.type != ApprovalType.ERC20:
            return SingleRevokeResult(success=False, error="Partial revoke only supported for ERC20 tokens")
        if new_allowance < 0 or new_allowance > MAX_UINT256:
            raise ValidationError(f"Invalid allowance: {new_allowance}")

        return await self._send_one(
            lambda i: build_partial_revoke_call(i, new_allowance), item, owner, chain_id
        )

    async def _send_one(
        self,
        build: Callable[[RevokeItem], Call],
        item: RevokeItem,
        owner: str,
        chain_id: int,
    ) -> SingleRevokeResult:
        try:
            tx_hash = await self.wallet.send_transaction(build(item), owner, chain_id)
            receipt = await self.wallet.wait_for_receipt(tx_hash, chain_id)
        except Exception as exc:
            logger.error(f"Failed to revoke {item.token_symbol}: {_error_text(exc)}")
            if is_user_rejection(exc):
                return SingleRevokeResult(success=False, error=USER_REJECTED_MESSAGE)
            return SingleRevokeResult(success=False, error=_error_text(exc))

        if not receipt.is_success:
            return SingleRevokeResult(success=False, tx_hash=tx_hash, error="Transaction failed on chain")
        return SingleRevokeResult(success=True, tx_hash=tx_hash)
