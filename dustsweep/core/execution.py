"""
Sweep Execution Orchestrator

Turns a token selection into approvals and swaps, either as one EIP-5792
call batch or as sequential per-token transactions, and folds the outcome
into a single ExecutionResult.

Status flow: ANALYZING -> [APPROVING ->] SWAPPING -> COMPLETED | FAILED.
Precondition failures only emit FAILED.
"""

import asyncio
import dataclasses
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

import structlog

from .allowance import AllowanceChecker
from .constants import (
    NATIVE_TOKEN_ADDRESS,
    TOKEN_ADDRESSES,
    ZERO_ADDRESS,
    get_native_symbol,
    is_supported_chain,
)
from .errors import (
    DustSweepError,
    SafetyBlockError,
    TransactionFailedError,
    UnsupportedChainError,
    ValidationError,
    WalletRpcError,
    is_user_rejection,
)
from .models import (
    BatchStatus,
    Call,
    ExecutionResult,
    ExecutionStrategy,
    QuoteRequest,
    QuoteResponse,
    TargetToken,
    Token,
)
from .quotes import QuoteClient
from .safety import validate_quote, validate_token_safety
from ..config import Settings, settings as default_settings
from ..logging_config import bind_run_context, clear_run_context
from ..providers.wallet import WalletClient
from ..services.address import is_valid_address


logger = structlog.stdlib.get_logger("dustsweep.execution")

StatusCallback = Callable[[BatchStatus], None]

NO_ROUTES_MESSAGE = (
    "No liquid routes found for the selected tokens. "
    "Relay Protocol might have a minimum amount requirement (usually >$1)."
)
INSUFFICIENT_GAS_MESSAGE = (
    "Insufficient native balance for gas fees. "
    "Please add some ETH/native token to your wallet."
)
USER_REJECTED_MESSAGE = "Transaction rejected by user"


def resolve_output_token(chain_id: int, target_token: Union[TargetToken, str] = TargetToken.ETH) -> str:
    """Concrete output asset address for a target on a chain."""
    addresses = TOKEN_ADDRESSES.get(chain_id)
    if not addresses:
        raise UnsupportedChainError(chain_id)

    try:
        target = TargetToken(target_token)
    except ValueError as exc:
        raise ValidationError(f"Unsupported target token: {target_token}") from exc

    if target == TargetToken.ETH:
        return NATIVE_TOKEN_ADDRESS
    address = addresses.get(target.value)
    if not address:
        raise ValidationError(f"Target token {target.value} not supported on chain {chain_id}")
    return address


def is_target_token(token: Token, target_token: Union[TargetToken, str], chain_id: int) -> bool:
    """A token cannot be swapped into itself (or into its wrapped form)."""
    symbol = token.symbol.upper()
    target = TargetToken(target_token)
    if target == TargetToken.ETH:
        native = get_native_symbol(chain_id).upper()
        return symbol in ("ETH", "WETH", native, f"W{native}")
    return symbol == target.value


def _error_text(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


@dataclass
class _Tally:
    """Mutable accumulator for one run; frozen into an ExecutionResult at the end."""
    tx_hashes: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    successful: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    total_swapped: int = 0
    estimated_output: int = 0

    def skip(self, token: Token, reason: str) -> None:
        self.errors.append(f"{token.symbol}: {reason}")
        self.failed.append(token.symbol)

    def result(self, success: bool, error: Optional[str]) -> ExecutionResult:
        return ExecutionResult(
            success=success,
            tx_hashes=tuple(self.tx_hashes),
            error=error,
            total_swapped=self.total_swapped,
            estimated_output=self.estimated_output,
            successful_tokens=tuple(self.successful),
            failed_tokens=tuple(self.failed),
        )


class ExecutionOrchestrator:
    """
    Drives one sweep at a time.

    Handles:
    - Precondition checks (address, chain, target, token safety, gas)
    - STANDARD_BATCH: all approvals and swaps in one wallet_sendCalls
    - LEGACY: quote, approve, swap and confirm token by token
    - Fallback from a failed batch submission to legacy
    """

    def __init__(
        self,
        wallet: WalletClient,
        quote_client: Optional[QuoteClient] = None,
        allowance_checker: Optional[AllowanceChecker] = None,
        config: Optional[Settings] = None,
    ):
        self.wallet = wallet
        self.config = config or default_settings
        self.quotes = quote_client or QuoteClient(config=self.config)
        self.allowances = allowance_checker or AllowanceChecker(wallet)

    async def execute_batch(
        self,
        tokens: Sequence[Token],
        strategy: ExecutionStrategy,
        owner: str,
        chain_id: int,
        on_status: Optional[StatusCallback] = None,
        target_token: Union[TargetToken, str] = TargetToken.ETH,
    ) -> ExecutionResult:
        """
        Sweep `tokens` into `target_token`.

        Never raises: every outcome, including precondition failures, comes
        back as an ExecutionResult after a terminal COMPLETED or FAILED status.
        """
        bind_run_context("sweep", chain_id=chain_id, strategy=getattr(strategy, "value", strategy))
        try:
            try:
                output_token, to_execute = await self._prepare(tokens, owner, chain_id, target_token)
            except DustSweepError as exc:
                logger.warning("sweep_rejected", reason=exc.message, category=exc.category.value)
                self._emit(on_status, BatchStatus.FAILED)
                return ExecutionResult.failed(exc.message)

            logger.info(
                "sweep_started",
                token_count=len(to_execute),
                target=getattr(target_token, "value", target_token),
                output_token=output_token,
            )
            self._emit(on_status, BatchStatus.ANALYZING)

            try:
                if strategy == ExecutionStrategy.STANDARD_BATCH:
                    result = await self._execute_standard_batch(to_execute, output_token, owner, chain_id, on_status)
                else:
                    # SMART_BATCH has no delegated executor yet
                    result = await self._execute_legacy(to_execute, output_token, owner, chain_id, on_status)
            except Exception as exc:
                logger.exception("sweep_crashed")
                result = ExecutionResult.failed(_error_text(exc))

            terminal = BatchStatus.COMPLETED if result.success and result.tx_hashes else BatchStatus.FAILED
            logger.info(
                "sweep_finished",
                status=terminal.value,
                tx_count=len(result.tx_hashes),
                successful=list(result.successful_tokens),
                failed=list(result.failed_tokens),
                error=result.error,
            )
            self._emit(on_status, terminal)
            return result
        finally:
            clear_run_context()

    async def _prepare(
        self,
        tokens: Sequence[Token],
        owner: str,
        chain_id: int,
        target_token: Union[TargetToken, str],
    ) -> Tuple[str, List[Token]]:
        if not is_valid_address(owner):
            raise ValidationError("Invalid owner address")
        if not is_supported_chain(chain_id):
            raise UnsupportedChainError(chain_id)

        output_token = resolve_output_token(chain_id, target_token)
        validate_token_safety(tokens)

        try:
            balance = await self.wallet.get_balance(owner, chain_id)
        except Exception as exc:
            raise ValidationError(f"Could not read native balance: {_error_text(exc)}") from exc
        if balance <= 0:
            raise ValidationError(INSUFFICIENT_GAS_MESSAGE)

        to_execute = [
            token if token.chain_id == chain_id else dataclasses.replace(token, chain_id=chain_id)
            for token in tokens
            if not is_target_token(token, target_token, chain_id)
        ]
        if not to_execute:
            raise ValidationError("No valid tokens to swap (cannot swap target asset for itself).")
        return output_token, to_execute

    def _emit(self, on_status: Optional[StatusCallback], status: BatchStatus) -> None:
        if on_status is None:
            return
        try:
            on_status(status)
        except Exception:
            logger.warning("status_callback_failed", status=status.value, exc_info=True)

    def _quote_request(self, token: Token, output_token: str, owner: str, chain_id: int) -> QuoteRequest:
        return QuoteRequest.for_token(token, output_token, chain_id, owner, self.config.swap_amount_bps)

    @staticmethod
    def _spender(quote: QuoteResponse) -> str:
        if quote.spender and quote.spender.lower() != ZERO_ADDRESS:
            return quote.spender
        return quote.to

    # =========================================================================
    # STANDARD_BATCH
    # =========================================================================

    async def _execute_standard_batch(
        self,
        tokens: List[Token],
        output_token: str,
        owner: str,
        chain_id: int,
        on_status: Optional[StatusCallback],
    ) -> ExecutionResult:
        calls: List[Call] = []
        tally = _Tally()

        for index, token in enumerate(tokens):
            if index:
                await asyncio.sleep(self.config.batch_quote_delay_seconds)

            try:
                quote = await self.quotes.get_quote_with_retry(
                    self._quote_request(token, output_token, owner, chain_id)
                )
                if quote is None or not quote.is_liquid:
                    reason = quote.route_description if quote else "No route found"
                    logger.warning("token_skipped", symbol=token.symbol, reason=reason)
                    tally.skip(token, reason or "No route found")
                    continue
                if not quote.is_executable:
                    logger.warning("token_skipped", symbol=token.symbol, reason="invalid quote")
                    tally.skip(token, "Invalid quote")
                    continue
                try:
                    validate_quote(quote, self.config)
                except SafetyBlockError as exc:
                    logger.warning("token_blocked", symbol=token.symbol, reason=exc.reason)
                    tally.skip(token, exc.message)
                    continue

                spender = self._spender(quote)
                check = await self.allowances.check_allowance(token, token.balance, spender, owner)
                token_calls = []
                if check.needs_approval:
                    token_calls.append(self.allowances.build_approval_call(token, check.required_amount, spender))
                token_calls.append(Call(to=quote.to, data=quote.data, value=quote.value))
            except Exception as exc:
                logger.warning("token_prepare_failed", symbol=token.symbol, error=_error_text(exc))
                tally.skip(token, _error_text(exc))
                continue

            calls.extend(token_calls)
            tally.successful.append(token.symbol)
            tally.total_swapped += token.balance
            tally.estimated_output += quote.amount_out

        if not calls:
            return tally.result(False, f"No valid swaps to execute. {' | '.join(tally.errors)}".strip())

        logger.info("batch_submitting", call_count=len(calls), token_count=len(tally.successful))
        self._emit(on_status, BatchStatus.SWAPPING)

        try:
            reference = await self.wallet.send_calls(calls, owner, chain_id)
            if not reference:
                raise WalletRpcError("Wallet returned no batch reference")
        except Exception as exc:
            if is_user_rejection(exc):
                logger.info("batch_rejected_by_user")
                return ExecutionResult.failed(USER_REJECTED_MESSAGE, failed_tokens=tuple(t.symbol for t in tokens))
            logger.warning("batch_submit_failed_falling_back", error=_error_text(exc))
            return await self._execute_legacy(tokens, output_token, owner, chain_id, on_status)

        await self._confirm_batch(reference, chain_id)

        partial = f"Partial: {' | '.join(tally.errors)}" if tally.errors else None
        tally.tx_hashes.append(reference)
        return tally.result(True, partial)

    async def _confirm_batch(self, reference: str, chain_id: int) -> None:
        """One receipt wait; the batch may be identified by a non-hash id."""
        if not (reference.startswith("0x") and len(reference) == 66):
            logger.info("batch_submitted", reference=reference)
            return
        try:
            receipt = await self.wallet.wait_for_receipt(
                reference, chain_id, timeout=self.config.batch_receipt_timeout_seconds
            )
            logger.info("batch_confirmed", tx_hash=reference, status=receipt.status)
        except Exception as exc:
            logger.info("batch_receipt_unavailable", tx_hash=reference, error=_error_text(exc))

    # =========================================================================
    # LEGACY
    # =========================================================================

    async def _execute_legacy(
        self,
        tokens: List[Token],
        output_token: str,
        owner: str,
        chain_id: int,
        on_status: Optional[StatusCallback],
    ) -> ExecutionResult:
        tally = _Tally()
        rejected = False

        for index, token in enumerate(tokens):
            if index:
                await asyncio.sleep(self.config.legacy_token_delay_seconds)

            try:
                await self._swap_one(token, output_token, owner, chain_id, on_status, tally)
            except Exception as exc:
                if is_user_rejection(exc):
                    # The user said no; leave the rest of the queue alone.
                    logger.info("legacy_rejected_by_user", symbol=token.symbol)
                    tally.skip(token, USER_REJECTED_MESSAGE)
                    rejected = True
                    break
                logger.warning("token_failed", symbol=token.symbol, error=_error_text(exc))
                tally.skip(token, _error_text(exc))

        if not tally.tx_hashes:
            if rejected:
                return tally.result(False, USER_REJECTED_MESSAGE)
            if tally.errors:
                return tally.result(False, f"Execution Failed: {' | '.join(tally.errors)}")
            return tally.result(False, NO_ROUTES_MESSAGE)

        return tally.result(True, " | ".join(tally.errors) or None)

    async def _swap_one(
        self,
        token: Token,
        output_token: str,
        owner: str,
        chain_id: int,
        on_status: Optional[StatusCallback],
        tally: _Tally,
    ) -> None:
        """Quote, approve if needed, swap. Skips are recorded; failures raise."""
        quote = await self.quotes.get_quote_with_retry(
            self._quote_request(token, output_token, owner, chain_id)
        )
        if quote is None:
            tally.skip(token, "Failed to get quote")
            return
        if not quote.is_liquid:
            tally.skip(token, quote.route_description or "No route found")
            return
        if not quote.to or quote.to.lower() == ZERO_ADDRESS:
            tally.skip(token, "Invalid quote - no destination address")
            return
        if not quote.data or quote.data == "0x":
            tally.skip(token, "Invalid quote - no transaction data")
            return
        try:
            validate_quote(quote, self.config)
        except SafetyBlockError as exc:
            logger.warning("token_blocked", symbol=token.symbol, reason=exc.reason)
            tally.skip(token, exc.message)
            return

        spender = self._spender(quote)
        check = await self.allowances.check_allowance(token, token.balance, spender, owner)

        if check.needs_approval:
            logger.info("approving", symbol=token.symbol, spender=spender)
            self._emit(on_status, BatchStatus.APPROVING)
            approve_hash = await self.wallet.approve(
                token.address, spender, owner, chain_id, amount=check.required_amount
            )
            tally.tx_hashes.append(approve_hash)
            receipt = await self.wallet.wait_for_receipt(approve_hash, chain_id)
            if not receipt.is_success:
                raise TransactionFailedError("Approval transaction failed", tx_hash=approve_hash)
            await asyncio.sleep(self.config.post_approval_delay_seconds)

        logger.info("swapping", symbol=token.symbol, to=quote.to)
        self._emit(on_status, BatchStatus.SWAPPING)
        swap_hash = await self.wallet.send_transaction(
            Call(to=quote.to, data=quote.data, value=quote.value), owner, chain_id
        )
        tally.tx_hashes.append(swap_hash)
        receipt = await self.wallet.wait_for_receipt(swap_hash, chain_id)
        if not receipt.is_success:
            raise TransactionFailedError("Swap transaction failed", tx_hash=swap_hash)

        tally.successful.append(token.symbol)
        tally.total_swapped += token.balance
        tally.estimated_output += quote.amount_out
