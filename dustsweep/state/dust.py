"""
Dust sweep session state.

Owns the scanned tokens, the user's selection, live quotes and the last
execution result. Scans and quote refreshes are guarded by request epochs so
a slow, superseded request never overwrites newer state.
"""

import asyncio
import dataclasses
import logging
from typing import List, Optional

from .epoch import Epoch
from .wallet import WalletSession
from ..config import Settings, settings as default_settings
from ..core.constants import TOKEN_ADDRESSES, ZERO_ADDRESS, is_supported_chain
from ..core.execution import ExecutionOrchestrator, StatusCallback, is_target_token, resolve_output_token
from ..core.gas import estimate_gas_cost_usd
from ..core.models import (
    BatchStatus,
    ExecutionResult,
    ExecutionStrategy,
    QuoteRequest,
    QuoteResponse,
    TargetToken,
    Token,
)
from ..core.quotes import QuoteClient
from ..providers.base import HoldingsProvider
from ..services.address import is_valid_address
from ..services.holdings import calculate_total_value, filter_dust_tokens


logger = logging.getLogger(__name__)


class DustSession:
    def __init__(
        self,
        holdings: HoldingsProvider,
        quote_client: QuoteClient,
        orchestrator: ExecutionOrchestrator,
        wallet: Optional[WalletSession] = None,
        config: Optional[Settings] = None,
    ):
        self.holdings = holdings
        self.quote_client = quote_client
        self.orchestrator = orchestrator
        self.wallet = wallet or WalletSession()
        self.config = config or default_settings

        self.scan_epoch = Epoch()
        self.quote_epoch = Epoch()
        self._clear()

    def _clear(self) -> None:
        self.is_scanning = False
        self.is_checking_routes = False
        self.is_quoting = False
        self.scanned_tokens: List[Token] = []
        self.filtered_tokens: List[Token] = []
        self.selected_tokens: List[Token] = []
        self.target_token = TargetToken.ETH
        self.quotes: List[QuoteResponse] = []
        self.estimated_gas_cost = 0.0
        self.error: Optional[str] = None
        self.last_scan_time: Optional[float] = None
        self.status = BatchStatus.IDLE
        self.last_result: Optional[ExecutionResult] = None

    # -- derived ---------------------------------------------------------

    @property
    def total_value(self) -> float:
        return calculate_total_value(self.selected_tokens)

    @property
    def main_tokens(self) -> List[Token]:
        return [t for t in self.filtered_tokens if t.value_usd >= self.config.main_token_threshold_usd]

    @property
    def low_value_tokens(self) -> List[Token]:
        return [t for t in self.filtered_tokens if t.value_usd < self.config.main_token_threshold_usd]

    @property
    def total_output(self) -> int:
        return sum(q.amount_out for q in self.quotes)

    @property
    def avg_price_impact(self) -> float:
        if not self.quotes:
            return 0.0
        return sum(q.price_impact for q in self.quotes) / len(self.quotes)

    @property
    def quote_error(self) -> Optional[str]:
        for quote in self.quotes:
            if not quote.is_liquid:
                return quote.route_description
        return None

    @property
    def dust_count(self) -> int:
        return len(self.filtered_tokens)

    @property
    def selected_count(self) -> int:
        return len(self.selected_tokens)

    @property
    def has_selection(self) -> bool:
        return bool(self.selected_tokens)

    # -- scanning --------------------------------------------------------

    async def scan(self, address: str, chain_id: int) -> None:
        if not is_valid_address(address):
            self.error = "Invalid wallet address"
            return
        if not is_supported_chain(chain_id):
            self.error = "Unsupported chain"
            return

        epoch = self.scan_epoch.begin()
        self.is_scanning = True
        self.status = BatchStatus.SCANNING
        self.error = None

        try:
            holdings = await self.holdings.fetch_holdings(address, chain_id)
        except Exception as exc:
            if self.scan_epoch.is_current(epoch):
                self.error = str(exc) or "Failed to scan tokens"
                self.is_scanning = False
                self.status = BatchStatus.IDLE
            return

        if not self.scan_epoch.is_current(epoch):
            logger.debug(f"Discarding stale scan for {address} on {chain_id}")
            return

        self.scanned_tokens = list(holdings.tokens)
        self.filtered_tokens = filter_dust_tokens(holdings.tokens)
        self.last_scan_time = holdings.scanned_at
        self.selected_tokens = []
        self.quotes = []
        self.is_scanning = False
        self.status = BatchStatus.IDLE

    async def check_routes_for_tokens(self, chain_id: int, user_address: str) -> None:
        """Probe liquidity for every dust token in small batches."""
        if not self.filtered_tokens or not is_supported_chain(chain_id) or not user_address:
            return
        addresses = TOKEN_ADDRESSES.get(chain_id)
        if not addresses:
            return

        # Probing against WETH is more reliable than the native sentinel
        if self.target_token == TargetToken.ETH:
            destination = addresses.get("WETH", ZERO_ADDRESS)
        else:
            destination = addresses.get(self.target_token.value, ZERO_ADDRESS)

        has_key = self.quote_client.has_api_key
        batch_size = 5 if has_key else 2
        delay = (
            self.config.route_check_batch_delay_seconds
            if has_key
            else self.config.route_check_batch_delay_no_key_seconds
        )
        tokens = [t for t in self.filtered_tokens if not self.is_target_token(t)]

        self.is_checking_routes = True
        try:
            for start in range(0, len(tokens), batch_size):
                batch = tokens[start:start + batch_size]
                results = await asyncio.gather(
                    *(
                        self.quote_client.check_route_available(
                            chain_id, t.address, destination, user_address, t.decimals, t.balance
                        )
                        for t in batch
                    )
                )
                for token, available in zip(batch, results):
                    self.update_token_liquidity(token.address, available)

                if start + batch_size < len(tokens):
                    await asyncio.sleep(delay)
        finally:
            self.is_checking_routes = False

    def update_token_liquidity(self, address: str, is_liquid: bool) -> None:
        target = address.lower()

        def update(tokens: List[Token]) -> List[Token]:
            return [
                dataclasses.replace(t, is_liquid=is_liquid) if t.address.lower() == target else t
                for t in tokens
            ]

        self.scanned_tokens = update(self.scanned_tokens)
        self.filtered_tokens = update(self.filtered_tokens)
        self.selected_tokens = update(self.selected_tokens)

    # -- selection -------------------------------------------------------

    def is_target_token(self, token: Token) -> bool:
        return is_target_token(token, self.target_token, self.wallet.chain_id or 1)

    def is_selected(self, token: Token) -> bool:
        return any(t.address == token.address for t in self.selected_tokens)

    async def set_target_token(self, target: TargetToken) -> None:
        self.target_token = TargetToken(target)
        self.selected_tokens = [t for t in self.selected_tokens if not self.is_target_token(t)]
        if self.wallet.is_valid_connection:
            await self.check_routes_for_tokens(self.wallet.chain_id, self.wallet.address)
        await self.update_quotes()

    async def toggle_token(self, token: Token) -> None:
        if self.is_target_token(token):
            return
        if self.is_selected(token):
            self.selected_tokens = [t for t in self.selected_tokens if t.address != token.address]
            # Deselecting clears a stale "no route" label
            self.update_token_liquidity(token.address, True)
        else:
            self.selected_tokens = [*self.selected_tokens, token]
        await self.update_quotes()

    async def select_token(self, token: Token) -> None:
        """Select without toggling, using the freshest copy from the scan."""
        if self.is_target_token(token) or self.is_selected(token):
            return
        fresh = next((t for t in self.filtered_tokens if t.address == token.address), None)
        if fresh is None:
            return
        self.selected_tokens = [*self.selected_tokens, fresh]
        await self.update_quotes()

    async def select_all(self) -> None:
        self.selected_tokens = [t for t in self.filtered_tokens if not self.is_target_token(t)]
        await self.update_quotes()

    def deselect_all(self) -> None:
        self.selected_tokens = []
        self.quotes = []
        self.estimated_gas_cost = 0.0

    # -- quotes ----------------------------------------------------------

    async def update_quotes(self) -> None:
        tokens = [t for t in self.selected_tokens if not self.is_target_token(t)]
        if not tokens:
            self.quotes = []
            return
        if not self.wallet.is_valid_connection:
            return

        epoch = self.quote_epoch.begin()
        self.is_quoting = True
        chain_id = self.wallet.chain_id

        try:
            output_token = resolve_output_token(chain_id, self.target_token)
            requests = [
                QuoteRequest.for_token(t, output_token, chain_id, self.wallet.address, self.config.swap_amount_bps)
                for t in tokens
            ]
            quotes = await self.quote_client.get_multiple_quotes(requests)
        except Exception as exc:
            if self.quote_epoch.is_current(epoch):
                self.error = getattr(exc, "message", None) or str(exc) or "Failed to fetch quotes"
                self.is_quoting = False
            return

        if not self.quote_epoch.is_current(epoch):
            logger.debug("Discarding stale quotes")
            return

        self.quotes = quotes
        self.is_quoting = False
        if self.wallet.detected_strategy:
            await self.update_gas_estimate(chain_id, self.wallet.detected_strategy)

        for token, quote in zip(tokens, quotes):
            if not quote.is_liquid:
                self.update_token_liquidity(token.address, False)

    async def update_gas_estimate(self, chain_id: int, strategy: ExecutionStrategy) -> None:
        if not self.selected_tokens:
            self.estimated_gas_cost = 0.0
            return
        self.estimated_gas_cost = await estimate_gas_cost_usd(
            chain_id, strategy, len(self.selected_tokens), self.config
        )

    # -- execution -------------------------------------------------------

    async def execute(
        self,
        strategy: Optional[ExecutionStrategy] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> ExecutionResult:
        """Sweep the current selection with the detected (or given) strategy."""
        if not self.wallet.is_valid_connection:
            self.status = BatchStatus.FAILED
            self.error = "Wallet not connected to a supported chain"
            self.last_result = ExecutionResult.failed(self.error)
            return self.last_result

        def track(status: BatchStatus) -> None:
            self.status = status
            if on_status is not None:
                on_status(status)

        result = await self.orchestrator.execute_batch(
            self.selected_tokens,
            strategy or self.wallet.detected_strategy or ExecutionStrategy.LEGACY,
            self.wallet.address,
            self.wallet.chain_id,
            on_status=track,
            target_token=self.target_token,
        )
        self.last_result = result
        self.error = None if result.success else result.error
        return result

    def reset(self) -> None:
        self.scan_epoch.reset()
        self.quote_epoch.reset()
        self._clear()
