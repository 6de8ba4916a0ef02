"""
Shared fixtures: a scripted wallet, a scripted quote source and zero-delay settings.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from dustsweep.config import Settings
from dustsweep.core.errors import UserRejectedError
from dustsweep.core.models import Call, QuoteRequest, QuoteResponse, Receipt, Token
from dustsweep.providers.wallet import WalletClient


OWNER = "0x1111111111111111111111111111111111111111"
ROUTER = "0x2222222222222222222222222222222222222222"
TOKEN_A = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
TOKEN_B = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
TOKEN_C = "0xcccccccccccccccccccccccccccccccccccccccc"


def tx_hash(n: int) -> str:
    return "0x" + format(n, "064x")


class FakeWallet(WalletClient):
    """In-memory wallet. Every knob is a plain attribute tests can set."""

    def __init__(self, config: Optional[Settings] = None) -> None:
        super().__init__(config)
        self.native_balance = 10**18
        self.balance_error: Optional[Exception] = None
        self.allowances: Dict[Tuple[str, str], int] = {}
        self.allowance_error: Optional[Exception] = None
        self.capabilities: Dict[str, Any] = {}
        self.capabilities_error: Optional[Exception] = None
        self.batch_reference: str = "batch-1"
        self.batch_error: Optional[Exception] = None
        # send_transaction call index -> exception to raise
        self.tx_errors: Dict[int, Exception] = {}
        self.reverted: set = set()

        self.sent_batches: List[List[Call]] = []
        self.sent_transactions: List[Call] = []
        self.receipt_waits: List[str] = []
        self.capability_queries = 0

    async def get_capabilities(self, address: str) -> Dict[str, Any]:
        self.capability_queries += 1
        if self.capabilities_error:
            raise self.capabilities_error
        return self.capabilities

    async def send_calls(self, calls: Sequence[Call], owner: str, chain_id: int) -> str:
        self.sent_batches.append(list(calls))
        if self.batch_error:
            raise self.batch_error
        return self.batch_reference

    async def send_transaction(self, call: Call, owner: str, chain_id: int) -> str:
        index = len(self.sent_transactions)
        self.sent_transactions.append(call)
        if index in self.tx_errors:
            raise self.tx_errors[index]
        return tx_hash(index + 1)

    async def read_allowance(self, token_address: str, owner: str, spender: str, chain_id: int) -> int:
        if self.allowance_error:
            raise self.allowance_error
        return self.allowances.get((token_address.lower(), spender.lower()), 0)

    async def get_balance(self, address: str, chain_id: int) -> int:
        if self.balance_error:
            raise self.balance_error
        return self.native_balance

    async def wait_for_receipt(self, tx_hash: str, chain_id: int, timeout: Optional[float] = None) -> Receipt:
        self.receipt_waits.append(tx_hash)
        status = "reverted" if tx_hash in self.reverted else "success"
        return Receipt(tx_hash=tx_hash, status=status, block_number=1)


class StubQuotes:
    """Quote source keyed by input token address; unknown tokens get no route."""

    def __init__(self, quotes: Optional[Dict[str, Optional[QuoteResponse]]] = None, has_api_key: bool = True):
        self.quotes = {k.lower(): v for k, v in (quotes or {}).items()}
        self.has_api_key = has_api_key
        self.requests: List[QuoteRequest] = []

    async def get_quote_with_retry(self, request: QuoteRequest, max_retries: Optional[int] = None):
        self.requests.append(request)
        key = request.token_in.address.lower()
        if key not in self.quotes:
            return QuoteResponse.empty(request)
        return self.quotes[key]

    async def get_multiple_quotes(self, requests):
        return [
            (await self.get_quote_with_retry(r)) or QuoteResponse.empty(r, "Rate limited")
            for r in requests
        ]

    async def check_route_available(self, chain_id, token_address, destination_currency, user_address,
                                    decimals=18, amount=None):
        quote = self.quotes.get(token_address.lower())
        return bool(quote and quote.is_liquid)


def make_token(address: str = TOKEN_A, symbol: str = "AAA", **overrides: Any) -> Token:
    fields = dict(
        address=address,
        chain_id=1,
        symbol=symbol,
        decimals=18,
        balance=10**18,
        price_usd=2.0,
        value_usd=2.0,
    )
    fields.update(overrides)
    return Token(**fields)


def make_quote(token: Token, amount_out: int = 5 * 10**14, **overrides: Any) -> QuoteResponse:
    fields = dict(
        amount_in=token.balance * 9800 // 10000,
        amount_out=amount_out,
        token_in=token.address,
        token_out="0x0000000000000000000000000000000000000000",
        price_impact=1.0,
        network_cost_usd=0.05,
        is_liquid=True,
        route_description="Swap",
        route_id="req-1",
        to=ROUTER,
        data="0xdeadbeef",
        value=0,
        spender=ROUTER,
        slippage_percent=0.5,
    )
    fields.update(overrides)
    return QuoteResponse(**fields)


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with every delay at zero and no API keys."""
    return Settings(
        relay_api_key="",
        covalent_api_key="test-key",
        relay_base_url="https://relay.test",
        covalent_base_url="https://covalent.test/v1",
        quote_stagger_seconds=0,
        quote_sequential_delay_seconds=0,
        batch_quote_delay_seconds=0,
        legacy_token_delay_seconds=0,
        post_approval_delay_seconds=0,
        revoke_delay_seconds=0,
        approvals_chain_delay_seconds=0,
        route_check_batch_delay_seconds=0,
        route_check_batch_delay_no_key_seconds=0,
        quote_retry_base_delay_seconds=0,
        receipt_poll_interval_seconds=0,
    )


@pytest.fixture
def wallet(fast_settings) -> FakeWallet:
    return FakeWallet(fast_settings)
