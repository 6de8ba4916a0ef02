"""
Quote client over the Relay solver.

Turns Relay's multi-step quote responses into a flat `QuoteResponse`. Missing
liquidity never raises: it comes back as a non-liquid quote carrying a
readable reason. Only HTTP 429 raises (`RateLimitError`) so callers can back
off.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from .constants import (
    NATIVE_TOKEN_ADDRESS,
    RELAY_ERROR_MESSAGES,
    TOKEN_ADDRESSES,
    to_relay_address,
)
from .errors import RateLimitError
from .models import QuoteRequest, QuoteResponse, RouteAlternative, TargetToken, Token
from .tx_builder import decode_approve_spender
from ..config import Settings, settings as default_settings
from ..providers.relay import RelayProvider


logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE_PERCENT = 0.5


def relay_error_message(code: Optional[str], fallback: Optional[str] = None) -> str:
    """Map a Relay error code to a user-facing message."""
    if code and code in RELAY_ERROR_MESSAGES:
        return RELAY_ERROR_MESSAGES[code]
    if fallback:
        return fallback
    return f"Error: {code}" if code else "No route found"


def _to_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


APPROVAL_STEP_IDS = ("approve", "approval")


def extract_transaction(steps: Optional[Sequence[Dict[str, Any]]]) -> Optional[Tuple[str, str, int]]:
    """First usable (to, data, value) triple, preferring non-approval `transaction` steps."""
    if not steps:
        return None

    for step in steps:
        if step.get("id") in APPROVAL_STEP_IDS:
            continue
        if step.get("kind") == "transaction" and step.get("items"):
            data = step["items"][0].get("data") or {}
            if data.get("to") and data.get("data"):
                return data["to"], data["data"], _to_int(data.get("value"))

    for step in steps:
        if step.get("id") in APPROVAL_STEP_IDS:
            continue
        for item in step.get("items") or []:
            data = item.get("data") or {}
            if data.get("to") and data.get("data"):
                return data["to"], data["data"], _to_int(data.get("value"))

    return None


def _approval_spender(steps: Sequence[Dict[str, Any]]) -> Optional[str]:
    for step in steps:
        if step.get("id") not in APPROVAL_STEP_IDS:
            continue
        for item in step.get("items") or []:
            spender = decode_approve_spender((item.get("data") or {}).get("data"))
            if spender:
                return spender
    return None


def normalize_quote(request: QuoteRequest, data: Dict[str, Any]) -> QuoteResponse:
    """Flatten a Relay /quote body into a QuoteResponse."""
    steps = data.get("steps") or []
    tx = extract_transaction(steps)
    if tx is None:
        logger.warning(f"No transaction data in quote for {request.token_in.symbol}")
        return QuoteResponse.empty(request, "No executable route")

    to, calldata, value = tx
    details = data.get("details") or {}
    impact = (details.get("totalImpact") or {}).get("percent") or (details.get("swapImpact") or {}).get("percent")
    amount_out = _to_int((details.get("currencyOut") or {}).get("amount"))

    operation = details.get("operation")
    route_description = operation[:1].upper() + operation[1:] if operation else "Relay"
    route_id = steps[0].get("requestId") if steps else None

    return QuoteResponse(
        amount_in=request.amount_in,
        amount_out=amount_out,
        token_in=request.token_in.address,
        token_out=request.token_out,
        price_impact=abs(_to_float(impact)),
        network_cost_usd=_to_float(((data.get("fees") or {}).get("gas") or {}).get("amountUsd")),
        is_liquid=True,
        route_description=route_description,
        route_id=route_id or f"relay-{int(time.time() * 1000)}",
        to=to,
        data=calldata,
        value=value,
        spender=_approval_spender(steps) or to,
        slippage_percent=DEFAULT_SLIPPAGE_PERCENT,
    )


class QuoteClient:
    """Solver quotes with rate-limit aware fan-out."""

    def __init__(
        self,
        provider: Optional[RelayProvider] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self.config = config or default_settings
        self.provider = provider or RelayProvider(config=self.config)

    @property
    def has_api_key(self) -> bool:
        return self.provider.has_api_key

    def build_payload(self, request: QuoteRequest) -> Dict[str, Any]:
        recipient = request.recipient.lower()
        return {
            "user": recipient,
            "recipient": recipient,
            "originChainId": int(request.chain_id),
            "destinationChainId": int(request.chain_id),
            "originCurrency": to_relay_address(request.token_in.address),
            "destinationCurrency": to_relay_address(request.token_out),
            "amount": str(request.amount_in),
            "tradeType": "EXACT_INPUT",
            "referrer": self.config.relay_referrer,
            "usePermit": False,
        }

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        if request.amount_in <= 0:
            return QuoteResponse.empty(request, "Amount must be greater than zero")

        payload = self.build_payload(request)
        logger.debug(f"Quote request for {request.token_in.symbol}: {payload}")

        try:
            data = await self.provider.quote(payload)
        except httpx.HTTPStatusError as exc:
            response = exc.response
            if response.status_code == 429:
                retry_after = _to_float(response.headers.get("retry-after")) or None
                raise RateLimitError(retry_after=retry_after) from exc
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            message = relay_error_message(body.get("code"), body.get("message"))
            logger.warning(
                f"Relay quote error for {request.token_in.symbol}: "
                f"{response.status_code} {body.get('code', '')} {message}"
            )
            return QuoteResponse.empty(request, message)
        except httpx.RequestError as exc:
            logger.error(f"Quote fetch failed for {request.token_in.symbol}: {exc}")
            return QuoteResponse.empty(request, str(exc) or "Connection failed")

        return normalize_quote(request, data)

    async def get_quote_with_retry(
        self,
        request: QuoteRequest,
        max_retries: Optional[int] = None,
    ) -> Optional[QuoteResponse]:
        """Retry rate-limited quotes with exponential backoff.

        Returns None once retries are exhausted or on any other failure.
        """
        if max_retries is None:
            max_retries = self.config.quote_max_retries
        # Zero retries still makes the first request
        attempts = max(1, max_retries)
        base_delay = self.config.quote_retry_base_delay_seconds

        for attempt in range(attempts):
            try:
                return await self.get_quote(request)
            except RateLimitError:
                if attempt == attempts - 1:
                    break
                delay = base_delay * (2 ** attempt)
                logger.warning(f"Rate limited, retrying in {delay:.2f}s")
                await asyncio.sleep(delay)
            except Exception as exc:
                logger.error(f"Quote fetch failed for {request.token_in.symbol}: {exc}")
                return None

        logger.error(f"Quote for {request.token_in.symbol} still rate limited after {attempts} attempts")
        return None

    async def get_multiple_quotes(self, requests: Sequence[QuoteRequest]) -> List[QuoteResponse]:
        """One quote per request, in request order.

        With an API key the requests run concurrently with a small stagger;
        without one they run strictly one after another.
        """
        if not requests:
            return []

        if self.has_api_key:
            stagger = self.config.quote_stagger_seconds

            async def fetch(index: int, request: QuoteRequest) -> QuoteResponse:
                if index and stagger:
                    await asyncio.sleep(index * stagger)
                return await self._quote_or_placeholder(request)

            return list(await asyncio.gather(*(fetch(i, req) for i, req in enumerate(requests))))

        results: List[QuoteResponse] = []
        for index, request in enumerate(requests):
            if index:
                await asyncio.sleep(self.config.quote_sequential_delay_seconds)
            results.append(await self._quote_or_placeholder(request))
        return results

    async def _quote_or_placeholder(self, request: QuoteRequest) -> QuoteResponse:
        quote = await self.get_quote_with_retry(request)
        return quote if quote is not None else QuoteResponse.empty(request, "Rate limited")

    async def check_route_available(
        self,
        chain_id: int,
        token_address: str,
        destination_currency: str,
        user_address: str,
        decimals: int = 18,
        amount: Optional[int] = None,
    ) -> bool:
        """Light probe: does Relay return any steps for this pair?"""
        test_amount = amount if amount else 10 ** max(decimals - 1, 0)
        payload = {
            "user": user_address.lower(),
            "originChainId": int(chain_id),
            "destinationChainId": int(chain_id),
            "originCurrency": to_relay_address(token_address),
            "destinationCurrency": to_relay_address(destination_currency),
            "amount": str(test_amount),
            "tradeType": "EXACT_INPUT",
            "referrer": self.config.relay_referrer,
            "usePermit": False,
        }
        try:
            data = await self.provider.quote(payload)
        except httpx.HTTPError as exc:
            logger.debug(f"Route probe for {token_address} on {chain_id} failed: {exc}")
            return False
        return bool(data.get("steps"))

    async def check_alternative_routes(
        self,
        chain_id: int,
        token_address: str,
        user_address: str,
        balance: int,
        decimals: int = 18,
    ) -> List[RouteAlternative]:
        """Probe every target asset for a token that has no route to the current one."""
        addresses = TOKEN_ADDRESSES.get(chain_id)
        if not addresses:
            return []

        targets = [
            (TargetToken.ETH, NATIVE_TOKEN_ADDRESS),
            (TargetToken.USDC, addresses.get("USDC")),
            (TargetToken.DAI, addresses.get("DAI")),
        ]
        token = Token(
            address=token_address,
            chain_id=chain_id,
            symbol="",
            decimals=decimals,
            balance=balance,
        )
        amount_bps = self.config.swap_amount_bps
        if balance * amount_bps // 10000 <= 0:
            return []

        delay = self.config.quote_stagger_seconds if self.has_api_key else self.config.quote_sequential_delay_seconds
        alternatives: List[RouteAlternative] = []

        for index, (target, address) in enumerate(t for t in targets if t[1]):
            if index:
                await asyncio.sleep(delay)

            request = QuoteRequest.for_token(token, address, chain_id, user_address, amount_bps)
            quote = await self.get_quote_with_retry(request)
            if quote and quote.is_liquid and quote.amount_out > 0:
                alternatives.append(
                    RouteAlternative(
                        target_token=target,
                        estimated_output=quote.amount_out,
                        price_impact=quote.price_impact,
                        route_description=quote.route_description or "Relay Solver",
                    )
                )

        return alternatives

