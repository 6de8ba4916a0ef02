"""
Pre-flight safety gates for tokens and quotes.

Both checks raise `SafetyBlockError` on the first violation; warnings only go
to the log.
"""

import logging
from typing import Iterable, Optional

from .constants import TAX_TOKEN_BLOCKLIST
from .errors import SafetyBlockError
from .models import QuoteResponse, RiskLevel, Token
from ..config import Settings, settings as default_settings


logger = logging.getLogger(__name__)


def validate_token_safety(tokens: Iterable[Token]) -> None:
    """Check, per token and in order: tax flag, risk tier, balance, USD value."""
    for token in tokens:
        if token.is_tax_token or token.address.lower() in TAX_TOKEN_BLOCKLIST:
            raise SafetyBlockError(
                f"EXECUTION BLOCKED: Token {token.symbol} is flagged as a tax token (fee-on-transfer). "
                "Converting this token could result in unexpected losses.",
                reason="tax_token",
                symbol=token.symbol,
            )

        if token.risk_level == RiskLevel.CRITICAL:
            raise SafetyBlockError(
                f"EXECUTION BLOCKED: Token {token.symbol} has CRITICAL risk level. "
                "This token may be malicious or have unusual behavior.",
                reason="critical_risk",
                symbol=token.symbol,
            )
        if token.risk_level == RiskLevel.HIGH:
            logger.warning(f"Token {token.symbol} has HIGH risk level, proceeding")

        if token.balance <= 0:
            raise SafetyBlockError(
                f"VALIDATION ERROR: Token {token.symbol} has zero balance. "
                "Cannot convert a token with no balance.",
                reason="zero_balance",
                symbol=token.symbol,
            )

        # Zero is fine: the price may simply be unknown.
        if token.value_usd < 0:
            raise SafetyBlockError(
                f"VALIDATION ERROR: Token {token.symbol} has a negative USD value.",
                reason="negative_value",
                symbol=token.symbol,
            )


def validate_quote(quote: QuoteResponse, config: Optional[Settings] = None) -> None:
    config = config or default_settings
    if not quote.is_liquid:
        raise SafetyBlockError(
            "EXECUTION BLOCKED: Insufficient liquidity for this token.",
            reason="illiquid",
        )

    if quote.price_impact > config.block_price_impact_percent:
        raise SafetyBlockError(
            f"EXECUTION BLOCKED: Price impact too high ({quote.price_impact:.2f}%). "
            f"Maximum allowed is {config.block_price_impact_percent:g}%. "
            "Consider splitting the swap or trying later.",
            reason="price_impact",
        )

    if quote.price_impact > config.warn_price_impact_percent:
        logger.warning(
            f"High price impact ({quote.price_impact:.2f}%). You may receive less than expected."
        )

    if quote.amount_out == 0:
        raise SafetyBlockError(
            "EXECUTION BLOCKED: Quote returned zero output amount. "
            "The swap would result in no tokens received.",
            reason="zero_output",
        )
