"""
Holdings helpers: dust filtering, totals and a file-backed holdings source.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..config import settings
from ..core.constants import TAX_TOKEN_BLOCKLIST
from ..core.models import Holdings, RiskLevel, Token
from ..providers.base import HoldingsProvider


logger = logging.getLogger(__name__)


@dataclass
class TokenFilter:
    min_value_usd: float = field(default_factory=lambda: settings.dust_min_value_usd)
    max_value_usd: float = field(default_factory=lambda: settings.dust_max_value_usd)
    exclude_tax_tokens: bool = False
    allowed_risk_levels: List[RiskLevel] = field(
        default_factory=lambda: [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]
    )


def filter_dust_tokens(tokens: Iterable[Token], token_filter: Optional[TokenFilter] = None) -> List[Token]:
    """Tokens inside the dust value range with an allowed risk tier.

    CRITICAL tokens are excluded by default; tax tokens only when asked.
    """
    cfg = token_filter or TokenFilter()
    result = []
    for token in tokens:
        if not cfg.min_value_usd <= token.value_usd <= cfg.max_value_usd:
            continue
        if cfg.exclude_tax_tokens and (
            token.is_tax_token or token.address.lower() in TAX_TOKEN_BLOCKLIST
        ):
            continue
        if token.risk_level not in cfg.allowed_risk_levels:
            continue
        result.append(token)
    return result


def calculate_total_value(tokens: Iterable[Token]) -> float:
    return sum(token.value_usd for token in tokens)


def sort_tokens_by_value(tokens: Iterable[Token]) -> List[Token]:
    return sorted(tokens, key=lambda token: token.value_usd, reverse=True)


class JsonHoldingsProvider(HoldingsProvider):
    """
    Holdings from an exported JSON file.

    Accepts either a bare list of token records or an object with a `tokens`
    list. Records use the camelCase discovery keys (`chainId`, `valueUsd`,
    `isTaxToken`, `riskLevel`) or their snake_case equivalents; balances are
    raw integer strings.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def fetch_holdings(self, address: str, chain_id: int) -> Holdings:
        with self.path.open(encoding="utf-8") as fh:
            payload = json.load(fh)

        records = payload.get("tokens", []) if isinstance(payload, dict) else payload
        tokens = []
        for record in records:
            record.setdefault("chainId", chain_id)
            token = Token.from_dict(record)
            if token.chain_id == chain_id:
                tokens.append(token)

        tokens = sort_tokens_by_value(tokens)
        logger.info(f"Loaded {len(tokens)} tokens for chain {chain_id} from {self.path}")
        return Holdings(
            address=address,
            chain_id=chain_id,
            tokens=tokens,
            total_value_usd=calculate_total_value(tokens),
            scanned_at=time.time(),
        )
