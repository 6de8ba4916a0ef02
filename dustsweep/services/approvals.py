"""Token and NFT approval scanning over the Covalent GoldRush API."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx

from ..config import Settings, settings as default_settings
from ..core.constants import CHAIN_METADATA, MAX_UINT256
from ..core.errors import ApprovalScanError
from ..core.models import (
    UNLIMITED,
    ApprovalsResponse,
    ApprovalType,
    NftApproval,
    RevokeItem,
    RevokeRisk,
    Spender,
    TokenApproval,
)


logger = logging.getLogger(__name__)


def covalent_chain_name(chain_id: int) -> Optional[str]:
    meta = CHAIN_METADATA.get(chain_id)
    return str(meta["covalent_name"]) if meta else None


def is_unlimited_allowance(allowance: Any) -> bool:
    return allowance == UNLIMITED or str(allowance) == str(MAX_UINT256)


def normalize_risk(risk_factor: Optional[str]) -> RevokeRisk:
    normalized = (risk_factor or "").upper()
    if "HIGH" in normalized:
        return RevokeRisk.HIGH
    if "CONSIDER" in normalized or "MEDIUM" in normalized:
        return RevokeRisk.CONSIDER
    return RevokeRisk.LOW


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def parse_spender(raw: Dict[str, Any]) -> Spender:
    allowance = raw.get("allowance") or "0"
    unlimited = is_unlimited_allowance(allowance)
    return Spender(
        spender_address=raw.get("spender_address", ""),
        spender_label=raw.get("spender_address_label"),
        allowance=UNLIMITED if unlimited else str(allowance),
        allowance_raw=MAX_UINT256 if unlimited else _int(allowance),
        is_unlimited=unlimited,
        risk=normalize_risk(raw.get("risk_factor")),
        value_at_risk_usd=float(raw.get("value_at_risk_quote") or 0),
        block_height=raw.get("block_height"),
        block_signed_at=raw.get("block_signed_at"),
        tx_hash=raw.get("tx_hash"),
    )


def parse_token_approval(raw: Dict[str, Any]) -> TokenApproval:
    return TokenApproval(
        token_address=raw.get("token_address", ""),
        token_label=raw.get("token_address_label"),
        ticker_symbol=raw.get("ticker_symbol") or "UNKNOWN",
        decimals=_int(raw.get("contract_decimals")),
        logo_url=raw.get("logo_url"),
        quote_rate=float(raw.get("quote_rate") or 0),
        balance=_int(raw.get("balance")),
        balance_usd=float(raw.get("balance_quote") or 0),
        value_at_risk=_int(raw.get("value_at_risk")),
        value_at_risk_usd=float(raw.get("value_at_risk_quote") or 0),
        spenders=[parse_spender(s) for s in raw.get("spenders") or []],
    )


def parse_nft_approvals(raw: Dict[str, Any]) -> List[NftApproval]:
    approvals = []
    for spender in raw.get("spenders") or []:
        balances = spender.get("token_balances")
        approvals.append(
            NftApproval(
                contract_address=raw.get("contract_address", ""),
                contract_name=raw.get("contract_name"),
                logo_url=raw.get("logo_url"),
                is_approved_for_all=spender.get("allowance") == UNLIMITED,
                spender_address=spender.get("spender_address", ""),
                spender_label=spender.get("spender_address_label"),
                token_ids=[b.get("token_id") for b in balances] if balances else None,
            )
        )
    return approvals


def to_revoke_items(responses: Iterable[ApprovalsResponse]) -> List[RevokeItem]:
    """Flatten scan results into revoke items, highest value at risk first."""
    items: List[RevokeItem] = []
    for response in responses:
        for approval in response.token_approvals:
            for spender in approval.spenders:
                items.append(
                    RevokeItem(
                        id=f"{response.chain_id}-{approval.token_address}-{spender.spender_address}",
                        type=ApprovalType.ERC20,
                        chain_id=response.chain_id,
                        token_address=approval.token_address,
                        token_symbol=approval.ticker_symbol,
                        token_name=approval.token_label,
                        token_logo_url=approval.logo_url,
                        spender_address=spender.spender_address,
                        spender_label=spender.spender_label,
                        allowance=spender.allowance,
                        allowance_raw=spender.allowance_raw,
                        is_unlimited=spender.is_unlimited,
                        value_at_risk_usd=spender.value_at_risk_usd,
                        risk=spender.risk,
                    )
                )

        for nft in response.nft_approvals:
            items.append(
                RevokeItem(
                    id=f"{response.chain_id}-{nft.contract_address}-{nft.spender_address}-nft",
                    type=ApprovalType.NFT,
                    chain_id=response.chain_id,
                    token_address=nft.contract_address,
                    token_symbol=nft.contract_name or "NFT",
                    token_name=nft.contract_name,
                    token_logo_url=nft.logo_url,
                    spender_address=nft.spender_address,
                    spender_label=nft.spender_label,
                    allowance="ALL" if nft.is_approved_for_all else "LIMITED",
                    allowance_raw=0,
                    is_unlimited=nft.is_approved_for_all,
                    # No floor price source; NFT exposure is not valued
                    value_at_risk_usd=0.0,
                    risk=RevokeRisk.HIGH if nft.is_approved_for_all else RevokeRisk.LOW,
                )
            )

    items.sort(key=lambda item: item.value_at_risk_usd, reverse=True)
    return items


def calculate_total_value_at_risk(responses: Iterable[ApprovalsResponse]) -> float:
    return sum(r.total_value_at_risk_usd for r in responses)


def filter_by_risk(approvals: Iterable[TokenApproval], min_risk: RevokeRisk) -> List[TokenApproval]:
    return [a for a in approvals if any(s.risk.rank >= min_risk.rank for s in a.spenders)]


def get_unlimited_approvals(approvals: Iterable[TokenApproval]) -> List[TokenApproval]:
    return [a for a in approvals if any(s.is_unlimited for s in a.spenders)]


class ApprovalScanService:
    """Reads token and NFT approvals per chain from Covalent."""

    def __init__(
        self,
        *,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or default_settings
        self.base_url = self.config.covalent_base_url.rstrip("/")
        self._transport = transport

    async def _get(self, path: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.request_timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.get(
                path,
                params={"key": self.config.covalent_api_key},
                headers={"accept": "application/json"},
            )
            response.raise_for_status()
            return response.json()

    async def get_token_approvals(self, address: str, chain_id: int) -> List[TokenApproval]:
        """Raises ApprovalScanError on HTTP or API errors."""
        chain_name = covalent_chain_name(chain_id)
        if not chain_name:
            logger.warning(f"No Covalent chain name for chain ID {chain_id}")
            return []

        try:
            payload = await self._get(f"/{chain_name}/approvals/{address.lower()}/")
        except httpx.HTTPStatusError as exc:
            raise ApprovalScanError(
                f"Covalent API error: {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.RequestError as exc:
            raise ApprovalScanError(f"Covalent API unreachable: {exc}") from exc

        if payload.get("error"):
            raise ApprovalScanError(payload.get("error_message") or "Unknown Covalent API error")

        items = (payload.get("data") or {}).get("items") or []
        return [parse_token_approval(item) for item in items]

    async def get_nft_approvals(self, address: str, chain_id: int) -> List[NftApproval]:
        """NFT approvals are secondary; any failure yields an empty list."""
        chain_name = covalent_chain_name(chain_id)
        if not chain_name:
            return []

        try:
            payload = await self._get(f"/{chain_name}/nft/approvals/{address.lower()}/")
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug(f"NFT approvals unavailable on {chain_name}: {exc}")
            return []
        if payload.get("error"):
            return []

        approvals: List[NftApproval] = []
        for item in (payload.get("data") or {}).get("items") or []:
            approvals.extend(parse_nft_approvals(item))
        logger.info(f"Found {len(approvals)} NFT approvals on {chain_name}")
        return approvals

    async def get_all_approvals(self, address: str, chain_ids: Sequence[int]) -> List[ApprovalsResponse]:
        """Scan chains one by one; a failing chain contributes an empty response."""
        results: List[ApprovalsResponse] = []

        for index, chain_id in enumerate(chain_ids):
            if index:
                await asyncio.sleep(self.config.approvals_chain_delay_seconds)

            try:
                token_approvals, nft_approvals = await asyncio.gather(
                    self.get_token_approvals(address, chain_id),
                    self.get_nft_approvals(address, chain_id),
                )
            except ApprovalScanError as exc:
                logger.error(f"Failed to fetch approvals for chain {chain_id}: {exc.message}")
                token_approvals, nft_approvals = [], []

            results.append(
                ApprovalsResponse(
                    address=address,
                    chain_id=chain_id,
                    chain_name=covalent_chain_name(chain_id) or str(chain_id),
                    updated_at=datetime.now(timezone.utc).isoformat(),
                    token_approvals=token_approvals,
                    nft_approvals=nft_approvals,
                    total_value_at_risk_usd=sum(a.value_at_risk_usd for a in token_approvals),
                )
            )

        return results
