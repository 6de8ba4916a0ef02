"""
Sweep and revoke models and types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .constants import ZERO_ADDRESS, is_native_address


class RiskLevel(str, Enum):
    """Token risk tier assigned by discovery."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TargetToken(str, Enum):
    """Assets a sweep can consolidate into."""
    ETH = "ETH"
    USDC = "USDC"
    DAI = "DAI"


class ExecutionStrategy(str, Enum):
    """How the wallet executes the call plan."""
    SMART_BATCH = "SMART_BATCH"          # Delegated execution, not wired up yet
    STANDARD_BATCH = "STANDARD_BATCH"    # wallet_sendCalls, one confirmation
    LEGACY = "LEGACY"                    # One signed transaction per call


class BatchStatus(str, Enum):
    """Externally visible sweep status."""
    IDLE = "IDLE"
    SCANNING = "SCANNING"
    ANALYZING = "ANALYZING"
    APPROVING = "APPROVING"
    SWAPPING = "SWAPPING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class Token:
    """A balance position reported by discovery."""
    address: str
    chain_id: int
    symbol: str
    decimals: int
    balance: int                                # Smallest units
    name: str = ""
    price_usd: float = 0.0
    value_usd: float = 0.0
    is_tax_token: bool = False
    risk_level: RiskLevel = RiskLevel.LOW
    is_liquid: Optional[bool] = None            # None = not checked yet
    logo_url: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return is_native_address(self.address)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Token":
        """Build from a discovery record (camelCase or snake_case keys)."""
        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        is_liquid = pick("isLiquid", "is_liquid")
        return cls(
            address=str(pick("address", default=ZERO_ADDRESS)),
            chain_id=int(pick("chainId", "chain_id", default=1)),
            symbol=str(pick("symbol", default="")),
            name=str(pick("name", default="")),
            decimals=int(pick("decimals", default=18)),
            balance=int(pick("balance", default=0)),
            price_usd=float(pick("priceUsd", "price_usd", default=0.0)),
            value_usd=float(pick("valueUsd", "value_usd", default=0.0)),
            is_tax_token=bool(pick("isTaxToken", "is_tax_token", default=False)),
            risk_level=RiskLevel(str(pick("riskLevel", "risk_level", default="LOW")).upper()),
            is_liquid=None if is_liquid is None else bool(is_liquid),
            logo_url=pick("logoUrl", "logo_url"),
        )


@dataclass
class Holdings:
    """Discovery result for one address on one chain."""
    address: str
    chain_id: int
    tokens: List[Token] = field(default_factory=list)
    total_value_usd: float = 0.0
    scanned_at: float = 0.0                     # Unix seconds


@dataclass
class QuoteRequest:
    """Input for a single solver quote."""
    token_in: Token
    token_out: str
    amount_in: int
    chain_id: int
    recipient: str

    @classmethod
    def for_token(
        cls,
        token: Token,
        token_out: str,
        chain_id: int,
        recipient: str,
        amount_bps: int = 9800,
    ) -> "QuoteRequest":
        """Quote a share of the balance, leaving slippage/fee headroom."""
        return cls(
            token_in=token,
            token_out=token_out,
            amount_in=token.balance * amount_bps // 10000,
            chain_id=chain_id,
            recipient=recipient,
        )


@dataclass
class QuoteResponse:
    """Canonical solver quote."""
    amount_in: int
    amount_out: int
    token_in: str
    token_out: str
    price_impact: float = 0.0                   # Percent, absolute value
    network_cost_usd: float = 0.0
    is_liquid: bool = False
    route_description: str = "No route found"
    route_id: str = "none"

    # Execution data
    to: str = ZERO_ADDRESS
    data: str = "0x"
    value: int = 0
    spender: str = ZERO_ADDRESS                 # Who needs the token allowance

    slippage_percent: float = 0.0

    @property
    def is_executable(self) -> bool:
        """Liquid and carries a real call target and calldata."""
        return (
            self.is_liquid
            and bool(self.to)
            and self.to.lower() != ZERO_ADDRESS
            and bool(self.data)
            and self.data != "0x"
        )

    @classmethod
    def empty(cls, request: QuoteRequest, reason: str = "No route found") -> "QuoteResponse":
        """A non-liquid quote that must never be executed."""
        return cls(
            amount_in=request.amount_in,
            amount_out=0,
            token_in=request.token_in.address,
            token_out=request.token_out,
            is_liquid=False,
            route_description=reason,
        )


@dataclass
class RouteAlternative:
    """A target asset that does have a route for an otherwise stuck token."""
    target_token: TargetToken
    estimated_output: int
    price_impact: float
    route_description: str
    is_available: bool = True


@dataclass
class AllowanceCheckResult:
    needs_approval: bool
    current_allowance: int
    required_amount: int
    token: Token
    spender: str


@dataclass(frozen=True)
class Call:
    """One entry of a call plan."""
    to: str
    data: str
    value: int = 0

    def to_rpc(self) -> Dict[str, str]:
        return {
            "to": self.to,
            "data": self.data,
            "value": hex(self.value),
        }


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    status: str                                 # "success" or "reverted"
    block_number: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one sweep run."""
    success: bool
    tx_hashes: Tuple[str, ...] = ()
    error: Optional[str] = None
    total_swapped: int = 0                      # Sum of input balances that went through
    estimated_output: int = 0                   # Sum of quoted outputs
    successful_tokens: Tuple[str, ...] = ()
    failed_tokens: Tuple[str, ...] = ()

    @classmethod
    def failed(
        cls,
        error: str,
        tx_hashes: Tuple[str, ...] = (),
        failed_tokens: Tuple[str, ...] = (),
    ) -> "ExecutionResult":
        return cls(success=False, tx_hashes=tx_hashes, error=error, failed_tokens=failed_tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "txHashes": list(self.tx_hashes),
            "error": self.error,
            "totalSwapped": str(self.total_swapped),
            "estimatedOutput": str(self.estimated_output),
            "successfulTokens": list(self.successful_tokens),
            "failedTokens": list(self.failed_tokens),
        }


# ---------------------------------------------------------------------------
# Approvals / revoke
# ---------------------------------------------------------------------------

class ApprovalType(str, Enum):
    ERC20 = "ERC20"
    NFT = "NFT"


class RevokeRisk(str, Enum):
    LOW = "LOW RISK"
    CONSIDER = "CONSIDER REVOKING"
    HIGH = "HIGH RISK"

    @property
    def rank(self) -> int:
        return {RevokeRisk.LOW: 0, RevokeRisk.CONSIDER: 1, RevokeRisk.HIGH: 2}[self]


class RevokeStatus(str, Enum):
    IDLE = "IDLE"
    SCANNING = "SCANNING"
    REVOKING = "REVOKING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


UNLIMITED = "UNLIMITED"


@dataclass
class Spender:
    spender_address: str
    allowance: str                              # Decimal string or UNLIMITED
    allowance_raw: int
    is_unlimited: bool
    risk: RevokeRisk
    spender_label: Optional[str] = None
    value_at_risk_usd: float = 0.0
    block_height: Optional[int] = None
    block_signed_at: Optional[str] = None
    tx_hash: Optional[str] = None


@dataclass
class TokenApproval:
    token_address: str
    ticker_symbol: str
    decimals: int
    spenders: List[Spender] = field(default_factory=list)
    token_label: Optional[str] = None
    logo_url: Optional[str] = None
    quote_rate: float = 0.0
    balance: int = 0
    balance_usd: float = 0.0
    value_at_risk: int = 0
    value_at_risk_usd: float = 0.0


@dataclass
class NftApproval:
    contract_address: str
    spender_address: str
    is_approved_for_all: bool
    contract_name: Optional[str] = None
    logo_url: Optional[str] = None
    spender_label: Optional[str] = None
    token_ids: Optional[List[str]] = None


@dataclass
class ApprovalsResponse:
    address: str
    chain_id: int
    chain_name: str
    updated_at: str
    token_approvals: List[TokenApproval] = field(default_factory=list)
    nft_approvals: List[NftApproval] = field(default_factory=list)
    total_value_at_risk_usd: float = 0.0
    quote_currency: str = "USD"


@dataclass
class RevokeItem:
    """One approval in the revoke working set."""
    id: str
    type: ApprovalType
    chain_id: int
    token_address: str
    token_symbol: str
    spender_address: str
    allowance: str
    allowance_raw: int
    is_unlimited: bool
    risk: RevokeRisk
    token_name: Optional[str] = None
    token_logo_url: Optional[str] = None
    spender_label: Optional[str] = None
    value_at_risk_usd: float = 0.0
    selected: bool = False

    @property
    def spender_display(self) -> str:
        return self.spender_label or self.spender_address[:10]


@dataclass
class RevokeFilter:
    show_unlimited: bool = True
    show_high_risk: bool = True
    show_low_value: bool = True
    min_value_at_risk: float = 0.0
    selected_chains: List[int] = field(default_factory=lambda: [1, 10, 56, 137, 8453, 42161])


@dataclass(frozen=True)
class RevokeBatchResult:
    success: bool
    tx_hashes: Tuple[str, ...] = ()
    revoked_count: int = 0
    failed_count: int = 0
    errors: Tuple[str, ...] = ()
    revoked_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SingleRevokeResult:
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
