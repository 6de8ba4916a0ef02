"""
Error Classification

Error types raised by the sweep and revoke pipelines.
Each error carries a category so callers can decide between retrying,
skipping a token, falling back or stopping the run.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for handling decisions."""

    VALIDATION = "validation"             # Malformed address, unsupported chain, bad number
    SAFETY = "safety"                     # Intentional hard stop before committing funds
    RATE_LIMIT = "rate_limit"             # Solver returned HTTP 429
    USER_REJECTED = "user_rejected"       # Wallet user declined a signature
    TRANSACTION_FAILED = "transaction_failed"  # Receipt status not successful
    WALLET = "wallet"                     # Wallet RPC error other than a rejection
    PROVIDER = "provider"                 # External API error
    UNKNOWN = "unknown"


class DustSweepError(Exception):
    """Base class for all dustsweep errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(self, message: str, category: Optional[ErrorCategory] = None):
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category


class ValidationError(DustSweepError):
    """Input rejected before any side effect."""

    category = ErrorCategory.VALIDATION


class UnsupportedChainError(ValidationError):
    """Chain ID is not one of the supported chains."""

    def __init__(self, chain_id: Any):
        super().__init__(f"Unsupported chain ID: {chain_id}")
        self.chain_id = chain_id


class SafetyBlockError(DustSweepError):
    """Execution blocked by a safety rule.

    ``reason`` is a stable machine-readable code (``tax_token``,
    ``critical_risk``, ``zero_balance``, ``negative_value``, ``illiquid``,
    ``price_impact``, ``zero_output``).
    """

    category = ErrorCategory.SAFETY

    def __init__(self, message: str, reason: str, symbol: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.symbol = symbol


class RateLimitError(DustSweepError):
    """Solver rate limit exceeded (HTTP 429)."""

    category = ErrorCategory.RATE_LIMIT

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class WalletRpcError(DustSweepError):
    """Error object returned by the wallet's JSON-RPC endpoint."""

    category = ErrorCategory.WALLET

    def __init__(self, message: str, code: Optional[Any] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class UserRejectedError(WalletRpcError):
    """The wallet user declined the request."""

    category = ErrorCategory.USER_REJECTED

    def __init__(self, message: str = "Transaction rejected by user", code: Optional[Any] = 4001):
        super().__init__(message, code=code)


class TransactionFailedError(DustSweepError):
    """A submitted transaction did not succeed on chain."""

    category = ErrorCategory.TRANSACTION_FAILED

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ApprovalScanError(DustSweepError):
    """Approvals API returned an error for a chain."""

    category = ErrorCategory.PROVIDER


# EIP-1193 4001 (user rejected request), ethers' ACTION_REJECTED
USER_REJECTION_CODES = frozenset({4001, "4001", "ACTION_REJECTED"})
_REJECTION_MARKERS = ("rejected", "denied")


def is_user_rejection(exc: BaseException) -> bool:
    """Return True if ``exc`` means the wallet user declined.

    Structured codes are checked first. Message matching is a best-effort
    last resort for wallets that only return free text.
    """
    if isinstance(exc, UserRejectedError):
        return True
    code = getattr(exc, "code", None)
    if code is not None:
        return isinstance(code, (int, str)) and code in USER_REJECTION_CODES
    message = str(getattr(exc, "message", "") or exc).lower()
    return any(marker in message for marker in _REJECTION_MARKERS)


class RpcError(DustSweepError):
    """JSON-RPC node returned an error object."""

    category = ErrorCategory.PROVIDER


class ReceiptTimeoutError(DustSweepError):
    """No receipt arrived before the wait deadline."""

    category = ErrorCategory.PROVIDER

    def __init__(self, tx_hash: str, timeout: float):
        super().__init__(f"No receipt for {tx_hash} after {timeout:g}s")
        self.tx_hash = tx_hash
        self.timeout = timeout
