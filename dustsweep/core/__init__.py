"""Sweep and revoke domain logic."""

from .errors import (
    DustSweepError,
    ErrorCategory,
    RateLimitError,
    SafetyBlockError,
    TransactionFailedError,
    UnsupportedChainError,
    UserRejectedError,
    ValidationError,
    WalletRpcError,
)
from .models import (
    BatchStatus,
    ExecutionResult,
    ExecutionStrategy,
    QuoteRequest,
    QuoteResponse,
    RevokeItem,
    RiskLevel,
    TargetToken,
    Token,
)

__all__ = [
    "DustSweepError",
    "ErrorCategory",
    "RateLimitError",
    "SafetyBlockError",
    "TransactionFailedError",
    "UnsupportedChainError",
    "UserRejectedError",
    "ValidationError",
    "WalletRpcError",
    "BatchStatus",
    "ExecutionResult",
    "ExecutionStrategy",
    "QuoteRequest",
    "QuoteResponse",
    "RevokeItem",
    "RiskLevel",
    "TargetToken",
    "Token",
]
