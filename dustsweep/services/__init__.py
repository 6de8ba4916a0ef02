"""Service layer helpers"""

from .approvals import ApprovalScanService, to_revoke_items
from .holdings import JsonHoldingsProvider, TokenFilter, filter_dust_tokens

__all__ = [
    "ApprovalScanService",
    "to_revoke_items",
    "JsonHoldingsProvider",
    "TokenFilter",
    "filter_dust_tokens",
]
