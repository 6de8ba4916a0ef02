"""Helpers for validating and normalizing EVM wallet and contract addresses."""

from __future__ import annotations

from typing import Any, Optional

from eth_utils import is_address, is_checksum_address, to_checksum_address


def is_valid_address(address: Any) -> bool:
    """Return True for a well-formed 20-byte hex address.

    All-lowercase and all-uppercase forms are accepted; mixed case must carry a
    valid EIP-55 checksum.
    """

    if not isinstance(address, str) or not address:
        return False
    if not is_address(address):
        return False
    body = address[2:] if address[:2].lower() == "0x" else address
    if body != body.lower() and body != body.upper():
        return bool(is_checksum_address(address))
    return True


def normalize_address(address: str) -> str:
    """Lowercase an address for comparisons and dictionary keys."""

    return address.strip().lower()


def checksum(address: str) -> str:
    """EIP-55 checksum an address; raises ValueError when it is malformed."""

    if is_checksum_address(address):
        return address
    return to_checksum_address(address)


def short_address(address: Optional[str]) -> Optional[str]:
    if not address:
        return None
    return f"{address[:6]}...{address[-4:]}"


def addresses_equal(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return normalize_address(left) == normalize_address(right)


__all__ = [
    "is_valid_address",
    "normalize_address",
    "checksum",
    "short_address",
    "addresses_equal",
]
