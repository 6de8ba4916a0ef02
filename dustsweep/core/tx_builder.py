"""
Call builders for approvals, revokes and allowance reads.
"""

from typing import Optional

from .constants import MAX_UINT256
from .models import Call


# Minimal ABI selectors
ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)
SET_APPROVAL_FOR_ALL_SELECTOR = "0xa22cb465"  # setApprovalForAll(address,bool)


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"uint256 out of range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    addr = address.lower()
    if addr.startswith("0x"):
        addr = addr[2:]
    if len(addr) != 40:
        raise ValueError(f"Invalid address: {address}")
    return addr.zfill(64)


def _encode_bool(flag: bool) -> str:
    return _encode_uint256(1 if flag else 0)


def decode_uint256(result: Optional[str]) -> int:
    """Decode an eth_call return value; an empty result decodes to 0."""
    if not result or result == "0x":
        return 0
    return int(result, 16)


def decode_approve_spender(calldata: Optional[str]) -> Optional[str]:
    """Return the spender argument of approve() calldata, if it is one."""
    if not calldata or not calldata.lower().startswith(ERC20_APPROVE_SELECTOR):
        return None
    body = calldata[len(ERC20_APPROVE_SELECTOR):]
    if len(body) < 64:
        return None
    return "0x" + body[24:64].lower()


class TransactionBuilder:
    """
    Builds the calls the sweep and revoke flows submit.

    Handles:
    - ERC20 approvals (swap spender, revoke to zero, partial reduction)
    - ERC721/1155 operator revokes
    - ERC20 allowance reads
    """

    @staticmethod
    def build_erc20_approve(
        token_address: str,
        spender_address: str,
        amount: int = MAX_UINT256,
    ) -> Call:
        """
        Build an ERC20 approve call.

        Args:
            token_address: The ERC20 token contract
            spender_address: The address being approved to spend
            amount: The amount to approve (default: unlimited)

        Returns:
            Call with zero value
        """
        calldata = (
            ERC20_APPROVE_SELECTOR +
            _encode_address(spender_address) +
            _encode_uint256(amount)
        )
        return Call(to=token_address, data=calldata, value=0)

    @staticmethod
    def build_erc20_revoke(token_address: str, spender_address: str) -> Call:
        """approve(spender, 0)."""
        return TransactionBuilder.build_erc20_approve(token_address, spender_address, 0)

    @staticmethod
    def build_nft_revoke(contract_address: str, operator_address: str) -> Call:
        """setApprovalForAll(operator, false)."""
        calldata = (
            SET_APPROVAL_FOR_ALL_SELECTOR +
            _encode_address(operator_address) +
            _encode_bool(False)
        )
        return Call(to=contract_address, data=calldata, value=0)

    @staticmethod
    def build_allowance_call(token_address: str, owner_address: str, spender_address: str) -> Call:
        calldata = (
            ERC20_ALLOWANCE_SELECTOR +
            _encode_address(owner_address) +
            _encode_address(spender_address)
        )
        return Call(to=token_address, data=calldata, value=0)
