"""Connected wallet session."""

import logging
from typing import List, Optional

from ..core.constants import SUPPORTED_CHAIN_IDS, is_supported_chain
from ..core.models import ExecutionStrategy
from ..services.address import is_valid_address, short_address


logger = logging.getLogger(__name__)


class WalletSession:
    """Address, chain and detected execution strategy of the connected wallet."""

    def __init__(self) -> None:
        self.is_connected = False
        self.address: Optional[str] = None
        self.chain_id: Optional[int] = None
        self.error: Optional[str] = None
        self.detected_strategy: Optional[ExecutionStrategy] = None
        self.is_detecting_strategy = False

    @property
    def short_address(self) -> Optional[str]:
        return short_address(self.address)

    @property
    def has_wallet(self) -> bool:
        return self.is_connected and self.address is not None

    @property
    def is_valid_connection(self) -> bool:
        return self.has_wallet and self.chain_id is not None and is_supported_chain(self.chain_id)

    def connect(self, address: str, chain_id: int) -> bool:
        """Record a connection; returns False (and sets `error`) for a bad address."""
        if not is_valid_address(address):
            self.set_error("Invalid wallet address format")
            return False

        if not is_supported_chain(chain_id):
            logger.warning(f"Connected to unsupported chain: {chain_id}")

        if address.lower() != (self.address or "").lower():
            self.detected_strategy = None
        self.is_connected = True
        self.address = address
        self.set_chain(chain_id)
        self.error = None
        return True

    def set_chain(self, chain_id: int) -> None:
        new_chain = chain_id if is_supported_chain(chain_id) else None
        if new_chain is None:
            logger.warning(f"Switched to unsupported chain: {chain_id}")
        if new_chain != self.chain_id:
            self.detected_strategy = None
        self.chain_id = new_chain

    def disconnect(self) -> None:
        self.reset()

    def set_strategy(self, strategy: ExecutionStrategy) -> None:
        self.detected_strategy = strategy

    def set_error(self, error: str) -> None:
        self.error = error
        logger.error(f"Wallet error: {error}")

    def clear_error(self) -> None:
        self.error = None

    @staticmethod
    def supported_chains() -> List[int]:
        return sorted(SUPPORTED_CHAIN_IDS)

    def reset(self) -> None:
        self.is_connected = False
        self.address = None
        self.chain_id = None
        self.error = None
        self.detected_strategy = None
        self.is_detecting_strategy = False
