from abc import ABC, abstractmethod
from typing import Any, Dict

from ..core.models import Holdings


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class HoldingsProvider(ABC):
    """Discovery source for token balances of one address on one chain"""

    @abstractmethod
    async def fetch_holdings(self, address: str, chain_id: int) -> Holdings:
        """Return tokens with balance, USD value, tax flag and risk tier"""
        pass
