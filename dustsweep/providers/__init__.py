from .base import HoldingsProvider, Provider
from .relay import RelayProvider
from .rpc import EvmRpcProvider, get_rpc_client
from .wallet import Eip1193Wallet, WalletClient

__all__ = [
    "Provider",
    "HoldingsProvider",
    "RelayProvider",
    "EvmRpcProvider",
    "get_rpc_client",
    "WalletClient",
    "Eip1193Wallet",
]
