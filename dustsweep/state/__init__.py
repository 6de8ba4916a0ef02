"""Session containers for the sweep and revoke flows."""

from .epoch import Epoch
from .wallet import WalletSession

__all__ = ["Epoch", "WalletSession"]
