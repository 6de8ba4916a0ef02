"""
Dust sweeper

Consolidates small token balances into one target asset through the Relay
solver, and revokes stale ERC20 and NFT approvals.
"""

__version__ = "0.1.0"
