"""Chain and token metadata for sweep and revoke orchestration."""

from __future__ import annotations

from typing import Dict, FrozenSet, Optional

# Relay expects the zero address for the native asset.
NATIVE_TOKEN_ADDRESS = '0x0000000000000000000000000000000000000000'
ZERO_ADDRESS = NATIVE_TOKEN_ADDRESS
# Placeholder some indexers use for the native asset.
ETH_PLACEHOLDER = '0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee'

MAX_UINT256 = 2**256 - 1

CHAIN_METADATA: Dict[int, Dict[str, object]] = {
    1: {
        'name': 'Ethereum',
        'native_symbol': 'ETH',
        'native_price_usd': 3300.0,
        'covalent_name': 'eth-mainnet',
    },
    10: {
        'name': 'Optimism',
        'native_symbol': 'ETH',
        'native_price_usd': 3300.0,
        'covalent_name': 'optimism-mainnet',
    },
    56: {
        'name': 'BNB Chain',
        'native_symbol': 'BNB',
        'native_price_usd': 600.0,
        'covalent_name': 'bsc-mainnet',
    },
    137: {
        'name': 'Polygon',
        'native_symbol': 'POL',
        'native_price_usd': 0.45,
        'covalent_name': 'matic-mainnet',
    },
    8453: {
        'name': 'Base',
        'native_symbol': 'ETH',
        'native_price_usd': 3300.0,
        'covalent_name': 'base-mainnet',
    },
    42161: {
        'name': 'Arbitrum',
        'native_symbol': 'ETH',
        'native_price_usd': 3300.0,
        'covalent_name': 'arbitrum-mainnet',
    },
}

SUPPORTED_CHAIN_IDS: FrozenSet[int] = frozenset(CHAIN_METADATA.keys())

# Per-chain addresses of the non-native target assets.
TOKEN_ADDRESSES: Dict[int, Dict[str, str]] = {
    1: {
        'WETH': '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2',
        'USDC': '0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48',
        'USDT': '0xdAC17F958D2ee523a2206206994597C13D831ec7',
        'DAI': '0x6B175474E89094C44Da98b954EedeAC495271d0F',
    },
    42161: {
        'WETH': '0x82aF49447D8a07e3bd95BD0d56f35241523fBab1',
        'USDC': '0xaf88d065e77c8cC2239327C5EDb3A432268e5831',
        'USDT': '0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9',
        'DAI': '0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1',
    },
    8453: {
        'WETH': '0x4200000000000000000000000000000000000006',
        'USDC': '0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913',
        'USDbC': '0xd9aAEc86B65D86f6A7B5B1b0c42FFA531710b6CA',
        'DAI': '0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb',
    },
    137: {
        'WETH': '0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619',
        'USDC': '0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359',
        'USDT': '0xc2132D05D31c914a87C6611C10748AEb04B58e8F',
        'DAI': '0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063',
    },
    10: {
        'WETH': '0x4200000000000000000000000000000000000006',
        'USDC': '0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85',
        'USDT': '0x94b008aA00579c1307B0EF2c499aD98a8ce58e58',
        'DAI': '0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1',
    },
    56: {
        'WETH': '0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c',
        'USDC': '0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d',
        'USDT': '0x55d398326f99059fF775485246999027B3197955',
        'DAI': '0x1AF3F329e8BE154074D8769D1FFa4eE058B1DBc3',
    },
}

# Addresses lowercased.
TAX_TOKEN_BLOCKLIST: FrozenSet[str] = frozenset({
    '0x000000000000000000000000000000000000dead',
})

RELAY_ERROR_MESSAGES: Dict[str, str] = {
    'AMOUNT_TOO_LOW': 'Amount is too low for this swap.',
    'INSUFFICIENT_LIQUIDITY': 'Not enough liquidity available.',
    'NO_SWAP_ROUTES_FOUND': 'No route found for this swap.',
    'SWAP_IMPACT_TOO_HIGH': 'Price impact is too high.',
    'UNSUPPORTED_CURRENCY': 'This token is not supported.',
}


def is_supported_chain(chain_id: object) -> bool:
    return isinstance(chain_id, int) and not isinstance(chain_id, bool) and chain_id in SUPPORTED_CHAIN_IDS


def is_native_address(address: Optional[str]) -> bool:
    """True for the zero address, the 0xeee... placeholder or an empty value."""

    if not address:
        return True
    addr = address.lower()
    return addr in (NATIVE_TOKEN_ADDRESS, ETH_PLACEHOLDER)


def to_relay_address(address: Optional[str]) -> str:
    """Convert an internal token address into the form Relay understands."""

    if is_native_address(address):
        return NATIVE_TOKEN_ADDRESS
    return address.lower()  # type: ignore[union-attr]


def get_native_symbol(chain_id: int) -> str:
    meta = CHAIN_METADATA.get(chain_id) or {}
    return str(meta.get('native_symbol', 'ETH'))


def get_native_price_usd(chain_id: int) -> float:
    meta = CHAIN_METADATA.get(chain_id) or {}
    return float(meta.get('native_price_usd', 0.0))


def get_chain_name(chain_id: int) -> str:
    meta = CHAIN_METADATA.get(chain_id) or {}
    return str(meta.get('name', f'chain {chain_id}'))


__all__ = [
    'NATIVE_TOKEN_ADDRESS',
    'ZERO_ADDRESS',
    'ETH_PLACEHOLDER',
    'MAX_UINT256',
    'CHAIN_METADATA',
    'SUPPORTED_CHAIN_IDS',
    'TOKEN_ADDRESSES',
    'TAX_TOKEN_BLOCKLIST',
    'RELAY_ERROR_MESSAGES',
    'is_supported_chain',
    'is_native_address',
    'to_relay_address',
    'get_native_symbol',
    'get_native_price_usd',
    'get_chain_name',
]
