from dustsweep.core.constants import is_native_address, is_supported_chain, to_relay_address
from dustsweep.services.address import (
    addresses_equal,
    checksum,
    is_valid_address,
    short_address,
)


def test_address_validation():
    assert is_valid_address("0x1234567890abcdef1234567890abcdef12345678") is True
    assert is_valid_address("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2") is True
    assert is_valid_address("0x1234567890abcdef1234567890abcdef1234567") is False
    assert is_valid_address("") is False
    assert is_valid_address(None) is False
    assert is_valid_address(1234) is False


def test_bad_checksum_is_rejected():
    assert is_valid_address("0xc02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2") is False


def test_checksum_and_compare():
    weth = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
    assert checksum(weth) == "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
    assert addresses_equal(weth, checksum(weth)) is True
    assert addresses_equal(weth, None) is False


def test_short_address():
    assert short_address("0x1234567890abcdef1234567890abcdef12345678") == "0x1234...5678"
    assert short_address(None) is None


def test_supported_chain_flags():
    assert is_supported_chain(1) is True
    assert is_supported_chain(8453) is True
    assert is_supported_chain(43114) is False
    assert is_supported_chain("1") is False
    assert is_supported_chain(True) is False


def test_native_address_forms():
    assert is_native_address("0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE")
    assert is_native_address(None)
    assert to_relay_address("0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE") == "0x0000000000000000000000000000000000000000"
    assert to_relay_address("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2") == "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
