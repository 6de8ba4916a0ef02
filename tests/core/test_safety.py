"""Tests for the pre-flight safety gates."""

import pytest

from conftest import make_quote, make_token
from dustsweep.core.errors import SafetyBlockError
from dustsweep.core.models import RiskLevel
from dustsweep.core.safety import validate_quote, validate_token_safety


class TestTokenSafety:

    def test_clean_tokens_pass(self):
        validate_token_safety([make_token(), make_token(risk_level=RiskLevel.HIGH, value_usd=0.0)])

    def test_tax_token_blocks(self):
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_token_safety([make_token(is_tax_token=True)])
        assert exc_info.value.reason == "tax_token"
        assert exc_info.value.message.startswith("EXECUTION BLOCKED:")

    def test_blocklisted_address_blocks(self):
        token = make_token("0x000000000000000000000000000000000000dEaD")
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_token_safety([token])
        assert exc_info.value.reason == "tax_token"

    def test_critical_risk_blocks(self):
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_token_safety([make_token(risk_level=RiskLevel.CRITICAL)])
        assert exc_info.value.reason == "critical_risk"

    def test_zero_balance(self):
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_token_safety([make_token(balance=0)])
        assert exc_info.value.reason == "zero_balance"
        assert exc_info.value.message.startswith("VALIDATION ERROR:")

    def test_negative_value(self):
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_token_safety([make_token(value_usd=-1.0)])
        assert exc_info.value.reason == "negative_value"

    def test_tax_checked_before_balance(self):
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_token_safety([make_token(is_tax_token=True, balance=0)])
        assert exc_info.value.reason == "tax_token"


class TestQuoteSafety:

    @pytest.mark.parametrize("impact", [0.0, 5.0, 10.0, 15.0])
    def test_impact_up_to_block_threshold_passes(self, impact):
        validate_quote(make_quote(make_token(), price_impact=impact))

    def test_impact_above_threshold_blocks(self):
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_quote(make_quote(make_token(), price_impact=15.01))
        assert exc_info.value.reason == "price_impact"

    def test_illiquid_blocks(self):
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_quote(make_quote(make_token(), is_liquid=False))
        assert exc_info.value.reason == "illiquid"

    def test_zero_output_blocks(self):
        with pytest.raises(SafetyBlockError) as exc_info:
            validate_quote(make_quote(make_token(), amount_out=0))
        assert exc_info.value.reason == "zero_output"
