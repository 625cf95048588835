"""Tests for token unit conversion and configuration."""

from decimal import Decimal

import pytest

from debtpermit.config import DebtKind, TokenConfig
from debtpermit.units import format_units, to_base_units


class TestUnits:
    def test_whole_tokens(self):
        assert to_base_units("1000", 18) == 1000 * 10**18

    def test_rounds_down(self):
        assert to_base_units("0.1234567", 6) == 123456

    def test_decimal_input(self):
        assert to_base_units(Decimal("2.5"), 2) == 250

    def test_huge_amount_keeps_precision(self):
        assert to_base_units("123456789012345678901234567890", 18) == (
            123456789012345678901234567890 * 10**18
        )

    def test_rejects_float(self):
        with pytest.raises(ValueError, match="floats"):
            to_base_units(1.5, 18)

    def test_rejects_negative(self):
        with pytest.raises(ValueError):
            to_base_units("-1", 18)

    def test_format(self):
        assert format_units(333 * 10**18, 18) == "333"
        assert format_units(1_500_000, 6) == "1.5"
        assert format_units(0, 18) == "0"
        assert format_units(42, 0) == "42"


class TestTokenConfig:
    def test_defaults(self):
        config = TokenConfig()
        assert config.kind == DebtKind.VARIABLE
        assert config.name == "Variable debt bearing DAI"
        assert config.chain_id == 31337

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DEBTPERMIT_SYMBOL", "USDC")
        monkeypatch.setenv("DEBTPERMIT_DEBT_KIND", "STABLE")
        monkeypatch.setenv("DEBTPERMIT_CHAIN_ID", "8453")
        monkeypatch.setenv("DEBTPERMIT_VERIFYING_CONTRACT", "0x00000000000000000000000000000000000000AB")
        monkeypatch.setenv("DEBTPERMIT_DECIMALS", "6")

        config = TokenConfig.from_env()
        assert config.name == "Stable debt bearing USDC"
        assert config.chain_id == 8453
        assert config.verifying_contract == "0x00000000000000000000000000000000000000ab"
        assert config.decimals == 6

    def test_rejects_bad_contract(self):
        with pytest.raises(ValueError):
            TokenConfig(verifying_contract="0xnope")
