"""Tests for settings and engine policies."""

from decimal import Decimal

import pytest

from payout_engine.config import AdvancePolicy, SettlementPolicy, Settings


class TestSettings:
    """Test loading settings from the environment."""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "PORT", "DEBUG", "LOG_LEVEL", "MINOR_UNIT", "MAX_ADVANCE_AMOUNT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.PORT == 8000
        assert settings.DEBUG is False
        assert settings.log_level == "INFO"
        assert settings.settlement.minor_unit == Decimal("0.01")
        assert settings.advances.max_amount == Decimal("50000")

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "9001")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("MINOR_UNIT", "1")
        monkeypatch.setenv("MAX_ADVANCE_AMOUNT", "250000")

        settings = Settings.from_env()

        assert settings.port == 9001
        assert settings.debug is True
        assert settings.log_level == "DEBUG"
        assert settings.settlement.minor_unit == Decimal("1")
        assert settings.advances.max_amount == Decimal("250000")

    def test_invalid_decimal(self, monkeypatch):
        monkeypatch.setenv("MAX_ADVANCE_AMOUNT", "lots")
        with pytest.raises(ValueError, match="MAX_ADVANCE_AMOUNT"):
            Settings.from_env()


class TestPolicies:
    """Test policy validation."""

    def test_default_rates(self):
        policy = SettlementPolicy()
        assert policy.service_rate == Decimal("0.50")
        assert policy.add_on_rate == Decimal("1.00")
        assert policy.consumption_rate == Decimal("0.20")

    def test_rate_out_of_range(self):
        with pytest.raises(ValueError, match="service_rate"):
            SettlementPolicy(service_rate=Decimal("1.5"))

    def test_float_rate_rejected(self):
        with pytest.raises(TypeError):
            SettlementPolicy(consumption_rate=0.2)

    def test_non_positive_minor_unit(self):
        with pytest.raises(ValueError):
            SettlementPolicy(minor_unit=Decimal("0"))

    def test_non_positive_max_advance(self):
        with pytest.raises(ValueError):
            AdvancePolicy(max_amount=Decimal("0"))
