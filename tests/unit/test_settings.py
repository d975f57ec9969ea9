"""
Unit tests for settings validation.

Tests cover:
- Commission schedule validation
- Currency configuration
- Production safety checks
- Logging sinks
"""

import sys
from decimal import Decimal

import pytest
from loguru import logger
from pydantic import ValidationError

from refnet.config.logging import setup_logging
from refnet.config.settings import Settings


class TestCommissionRates:
    """Test the per-generation rate schedule."""

    def test_default_schedule(self):
        config = Settings(environment="test")

        assert config.max_depth == 5
        assert config.commission_rates[1] == Decimal("10.0")
        assert config.commission_rates[5] == Decimal("0.5")
        assert 6 not in config.commission_rates

    def test_schedule_is_sorted(self):
        config = Settings(
            environment="test",
            commission_rates={3: Decimal("1"), 1: Decimal("8")},
        )
        assert list(config.commission_rates) == [1, 3]

    def test_total_above_100_rejected(self):
        with pytest.raises(ValidationError):
            Settings(
                environment="test",
                commission_rates={1: Decimal("60"), 2: Decimal("50")},
            )

    def test_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", commission_rates={1: Decimal("-1")})

    def test_distance_zero_rejected(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", commission_rates={0: Decimal("5")})

    def test_empty_schedule_rejected(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", commission_rates={})


class TestCurrencies:
    """Test currency precision and base currency."""

    def test_precision_lookup_is_case_insensitive(self):
        config = Settings(
            environment="test",
            currency_precision={"usd": 2, "jpy": 0},
        )

        assert config.precision_for("USD") == 2
        assert config.precision_for("jpy") == 0
        assert config.precision_for("EUR") is None

    def test_base_currency_must_be_supported(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", base_currency="EUR")

    def test_base_currency_upper_cased(self):
        config = Settings(
            environment="test",
            currency_precision={"EUR": 2},
            base_currency="eur",
        )
        assert config.base_currency == "EUR"

    def test_precision_out_of_range(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", currency_precision={"USD": 9})


class TestEnvironment:
    """Test environment checks."""

    def test_debug_forbidden_in_production(self):
        with pytest.raises(ValidationError):
            Settings(environment="production", debug=True)

    def test_debug_allowed_in_development(self):
        assert Settings(environment="development", debug=True).debug is True

    def test_database_url_scheme(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", database_url="mysql://localhost/refnet")

    def test_max_depth_bounds(self):
        with pytest.raises(ValidationError):
            Settings(environment="test", max_depth=0)


class TestLogging:
    """Test loguru sink setup."""

    def test_setup_logging_writes_file(self, tmp_path):
        log_file = tmp_path / "refnet.log"
        config = Settings(
            environment="test", log_file=str(log_file), log_level="DEBUG"
        )

        try:
            setup_logging(config)
            logger.debug("sink check")
            logger.complete()
        finally:
            logger.remove()
            logger.add(sys.stderr)

        assert "sink check" in log_file.read_text(encoding="utf-8")
