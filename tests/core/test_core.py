"""
Tests for core helpers: numeric rounding, clock, settings, errors.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from core.clock import MockClock, end_of_day, start_of_day, to_naive_utc
from core.exceptions import (
    AnalyticsException,
    ComputationError,
    NotFoundError,
    PartialBatchFailure,
    PaymentRequiredError,
    UnauthorizedError,
    ValidationError,
)
from core.numeric import clamp, percentage, round_half_up
from core.settings import AnalyticsSettings


class TestNumeric:
    """Tests for rounding helpers."""

    def test_round_half_up_rounds_halves_away_from_zero(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(1.005, 2) == 1.01

    def test_round_half_up_returns_int_without_digits(self):
        assert isinstance(round_half_up(95.5), int)
        assert isinstance(round_half_up(95.5, 1), float)

    def test_percentage_of_zero_whole(self):
        assert percentage(3, 0) == 0.0

    def test_percentage(self):
        assert percentage(1, 3) == 33.33
        assert percentage(2, 3) == 66.67

    def test_clamp(self):
        assert clamp(120) == 100
        assert clamp(-5) == 0
        assert clamp(42) == 42


class TestClock:
    """Tests for the mock clock and day boundaries."""

    def test_mock_clock_advance(self):
        clock = MockClock(datetime(2024, 1, 1, 12, 0))
        clock.advance(hours=36)
        assert clock.now() == datetime(2024, 1, 3, 0, 0)
        assert clock.today() == date(2024, 1, 3)

    def test_mock_clock_freeze_restores(self):
        clock = MockClock(datetime(2024, 1, 1))
        with clock.freeze(datetime(2030, 1, 1)):
            assert clock.now().year == 2030
        assert clock.now() == datetime(2024, 1, 1)

    def test_mock_clock_set_time_normalizes(self):
        clock = MockClock(datetime(2024, 1, 1))
        clock.set_time(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))
        assert clock.now() == datetime(2024, 3, 1, 12, 0)
        assert clock.now().tzinfo is None

    def test_to_naive_utc_converts_aware(self):
        aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_naive_utc(aware) == datetime(2024, 1, 1, 10, 0)

    def test_day_boundaries(self):
        day = date(2024, 3, 10)
        assert start_of_day(day) == datetime(2024, 3, 10)
        assert end_of_day(day).date() == day
        assert end_of_day(day) > datetime(2024, 3, 10, 23, 59, 59)


class TestSettings:
    """Tests for environment settings."""

    def test_defaults(self, monkeypatch):
        for name in (
            "DASHBOARD_CACHE_TTL_SECONDS",
            "BULK_RECOMPUTE_CONCURRENCY",
            "DATA_ACCESS_PRICE_ZEC",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = AnalyticsSettings.from_env()
        assert settings.cache_ttl_seconds == 300
        assert settings.bulk_concurrency == 4
        assert settings.data_access_price_zec == Decimal("0.001")
        assert settings.validate() == []

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DASHBOARD_CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("BULK_RECOMPUTE_CONCURRENCY", "0")

        settings = AnalyticsSettings.from_env()
        assert settings.cache_ttl_seconds == 60
        assert "bulk_concurrency must be at least 1" in settings.validate()


class TestExceptions:
    """Tests for the error taxonomy."""

    def test_not_found_carries_entity(self):
        error = NotFoundError("wallet", "abc")
        assert isinstance(error, AnalyticsException)
        assert error.message == "Wallet not found: abc"
        assert error.to_dict()["context"]["entity"] == "wallet"

    def test_payment_required_is_distinct_from_unauthorized(self):
        error = PaymentRequiredError("Payment required", wallet_id="w1")
        assert error.status_code == 402
        assert not isinstance(error, UnauthorizedError)
        assert UnauthorizedError("denied").status_code == 403

    def test_validation_error_fields(self):
        error = ValidationError("bad", field="days", value=0)
        assert error.field == "days"
        assert error.to_dict()["context"]["value"] == "0"

    def test_computation_error_records_cause(self):
        cause = ZeroDivisionError("division by zero")
        error = ComputationError("failed", cause=cause)
        assert error.context["cause_type"] == "ZeroDivisionError"
        assert error.is_recoverable

    def test_partial_batch_failure_summarizes_result(self):
        class Result:
            succeeded = 3
            failed = 1

        error = PartialBatchFailure(Result())
        assert error.context == {"succeeded": 3, "failed": 1}
        assert "1 failed" in error.message
