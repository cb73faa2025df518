from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
import structlog

from fundadmin.core.config import Settings, settings
from fundadmin.core.context import actor_or_system, clear_context, current_actor, set_actor
from fundadmin.core.logging import configure_logging
from fundadmin.shared.money import as_utc_datetime, quantize_ratio, safe_ratio, to_decimal, whole_days_between


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("RATIO_DECIMAL_PLACES", "4")
    monkeypatch.setenv("VALUATION_CACHE_ON_CREATE", "latest_date")

    s = Settings()

    assert s.ratio_decimal_places == 4
    assert s.valuation_cache_on_create == "latest_date"
    assert s.default_base_currency == "USD"


def test_configure_logging():
    try:
        configure_logging()
        assert structlog.is_configured()
        processors = structlog.get_config()["processors"]
        assert structlog.contextvars.merge_contextvars in processors
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
    finally:
        structlog.reset_defaults()


def test_configure_logging_console(monkeypatch):
    monkeypatch.setattr(settings, "log_format", "console")
    try:
        configure_logging("debug")
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
        assert structlog.get_config()["cache_logger_on_first_use"] is False
    finally:
        structlog.reset_defaults()


def test_actor_context():
    set_actor("gp-ops", roles=["ADMIN", "FUND_ADMIN"])
    actor = current_actor()
    assert actor is not None
    assert actor.roles == ("ADMIN", "FUND_ADMIN")

    clear_context()
    assert current_actor() is None
    assert actor_or_system() == "system"


def test_to_decimal():
    assert to_decimal(None) == Decimal("0")
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal("500000000") == Decimal("500000000")
    with pytest.raises(TypeError):
        to_decimal(True)


def test_ratio_rounding():
    assert quantize_ratio(Decimal("2.005")) == Decimal("2.01")
    assert quantize_ratio(Decimal("-2.005")) == Decimal("-2.01")
    assert safe_ratio(Decimal("1"), Decimal("0")) == Decimal("0")
    assert safe_ratio(Decimal("1"), Decimal("-5")) == Decimal("0")


def test_dates_are_utc():
    assert as_utc_datetime(dt.date(2025, 1, 1)) == dt.datetime(2025, 1, 1, tzinfo=dt.timezone.utc)
    assert as_utc_datetime(dt.datetime(2025, 1, 1, 6)).tzinfo == dt.timezone.utc
    assert whole_days_between(dt.date(2025, 1, 1), dt.datetime(2025, 1, 2, 23, 59, tzinfo=dt.timezone.utc)) == 1
    assert whole_days_between(dt.date(2025, 1, 2), dt.date(2025, 1, 1)) == -1
