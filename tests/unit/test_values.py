"""
Tests for Decimal helpers, the reporting-period key and the test clock.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.values import (
    MAX_AMOUNT,
    ReportPeriodKey,
    percentage_of,
    quantize_money,
    to_decimal,
)
from ledger_kernel.exceptions import InvalidAmountError, InvalidReportPeriodError


class TestToDecimal:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (Decimal("1.50"), Decimal("1.50")),
            (7, Decimal("7")),
            (" 12.345 ", Decimal("12.345")),
        ],
    )
    def test_accepted(self, value, expected):
        assert to_decimal(value) == expected

    @pytest.mark.parametrize(
        "value",
        [1.5, True, None, "abc", "NaN", Decimal("Infinity"), MAX_AMOUNT, -MAX_AMOUNT, "1E+28"],
    )
    def test_rejected(self, value):
        with pytest.raises(InvalidAmountError) as exc_info:
            to_decimal(value)

        assert exc_info.value.code == "INVALID_AMOUNT"


class TestQuantizeAndPercent:
    def test_half_up_away_from_zero(self):
        assert quantize_money(Decimal("2.345")) == Decimal("2.35")
        assert quantize_money(Decimal("-2.345")) == Decimal("-2.35")

    def test_other_places(self):
        assert quantize_money(Decimal("2.5"), places=0) == Decimal("3")
        assert quantize_money(Decimal("1.23456"), places=3) == Decimal("1.235")

    def test_below_limit_accepted(self):
        largest = MAX_AMOUNT - Decimal("0.01")

        assert to_decimal(largest) == largest
        assert quantize_money(largest) == largest

    def test_unroundable_amount_is_invalid(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            quantize_money(Decimal("1E+27"))

        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_percentage_of(self):
        assert percentage_of(Decimal("400"), Decimal("1000")) == 40
        assert percentage_of(Decimal("1"), Decimal("3")) == 33
        assert percentage_of(Decimal("2"), Decimal("3")) == 67
        assert percentage_of(Decimal("5"), Decimal("0")) == 0


class TestReportPeriodKey:
    def test_labels(self):
        key = ReportPeriodKey.of(3, 2026)

        assert key.label == "2026-03"
        assert str(key) == "2026-03"
        assert key.display_label == "March 2026"
        assert key.first_day == date(2026, 3, 1)

    def test_containing(self):
        assert ReportPeriodKey.containing(date(2026, 12, 31)) == ReportPeriodKey.of(12, 2026)

    def test_contains(self):
        key = ReportPeriodKey.of(2, 2026)

        assert key.contains(date(2026, 2, 28))
        assert not key.contains(date(2026, 3, 1))
        assert not key.contains(date(2025, 2, 10))
        assert not key.contains(None)

    def test_chronological_order(self):
        keys = [ReportPeriodKey.of(1, 2027), ReportPeriodKey.of(12, 2026), ReportPeriodKey.of(2, 2026)]

        assert sorted(keys) == [keys[2], keys[1], keys[0]]

    @pytest.mark.parametrize("month, year", [(0, 2026), (13, 2026), (5, 0)])
    def test_invalid(self, month, year):
        with pytest.raises(InvalidReportPeriodError) as exc_info:
            ReportPeriodKey.of(month, year)

        assert exc_info.value.code == "INVALID_REPORT_PERIOD"


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        start = datetime(2026, 3, 31, 23, 59, 59, tzinfo=timezone.utc)
        clock = DeterministicClock(start)

        assert clock.now() == clock.now() == start
        assert clock.tick() == start + timedelta(seconds=1)
        assert clock.today() == date(2026, 4, 1)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(30)
        target = datetime(2026, 5, 1, tzinfo=timezone.utc)

        clock.set_time(target)

        assert clock.now() == target

    def test_default_time(self):
        assert DeterministicClock().now() == datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc)
