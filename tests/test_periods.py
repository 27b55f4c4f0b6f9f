"""Tests for the period calculator."""

from datetime import date, datetime, timedelta

import pytest

from finledger.errors import InvalidInputError
from finledger.periods import (
    add_periods,
    invoice_period_key,
    key_for_date,
    parse_period_key,
    period_for_date,
    period_for_key,
    period_key,
    period_start,
    salary_period_key,
    shift_key,
    validate_start_day,
)


class TestPeriodStart:
    """Tests for mapping dates onto periods."""

    def test_day_before_start_day_belongs_to_previous_month(self):
        assert period_start(date(2026, 3, 1), 5) == date(2026, 2, 5)
        assert key_for_date(date(2026, 3, 1), 5) == "2026-02"

    def test_start_day_itself_opens_the_period(self):
        assert period_start(date(2026, 3, 5), 5) == date(2026, 3, 5)
        assert key_for_date(date(2026, 3, 5), 5) == "2026-03"

    def test_start_day_one_is_calendar_month(self):
        assert key_for_date(date(2026, 12, 31), 1) == "2026-12"
        assert key_for_date(date(2026, 1, 1), 1) == "2026-01"

    def test_year_boundary(self):
        assert key_for_date(date(2026, 1, 3), 10) == "2025-12"

    def test_accepts_datetime(self):
        assert key_for_date(datetime(2026, 3, 1, 23, 59), 5) == "2026-02"

    def test_round_trip_for_every_start_day(self):
        """keyForDate(periodStart(d, s), s) == keyForDate(d, s)."""
        day = date(2025, 12, 20)
        for _ in range(80):
            for start_day in range(1, 29):
                assert key_for_date(period_start(day, start_day), start_day) == key_for_date(day, start_day)
            day += timedelta(days=7)

    def test_period_key_zero_pads(self):
        assert period_key(date(987, 4, 1)) == "0987-04"


class TestPeriodRanges:
    """Tests for period boundaries and navigation."""

    def test_period_is_half_open(self):
        period = period_for_date(date(2026, 2, 20), 5)
        assert period.start_date == date(2026, 2, 5)
        assert period.end_date_exclusive == date(2026, 3, 5)
        assert period.contains(date(2026, 3, 4))
        assert not period.contains(date(2026, 3, 5))

    def test_periods_tile_the_timeline(self):
        start = date(2025, 11, 28)
        for offset in range(14):
            current = period_for_date(add_periods(start, offset, 28), 28)
            following = period_for_date(add_periods(start, offset + 1, 28), 28)
            assert current.end_date_exclusive == following.start_date

    def test_add_periods_pins_start_day(self):
        assert add_periods(date(2026, 1, 28), 1, 28) == date(2026, 2, 28)
        assert add_periods(date(2026, 1, 5), -2, 5) == date(2025, 11, 5)

    def test_period_for_key(self):
        period = period_for_key("2026-02", 5)
        assert period.start_date == date(2026, 2, 5)
        assert period.key == "2026-02"

    def test_shift_keys(self):
        assert shift_key("2026-01", -1) == "2025-12"
        assert shift_key("2025-12", 1) == "2026-01"


class TestFactKeys:
    """Tests for the non-date facts."""

    def test_invoice_rebuckets_first_of_month(self):
        assert invoice_period_key("2026-03", 1) == "2026-03"
        assert invoice_period_key("2026-03", 5) == "2026-02"

    def test_salary_uses_its_month_label(self):
        assert salary_period_key(2, 2026) == "2026-02"


class TestValidation:
    """Tests for start-day and key validation."""

    @pytest.mark.parametrize("bad", [0, 29, 31, -1])
    def test_rejects_out_of_range_start_day(self, bad):
        with pytest.raises(InvalidInputError):
            validate_start_day(bad)

    @pytest.mark.parametrize("bad", [True, 5.0, "5", None])
    def test_rejects_non_integer_start_day(self, bad):
        with pytest.raises(InvalidInputError):
            validate_start_day(bad)

    def test_period_start_never_clamps(self):
        with pytest.raises(InvalidInputError):
            period_start(date(2026, 2, 28), 30)

    @pytest.mark.parametrize("bad", ["2026-13", "2026-1", "26-01", "2026/01", ""])
    def test_rejects_malformed_keys(self, bad):
        with pytest.raises(InvalidInputError):
            parse_period_key(bad)
