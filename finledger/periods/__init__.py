"""Financial period calculation package."""

from finledger.periods.calculator import (
    MAX_START_DAY,
    MIN_START_DAY,
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

__all__ = [
    "MAX_START_DAY",
    "MIN_START_DAY",
    "add_periods",
    "invoice_period_key",
    "key_for_date",
    "parse_period_key",
    "period_for_date",
    "period_for_key",
    "period_key",
    "period_start",
    "salary_period_key",
    "shift_key",
    "validate_start_day",
]
