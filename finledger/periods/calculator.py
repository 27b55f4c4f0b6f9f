"""
Period Calculator

Maps calendar dates onto financial periods for a configurable start-day.

A period with start-day S runs from day S of one calendar month up to
(but excluding) day S of the next. Its key is the "YYYY-MM" of the START
date, so with S=5 the date 2026-03-01 belongs to period "2026-02".

DESIGN DECISION: start_day is limited to 1..28 so that every calendar
month has that day; no clamping is ever needed for period boundaries.

DESIGN DECISION: Nothing is cached or stored here. Changing the start-day
re-buckets the whole history on the next computation. This keeps history
consistent at the cost of stability: every historical balance moves when
the start-day moves.
"""

import re
from datetime import date, datetime

from dateutil.relativedelta import relativedelta

from finledger.errors import InvalidInputError
from finledger.models.ledger import Period


MIN_START_DAY = 1
MAX_START_DAY = 28

_KEY_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def validate_start_day(start_day: int) -> int:
    """Reject any start-day outside 1..28 (never clamp)."""
    if (
        isinstance(start_day, bool)
        or not isinstance(start_day, int)
        or not MIN_START_DAY <= start_day <= MAX_START_DAY
    ):
        raise InvalidInputError(
            "start_day",
            f"must be an integer between {MIN_START_DAY} and {MAX_START_DAY}, got {start_day!r}",
        )
    return start_day


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise InvalidInputError("date", f"expected a date, got {type(value).__name__}")
    return value


def period_start(value: date, start_day: int) -> date:
    """
    Start date of the period containing `value`.

    Before the start-day, the period began in the previous calendar month.
    """
    validate_start_day(start_day)
    value = _as_date(value)

    start = value.replace(day=start_day)
    if value.day < start_day:
        start -= relativedelta(months=1)
    return start


def period_key(period_start_date: date) -> str:
    """Zero-padded "YYYY-MM" of a period's start date."""
    period_start_date = _as_date(period_start_date)
    return f"{period_start_date.year:04d}-{period_start_date.month:02d}"


def add_periods(period_start_date: date, offset: int, start_day: int) -> date:
    """Move `offset` periods forward (or back), pinning the day to start_day."""
    validate_start_day(start_day)
    period_start_date = _as_date(period_start_date)
    shifted = period_start_date + relativedelta(months=offset)
    return shifted.replace(day=start_day)


def key_for_date(value: date, start_day: int) -> str:
    """Period key for any timestamped fact."""
    return period_key(period_start(value, start_day))


def period_for_date(value: date, start_day: int) -> Period:
    start = period_start(value, start_day)
    return Period(
        start_date=start,
        end_date_exclusive=add_periods(start, 1, start_day),
        key=period_key(start),
    )


def parse_period_key(key: str) -> tuple[int, int]:
    """Split a "YYYY-MM" key into (year, month)."""
    match = _KEY_RE.match(key) if isinstance(key, str) else None
    if not match:
        raise InvalidInputError("period_key", f"expected 'YYYY-MM', got {key!r}")
    return int(match.group(1)), int(match.group(2))


def period_for_key(key: str, start_day: int) -> Period:
    validate_start_day(start_day)
    year, month = parse_period_key(key)
    return period_for_date(date(year, month, start_day), start_day)


def shift_key(key: str, offset: int) -> str:
    """The key `offset` periods away. Keys are month labels, so this is month arithmetic."""
    year, month = parse_period_key(key)
    shifted = date(year, month, 1) + relativedelta(months=offset)
    return period_key(shifted)


def invoice_period_key(month_key: str, start_day: int) -> str:
    """
    Financial period of a card invoice.

    Invoices are calendar-month based. The invoice month is expanded to
    its first day and then rebucketed, so with start_day > 1 an invoice
    for "2026-03" lands in period "2026-02".
    """
    year, month = parse_period_key(month_key)
    return key_for_date(date(year, month, 1), start_day)


def salary_period_key(month: int, year: int) -> str:
    """Salaries are recorded per month label and fold into the period of that label."""
    return f"{year:04d}-{month:02d}"
