"""
Income Schedule

A salary saved with auto_repeat keeps being credited in every following
month until another salary record takes over. Only explicit records are
stored; the repeated credits are derived here.
"""

from typing import Iterable

from finledger.models.ledger import SalaryCredit, SalaryRecord
from finledger.periods import parse_period_key, shift_key


def expand_salaries(
    salaries: Iterable[SalaryRecord],
    through_key: str,
) -> list[SalaryCredit]:
    """
    Salary credits for every month up to and including through_key.

    Explicit records always win over a repeated amount. A record without
    auto_repeat credits only its own month.
    """
    parse_period_key(through_key)
    by_key = {s.month_key: s for s in salaries}
    ordered = sorted(by_key)

    credits = []
    for index, key in enumerate(ordered):
        if key > through_key:
            break
        salary = by_key[key]
        credits.append(SalaryCredit(month=salary.month, year=salary.year, amount=salary.amount))
        if not salary.auto_repeat:
            continue

        next_explicit = ordered[index + 1] if index + 1 < len(ordered) else None
        repeat_key = shift_key(key, 1)
        while repeat_key <= through_key and (next_explicit is None or repeat_key < next_explicit):
            year, month = parse_period_key(repeat_key)
            credits.append(SalaryCredit(month=month, year=year, amount=salary.amount))
            repeat_key = shift_key(repeat_key, 1)

    return credits
