"""
Balance Replay Engine

The balance of a period is a strict left-fold over every period that has
facts, ordered by key and seeded at zero:

    balance(N) = carry_over(N) + income(N) - expenses(N) - paid_invoices(N)
    carry_over(N) = balance(N-1)

DESIGN DECISION: The fold is pure. It receives already-fetched facts and
an explicit start_day, and never reads preferences or storage. Folding
stops once the target period has been processed.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from finledger.errors import DataIntegrityError
from finledger.models.ledger import (
    Budget,
    BudgetIncome,
    CardInvoice,
    Entry,
    ExpenseFact,
    ExtraIncome,
    ExtraIncomeFact,
    InvoiceSettlement,
    PeriodBalance,
    SalaryCredit,
    SalaryRecord,
)
from finledger.periods import (
    invoice_period_key,
    key_for_date,
    parse_period_key,
    salary_period_key,
    validate_start_day,
)


ZERO = Decimal("0")

# kind -> (fact, start_day) -> period key
_PERIOD_KEY_RULES: dict[str, Callable] = {
    "expense": lambda fact, start_day: key_for_date(fact.date, start_day),
    "extra_income": lambda fact, start_day: key_for_date(fact.date, start_day),
    "salary": lambda fact, start_day: salary_period_key(fact.month, fact.year),
    "budget": lambda fact, start_day: salary_period_key(fact.month, fact.year),
    "invoice": lambda fact, start_day: invoice_period_key(fact.month, start_day),
}


def period_key_of(fact, start_day: int) -> str:
    """The single place that decides which period a fact belongs to."""
    rule = _PERIOD_KEY_RULES.get(getattr(fact, "kind", None))
    if rule is None:
        raise DataIntegrityError(f"Unknown fact type: {type(fact).__name__}")
    return rule(fact, start_day)


def _require_date(value, what: str) -> date:
    if not isinstance(value, date):
        raise DataIntegrityError(f"{what} has a malformed date: {value!r}")
    return value


def build_facts(
    expenses: Iterable[Entry] = (),
    salaries: Iterable[SalaryRecord] = (),
    extra_incomes: Iterable[ExtraIncome] = (),
    invoices: Iterable[CardInvoice] = (),
    budgets: Iterable[Budget] = (),
    count_budget_as_income: bool = False,
) -> list:
    """
    Convert store records into tagged facts.

    This is the boundary where malformed records are rejected: a bad
    date or month key raises DataIntegrityError instead of being coerced.
    """
    facts = []
    try:
        for expense in expenses:
            facts.append(ExpenseFact(
                date=_require_date(expense.date, f"Expense {expense.id}"),
                amount=expense.amount,
            ))
        for salary in salaries:
            facts.append(SalaryCredit(
                month=salary.month,
                year=salary.year,
                amount=salary.amount,
            ))
        for income in extra_incomes:
            facts.append(ExtraIncomeFact(
                date=_require_date(income.date, f"Income {income.id}"),
                amount=income.amount,
            ))
        for invoice in invoices:
            parse_period_key(invoice.month)
            facts.append(InvoiceSettlement(
                month=invoice.month,
                amount=invoice.total,
                is_paid=invoice.is_paid,
            ))
        if count_budget_as_income:
            for budget in budgets:
                facts.append(BudgetIncome(
                    month=budget.month,
                    year=budget.year,
                    amount=budget.total_limit,
                ))
    except ValidationError as e:
        raise DataIntegrityError(
            f"Malformed ledger fact: {e.error_count()} invalid field(s)",
            issues=[{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()],
        )
    except ValueError as e:
        # parse_period_key raises InvalidInputError (a ValueError) on bad months
        raise DataIntegrityError(f"Malformed ledger fact: {e}")
    return facts


class PeriodTotals:
    """Per-period sums before carry-over is applied."""

    __slots__ = ("income", "expenses", "paid_invoices")

    def __init__(self):
        self.income = ZERO
        self.expenses = ZERO
        self.paid_invoices = ZERO

    def add(self, fact) -> None:
        if fact.kind == "expense":
            self.expenses += fact.amount
        elif fact.kind == "invoice":
            if fact.is_paid:
                self.paid_invoices += fact.amount
        else:
            self.income += fact.amount


def bucket_facts(facts: Iterable, start_day: int) -> dict[str, PeriodTotals]:
    """Group facts into per-period totals keyed by "YYYY-MM"."""
    validate_start_day(start_day)
    buckets: dict[str, PeriodTotals] = defaultdict(PeriodTotals)
    for fact in facts:
        buckets[period_key_of(fact, start_day)].add(fact)
    return dict(buckets)


def fold_balances(
    buckets: dict[str, PeriodTotals],
    target_key: str,
    carry_over: Decimal = ZERO,
    after_key: Optional[str] = None,
) -> list[PeriodBalance]:
    """
    Fold bucketed totals in key order up to and including target_key.

    Args:
        buckets: Output of bucket_facts()
        target_key: Last period to fold
        carry_over: Opening balance (zero for a full replay)
        after_key: Resume point; only keys strictly after it are folded

    Returns:
        One snapshot per folded key. The last one is the target.
    """
    parse_period_key(target_key)
    keys = sorted(
        key for key in set(buckets) | {target_key}
        if key <= target_key and (after_key is None or key > after_key)
    )

    snapshots = []
    for key in keys:
        totals = buckets.get(key) or PeriodTotals()
        balance = carry_over + totals.income - totals.expenses - totals.paid_invoices
        snapshots.append(PeriodBalance(
            period_key=key,
            carry_over=carry_over,
            income=totals.income,
            expenses=totals.expenses,
            paid_invoices=totals.paid_invoices,
            balance=balance,
        ))
        carry_over = balance
    return snapshots


def balance_history(
    target_key: str,
    expenses: Iterable[Entry] = (),
    salaries: Iterable[SalaryRecord] = (),
    extra_incomes: Iterable[ExtraIncome] = (),
    invoices: Iterable[CardInvoice] = (),
    start_day: int = 1,
    budgets: Iterable[Budget] = (),
    count_budget_as_income: bool = False,
) -> list[PeriodBalance]:
    """Every folded snapshot from the earliest period with facts up to target_key."""
    facts = build_facts(
        expenses=expenses,
        salaries=salaries,
        extra_incomes=extra_incomes,
        invoices=invoices,
        budgets=budgets,
        count_budget_as_income=count_budget_as_income,
    )
    return fold_balances(bucket_facts(facts, start_day), target_key)


def compute_balance(
    target_key: str,
    expenses: Iterable[Entry] = (),
    salaries: Iterable[SalaryRecord] = (),
    extra_incomes: Iterable[ExtraIncome] = (),
    invoices: Iterable[CardInvoice] = (),
    start_day: int = 1,
    budgets: Iterable[Budget] = (),
    count_budget_as_income: bool = False,
) -> PeriodBalance:
    """
    Balance snapshot for one period.

    With no facts at all the result is an all-zero balance for target_key.
    """
    return balance_history(
        target_key,
        expenses=expenses,
        salaries=salaries,
        extra_incomes=extra_incomes,
        invoices=invoices,
        start_day=start_day,
        budgets=budgets,
        count_budget_as_income=count_budget_as_income,
    )[-1]
