"""Tests for the balance fold and its cache."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from finledger.engine import (
    PeriodBalanceCache,
    balance_history,
    bucket_facts,
    build_facts,
    compute_balance,
    fold_balances,
    period_key_of,
)
from finledger.errors import DataIntegrityError
from finledger.models.ledger import (
    Budget,
    CardInvoice,
    Entry,
    ExpenseFact,
    ExtraIncome,
    InvoiceItem,
    SalaryRecord,
)


USER = "test-user"


def expense(day: date, amount: str) -> Entry:
    return Entry(user_id=USER, date=day, description="Expense", category="Outros",
                 amount=Decimal(amount))


def salary(month: int, year: int, amount: str) -> SalaryRecord:
    return SalaryRecord(user_id=USER, month=month, year=year, amount=Decimal(amount))


def invoice(month: str, amount: str, is_paid: bool) -> CardInvoice:
    item = InvoiceItem(date=date.fromisoformat(f"{month}-01"), description="Purchase",
                       category="Outros", amount=Decimal(amount))
    return CardInvoice(user_id=USER, card_id=uuid4(), month=month, items=[item], is_paid=is_paid)


class TestComputeBalance:
    """Tests for the strict left-fold."""

    def test_salary_minus_expense(self):
        result = compute_balance(
            "2026-01",
            expenses=[expense(date(2026, 1, 15), "1200.00")],
            salaries=[salary(1, 2026, "5000.00")],
        )
        assert result.carry_over == Decimal("0")
        assert result.income == Decimal("5000.00")
        assert result.expenses == Decimal("1200.00")
        assert result.balance == Decimal("3800.00")

    def test_negative_carry_over(self):
        result = compute_balance(
            "2026-02",
            expenses=[expense(date(2026, 1, 10), "150.00")],
            salaries=[salary(2, 2026, "1500.00")],
        )
        assert result.carry_over == Decimal("-150.00")
        assert result.balance == Decimal("1350.00")

    def test_no_facts_gives_zero(self):
        result = compute_balance("2026-05")
        assert result.period_key == "2026-05"
        assert result.balance == Decimal("0")
        assert result.carry_over == Decimal("0")

    def test_period_without_facts_carries_previous_balance(self):
        result = compute_balance(
            "2026-04",
            salaries=[salary(1, 2026, "1000.00")],
        )
        assert result.carry_over == Decimal("1000.00")
        assert result.income == Decimal("0")
        assert result.balance == Decimal("1000.00")

    def test_later_facts_are_ignored(self):
        result = compute_balance(
            "2026-01",
            expenses=[expense(date(2026, 3, 1), "999.00")],
            salaries=[salary(1, 2026, "100.00")],
        )
        assert result.balance == Decimal("100.00")

    def test_start_day_moves_facts_between_periods(self):
        facts = dict(
            expenses=[expense(date(2026, 2, 3), "300.00")],
            salaries=[salary(1, 2026, "1000.00")],
        )
        assert compute_balance("2026-01", start_day=1, **facts).balance == Decimal("1000.00")
        # Feb 3 falls in period 2026-01 when months start on the 5th
        assert compute_balance("2026-01", start_day=5, **facts).balance == Decimal("700.00")

    def test_extra_income_counts_as_income(self):
        income = ExtraIncome(user_id=USER, date=date(2026, 1, 20), description="Freelance",
                             amount=Decimal("250.00"))
        result = compute_balance("2026-01", extra_incomes=[income])
        assert result.income == Decimal("250.00")

    def test_only_paid_invoices_are_deducted(self):
        result = compute_balance(
            "2026-03",
            salaries=[salary(3, 2026, "2000.00")],
            invoices=[invoice("2026-03", "400.00", True), invoice("2026-03", "900.00", False)],
        )
        assert result.paid_invoices == Decimal("400.00")
        assert result.balance == Decimal("1600.00")

    def test_invoice_rebucketed_by_start_day(self):
        paid = [invoice("2026-03", "400.00", True)]
        assert compute_balance("2026-02", invoices=paid, start_day=5).paid_invoices == Decimal("400.00")
        assert compute_balance("2026-02", invoices=paid, start_day=1).paid_invoices == Decimal("0")

    def test_budget_counts_as_income_only_when_enabled(self):
        budget = Budget(user_id=USER, month=1, year=2026, total_limit=Decimal("800.00"))
        assert compute_balance("2026-01", budgets=[budget]).income == Decimal("0")
        enabled = compute_balance("2026-01", budgets=[budget], count_budget_as_income=True)
        assert enabled.income == Decimal("800.00")

    def test_history_is_ordered_and_chained(self):
        history = balance_history(
            "2026-03",
            expenses=[expense(date(2026, 2, 10), "50.00")],
            salaries=[salary(1, 2026, "100.00"), salary(3, 2026, "100.00")],
        )
        assert [s.period_key for s in history] == ["2026-01", "2026-02", "2026-03"]
        for previous, current in zip(history, history[1:]):
            assert current.carry_over == previous.balance
        assert history[-1].balance == Decimal("150.00")


class TestMalformedFacts:
    """Malformed stored records make the balance unavailable."""

    def test_unparseable_expense_date(self):
        broken = Entry.model_construct(user_id=USER, date="2026-02-30", description="x",
                                       category="x", amount=Decimal("1.00"))
        with pytest.raises(DataIntegrityError):
            compute_balance("2026-02", expenses=[broken])

    def test_bad_invoice_month(self):
        broken = CardInvoice.model_construct(user_id=USER, month="2026-13", items=[], is_paid=True)
        with pytest.raises(DataIntegrityError):
            build_facts(invoices=[broken])

    def test_bad_salary_month(self):
        broken = SalaryRecord.model_construct(user_id=USER, month=13, year=2026,
                                              amount=Decimal("10.00"))
        with pytest.raises(DataIntegrityError) as exc_info:
            build_facts(salaries=[broken])
        assert exc_info.value.issues

    def test_unknown_fact_kind(self):
        with pytest.raises(DataIntegrityError):
            period_key_of(object(), 1)


class TestPeriodKeyOf:
    def test_expense_uses_its_date(self):
        fact = ExpenseFact(date=date(2026, 3, 1), amount=Decimal("1"))
        assert period_key_of(fact, 5) == "2026-02"


class TestPeriodBalanceCache:
    """The cache must always agree with a full replay."""

    def _buckets(self, start_day=1):
        facts = build_facts(
            expenses=[expense(date(2026, 1, 15), "1200.00"), expense(date(2026, 3, 2), "40.00")],
            salaries=[salary(1, 2026, "5000.00"), salary(2, 2026, "5000.00")],
        )
        return bucket_facts(facts, start_day)

    def test_matches_full_replay(self):
        cache = PeriodBalanceCache()
        buckets = self._buckets()
        for key in ["2026-01", "2026-03", "2026-02", "2026-06"]:
            cached, _ = cache.fold(buckets, key, 1)
            assert cached == fold_balances(buckets, key)[-1]

    def test_only_replays_past_the_boundary(self):
        cache = PeriodBalanceCache()
        buckets = self._buckets()
        _, first = cache.fold(buckets, "2026-02", 1)
        _, second = cache.fold(buckets, "2026-03", 1)
        _, third = cache.fold(buckets, "2026-01", 1)
        assert first == 2
        assert second == 1
        assert third == 0
        assert cache.boundary == "2026-03"

    def test_invalidate_from_forgets_later_snapshots(self):
        cache = PeriodBalanceCache()
        cache.fold(self._buckets(), "2026-03", 1)
        cache.invalidate_from("2026-02")
        assert cache.boundary == "2026-01"

        facts = build_facts(
            expenses=[expense(date(2026, 1, 15), "1200.00"), expense(date(2026, 2, 20), "100.00")],
            salaries=[salary(1, 2026, "5000.00"), salary(2, 2026, "5000.00")],
        )
        changed = bucket_facts(facts, 1)
        snapshot, replayed = cache.fold(changed, "2026-03", 1)
        assert replayed == 2
        assert snapshot == fold_balances(changed, "2026-03")[-1]

    def test_invalidate_after_boundary_is_noop(self):
        cache = PeriodBalanceCache()
        cache.fold(self._buckets(), "2026-02", 1)
        cache.invalidate_from("2026-05")
        assert cache.boundary == "2026-02"

    def test_start_day_change_resets(self):
        cache = PeriodBalanceCache()
        cache.fold(self._buckets(1), "2026-03", 1)
        snapshot, replayed = cache.fold(self._buckets(5), "2026-03", 5)
        assert cache.start_day == 5
        assert replayed == 3
        assert snapshot == fold_balances(self._buckets(5), "2026-03")[-1]

    def test_reset(self):
        cache = PeriodBalanceCache()
        cache.fold(self._buckets(), "2026-03", 1)
        cache.reset()
        assert cache.boundary is None
        assert cache.start_day is None
