"""End-to-end tests for LedgerService against the in-memory store."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from finledger.errors import BalanceUnavailableError, DataIntegrityError, InvalidInputError
from finledger.models.audit import AuditEventType
from finledger.models.ledger import (
    Budget,
    CardInvoice,
    CreditCard,
    Entry,
    EntryStatus,
    MaterializationRecord,
)
from finledger.services.storage import NotFoundError, StorageError


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestPeriodBalance:
    """Tests for balances served by the service."""

    @pytest.mark.asyncio
    async def test_salary_minus_expense(self, service):
        await service.save_salary(1, 2026, Decimal("5000.00"))
        await service.add_expense(date(2026, 1, 15), "Rent", "Moradia", Decimal("1200.00"))

        balance = await service.get_period_balance(date(2026, 1, 20))

        assert balance.period_key == "2026-01"
        assert balance.balance == Decimal("3800.00")

    @pytest.mark.asyncio
    async def test_cached_and_uncached_agree(self, service, uncached_service):
        await service.save_salary(1, 2026, Decimal("1000.00"), auto_repeat=True)
        await service.add_expense(date(2026, 2, 3), "Fuel", "Transporte", Decimal("250.00"))
        await service.add_extra_income(date(2026, 3, 1), "Freelance", Decimal("80.00"))

        for day in [date(2026, 1, 1), date(2026, 3, 2), date(2026, 2, 10), date(2026, 5, 5)]:
            cached = await service.get_period_balance(day)
            replayed = await uncached_service.get_period_balance(day)
            assert cached == replayed

    @pytest.mark.asyncio
    async def test_mutation_invalidates_cached_periods(self, service):
        await service.save_salary(1, 2026, Decimal("1000.00"), auto_repeat=False)
        first = await service.get_period_balance(date(2026, 3, 1))
        assert first.balance == Decimal("1000.00")

        await service.add_expense(date(2026, 2, 14), "Gift", "Presentes", Decimal("100.00"))
        second = await service.get_period_balance(date(2026, 3, 1))
        assert second.balance == Decimal("900.00")

    @pytest.mark.asyncio
    async def test_explicit_start_day(self, service):
        await service.save_salary(1, 2026, Decimal("1000.00"))
        await service.add_expense(date(2026, 2, 3), "Fuel", "Transporte", Decimal("300.00"))

        assert (await service.get_period_balance(date(2026, 1, 20), start_day=1)).balance == Decimal("1000.00")
        assert (await service.get_period_balance(date(2026, 1, 20), start_day=5)).balance == Decimal("700.00")

    @pytest.mark.asyncio
    async def test_invalid_start_day_is_rejected(self, service):
        with pytest.raises(InvalidInputError):
            await service.get_period_balance(date(2026, 1, 1), start_day=29)

    @pytest.mark.asyncio
    async def test_malformed_fact_makes_balance_unavailable(self, service, store, audit_storage):
        broken = Entry.model_construct(id=uuid4(), user_id="test-user", date="not-a-date",
                                       description="x", category="x", amount=Decimal("1.00"),
                                       status=EntryStatus.PAID)
        store._expenses[broken.id] = broken

        with pytest.raises(BalanceUnavailableError) as exc_info:
            await service.get_period_balance(date(2026, 1, 10))

        assert exc_info.value.period_key == "2026-01"
        types = event_types(audit_storage)
        assert AuditEventType.DATA_INTEGRITY_ERROR in types
        assert types[-1] == AuditEventType.BALANCE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_store_failure_makes_balance_unavailable(self, service, store, audit_storage):
        async def failing(*args, **kwargs):
            raise RuntimeError("sheet unreachable")

        store.list_salaries = failing
        with pytest.raises(BalanceUnavailableError) as exc_info:
            await service.get_period_balance(date(2026, 1, 10))
        assert "sheet unreachable" in exc_info.value.reason
        assert AuditEventType.SYSTEM_ERROR in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_storage_error_is_audited(self, service, store, audit_storage):
        async def failing(*args, **kwargs):
            raise StorageError("Failed to list invoices: quota exceeded")

        store.list_invoices = failing
        with pytest.raises(BalanceUnavailableError):
            await service.get_period_balance(date(2026, 1, 10))
        assert AuditEventType.STORAGE_ERROR in event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_balance_computed_is_audited(self, service, audit_storage):
        await service.get_period_balance(date(2026, 1, 10))
        assert event_types(audit_storage)[-1] == AuditEventType.BALANCE_COMPUTED

    @pytest.mark.asyncio
    async def test_history(self, service):
        await service.save_salary(1, 2026, Decimal("100.00"), auto_repeat=False)
        await service.add_expense(date(2026, 2, 2), "Snack", "Comida", Decimal("30.00"))
        history = await service.get_balance_history(date(2026, 2, 20))
        assert [(s.period_key, s.balance) for s in history] == [
            ("2026-01", Decimal("100.00")),
            ("2026-02", Decimal("70.00")),
        ]

    @pytest.mark.asyncio
    async def test_salary_repeats_by_default(self, service):
        await service.save_salary(1, 2026, Decimal("100.00"))
        history = await service.get_balance_history(date(2026, 3, 20))
        assert [s.income for s in history] == [Decimal("100.00")] * 3
        assert history[-1].balance == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_paid_invoice_reduces_balance(self, service, store):
        card = await service.save_card(CreditCard(user_id="test-user", name="Visa"))
        await service.save_salary(3, 2026, Decimal("2000.00"))
        await service.add_installment_purchase(card.id, "TV", "Casa", Decimal("600.00"), 2,
                                               date(2026, 3, 4), first_month="2026-03")
        invoices = [i for i in await store.list_invoices("test-user") if i.month == "2026-03"]
        await service.save_invoice(invoices[0].model_copy(update={"is_paid": True}))

        balance = await service.get_period_balance(date(2026, 3, 20))
        assert balance.paid_invoices == Decimal("300.00")
        assert balance.balance == Decimal("1700.00")


class TestRecurringThroughService:
    """Recurring templates are materialized before any read of a period."""

    @pytest.mark.asyncio
    async def test_read_materializes_once(self, service, store):
        await service.create_recurring_template("Internet", "Casa", Decimal("120.00"), 10)

        first = await service.list_period_entries(date(2026, 4, 2), today=date(2026, 4, 2))
        second = await service.list_period_entries(date(2026, 4, 2), today=date(2026, 4, 2))

        assert len(first) == len(second) == 1
        assert first[0].is_recurring
        assert first[0].date == date(2026, 4, 10)
        assert len(await store.list_expenses("test-user")) == 1

    @pytest.mark.asyncio
    async def test_balance_includes_recurring_entries(self, service):
        await service.save_salary(4, 2026, Decimal("500.00"))
        await service.create_recurring_template("Gym", "Saude", Decimal("90.00"), 31)

        balance = await service.get_period_balance(date(2026, 4, 15))
        assert balance.expenses == Decimal("90.00")
        assert balance.balance == Decimal("410.00")

    @pytest.mark.asyncio
    async def test_reactivated_template_does_not_backfill(self, service, store):
        template = await service.create_recurring_template("Stream", "Lazer", Decimal("30.00"), 5)
        await service.set_template_active(template.id, False)
        await service.list_period_entries(date(2026, 1, 10))
        await service.list_period_entries(date(2026, 2, 10))
        await service.set_template_active(template.id, True)
        await service.list_period_entries(date(2026, 3, 10))

        entries = await store.list_expenses("test-user")
        assert [e.date for e in entries] == [date(2026, 3, 5)]

    @pytest.mark.asyncio
    async def test_planned_entry_shows_overdue(self, service):
        await service.add_expense(date(2026, 5, 2), "Tax", "Impostos", Decimal("40.00"),
                                  status=EntryStatus.PLANNED)
        entries = await service.list_period_entries(date(2026, 5, 2), today=date(2026, 5, 20))
        assert entries[0].status == EntryStatus.OVERDUE
        assert not entries[0].is_recurring


class TestStartDay:
    """Tests for changing the month start-day."""

    @pytest.mark.asyncio
    async def test_change_is_persisted_and_audited(self, service, preferences, audit_storage):
        await service.set_month_start_day(10)

        assert service.get_month_start_day() == 10
        assert preferences.get_month_start_day() == 10
        assert event_types(audit_storage) == [AuditEventType.START_DAY_CHANGED]

    @pytest.mark.asyncio
    async def test_unchanged_day_is_not_audited(self, service, audit_storage):
        await service.set_month_start_day(1)
        assert audit_storage.events == []

    @pytest.mark.asyncio
    async def test_change_rebuckets_history(self, service):
        await service.save_salary(1, 2026, Decimal("1000.00"))
        await service.add_expense(date(2026, 2, 3), "Fuel", "Transporte", Decimal("300.00"))
        assert (await service.get_period_balance(date(2026, 1, 20))).balance == Decimal("1000.00")

        await service.set_month_start_day(5)
        assert (await service.get_period_balance(date(2026, 1, 20))).balance == Decimal("700.00")

    @pytest.mark.asyncio
    async def test_rejects_out_of_range(self, service, audit_storage):
        with pytest.raises(InvalidInputError):
            await service.set_month_start_day(30)
        assert service.get_month_start_day() == 1


class TestAccountsThroughService:
    """Tests for account operations."""

    @pytest.mark.asyncio
    async def test_balance_after_adjustment_and_transfer(self, service):
        checking = await service.create_account("Checking", initial_balance=Decimal("1000.00"))
        savings = await service.create_account("Savings")

        await service.adjust(checking.id, Decimal("200.00"))
        await service.transfer(checking.id, savings.id, Decimal("300.00"))

        assert await service.get_account_balance(checking.id) == Decimal("900.00")
        assert await service.get_account_balance(savings.id) == Decimal("300.00")
        assert await service.get_total_balance() == Decimal("1200.00")

    @pytest.mark.asyncio
    async def test_transfer_to_unknown_account(self, service):
        checking = await service.create_account("Checking")
        with pytest.raises(DataIntegrityError):
            await service.transfer(checking.id, uuid4(), Decimal("10.00"))

    @pytest.mark.asyncio
    async def test_zero_adjustment_rejected(self, service):
        checking = await service.create_account("Checking")
        with pytest.raises(InvalidInputError):
            await service.adjust(checking.id, Decimal("0"))

    @pytest.mark.asyncio
    async def test_unknown_account_balance(self, service):
        with pytest.raises(NotFoundError):
            await service.get_account_balance(uuid4())

    @pytest.mark.asyncio
    async def test_transfer_is_audited(self, service, audit_storage):
        a = await service.create_account("A", initial_balance=Decimal("50.00"))
        b = await service.create_account("B")
        await service.transfer(a.id, b.id, Decimal("20.00"))
        assert event_types(audit_storage)[-1] == AuditEventType.TRANSFER_RECORDED


class TestQueriesThroughService:
    """Tests for alerts, budgets and validation."""

    @pytest.mark.asyncio
    async def test_alerts_with_balance_risk(self, service):
        await service.save_salary(6, 2026, Decimal("100.00"))
        await service.add_expense(date(2026, 6, 11), "Insurance", "Seguros", Decimal("150.00"),
                                  status=EntryStatus.PLANNED)

        summary = await service.get_alerts(today=date(2026, 6, 10))

        assert summary.period_key == "2026-06"
        assert len(summary.groups) == 1
        assert summary.balance_risk is not None
        assert summary.balance_risk.shortfall == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_budget_usage(self, service):
        await service.save_budget(Budget(user_id="test-user", month=7, year=2026,
                                         total_limit=Decimal("100.00")))
        await service.add_expense(date(2026, 7, 3), "Market", "Mercado", Decimal("90.00"))
        usage = await service.get_budget_usage(7, 2026)
        assert usage.spent == Decimal("90.00")
        assert usage.near_budget

    @pytest.mark.asyncio
    async def test_budget_usage_without_budget(self, service):
        assert await service.get_budget_usage(7, 2026) is None

    @pytest.mark.asyncio
    async def test_installments_for_unknown_card(self, service):
        with pytest.raises(DataIntegrityError):
            await service.add_installment_purchase(uuid4(), "TV", "Casa", Decimal("10.00"), 2,
                                                   date(2026, 1, 1))

    @pytest.mark.asyncio
    async def test_validate_facts_reports_dangling_invoice(self, service, store, audit_storage):
        await store.save_invoice(CardInvoice(user_id="test-user", card_id=uuid4(), month="2026-01"))
        result, message = await service.validate_facts()
        assert not result.is_valid
        assert event_types(audit_storage)[-1] == AuditEventType.DATA_INTEGRITY_ERROR
        assert "missing card" in message

    @pytest.mark.asyncio
    async def test_validate_facts_warns_about_deleted_template(self, service):
        template = await service.create_recurring_template("Internet", "Casa", Decimal("120.00"), 10)
        await service.ensure_materialized(date(2026, 2, 15))
        await service.delete_recurring_template(template.id)

        result, message = await service.validate_facts()

        assert result.is_valid
        assert [w.issue_type for w in result.warnings] == ["orphaned_record"]
        assert "deleted template" in message

    @pytest.mark.asyncio
    async def test_entry_with_missing_card_makes_balance_unavailable(self, service, audit_storage):
        await service.add_expense(date(2026, 1, 5), "Shoes", "Roupas", Decimal("80.00"),
                                  card_id=uuid4())

        with pytest.raises(BalanceUnavailableError):
            await service.get_period_balance(date(2026, 1, 10))
        types = event_types(audit_storage)
        assert AuditEventType.DATA_INTEGRITY_ERROR in types
        assert types[-1] == AuditEventType.BALANCE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_double_materialization_makes_balance_unavailable(self, service, store):
        template_id = uuid4()
        records = [
            MaterializationRecord(user_id="test-user", template_id=template_id,
                                  period_key="2026-01", entry_id=uuid4())
            for _ in range(2)
        ]

        async def both_records(user_id):
            return records

        store.list_user_materialization_records = both_records
        with pytest.raises(BalanceUnavailableError) as exc_info:
            await service.get_period_balance(date(2026, 1, 10))
        assert "integrity" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_validate_facts_clean_ledger(self, service):
        result, message = await service.validate_facts()
        assert result.issues == []
        assert message == "All stored records are consistent."
