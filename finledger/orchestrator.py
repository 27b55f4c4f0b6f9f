"""
Ledger Service

This module ties the engine, the store and the audit log together and is
the only surface the UI talks to.

DESIGN DECISION: The service enforces the ordering the engine relies on:
- Recurring templates are materialized before any read of the same period
- start_day is resolved ONCE per call and passed explicitly downstream
- A balance is either fully computed or BalanceUnavailableError is raised
- Every mutation invalidates the folded-subtotal cache from its period on
- Every significant step is audited
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from dateutil.relativedelta import relativedelta

from finledger.audit import AuditLogger, create_correlation_id
from finledger.config import MonthStartPreference, get_settings
from finledger.engine import (
    PeriodBalanceCache,
    RecurringMaterializer,
    account_balances,
    bucket_facts,
    build_facts,
    expand_salaries,
    fold_balances,
    make_adjustment,
    make_transfer,
    plan_installments,
    total_balance,
)
from finledger.errors import BalanceUnavailableError, DataIntegrityError
from finledger.models.accounts import (
    AccountAdjustment,
    AccountTransfer,
    AccountType,
    AdjustmentReason,
    FinancialAccount,
)
from finledger.models.audit import AuditEventBuilder, AuditEventType
from finledger.models.ledger import (
    Budget,
    CardInvoice,
    CreditCard,
    Entry,
    EntryStatus,
    EntryView,
    ExtraIncome,
    PeriodBalance,
    RecurringTemplate,
    SalaryRecord,
)
from finledger.models.queries import AlertSummary, BudgetUsage, ValidationResult
from finledger.periods import (
    invoice_period_key,
    key_for_date,
    period_for_date,
    period_key,
    salary_period_key,
    validate_start_day,
)
from finledger.queries import (
    budget_usage,
    effective_status,
    invoice_alerts,
    negative_balance_risk,
    upcoming_alerts,
)
from finledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    LedgerStoreInterface,
    NotFoundError,
    StorageError,
)
from finledger.validation import FactValidator


class LedgerService:
    """
    UI-facing ledger operations for one user.

    Flow for a period read:
    1. Resolve start_day (argument, else the stored preference)
    2. Materialize active recurring templates for the period
    3. Read facts from the store
    4. Fold (through the cache when enabled)
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        preferences: MonthStartPreference,
        user_id: str,
        audit_logger: Optional[AuditLogger] = None,
        cache: Optional[PeriodBalanceCache] = None,
        validator: Optional[FactValidator] = None,
        count_budget_as_income: bool = False,
        alert_days_before: int = 3,
        invoice_closing_alert_days: int = 3,
        invoice_due_alert_days: int = 5,
        near_budget_ratio: float = 0.8,
    ):
        self._store = store
        self._preferences = preferences
        self._user_id = user_id
        self._audit_logger = audit_logger or AuditLogger()
        self._materializer = RecurringMaterializer(store, self._audit_logger)
        self._cache = cache
        self._validator = validator or FactValidator()
        self._count_budget_as_income = count_budget_as_income
        self._alert_days_before = alert_days_before
        self._invoice_closing_alert_days = invoice_closing_alert_days
        self._invoice_due_alert_days = invoice_due_alert_days
        self._near_budget_ratio = near_budget_ratio

    @property
    def user_id(self) -> str:
        return self._user_id

    # -------------------------------------------------------------------------
    # Start-day
    # -------------------------------------------------------------------------

    def _start_day(self, start_day: Optional[int]) -> int:
        if start_day is None:
            return self._preferences.get_month_start_day()
        return validate_start_day(start_day)

    def get_month_start_day(self) -> int:
        return self._preferences.get_month_start_day()

    async def set_month_start_day(
        self,
        day: int,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Persist a new start-day.

        Every historical period is re-bucketed on the next read, so the
        cache is dropped and the change is audited as a warning.
        """
        validate_start_day(day)
        previous = self._preferences.get_month_start_day()
        self._preferences.set_month_start_day(day)
        if self._cache is not None:
            self._cache.reset(day)
        if previous != day:
            await self._audit_logger.log_start_day_changed(
                previous_day=previous,
                new_day=day,
                correlation_id=correlation_id,
            )
        return day

    def _invalidate(self, key: str) -> None:
        if self._cache is not None:
            self._cache.invalidate_from(key)

    def _invalidate_date(self, value: date) -> None:
        if self._cache is not None and self._cache.start_day is not None:
            self._cache.invalidate_from(key_for_date(value, self._cache.start_day))

    def _invalidate_invoice(self, month_key: str) -> None:
        if self._cache is not None and self._cache.start_day is not None:
            self._cache.invalidate_from(invoice_period_key(month_key, self._cache.start_day))

    def _reset_cache(self) -> None:
        if self._cache is not None:
            self._cache.reset(self._cache.start_day)

    # -------------------------------------------------------------------------
    # Periods and balances
    # -------------------------------------------------------------------------

    async def ensure_materialized(
        self,
        d: date,
        start_day: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Entry]:
        """Materialize active templates for the period containing d."""
        day = self._start_day(start_day)
        period = period_for_date(d, day)
        templates = await self._store.list_recurring_templates(self._user_id)
        created = await self._materializer.materialize(
            [t for t in templates if t.active],
            period.key,
            period.start_date,
            correlation_id=correlation_id,
        )
        for entry in created:
            self._invalidate_date(entry.date)
        return created

    async def list_period_entries(
        self,
        d: date,
        start_day: Optional[int] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[EntryView]:
        """
        Entries of the period containing d, after materialization.

        Status is the effective status as of `today` (planned and past
        due shows as overdue).
        """
        day = self._start_day(start_day)
        period = period_for_date(d, day)
        today = today or date.today()

        await self.ensure_materialized(d, day, correlation_id)

        entries = await self._store.list_expenses(
            self._user_id,
            date_from=period.start_date,
            date_to=period.end_date_exclusive,
        )
        templates = await self._store.list_recurring_templates(self._user_id)
        recurring = await self._materializer.recurring_entry_ids(
            [t.id for t in templates],
            period.key,
        )
        return [
            EntryView(
                **entry.model_dump(exclude={"status"}),
                status=effective_status(entry, today),
                is_recurring=entry.id in recurring,
            )
            for entry in entries
        ]

    async def _load_facts(self, target_key: str) -> list:
        expenses = await self._store.list_expenses(self._user_id)
        salaries = expand_salaries(await self._store.list_salaries(self._user_id), target_key)
        extra_incomes = await self._store.list_extra_incomes(self._user_id)
        invoices = await self._store.list_invoices(self._user_id)
        budgets = (
            await self._store.list_budgets(self._user_id)
            if self._count_budget_as_income else []
        )

        # Dangling references or double materialization make the balance unusable
        self._validator.ensure_valid(
            accounts=await self._store.list_accounts(self._user_id),
            cards=await self._store.list_cards(self._user_id),
            entries=expenses,
            invoices=invoices,
            records=await self._store.list_user_materialization_records(self._user_id),
        )

        return build_facts(
            expenses=expenses,
            salaries=salaries,
            extra_incomes=extra_incomes,
            invoices=invoices,
            budgets=budgets,
            count_budget_as_income=self._count_budget_as_income,
        )

    async def _fold(self, target_key: str, start_day: int) -> tuple[list[PeriodBalance], int]:
        buckets = bucket_facts(await self._load_facts(target_key), start_day)

        if self._cache is not None:
            snapshot, replayed = self._cache.fold(buckets, target_key, start_day)
            return [snapshot], replayed

        history = fold_balances(buckets, target_key)
        return history, len(history)

    async def get_period_balance(
        self,
        d: date,
        start_day: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> PeriodBalance:
        """
        Carry-over balance of the period containing d.

        Raises:
            InvalidInputError: If start_day is outside 1..28
            BalanceUnavailableError: If anything fails while computing;
                no partial balance is ever returned
        """
        day = self._start_day(start_day)
        key = key_for_date(d, day)
        correlation_id = correlation_id or create_correlation_id()

        try:
            await self.ensure_materialized(d, day, correlation_id)
            history, replayed = await self._fold(key, day)
        except Exception as e:
            if isinstance(e, DataIntegrityError):
                await self._audit_logger.log(AuditEventBuilder.data_integrity_error(
                    error_message=str(e),
                    issues=e.issues,
                    correlation_id=correlation_id,
                ))
            elif isinstance(e, StorageError):
                await self._audit_logger.log(AuditEventBuilder.storage_error(
                    operation=f"read facts for {key}",
                    error_message=str(e),
                    correlation_id=correlation_id,
                ))
            else:
                await self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"period_key": key},
                    correlation_id=correlation_id,
                )
            await self._audit_logger.log_balance_unavailable(
                period_key=key,
                reason=str(e),
                correlation_id=correlation_id,
            )
            raise BalanceUnavailableError(key, str(e)) from e

        snapshot = history[-1]
        await self._audit_logger.log_balance_computed(
            period_key=key,
            start_day=day,
            balance=snapshot.balance,
            replayed_periods=replayed,
            correlation_id=correlation_id,
        )
        return snapshot

    async def get_balance_history(
        self,
        d: date,
        start_day: Optional[int] = None,
    ) -> list[PeriodBalance]:
        """Every folded period up to the one containing d (full replay)."""
        day = self._start_day(start_day)
        key = key_for_date(d, day)
        try:
            await self.ensure_materialized(d, day)
            return fold_balances(bucket_facts(await self._load_facts(key), day), key)
        except Exception as e:
            await self._audit_logger.log_balance_unavailable(period_key=key, reason=str(e))
            raise BalanceUnavailableError(key, str(e)) from e

    # -------------------------------------------------------------------------
    # Expenses and income
    # -------------------------------------------------------------------------

    async def add_expense(
        self,
        entry_date: date,
        description: str,
        category: str,
        amount: Decimal,
        status: EntryStatus = EntryStatus.PAID,
        account_id: Optional[UUID] = None,
        card_id: Optional[UUID] = None,
    ) -> Entry:
        entry = await self._store.save_expense(Entry(
            user_id=self._user_id,
            date=entry_date,
            description=description,
            category=category,
            amount=amount,
            status=status,
            account_id=account_id,
            card_id=card_id,
        ))
        self._invalidate_date(entry.date)
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.ENTRY_SAVED,
            entity_type="entry",
            entity_id=entry.id,
            summary=f"Expense '{entry.description}' saved",
            details={"date": entry.date.isoformat(), "amount": str(entry.amount)},
        )
        return entry

    async def update_entry_status(self, entry_id: UUID, status: EntryStatus) -> Entry:
        # Status does not take part in the fold; no invalidation needed
        entry = await self._store.update_expense_status(entry_id, status)
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.ENTRY_STATUS_UPDATED,
            entity_type="entry",
            entity_id=entry_id,
            summary=f"Entry marked {status.value}",
        )
        return entry

    async def delete_entry(self, entry_id: UUID) -> bool:
        deleted = await self._store.delete_expense(entry_id)
        if deleted:
            # The entry's date is gone with it
            self._reset_cache()
            await self._audit_logger.log_fact_saved(
                event_type=AuditEventType.ENTRY_DELETED,
                entity_type="entry",
                entity_id=entry_id,
                summary="Entry deleted",
            )
        return deleted

    async def save_salary(
        self,
        month: int,
        year: int,
        amount: Decimal,
        day_of_receipt: int = 5,
        auto_repeat: bool = True,
    ) -> SalaryRecord:
        salary = await self._store.save_salary(SalaryRecord(
            user_id=self._user_id,
            month=month,
            year=year,
            amount=amount,
            day_of_receipt=day_of_receipt,
            auto_repeat=auto_repeat,
        ))
        self._invalidate(salary_period_key(month, year))
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.SALARY_SAVED,
            entity_type="salary",
            entity_id=salary.id,
            summary=f"Salary for {salary.month_key} saved",
            details={"amount": str(amount), "auto_repeat": auto_repeat},
        )
        return salary

    async def add_extra_income(
        self,
        income_date: date,
        description: str,
        amount: Decimal,
        category: str = "Outros",
    ) -> ExtraIncome:
        income = await self._store.save_extra_income(ExtraIncome(
            user_id=self._user_id,
            date=income_date,
            description=description,
            category=category,
            amount=amount,
        ))
        self._invalidate_date(income.date)
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.EXTRA_INCOME_SAVED,
            entity_type="income",
            entity_id=income.id,
            summary=f"Income '{description}' saved",
            details={"date": income_date.isoformat(), "amount": str(amount)},
        )
        return income

    async def save_budget(self, budget: Budget) -> Budget:
        saved = await self._store.save_budget(budget.model_copy(update={"user_id": self._user_id}))
        if self._count_budget_as_income:
            self._invalidate(saved.month_key)
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.BUDGET_SAVED,
            entity_type="budget",
            entity_id=None,
            summary=f"Budget for {saved.month_key} saved",
            details={"total_limit": str(saved.total_limit)},
        )
        return saved

    # -------------------------------------------------------------------------
    # Cards and invoices
    # -------------------------------------------------------------------------

    async def save_card(self, card: CreditCard) -> CreditCard:
        return await self._store.save_card(card.model_copy(update={"user_id": self._user_id}))

    async def save_invoice(self, invoice: CardInvoice) -> CardInvoice:
        saved = await self._store.save_invoice(invoice.model_copy(update={"user_id": self._user_id}))
        self._invalidate_invoice(saved.month)
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.INVOICE_SAVED,
            entity_type="invoice",
            entity_id=saved.id,
            summary=f"Invoice {saved.month} saved",
            details={"total": str(saved.total), "is_paid": saved.is_paid},
        )
        return saved

    async def add_installment_purchase(
        self,
        card_id: UUID,
        description: str,
        category: str,
        total: Decimal,
        count: int,
        purchase_date: date,
        first_month: Optional[str] = None,
    ) -> list[CardInvoice]:
        """
        Spread a card purchase over `count` consecutive invoices.

        Raises:
            InvalidInputError: For a non-positive total or count, or a description
                too long to carry the installment label
            DataIntegrityError: If the card does not exist
        """
        first_month = first_month or period_key(purchase_date)
        plan = plan_installments(description, category, total, count, purchase_date, first_month)

        cards = await self._store.list_cards(self._user_id)
        if card_id not in {c.id for c in cards}:
            raise DataIntegrityError(f"Unknown card: {card_id}")

        invoices = {
            i.month: i for i in await self._store.list_invoices(self._user_id)
            if i.card_id == card_id
        }
        saved = []
        for month_key, item in plan:
            invoice = invoices.get(month_key) or CardInvoice(
                user_id=self._user_id,
                card_id=card_id,
                month=month_key,
            )
            invoice.items.append(item)
            saved.append(await self._store.save_invoice(invoice))

        self._invalidate_invoice(first_month)
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.INSTALLMENTS_PLANNED,
            entity_type="card",
            entity_id=card_id,
            summary=f"'{description}' split into {count} installment(s)",
            details={
                "total": str(total),
                "months": [month for month, _ in plan],
                "group_id": str(plan[0][1].installment_group_id or ""),
            },
        )
        return saved

    # -------------------------------------------------------------------------
    # Recurring templates
    # -------------------------------------------------------------------------

    async def create_recurring_template(
        self,
        description: str,
        category: str,
        amount: Decimal,
        day_of_month: int,
    ) -> RecurringTemplate:
        template = await self._store.save_recurring_template(RecurringTemplate(
            user_id=self._user_id,
            description=description,
            category=category,
            amount=amount,
            day_of_month=day_of_month,
        ))
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.TEMPLATE_SAVED,
            entity_type="template",
            entity_id=template.id,
            summary=f"Recurring '{description}' created",
            details={"amount": str(amount), "day_of_month": day_of_month},
        )
        return template

    async def list_recurring_templates(self) -> list[RecurringTemplate]:
        return await self._store.list_recurring_templates(self._user_id)

    async def set_template_active(self, template_id: UUID, active: bool) -> RecurringTemplate:
        """
        Archive or restore a template.

        Restoring never backfills periods skipped while it was inactive.
        """
        template = await self._store.set_template_active(template_id, active)
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.TEMPLATE_TOGGLED,
            entity_type="template",
            entity_id=template_id,
            summary=f"Recurring '{template.description}' {'activated' if active else 'archived'}",
        )
        return template

    async def delete_recurring_template(self, template_id: UUID) -> bool:
        """Remove a template. Entries it already produced are kept."""
        deleted = await self._store.delete_recurring_template(template_id)
        if deleted:
            await self._audit_logger.log_fact_saved(
                event_type=AuditEventType.TEMPLATE_DELETED,
                entity_type="template",
                entity_id=template_id,
                summary="Recurring template deleted",
            )
        return deleted

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        name: str,
        account_type: AccountType = AccountType.CHECKING,
        initial_balance: Decimal = Decimal("0"),
    ) -> FinancialAccount:
        account = await self._store.save_account(FinancialAccount(
            user_id=self._user_id,
            name=name,
            type=account_type,
            initial_balance=initial_balance,
        ))
        await self._audit_logger.log_fact_saved(
            event_type=AuditEventType.ACCOUNT_SAVED,
            entity_type="account",
            entity_id=account.id,
            summary=f"Account '{name}' created",
            details={"initial_balance": str(initial_balance)},
        )
        return account

    async def _require_accounts(self, *account_ids: UUID) -> None:
        known = {a.id for a in await self._store.list_accounts(self._user_id)}
        missing = [str(i) for i in account_ids if i not in known]
        if missing:
            raise DataIntegrityError(
                f"Unknown account(s): {', '.join(missing)}",
                issues=[{"field": "account_id", "message": f"Account {m} does not exist"} for m in missing],
            )

    async def transfer(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        transfer_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> AccountTransfer:
        """
        Record a transfer between two accounts.

        Raises:
            InvalidInputError: For a non-positive amount or a self-transfer
            DataIntegrityError: If either account does not exist
        """
        transfer = make_transfer(
            self._user_id,
            from_account_id,
            to_account_id,
            amount,
            transfer_date or date.today(),
            description,
        )
        await self._require_accounts(from_account_id, to_account_id)
        saved = await self._store.save_transfer(transfer)
        await self._audit_logger.log(AuditEventBuilder.transfer_recorded(
            transfer_id=saved.id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=saved.amount,
        ))
        return saved

    async def adjust(
        self,
        account_id: UUID,
        amount: Decimal,
        reason: AdjustmentReason = AdjustmentReason.MANUAL,
        adjustment_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> AccountAdjustment:
        """
        Record a signed adjustment. No overdraft check is made.

        Raises:
            InvalidInputError: For a zero amount
            DataIntegrityError: If the account does not exist
        """
        adjustment = make_adjustment(
            self._user_id,
            account_id,
            amount,
            reason,
            adjustment_date,
            description,
        )
        await self._require_accounts(account_id)
        saved = await self._store.save_adjustment(adjustment)
        await self._audit_logger.log(AuditEventBuilder.adjustment_recorded(
            adjustment_id=saved.id,
            account_id=account_id,
            amount=saved.amount,
            reason=saved.reason.value,
        ))
        return saved

    async def get_account_balance(self, account_id: UUID) -> Decimal:
        """
        Raises:
            NotFoundError: If the account does not exist
            DataIntegrityError: If stored adjustments/transfers are dangling
        """
        accounts = await self._store.list_accounts(self._user_id)
        if account_id not in {a.id for a in accounts}:
            raise NotFoundError(f"Account not found: {account_id}")
        balances = account_balances(
            accounts,
            await self._store.list_adjustments(self._user_id),
            await self._store.list_transfers(self._user_id),
        )
        return balances[account_id]

    async def list_accounts(self) -> list[FinancialAccount]:
        return await self._store.list_accounts(self._user_id)

    async def get_account_balances(self) -> dict[UUID, Decimal]:
        return account_balances(
            await self._store.list_accounts(self._user_id),
            await self._store.list_adjustments(self._user_id),
            await self._store.list_transfers(self._user_id),
        )

    async def get_total_balance(self, active_only: bool = False) -> Decimal:
        return total_balance(
            await self._store.list_accounts(self._user_id),
            await self._store.list_adjustments(self._user_id),
            await self._store.list_transfers(self._user_id),
            active_only=active_only,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_alerts(
        self,
        today: Optional[date] = None,
        start_day: Optional[int] = None,
    ) -> AlertSummary:
        """Upcoming/overdue entries, balance risk and card alerts for today's period."""
        today = today or date.today()
        day = self._start_day(start_day)

        entries = await self.list_period_entries(today, day, today=today)
        groups = upcoming_alerts(entries, today, self._alert_days_before)
        balance = await self.get_period_balance(today, day)

        return AlertSummary(
            period_key=balance.period_key,
            groups=groups,
            balance_risk=negative_balance_risk(balance.balance, groups),
            invoice_alerts=invoice_alerts(
                await self._store.list_cards(self._user_id),
                await self._store.list_invoices(self._user_id),
                reference=today,
                today=today,
                closing_days=self._invoice_closing_alert_days,
                due_days=self._invoice_due_alert_days,
            ),
        )

    async def get_budget_usage(self, month: int, year: int) -> Optional[BudgetUsage]:
        """Spending against the budget of a calendar month, or None without a budget."""
        budget = await self._store.get_budget(self._user_id, month, year)
        if budget is None:
            return None
        first = date(year, month, 1)
        entries = await self._store.list_expenses(
            self._user_id,
            date_from=first,
            date_to=first + relativedelta(months=1),
        )
        return budget_usage(budget, entries, self._near_budget_ratio)

    async def validate_facts(self) -> tuple[ValidationResult, str]:
        """
        Check every stored fact; errors are audited.

        Returns:
            (validation_result, user_message)
        """
        result = self._validator.validate(
            accounts=await self._store.list_accounts(self._user_id),
            cards=await self._store.list_cards(self._user_id),
            entries=await self._store.list_expenses(self._user_id),
            adjustments=await self._store.list_adjustments(self._user_id),
            transfers=await self._store.list_transfers(self._user_id),
            invoices=await self._store.list_invoices(self._user_id),
            records=await self._store.list_user_materialization_records(self._user_id),
            templates=await self._store.list_recurring_templates(self._user_id),
        )
        if not result.is_valid:
            await self._audit_logger.log(AuditEventBuilder.data_integrity_error(
                error_message=f"{len(result.errors)} integrity error(s)",
                issues=[i.model_dump(mode="json") for i in result.errors],
            ))
        return result, self._validator.get_user_friendly_summary(result)


def create_app_components(
    storage_backend: Optional[str] = None,
) -> LedgerService:
    """
    Factory function to create the ledger service from settings.

    Args:
        storage_backend: "memory" or "google_sheets"; defaults to
            LEDGER_STORAGE_BACKEND
    """
    settings = get_settings()
    ledger_settings = settings.ledger
    backend = storage_backend or ledger_settings.storage_backend

    if backend == "google_sheets":
        sheets_client = GoogleSheetsClient()
        store = GoogleSheetsLedgerStore(sheets_client)
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    else:
        store = InMemoryLedgerStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    preferences = MonthStartPreference(
        ledger_settings.preferences_path,
        default_day=ledger_settings.default_month_start_day,
    )

    return LedgerService(
        store=store,
        preferences=preferences,
        user_id=ledger_settings.user_id,
        audit_logger=audit_logger,
        cache=PeriodBalanceCache() if ledger_settings.enable_balance_cache else None,
        count_budget_as_income=ledger_settings.count_budget_as_income,
        alert_days_before=ledger_settings.alert_days_before,
        invoice_closing_alert_days=ledger_settings.invoice_closing_alert_days,
        invoice_due_alert_days=ledger_settings.invoice_due_alert_days,
        near_budget_ratio=ledger_settings.near_budget_ratio,
    )
