"""
In-Memory Storage Implementation

Used by the test-suite and when no remote backend is configured.
Everything lives in dicts for the lifetime of the process.

Returned models are deep copies so callers can never mutate stored state
behind the store's back.
"""

import asyncio
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from finledger.models.accounts import (
    AccountAdjustment,
    AccountTransfer,
    FinancialAccount,
)
from finledger.models.audit import AuditEvent
from finledger.models.ledger import (
    Budget,
    CardInvoice,
    CreditCard,
    Entry,
    EntryStatus,
    ExtraIncome,
    MaterializationRecord,
    RecurringTemplate,
    SalaryRecord,
)
from finledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStoreInterface,
    NotFoundError,
)


def _copy(model):
    return model.model_copy(deep=True)


class InMemoryLedgerStore(LedgerStoreInterface):
    """Process-local ledger store."""

    def __init__(self):
        self._expenses: dict[UUID, Entry] = {}
        self._templates: dict[UUID, RecurringTemplate] = {}
        self._records: dict[tuple[UUID, str], MaterializationRecord] = {}
        self._salaries: dict[tuple[str, int, int], SalaryRecord] = {}
        self._extra_incomes: dict[UUID, ExtraIncome] = {}
        self._cards: dict[UUID, CreditCard] = {}
        self._invoices: dict[tuple[UUID, str], CardInvoice] = {}
        self._budgets: dict[tuple[str, int, int], Budget] = {}
        self._accounts: dict[UUID, FinancialAccount] = {}
        self._adjustments: dict[UUID, AccountAdjustment] = {}
        self._transfers: dict[UUID, AccountTransfer] = {}
        self._materialize_lock = asyncio.Lock()

    # Expenses

    async def list_expenses(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Entry]:
        entries = [
            _copy(e) for e in self._expenses.values()
            if e.user_id == user_id
            and (date_from is None or e.date >= date_from)
            and (date_to is None or e.date < date_to)
        ]
        entries.sort(key=lambda e: (e.date, e.created_at))
        return entries

    async def save_expense(self, entry: Entry) -> Entry:
        self._expenses[entry.id] = _copy(entry)
        return _copy(entry)

    async def update_expense_status(self, entry_id: UUID, status: EntryStatus) -> Entry:
        entry = self._expenses.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        entry.status = status
        return _copy(entry)

    async def delete_expense(self, entry_id: UUID) -> bool:
        return self._expenses.pop(entry_id, None) is not None

    # Recurring templates and materialization

    async def list_recurring_templates(self, user_id: str) -> list[RecurringTemplate]:
        templates = [_copy(t) for t in self._templates.values() if t.user_id == user_id]
        templates.sort(key=lambda t: (t.day_of_month, t.created_at))
        return templates

    async def save_recurring_template(self, template: RecurringTemplate) -> RecurringTemplate:
        self._templates[template.id] = _copy(template)
        return _copy(template)

    async def set_template_active(self, template_id: UUID, active: bool) -> RecurringTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise NotFoundError(f"Recurring template not found: {template_id}")
        template.active = active
        return _copy(template)

    async def delete_recurring_template(self, template_id: UUID) -> bool:
        return self._templates.pop(template_id, None) is not None

    async def list_materialization_records(
        self,
        template_ids: Iterable[UUID],
        period_key: str,
    ) -> list[MaterializationRecord]:
        wanted = set(template_ids)
        return [
            _copy(r) for (template_id, key), r in self._records.items()
            if key == period_key and template_id in wanted
        ]

    async def list_user_materialization_records(self, user_id: str) -> list[MaterializationRecord]:
        return [_copy(r) for r in self._records.values() if r.user_id == user_id]

    async def insert_materialization_record(self, record: MaterializationRecord) -> bool:
        slot = (record.template_id, record.period_key)
        if slot in self._records:
            raise DuplicateError(
                f"Template {record.template_id} already materialized for {record.period_key}"
            )
        self._records[slot] = _copy(record)
        return True

    async def materialize_if_absent(
        self,
        entry: Entry,
        record: MaterializationRecord,
    ) -> bool:
        async with self._materialize_lock:
            slot = (record.template_id, record.period_key)
            if slot in self._records:
                return False
            self._expenses[entry.id] = _copy(entry)
            self._records[slot] = _copy(record)
            return True

    # Income

    async def list_salaries(self, user_id: str) -> list[SalaryRecord]:
        salaries = [_copy(s) for (uid, _, _), s in self._salaries.items() if uid == user_id]
        salaries.sort(key=lambda s: (s.year, s.month))
        return salaries

    async def save_salary(self, salary: SalaryRecord) -> SalaryRecord:
        self._salaries[(salary.user_id, salary.month, salary.year)] = _copy(salary)
        return _copy(salary)

    async def list_extra_incomes(self, user_id: str) -> list[ExtraIncome]:
        incomes = [_copy(i) for i in self._extra_incomes.values() if i.user_id == user_id]
        incomes.sort(key=lambda i: i.date)
        return incomes

    async def save_extra_income(self, income: ExtraIncome) -> ExtraIncome:
        self._extra_incomes[income.id] = _copy(income)
        return _copy(income)

    # Cards and invoices

    async def list_cards(self, user_id: str) -> list[CreditCard]:
        return [_copy(c) for c in self._cards.values() if c.user_id == user_id]

    async def save_card(self, card: CreditCard) -> CreditCard:
        self._cards[card.id] = _copy(card)
        return _copy(card)

    async def list_invoices(self, user_id: str) -> list[CardInvoice]:
        invoices = [_copy(i) for i in self._invoices.values() if i.user_id == user_id]
        invoices.sort(key=lambda i: i.month)
        return invoices

    async def save_invoice(self, invoice: CardInvoice) -> CardInvoice:
        self._invoices[(invoice.card_id, invoice.month)] = _copy(invoice)
        return _copy(invoice)

    # Budgets

    async def list_budgets(self, user_id: str) -> list[Budget]:
        return [_copy(b) for (uid, _, _), b in self._budgets.items() if uid == user_id]

    async def get_budget(self, user_id: str, month: int, year: int) -> Optional[Budget]:
        budget = self._budgets.get((user_id, month, year))
        return _copy(budget) if budget else None

    async def save_budget(self, budget: Budget) -> Budget:
        self._budgets[(budget.user_id, budget.month, budget.year)] = _copy(budget)
        return _copy(budget)

    # Accounts

    async def list_accounts(self, user_id: str) -> list[FinancialAccount]:
        return [_copy(a) for a in self._accounts.values() if a.user_id == user_id]

    async def save_account(self, account: FinancialAccount) -> FinancialAccount:
        self._accounts[account.id] = _copy(account)
        return _copy(account)

    async def list_adjustments(self, user_id: str) -> list[AccountAdjustment]:
        return [_copy(a) for a in self._adjustments.values() if a.user_id == user_id]

    async def save_adjustment(self, adjustment: AccountAdjustment) -> AccountAdjustment:
        self._adjustments[adjustment.id] = _copy(adjustment)
        return _copy(adjustment)

    async def list_transfers(self, user_id: str) -> list[AccountTransfer]:
        return [_copy(t) for t in self._transfers.values() if t.user_id == user_id]

    async def save_transfer(self, transfer: AccountTransfer) -> AccountTransfer:
        self._transfers[transfer.id] = _copy(transfer)
        return _copy(transfer)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
