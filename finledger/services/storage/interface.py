"""
Abstract Storage Interface

DESIGN DECISION: The ledger core never talks to a backend directly.
This allows us to:
1. Keep Google Sheets (or a relational store) swappable
2. Use in-memory storage for testing
3. Keep balance logic pure: the engine only sees already-fetched facts

The interface is intentionally simple - just the reads and writes the
ledger needs. Retry policy belongs to the implementations, not the engine.
"""

from abc import ABC, abstractmethod
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


class LedgerStoreInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any backend (Google Sheets, PostgreSQL, in-memory...) must implement
    these methods. All list methods are scoped to one user.
    """

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_expenses(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Entry]:
        """
        List expenses, optionally restricted to a date range.

        Args:
            user_id: Owner of the expenses
            date_from: Include entries on or after this date
            date_to: Include entries strictly before this date

        Returns:
            Entries sorted by date ascending
        """
        pass

    @abstractmethod
    async def save_expense(self, entry: Entry) -> Entry:
        """Insert or replace an expense entry."""
        pass

    @abstractmethod
    async def update_expense_status(self, entry_id: UUID, status: EntryStatus) -> Entry:
        """
        Change the settlement status of an entry.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_expense(self, entry_id: UUID) -> bool:
        """Delete an entry. Returns False if it did not exist."""
        pass

    # -------------------------------------------------------------------------
    # Recurring templates and materialization
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_recurring_templates(self, user_id: str) -> list[RecurringTemplate]:
        pass

    @abstractmethod
    async def save_recurring_template(self, template: RecurringTemplate) -> RecurringTemplate:
        pass

    @abstractmethod
    async def set_template_active(self, template_id: UUID, active: bool) -> RecurringTemplate:
        """
        Toggle a template.

        Raises:
            NotFoundError: If the template doesn't exist
        """
        pass

    @abstractmethod
    async def delete_recurring_template(self, template_id: UUID) -> bool:
        """Remove a template. Entries it already produced are kept."""
        pass

    @abstractmethod
    async def list_materialization_records(
        self,
        template_ids: Iterable[UUID],
        period_key: str,
    ) -> list[MaterializationRecord]:
        """Records for one period, restricted to the given templates."""
        pass

    @abstractmethod
    async def list_user_materialization_records(self, user_id: str) -> list[MaterializationRecord]:
        """Every record a user's templates have produced, across all periods."""
        pass

    @abstractmethod
    async def insert_materialization_record(self, record: MaterializationRecord) -> bool:
        """
        Insert a record.

        Raises:
            DuplicateError: If (template_id, period_key) is already recorded
        """
        pass

    @abstractmethod
    async def materialize_if_absent(
        self,
        entry: Entry,
        record: MaterializationRecord,
    ) -> bool:
        """
        Atomically write an entry and its materialization record.

        CRITICAL: This is a conditional insert keyed by
        (record.template_id, record.period_key). If a record already
        exists nothing is written and False is returned. Either both
        the entry and the record are persisted, or neither is.
        """
        pass

    # -------------------------------------------------------------------------
    # Income
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_salaries(self, user_id: str) -> list[SalaryRecord]:
        pass

    @abstractmethod
    async def save_salary(self, salary: SalaryRecord) -> SalaryRecord:
        """Upsert by (user_id, month, year)."""
        pass

    @abstractmethod
    async def list_extra_incomes(self, user_id: str) -> list[ExtraIncome]:
        pass

    @abstractmethod
    async def save_extra_income(self, income: ExtraIncome) -> ExtraIncome:
        pass

    # -------------------------------------------------------------------------
    # Cards and invoices
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_cards(self, user_id: str) -> list[CreditCard]:
        pass

    @abstractmethod
    async def save_card(self, card: CreditCard) -> CreditCard:
        pass

    @abstractmethod
    async def list_invoices(self, user_id: str) -> list[CardInvoice]:
        pass

    @abstractmethod
    async def save_invoice(self, invoice: CardInvoice) -> CardInvoice:
        """Upsert by (card_id, month)."""
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_budgets(self, user_id: str) -> list[Budget]:
        pass

    @abstractmethod
    async def get_budget(self, user_id: str, month: int, year: int) -> Optional[Budget]:
        pass

    @abstractmethod
    async def save_budget(self, budget: Budget) -> Budget:
        """Upsert by (user_id, month, year)."""
        pass

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_accounts(self, user_id: str) -> list[FinancialAccount]:
        pass

    @abstractmethod
    async def save_account(self, account: FinancialAccount) -> FinancialAccount:
        pass

    @abstractmethod
    async def list_adjustments(self, user_id: str) -> list[AccountAdjustment]:
        pass

    @abstractmethod
    async def save_adjustment(self, adjustment: AccountAdjustment) -> AccountAdjustment:
        pass

    @abstractmethod
    async def list_transfers(self, user_id: str) -> list[AccountTransfer]:
        pass

    @abstractmethod
    async def save_transfer(self, transfer: AccountTransfer) -> AccountTransfer:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """All events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
