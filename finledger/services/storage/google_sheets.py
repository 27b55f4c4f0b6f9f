"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the remote backend because:
1. Users can inspect their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for one household)
- No transactions (materialization uses claim-then-write ordering)
- Limited query capabilities (we filter in Python)

Each ledger table is one worksheet. Row 1 holds the column names, which
are the model's field names; nested fields (invoice items, category
limits) are stored as JSON.
"""

import json
from datetime import date
from typing import Any, Callable, Iterable, Optional, Type, TypeVar
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from finledger.config import get_settings
from finledger.errors import DataIntegrityError
from finledger.models.accounts import (
    AccountAdjustment,
    AccountTransfer,
    FinancialAccount,
)
from finledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    StorageConnectionError,
    StorageError,
)


ModelT = TypeVar("ModelT", bound=BaseModel)

# Worksheet name -> model stored in it
LEDGER_TABLES: dict[str, Type[BaseModel]] = {
    "Expenses": Entry,
    "RecurringTemplates": RecurringTemplate,
    "MaterializationRecords": MaterializationRecord,
    "Salaries": SalaryRecord,
    "ExtraIncomes": ExtraIncome,
    "Cards": CreditCard,
    "Invoices": CardInvoice,
    "Budgets": Budget,
    "Accounts": FinancialAccount,
    "Adjustments": AccountAdjustment,
    "Transfers": AccountTransfer,
}

# Fields serialized as JSON instead of plain text
JSON_FIELDS = {"items", "category_limits"}

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def columns_for(model: Type[BaseModel]) -> list[str]:
    return list(model.model_fields)


def model_to_row(model: BaseModel) -> list[str]:
    """Serialize a model into cells ordered like columns_for(type(model))."""
    data = model.model_dump(mode="json")
    row = []
    for column in columns_for(type(model)):
        value = data.get(column)
        if value is None:
            row.append("")
        elif column in JSON_FIELDS:
            row.append(json.dumps(value))
        elif isinstance(value, bool):
            row.append("true" if value else "false")
        else:
            row.append(str(value))
    return row


def row_to_model(model: Type[ModelT], columns: list[str], row: list[str]) -> ModelT:
    """
    Parse a sheet row back into a model.

    Empty cells fall back to the model defaults. A row that does not
    validate is a data-integrity problem and is reported, never skipped.
    """
    data: dict[str, Any] = {}
    for index, column in enumerate(columns):
        cell = row[index] if index < len(row) else ""
        if cell == "":
            continue
        try:
            data[column] = json.loads(cell) if column in JSON_FIELDS else cell
        except json.JSONDecodeError as e:
            raise DataIntegrityError(
                f"Malformed {model.__name__} row: {column} is not valid JSON",
                issues=[{"field": column, "message": str(e)}],
            )
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DataIntegrityError(
            f"Malformed {model.__name__} row: {e.error_count()} invalid field(s)",
            issues=[
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ],
        )


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @sheets_retry
    def connect(self) -> gspread.Client:
        """Establish connection using service account credentials."""
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        full_title = f"{self._settings.worksheet_prefix}{title}"
        try:
            sheet = spreadsheet.worksheet(full_title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=full_title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS)


class SheetTable:
    """
    One worksheet holding one model type.

    Row numbers returned by find() are 1-based sheet rows (row 1 is the header).
    """

    def __init__(self, worksheet, model: Type[BaseModel]):
        self._sheet = worksheet
        self._model = model
        self._columns = columns_for(model)

    @sheets_retry
    def _values(self) -> list[list[str]]:
        return self._sheet.get_all_values()

    def _data_rows(self) -> list[tuple[int, list[str]]]:
        values = self._values()
        if not values:
            return []
        header = values[0]
        if header[: len(self._columns)] != self._columns:
            raise DataIntegrityError(
                f"Worksheet header does not match {self._model.__name__} columns"
            )
        return [
            (index, row)
            for index, row in enumerate(values[1:], start=2)
            if row and row[0]
        ]

    def all(self) -> list:
        return [row_to_model(self._model, self._columns, row) for _, row in self._data_rows()]

    def find(self, predicate: Callable[[Any], bool]) -> list[tuple[int, Any]]:
        found = []
        for index, row in self._data_rows():
            model = row_to_model(self._model, self._columns, row)
            if predicate(model):
                found.append((index, model))
        return found

    @sheets_retry
    def append(self, model: BaseModel) -> None:
        self._sheet.append_row(model_to_row(model), value_input_option="RAW")

    @sheets_retry
    def replace(self, row_number: int, model: BaseModel) -> None:
        self._sheet.update(
            range_name=f"A{row_number}",
            values=[model_to_row(model)],
            value_input_option="RAW",
        )

    @sheets_retry
    def delete(self, row_number: int) -> None:
        self._sheet.delete_rows(row_number)

    def upsert(self, model: BaseModel, same: Callable[[Any], bool]) -> None:
        existing = self.find(same)
        if existing:
            self.replace(existing[0][0], model)
        else:
            self.append(model)


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    Gspread calls are synchronous; each call is retried with backoff,
    and anything that still fails surfaces as StorageError.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._tables: dict[str, SheetTable] = {}

    def _table(self, name: str) -> SheetTable:
        if name not in self._tables:
            model = LEDGER_TABLES[name]
            worksheet = self._client.get_worksheet(name, columns_for(model))
            self._tables[name] = SheetTable(worksheet, model)
        return self._tables[name]

    def _run(self, operation: str, func: Callable[[], Any]) -> Any:
        try:
            return func()
        except (StorageError, DataIntegrityError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to {operation}: {e}")

    # Expenses

    async def list_expenses(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Entry]:
        entries = self._run("list expenses", lambda: [
            e for _, e in self._table("Expenses").find(
                lambda e: e.user_id == user_id
                and (date_from is None or e.date >= date_from)
                and (date_to is None or e.date < date_to)
            )
        ])
        entries.sort(key=lambda e: (e.date, e.created_at))
        return entries

    async def save_expense(self, entry: Entry) -> Entry:
        self._run("save expense", lambda: self._table("Expenses").upsert(
            entry, lambda e: e.id == entry.id
        ))
        return entry

    async def update_expense_status(self, entry_id: UUID, status: EntryStatus) -> Entry:
        table = self._table("Expenses")
        found = self._run("find expense", lambda: table.find(lambda e: e.id == entry_id))
        if not found:
            raise NotFoundError(f"Entry not found: {entry_id}")
        row_number, entry = found[0]
        entry.status = status
        self._run("update expense", lambda: table.replace(row_number, entry))
        return entry

    async def delete_expense(self, entry_id: UUID) -> bool:
        table = self._table("Expenses")
        found = self._run("find expense", lambda: table.find(lambda e: e.id == entry_id))
        if not found:
            return False
        self._run("delete expense", lambda: table.delete(found[0][0]))
        return True

    # Recurring templates and materialization

    async def list_recurring_templates(self, user_id: str) -> list[RecurringTemplate]:
        templates = self._run("list templates", lambda: [
            t for _, t in self._table("RecurringTemplates").find(lambda t: t.user_id == user_id)
        ])
        templates.sort(key=lambda t: (t.day_of_month, t.created_at))
        return templates

    async def save_recurring_template(self, template: RecurringTemplate) -> RecurringTemplate:
        self._run("save template", lambda: self._table("RecurringTemplates").upsert(
            template, lambda t: t.id == template.id
        ))
        return template

    async def set_template_active(self, template_id: UUID, active: bool) -> RecurringTemplate:
        table = self._table("RecurringTemplates")
        found = self._run("find template", lambda: table.find(lambda t: t.id == template_id))
        if not found:
            raise NotFoundError(f"Recurring template not found: {template_id}")
        row_number, template = found[0]
        template.active = active
        self._run("update template", lambda: table.replace(row_number, template))
        return template

    async def delete_recurring_template(self, template_id: UUID) -> bool:
        table = self._table("RecurringTemplates")
        found = self._run("find template", lambda: table.find(lambda t: t.id == template_id))
        if not found:
            return False
        self._run("delete template", lambda: table.delete(found[0][0]))
        return True

    async def list_materialization_records(
        self,
        template_ids: Iterable[UUID],
        period_key: str,
    ) -> list[MaterializationRecord]:
        wanted = set(template_ids)
        return self._run("list materialization records", lambda: [
            r for _, r in self._table("MaterializationRecords").find(
                lambda r: r.period_key == period_key and r.template_id in wanted
            )
        ])

    async def list_user_materialization_records(self, user_id: str) -> list[MaterializationRecord]:
        return self._run("list user materialization records", lambda: [
            r for _, r in self._table("MaterializationRecords").find(lambda r: r.user_id == user_id)
        ])

    async def insert_materialization_record(self, record: MaterializationRecord) -> bool:
        existing = await self.list_materialization_records([record.template_id], record.period_key)
        if existing:
            raise DuplicateError(
                f"Template {record.template_id} already materialized for {record.period_key}"
            )
        self._run("insert materialization record",
                  lambda: self._table("MaterializationRecords").append(record))
        return True

    async def materialize_if_absent(
        self,
        entry: Entry,
        record: MaterializationRecord,
    ) -> bool:
        """
        Claim-then-write.

        1. Append the record row (the claim)
        2. Re-read: if an earlier row claims the same slot, withdraw ours
        3. Append the entry

        Any failure after the claim withdraws it, so a retry can materialize
        the slot again.
        """
        records = self._table("MaterializationRecords")

        def same_slot(r: MaterializationRecord) -> bool:
            return r.template_id == record.template_id and r.period_key == record.period_key

        if self._run("check materialization", lambda: records.find(same_slot)):
            return False

        self._run("claim materialization", lambda: records.append(record))
        try:
            claims = records.find(same_slot)
            if not claims or claims[0][1].id != record.id:
                self._withdraw_claim(records, record.id)
                return False
            self._table("Expenses").append(entry)
        except Exception as e:
            self._withdraw_claim(records, record.id)
            raise StorageError(f"Failed to write materialized entry: {e}") from e
        return True

    def _withdraw_claim(self, records: SheetTable, record_id: UUID) -> None:
        # Rows shift on delete; look the claim up again instead of reusing an index
        ours = self._run("find materialization claim",
                         lambda: records.find(lambda r: r.id == record_id))
        for row_number, _ in reversed(ours):
            self._run("withdraw materialization", lambda: records.delete(row_number))

    # Income

    async def list_salaries(self, user_id: str) -> list[SalaryRecord]:
        salaries = self._run("list salaries", lambda: [
            s for _, s in self._table("Salaries").find(lambda s: s.user_id == user_id)
        ])
        salaries.sort(key=lambda s: (s.year, s.month))
        return salaries

    async def save_salary(self, salary: SalaryRecord) -> SalaryRecord:
        self._run("save salary", lambda: self._table("Salaries").upsert(
            salary,
            lambda s: (s.user_id, s.month, s.year) == (salary.user_id, salary.month, salary.year),
        ))
        return salary

    async def list_extra_incomes(self, user_id: str) -> list[ExtraIncome]:
        incomes = self._run("list extra incomes", lambda: [
            i for _, i in self._table("ExtraIncomes").find(lambda i: i.user_id == user_id)
        ])
        incomes.sort(key=lambda i: i.date)
        return incomes

    async def save_extra_income(self, income: ExtraIncome) -> ExtraIncome:
        self._run("save extra income", lambda: self._table("ExtraIncomes").upsert(
            income, lambda i: i.id == income.id
        ))
        return income

    # Cards and invoices

    async def list_cards(self, user_id: str) -> list[CreditCard]:
        return self._run("list cards", lambda: [
            c for _, c in self._table("Cards").find(lambda c: c.user_id == user_id)
        ])

    async def save_card(self, card: CreditCard) -> CreditCard:
        self._run("save card", lambda: self._table("Cards").upsert(card, lambda c: c.id == card.id))
        return card

    async def list_invoices(self, user_id: str) -> list[CardInvoice]:
        invoices = self._run("list invoices", lambda: [
            i for _, i in self._table("Invoices").find(lambda i: i.user_id == user_id)
        ])
        invoices.sort(key=lambda i: i.month)
        return invoices

    async def save_invoice(self, invoice: CardInvoice) -> CardInvoice:
        self._run("save invoice", lambda: self._table("Invoices").upsert(
            invoice,
            lambda i: (i.card_id, i.month) == (invoice.card_id, invoice.month),
        ))
        return invoice

    # Budgets

    async def list_budgets(self, user_id: str) -> list[Budget]:
        return self._run("list budgets", lambda: [
            b for _, b in self._table("Budgets").find(lambda b: b.user_id == user_id)
        ])

    async def get_budget(self, user_id: str, month: int, year: int) -> Optional[Budget]:
        found = self._run("get budget", lambda: self._table("Budgets").find(
            lambda b: (b.user_id, b.month, b.year) == (user_id, month, year)
        ))
        return found[0][1] if found else None

    async def save_budget(self, budget: Budget) -> Budget:
        self._run("save budget", lambda: self._table("Budgets").upsert(
            budget,
            lambda b: (b.user_id, b.month, b.year) == (budget.user_id, budget.month, budget.year),
        ))
        return budget

    # Accounts

    async def list_accounts(self, user_id: str) -> list[FinancialAccount]:
        return self._run("list accounts", lambda: [
            a for _, a in self._table("Accounts").find(lambda a: a.user_id == user_id)
        ])

    async def save_account(self, account: FinancialAccount) -> FinancialAccount:
        self._run("save account", lambda: self._table("Accounts").upsert(
            account, lambda a: a.id == account.id
        ))
        return account

    async def list_adjustments(self, user_id: str) -> list[AccountAdjustment]:
        return self._run("list adjustments", lambda: [
            a for _, a in self._table("Adjustments").find(lambda a: a.user_id == user_id)
        ])

    async def save_adjustment(self, adjustment: AccountAdjustment) -> AccountAdjustment:
        self._run("save adjustment", lambda: self._table("Adjustments").append(adjustment))
        return adjustment

    async def list_transfers(self, user_id: str) -> list[AccountTransfer]:
        return self._run("list transfers", lambda: [
            t for _, t in self._table("Transfers").find(lambda t: t.user_id == user_id)
        ])

    async def save_transfer(self, transfer: AccountTransfer) -> AccountTransfer:
        self._run("save transfer", lambda: self._table("Transfers").append(transfer))
        return transfer


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=safe_get(1),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read audit events: {e}")
        return [self._row_to_event(row) for row in rows if row and row[0]]

    @sheets_retry
    async def append_event(self, event: AuditEvent) -> bool:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
