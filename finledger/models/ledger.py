"""
Core Data Models for the Period Ledger

These models define the strict schemas for every fact the ledger folds.
They are designed to:
1. Reject malformed dates and month keys at the boundary
2. Keep money as Decimal end to end
3. Be serializable for storage and audit logging

DESIGN DECISION: Nothing here stores a period assignment. A fact only
carries its raw date (or calendar month); the period it belongs to is
recomputed from the configured start-day every time.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


MONTH_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
DESCRIPTION_MAX_LENGTH = 200


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class EntryStatus(str, Enum):
    """
    Settlement status of an expense entry.

    OVERDUE is normally derived from PLANNED + a past date, but the store
    may also hold it explicitly.
    """
    PAID = "paid"
    PLANNED = "planned"
    OVERDUE = "overdue"


# =============================================================================
# PERIODS
# =============================================================================

class Period(BaseModel):
    """
    A financial period: the half-open range [start_date, end_date_exclusive).

    Never stored. Always derived from a date and a start-day.
    """
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date_exclusive: date
    key: str = Field(..., pattern=MONTH_KEY_PATTERN)

    def contains(self, value: date) -> bool:
        return self.start_date <= value < self.end_date_exclusive


# =============================================================================
# RECURRING OBLIGATIONS
# =============================================================================

class RecurringTemplate(BaseModel):
    """
    A recurring bill (rent, internet, subscriptions...).

    Description, amount, category and day are fixed after creation.
    Templates are archived with active=False rather than erased, so the
    entries they already produced keep their history.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    day_of_month: int = Field(
        ...,
        ge=1,
        le=31,
        description="Due day; clamped to the month length when materialized"
    )
    active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)


class MaterializationRecord(BaseModel):
    """
    Proof that a template already produced its entry for a period.

    CRITICAL: at most one record exists per (template_id, period_key).
    The store enforces this with an atomic insert-if-absent.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    template_id: UUID
    period_key: str = Field(..., pattern=MONTH_KEY_PATTERN)
    entry_id: UUID
    created_at: datetime = Field(default_factory=_utcnow)


# =============================================================================
# EXPENSES AND INCOME
# =============================================================================

class Entry(BaseModel):
    """An expense entry. Recurring entries look exactly like manual ones."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    date: date
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    status: EntryStatus = EntryStatus.PAID
    account_id: Optional[UUID] = None
    card_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=_utcnow)


class EntryView(Entry):
    """An entry as shown for one period, with its derived recurring flag."""

    is_recurring: bool = False


class SalaryRecord(BaseModel):
    """
    Salary for one calendar month.

    With auto_repeat the same amount is credited to every following month
    until another salary record is saved.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    day_of_receipt: int = Field(default=5, ge=1, le=31)
    auto_repeat: bool = True
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def month_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class ExtraIncome(BaseModel):
    """One-off income (freelance, refunds, gifts)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    date: date
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    category: str = Field(default="Outros", max_length=100)
    amount: Decimal = Field(..., ge=0, decimal_places=2)


class Budget(BaseModel):
    """Spending limits for one calendar month."""

    user_id: str = Field(..., min_length=1)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    total_limit: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    category_limits: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("category_limits")
    @classmethod
    def validate_limits(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        for category, limit in v.items():
            if limit < 0:
                raise ValueError(f"Negative limit for category {category!r}")
        return v

    @property
    def month_key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


# =============================================================================
# CREDIT CARDS
# =============================================================================

class CreditCard(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    limit: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    closing_day: int = Field(default=1, ge=1, le=31)
    due_day: int = Field(default=10, ge=1, le=31)


class InvoiceItem(BaseModel):
    """
    A purchase on a card invoice.

    Installment purchases share an installment_group_id across the
    invoices of consecutive months.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    date: date
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    installment_group_id: Optional[UUID] = None
    installment_current: Optional[int] = Field(default=None, ge=1)
    installment_total: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def validate_installment(self) -> "InvoiceItem":
        if self.installment_current and self.installment_total:
            if self.installment_current > self.installment_total:
                raise ValueError("Installment number exceeds installment total")
        return self


class CardInvoice(BaseModel):
    """
    A card invoice for one calendar month.

    Invoice cycles are calendar-month based; the ledger rebuckets the
    month into a financial period when folding.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    card_id: UUID
    month: str = Field(..., pattern=MONTH_KEY_PATTERN)
    items: list[InvoiceItem] = Field(default_factory=list)
    is_paid: bool = False

    @property
    def total(self) -> Decimal:
        return sum((item.amount for item in self.items), Decimal("0"))


# =============================================================================
# FACTS (tagged variants consumed by the balance fold)
# =============================================================================

class ExpenseFact(BaseModel):
    kind: Literal["expense"] = "expense"
    date: date
    amount: Decimal


class SalaryCredit(BaseModel):
    kind: Literal["salary"] = "salary"
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    amount: Decimal


class ExtraIncomeFact(BaseModel):
    kind: Literal["extra_income"] = "extra_income"
    date: date
    amount: Decimal


class InvoiceSettlement(BaseModel):
    kind: Literal["invoice"] = "invoice"
    month: str = Field(..., pattern=MONTH_KEY_PATTERN)
    amount: Decimal
    is_paid: bool


class BudgetIncome(BaseModel):
    """Legacy term: a monthly budget total counted as income."""

    kind: Literal["budget"] = "budget"
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    amount: Decimal


Fact = Annotated[
    Union[ExpenseFact, SalaryCredit, ExtraIncomeFact, InvoiceSettlement, BudgetIncome],
    Field(discriminator="kind"),
]


# =============================================================================
# BALANCE SNAPSHOT
# =============================================================================

class PeriodBalance(BaseModel):
    """
    Folded balance for one period.

    balance = carry_over + income - expenses - paid_invoices
    """
    model_config = ConfigDict(frozen=True)

    period_key: str = Field(..., pattern=MONTH_KEY_PATTERN)
    carry_over: Decimal = Decimal("0")
    income: Decimal = Decimal("0")
    expenses: Decimal = Decimal("0")
    paid_invoices: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")

    @model_validator(mode="after")
    def validate_balance(self) -> "PeriodBalance":
        expected = self.carry_over + self.income - self.expenses - self.paid_invoices
        if expected != self.balance:
            raise ValueError(
                f"Balance {self.balance} does not match its components ({expected})"
            )
        return self

    @classmethod
    def empty(cls, period_key: str) -> "PeriodBalance":
        return cls(period_key=period_key)
