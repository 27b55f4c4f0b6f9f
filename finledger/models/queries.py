"""
Query and Validation Result Models

Read-only views computed from ledger facts. None of these are stored.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from finledger.models.ledger import Entry


class Urgency(str, Enum):
    """How close a planned entry is to its due date."""
    UPCOMING = "upcoming"
    URGENT = "urgent"      # due tomorrow
    TODAY = "today"
    OVERDUE = "overdue"


class PlannedAlert(BaseModel):
    entry: Entry
    days_until: int
    urgency: Urgency


class AlertGroup(BaseModel):
    """Alerts due on the same date."""

    date: date
    alerts: list[PlannedAlert] = Field(default_factory=list)
    total: Decimal = Decimal("0")


class NegativeBalanceRisk(BaseModel):
    """
    Projected shortfall if every alerted entry is paid from the current balance.

    risk_date is the first alert date on which the running balance goes
    below zero.
    """

    shortfall: Decimal
    risk_date: date


class InvoiceAlertKind(str, Enum):
    CLOSING = "closing"
    DUE = "due"


class InvoiceAlert(BaseModel):
    card_id: UUID
    card_name: str
    kind: InvoiceAlertKind
    days_left: int
    severity: str = Field(..., pattern="^(info|warning|error)$")
    message: str


class CategoryUsage(BaseModel):
    category: str
    spent: Decimal
    limit: Optional[Decimal] = None
    ratio: Optional[float] = None
    over_budget: bool = False
    near_budget: bool = False


class BudgetUsage(BaseModel):
    """Spending against the limits of one month's budget."""

    month_key: str
    spent: Decimal
    total_limit: Decimal
    ratio: Optional[float] = None
    over_budget: bool = False
    near_budget: bool = False
    categories: list[CategoryUsage] = Field(default_factory=list)


class ValidationIssue(BaseModel):
    """A single problem found in stored ledger facts."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g. 'dangling_reference', 'duplicate', 'inconsistent')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    entity_id: Optional[UUID] = None


class ValidationResult(BaseModel):
    """
    Result of validating a set of facts.

    Errors make the facts unusable for a balance; warnings do not.
    """

    validated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def is_valid(self) -> bool:
        return not self.errors


class AlertSummary(BaseModel):
    """Everything the dashboard warns about for the current period."""

    period_key: str
    groups: list[AlertGroup] = Field(default_factory=list)
    balance_risk: Optional[NegativeBalanceRisk] = None
    invoice_alerts: list[InvoiceAlert] = Field(default_factory=list)
