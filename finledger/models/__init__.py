"""
Data Models Package

This package contains all Pydantic models used by the period ledger.
Every fact that reaches the balance fold must conform to these schemas.
"""

from finledger.models.ledger import (
    Budget,
    BudgetIncome,
    CardInvoice,
    CreditCard,
    Entry,
    EntryStatus,
    EntryView,
    ExpenseFact,
    ExtraIncome,
    ExtraIncomeFact,
    Fact,
    InvoiceItem,
    InvoiceSettlement,
    MaterializationRecord,
    Period,
    PeriodBalance,
    RecurringTemplate,
    SalaryCredit,
    SalaryRecord,
)
from finledger.models.accounts import (
    AccountAdjustment,
    AccountTransfer,
    AccountType,
    AdjustmentReason,
    FinancialAccount,
)
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finledger.models.queries import (
    AlertGroup,
    AlertSummary,
    BudgetUsage,
    CategoryUsage,
    InvoiceAlert,
    InvoiceAlertKind,
    NegativeBalanceRisk,
    PlannedAlert,
    Urgency,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Ledger models
    "Budget",
    "BudgetIncome",
    "CardInvoice",
    "CreditCard",
    "Entry",
    "EntryStatus",
    "EntryView",
    "ExpenseFact",
    "ExtraIncome",
    "ExtraIncomeFact",
    "Fact",
    "InvoiceItem",
    "InvoiceSettlement",
    "MaterializationRecord",
    "Period",
    "PeriodBalance",
    "RecurringTemplate",
    "SalaryCredit",
    "SalaryRecord",
    # Account models
    "AccountAdjustment",
    "AccountTransfer",
    "AccountType",
    "AdjustmentReason",
    "FinancialAccount",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Query and validation results
    "AlertGroup",
    "AlertSummary",
    "BudgetUsage",
    "CategoryUsage",
    "InvoiceAlert",
    "InvoiceAlertKind",
    "NegativeBalanceRisk",
    "PlannedAlert",
    "Urgency",
    "ValidationIssue",
    "ValidationResult",
]
