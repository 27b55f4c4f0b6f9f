"""Derived ledger queries: alerts and budget usage."""

from finledger.queries.alerts import (
    effective_status,
    invoice_alerts,
    negative_balance_risk,
    upcoming_alerts,
    urgency_for,
)
from finledger.queries.budgets import budget_usage

__all__ = [
    "budget_usage",
    "effective_status",
    "invoice_alerts",
    "negative_balance_risk",
    "upcoming_alerts",
    "urgency_for",
]
