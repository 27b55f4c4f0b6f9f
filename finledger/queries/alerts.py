"""
Alert Queries

DESIGN DECISION: Alerts are DERIVED, never stored. They are recomputed
from the current entries, cards and invoices each time they are shown.

OVERDUE is an effective status: a PLANNED entry whose date has passed is
shown as overdue without rewriting the stored record.
"""

import calendar
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from finledger.models.ledger import CardInvoice, CreditCard, Entry, EntryStatus
from finledger.models.queries import (
    AlertGroup,
    InvoiceAlert,
    InvoiceAlertKind,
    NegativeBalanceRisk,
    PlannedAlert,
    Urgency,
)
from finledger.periods import period_key


def effective_status(entry: Entry, today: date) -> EntryStatus:
    """A planned entry past its date is overdue."""
    if entry.status == EntryStatus.PLANNED and entry.date < today:
        return EntryStatus.OVERDUE
    return entry.status


def urgency_for(days_until: int) -> Urgency:
    if days_until < 0:
        return Urgency.OVERDUE
    if days_until == 0:
        return Urgency.TODAY
    if days_until == 1:
        return Urgency.URGENT
    return Urgency.UPCOMING


def upcoming_alerts(
    entries: Iterable[Entry],
    today: date,
    days_before: int = 3,
) -> list[AlertGroup]:
    """
    Unpaid entries that are overdue or due within `days_before` days.

    Returns groups ordered by date; each group carries its total.
    """
    groups: dict[date, list[PlannedAlert]] = defaultdict(list)
    for entry in entries:
        if entry.status == EntryStatus.PAID:
            continue
        days_until = (entry.date - today).days
        urgency = urgency_for(days_until)
        if urgency != Urgency.OVERDUE and days_until > days_before:
            continue
        groups[entry.date].append(
            PlannedAlert(entry=entry, days_until=days_until, urgency=urgency)
        )

    return [
        AlertGroup(
            date=day,
            alerts=groups[day],
            total=sum((a.entry.amount for a in groups[day]), Decimal("0")),
        )
        for day in sorted(groups)
    ]


def negative_balance_risk(
    balance: Decimal,
    groups: list[AlertGroup],
) -> Optional[NegativeBalanceRisk]:
    """
    Would paying every alerted entry drive the balance below zero?

    Returns None when the projected balance stays non-negative.
    """
    if not groups:
        return None

    projected = balance - sum((g.total for g in groups), Decimal("0"))
    if projected >= 0:
        return None

    running = balance
    risk_date = groups[-1].date
    for group in groups:
        running -= group.total
        if running < 0:
            risk_date = group.date
            break
    return NegativeBalanceRisk(shortfall=-projected, risk_date=risk_date)


def _day_in_month(reference: date, day: int) -> date:
    last_day = calendar.monthrange(reference.year, reference.month)[1]
    return reference.replace(day=min(day, last_day))


def invoice_alerts(
    cards: Iterable[CreditCard],
    invoices: Iterable[CardInvoice],
    reference: date,
    today: date,
    closing_days: int = 3,
    due_days: int = 5,
) -> list[InvoiceAlert]:
    """
    Closing and due-date alerts for the invoices of reference's month.

    A due alert is only raised while that month's invoice is unpaid.
    """
    month_key = period_key(reference)
    paid_cards = {
        invoice.card_id for invoice in invoices
        if invoice.month == month_key and invoice.is_paid
    }

    alerts = []
    for card in cards:
        days_to_closing = (_day_in_month(reference, card.closing_day) - today).days
        if 0 <= days_to_closing <= closing_days:
            alerts.append(InvoiceAlert(
                card_id=card.id,
                card_name=card.name,
                kind=InvoiceAlertKind.CLOSING,
                days_left=days_to_closing,
                severity="info",
                message=(
                    "Invoice closes today"
                    if days_to_closing == 0
                    else f"Invoice closes in {days_to_closing} day(s)"
                ),
            ))

        if card.id in paid_cards:
            continue
        days_to_due = (_day_in_month(reference, card.due_day) - today).days
        if 0 <= days_to_due <= due_days:
            alerts.append(InvoiceAlert(
                card_id=card.id,
                card_name=card.name,
                kind=InvoiceAlertKind.DUE,
                days_left=days_to_due,
                severity="error" if days_to_due <= 1 else "warning",
                message=(
                    "Invoice is due today"
                    if days_to_due == 0
                    else f"Invoice due in {days_to_due} day(s)"
                ),
            ))
    return alerts
