"""
Recurring Materializer

Turns active recurring templates into concrete dated entries, exactly
once per (template, period).

CRITICAL: The entry and its MaterializationRecord are written through the
store's single materialize_if_absent() call. There is no window in which
an entry exists without its record, so a retry can never duplicate it.
"""

import calendar
from datetime import date
from typing import Iterable, Optional
from uuid import UUID

from dateutil.relativedelta import relativedelta

from finledger.audit import AuditLogger
from finledger.errors import InvalidInputError
from finledger.models.ledger import (
    Entry,
    EntryStatus,
    MaterializationRecord,
    RecurringTemplate,
)
from finledger.periods import parse_period_key, period_key
from finledger.services.storage import LedgerStoreInterface


def clamp_day(year: int, month: int, day: int) -> date:
    """Day `day` of the month, or its last day when the month is shorter."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def target_date(day_of_month: int, period_start_date: date) -> date:
    """
    Date a template falls on within the period starting at period_start_date.

    The day is clamped to the period's calendar month (31 -> 30 in a
    30-day month). A day that would fall before the period start belongs
    to the next calendar month, which is still inside the same period.
    """
    candidate = clamp_day(period_start_date.year, period_start_date.month, day_of_month)
    if candidate < period_start_date:
        following = period_start_date + relativedelta(months=1)
        candidate = clamp_day(following.year, following.month, day_of_month)
    return candidate


class RecurringMaterializer:
    """
    Materializes recurring templates for one period at a time.

    Idempotent: calling materialize() any number of times for the same
    period yields exactly one entry per active template.
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    async def materialize(
        self,
        active_templates: Iterable[RecurringTemplate],
        period_key_value: str,
        period_start_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> list[Entry]:
        """
        Create the missing entries for a period.

        Args:
            active_templates: Templates to consider. Inactive ones are ignored.
            period_key_value: "YYYY-MM" key of the period
            period_start_date: First day of the period

        Returns:
            The entries created by this call (empty when nothing was missing)

        Raises:
            InvalidInputError: If the key does not name the given start date
        """
        parse_period_key(period_key_value)
        if period_key(period_start_date) != period_key_value:
            raise InvalidInputError(
                "period_start",
                f"{period_start_date.isoformat()} does not start period {period_key_value}",
            )

        templates = [t for t in active_templates if t.active]
        if not templates:
            return []

        existing = await self._store.list_materialization_records(
            [t.id for t in templates],
            period_key_value,
        )
        done = {record.template_id for record in existing}

        created = []
        for template in templates:
            if template.id in done:
                continue

            entry = Entry(
                user_id=template.user_id,
                date=target_date(template.day_of_month, period_start_date),
                description=template.description,
                category=template.category,
                amount=template.amount,
                status=EntryStatus.PAID,
            )
            record = MaterializationRecord(
                user_id=template.user_id,
                template_id=template.id,
                period_key=period_key_value,
                entry_id=entry.id,
            )

            if await self._store.materialize_if_absent(entry, record):
                created.append(entry)
                await self._audit.log_entry_materialized(
                    entry_id=entry.id,
                    template_id=template.id,
                    period_key=period_key_value,
                    amount=entry.amount,
                    correlation_id=correlation_id,
                )
            else:
                # Lost a race with a concurrent materialization
                await self._audit.log_materialization_skipped(
                    template_id=template.id,
                    period_key=period_key_value,
                    correlation_id=correlation_id,
                )

        return created

    async def recurring_entry_ids(
        self,
        template_ids: Iterable[UUID],
        period_key_value: str,
    ) -> set[UUID]:
        """Ids of entries produced by the given templates for one period."""
        records = await self._store.list_materialization_records(template_ids, period_key_value)
        return {record.entry_id for record in records}
