"""Tests for recurring materialization."""

from datetime import date
from decimal import Decimal

import pytest

from finledger.audit import AuditLogger
from finledger.engine import RecurringMaterializer, target_date
from finledger.errors import InvalidInputError
from finledger.models.audit import AuditEventType
from finledger.models.ledger import Entry, EntryStatus, MaterializationRecord


class TestTargetDate:
    """Tests for the day a template lands on."""

    def test_clamps_to_short_month(self):
        assert target_date(31, date(2026, 4, 1)) == date(2026, 4, 30)

    def test_clamps_february(self):
        assert target_date(31, date(2026, 2, 1)) == date(2026, 2, 28)
        assert target_date(30, date(2028, 2, 1)) == date(2028, 2, 29)

    def test_day_before_start_day_goes_to_next_month(self):
        # Period 2026-02 with start-day 10 runs Feb 10 .. Mar 9
        assert target_date(3, date(2026, 2, 10)) == date(2026, 3, 3)
        assert target_date(15, date(2026, 2, 10)) == date(2026, 2, 15)


class TestMaterializer:
    """Tests for exactly-once materialization."""

    @pytest.mark.asyncio
    async def test_creates_one_paid_entry_per_template(self, store, make_template):
        template = make_template(day=10, amount="1500.00")
        materializer = RecurringMaterializer(store, AuditLogger())

        created = await materializer.materialize([template], "2026-02", date(2026, 2, 1))

        assert len(created) == 1
        assert created[0].date == date(2026, 2, 10)
        assert created[0].status == EntryStatus.PAID
        assert created[0].amount == Decimal("1500.00")

    @pytest.mark.asyncio
    async def test_is_idempotent(self, store, make_template):
        templates = [make_template(day=5), make_template(day=20)]
        materializer = RecurringMaterializer(store, AuditLogger())

        first = await materializer.materialize(templates, "2026-02", date(2026, 2, 1))
        second = await materializer.materialize(templates, "2026-02", date(2026, 2, 1))

        assert len(first) == 2
        assert second == []
        entries = await store.list_expenses("test-user")
        assert len(entries) == 2
        records = await store.list_materialization_records([t.id for t in templates], "2026-02")
        assert len(records) == 2

    @pytest.mark.asyncio
    async def test_day_31_in_30_day_period(self, store, make_template):
        materializer = RecurringMaterializer(store, AuditLogger())
        created = await materializer.materialize([make_template(day=31)], "2026-04", date(2026, 4, 1))
        assert created[0].date == date(2026, 4, 30)

    @pytest.mark.asyncio
    async def test_skips_inactive_templates(self, store, make_template):
        materializer = RecurringMaterializer(store, AuditLogger())
        created = await materializer.materialize(
            [make_template(active=False)], "2026-02", date(2026, 2, 1)
        )
        assert created == []
        assert await store.list_expenses("test-user") == []

    @pytest.mark.asyncio
    async def test_each_period_gets_its_own_entry(self, store, make_template):
        template = make_template(day=10)
        materializer = RecurringMaterializer(store, AuditLogger())
        await materializer.materialize([template], "2026-01", date(2026, 1, 1))
        await materializer.materialize([template], "2026-02", date(2026, 2, 1))
        entries = await store.list_expenses("test-user")
        assert [e.date for e in entries] == [date(2026, 1, 10), date(2026, 2, 10)]

    @pytest.mark.asyncio
    async def test_rejects_mismatched_period_start(self, store, make_template):
        materializer = RecurringMaterializer(store, AuditLogger())
        with pytest.raises(InvalidInputError):
            await materializer.materialize([make_template()], "2026-02", date(2026, 3, 1))

    @pytest.mark.asyncio
    async def test_recurring_entry_ids(self, store, make_template):
        template = make_template()
        materializer = RecurringMaterializer(store, AuditLogger())
        created = await materializer.materialize([template], "2026-02", date(2026, 2, 1))
        ids = await materializer.recurring_entry_ids([template.id], "2026-02")
        assert ids == {created[0].id}

    @pytest.mark.asyncio
    async def test_audits_materialization(self, store, audit_logger, audit_storage, make_template):
        materializer = RecurringMaterializer(store, audit_logger)
        await materializer.materialize([make_template()], "2026-02", date(2026, 2, 1))
        assert [e.event_type for e in audit_storage.events] == [AuditEventType.ENTRY_MATERIALIZED]

    @pytest.mark.asyncio
    async def test_lost_race_is_skipped_not_duplicated(self, store, audit_logger, audit_storage, make_template):
        """A record written between the lookup and the write wins; nothing is duplicated."""
        template = make_template()
        materializer = RecurringMaterializer(store, audit_logger)

        original = store.list_materialization_records

        async def stale_lookup(template_ids, period_key):
            # A concurrent materializer finishes between the lookup and the write
            winner = Entry(user_id="test-user", date=date(2026, 2, 10), description="Rent",
                           category="Moradia", amount=Decimal("100.00"))
            await store.materialize_if_absent(
                winner,
                MaterializationRecord(user_id="test-user", template_id=template.id, period_key=period_key, entry_id=winner.id),
            )
            return []

        store.list_materialization_records = stale_lookup
        created = await materializer.materialize([template], "2026-02", date(2026, 2, 1))
        store.list_materialization_records = original

        assert created == []
        assert len(await store.list_expenses("test-user")) == 1
        assert audit_storage.events[-1].event_type == AuditEventType.MATERIALIZATION_SKIPPED
