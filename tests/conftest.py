"""Shared fixtures. Everything runs against the in-memory store."""

from decimal import Decimal

import pytest

from finledger.audit import AuditLogger
from finledger.config import MonthStartPreference
from finledger.engine import PeriodBalanceCache
from finledger.models.ledger import RecurringTemplate
from finledger.orchestrator import LedgerService
from finledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStore


USER = "test-user"


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def preferences(tmp_path):
    return MonthStartPreference(str(tmp_path / "prefs.json"), default_day=1)


@pytest.fixture
def service(store, preferences, audit_logger):
    return LedgerService(
        store=store,
        preferences=preferences,
        user_id=USER,
        audit_logger=audit_logger,
        cache=PeriodBalanceCache(),
    )


@pytest.fixture
def uncached_service(store, preferences, audit_logger):
    return LedgerService(
        store=store,
        preferences=preferences,
        user_id=USER,
        audit_logger=audit_logger,
    )


@pytest.fixture
def make_template():
    """Factory for recurring templates owned by the test user."""

    def _make(day: int = 10, amount: str = "100.00", active: bool = True) -> RecurringTemplate:
        return RecurringTemplate(
            user_id=USER,
            description=f"Bill on day {day}",
            category="Moradia",
            amount=Decimal(amount),
            day_of_month=day,
            active=active,
        )

    return _make
