"""
Audit Models for the Period Ledger

Every mutation of the ledger and every balance served to the dashboard
is logged for audit purposes. This provides:
1. Traceability of generated (recurring) entries
2. A record of start-day changes, which rewrite all historical periods
3. Debugging information when a balance is unavailable

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Recurring materialization
    ENTRY_MATERIALIZED = "entry_materialized"
    MATERIALIZATION_SKIPPED = "materialization_skipped"

    # Ledger facts
    ENTRY_SAVED = "entry_saved"
    ENTRY_STATUS_UPDATED = "entry_status_updated"
    ENTRY_DELETED = "entry_deleted"
    TEMPLATE_SAVED = "template_saved"
    TEMPLATE_TOGGLED = "template_toggled"
    TEMPLATE_DELETED = "template_deleted"
    SALARY_SAVED = "salary_saved"
    EXTRA_INCOME_SAVED = "extra_income_saved"
    INVOICE_SAVED = "invoice_saved"
    INSTALLMENTS_PLANNED = "installments_planned"
    BUDGET_SAVED = "budget_saved"

    # Accounts
    ACCOUNT_SAVED = "account_saved"
    ADJUSTMENT_RECORDED = "adjustment_recorded"
    TRANSFER_RECORDED = "transfer_recorded"

    # Balance computation
    BALANCE_COMPUTED = "balance_computed"
    BALANCE_UNAVAILABLE = "balance_unavailable"

    # Preferences
    START_DAY_CHANGED = "start_day_changed"

    # System events
    DATA_INTEGRITY_ERROR = "data_integrity_error"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant ledger action creates one of these.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g. 'entry', 'template', 'account', 'period')"
    )
    entity_id: Optional[UUID] = None

    # Related events share a correlation id (e.g. one dashboard refresh)
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for Google Sheets storage.

        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details_json, error_message,
        is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_materialized(entry_id, template_id, "2026-02")
        event = AuditEventBuilder.start_day_changed(1, 5)
    """

    @staticmethod
    def entry_materialized(
        entry_id: UUID,
        template_id: UUID,
        period_key: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_MATERIALIZED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Recurring entry generated for {period_key}",
            details={
                "template_id": str(template_id),
                "period_key": period_key,
                "amount": str(amount),
            },
        )

    @staticmethod
    def materialization_skipped(
        template_id: UUID,
        period_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MATERIALIZATION_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type="template",
            entity_id=template_id,
            correlation_id=correlation_id,
            description=f"Template already materialized for {period_key}",
            details={"period_key": period_key},
        )

    @staticmethod
    def fact_saved(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[UUID],
        summary: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=summary,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def transfer_recorded(
        transfer_id: UUID,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_RECORDED,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description=f"Transfer of {amount} recorded",
            details={
                "from_account_id": str(from_account_id),
                "to_account_id": str(to_account_id),
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def adjustment_recorded(
        adjustment_id: UUID,
        account_id: UUID,
        amount: Decimal,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADJUSTMENT_RECORDED,
            entity_type="adjustment",
            entity_id=adjustment_id,
            correlation_id=correlation_id,
            description=f"Account adjusted by {amount} ({reason})",
            details={
                "account_id": str(account_id),
                "amount": str(amount),
                "reason": reason,
            },
            is_user_action=True,
        )

    @staticmethod
    def balance_computed(
        period_key: str,
        start_day: int,
        balance: Decimal,
        replayed_periods: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_COMPUTED,
            severity=AuditSeverity.DEBUG,
            entity_type="period",
            correlation_id=correlation_id,
            description=f"Balance computed for {period_key}",
            details={
                "period_key": period_key,
                "start_day": start_day,
                "balance": str(balance),
                "replayed_periods": replayed_periods,
            },
        )

    @staticmethod
    def balance_unavailable(
        period_key: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_UNAVAILABLE,
            severity=AuditSeverity.ERROR,
            entity_type="period",
            correlation_id=correlation_id,
            description=f"Balance unavailable for {period_key}",
            error_message=reason,
            details={"period_key": period_key},
        )

    @staticmethod
    def start_day_changed(
        previous_day: int,
        new_day: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.START_DAY_CHANGED,
            severity=AuditSeverity.WARNING,
            entity_type="preference",
            correlation_id=correlation_id,
            description=f"Month start day changed from {previous_day} to {new_day}",
            details={
                "previous_day": previous_day,
                "new_day": new_day,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_integrity_error(
        error_message: str,
        issues: Optional[list[dict]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_INTEGRITY_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description="Stored ledger data failed validation",
            error_message=error_message,
            details={"issues": issues or []},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Storage operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
