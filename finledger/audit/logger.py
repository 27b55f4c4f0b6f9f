"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every balance served is logged.
This provides:
1. Traceability of generated recurring entries
2. A record of start-day changes (which re-bucket all history)
3. Debugging information when a balance is unavailable

The audit logger:
- Is async so it fits the store calls around it
- Never raises: a failed audit write must not fail a ledger operation
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (JSON via structlog)
    2. The audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("finledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_materialized(
        self,
        entry_id: UUID,
        template_id: UUID,
        period_key: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_materialized(
            entry_id=entry_id,
            template_id=template_id,
            period_key=period_key,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_materialization_skipped(
        self,
        template_id: UUID,
        period_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.materialization_skipped(
            template_id=template_id,
            period_key=period_key,
            correlation_id=correlation_id,
        ))

    async def log_fact_saved(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[UUID],
        summary: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a user-initiated write of any ledger fact."""
        await self.log(AuditEventBuilder.fact_saved(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            summary=summary,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_balance_computed(
        self,
        period_key: str,
        start_day: int,
        balance: Decimal,
        replayed_periods: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balance_computed(
            period_key=period_key,
            start_day=start_day,
            balance=balance,
            replayed_periods=replayed_periods,
            correlation_id=correlation_id,
        ))

    async def log_balance_unavailable(
        self,
        period_key: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balance_unavailable(
            period_key=period_key,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_start_day_changed(
        self,
        previous_day: int,
        new_day: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.start_day_changed(
            previous_day=previous_day,
            new_day=new_day,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. opening a period) and
    pass it through all subsequent operations.
    """
    return uuid4()
