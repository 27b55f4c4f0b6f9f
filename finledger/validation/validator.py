"""
Two-Stage Fact Validation

Runs over facts loaded from the store. Every fold calls ensure_valid() first,
so stage-1 errors make a balance unavailable; the full report, warnings
included, backs the data check on the settings page.

STAGE 1 - REFERENCES:
- Entries pointing at accounts or cards that do not exist
- Adjustments and transfers pointing at missing accounts
- Invoices for unknown cards
- More than one materialization record per (template, period)
These are errors: a balance built on them would be wrong.

STAGE 2 - CONSISTENCY:
- Materialization records whose template was deleted
- Installment groups whose parts disagree on the installment count
These are warnings: history is still usable.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and ensure_valid() turns errors into DataIntegrityError.
"""

from collections import Counter, defaultdict
from typing import Iterable, Optional

from finledger.errors import DataIntegrityError
from finledger.models.accounts import (
    AccountAdjustment,
    AccountTransfer,
    FinancialAccount,
)
from finledger.models.ledger import (
    CardInvoice,
    CreditCard,
    Entry,
    MaterializationRecord,
    RecurringTemplate,
)
from finledger.models.queries import ValidationIssue, ValidationResult


class FactValidator:
    """Validates a user's stored ledger facts as a whole."""

    def _check_references(
        self,
        accounts: list[FinancialAccount],
        cards: list[CreditCard],
        entries: list[Entry],
        adjustments: list[AccountAdjustment],
        transfers: list[AccountTransfer],
        invoices: list[CardInvoice],
        records: list[MaterializationRecord],
    ) -> list[ValidationIssue]:
        """Stage 1: every reference must resolve."""
        issues = []
        account_ids = {a.id for a in accounts}
        card_ids = {c.id for c in cards}

        def dangling(field: str, entity_id, message: str) -> None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="dangling_reference",
                message=message,
                severity="error",
                entity_id=entity_id,
            ))

        for entry in entries:
            if entry.account_id and entry.account_id not in account_ids:
                dangling("account_id", entry.id,
                         f"Entry '{entry.description}' references a missing account")
            if entry.card_id and entry.card_id not in card_ids:
                dangling("card_id", entry.id,
                         f"Entry '{entry.description}' references a missing card")

        for adjustment in adjustments:
            if adjustment.account_id not in account_ids:
                dangling("account_id", adjustment.id,
                         "Adjustment references a missing account")

        for transfer in transfers:
            if transfer.from_account_id not in account_ids:
                dangling("from_account_id", transfer.id,
                         "Transfer source account does not exist")
            if transfer.to_account_id not in account_ids:
                dangling("to_account_id", transfer.id,
                         "Transfer destination account does not exist")

        for invoice in invoices:
            if invoice.card_id not in card_ids:
                dangling("card_id", invoice.id,
                         f"Invoice {invoice.month} belongs to a missing card")

        slots = Counter((r.template_id, r.period_key) for r in records)
        for (template_id, key), count in slots.items():
            if count > 1:
                issues.append(ValidationIssue(
                    field="materialization",
                    issue_type="duplicate",
                    message=f"Template materialized {count} times for {key}",
                    severity="error",
                    entity_id=template_id,
                ))

        return issues

    def _check_consistency(
        self,
        templates: Optional[list[RecurringTemplate]],
        invoices: list[CardInvoice],
        records: list[MaterializationRecord],
    ) -> list[ValidationIssue]:
        """Stage 2: history that is usable but suspicious."""
        issues = []

        if templates is not None:
            template_ids = {t.id for t in templates}
            for record in records:
                if record.template_id not in template_ids:
                    issues.append(ValidationIssue(
                        field="template_id",
                        issue_type="orphaned_record",
                        message=f"Entry for {record.period_key} came from a deleted template",
                        severity="warning",
                        entity_id=record.entry_id,
                    ))

        totals = defaultdict(set)
        for invoice in invoices:
            for item in invoice.items:
                if item.installment_group_id:
                    totals[item.installment_group_id].add(item.installment_total)
        for group_id, counts in totals.items():
            if len(counts) > 1:
                issues.append(ValidationIssue(
                    field="installment_total",
                    issue_type="inconsistent",
                    message="Installments of one purchase disagree on the installment count",
                    severity="warning",
                    entity_id=group_id,
                ))

        return issues

    def validate(
        self,
        accounts: Iterable[FinancialAccount] = (),
        cards: Iterable[CreditCard] = (),
        entries: Iterable[Entry] = (),
        adjustments: Iterable[AccountAdjustment] = (),
        transfers: Iterable[AccountTransfer] = (),
        invoices: Iterable[CardInvoice] = (),
        records: Iterable[MaterializationRecord] = (),
        templates: Optional[Iterable[RecurringTemplate]] = None,
    ) -> ValidationResult:
        """
        Run both stages.

        Args:
            templates: Pass None to skip the orphaned-record check
        """
        invoices = list(invoices)
        records = list(records)
        issues = self._check_references(
            accounts=list(accounts),
            cards=list(cards),
            entries=list(entries),
            adjustments=list(adjustments),
            transfers=list(transfers),
            invoices=invoices,
            records=records,
        )
        issues.extend(self._check_consistency(
            templates=list(templates) if templates is not None else None,
            invoices=invoices,
            records=records,
        ))
        return ValidationResult(issues=issues)

    def ensure_valid(self, **facts) -> ValidationResult:
        """
        Validate and raise on errors.

        Raises:
            DataIntegrityError: If any stage-1 issue was found
        """
        result = self.validate(**facts)
        if not result.is_valid:
            raise DataIntegrityError(
                f"{len(result.errors)} data integrity error(s) in stored facts",
                issues=[i.model_dump(mode="json") for i in result.errors],
            )
        return result

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Summary shown on the dashboard."""
        if not result.issues:
            return "All stored records are consistent."

        lines = []
        if result.errors:
            lines.append("Some records point at data that no longer exists:")
            lines.extend(f"  - {issue.message}" for issue in result.errors)
        if result.warnings:
            lines.append("Please review:")
            lines.extend(f"  - {issue.message}" for issue in result.warnings)
        return "\n".join(lines)
