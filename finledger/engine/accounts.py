"""
Account Ledger

Per-account balances, independent of financial periods:

    balance = initial_balance + sum(adjustments) + transfers_in - transfers_out

A transfer is a single fact; its debit and credit are derived from it,
so the total across all accounts is unchanged by any transfer.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from pydantic import ValidationError

from finledger.errors import DataIntegrityError, InvalidInputError
from finledger.models.accounts import (
    AccountAdjustment,
    AccountTransfer,
    AdjustmentReason,
    FinancialAccount,
)


def _check_references(
    account_ids: set[UUID],
    adjustments: Iterable[AccountAdjustment],
    transfers: Iterable[AccountTransfer],
) -> None:
    dangling = []
    for adjustment in adjustments:
        if adjustment.account_id not in account_ids:
            dangling.append({
                "field": "account_id",
                "message": f"Adjustment {adjustment.id} references unknown account {adjustment.account_id}",
            })
    for transfer in transfers:
        for side in ("from_account_id", "to_account_id"):
            if getattr(transfer, side) not in account_ids:
                dangling.append({
                    "field": side,
                    "message": f"Transfer {transfer.id} references unknown account {getattr(transfer, side)}",
                })
    if dangling:
        raise DataIntegrityError(
            f"{len(dangling)} account reference(s) point to missing accounts",
            issues=dangling,
        )


def account_balance(
    account: FinancialAccount,
    adjustments: Iterable[AccountAdjustment],
    transfers: Iterable[AccountTransfer],
) -> Decimal:
    """Current balance of one account. Facts for other accounts are ignored."""
    balance = account.initial_balance
    for adjustment in adjustments:
        if adjustment.account_id == account.id:
            balance += adjustment.amount
    for transfer in transfers:
        if transfer.to_account_id == account.id:
            balance += transfer.amount
        if transfer.from_account_id == account.id:
            balance -= transfer.amount
    return balance


def account_balances(
    accounts: Iterable[FinancialAccount],
    adjustments: Iterable[AccountAdjustment],
    transfers: Iterable[AccountTransfer],
) -> dict[UUID, Decimal]:
    """
    Balances of every account.

    Raises:
        DataIntegrityError: If an adjustment or transfer names an unknown account
    """
    accounts = list(accounts)
    adjustments = list(adjustments)
    transfers = list(transfers)
    _check_references({a.id for a in accounts}, adjustments, transfers)
    return {
        account.id: account_balance(account, adjustments, transfers)
        for account in accounts
    }


def total_balance(
    accounts: Iterable[FinancialAccount],
    adjustments: Iterable[AccountAdjustment],
    transfers: Iterable[AccountTransfer],
    active_only: bool = False,
) -> Decimal:
    """
    Sum over accounts. Transfers between the summed accounts net to zero.

    With active_only, archived accounts are left out of the sum (a
    transfer from an archived account then counts as an inflow).
    """
    accounts = list(accounts)
    balances = account_balances(accounts, adjustments, transfers)
    return sum(
        (balances[a.id] for a in accounts if a.is_active or not active_only),
        Decimal("0"),
    )


def make_transfer(
    user_id: str,
    from_account_id: UUID,
    to_account_id: UUID,
    amount: Decimal,
    transfer_date: date,
    description: Optional[str] = None,
) -> AccountTransfer:
    """
    Build a transfer fact.

    Raises:
        InvalidInputError: For a non-positive amount or a self-transfer
    """
    if from_account_id == to_account_id:
        raise InvalidInputError("to_account_id", "cannot transfer to the same account")
    if Decimal(amount) <= 0:
        raise InvalidInputError("amount", f"transfer amount must be positive, got {amount}")
    try:
        return AccountTransfer(
            user_id=user_id,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            date=transfer_date,
            description=description,
        )
    except ValidationError as e:
        raise InvalidInputError("transfer", str(e))


def make_adjustment(
    user_id: str,
    account_id: UUID,
    amount: Decimal,
    reason: AdjustmentReason = AdjustmentReason.MANUAL,
    adjustment_date: Optional[date] = None,
    description: Optional[str] = None,
) -> AccountAdjustment:
    """
    Build an adjustment fact. Negative amounts are allowed; zero is not.

    Raises:
        InvalidInputError: For a zero amount
    """
    if Decimal(amount) == 0:
        raise InvalidInputError("amount", "adjustment amount cannot be zero")
    try:
        return AccountAdjustment(
            user_id=user_id,
            account_id=account_id,
            amount=amount,
            reason=reason,
            date=adjustment_date or date.today(),
            description=description,
        )
    except ValidationError as e:
        raise InvalidInputError("adjustment", str(e))
