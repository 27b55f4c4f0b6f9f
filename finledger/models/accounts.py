"""
Account Ledger Models

An account's balance is never stored as a running total. It is derived
from the opening balance plus every adjustment and transfer that
references the account.

DESIGN DECISION: A transfer is ONE fact. Both accounts derive their
effect from the same record, so money cannot be created or destroyed by
a half-written debit/credit pair.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AccountType(str, Enum):
    """Supported account types."""
    CHECKING = "checking"
    SAVINGS = "savings"
    WALLET = "wallet"
    CREDIT_CARD = "credit_card"
    INVESTMENT = "investment"


class AdjustmentReason(str, Enum):
    """Why an account balance was adjusted outside of a transfer."""
    MANUAL = "manual"
    CORRECTION = "correction"
    INTEREST = "interest"
    FEE = "fee"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class FinancialAccount(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    type: AccountType = AccountType.CHECKING
    initial_balance: Decimal = Field(
        default=Decimal("0"),
        decimal_places=2,
        description="Opening balance; may be negative (e.g. an overdrawn account)"
    )
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AccountAdjustment(BaseModel):
    """
    A signed change to one account.

    No overdraft check: the ledger records facts, it does not enforce policy.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    account_id: UUID
    amount: Decimal = Field(..., decimal_places=2)
    reason: AdjustmentReason = AdjustmentReason.MANUAL
    date: date
    description: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def validate_amount(self) -> "AccountAdjustment":
        if self.amount == 0:
            raise ValueError("Adjustment amount cannot be zero")
        return self


class AccountTransfer(BaseModel):
    """Money moved between two distinct accounts."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    date: date
    description: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def validate_accounts(self) -> "AccountTransfer":
        if self.from_account_id == self.to_account_id:
            raise ValueError("Cannot transfer to the same account")
        return self
