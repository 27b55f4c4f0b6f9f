"""
Ledger Error Taxonomy

Storage failures have their own hierarchy in
finledger.services.storage.interface and propagate unchanged.
The errors below belong to the ledger core itself:

- InvalidInputError: rejected synchronously, never silently clamped
- DataIntegrityError: a stored fact is malformed or dangling
- BalanceUnavailableError: the balance could not be computed, so
  no balance is shown at all
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class InvalidInputError(LedgerError, ValueError):
    """A caller supplied a value outside its allowed domain."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class DataIntegrityError(LedgerError):
    """
    Stored facts cannot be trusted as-is.

    Raised for malformed dates, unknown month keys, or facts that
    reference accounts/templates that do not exist.
    """

    def __init__(self, message: str, issues: Optional[list] = None):
        self.issues = issues or []
        super().__init__(message)


class BalanceUnavailableError(LedgerError):
    """The period balance could not be computed."""

    def __init__(self, period_key: str, reason: str):
        self.period_key = period_key
        self.reason = reason
        super().__init__(f"Balance unavailable for {period_key}: {reason}")
