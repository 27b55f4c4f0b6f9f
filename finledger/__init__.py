"""
finledger - Source Package

The financial period ledger behind a personal-finance dashboard:
expenses, recurring bills, card invoices, salaries and accounts.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. Fail early, fail visibly: never show a wrong number
3. Recurring bills materialize exactly once per period
4. Every ledger mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "finledger Team"
