"""
Ledger engine package.

Pure functions and small stateful helpers that fold already-fetched
facts. Nothing here reads preferences; start_day is always passed in.
"""

from finledger.engine.accounts import (
    account_balance,
    account_balances,
    make_adjustment,
    make_transfer,
    total_balance,
)
from finledger.engine.balance import (
    PeriodTotals,
    balance_history,
    bucket_facts,
    build_facts,
    compute_balance,
    fold_balances,
    period_key_of,
)
from finledger.engine.cache import PeriodBalanceCache
from finledger.engine.income import expand_salaries
from finledger.engine.installments import plan_installments
from finledger.engine.materializer import (
    RecurringMaterializer,
    clamp_day,
    target_date,
)

__all__ = [
    # Accounts
    "account_balance",
    "account_balances",
    "make_adjustment",
    "make_transfer",
    "total_balance",
    # Balance
    "PeriodTotals",
    "balance_history",
    "bucket_facts",
    "build_facts",
    "compute_balance",
    "fold_balances",
    "period_key_of",
    "PeriodBalanceCache",
    # Income and installments
    "expand_salaries",
    "plan_installments",
    # Materialization
    "RecurringMaterializer",
    "clamp_day",
    "target_date",
]
