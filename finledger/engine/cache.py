"""
Folded-Subtotal Cache

Keeps the folded prefix of the balance history so a request only replays
periods after the last cached boundary.

The cache is valid for ONE start_day. Switching start_day re-buckets
every fact, so the whole prefix is discarded. Mutating a fact discards
every snapshot from that fact's period onwards.
"""

from decimal import Decimal
from typing import Optional

from finledger.engine.balance import ZERO, PeriodTotals, fold_balances
from finledger.models.ledger import PeriodBalance
from finledger.periods import parse_period_key, shift_key, validate_start_day


class PeriodBalanceCache:
    """Folded snapshots for keys up to `boundary`, in key order."""

    def __init__(self):
        self._start_day: Optional[int] = None
        self._snapshots: list[PeriodBalance] = []
        self._boundary: Optional[str] = None

    @property
    def start_day(self) -> Optional[int]:
        return self._start_day

    @property
    def boundary(self) -> Optional[str]:
        """Last key whose folded balance is known to be current."""
        return self._boundary

    def reset(self, start_day: Optional[int] = None) -> None:
        """Drop everything. Called when the month start-day changes."""
        if start_day is not None:
            validate_start_day(start_day)
        self._start_day = start_day
        self._snapshots = []
        self._boundary = None

    def invalidate_from(self, period_key: str) -> None:
        """Forget every snapshot at or after period_key."""
        parse_period_key(period_key)
        if self._boundary is None or period_key > self._boundary:
            return
        self._snapshots = [s for s in self._snapshots if s.period_key < period_key]
        self._boundary = shift_key(period_key, -1)

    def _carry_over(self) -> Decimal:
        return self._snapshots[-1].balance if self._snapshots else ZERO

    def _snapshot_for(self, target_key: str) -> PeriodBalance:
        previous = None
        for snapshot in self._snapshots:
            if snapshot.period_key == target_key:
                return snapshot
            if snapshot.period_key > target_key:
                break
            previous = snapshot
        if previous is None:
            return PeriodBalance.empty(target_key)
        # A period without facts simply carries the previous balance
        return PeriodBalance(
            period_key=target_key,
            carry_over=previous.balance,
            balance=previous.balance,
        )

    def fold(
        self,
        buckets: dict[str, PeriodTotals],
        target_key: str,
        start_day: int,
    ) -> tuple[PeriodBalance, int]:
        """
        Balance for target_key, replaying only what is not cached yet.

        Returns:
            (snapshot, number of periods replayed by this call)
        """
        parse_period_key(target_key)
        if start_day != self._start_day:
            self.reset(start_day)

        if self._boundary is not None and target_key <= self._boundary:
            return self._snapshot_for(target_key), 0

        replayed = fold_balances(
            buckets,
            target_key,
            carry_over=self._carry_over(),
            after_key=self._boundary,
        )
        self._snapshots.extend(replayed)
        self._boundary = target_key
        return replayed[-1], len(replayed)
