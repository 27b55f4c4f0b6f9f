"""
Budget Usage

Compares a month's expenses against its budget, overall and per category.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

from finledger.models.ledger import Budget, Entry
from finledger.models.queries import BudgetUsage, CategoryUsage


def _usage(spent: Decimal, limit: Decimal, near_ratio: float) -> tuple[Optional[float], bool, bool]:
    if limit <= 0:
        return None, False, False
    ratio = float(spent / limit)
    over = spent > limit
    return ratio, over, not over and ratio >= near_ratio


def budget_usage(
    budget: Budget,
    entries: Iterable[Entry],
    near_ratio: float = 0.8,
) -> BudgetUsage:
    """
    Spending for the budget's month.

    Only entries dated in budget.month/budget.year are counted. A limit of
    zero means "no limit": no ratio and never over budget.
    """
    by_category: dict[str, Decimal] = defaultdict(Decimal)
    for entry in entries:
        if entry.date.year == budget.year and entry.date.month == budget.month:
            by_category[entry.category] += entry.amount

    spent = sum(by_category.values(), Decimal("0"))
    ratio, over, near = _usage(spent, budget.total_limit, near_ratio)

    categories = []
    for category in sorted(set(by_category) | set(budget.category_limits)):
        category_spent = by_category.get(category, Decimal("0"))
        limit = budget.category_limits.get(category)
        c_ratio, c_over, c_near = _usage(category_spent, limit or Decimal("0"), near_ratio)
        categories.append(CategoryUsage(
            category=category,
            spent=category_spent,
            limit=limit,
            ratio=c_ratio,
            over_budget=c_over,
            near_budget=c_near,
        ))

    return BudgetUsage(
        month_key=budget.month_key,
        spent=spent,
        total_limit=budget.total_limit,
        ratio=ratio,
        over_budget=over,
        near_budget=near,
        categories=categories,
    )
