"""
Installment Planner

Splits one card purchase into N invoice items in consecutive invoice
months. Each installment is the total divided by N truncated to cents; the
leftover cents go on the last installment so the items always sum to
the purchase total and no installment is ever negative.
"""

from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from uuid import uuid4

from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from finledger.engine.materializer import clamp_day
from finledger.errors import InvalidInputError
from finledger.models.ledger import DESCRIPTION_MAX_LENGTH, InvoiceItem
from finledger.periods import parse_period_key, period_key


CENT = Decimal("0.01")


def plan_installments(
    description: str,
    category: str,
    total: Decimal,
    count: int,
    purchase_date: date,
    first_month: str,
) -> list[tuple[str, InvoiceItem]]:
    """
    Plan the invoice items for an installment purchase.

    Args:
        description: Purchase description; each item gets an "(i/N)" suffix
        category: Expense category
        total: Full purchase amount
        count: Number of installments (1 means a single item)
        purchase_date: Date of the purchase; its day is kept in every month
        first_month: "YYYY-MM" of the first invoice

    Returns:
        (invoice month, item) pairs in month order

    Raises:
        InvalidInputError: For a non-positive total or count, or a description
            that does not fit once the "(i/N)" suffix is added
    """
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidInputError("count", f"installment count must be at least 1, got {count!r}")
    total = Decimal(total).quantize(CENT, rounding=ROUND_HALF_UP)
    if total <= 0:
        raise InvalidInputError("total", f"purchase total must be positive, got {total}")
    description = (description or "").strip()
    suffix = f" ({count}/{count})" if count > 1 else ""
    if not description:
        raise InvalidInputError("description", "description is required")
    if len(description) + len(suffix) > DESCRIPTION_MAX_LENGTH:
        raise InvalidInputError(
            "description",
            f"at most {DESCRIPTION_MAX_LENGTH - len(suffix)} characters for {count} installments",
        )
    year, month = parse_period_key(first_month)

    try:
        return _plan(description, category, total, count, purchase_date, first_month, year, month)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "item"
        raise InvalidInputError(field, error["msg"]) from e


def _plan(description, category, total, count, purchase_date, first_month, year, month):
    if count == 1:
        item = InvoiceItem(
            date=purchase_date,
            description=description,
            category=category,
            amount=total,
        )
        return [(first_month, item)]

    share = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    last_share = total - share * (count - 1)
    group_id = uuid4()

    planned = []
    for index in range(count):
        month_start = date(year, month, 1) + relativedelta(months=index)
        planned.append((
            period_key(month_start),
            InvoiceItem(
                date=clamp_day(month_start.year, month_start.month, purchase_date.day),
                description=f"{description} ({index + 1}/{count})",
                category=category,
                amount=last_share if index == count - 1 else share,
                installment_group_id=group_id,
                installment_current=index + 1,
                installment_total=count,
            ),
        ))
    return planned
