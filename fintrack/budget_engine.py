from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from fintrack.aggregation import category_spent
from fintrack.models import Category, Period, RelativePeriod, Transaction, coerce_amount

STATUS_OK = "ok"
STATUS_OVER = "over"
STATUS_UNKNOWN = "unknown"


@dataclass(frozen=True)
class BudgetEvaluation:
    current_value: Decimal
    remaining: Decimal
    status: str


def evaluate_category_budget(
    category: Category,
    transactions: Iterable[Transaction],
    rates: Mapping[str, Decimal],
    period: Optional[Period] = None,
    today: Optional[date] = None,
) -> BudgetEvaluation:
    period = period or RelativePeriod(option="This", unit="month")
    budgeted = coerce_amount(category.total_budgeted)
    current_value = category_spent(category, transactions, rates, period, today=today)
    remaining = budgeted - current_value
    if current_value.is_nan():
        status = STATUS_UNKNOWN
    else:
        status = STATUS_OK if current_value <= budgeted else STATUS_OVER

    return BudgetEvaluation(
        current_value=current_value,
        remaining=remaining,
        status=status,
    )
