from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from fintrack.models import EXPENSE, INCOME, Transaction, as_date, coerce_amount

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def format_currency(amount: Decimal | int | float | str, currency: str) -> str:
    value = coerce_amount(amount)
    if not value.is_finite():
        return f"{value} {currency}"
    rounded = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP).normalize()
    if rounded == 0:
        rounded = Decimal("0")
    return f"{rounded:f} {currency}"


def signed_amount(transaction: Transaction) -> str:
    formatted = format_currency(transaction.amount, transaction.currency)
    if transaction.type == INCOME:
        return f"+ {formatted}"
    if transaction.type == EXPENSE:
        return f"- {formatted}"
    return formatted


def format_date(value: date | datetime) -> str:
    day = as_date(value)
    return f"{MONTH_NAMES[day.month - 1]} {day.day}, {day.year}"


def format_month(month: str) -> str:
    parsed = datetime.strptime(month, "%Y-%m")
    return f"{MONTH_NAMES[parsed.month - 1]} {parsed.year}"


def format_date_input(value: date | datetime) -> str:
    return as_date(value).isoformat()
