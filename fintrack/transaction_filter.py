from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, List, Optional, Sequence, Union

from fintrack.models import Transaction, as_date, coerce_amount
from fintrack.periods import is_relative_filter_value, period_from_filter_value, resolve_period

FILTER_OPTIONS = ("None", "Name", "Asset", "Category", "Type", "Date", "Amount")
ALL_TIME = "allTime"

FilterValue = Union[str, Sequence[str], None]
Predicate = Callable[[Transaction], bool]


def filter_transactions(
    transactions: Iterable[Transaction],
    option: Optional[str],
    value: FilterValue,
    today: Optional[date] = None,
) -> List[Transaction]:
    """Keep the transactions matching one filter, preserving their order.

    ``value`` is either a single string or a sequence of strings whose shape
    depends on ``option``. ``None``, unknown options and payloads made only of
    empty strings leave the collection as it is.
    """
    items = list(transactions)
    values = _normalize_values(value)
    if option is None or option == "None" or all(entry == "" for entry in values):
        return items

    predicate = _build_predicate(option, values, today)
    if predicate is None:
        return items
    return [txn for txn in items if predicate(txn)]


def _build_predicate(
    option: str,
    values: tuple[str, ...],
    today: Optional[date],
) -> Optional[Predicate]:
    if option == "Name":
        needle = values[0].lower()
        return lambda txn: needle in txn.name.lower()
    if option == "Asset":
        asset_id = values[0]
        return lambda txn: txn.asset_id == asset_id or txn.asset_from_id == asset_id
    if option == "Category":
        category_id = values[0]
        return lambda txn: txn.category_id == category_id
    if option == "Type":
        txn_type = values[0]
        return lambda txn: txn.type == txn_type
    if option == "Date":
        return _date_predicate(values, today)
    if option == "Amount":
        return _amount_predicate(values)
    return None


def _date_predicate(values: tuple[str, ...], today: Optional[date]) -> Optional[Predicate]:
    if values[0] == ALL_TIME:
        return None
    if is_relative_filter_value(values):
        try:
            values = resolve_period(period_from_filter_value(values), today=today)
        except ValueError:
            return _match_nothing

    try:
        start_date = _parse_date_bound(values[0])
        end_date = _parse_date_bound(values[1] if len(values) > 1 else "")
    except ValueError:
        return _match_nothing

    def predicate(txn: Transaction) -> bool:
        txn_date = as_date(txn.date)
        if start_date is not None and txn_date < start_date:
            return False
        if end_date is not None and txn_date > end_date:
            return False
        return True

    return predicate


def _amount_predicate(values: tuple[str, ...]) -> Predicate:
    try:
        min_amount = _parse_amount_bound(values[0])
        max_amount = _parse_amount_bound(values[1] if len(values) > 1 else "")
    except InvalidOperation:
        return _match_nothing
    min_amount = min_amount if min_amount is not None else Decimal("0")

    def predicate(txn: Transaction) -> bool:
        amount = coerce_amount(txn.amount)
        if amount < min_amount:
            return False
        return max_amount is None or amount <= max_amount

    return predicate


def _match_nothing(txn: Transaction) -> bool:
    return False


def _parse_date_bound(value: str) -> Optional[date]:
    value = value.strip()
    if not value:
        return None
    return date.fromisoformat(value[:10])


def _parse_amount_bound(value: str) -> Optional[Decimal]:
    value = value.strip()
    if not value:
        return None
    parsed = Decimal(value)
    if parsed.is_nan():
        raise InvalidOperation(value)
    return parsed


def _normalize_values(value: FilterValue) -> tuple[str, ...]:
    if value is None:
        return ("",)
    if isinstance(value, str):
        return (value,)
    values = tuple("" if entry is None else str(entry) for entry in value)
    return values or ("",)
