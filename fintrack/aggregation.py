from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from fintrack.currency_conversion import convert
from fintrack.models import (
    EXPENSE,
    INCOME,
    TRANSFER,
    Asset,
    Category,
    Period,
    Transaction,
    as_date,
    coerce_amount,
    find_by_id,
)
from fintrack.periods import resolve_period
from fintrack.transaction_filter import filter_transactions
from fintrack.transaction_sort import SortKey, sort_transactions

ZERO = Decimal("0")
CENT = Decimal("0.01")

Rates = Mapping[str, Decimal]
SeriesRecord = Dict[str, object]
Matrix = Dict[str, Dict[str, Decimal]]


@dataclass(frozen=True)
class AssetDetails:
    income: Decimal
    expense: Decimal
    transfer_to: Decimal
    transfer_from: Decimal


def current_balance(
    asset: Asset,
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
) -> Decimal:
    today = today or date.today()
    balance = coerce_amount(asset.init_balance)
    for txn in transactions:
        if as_date(txn.date) > today:
            continue
        amount = coerce_amount(txn.amount)
        if txn.asset_id == asset.id:
            if txn.type == EXPENSE:
                balance -= amount
            elif txn.type in (INCOME, TRANSFER):
                balance += amount
        elif txn.type == TRANSFER and txn.asset_from_id == asset.id:
            balance -= amount
    return balance


def asset_details(
    asset: Asset,
    transactions: Iterable[Transaction],
    period: Period,
    today: Optional[date] = None,
) -> AssetDetails:
    income = ZERO
    expense = ZERO
    transfer_to = ZERO
    transfer_from = ZERO
    for txn in _within_period(transactions, period, today):
        amount = coerce_amount(txn.amount)
        if txn.asset_id == asset.id:
            if txn.type == INCOME:
                income += amount
            elif txn.type == EXPENSE:
                expense += amount
            elif txn.type == TRANSFER:
                transfer_to += amount
        elif txn.type == TRANSFER and txn.asset_from_id == asset.id:
            transfer_from += amount

    return AssetDetails(
        income=income,
        expense=expense,
        transfer_to=transfer_to,
        transfer_from=transfer_from,
    )


def category_spent(
    category: Category,
    transactions: Iterable[Transaction],
    rates: Rates,
    period: Period,
    today: Optional[date] = None,
) -> Decimal:
    total = ZERO
    for txn in _within_period(transactions, period, today):
        if txn.type != EXPENSE or txn.category_id != category.id:
            continue
        total += convert(rates, txn.currency, category.currency, txn.amount)
    return total


def category_spent_history(
    transactions: Iterable[Transaction],
    categories: Sequence[Category],
    period: Period,
    base_currency: Optional[str],
    rates: Rates,
    today: Optional[date] = None,
) -> Optional[List[SeriesRecord]]:
    """Month by month expense totals per category.

    Returns ``None`` when no transaction falls inside the period so callers
    can tell an empty ledger apart from a zero-valued series.
    """
    ordered = _ordered_within_period(transactions, period, today)
    if not ordered:
        return None

    months = month_span(as_date(ordered[0].date), as_date(ordered[-1].date))
    matrix = _zero_matrix(months, categories)
    for txn in ordered:
        if txn.type != EXPENSE:
            continue
        category = find_by_id(categories, txn.category_id)
        if category is None:
            continue
        month = month_key(as_date(txn.date))
        matrix[month][category.id] += coerce_amount(txn.amount)

    if base_currency:
        for month in months:
            for category in categories:
                converted = convert(rates, category.currency, base_currency, matrix[month][category.id])
                matrix[month][category.id] = _round_cents(converted)

    return _emit_records(matrix, categories)


def asset_balance_history(
    transactions: Iterable[Transaction],
    assets: Sequence[Asset],
    period: Period,
    base_currency: Optional[str],
    rates: Rates,
    today: Optional[date] = None,
) -> Optional[List[SeriesRecord]]:
    """Month-end running balances per asset.

    Monthly deltas are carried forward from each asset's initial balance, so
    every cell is a cumulative balance rather than the month's change.
    """
    ordered = _ordered_within_period(transactions, period, today)
    if not ordered:
        return None

    months = month_span(as_date(ordered[0].date), as_date(ordered[-1].date))
    matrix = _zero_matrix(months, assets)
    for txn in ordered:
        asset = find_by_id(assets, txn.asset_id)
        if asset is None:
            continue
        month = month_key(as_date(txn.date))
        amount = coerce_amount(txn.amount)
        if txn.type == INCOME:
            matrix[month][asset.id] += amount
        elif txn.type == EXPENSE:
            matrix[month][asset.id] -= amount
        elif txn.type == TRANSFER:
            matrix[month][asset.id] += amount
            asset_from = find_by_id(assets, txn.asset_from_id)
            if asset_from is not None:
                matrix[month][asset_from.id] -= amount

    running = {asset.id: coerce_amount(asset.init_balance) for asset in assets}
    for month in months:
        for asset in assets:
            running[asset.id] += matrix[month][asset.id]
            if base_currency:
                matrix[month][asset.id] = convert(rates, asset.currency, base_currency, running[asset.id])
            else:
                matrix[month][asset.id] = running[asset.id]

    return _emit_records(matrix, assets)


def month_key(value: date) -> str:
    return value.strftime("%Y-%m")


def month_span(start_value: date, end_value: date) -> List[str]:
    months: List[str] = []
    cursor = start_value.year * 12 + start_value.month - 1
    end_index = end_value.year * 12 + end_value.month - 1
    while cursor <= end_index:
        months.append(f"{cursor // 12:04d}-{cursor % 12 + 1:02d}")
        cursor += 1
    return months


def _within_period(
    transactions: Iterable[Transaction],
    period: Period,
    today: Optional[date],
) -> List[Transaction]:
    window = resolve_period(period, today=today)
    return filter_transactions(transactions, "Date", list(window), today=today)


def _ordered_within_period(
    transactions: Iterable[Transaction],
    period: Period,
    today: Optional[date],
) -> List[Transaction]:
    return sort_transactions(
        _within_period(transactions, period, today),
        [SortKey("Date", ascending=True)],
    )


def _zero_matrix(months: Sequence[str], entities: Sequence[Asset | Category]) -> Matrix:
    return {month: {entity.id: ZERO for entity in entities} for month in months}


def _emit_records(matrix: Matrix, entities: Sequence[Asset | Category]) -> List[SeriesRecord]:
    records: List[SeriesRecord] = []
    for month, cells in matrix.items():
        record: SeriesRecord = {"month": month}
        for entity in entities:
            record[entity.name] = cells[entity.id]
        records.append(record)
    return records


def _round_cents(value: Decimal) -> Decimal:
    if value.is_nan():
        return value
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
