from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from fintrack.models import Asset, Category, Transaction, as_date, coerce_amount, display_name
from fintrack.transaction_filter import FilterValue, filter_transactions

SORT_OPTIONS = ("Name", "Asset", "Category", "Date", "Amount", "Type", "Last Edited")


@dataclass(frozen=True)
class SortKey:
    key: str
    ascending: bool = True


SortItem = Union[SortKey, Tuple[str, str]]


def sort_transactions(
    transactions: Iterable[Transaction],
    order: Sequence[SortItem],
    assets: Sequence[Asset] = (),
    categories: Sequence[Category] = (),
) -> List[Transaction]:
    """Order transactions by ranked keys, each with its own direction.

    The first key is primary and later keys only break ties. Asset and
    category keys compare the referenced entity's display name.
    """
    ordered = list(transactions)
    for sort_key in reversed([_coerce_sort_key(item) for item in order]):
        key_func = _key_function(sort_key.key, assets, categories)
        if key_func is None:
            continue
        reverse = not sort_key.ascending
        if sort_key.key == "Last Edited":
            reverse = not reverse
        ordered.sort(key=key_func, reverse=reverse)
    return ordered


def sort_filter_transactions(
    transactions: Iterable[Transaction],
    filter_option: Optional[str],
    filter_value: FilterValue,
    order: Sequence[SortItem],
    assets: Sequence[Asset] = (),
    categories: Sequence[Category] = (),
    today: Optional[date] = None,
) -> List[Transaction]:
    filtered = filter_transactions(transactions, filter_option, filter_value, today=today)
    return sort_transactions(filtered, order, assets=assets, categories=categories)


def collation_key(value: str) -> tuple[str, str]:
    decomposed = unicodedata.normalize("NFKD", value)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), value


def _key_function(
    key: str,
    assets: Sequence[Asset],
    categories: Sequence[Category],
) -> Optional[Callable[[Transaction], object]]:
    if key == "Name":
        return lambda txn: collation_key(txn.name)
    if key == "Type":
        return lambda txn: collation_key(txn.type)
    if key == "Asset":
        return lambda txn: collation_key(display_name(assets, txn.asset_id))
    if key == "Category":
        return lambda txn: collation_key(display_name(categories, txn.category_id))
    if key == "Date":
        return lambda txn: as_date(txn.date)
    if key == "Amount":
        return lambda txn: coerce_amount(txn.amount)
    if key == "Last Edited":
        return _last_edited_key
    return None


def _coerce_sort_key(item: SortItem) -> SortKey:
    if isinstance(item, SortKey):
        return item
    key, direction = item
    normalized = direction.strip().lower()
    if normalized not in {"ascending", "descending"}:
        raise ValueError(f"Unsupported sort direction: {direction}")
    return SortKey(key=key, ascending=normalized == "ascending")


def _last_edited_key(txn: Transaction) -> tuple[bool, float]:
    if txn.created_at is None:
        return False, 0.0
    return True, txn.created_at.timestamp()
