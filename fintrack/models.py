from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Protocol, TypeVar, Union

INCOME = "income"
EXPENSE = "expense"
TRANSFER = "transfer"
TRANSACTION_TYPES = (INCOME, EXPENSE, TRANSFER)


@dataclass(frozen=True)
class Transaction:
    id: str
    name: str
    amount: Decimal
    currency: str
    date: date
    type: str
    asset_id: str
    category_id: Optional[str] = None
    source: Optional[str] = None
    asset_from_id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Asset:
    id: str
    name: str
    init_balance: Decimal
    currency: str


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    total_budgeted: Decimal
    currency: str


@dataclass(frozen=True)
class AbsolutePeriod:
    start: str
    end: str


@dataclass(frozen=True)
class RelativePeriod:
    option: str = "This"
    unit: str = "month"
    value: int = 1


Period = Union[AbsolutePeriod, RelativePeriod]


class _Identified(Protocol):
    id: str
    name: str


EntityT = TypeVar("EntityT", bound=_Identified)


def find_by_id(entities: Iterable[EntityT], entity_id: Optional[str]) -> Optional[EntityT]:
    if entity_id is None:
        return None
    for entity in entities:
        if entity.id == entity_id:
            return entity
    return None


def display_name(entities: Iterable[_Identified], entity_id: Optional[str]) -> str:
    entity = find_by_id(entities, entity_id)
    return entity.name if entity is not None else ""


def coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
