from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta
from typing import Optional, Sequence

from fintrack.models import AbsolutePeriod, Period, RelativePeriod

SUPPORTED_UNITS = {"day", "week", "month", "year"}
SUPPORTED_OPTIONS = {"past", "this", "next"}


def resolve_period(period: Period, today: Optional[date] = None) -> tuple[str, str]:
    """Turn a period description into a ``(start, end)`` pair of ISO dates.

    Absolute periods are passed through untouched. ``Past``/``Next`` windows
    are anchored on today: the start moves by ``value`` units while the end
    stays on today. ``This`` windows cover the whole calendar unit that
    contains today, with weeks running Monday to Sunday.
    """
    if isinstance(period, AbsolutePeriod):
        return period.start, period.end

    today = today or date.today()
    option = _normalize_option(period.option)
    unit = _normalize_unit(period.unit)
    value = int(period.value) if period.value is not None else 1

    start_date = today
    end_date = today
    if option == "past":
        start_date = adjust_date(today, unit, -value)
    elif option == "next":
        start_date = adjust_date(today, unit, value)
    elif unit == "year":
        start_date = date(today.year, 1, 1)
        end_date = date(today.year, 12, 31)
    elif unit == "month":
        start_date = today.replace(day=1)
        end_date = today.replace(day=monthrange(today.year, today.month)[1])
    elif unit == "week":
        start_date = today - timedelta(days=today.weekday())
        end_date = start_date + timedelta(days=6)

    return start_date.isoformat(), end_date.isoformat()


def adjust_date(value: date, unit: str, amount: int) -> date:
    normalized = _normalize_unit(unit)
    if normalized == "day":
        return value + timedelta(days=amount)
    if normalized == "week":
        return value + timedelta(days=amount * 7)
    if normalized == "month":
        return _add_months(value, amount)
    return _add_months(value, amount * 12)


def period_from_filter_value(values: Sequence[str]) -> RelativePeriod:
    """Build a relative period from a ``[option, value, unit]`` filter payload."""
    if len(values) != 3:
        raise ValueError("Relative date filters need an option, a value, and a unit.")
    option, raw_value, unit = values
    try:
        amount = int(raw_value) if raw_value else 1
    except ValueError as exc:
        raise ValueError(f"Invalid period value: {raw_value}") from exc
    return RelativePeriod(
        option=_normalize_option(option).capitalize(),
        unit=_normalize_unit(unit),
        value=amount,
    )


def is_relative_filter_value(values: Sequence[str]) -> bool:
    return len(values) == 3 and values[0].strip().lower() in SUPPORTED_OPTIONS


def _add_months(value: date, months: int) -> date:
    total_month = value.month - 1 + months
    year = value.year + total_month // 12
    month = total_month % 12 + 1
    last_day = monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def _normalize_option(value: str) -> str:
    normalized = (value or "this").strip().lower()
    if normalized not in SUPPORTED_OPTIONS:
        raise ValueError(f"Unsupported period option: {value}")
    return normalized


def _normalize_unit(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in SUPPORTED_UNITS:
        raise ValueError(f"Unsupported period unit: {value}")
    return normalized
