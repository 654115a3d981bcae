import os
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from fintrack.aggregation import (
    asset_balance_history,
    asset_details,
    category_spent,
    category_spent_history,
    current_balance,
)
from fintrack.budget_engine import evaluate_category_budget
from fintrack.currency_conversion import (
    SUPPORTED_CURRENCIES,
    CompositeRateProvider,
    FrankfurterRateProvider,
    StaticRateProvider,
    convert,
    normalize_currency,
)
from fintrack.formatting import format_date, signed_amount
from fintrack.logging_setup import configure_logging, get_logger
from fintrack.models import (
    AbsolutePeriod,
    Asset,
    Category,
    Period,
    RelativePeriod,
    Transaction,
    display_name,
    find_by_id,
)
from fintrack.periods import resolve_period
from fintrack.transaction_sort import SORT_OPTIONS, SortKey, sort_filter_transactions

logger = get_logger(__name__)

app = FastAPI()

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_system_default_currency() -> str:
    raw = os.getenv("DEFAULT_CURRENCY", "USD")
    try:
        return normalize_currency(raw)
    except ValueError:
        return "USD"


SYSTEM_DEFAULT_CURRENCY = get_system_default_currency()
FX_PROVIDER = CompositeRateProvider(
    primary=FrankfurterRateProvider(
        base_url=os.getenv("FX_BASE_URL", "https://api.frankfurter.app"),
        cache_ttl_seconds=int(os.getenv("FX_CACHE_TTL_SECONDS", str(24 * 60 * 60))),
    ),
    fallback=StaticRateProvider(),
)


@app.on_event("startup")
def init_logging() -> None:
    configure_logging()
    logger.info(
        "fintrack started (default currency %s, frontend origin %s)",
        SYSTEM_DEFAULT_CURRENCY,
        frontend_origin,
    )


class AssetModel(BaseModel):
    id: str
    name: str
    init_balance: Decimal
    currency: str

    def to_domain(self) -> Asset:
        return Asset(
            id=self.id,
            name=self.name,
            init_balance=self.init_balance,
            currency=self.currency,
        )


class CategoryModel(BaseModel):
    id: str
    name: str
    total_budgeted: Decimal = Decimal("0")
    currency: str

    def to_domain(self) -> Category:
        return Category(
            id=self.id,
            name=self.name,
            total_budgeted=self.total_budgeted,
            currency=self.currency,
        )


class TransactionModel(BaseModel):
    id: str
    name: str
    amount: Decimal
    currency: str
    date: date
    type: str
    asset_id: str
    category_id: str | None = None
    source: str | None = None
    asset_from_id: str | None = None
    created_at: datetime | None = None

    def to_domain(self) -> Transaction:
        return Transaction(
            id=self.id,
            name=self.name,
            amount=self.amount,
            currency=self.currency,
            date=self.date,
            type=self.type.strip().lower(),
            asset_id=self.asset_id,
            category_id=self.category_id,
            source=self.source,
            asset_from_id=self.asset_from_id,
            created_at=self.created_at,
        )


class PeriodModel(BaseModel):
    type: str = "relative"
    start: str | None = None
    end: str | None = None
    option: str = "This"
    unit: str = "month"
    value: int = 1

    def to_domain(self) -> Period:
        if self.type.strip().lower() == "absolute":
            return AbsolutePeriod(start=self.start or "", end=self.end or "")
        return RelativePeriod(option=self.option, unit=self.unit, value=self.value)


class LedgerPayload(BaseModel):
    assets: list[AssetModel] = []
    categories: list[CategoryModel] = []
    transactions: list[TransactionModel] = []
    today: date | None = None

    def domain_assets(self) -> list[Asset]:
        return [asset.to_domain() for asset in self.assets]

    def domain_categories(self) -> list[Category]:
        return [category.to_domain() for category in self.categories]

    def domain_transactions(self) -> list[Transaction]:
        return [txn.to_domain() for txn in self.transactions]


class PeriodLedgerPayload(LedgerPayload):
    period: PeriodModel = PeriodModel()


class RatedLedgerPayload(PeriodLedgerPayload):
    rates: dict[str, Decimal] | None = None
    base_currency: str | None = None


class SortModel(BaseModel):
    key: str
    ascending: bool = True


class TransactionQueryPayload(LedgerPayload):
    filter_option: str = "None"
    filter_value: list[str] = [""]
    sort: list[SortModel] = []


class ConvertPayload(BaseModel):
    amount: Decimal
    source_currency: str
    target_currency: str
    rates: dict[str, Decimal] | None = None


class ConvertResponse(BaseModel):
    amount: Decimal
    currency: str


class RatesResponse(BaseModel):
    base_currency: str
    rates: dict[str, Decimal]


class BalanceResponse(BaseModel):
    asset_id: str
    balance: Decimal
    currency: str


class AssetDetailsResponse(BaseModel):
    asset_id: str
    start_date: str
    end_date: str
    income: Decimal
    expense: Decimal
    transfer_to: Decimal
    transfer_from: Decimal


class CategorySpentResponse(BaseModel):
    category_id: str
    start_date: str
    end_date: str
    total_spent: Decimal | None = None
    currency: str


class BudgetEvaluationResponse(BaseModel):
    category_id: str
    start_date: str
    end_date: str
    total_budgeted: Decimal
    current_value: Decimal | None = None
    remaining: Decimal | None = None
    status: str
    currency: str


class TransactionRow(BaseModel):
    id: str
    name: str
    type: str
    amount: Decimal
    currency: str
    date: date
    display_amount: str
    display_date: str
    asset_name: str
    category_name: str
    asset_from_name: str
    source: str | None = None


class HistoryResponse(BaseModel):
    base_currency: str | None = None
    data: list[dict[str, Any]] | None = None


def resolve_rates(rates: dict[str, Decimal] | None) -> dict[str, Decimal]:
    if rates:
        return {code.strip().upper(): value for code, value in rates.items()}
    try:
        return dict(FX_PROVIDER.get_rates(SYSTEM_DEFAULT_CURRENCY))
    except ValueError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def finite_or_none(value: Decimal) -> Decimal | None:
    # NaN marks a conversion that was missing a rate
    return None if value.is_nan() else value


def resolve_series_rates(
    rates: dict[str, Decimal] | None, base_currency: str | None
) -> dict[str, Decimal]:
    if base_currency is None:
        return {code.strip().upper(): value for code, value in (rates or {}).items()}
    return resolve_rates(rates)


def resolve_base_currency(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return normalize_currency(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def resolve_window(period: PeriodModel, today: date | None) -> tuple[Period, tuple[str, str]]:
    try:
        domain_period = period.to_domain()
        return domain_period, resolve_period(domain_period, today=today)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def get_asset(payload: LedgerPayload, asset_id: str) -> Asset:
    asset = find_by_id(payload.domain_assets(), asset_id)
    if asset is None:
        raise HTTPException(status_code=404, detail="Asset not found.")
    return asset


def get_category(payload: LedgerPayload, category_id: str) -> Category:
    category = find_by_id(payload.domain_categories(), category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found.")
    return category


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/currencies", response_model=list[str])
def list_currencies() -> list[str]:
    return list(SUPPORTED_CURRENCIES)


@app.get("/currency/rates", response_model=RatesResponse)
def currency_rates(base: str | None = Query(None)) -> RatesResponse:
    try:
        base_currency = normalize_currency(base) if base else SYSTEM_DEFAULT_CURRENCY
        rates = FX_PROVIDER.get_rates(base_currency)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return RatesResponse(base_currency=base_currency, rates=dict(rates))


@app.post("/currency/convert", response_model=ConvertResponse)
def convert_currency(payload: ConvertPayload) -> ConvertResponse:
    try:
        source_currency = normalize_currency(payload.source_currency)
        target_currency = normalize_currency(payload.target_currency)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    rates = resolve_rates(payload.rates)
    converted = convert(rates, source_currency, target_currency, payload.amount)
    if converted.is_nan():
        raise HTTPException(status_code=400, detail="Rate table is missing one of the currencies.")
    return ConvertResponse(amount=converted, currency=target_currency)


@app.post("/assets/{asset_id}/balance", response_model=BalanceResponse)
def asset_balance(asset_id: str, payload: LedgerPayload) -> BalanceResponse:
    asset = get_asset(payload, asset_id)
    balance = current_balance(asset, payload.domain_transactions(), today=payload.today)
    return BalanceResponse(asset_id=asset.id, balance=balance, currency=asset.currency)


@app.post("/assets/{asset_id}/details", response_model=AssetDetailsResponse)
def asset_period_details(asset_id: str, payload: PeriodLedgerPayload) -> AssetDetailsResponse:
    asset = get_asset(payload, asset_id)
    period, (start_date, end_date) = resolve_window(payload.period, payload.today)
    details = asset_details(asset, payload.domain_transactions(), period, today=payload.today)
    return AssetDetailsResponse(
        asset_id=asset.id,
        start_date=start_date,
        end_date=end_date,
        income=details.income,
        expense=details.expense,
        transfer_to=details.transfer_to,
        transfer_from=details.transfer_from,
    )


@app.post("/categories/{category_id}/spent", response_model=CategorySpentResponse)
def category_spent_total(category_id: str, payload: RatedLedgerPayload) -> CategorySpentResponse:
    category = get_category(payload, category_id)
    period, (start_date, end_date) = resolve_window(payload.period, payload.today)
    total = category_spent(
        category,
        payload.domain_transactions(),
        resolve_rates(payload.rates),
        period,
        today=payload.today,
    )
    return CategorySpentResponse(
        category_id=category.id,
        start_date=start_date,
        end_date=end_date,
        total_spent=finite_or_none(total),
        currency=category.currency,
    )


@app.post("/categories/{category_id}/budget", response_model=BudgetEvaluationResponse)
def category_budget(category_id: str, payload: RatedLedgerPayload) -> BudgetEvaluationResponse:
    category = get_category(payload, category_id)
    period, (start_date, end_date) = resolve_window(payload.period, payload.today)
    evaluation = evaluate_category_budget(
        category,
        payload.domain_transactions(),
        resolve_rates(payload.rates),
        period,
        today=payload.today,
    )
    return BudgetEvaluationResponse(
        category_id=category.id,
        start_date=start_date,
        end_date=end_date,
        total_budgeted=category.total_budgeted,
        current_value=finite_or_none(evaluation.current_value),
        remaining=finite_or_none(evaluation.remaining),
        status=evaluation.status,
        currency=category.currency,
    )


@app.post("/transactions/query", response_model=list[TransactionRow])
def query_transactions(payload: TransactionQueryPayload) -> list[TransactionRow]:
    assets = payload.domain_assets()
    categories = payload.domain_categories()
    unknown_keys = [item.key for item in payload.sort if item.key not in SORT_OPTIONS]
    if unknown_keys:
        raise HTTPException(status_code=400, detail=f"Unsupported sort keys: {', '.join(unknown_keys)}")
    try:
        ordered = sort_filter_transactions(
            payload.domain_transactions(),
            payload.filter_option,
            payload.filter_value,
            [SortKey(key=item.key, ascending=item.ascending) for item in payload.sort],
            assets=assets,
            categories=categories,
            today=payload.today,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return [
        TransactionRow(
            id=txn.id,
            name=txn.name,
            type=txn.type,
            amount=txn.amount,
            currency=txn.currency,
            date=txn.date,
            display_amount=signed_amount(txn),
            display_date=format_date(txn.date),
            asset_name=display_name(assets, txn.asset_id),
            category_name=display_name(categories, txn.category_id),
            asset_from_name=display_name(assets, txn.asset_from_id),
            source=txn.source,
        )
        for txn in ordered
    ]


@app.post(
    "/reports/category-history",
    response_model=HistoryResponse,
)
def category_history(payload: RatedLedgerPayload) -> HistoryResponse:
    base_currency = resolve_base_currency(payload.base_currency)
    period, _ = resolve_window(payload.period, payload.today)
    data = category_spent_history(
        payload.domain_transactions(),
        payload.domain_categories(),
        period,
        base_currency,
        resolve_series_rates(payload.rates, base_currency),
        today=payload.today,
    )
    return HistoryResponse(base_currency=base_currency, data=data)


@app.post(
    "/reports/asset-history",
    response_model=HistoryResponse,
)
def asset_history(payload: RatedLedgerPayload) -> HistoryResponse:
    base_currency = resolve_base_currency(payload.base_currency)
    period, _ = resolve_window(payload.period, payload.today)
    data = asset_balance_history(
        payload.domain_transactions(),
        payload.domain_assets(),
        period,
        base_currency,
        resolve_series_rates(payload.rates, base_currency),
        today=payload.today,
    )
    return HistoryResponse(base_currency=base_currency, data=data)
