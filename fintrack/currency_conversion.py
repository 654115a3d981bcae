from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
import json
import time
from typing import Mapping, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import urlopen

from fintrack.logging_setup import get_logger
from fintrack.models import coerce_amount

logger = get_logger(__name__)

NAN = Decimal("NaN")

DEFAULT_RATES: dict[str, Decimal] = {
    "USD": Decimal("1"),
    "EUR": Decimal("0.92"),
    "GBP": Decimal("0.79"),
    "JPY": Decimal("147.50"),
    "CAD": Decimal("1.34"),
    "AUD": Decimal("1.52"),
    "NZD": Decimal("1.64"),
    "CHF": Decimal("0.88"),
    "SEK": Decimal("10.45"),
}

SUPPORTED_CURRENCIES: tuple[str, ...] = (
    "USD", "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AUD", "AWG",
    "AZN", "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB",
    "BRL", "BSD", "BTN", "BWP", "BYN", "BZD", "CAD", "CDF", "CHF", "CLP",
    "CNY", "COP", "CRC", "CUP", "CVE", "CZK", "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB", "EUR", "FJD", "FKP", "FOK", "GBP", "GEL", "GGP",
    "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD", "HKD", "HNL", "HRK", "HTG",
    "HUF", "IDR", "ILS", "IMP", "INR", "IQD", "IRR", "ISK", "JEP", "JMD",
    "JOD", "JPY", "KES", "KGS", "KHR", "KID", "KMF", "KRW", "KWD", "KYD",
    "KZT", "LAK", "LBP", "LKR", "LRD", "LSL", "LYD", "MAD", "MDL", "MGA",
    "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MYR",
    "MZN", "NAD", "NGN", "NIO", "NOK", "NPR", "NZD", "OMR", "PAB", "PEN",
    "PGK", "PHP", "PKR", "PLN", "PYG", "QAR", "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SLL", "SOS",
    "SRD", "SSP", "STN", "SYP", "SZL", "THB", "TJS", "TMT", "TND", "TOP",
    "TRY", "TTD", "TVD", "TWD", "TZS", "UAH", "UGX", "UYU", "UZS", "VES",
    "VND", "VUV", "WST", "XAF", "XCD", "XDR", "XOF", "XPF", "YER", "ZAR",
    "ZMW", "ZWL",
)


def convert(
    rates: Mapping[str, Decimal | int | float | str],
    source_currency: str,
    target_currency: str,
    amount: Decimal | int | float | str,
) -> Decimal:
    """Convert ``amount`` between two currencies of a pivot-relative rate table.

    Rates are expressed as units of each currency per one unit of the pivot,
    so ``amount * rates[target] / rates[source]``. A currency missing from the
    table gives ``Decimal("NaN")`` instead of raising.
    """
    coerced_amount = coerce_amount(amount)
    source = source_currency.strip().upper()
    target = target_currency.strip().upper()
    if source == target:
        return coerced_amount

    source_rate = _lookup_rate(rates, source)
    target_rate = _lookup_rate(rates, target)
    if source_rate.is_nan() or target_rate.is_nan() or source_rate == 0:
        return NAN
    return coerced_amount * target_rate / source_rate


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def _lookup_rate(rates: Mapping[str, Decimal | int | float | str], currency: str) -> Decimal:
    raw = rates.get(currency)
    if raw is None:
        return NAN
    return coerce_amount(raw)


class RateProvider(Protocol):
    def get_rates(self, base_currency: str) -> Mapping[str, Decimal]:
        ...


class RateProviderUnavailable(RuntimeError):
    """Raised when a rate provider cannot fetch live rates."""


@dataclass(frozen=True)
class StaticRateProvider:
    """Deterministic, in-memory FX rates.

    Rates are expressed as target currency per 1 USD and rebased on request.
    """

    rates: Mapping[str, Decimal] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", dict(self.rates or DEFAULT_RATES))

    def get_rates(self, base_currency: str = "USD") -> dict[str, Decimal]:
        base = normalize_currency(base_currency)
        try:
            base_rate = self.rates[base]
        except KeyError as exc:
            raise ValueError(f"Unsupported currency: {base}") from exc
        return {code: rate / base_rate for code, rate in self.rates.items()}


@dataclass(frozen=True)
class CachedRates:
    rates: Mapping[str, Decimal]
    expires_at: float


@dataclass
class FrankfurterRateProvider:
    base_url: str = "https://api.frankfurter.app"
    cache_ttl_seconds: int = 24 * 60 * 60
    _cache: dict[str, CachedRates] = field(default_factory=dict)

    def get_rates(self, base_currency: str = "USD") -> Mapping[str, Decimal]:
        base = normalize_currency(base_currency)
        cached = self._cache.get(base)
        now = time.monotonic()
        if cached and cached.expires_at > now:
            return cached.rates

        rates = self._fetch_rates(base)
        self._cache[base] = CachedRates(rates=rates, expires_at=now + self.cache_ttl_seconds)
        return rates

    def _fetch_rates(self, base_currency: str) -> Mapping[str, Decimal]:
        url = f"{self.base_url}/latest?from={base_currency}"
        logger.info("Fetching exchange rates for %s", base_currency)
        try:
            with urlopen(url, timeout=8) as response:
                payload = json.load(response)
        except (HTTPError, URLError, TimeoutError, json.JSONDecodeError) as exc:
            raise RateProviderUnavailable("Frankfurter API unavailable") from exc

        rates = payload.get("rates")
        if not isinstance(rates, dict):
            raise RateProviderUnavailable("Frankfurter response missing rates")

        parsed = {normalize_currency(code): Decimal(str(value)) for code, value in rates.items()}
        parsed[base_currency] = Decimal("1")
        return parsed


@dataclass(frozen=True)
class CompositeRateProvider:
    primary: RateProvider
    fallback: StaticRateProvider

    def get_rates(self, base_currency: str = "USD") -> Mapping[str, Decimal]:
        try:
            return self.primary.get_rates(base_currency)
        except RateProviderUnavailable as exc:
            logger.warning("Falling back to static rates for %s: %s", base_currency, exc)
            return self.fallback.get_rates(base_currency)
