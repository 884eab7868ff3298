"""Currency conversion into a company's base currency.

Rates are fetched per base currency through a pluggable backend and held
in a ``RateCache``: at most one backend fetch per base currency per TTL
window. Any failure surfaces as ``DependencyFailureError``; callers decide
the fallback.
"""
import logging
import threading
import time
from collections.abc import Callable
from decimal import Decimal
from typing import Protocol

import httpx

from app.core.config import settings
from app.core.exceptions import DependencyFailureError

logger = logging.getLogger(__name__)

# Static mid-market rates, expressed as USD per unit (replace with live API in production)
USD_RATES: dict[str, Decimal] = {
    "USD": Decimal("1.0"),
    "EUR": Decimal("1.08"),
    "GBP": Decimal("1.27"),
    "CAD": Decimal("0.74"),
    "AUD": Decimal("0.65"),
    "JPY": Decimal("0.0067"),
    "CNY": Decimal("0.14"),
    "INR": Decimal("0.012"),
    "MXN": Decimal("0.058"),
    "CHF": Decimal("1.13"),
}


class RateBackend(Protocol):
    def fetch(self, base_currency: str) -> dict[str, Decimal]:
        """Return {currency: units of currency per one unit of base_currency}."""
        ...


class StaticRateBackend:
    """Cross rates derived from the built-in USD table."""

    def __init__(self, usd_rates: dict[str, Decimal] | None = None):
        self.usd_rates = usd_rates or USD_RATES

    def fetch(self, base_currency: str) -> dict[str, Decimal]:
        base_usd = self.usd_rates.get(base_currency.upper())
        if base_usd is None:
            raise DependencyFailureError(f"No static rates for base currency {base_currency}.")
        return {code: base_usd / usd for code, usd in self.usd_rates.items()}


class HttpRateBackend:
    """exchangerate-api style provider: GET {base_url}/{BASE} -> {"rates": {...}}."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client

    def fetch(self, base_currency: str) -> dict[str, Decimal]:
        url = f"{self.base_url}/{base_currency.upper()}"
        try:
            if self.client is not None:
                response = self.client.get(url, timeout=self.timeout)
            else:
                response = httpx.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DependencyFailureError(f"Failed to fetch rates for {base_currency}: {exc}") from exc

        rates = payload.get("rates") if isinstance(payload, dict) else None
        if not rates:
            raise DependencyFailureError(f"Rate provider returned no rates for {base_currency}.")
        return {code.upper(): Decimal(str(rate)) for code, rate in rates.items()}


class RateCache:
    """Per-base-currency rate tables, refreshed at most once per ``ttl_seconds``."""

    def __init__(
        self,
        backend: RateBackend,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[float, dict[str, Decimal]]] = {}
        self._lock = threading.Lock()

    def get_rates(self, base_currency: str) -> dict[str, Decimal]:
        base = base_currency.upper()
        with self._lock:
            entry = self._entries.get(base)
            now = self.clock()
            if entry is not None and now - entry[0] < self.ttl_seconds:
                return entry[1]

            rates = self.backend.fetch(base)
            self._entries[base] = (now, rates)
            logger.info("fx: fetched %d rates for base=%s", len(rates), base)
            return rates

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        """Convert ``amount`` and quantize to cents. Same currency is a no-op."""
        amount = Decimal(str(amount))
        if from_currency.upper() == to_currency.upper():
            return amount

        rate = self.get_rates(from_currency).get(to_currency.upper())
        if rate is None:
            raise DependencyFailureError(
                f"Exchange rate not found for {from_currency} to {to_currency}."
            )
        return (amount * rate).quantize(Decimal("0.01"))


def build_backend() -> RateBackend:
    if settings.FX_BACKEND == "http":
        return HttpRateBackend(settings.EXCHANGE_RATE_API_URL, timeout=settings.FX_HTTP_TIMEOUT_SECONDS)
    return StaticRateBackend()


_rate_cache: RateCache | None = None


def get_rate_cache() -> RateCache:
    global _rate_cache
    if _rate_cache is None:
        _rate_cache = RateCache(build_backend(), ttl_seconds=settings.FX_CACHE_TTL_SECONDS)
    return _rate_cache


def convert_currency(amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
    """Convert using the process-wide rate cache."""
    return get_rate_cache().convert(amount, from_currency, to_currency)
