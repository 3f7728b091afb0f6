# services/exchange_rates.py
"""
Fiat conversions for display next to settlement amounts.

Rates are USD-based and cached in process for EXCHANGE_RATES_TTL_SECONDS.
When the rates API is down the conversion is still answered from a static
table and flagged as fallback.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional

import requests

import config

logger = logging.getLogger("shiftstream.rates")

DEFAULT_CURRENCIES = ("USD", "EUR", "GBP", "JPY", "CAD", "AUD", "CHF", "CNY", "INR", "BRL")

SYMBOLS = {
     "USD": "$",
     "EUR": "€",
     "GBP": "£",
     "JPY": "¥",
     "CAD": "C$",
     "AUD": "A$",
     "CHF": "CHF",
     "CNY": "¥",
     "INR": "₹",
     "BRL": "R$",
}

FALLBACK_RATES = {
     "USD": Decimal("1"),
     "EUR": Decimal("0.92"),
     "GBP": Decimal("0.79"),
     "JPY": Decimal("149.50"),
     "CAD": Decimal("1.36"),
     "AUD": Decimal("1.53"),
     "CHF": Decimal("0.88"),
     "CNY": Decimal("7.24"),
     "INR": Decimal("83.12"),
     "BRL": Decimal("4.97"),
}

# shown without minor units
WHOLE_UNIT_CURRENCIES = frozenset({"JPY", "INR"})


@dataclass
class Conversion:
     value: Decimal
     symbol: str
     formatted: str


@dataclass
class ConversionResult:
     conversions: dict = field(default_factory=dict)
     timestamp: Optional[datetime] = None
     cached: bool = False
     fallback: bool = False


class ExchangeRateService:

     def __init__(
          self,
          url: str = config.EXCHANGE_RATES_URL,
          ttl_seconds: float = config.EXCHANGE_RATES_TTL_SECONDS,
          timeout: float = config.PROVIDER_TIMEOUT_SECONDS,
          session: Optional[requests.Session] = None,
          clock: Callable[[], float] = time.monotonic,
     ):
          self.url = url
          self.ttl_seconds = ttl_seconds
          self.timeout = timeout
          self.http = session or requests.Session()
          self.clock = clock
          self._lock = threading.Lock()
          self._rates: Optional[dict] = None
          self._fetched_at: Optional[float] = None

     def convert(self, amount: Decimal, base: str = "USD", currencies: Optional[Iterable[str]] = None) -> ConversionResult:
          targets = [c.upper() for c in (currencies or DEFAULT_CURRENCIES)]
          base = base.upper()

          with self._lock:
               fresh = self._rates is not None and self.clock() - self._fetched_at < self.ttl_seconds
               if fresh:
                    return ConversionResult(conversions=_convert(amount, base, targets, self._rates), cached=True)
               try:
                    rates = self._fetch()
               except (requests.RequestException, ValueError) as e:
                    logger.warning("Exchange rates unavailable, using fallback table: %s", e)
                    return ConversionResult(
                         conversions=_convert(amount, base, targets, FALLBACK_RATES),
                         timestamp=datetime.now(timezone.utc),
                         fallback=True,
                    )
               self._rates = rates
               self._fetched_at = self.clock()

          return ConversionResult(
               conversions=_convert(amount, base, targets, rates),
               timestamp=datetime.now(timezone.utc),
          )

     def _fetch(self) -> dict:
          response = self.http.get(self.url, timeout=self.timeout)
          response.raise_for_status()
          raw = response.json().get("rates") or {}
          if not raw:
               raise ValueError("rates response has no rates")
          return {code.upper(): Decimal(str(rate)) for code, rate in raw.items()}


def _convert(amount: Decimal, base: str, targets: list, rates: dict) -> dict:
     # unknown currencies convert at 1
     amount_in_usd = amount / rates.get(base, Decimal("1"))
     conversions = {}
     for currency in targets:
          value = amount_in_usd * rates.get(currency, Decimal("1"))
          symbol = SYMBOLS.get(currency, currency)
          conversions[currency] = Conversion(value=value, symbol=symbol, formatted=_format(currency, symbol, value))
     return conversions


def _format(currency: str, symbol: str, value: Decimal) -> str:
     if currency in WHOLE_UNIT_CURRENCIES:
          return f"{symbol}{value.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"
     return f"{symbol}{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"
