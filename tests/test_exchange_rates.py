from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from routers.deps import get_exchange_rates
from services.exchange_rates import ExchangeRateService


class Clock:

     def __init__(self):
          self.now = 1000.0

     def __call__(self):
          return self.now


def rates_response(rates):
     resp = MagicMock(status_code=200)
     resp.json.return_value = {"base": "USD", "rates": rates}
     return resp


@pytest.fixture
def http():
     http = MagicMock()
     http.get.return_value = rates_response({"USD": 1, "EUR": 0.5, "JPY": 150.25, "INR": 83})
     return http


@pytest.fixture
def clock():
     return Clock()


@pytest.fixture
def rates(http, clock):
     return ExchangeRateService(url="https://rates.test/latest/USD", ttl_seconds=60, session=http, clock=clock)


def test_converts_through_usd(rates):
     result = rates.convert(Decimal("10"), base="EUR", currencies=["usd", "JPY"])

     assert not result.cached and not result.fallback
     assert result.conversions["USD"].value == Decimal("20")
     assert result.conversions["USD"].formatted == "$20.00"
     assert result.conversions["JPY"].formatted == "¥3,005"


def test_rates_are_cached_until_ttl(rates, http, clock):
     rates.convert(Decimal("1"))
     clock.now += 30
     second = rates.convert(Decimal("1"))
     assert second.cached
     assert http.get.call_count == 1

     clock.now += 31
     third = rates.convert(Decimal("1"))
     assert not third.cached
     assert http.get.call_count == 2


def test_unknown_currency_converts_at_par(rates):
     result = rates.convert(Decimal("5"), currencies=["XYZ"])
     assert result.conversions["XYZ"].value == Decimal("5")
     assert result.conversions["XYZ"].symbol == "XYZ"


def test_falls_back_to_static_table_when_api_is_down(rates, http):
     http.get.side_effect = requests.ConnectionError("down")

     result = rates.convert(Decimal("100"), currencies=["EUR"])

     assert result.fallback
     assert result.conversions["EUR"].formatted == "€92.00"

     http.get.side_effect = None
     assert not rates.convert(Decimal("1")).fallback


def test_exchange_rates_endpoint(client, rates):
     from main import app

     app.dependency_overrides[get_exchange_rates] = lambda: rates
     response = client.get("/api/exchange-rates", params={"amount": "3", "currencies": "EUR,INR"})

     assert response.status_code == 200
     body = response.json()
     assert set(body["conversions"]) == {"EUR", "INR"}
     assert body["conversions"]["EUR"]["formatted"] == "€1.50"
     assert body["conversions"]["INR"]["formatted"] == "₹249"
     assert body["fallback"] is False


def test_exchange_rates_rejects_non_positive_amount(client, rates):
     from main import app

     app.dependency_overrides[get_exchange_rates] = lambda: rates
     assert client.get("/api/exchange-rates", params={"amount": "0"}).status_code == 422
